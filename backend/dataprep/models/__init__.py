"""
Shared model definitions for the dataset service
"""

from .dataset import (
    AnalysisTrigger,
    ColumnMetadata,
    ColumnQuality,
    DatasetLifecycle,
    DatasetMetadata,
)
from .dataset_row import TDP_ID, DatasetRow, RowMetadata

__all__ = [
    "AnalysisTrigger",
    "ColumnMetadata",
    "ColumnQuality",
    "DatasetLifecycle",
    "DatasetMetadata",
    "DatasetRow",
    "RowMetadata",
    "TDP_ID",
]
