"""
Domain exceptions for the dataset service
"""

from .base import DomainException

from .dataset import (
    DatasetServiceError,
    DatasetLockTimeoutError,
    DatasetLockLostError,
    RowOrderError,
)

__all__ = [
    "DomainException",
    "DatasetServiceError",
    "DatasetLockTimeoutError",
    "DatasetLockLostError",
    "RowOrderError",
]
