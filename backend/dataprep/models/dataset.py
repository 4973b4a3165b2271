"""
Dataset metadata models.

Shared between the dataset service, the metadata repository and the
analysis worker.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _now_millis() -> int:
    return int(time.time() * 1000)


class ColumnQuality(BaseModel):
    valid: int = Field(default=0, ge=0, description="Non-empty values")
    empty: int = Field(default=0, ge=0, description="Empty values")
    invalid: int = Field(default=0, ge=0, description="Values rejected by the column type")


class ColumnMetadata(BaseModel):
    id: str = Field(..., description="Column id, unique within a schema")
    name: str = Field(..., description="Display name")
    type: str = Field(default="string", description="Semantic type")
    quality: Optional[ColumnQuality] = Field(default=None, description="Set by quality analysis")


class DatasetLifecycle(BaseModel):
    schema_analyzed: bool = Field(default=False, description="Format/structure analysis complete")
    quality_analyzed: bool = Field(default=False, description="Per-column quality analysis complete")


class DatasetMetadata(BaseModel):
    id: str = Field(..., description="Dataset id, assigned at creation")
    name: str = Field(default="", description="Display name")
    author: str = Field(default="anonymous", description="Identity supplied by the creating caller")
    created: int = Field(default_factory=_now_millis, description="Creation time in epoch milliseconds")
    lifecycle: DatasetLifecycle = Field(default_factory=DatasetLifecycle)
    columns: List[ColumnMetadata] = Field(default_factory=list)
    records: int = Field(default=0, ge=0, description="Row count recorded by format analysis")

    @field_validator("columns")
    @classmethod
    def _unique_column_ids(cls, value: List[ColumnMetadata]) -> List[ColumnMetadata]:
        seen = set()
        for column in value:
            if column.id in seen:
                raise ValueError(f"Duplicate column id: {column.id}")
            seen.add(column.id)
        return value

    def reset_analysis(self) -> "DatasetMetadata":
        """Copy for a new content generation: flags cleared, recorded schema dropped."""
        return self.model_copy(
            update={"lifecycle": DatasetLifecycle(), "columns": [], "records": 0},
            deep=True,
        )


class AnalysisTrigger(BaseModel):
    """Kafka payload published on every analysis trigger topic."""

    dataset_id: str = Field(..., min_length=1, description="Dataset to analyze")

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
