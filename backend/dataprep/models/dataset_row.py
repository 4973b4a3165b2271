"""
Dataset rows.

A row maps column ids to textual values and carries a deletion flag plus an
optional row identifier. Values iterate alphabetically by column id unless an
explicit column order was applied (see dataprep.utils.row_order).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from dataprep.models.dataset import ColumnMetadata

TDP_ID = "tdpId"


@dataclass(frozen=True)
class RowMetadata:
    """Ordered column definitions describing a row."""

    columns: Tuple[ColumnMetadata, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        seen = set()
        for column in self.columns:
            if column.id in seen:
                raise ValueError(f"Duplicate column id: {column.id}")
            seen.add(column.id)

    def column_ids(self) -> List[str]:
        return [column.id for column in self.columns]

    def column(self, column_id: str) -> Optional[ColumnMetadata]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def __len__(self) -> int:
        return len(self.columns)


class DatasetRow:
    def __init__(
        self,
        row_metadata: Optional[RowMetadata] = None,
        values: Optional[Mapping[str, str]] = None,
        *,
        deleted: bool = False,
        tdp_id: Optional[int] = None,
    ) -> None:
        self.row_metadata = row_metadata
        self.deleted = deleted
        self._values: Dict[str, str] = dict(values or {})
        self._column_order: Optional[Dict[str, int]] = None
        self._tdp_id = tdp_id

    @classmethod
    def from_values(cls, values: Mapping[str, str]) -> "DatasetRow":
        columns = [ColumnMetadata(id=key, name=key, type="string") for key in values]
        return cls(RowMetadata(tuple(columns)), values)

    @property
    def tdp_id(self) -> Optional[int]:
        return self._tdp_id

    @tdp_id.setter
    def tdp_id(self, value: Optional[int]) -> None:
        if self._tdp_id is not None and value != self._tdp_id:
            raise ValueError(f"Row id already assigned ({self._tdp_id})")
        self._tdp_id = value

    def set(self, column_id: str, value: str) -> "DatasetRow":
        self._values[column_id] = value
        return self

    def get(self, column_id: str) -> Optional[str]:
        return self._values.get(column_id)

    def __contains__(self, column_id: object) -> bool:
        return column_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def _sort_key(self, column_id: str) -> Tuple[int, str]:
        order = self._column_order
        if order is not None and column_id in order:
            return (order[column_id], "")
        # ids outside an explicit order (or all ids, without one) sort by name
        return (len(order) if order is not None else 0, column_id)

    def column_ids(self) -> List[str]:
        return sorted(self._values, key=self._sort_key)

    def items(self) -> Iterator[Tuple[str, str]]:
        for column_id in self.column_ids():
            yield column_id, self._values[column_id]

    @property
    def values(self) -> Dict[str, str]:
        """Ordered snapshot of the value map."""
        return dict(self.items())

    def with_column_order(self, column_ids: Sequence[str]) -> "DatasetRow":
        row = self.copy()
        row._column_order = {column_id: position for position, column_id in enumerate(column_ids)}
        return row

    def copy(self) -> "DatasetRow":
        row = DatasetRow(self.row_metadata, self._values, deleted=self.deleted, tdp_id=self._tdp_id)
        row._column_order = self._column_order
        return row

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DatasetRow):
            return NotImplemented
        return self.deleted == other.deleted and self._values == other._values

    def __hash__(self) -> int:
        return hash((self.deleted, tuple(sorted(self._values.items()))))

    def __repr__(self) -> str:
        return f"DatasetRow(deleted={self.deleted}, tdp_id={self._tdp_id}, values={self.values})"
