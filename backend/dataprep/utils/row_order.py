from __future__ import annotations

from typing import List, Optional, Sequence, Union

from dataprep.exceptions.dataset import RowOrderError
from dataprep.models.dataset import ColumnMetadata
from dataprep.models.dataset_row import DatasetRow

ColumnRef = Union[str, ColumnMetadata]


def _column_id(column: ColumnRef) -> str:
    if isinstance(column, ColumnMetadata):
        return column.id
    return str(column)


def order_row(row: DatasetRow, columns: Optional[Sequence[ColumnRef]]) -> DatasetRow:
    """
    Return a copy of ``row`` whose values iterate in the order of ``columns``.

    ``columns`` must be a permutation of the row's column ids; an empty
    sequence returns an unchanged copy. The row metadata reference is shared
    with the original, which is never modified.
    """
    if columns is None:
        raise RowOrderError("Columns cannot be null.")
    if len(columns) == 0:
        return row.copy()
    if len(columns) != len(row):
        raise RowOrderError(
            f"Expected {len(row)} columns but got {len(columns)}",
            expected=len(row),
            actual=len(columns),
        )

    column_ids: List[str] = [_column_id(column) for column in columns]
    if set(column_ids) != set(row.column_ids()):
        raise RowOrderError(
            "Columns do not match the row column ids",
            expected=len(row),
            actual=len(set(column_ids)),
        )
    return row.with_column_order(column_ids)
