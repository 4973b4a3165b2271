from __future__ import annotations

import pytest

from dataprep.exceptions.dataset import RowOrderError
from dataprep.models.dataset import ColumnMetadata
from dataprep.models.dataset_row import DatasetRow
from dataprep.utils.row_order import order_row


def _row() -> DatasetRow:
    row = DatasetRow.from_values({"0000": "a", "0001": "b", "0002": "c"})
    row.tdp_id = 4
    return row


def test_order_row_follows_permutation() -> None:
    row = _row()

    ordered = order_row(row, ["0002", "0000", "0001"])

    assert list(ordered.values) == ["0002", "0000", "0001"]
    assert ordered.values == {"0000": "a", "0001": "b", "0002": "c"}
    assert ordered == row


def test_order_row_accepts_column_metadata() -> None:
    columns = [ColumnMetadata(id=column_id, name=column_id) for column_id in ("0001", "0002", "0000")]

    ordered = order_row(_row(), columns)

    assert list(ordered.values) == ["0001", "0002", "0000"]


def test_order_row_leaves_original_untouched() -> None:
    row = _row()

    ordered = order_row(row, ["0002", "0001", "0000"])

    assert ordered is not row
    assert list(row.values) == ["0000", "0001", "0002"]
    assert ordered.row_metadata is row.row_metadata
    assert ordered.tdp_id == 4
    assert ordered.deleted is row.deleted


def test_order_row_with_empty_sequence_returns_copy() -> None:
    row = _row()

    copy = order_row(row, [])

    assert copy is not row
    assert copy == row
    assert list(copy.values) == list(row.values)


def test_order_row_rejects_null_sequence() -> None:
    with pytest.raises(RowOrderError, match="Columns cannot be null"):
        order_row(_row(), None)


@pytest.mark.parametrize("columns", [["0000", "0001"], ["0000", "0001", "0002", "0003"]])
def test_order_row_rejects_length_mismatch(columns) -> None:
    with pytest.raises(RowOrderError) as excinfo:
        order_row(_row(), columns)

    assert excinfo.value.http_status == 400
    assert excinfo.value.context == {"expected": 3, "actual": len(columns)}


def test_order_row_rejects_unknown_column_ids() -> None:
    with pytest.raises(RowOrderError):
        order_row(_row(), ["0000", "0001", "9999"])
