from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from dataprep.models.dataset_row import TDP_ID, DatasetRow

ROW_DIFF_KEY = "__tdp_row_diff"
DIFF_KEY = "__tdp_diff"


class Flag(str, Enum):
    NEW = "new"
    UPDATE = "update"
    DELETE = "delete"


def _column_diff(current: Dict[str, str], previous: Dict[str, str]) -> Dict[str, str]:
    diff: Dict[str, str] = {}
    for column_id, value in current.items():
        if column_id not in previous:
            diff[column_id] = Flag.NEW.value
        elif previous[column_id] != value:
            diff[column_id] = Flag.UPDATE.value
    for column_id in previous:
        if column_id not in current:
            diff[column_id] = Flag.DELETE.value
    return diff


def diff_values(current: DatasetRow, previous: Optional[DatasetRow] = None) -> Dict[str, Any]:
    """
    Render ``current`` annotated with its changes relative to ``previous``.

    - no previous: plain values
    - previous deleted, current live: row flagged ``new``, current values
    - previous live, current deleted: row flagged ``delete``, previous values
    - otherwise: current values, columns gone since ``previous`` put back at
      the end, and a column diff map (``new``/``update``/``delete``) under
      DIFF_KEY when anything changed
    """
    if previous is None:
        return dict(current.values)

    result: Dict[str, Any] = {}
    if previous.deleted and not current.deleted:
        result[ROW_DIFF_KEY] = Flag.NEW.value
        result.update(current.values)
        return result
    if not previous.deleted and current.deleted:
        result[ROW_DIFF_KEY] = Flag.DELETE.value
        result.update(diff_values(previous))
        return result

    current_values = current.values
    previous_values = previous.values
    result.update(current_values)
    for column_id, value in previous_values.items():
        if column_id not in current_values:
            result[column_id] = value
    diff = _column_diff(current_values, previous_values)
    if diff:
        result[DIFF_KEY] = diff
    return result


def should_write(current: DatasetRow, previous: Optional[DatasetRow] = None) -> bool:
    if previous is None:
        return not current.deleted
    return not (previous.deleted and current.deleted)


def values_with_id(current: DatasetRow, previous: Optional[DatasetRow] = None) -> Dict[str, Any]:
    values = diff_values(current, previous)
    if current.tdp_id is not None:
        values[TDP_ID] = current.tdp_id
    return values


def render_rows(
    rows: Iterable[DatasetRow],
    previous_rows: Optional[Iterable[DatasetRow]] = None,
) -> List[Dict[str, Any]]:
    """
    Render a row stream for output, pairing each row with its previous version.

    Previous rows are matched by ``tdp_id`` when both sides carry one, otherwise
    by position. Rows that ``should_write`` rejects are dropped.
    """
    previous_list = list(previous_rows) if previous_rows is not None else []
    previous_by_id = {row.tdp_id: row for row in previous_list if row.tdp_id is not None}

    rendered: List[Dict[str, Any]] = []
    for index, row in enumerate(rows):
        previous: Optional[DatasetRow] = None
        if previous_rows is not None:
            if row.tdp_id is not None and row.tdp_id in previous_by_id:
                previous = previous_by_id[row.tdp_id]
            elif row.tdp_id is None and index < len(previous_list):
                previous = previous_list[index]
        if not should_write(row, previous):
            continue
        rendered.append(values_with_id(row, previous))
    return rendered
