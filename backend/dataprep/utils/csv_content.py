from __future__ import annotations

import csv
import io
from typing import Dict, Iterator, List, Sequence, Tuple

from dataprep.models.dataset import ColumnMetadata, ColumnQuality
from dataprep.models.dataset_row import DatasetRow, RowMetadata

DEFAULT_DELIMITER = ","
_CANDIDATE_DELIMITERS = ",;\t|"


def column_id_for(index: int) -> str:
    return f"{index:04d}"


def decode_content(raw: bytes) -> str:
    return raw.decode("utf-8-sig", errors="replace")


def detect_delimiter(content: str) -> str:
    first_line = content.split("\n", 1)[0]
    if not first_line.strip():
        return DEFAULT_DELIMITER
    try:
        return csv.Sniffer().sniff(first_line, delimiters=_CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return DEFAULT_DELIMITER


def parse_csv_content(content: str, *, delimiter: str) -> Tuple[List[str], List[List[str]]]:
    """Split CSV text into header names and normalized data rows (blank lines skipped)."""
    reader = csv.reader(io.StringIO(content), delimiter=delimiter)
    columns: List[str] = []
    rows: List[List[str]] = []

    for row in reader:
        if not row or all(str(cell).strip() == "" for cell in row):
            continue
        if not columns:
            columns = [str(cell).strip() or f"column_{index + 1}" for index, cell in enumerate(row)]
            continue
        normalized = [str(cell).strip() for cell in row]
        if len(normalized) < len(columns):
            normalized.extend([""] * (len(columns) - len(normalized)))
        elif len(normalized) > len(columns):
            normalized = normalized[: len(columns)]
        rows.append(normalized)

    return columns, rows


def header_columns(names: Sequence[str]) -> List[ColumnMetadata]:
    return [ColumnMetadata(id=column_id_for(index), name=name, type="string") for index, name in enumerate(names)]


def read_rows(raw: bytes, columns: Sequence[ColumnMetadata] = ()) -> Tuple[RowMetadata, Iterator[DatasetRow]]:
    """
    Materialize raw CSV content as rows keyed by column id.

    ``columns`` is the recorded schema; when empty the header row defines it.
    Row ids start at 1 in file order.
    """
    content = decode_content(raw)
    names, data = parse_csv_content(content, delimiter=detect_delimiter(content))
    schema = list(columns) or header_columns(names)
    row_metadata = RowMetadata(tuple(schema))
    ids = row_metadata.column_ids()

    def _rows() -> Iterator[DatasetRow]:
        for index, cells in enumerate(data, start=1):
            values = {
                column_id: cells[position] if position < len(cells) else ""
                for position, column_id in enumerate(ids)
            }
            yield DatasetRow(row_metadata, values, tdp_id=index)

    return row_metadata, _rows()


def column_quality(raw: bytes, columns: Sequence[ColumnMetadata]) -> Dict[str, ColumnQuality]:
    _, rows = read_rows(raw, columns)
    counts: Dict[str, ColumnQuality] = {column.id: ColumnQuality() for column in columns}
    for row in rows:
        for column in columns:
            quality = counts[column.id]
            if (row.get(column.id) or "") == "":
                quality.empty += 1
            else:
                quality.valid += 1
    return counts
