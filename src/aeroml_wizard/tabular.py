"""Parsing of uploaded tabular datasets into headers and rows."""

import csv
import io
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

from .exceptions import InputError

SUPPORTED_SUFFIXES = frozenset({".csv", ".tsv", ".txt"})
PREVIEW_ROWS = 100


def format_file_size(num_bytes: int) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(num_bytes)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"


@dataclass(frozen=True, slots=True)
class DatasetSummary:
    """File-level facts shown next to the preview."""

    filename: str
    rows: int
    columns: int
    size: str

    def to_dict(self) -> dict[str, Any]:
        return {"filename": self.filename, "rows": self.rows, "columns": self.columns, "size": self.size}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatasetSummary":
        return cls(
            filename=str(data["filename"]),
            rows=int(data["rows"]),
            columns=int(data["columns"]),
            size=str(data["size"]),
        )


@dataclass
class TabularPayload:
    """A parsed dataset held client-side for preview and validation."""

    summary: DatasetSummary
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    def preview(self, limit: int = PREVIEW_ROWS) -> list[dict[str, str]]:
        return self.rows[:limit]

    def column_values(self, column: str) -> list[str]:
        if column not in self.headers:
            raise KeyError(column)
        return [row.get(column, "") for row in self.rows]


def _decode(content: bytes) -> str:
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise InputError("Dataset is not valid text")


def parse_tabular(filename: str, content: bytes) -> TabularPayload:
    """Parse a delimited text upload.

    The first row is the header; blank header cells become `Column <n>`. Missing
    trailing cells are filled with empty strings.

    Raises:
        InputError: Unsupported file type, empty file, or no data rows.
    """
    suffix = PurePath(filename).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise InputError(f"Unsupported dataset type '{suffix or filename}', upload a CSV file")

    text = _decode(content).strip()
    if not text:
        raise InputError("The selected file appears to be empty")

    delimiter = "\t" if suffix == ".tsv" else ","
    if suffix == ".txt":
        try:
            delimiter = csv.Sniffer().sniff(text[:4096], delimiters=",;\t|").delimiter
        except csv.Error:
            delimiter = ","

    records = [record for record in csv.reader(io.StringIO(text), delimiter=delimiter) if any(cell.strip() for cell in record)]
    if len(records) < 2:
        raise InputError("The file must have a header row and at least one data row")

    headers = [cell.strip() or f"Column {index + 1}" for index, cell in enumerate(records[0])]
    rows: list[dict[str, str]] = []
    for record in records[1:]:
        rows.append({header: (record[index] if index < len(record) else "") for index, header in enumerate(headers)})

    summary = DatasetSummary(
        filename=PurePath(filename).name,
        rows=len(rows),
        columns=len(headers),
        size=format_file_size(len(content)),
    )
    return TabularPayload(summary=summary, headers=headers, rows=rows)
