"""
CSV decoding for bulk uploads.

Turns an uploaded file into ``BulkUserRow`` records. Structural problems
(encoding, missing header, too many rows) reject the whole file; row-level
problems are left to the orchestrator so they show up in the batch summary.
"""
from __future__ import annotations

import csv
import io

import structlog

from ..core.exceptions import CsvFormatError, PayloadTooLargeError
from ..schemas.bulk import BulkUserRow

logger = structlog.get_logger(__name__)


def normalize_header(name: str) -> str:
    """``" Full Name "`` -> ``"full_name"``."""
    return "_".join(name.strip().lower().replace("-", " ").split())


def parse_csv_rows(
    raw_bytes: bytes,
    *,
    max_rows: int,
    filename: str | None = None,
) -> list[BulkUserRow]:
    """Decode ``raw_bytes`` into rows, in file order.

    Fully blank lines are dropped. Unknown columns are ignored. A header
    with no data rows decodes to an empty list.

    Raises:
        CsvFormatError: file is not UTF-8, has no header or no email column.
        PayloadTooLargeError: more than ``max_rows`` data rows.
    """
    try:
        text = raw_bytes.decode("utf-8-sig")  # strip BOM if present
    except UnicodeDecodeError:
        raise CsvFormatError("CSV file must be UTF-8 encoded.", filename)

    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header or not any(cell.strip() for cell in header):
        raise CsvFormatError("CSV file is empty or has no header row.", filename)

    columns = [normalize_header(cell) for cell in header]
    if "email" not in columns:
        raise CsvFormatError("CSV is missing required column: email.", filename)

    records = [record for record in reader if any(cell.strip() for cell in record)]
    if len(records) > max_rows:
        raise PayloadTooLargeError(
            f"Too many rows: {len(records)} (maximum allowed: {max_rows}).",
            limit=max_rows,
        )

    rows = [
        BulkUserRow.model_validate(
            {column: value for column, value in zip(columns, record) if column}
        )
        for record in records
    ]

    logger.info("csv_decoded", filename=filename, rows=len(rows))
    return rows
