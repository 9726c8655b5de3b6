"""
Recipient list import.

Turns CSV text into rows and rows into pending recipients. Import is
all-or-nothing: a BatchError is raised before any recipient is created.
"""
import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from domain.errors import BatchError, BatchErrorKind
from domain.models import Recipient, RecipientStatus

logger = logging.getLogger(__name__)

NAME_COLUMN = "name"
EMAIL_COLUMN = "email"


def _normalize_header(header: Any) -> str:
    return str(header or "").strip().lower()


def parse_csv(text: str | bytes) -> List[Dict[str, Any]]:
    """
    Tokenize CSV text with a required header row.

    Header names are trimmed and lower-cased; completely blank lines are skipped.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise BatchError(BatchErrorKind.MALFORMED, "CSV file is not UTF-8 text") from exc
    elif text.startswith("\ufeff"):
        text = text[1:]

    try:
        reader = csv.DictReader(io.StringIO(text, newline=""), strict=True)
        if reader.fieldnames is not None:
            reader.fieldnames = [_normalize_header(h) for h in reader.fieldnames]
        rows = list(reader)
    except csv.Error as exc:
        raise BatchError(
            BatchErrorKind.MALFORMED,
            "An error occurred while parsing the CSV file. Please ensure it is correctly formatted.",
        ) from exc
    return rows


def _header_set(rows: Sequence[Mapping[str, Any]], fieldnames: Optional[Iterable[str]]) -> set:
    headers = fieldnames if fieldnames is not None else rows[0].keys()
    return {_normalize_header(h) for h in headers}


def _cell(row: Mapping[str, Any], column: str) -> str:
    for key, value in row.items():
        if _normalize_header(key) == column:
            return str(value if value is not None else "").strip()
    return ""


def validate_rows(
    rows: Sequence[Mapping[str, Any]],
    fieldnames: Optional[Iterable[str]] = None,
) -> List[Recipient]:
    """
    Build pending recipients from tabular rows.

    Each recipient's id is its zero-based row index. Rows with a blank name
    or email are dropped; duplicate emails are kept as separate recipients.

    Raises:
        BatchError: EMPTY for zero rows, MISSING_COLUMNS when the header lacks
            name or email, NO_VALID_ROWS when every row was dropped.
    """
    if not rows:
        raise BatchError(BatchErrorKind.EMPTY, "The CSV file is empty or could not be read.")

    headers = _header_set(rows, fieldnames)
    if NAME_COLUMN not in headers or EMAIL_COLUMN not in headers:
        raise BatchError(
            BatchErrorKind.MISSING_COLUMNS,
            'Could not find "name" and "email" columns. Please check the file headers '
            "(they are case-insensitive).",
        )

    candidates = [
        Recipient(
            id=index,
            name=_cell(row, NAME_COLUMN),
            email=_cell(row, EMAIL_COLUMN),
            status=RecipientStatus.PENDING,
        )
        for index, row in enumerate(rows)
    ]
    recipients = [r for r in candidates if r.name and r.email]
    if not recipients:
        raise BatchError(
            BatchErrorKind.NO_VALID_ROWS,
            "No valid rows with both a name and an email were found.",
        )

    dropped = len(candidates) - len(recipients)
    if dropped:
        logger.info("Dropped %d of %d rows without a name or email", dropped, len(candidates))
    return recipients
