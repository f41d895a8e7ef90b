"""Member CSV reading and writing."""

import csv
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from groupadmin.core.constants import EMAIL_COLUMNS, EXPORT_COLUMNS
from groupadmin.core.identifiers import is_email_shaped

logger = logging.getLogger(__name__)


@dataclass
class MemberRow:
    """One member identifier read from a CSV file."""

    line_number: int
    value: str


def _find_column(header: list[str], column: str | None) -> int | None:
    """Find the member column index in a header row.

    Args:
        header: First row of the file
        column: Explicit column name, or None to try EMAIL_COLUMNS

    Returns:
        Column index, or None if the header has no recognized column
    """
    lowered = [h.strip().lower() for h in header]
    candidates = [column] if column else list(EMAIL_COLUMNS)
    for name in candidates:
        if name.lower() in lowered:
            return lowered.index(name.lower())
    return None


def read_member_rows(path: Path | str, column: str | None = None) -> list[MemberRow]:
    """Read member identifiers from a CSV file.

    The file either has a header with an ``Email`` or ``UserPrincipalName``
    column (or the column named by ``column``), or is free-form: the first
    cell of each row is the identifier, and a first row that is not
    email-shaped is treated as a header and skipped. Blank cells are skipped.

    Args:
        path: Path to the CSV file
        column: Explicit column name to read

    Returns:
        MemberRow list in file order, values stripped but otherwise unvalidated

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If ``column`` is given but not present in the header
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    # utf-8-sig strips the BOM Excel writes
    with path.open(newline="", encoding="utf-8-sig") as f:
        rows = list(csv.reader(f))

    if not rows:
        return []

    header = rows[0]
    index = _find_column(header, column)
    if column and index is None:
        raise ValueError(f"Column '{column}' not found in {path} (header: {', '.join(header)})")

    members: list[MemberRow] = []
    if index is not None:
        logger.debug(f"Reading column '{header[index].strip()}' from {path}")
        data_rows = enumerate(rows[1:], start=2)
    else:
        index = 0
        first = rows[0][0].strip() if rows[0] else ""
        skip_header = bool(first) and not is_email_shaped(first)
        if skip_header:
            logger.debug(f"Skipping header row in {path}: {first}")
        data_rows = enumerate(rows[1:] if skip_header else rows, start=2 if skip_header else 1)

    for line_number, row in data_rows:
        if len(row) <= index:
            continue
        value = row[index].strip()
        if value:
            members.append(MemberRow(line_number=line_number, value=value))

    logger.info(f"Read {len(members)} member rows from {path}")
    return members


def write_member_csv(rows: Iterable[dict[str, str]], output: Path | str | TextIO | None) -> int:
    """Write exported members as CSV.

    Args:
        rows: Dicts keyed by EXPORT_COLUMNS
        output: File path, open text stream, or None for stdout

    Returns:
        Number of data rows written
    """
    if output is None:
        return _write_rows(rows, sys.stdout)
    if isinstance(output, (str, Path)):
        with Path(output).open("w", newline="", encoding="utf-8") as f:
            return _write_rows(rows, f)
    return _write_rows(rows, output)


def _write_rows(rows: Iterable[dict[str, str]], stream: TextIO) -> int:
    writer = csv.DictWriter(stream, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    count = 0
    for row in rows:
        writer.writerow(row)
        count += 1
    return count
