"""Lazy CSV row stream.

Rows are yielded one at a time as (index, row) where index is 1-based and
excludes the header. A row that cannot be read as a complete mapping is
yielded as a ParseError instead, so one bad line never stops a load.
Bytes that are not valid UTF-8 only fail the rows that hold them.
"""

import csv
import logging
from collections.abc import Iterator
from pathlib import Path

from .errors import ParseError

logger = logging.getLogger(__name__)

RawRow = dict[str, str]


def _has_undecodable(values) -> bool:
    """True if a value holds bytes that were not valid UTF-8."""
    return any("\udc80" <= ch <= "\udcff" for value in values if isinstance(value, str) for ch in value)


def count_rows(path: Path | str) -> int:
    """Number of data lines in a file, for progress display only."""
    with open(path, "rb") as handle:
        lines = sum(1 for line in handle if line.strip())
    return max(lines - 1, 0)


def read_rows(path: Path | str, delimiter: str = ",") -> Iterator[tuple[int, RawRow | ParseError]]:
    """Yield (index, row) pairs; a row is a mapping or a ParseError.

    Raises OSError if the file cannot be opened.
    """
    with open(path, newline="", encoding="utf-8-sig", errors="surrogateescape") as handle:
        reader = csv.DictReader(handle, delimiter=delimiter)
        index = 0
        while True:
            index += 1
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                logger.debug(f"row {index} of {path} is not valid CSV: {e}")
                yield index, ParseError(str(e), index=index)
                continue

            if _has_undecodable(row.values()):
                yield index, ParseError("row is not valid UTF-8", index=index)
            elif None in row:
                yield index, ParseError(
                    f"expected {len(reader.fieldnames)} columns, found {len(reader.fieldnames) + len(row[None])}",
                    index=index,
                )
            elif any(v is None for v in row.values()):
                found = sum(1 for v in row.values() if v is not None)
                yield index, ParseError(
                    f"expected {len(reader.fieldnames)} columns, found {found}", index=index
                )
            else:
                yield index, row
