"""
POPSTATS - CSV Codec

Fixed-format CSV used both as the export target and as the bulk import
source::

    2024-03-01 18:05,42,117

One sample per line: ``YYYY-MM-DD HH:MM,<servers>,<players>``, Unix
newlines. Exported counts are rounded half-up so daily means render as
integers.

Import reads lines lazily and groups them into chunks of at most
``batch_limit`` lines. A chunk is parsed as a whole: one malformed line
rejects the entire chunk.
"""

import logging
import os
import tempfile
from datetime import datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from dateutil import parser as date_parser

from popstats.core.errors import ParseError
from popstats.models.schemas import AggregatedSample, Sample

logger = logging.getLogger(__name__)

MIN_FIELDS = 3


# =============================================================================
# RENDER
# =============================================================================

def round_half_up(value: Union[int, float, Decimal]) -> int:
    """Round to the nearest integer, halves away from zero."""
    if isinstance(value, int):
        return value
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_timestamp(ts: datetime, tz: tzinfo) -> str:
    """``YYYY-MM-DD HH:MM`` in the given time zone."""
    local = ts.astimezone(tz)
    return f"{local.year}-{local.month:02d}-{local.day:02d} {local.hour:02d}:{local.minute:02d}"


def format_row(row: AggregatedSample, tz: tzinfo) -> str:
    """Render one retention row as a newline-terminated CSV line."""
    return f"{format_timestamp(row.timestamp, tz)},{round_half_up(row.servers)},{round_half_up(row.players)}\n"


def render_csv(rows: Iterable[AggregatedSample], tz: tzinfo) -> Iterator[str]:
    for row in rows:
        yield format_row(row, tz)


def write_csv(path: Union[str, Path], rows: Iterable[AggregatedSample], tz: tzinfo) -> int:
    """
    Replace ``path`` with the rendered rows.

    The file is written next to the target and renamed over it, so readers
    see either the previous export or the complete new one.

    Returns:
        Number of lines written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    written = 0
    try:
        with os.fdopen(fd, "w", encoding="ascii", newline="\n") as f:
            for line in render_csv(rows, tz):
                f.write(line)
                written += 1
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return written


# =============================================================================
# PARSE
# =============================================================================

def iter_lines(path: Union[str, Path]) -> Iterator[str]:
    """
    Yield the non-blank lines of a file, without line terminators.

    Undecodable bytes are kept as surrogate escapes so the line can be
    rejected with its own chunk instead of aborting the read.
    """
    with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
        for raw in f:
            line = raw.rstrip("\r\n")
            if line.strip():
                yield line


def iter_chunks(lines: Iterable[str], batch_limit: int) -> Iterator[List[str]]:
    """Group lines into lists of at most ``batch_limit`` items."""
    if batch_limit < 1:
        raise ValueError("batch_limit must be at least 1")
    it = iter(lines)
    while True:
        chunk = list(islice(it, batch_limit))
        if not chunk:
            return
        yield chunk


def _parse_count(field: str, name: str, line: str) -> int:
    try:
        value = int(field.strip())
    except ValueError as e:
        raise ParseError(f"{name} is not an integer: {field!r} in line {line!r}") from e
    if value < 0:
        raise ParseError(f"{name} is negative: {value} in line {line!r}")
    return value


def parse_timestamp(text: str, tz: tzinfo) -> datetime:
    """Parse a timestamp in any common format; naive values are taken as ``tz``."""
    try:
        ts = date_parser.parse(text.strip())
    except (ValueError, OverflowError) as e:
        raise ParseError(f"unreadable timestamp {text!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=tz)
    return ts


def parse_line(line: str, tz: tzinfo) -> Sample:
    """
    Parse ``timestamp,servers,players``. Fields past the third are ignored.

    Raises:
        ParseError: Undecodable bytes, fewer than three fields, or an
            unreadable field.
    """
    try:
        line.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ParseError(f"line is not valid UTF-8: {line!r}") from e
    fields = line.split(",")
    if len(fields) < MIN_FIELDS:
        raise ParseError(f"expected {MIN_FIELDS} fields, got {len(fields)} in line {line!r}")
    return Sample(
        servers=_parse_count(fields[1], "servers", line),
        players=_parse_count(fields[2], "players", line),
        timestamp=parse_timestamp(fields[0], tz),
    )


def parse_chunk(lines: List[str], tz: tzinfo) -> List[Sample]:
    """
    Parse every line of a chunk.

    Raises:
        ParseError: If any line is malformed. The error carries the whole
            chunk in ``lines`` and nothing of the chunk should be stored.
    """
    samples = []
    for line in lines:
        try:
            samples.append(parse_line(line, tz))
        except ParseError as e:
            raise ParseError(e.message, lines=lines) from e
    return samples
