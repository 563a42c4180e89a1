"""
POPSTATS - CSV Import Pipeline
Bulk-loads an exported CSV (or a migration dump) into the population table.

Lines are read lazily and grouped into chunks of ``batch_limit`` lines.
Each chunk is parsed and inserted as one multi-row statement; while a chunk
is being inserted the next one is already being read. In-flight inserts are
bounded by ``max_concurrency``.

A malformed chunk or a failed insert is logged with the chunk's raw lines
and skipped; chunks are independent, so earlier and later chunks keep their
effect.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import List, Optional, Union

from popstats.core.errors import ParseError, StoreError
from popstats.services.data.csv_codec import iter_chunks, iter_lines, parse_chunk
from popstats.services.population.population_store import PopulationStore

logger = logging.getLogger(__name__)


@dataclass
class ChunkResult:
    """Outcome of one chunk."""

    index: int
    lines: int
    inserted: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ImportReport:
    """Outcome of a whole import."""

    path: str
    chunks: List[ChunkResult] = field(default_factory=list)

    @property
    def total_lines(self) -> int:
        return sum(c.lines for c in self.chunks)

    @property
    def inserted_rows(self) -> int:
        return sum(c.inserted for c in self.chunks)

    @property
    def failed_chunks(self) -> List[ChunkResult]:
        return [c for c in self.chunks if not c.success]

    @property
    def success(self) -> bool:
        return not self.failed_chunks


async def save_chunk(
    store: PopulationStore,
    index: int,
    lines: List[str],
    tz: tzinfo,
) -> ChunkResult:
    """Parse and insert one chunk; never raises for parse or store errors."""
    logger.info(f"Saving {len(lines)} lines (chunk #{index})...")
    # undecodable bytes arrive as surrogate escapes; keep the log line writable
    raw = "\n".join(lines).encode("utf-8", "backslashreplace").decode("utf-8")

    try:
        samples = parse_chunk(lines, tz)
    except ParseError as e:
        logger.error(f"Rejected chunk #{index}: {e.message}\n{raw}")
        return ChunkResult(index=index, lines=len(lines), error=str(e))

    try:
        inserted = await store.insert_batch(samples)
    except StoreError as e:
        logger.error(f"Error for chunk #{index}: {e.message}\n{raw}")
        return ChunkResult(index=index, lines=len(lines), error=str(e))

    return ChunkResult(index=index, lines=len(lines), inserted=inserted)


async def import_population_csv(
    store: PopulationStore,
    csv_path: Union[str, Path],
    batch_limit: Optional[int] = None,
    tz: Optional[tzinfo] = None,
    max_concurrency: Optional[int] = None,
) -> ImportReport:
    """
    Import every line of ``csv_path``.

    Returns once every dispatched chunk has finished.

    Raises:
        OSError: If the file cannot be read. Chunks already dispatched are
            still awaited first.
    """
    settings = store.settings
    batch_limit = batch_limit or store.max_batch_rows
    tz = tz or settings.csv_tz
    semaphore = asyncio.Semaphore(max_concurrency or settings.IMPORT_MAX_CONCURRENT_BATCHES)

    logger.info(f"Importing {csv_path} in chunks of {batch_limit} lines...")

    tasks: List[asyncio.Task] = []
    try:
        for index, chunk in enumerate(iter_chunks(iter_lines(csv_path), batch_limit), start=1):
            # Back-pressure: stop reading while too many inserts are in flight
            await semaphore.acquire()
            task = asyncio.create_task(save_chunk(store, index, chunk, tz))
            task.add_done_callback(lambda _: semaphore.release())
            tasks.append(task)
    finally:
        results = await asyncio.gather(*tasks) if tasks else []

    report = ImportReport(path=str(csv_path), chunks=sorted(results, key=lambda c: c.index))
    logger.info(
        f"Imported {report.inserted_rows}/{report.total_lines} lines "
        f"({len(report.failed_chunks)} of {len(report.chunks)} chunks failed)"
    )
    return report
