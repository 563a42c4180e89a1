"""
POPSTATS - CSV Export Pipeline
Runs the retention query and rewrites the export file.
"""

import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Optional, Union

from popstats.services.data.csv_codec import write_csv
from popstats.services.population.population_store import PopulationStore

logger = logging.getLogger(__name__)


async def export_population_csv(
    store: PopulationStore,
    csv_path: Union[str, Path],
    retention_days: Optional[int] = None,
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Write the downsampled history to ``csv_path``.

    Returns:
        Number of rows written.

    Raises:
        StoreError: If the retention query fails; the previous export is
            left untouched.
        OSError: If the file cannot be written.
    """
    tz = tz or store.settings.csv_tz
    rows = await store.query(retention_days=retention_days, now=now, tz=tz)
    written = write_csv(csv_path, rows, tz)
    logger.info(f"Wrote {written} rows to {csv_path}")
    return written
