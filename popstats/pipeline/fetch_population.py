"""
POPSTATS - Fetch Cycle Pipeline
Polls the master servers, stores one sample and regenerates the CSV export.

One cycle per invocation; scheduling is left to cron or a systemd timer:

    */5 * * * * popstats fetch /var/www/stats/population.csv
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from popstats.core.errors import StoreError
from popstats.services.collectors.master_server_collector import MasterServerCollector, MergeResult
from popstats.services.population.population_store import PopulationStore
from popstats.pipeline.export_csv import export_population_csv

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Outcome of one fetch-merge-persist-export cycle."""

    merge: MergeResult
    persisted: bool = False
    row_id: Optional[int] = None
    exported_rows: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


async def run_fetch_cycle(
    store: PopulationStore,
    csv_path: Optional[Union[str, Path]],
    collector: Optional[MasterServerCollector] = None,
) -> CycleReport:
    """
    Run one collection cycle.

    Unreachable master servers only lower the totals. A failed insert is
    recorded in the report and the export still runs, so the CSV reflects
    whatever history is stored.
    """
    logger.info("=" * 50)
    logger.info("POPSTATS Fetch Cycle")
    logger.info("=" * 50)

    owns_collector = collector is None
    collector = collector or MasterServerCollector(settings=store.settings)
    try:
        merge = await collector.collect()
    finally:
        if owns_collector:
            await collector.close()

    report = CycleReport(merge=merge)

    logger.info("Saving in the database...")
    try:
        report.row_id = await store.insert_one(merge.servers, merge.players)
        report.persisted = True
    except StoreError as e:
        report.errors.append(str(e))

    if csv_path is not None:
        logger.info("Generating CSV...")
        try:
            report.exported_rows = await export_population_csv(store, csv_path)
        except StoreError as e:
            report.errors.append(str(e))
        except OSError as e:
            logger.error(f"Could not write {csv_path}: {e}")
            report.errors.append(f"export failed: {e}")

    return report
