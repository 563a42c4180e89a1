"""
POPSTATS - Pipelines
One-shot operations invoked by the CLI: fetch cycle, export, import.
"""

from popstats.pipeline.export_csv import export_population_csv
from popstats.pipeline.fetch_population import CycleReport, run_fetch_cycle
from popstats.pipeline.import_csv import ChunkResult, ImportReport, import_population_csv

__all__ = [
    "export_population_csv",
    "run_fetch_cycle",
    "CycleReport",
    "import_population_csv",
    "ImportReport",
    "ChunkResult",
]
