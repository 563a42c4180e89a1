"""
POPSTATS - TES3MP Population Tracker

Polls the TES3MP master servers for server and player counts, stores one
sample per run and exports a downsampled CSV history for charting.

- core/        Settings, database handle, error types
- models/      population table and sample value objects
- services/    master server collector, population store, CSV codec
- pipeline/    fetch cycle, export, import
- cli/         popstats command
"""

__version__ = "1.0.0"
__description__ = "TES3MP master server population tracker"


def get_version() -> str:
    """Return the package version."""
    return __version__
