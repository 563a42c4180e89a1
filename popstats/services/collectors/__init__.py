"""
POPSTATS - Collectors
"""

from popstats.services.collectors.base_collector import BaseCollector
from popstats.services.collectors.master_server_collector import (
    MasterServerCollector,
    MergeResult,
    SourceResult,
    parse_stats,
)

__all__ = [
    "BaseCollector",
    "MasterServerCollector",
    "MergeResult",
    "SourceResult",
    "parse_stats",
]
