"""
POPSTATS - Population Storage
"""

from popstats.services.population.population_store import PopulationStore
from popstats.services.population.retention import build_retention_query, retention_cutoff

__all__ = ["PopulationStore", "build_retention_query", "retention_cutoff"]
