"""
POPSTATS - Models
"""

from popstats.core.database import Base
from popstats.models.models import Population
from popstats.models.schemas import AggregatedSample, Sample

__all__ = ["Base", "Population", "Sample", "AggregatedSample"]
