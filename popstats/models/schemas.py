"""
POPSTATS - Sample Schemas
Plain value objects passed between the codec, the store and the pipelines.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class Sample:
    """A sample with an explicit timestamp, as read from an import file."""

    servers: int
    players: int
    timestamp: datetime


@dataclass(frozen=True)
class AggregatedSample:
    """
    A row of the retention query.

    For days older than the retention window ``servers`` and ``players`` hold
    the unrounded daily mean and ``timestamp`` the earliest sample of that
    day. Recent rows carry the original integer counts.
    """

    servers: Union[int, float]
    players: Union[int, float]
    timestamp: datetime
