"""
POPSTATS - Retention Query

Recent samples are kept at full resolution; anything older than the
retention window is collapsed into one row per calendar day holding the
mean counts and the earliest timestamp of that day.

On PostgreSQL the calendar day is taken in the export time zone, so an
aggregated row renders on the day it averages. SQLite has no time zone
support and groups by the UTC day of the stored timestamp.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Select, func, select, union_all

from popstats.models.models import Population


def retention_cutoff(now: datetime, retention_days: int) -> datetime:
    """Oldest instant kept at full resolution (inclusive)."""
    return now - timedelta(days=retention_days)


def calendar_day(day_zone: Optional[str] = None):
    """
    Day expression for grouping.

    ``day_zone`` is an IANA zone name passed to PostgreSQL's ``timezone()``;
    ``None`` takes ``DATE()`` of the stored value as is.
    """
    if day_zone is None:
        return func.date(Population.date)
    return func.date(func.timezone(day_zone, Population.date))


def build_retention_query(cutoff: datetime, day_zone: Optional[str] = None) -> Select:
    """
    Build the downsampling query for a given cutoff.

    Rows are ``(servers, players, date)`` ordered by ``date``. Means are
    left unrounded; rounding happens when the rows are rendered.
    """
    daily = (
        select(
            func.avg(Population.servers).label("servers"),
            func.avg(Population.players).label("players"),
            func.min(Population.date).label("date"),
        )
        .where(Population.date < cutoff)
        .group_by(calendar_day(day_zone))
    )
    recent = select(
        Population.servers,
        Population.players,
        Population.date,
    ).where(Population.date >= cutoff)

    # UNION ALL: identical recent samples are distinct observations
    retained = union_all(daily, recent).subquery("retained")
    return select(
        retained.c.servers,
        retained.c.players,
        retained.c.date,
    ).order_by(retained.c.date)
