"""
POPSTATS - Population Store

Append-only storage of population samples. Every operation runs in its own
session and transaction; database failures are logged and raised as
StoreError naming the operation.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone, tzinfo
from typing import AsyncGenerator, List, Optional, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from popstats.core.config import MAX_BATCH_ROWS, PARAMS_PER_ROW, Settings, get_settings
from popstats.core.database import Base, DatabaseManager
from popstats.core.errors import StoreError
from popstats.models.models import Population
from popstats.models.schemas import AggregatedSample, Sample
from popstats.services.population.retention import build_retention_query, retention_cutoff

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _zone_name(tz: tzinfo) -> str:
    # ZoneInfo carries its IANA key; fixed UTC offsets fall back to UTC days
    return getattr(tz, "key", None) or "UTC"


class PopulationStore:
    """Operations on the ``population`` table."""

    def __init__(
        self,
        db: DatabaseManager,
        max_batch_rows: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.max_batch_rows = max_batch_rows or self.settings.IMPORT_BATCH_LIMIT

    @property
    def max_batch_rows(self) -> int:
        return self._max_batch_rows

    @max_batch_rows.setter
    def max_batch_rows(self, value: int) -> None:
        if not 0 < value <= MAX_BATCH_ROWS:
            raise ValueError(f"max_batch_rows must be between 1 and {MAX_BATCH_ROWS}, got {value}")
        self._max_batch_rows = value

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.db.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Store operation '{name}' failed: {e}")
            raise StoreError(name, str(e)) from e

    async def prepare(self) -> None:
        """Create the population table if it does not exist yet."""
        try:
            await self.db.initialize()
            async with self.db.engine.begin() as conn:
                await conn.run_sync(
                    Base.metadata.create_all,
                    tables=[Population.__table__],
                    checkfirst=True,
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Store operation 'prepare' failed: {e}")
            raise StoreError("prepare", str(e)) from e
        logger.info("Population table ready")

    async def insert_one(self, servers: int, players: int) -> int:
        """
        Insert one sample stamped with the database's current time.

        Returns:
            The id of the new row.
        """
        async with self._operation("insert_one") as session:
            row = Population(servers=servers, players=players)
            session.add(row)
            await session.flush()
            row_id = row.id
        logger.info(f"Saved sample #{row_id}: {servers} servers, {players} players")
        return row_id

    async def insert_batch(self, samples: Sequence[Sample]) -> int:
        """
        Insert samples with explicit timestamps in one multi-row statement.

        The statement is all-or-nothing. Batches larger than
        ``max_batch_rows`` are refused before anything is sent, as they
        would exceed the backend's bind parameter ceiling.

        Returns:
            Number of rows inserted.
        """
        if not samples:
            return 0
        if len(samples) > self.max_batch_rows:
            raise StoreError(
                "insert_batch",
                f"{len(samples)} rows ({len(samples) * PARAMS_PER_ROW} parameters) "
                f"exceeds the batch limit of {self.max_batch_rows} rows",
            )

        rows = [
            {"servers": s.servers, "players": s.players, "date": _as_utc(s.timestamp)}
            for s in samples
        ]
        async with self._operation("insert_batch") as session:
            await session.execute(insert(Population).values(rows))
        logger.debug(f"Inserted batch of {len(rows)} samples")
        return len(rows)

    async def query(
        self,
        retention_days: Optional[int] = None,
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> List[AggregatedSample]:
        """
        Run the retention query.

        Samples at or after ``now - retention_days`` come back unmodified;
        older ones are averaged per calendar day in ``tz`` (default
        ``CSV_TIMEZONE``; UTC on SQLite). Result is ordered by timestamp.
        """
        if retention_days is None:
            retention_days = self.settings.RETENTION_DAYS
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        cutoff = retention_cutoff(now, retention_days)
        day_zone = None if self.db.is_sqlite else _zone_name(tz or self.settings.csv_tz)

        async with self._operation("query") as session:
            result = await session.execute(build_retention_query(cutoff, day_zone))
            rows = result.all()

        return [
            AggregatedSample(
                servers=row.servers,
                players=row.players,
                timestamp=_as_utc(row.date),
            )
            for row in rows
        ]

    async def clear_all(self) -> int:
        """Delete every sample. Returns the number of rows removed."""
        async with self._operation("clear_all") as session:
            result = await session.execute(delete(Population))
            deleted = result.rowcount
        logger.warning(f"Cleared population table ({deleted} rows deleted)")
        return deleted

    async def count(self) -> int:
        """Number of stored samples."""
        async with self._operation("count") as session:
            result = await session.execute(select(func.count()).select_from(Population))
            return result.scalar_one()

    async def latest(self) -> Optional[Population]:
        """Most recent sample, or None for an empty table."""
        async with self._operation("latest") as session:
            result = await session.execute(
                select(Population).order_by(Population.date.desc(), Population.id.desc()).limit(1)
            )
            return result.scalar_one_or_none()
