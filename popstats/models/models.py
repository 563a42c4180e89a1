"""
POPSTATS - Database Models

SQLAlchemy 2.0 model for the population time series.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from popstats.core.database import Base


# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer(), "sqlite")


class Population(Base):
    """One observation of server and player counts across the master servers."""
    __tablename__ = "population"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    servers: Mapped[int] = mapped_column(BigInteger)
    players: Mapped[int] = mapped_column(BigInteger)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_population_date", "date"),)

    def __repr__(self) -> str:
        return f"<Population id={self.id} servers={self.servers} players={self.players} date={self.date}>"
