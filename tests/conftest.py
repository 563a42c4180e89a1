"""
POPSTATS - Test Configuration
Pytest fixtures shared by the unit and integration suites.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from popstats.core.config import Settings
from popstats.core.database import DatabaseManager
from popstats.services.population.population_store import PopulationStore


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'popstats.db'}",
        MASTER_SERVER_URLS=[
            "https://master.test/api/servers/info",
            "http://master.test:8080/api/servers/info",
            "http://master.test:8081/api/servers/info",
        ],
        FETCH_TIMEOUT_SECONDS=0.5,
        CSV_TIMEZONE="UTC",
    )


@pytest_asyncio.fixture
async def db(test_settings: Settings):
    """Initialized database handle, closed after the test."""
    async with DatabaseManager(settings=test_settings) as manager:
        yield manager


@pytest_asyncio.fixture
async def store(db: DatabaseManager, test_settings: Settings) -> PopulationStore:
    """Store with the population table created."""
    population_store = PopulationStore(db, settings=test_settings)
    await population_store.prepare()
    return population_store


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)
