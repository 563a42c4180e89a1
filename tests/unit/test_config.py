"""
Unit Tests for Settings Validation
===================================
"""

import pytest
from pydantic import ValidationError

from popstats.core.config import MAX_BATCH_ROWS, Settings

pytestmark = pytest.mark.unit


class TestDatabaseUrl:
    """Test accepted database URL schemes."""

    @pytest.mark.parametrize("url", [
        "postgresql://u:p@db/popstats",
        "postgresql+asyncpg://u:p@db/popstats",
        "sqlite+aiosqlite:///popstats.db",
    ])
    def test_supported_schemes(self, url):
        assert Settings(DATABASE_URL=url).DATABASE_URL == url

    def test_unsupported_scheme_names_accepted_ones(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(DATABASE_URL="mysql://u:p@db/popstats")
        message = str(exc_info.value)
        assert "postgresql+asyncpg://" in message
        assert "sqlite+aiosqlite://" in message


class TestBatchLimit:
    """Test the import batch ceiling."""

    def test_ceiling_accepted(self):
        assert Settings(IMPORT_BATCH_LIMIT=MAX_BATCH_ROWS).IMPORT_BATCH_LIMIT == MAX_BATCH_ROWS

    def test_over_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            Settings(IMPORT_BATCH_LIMIT=MAX_BATCH_ROWS + 1)
