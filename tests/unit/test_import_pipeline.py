"""
Unit Tests for the CSV Import Pipeline
=======================================
Chunk dispatch, batching limits and malformed-chunk isolation, against a
recording stand-in for the store.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from popstats.core.errors import StoreError
from popstats.pipeline.import_csv import import_population_csv, save_chunk

pytestmark = pytest.mark.unit

UTC = timezone.utc


class RecordingStore:
    """Records insert_batch calls instead of talking to a database."""

    def __init__(self, settings, fail_on_call=None, delay=0.0):
        self.settings = settings
        self.max_batch_rows = settings.IMPORT_BATCH_LIMIT
        self.batches = []
        self.fail_on_call = fail_on_call
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def insert_batch(self, samples):
        self.calls += 1
        call = self.calls
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if call == self.fail_on_call:
                raise StoreError("insert_batch", "duplicate key value")
            self.batches.append(list(samples))
            return len(samples)
        finally:
            self.in_flight -= 1

    @property
    def rows(self):
        return [s for batch in self.batches for s in batch]


def write_lines(path, count, start=datetime(2024, 1, 1, tzinfo=UTC)):
    with open(path, "w") as f:
        for i in range(count):
            ts = start + timedelta(minutes=5 * i)
            f.write(f"{ts:%Y-%m-%d %H:%M},{i % 50},{i % 300}\n")


class TestBatching:
    """Test chunking of large imports."""

    @pytest.mark.asyncio
    async def test_2500_lines_make_three_batches(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        write_lines(path, 2500)
        store = RecordingStore(test_settings)

        report = await import_population_csv(store, path, batch_limit=1000, tz=UTC)

        assert store.calls == 3
        assert sorted(len(b) for b in store.batches) == [500, 1000, 1000]
        assert len(store.rows) == 2500
        assert report.inserted_rows == 2500
        assert report.total_lines == 2500
        assert report.success

    @pytest.mark.asyncio
    async def test_blank_lines_not_counted(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        path.write_text("2024-01-01 00:00,1,2\n\n\n2024-01-01 00:05,3,4\n\n")
        store = RecordingStore(test_settings)

        report = await import_population_csv(store, path, batch_limit=1000, tz=UTC)

        assert store.calls == 1
        assert report.inserted_rows == 2

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        path.write_text("")
        store = RecordingStore(test_settings)

        report = await import_population_csv(store, path, tz=UTC)

        assert store.calls == 0
        assert report.chunks == []
        assert report.success

    @pytest.mark.asyncio
    async def test_in_flight_inserts_bounded(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        write_lines(path, 100)
        store = RecordingStore(test_settings, delay=0.01)

        report = await import_population_csv(store, path, batch_limit=10, tz=UTC, max_concurrency=3)

        assert report.inserted_rows == 100
        assert 1 < store.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path, test_settings):
        store = RecordingStore(test_settings)
        with pytest.raises(FileNotFoundError):
            await import_population_csv(store, tmp_path / "missing.csv", tz=UTC)


class TestChunkIsolation:
    """Test that one bad chunk does not affect the others."""

    @pytest.mark.asyncio
    async def test_malformed_chunk_rejected_and_logged(self, test_settings, caplog):
        store = RecordingStore(test_settings)
        bad = ["2024-01-01 00:00,1,2", "2024-01-01 00:05,3"]
        good = ["2024-01-01 00:10,5,6", "2024-01-01 00:15,7,8"]

        bad_result = await save_chunk(store, 1, bad, UTC)
        good_result = await save_chunk(store, 2, good, UTC)

        assert not bad_result.success
        assert bad_result.inserted == 0
        assert good_result.success
        assert good_result.inserted == 2
        assert store.calls == 1
        # the whole offending chunk is in the log
        assert "2024-01-01 00:00,1,2" in caplog.text
        assert "2024-01-01 00:05,3" in caplog.text

    @pytest.mark.asyncio
    async def test_import_continues_after_bad_chunk(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        path.write_text(
            "2024-01-01 00:00,1,2\n"
            "2024-01-01 00:05,3,4\n"
            "2024-01-01 00:10,5\n"
            "2024-01-01 00:15,7,8\n"
            "2024-01-01 00:20,9,10\n"
        )
        store = RecordingStore(test_settings)

        report = await import_population_csv(store, path, batch_limit=2, tz=UTC)

        assert [c.success for c in report.chunks] == [True, False, True]
        assert report.inserted_rows == 3
        assert [c.index for c in report.failed_chunks] == [2]
        assert not report.success

    @pytest.mark.asyncio
    async def test_undecodable_bytes_fail_only_their_chunk(self, tmp_path, test_settings, caplog):
        path = tmp_path / "population.csv"
        path.write_bytes(
            b"2024-01-01 00:00,1,2\n"
            b"2024-01-01 00:05,3,4\n"
            b"2024-01-01 00:10,5,\xff\xfe\n"
            b"2024-01-01 00:15,7,8\n"
            b"2024-01-01 00:20,9,10\n"
            b"2024-01-01 00:25,11,12\n"
        )
        store = RecordingStore(test_settings)

        report = await import_population_csv(store, path, batch_limit=2, tz=UTC)

        assert [c.success for c in report.chunks] == [True, False, True]
        assert report.inserted_rows == 4
        assert sorted(s.servers for s in store.rows) == [1, 3, 9, 11]
        assert "not valid UTF-8" in report.failed_chunks[0].error
        # the rejected chunk is logged with both of its lines
        assert "2024-01-01 00:10,5,\\udcff\\udcfe" in caplog.text
        assert "2024-01-01 00:15,7,8" in caplog.text

    @pytest.mark.asyncio
    async def test_store_failure_isolated_to_chunk(self, tmp_path, test_settings):
        path = tmp_path / "population.csv"
        write_lines(path, 30)
        store = RecordingStore(test_settings, fail_on_call=2)

        report = await import_population_csv(store, path, batch_limit=10, tz=UTC, max_concurrency=1)

        assert len(report.failed_chunks) == 1
        assert report.inserted_rows == 20
        assert "duplicate key value" in report.failed_chunks[0].error
