import zipfile
from pathlib import Path

import aiosqlite
import pytest

from busap_mcp.data.feed_loader import FeedLoader, get_table_counts


@pytest.fixture
def sample_feed_zip(sample_feed_dir: Path, tmp_path: Path) -> Path:
    """Create a sample feed ZIP file from the directory."""
    zip_path = tmp_path / "feed.zip"
    with zipfile.ZipFile(zip_path, "w") as zf:
        for file_path in sample_feed_dir.iterdir():
            zf.write(file_path, file_path.name)
    return zip_path


class TestFeedLoader:
    """Tests for FeedLoader."""

    async def test_ingest_from_directory(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        """Test ingesting feed data from a directory."""
        db_path = tmp_path / "test.db"
        loader = FeedLoader(db_path)

        row_counts = await loader.ingest(sample_feed_dir)

        assert db_path.exists()
        assert row_counts == {
            "routes": 2,
            "stops": 4,
            "trips": 5,
            "stop_times": 11,
            "shapes": 3,
        }

    async def test_ingest_from_zip(self, sample_feed_zip: Path, tmp_path: Path) -> None:
        """Test ingesting feed data from a ZIP file."""
        db_path = tmp_path / "test.db"
        loader = FeedLoader(db_path)

        row_counts = await loader.ingest(sample_feed_zip)

        assert db_path.exists()
        assert row_counts["routes"] == 2
        assert row_counts["stops"] == 4
        assert row_counts["stop_times"] == 11

    async def test_atomic_swap_creates_new_db(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        """Test that ingestion creates the database atomically."""
        db_path = tmp_path / "test.db"
        temp_path = db_path.with_suffix(".tmp.db")

        loader = FeedLoader(db_path)
        await loader.ingest(sample_feed_dir)

        # Final DB should exist, temp should not
        assert db_path.exists()
        assert not temp_path.exists()

    async def test_atomic_swap_replaces_existing(
        self, sample_feed_dir: Path, tmp_path: Path
    ) -> None:
        """Test that ingestion replaces an existing database."""
        db_path = tmp_path / "test.db"

        loader = FeedLoader(db_path)
        await loader.ingest(sample_feed_dir)

        # Ingest again - should replace
        await loader.ingest(sample_feed_dir)

        counts = await get_table_counts(db_path)
        assert counts["routes"] == 2

    async def test_rollback_on_failure(self, tmp_path: Path) -> None:
        """Test that temp DB is cleaned up on failure."""
        db_path = tmp_path / "test.db"
        temp_path = db_path.with_suffix(".tmp.db")

        loader = FeedLoader(db_path)

        with pytest.raises(FileNotFoundError):
            await loader.ingest(tmp_path / "nonexistent")

        assert not db_path.exists()
        assert not temp_path.exists()

    async def test_missing_required_file(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        """A feed without stop_times cannot be simulated."""
        (sample_feed_dir / "stop_times.txt").unlink()
        db_path = tmp_path / "test.db"

        with pytest.raises(ValueError, match="stop_times.txt"):
            await FeedLoader(db_path).ingest(sample_feed_dir)

        assert not db_path.exists()
        assert not db_path.with_suffix(".tmp.db").exists()

    async def test_missing_shapes_is_optional(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        (sample_feed_dir / "shapes.txt").unlink()
        db_path = tmp_path / "test.db"

        row_counts = await FeedLoader(db_path).ingest(sample_feed_dir)

        assert row_counts["shapes"] == 0
        assert row_counts["trips"] == 5

    async def test_missing_required_column(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        (sample_feed_dir / "stops.txt").write_text("stop_id,stop_lat,stop_lon\nS1,50.0,19.9\n")

        with pytest.raises(ValueError, match="stop_name"):
            await FeedLoader(tmp_path / "test.db").ingest(sample_feed_dir)

    async def test_creates_parent_directories(self, sample_feed_dir: Path, tmp_path: Path) -> None:
        """Test that parent directories are created if needed."""
        db_path = tmp_path / "subdir" / "nested" / "test.db"

        await FeedLoader(db_path).ingest(sample_feed_dir)

        assert db_path.exists()


class TestSchemaAndData:
    """Tests for the schema and loaded rows."""

    async def test_schema_has_feed_and_runtime_tables(self, feed_db: Path) -> None:
        async with aiosqlite.connect(feed_db) as db:
            cursor = await db.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            tables = {row[0] async for row in cursor}
            await cursor.close()

        assert tables == {
            "routes",
            "stops",
            "trips",
            "stop_times",
            "shapes",
            "vehicle_positions",
            "calendars",
            "calendar_entries",
        }

    async def test_indexes_created(self, feed_db: Path) -> None:
        async with aiosqlite.connect(feed_db) as db:
            cursor = await db.execute(
                "SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%'"
            )
            indexes = [row[0] async for row in cursor]
            await cursor.close()

        for idx in ("idx_trips_route", "idx_trips_status", "idx_stop_times_stop"):
            assert idx in indexes, f"Missing index: {idx}"

    async def test_trip_status_defaults_to_scheduled(self, feed_db: Path) -> None:
        async with aiosqlite.connect(feed_db) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT trip_id, status, vehicle_id FROM trips ORDER BY trip_id"
            ) as cursor:
                trips = {row["trip_id"]: row async for row in cursor}

        assert trips["T1"]["status"] == "scheduled"
        assert trips["T5"]["status"] == "completed"
        # Empty CSV values become NULL
        assert trips["T3"]["vehicle_id"] is None

    async def test_stop_coordinates_stored_as_numbers(self, feed_db: Path) -> None:
        async with aiosqlite.connect(feed_db) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM stops ORDER BY stop_id") as cursor:
                stops = [row async for row in cursor]

        assert stops[0]["stop_lat"] == pytest.approx(50.0)
        assert stops[0]["stop_lon"] == pytest.approx(19.9)
        assert stops[3]["stop_lat"] is None

    async def test_get_table_counts(self, feed_db: Path) -> None:
        counts = await get_table_counts(feed_db)

        assert counts["trips"] == 5
        assert counts["shapes"] == 3
