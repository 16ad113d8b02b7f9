"""Feed loader for ingesting GTFS-style transit data into SQLite.

The feed supplies the trips the simulator can run: stops with coordinates,
routes, trips (with the vehicle assigned to each), stop_times giving the
scheduled timing, and optional shapes with road geometry.
"""

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import IO, Any

import aiosqlite

from busap_mcp.data.database import OPERATIONAL_SCHEMA_SQL

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- routes
CREATE TABLE routes (
    route_id TEXT PRIMARY KEY,
    route_short_name TEXT,
    route_long_name TEXT,
    route_type INTEGER
);

-- stops
CREATE TABLE stops (
    stop_id TEXT PRIMARY KEY,
    stop_code TEXT,
    stop_name TEXT NOT NULL,
    stop_lat REAL,
    stop_lon REAL
);

-- trips
CREATE TABLE trips (
    trip_id TEXT PRIMARY KEY,
    route_id TEXT NOT NULL,
    trip_headsign TEXT,
    shape_id TEXT,
    vehicle_id TEXT,
    status TEXT NOT NULL DEFAULT 'scheduled'
);

-- stop_times
CREATE TABLE stop_times (
    trip_id TEXT NOT NULL,
    arrival_time TEXT,
    departure_time TEXT,
    stop_id TEXT NOT NULL,
    stop_sequence INTEGER NOT NULL,
    shape_dist_traveled REAL,
    PRIMARY KEY (trip_id, stop_sequence)
);

-- shapes
CREATE TABLE shapes (
    shape_id TEXT NOT NULL,
    shape_pt_lat REAL NOT NULL,
    shape_pt_lon REAL NOT NULL,
    shape_pt_sequence INTEGER NOT NULL,
    PRIMARY KEY (shape_id, shape_pt_sequence)
);
"""

INDEX_SQL = """
CREATE INDEX idx_trips_route ON trips(route_id);
CREATE INDEX idx_trips_status ON trips(status);
CREATE INDEX idx_stop_times_stop ON stop_times(stop_id);
"""

# Table definitions: table_name -> (csv_filename, columns)
TABLE_DEFINITIONS: dict[str, tuple[str, list[str]]] = {
    "routes": (
        "routes.txt",
        ["route_id", "route_short_name", "route_long_name", "route_type"],
    ),
    "stops": (
        "stops.txt",
        ["stop_id", "stop_code", "stop_name", "stop_lat", "stop_lon"],
    ),
    "trips": (
        "trips.txt",
        ["trip_id", "route_id", "trip_headsign", "shape_id", "vehicle_id", "status"],
    ),
    "stop_times": (
        "stop_times.txt",
        [
            "trip_id",
            "arrival_time",
            "departure_time",
            "stop_id",
            "stop_sequence",
            "shape_dist_traveled",
        ],
    ),
    "shapes": (
        "shapes.txt",
        ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
    ),
}

# Columns that must be present for a row to be inserted.
REQUIRED_COLUMNS: dict[str, list[str]] = {
    "routes": ["route_id"],
    "stops": ["stop_id", "stop_name"],
    "trips": ["trip_id", "route_id"],
    "stop_times": ["trip_id", "stop_id", "stop_sequence"],
    "shapes": ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
}

# Columns a file may omit from its header entirely.
OPTIONAL_COLUMNS: dict[str, set[str]] = {
    "routes": {"route_short_name", "route_long_name", "route_type"},
    "stops": {"stop_code", "stop_lat", "stop_lon"},
    "trips": {"trip_headsign", "shape_id", "vehicle_id", "status"},
    "stop_times": {"arrival_time", "departure_time", "shape_dist_traveled"},
    "shapes": set(),
}

# Values used when a column is missing or empty.
DEFAULT_VALUES: dict[str, dict[str, str]] = {
    "trips": {"status": "scheduled"},
}

# Files whose absence fails the ingest.
REQUIRED_FILES = {"routes", "stops", "trips", "stop_times"}

# Chunk size for bulk inserts
CHUNK_SIZE = 10000


class FeedLoader:
    """Loader for ingesting a transit feed into SQLite."""

    def __init__(self, db_path: Path):
        """Initialize the loader.

        Args:
            db_path: Path where the SQLite database will be created.
        """
        self.db_path = Path(db_path)

    async def ingest(self, feed_path: Path) -> dict[str, int]:
        """Ingest feed data from a directory or ZIP file into SQLite.

        Uses atomic swap: loads into temp DB, then replaces the target DB.
        The runtime tables (positions, calendars) are recreated empty.

        Args:
            feed_path: Path to feed directory or ZIP file.

        Returns:
            Dictionary with row counts per table.

        Raises:
            FileNotFoundError: If feed path doesn't exist.
            ValueError: If required feed files or columns are missing.
        """
        feed_path = Path(feed_path)
        if not feed_path.exists():
            raise FileNotFoundError(f"Feed path not found: {feed_path}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        temp_db = self.db_path.with_suffix(".tmp.db")

        try:
            temp_db.unlink(missing_ok=True)

            async with aiosqlite.connect(temp_db) as db:
                await db.execute("PRAGMA journal_mode=OFF")
                await db.execute("PRAGMA synchronous=OFF")

                await db.executescript(SCHEMA_SQL)
                await db.executescript(OPERATIONAL_SCHEMA_SQL)
                await db.commit()

                row_counts = await self._load_all_tables(db, feed_path)

                logger.info("Creating indexes...")
                await db.executescript(INDEX_SQL)
                await db.commit()

                await self._verify_integrity(db)

            # atomic swap
            temp_db.replace(self.db_path)

            logger.info(f"Feed ingestion complete: {self.db_path}")
            return row_counts

        except Exception:
            temp_db.unlink(missing_ok=True)
            raise

    async def _load_all_tables(self, db: aiosqlite.Connection, feed_path: Path) -> dict[str, int]:
        """Load all feed tables from directory or ZIP."""
        row_counts: dict[str, int] = {}

        if feed_path.is_file() and feed_path.suffix == ".zip":
            with zipfile.ZipFile(feed_path, "r") as zf:
                names = set(zf.namelist())
                for table_name, (csv_filename, columns) in TABLE_DEFINITIONS.items():
                    if csv_filename not in names:
                        row_counts[table_name] = self._missing_file(table_name, csv_filename)
                        continue
                    with zf.open(csv_filename) as f:
                        text_file = io.TextIOWrapper(f, encoding="utf-8-sig")
                        row_counts[table_name] = await self._load_rows(
                            db, table_name, columns, text_file, csv_filename
                        )
        else:
            for table_name, (csv_filename, columns) in TABLE_DEFINITIONS.items():
                csv_path = feed_path / csv_filename
                if not csv_path.exists():
                    row_counts[table_name] = self._missing_file(table_name, csv_filename)
                    continue
                with open(csv_path, encoding="utf-8-sig") as text_file:
                    row_counts[table_name] = await self._load_rows(
                        db, table_name, columns, text_file, csv_filename
                    )

        return row_counts

    def _missing_file(self, table_name: str, csv_filename: str) -> int:
        """Fail for required files, warn for optional ones."""
        if table_name in REQUIRED_FILES:
            raise ValueError(f"Required feed file {csv_filename} not found")
        logger.warning(f"Optional file {csv_filename} not found")
        return 0

    async def _load_rows(
        self,
        db: aiosqlite.Connection,
        table_name: str,
        columns: list[str],
        text_file: IO[str],
        filename: str,
    ) -> int:
        """Load one CSV stream into a table in chunks."""
        logger.info(f"Loading {table_name} from {filename}...")

        header_index = self._build_header_index(
            next(csv.reader([text_file.readline()]), None),
            columns,
            OPTIONAL_COLUMNS.get(table_name, set()),
            filename,
        )
        present = [col for col in columns if col in header_index]
        defaults = DEFAULT_VALUES.get(table_name, {})
        insert_columns = present + [col for col in defaults if col not in header_index]

        placeholders = ",".join(["?"] * len(insert_columns))
        insert_sql = (
            f"INSERT INTO {table_name} ({','.join(insert_columns)}) VALUES ({placeholders})"
        )

        total_rows = 0
        skipped_rows = 0
        chunk: list[tuple[Any, ...]] = []
        required = REQUIRED_COLUMNS.get(table_name, [])

        for row in csv.reader(text_file):
            if not row:
                continue
            row_dict = {
                col: row[idx] if idx < len(row) else "" for col, idx in header_index.items()
            }
            if not self._has_required_values(row_dict, required):
                skipped_rows += 1
                continue
            values = tuple(
                self._convert_value(row_dict.get(col)) or defaults.get(col)
                for col in insert_columns
            )
            chunk.append(values)

            if len(chunk) >= CHUNK_SIZE:
                await db.executemany(insert_sql, chunk)
                total_rows += len(chunk)
                chunk = []

        if chunk:
            await db.executemany(insert_sql, chunk)
            total_rows += len(chunk)

        await db.commit()
        logger.info(
            f"  Loaded {total_rows:,} rows into {table_name}"
            + (f" (skipped {skipped_rows:,} invalid)" if skipped_rows else "")
        )
        return total_rows

    def _convert_value(self, value: str | None) -> Any:
        """Convert CSV value to appropriate Python type."""
        if value is None or value.strip() == "":
            return None
        return value.strip()

    def _has_required_values(self, row: dict[str, str], required: list[str]) -> bool:
        """Return True if all required columns have non-empty values."""
        return all(row.get(col, "").strip() != "" for col in required)

    def _build_header_index(
        self,
        header: list[str] | None,
        columns: list[str],
        optional: set[str],
        filename: str,
    ) -> dict[str, int]:
        """Map known column names to their CSV positions."""
        if header is None:
            raise ValueError(f"{filename} is empty")
        expected = set(columns)
        header_index: dict[str, int] = {}
        for idx, name in enumerate(header):
            cleaned = name.strip()
            if cleaned in expected and cleaned not in header_index:
                header_index[cleaned] = idx
        missing = [col for col in columns if col not in header_index and col not in optional]
        if missing:
            raise ValueError(f"{filename} missing columns: {', '.join(missing)}")
        return header_index

    async def _verify_integrity(self, db: aiosqlite.Connection) -> None:
        """Verify database integrity after loading."""
        logger.info("Verifying database integrity...")

        for table_name in ("routes", "stops", "trips", "stop_times"):
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                if row is None or row[0] == 0:
                    raise ValueError(f"No {table_name} loaded - check feed data")

        logger.info("Database integrity verified")


async def get_table_counts(db_path: Path) -> dict[str, int]:
    """Get row counts for all feed tables in the database.

    Args:
        db_path: Path to the SQLite database.

    Returns:
        Dictionary mapping table names to row counts.
    """
    counts: dict[str, int] = {}
    async with aiosqlite.connect(db_path) as db:
        for table_name in TABLE_DEFINITIONS:
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                counts[table_name] = row[0] if row else 0
    return counts
