"""Database connection helper for the Busap SQLite database."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from busap_mcp.data.config import get_config

# Tables written at runtime. Created on demand so they exist even before
# (or without) a feed ingest.
OPERATIONAL_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS vehicle_positions (
    position_id INTEGER PRIMARY KEY AUTOINCREMENT,
    vehicle_id TEXT NOT NULL,
    trip_id TEXT,
    session_id TEXT,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    speed REAL,
    heading REAL,
    accuracy REAL,
    recorded_at TEXT NOT NULL,
    simulated INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_vehicle_positions_vehicle
    ON vehicle_positions(vehicle_id, recorded_at);

CREATE TABLE IF NOT EXISTS calendars (
    calendar_id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    description TEXT,
    country TEXT NOT NULL,
    region TEXT,
    type TEXT NOT NULL,
    year INTEGER,
    company_id TEXT,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS calendar_entries (
    entry_id TEXT PRIMARY KEY,
    calendar_id TEXT NOT NULL REFERENCES calendars(calendar_id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    date_type TEXT NOT NULL,
    fixed_date TEXT,
    easter_offset INTEGER,
    nth_month INTEGER,
    nth_weekday INTEGER,
    nth_occurrence INTEGER,
    start_date TEXT,
    end_date TEXT,
    is_recurring INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_calendar_entries_calendar ON calendar_entries(calendar_id);
"""


def get_db_path() -> Path:
    """Get the database path from configuration (BUSAP_DB_PATH)."""
    return get_config().db_path


async def ensure_operational_schema(db: aiosqlite.Connection) -> None:
    """Create runtime tables if they are missing."""
    await db.executescript(OPERATIONAL_SCHEMA_SQL)
    await db.commit()


@asynccontextmanager
async def get_db(
    db_path: Path | None = None,
    create: bool = False,
) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    Args:
        db_path: Optional path to the database. If not provided, uses BUSAP_DB_PATH
                 or defaults to 'data/busap.db'.
        create: If True, create the database file and the operational tables
                when missing. Feed lookups leave this False.

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.

    Raises:
        FileNotFoundError: If the database file doesn't exist and create is False.
    """
    if db_path is None:
        db_path = get_db_path()

    if create:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    elif not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. Run 'busap-mcp ingest <feed_path>' to create it."
        )

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        if create:
            await ensure_operational_schema(db)
        yield db
