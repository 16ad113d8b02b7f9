import argparse
import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from busap_mcp.app import mcp
from busap_mcp.data.config import get_config

# Register tools on the shared FastMCP instance
from busap_mcp.tools import calendar_tools, simulator_tools  # noqa: F401


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@mcp.tool()
def health() -> HealthResponse:
    """Check if the Busap MCP server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from busap_mcp import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


async def run_ingest(feed_path: Path, db_path: Path) -> None:
    """Run feed ingestion."""
    from busap_mcp.data.feed_loader import FeedLoader

    loader = FeedLoader(db_path)
    row_counts = await loader.ingest(feed_path)

    print("\nIngestion complete. Row counts:")
    for table, count in row_counts.items():
        print(f"  {table}: {count:,}")


async def run_seed_calendars(db_path: Path) -> None:
    """Seed the Polish holiday and school calendars."""
    from busap_mcp.data.calendar_seed import seed_calendars

    result = await seed_calendars(db_path)

    print("\nCalendar seed complete.")
    print(f"  calendars: {result['calendars']}")
    print(f"  new entries: {result['entries_added']}")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (default: data/busap.db or BUSAP_DB_PATH env var)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="busap-mcp",
        description="Busap Transit MCP Server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest a transit feed (routes, stops, trips, stop_times, shapes) into SQLite",
    )
    ingest_parser.add_argument(
        "feed_path",
        type=Path,
        help="Path to feed directory or ZIP file",
    )
    _add_common_arguments(ingest_parser)

    # seed-calendars command
    seed_parser = subparsers.add_parser(
        "seed-calendars",
        help="Seed Polish public holiday and school break calendars",
    )
    _add_common_arguments(seed_parser)

    args = parser.parse_args()

    if args.command is None:
        # Default: run MCP server
        mcp.run()
        return

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    db_path = args.db or get_config().db_path

    if args.command == "ingest":
        asyncio.run(run_ingest(args.feed_path, db_path))
    elif args.command == "seed-calendars":
        asyncio.run(run_seed_calendars(db_path))


if __name__ == "__main__":
    main()
