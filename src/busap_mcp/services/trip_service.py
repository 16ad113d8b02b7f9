"""Trip lookup backed by the ingested feed database."""

import logging
from pathlib import Path

import aiosqlite

from busap_mcp.data.database import get_db
from busap_mcp.errors import NotFoundError
from busap_mcp.models.transit import AvailableTrip, ShapePoint, TripRoute, TripStop

logger = logging.getLogger(__name__)

# Trip statuses written by the simulator
TRIP_STATUS_SCHEDULED = "scheduled"
TRIP_STATUS_IN_PROGRESS = "in_progress"
TRIP_STATUS_COMPLETED = "completed"

SIMULATABLE_STATUSES = (TRIP_STATUS_SCHEDULED, TRIP_STATUS_IN_PROGRESS)


def parse_gtfs_time(time_str: str) -> tuple[int, int, int]:
    """Parse a GTFS time string into hours, minutes, seconds.

    GTFS times can exceed 24:00:00 for trips that extend past midnight.
    For example, "25:30:00" means 1:30 AM the next day.

    Raises:
        ValueError: If the time string is invalid.
    """
    parts = time_str.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid GTFS time format: {time_str}")

    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError as e:
        raise ValueError(f"Invalid GTFS time format: {time_str}") from e

    return hours, minutes, seconds


def gtfs_time_to_seconds(time_str: str) -> int:
    """Convert a GTFS time string to seconds since midnight (can exceed 86400)."""
    hours, minutes, seconds = parse_gtfs_time(time_str)
    return hours * 3600 + minutes * 60 + seconds


def planned_duration_seconds(departure: str | None, arrival: str | None) -> float | None:
    """Scheduled duration between two GTFS times, None if unknown or not positive."""
    if departure is None or arrival is None:
        return None
    try:
        duration = gtfs_time_to_seconds(arrival) - gtfs_time_to_seconds(departure)
    except ValueError:
        logger.warning(f"Unparseable trip times: {departure!r} -> {arrival!r}")
        return None
    return float(duration) if duration > 0 else None


def _route_name(row: aiosqlite.Row) -> str | None:
    short_name, long_name = row["route_short_name"], row["route_long_name"]
    if short_name and long_name:
        return f"{short_name} {long_name}"
    return short_name or long_name


def _departure_sort_key(row: aiosqlite.Row) -> tuple[int, int, str]:
    """Trips without a parseable departure sort last."""
    departure = row["first_departure"]
    try:
        seconds = gtfs_time_to_seconds(departure) if departure else None
    except ValueError:
        seconds = None
    if seconds is None:
        return (1, 0, row["trip_id"])
    return (0, seconds, row["trip_id"])


class SqliteTripSource:
    """Reads trips, their stops and shapes from the feed database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    async def get_trip_route(self, trip_id: str) -> TripRoute:
        """Load a trip with its ordered stops, schedule and optional shape.

        Raises:
            NotFoundError: If the trip does not exist or has no vehicle assigned.
        """
        async with get_db(self.db_path) as db:
            sql = """
                SELECT t.trip_id, t.route_id, t.trip_headsign, t.shape_id, t.vehicle_id,
                       t.status, r.route_short_name, r.route_long_name
                FROM trips t
                LEFT JOIN routes r ON t.route_id = r.route_id
                WHERE t.trip_id = ?
            """
            async with db.execute(sql, (trip_id,)) as cursor:
                trip_row = await cursor.fetchone()

            if trip_row is None:
                raise NotFoundError(f"Trip not found: {trip_id}")
            if not trip_row["vehicle_id"]:
                raise NotFoundError(f"Trip {trip_id} has no vehicle assigned - cannot simulate")

            sql = """
                SELECT st.stop_id, st.stop_sequence, st.arrival_time, st.departure_time,
                       s.stop_name, s.stop_lat, s.stop_lon
                FROM stop_times st
                JOIN stops s ON st.stop_id = s.stop_id
                WHERE st.trip_id = ?
                ORDER BY st.stop_sequence
            """
            async with db.execute(sql, (trip_id,)) as cursor:
                stop_rows = await cursor.fetchall()

            shape: list[ShapePoint] = []
            if trip_row["shape_id"]:
                sql = """
                    SELECT shape_pt_lat, shape_pt_lon, shape_pt_sequence
                    FROM shapes
                    WHERE shape_id = ?
                    ORDER BY shape_pt_sequence
                """
                async with db.execute(sql, (trip_row["shape_id"],)) as cursor:
                    shape = [
                        ShapePoint(
                            latitude=float(row["shape_pt_lat"]),
                            longitude=float(row["shape_pt_lon"]),
                            sequence=int(row["shape_pt_sequence"]),
                        )
                        async for row in cursor
                    ]

        stops = [
            TripStop(
                stop_id=row["stop_id"],
                stop_name=row["stop_name"],
                stop_sequence=int(row["stop_sequence"]),
                latitude=float(row["stop_lat"]) if row["stop_lat"] is not None else None,
                longitude=float(row["stop_lon"]) if row["stop_lon"] is not None else None,
                arrival_time=row["arrival_time"],
                departure_time=row["departure_time"],
            )
            for row in stop_rows
        ]

        departure = (stops[0].departure_time or stops[0].arrival_time) if stops else None
        arrival = (stops[-1].arrival_time or stops[-1].departure_time) if stops else None

        return TripRoute(
            trip_id=trip_row["trip_id"],
            route_id=trip_row["route_id"],
            route_name=_route_name(trip_row),
            trip_headsign=trip_row["trip_headsign"],
            vehicle_id=trip_row["vehicle_id"],
            status=trip_row["status"],
            stops=stops,
            shape=shape,
            departure_time=departure,
            arrival_time=arrival,
            planned_duration_seconds=planned_duration_seconds(departure, arrival),
        )

    async def list_available_trips(self, limit: int = 20) -> list[AvailableTrip]:
        """List scheduled or in-progress trips with a vehicle, by first departure.

        The first and last stops are chosen by stop_sequence and departures are
        compared as seconds, so single-digit hours ("9:00:00") sort correctly.
        """
        placeholders = ",".join("?" for _ in SIMULATABLE_STATUSES)
        sql = f"""
            SELECT t.trip_id, t.route_id, t.trip_headsign, t.vehicle_id, t.status,
                   r.route_short_name, r.route_long_name,
                   (SELECT COALESCE(st.departure_time, st.arrival_time)
                    FROM stop_times st WHERE st.trip_id = t.trip_id
                    ORDER BY st.stop_sequence LIMIT 1) AS first_departure,
                   (SELECT COALESCE(st.arrival_time, st.departure_time)
                    FROM stop_times st WHERE st.trip_id = t.trip_id
                    ORDER BY st.stop_sequence DESC LIMIT 1) AS last_arrival,
                   (SELECT COUNT(*) FROM stop_times st WHERE st.trip_id = t.trip_id)
                       AS stop_count
            FROM trips t
            LEFT JOIN routes r ON t.route_id = r.route_id
            WHERE t.status IN ({placeholders}) AND t.vehicle_id IS NOT NULL
        """
        async with get_db(self.db_path) as db:
            async with db.execute(sql, SIMULATABLE_STATUSES) as cursor:
                rows = await cursor.fetchall()

        rows = sorted(rows, key=_departure_sort_key)[:limit]

        return [
            AvailableTrip(
                trip_id=row["trip_id"],
                route_id=row["route_id"],
                route_name=_route_name(row),
                trip_headsign=row["trip_headsign"],
                vehicle_id=row["vehicle_id"],
                status=row["status"],
                departure_time=row["first_departure"],
                arrival_time=row["last_arrival"],
                stop_count=int(row["stop_count"]),
            )
            for row in rows
        ]

    async def set_trip_status(self, trip_id: str, status: str) -> None:
        """Update a trip's status.

        Raises:
            NotFoundError: If the trip does not exist.
        """
        async with get_db(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE trips SET status = ? WHERE trip_id = ?", (status, trip_id)
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(f"Trip not found: {trip_id}")
        logger.debug(f"Trip {trip_id} status -> {status}")
