"""Calendar store: calendars, their entries, and materialized dates."""

import logging
import uuid
from datetime import date
from pathlib import Path

import aiosqlite

from busap_mcp.data.database import get_db
from busap_mcp.errors import ConflictError, NotFoundError
from busap_mcp.models.calendars import (
    Calendar,
    CalendarDate,
    CalendarDatesResponse,
    CalendarDetail,
    CalendarEntry,
    CalendarEntryInput,
    CalendarInput,
    CalendarType,
    NthWeekday,
)
from busap_mcp.services.calendar_rules import materialize, validate_entry

logger = logging.getLogger(__name__)

# Columns that update_calendar accepts
UPDATABLE_CALENDAR_FIELDS = ("name", "description", "region", "year", "is_active")

CALENDAR_SELECT = """
    SELECT c.calendar_id, c.code, c.name, c.description, c.country, c.region, c.type,
           c.year, c.company_id, c.is_active,
           (SELECT COUNT(*) FROM calendar_entries e WHERE e.calendar_id = c.calendar_id)
               AS entry_count
    FROM calendars c
"""

ENTRY_SELECT = """
    SELECT entry_id, calendar_id, name, date_type, fixed_date, easter_offset,
           nth_month, nth_weekday, nth_occurrence, start_date, end_date, is_recurring
    FROM calendar_entries
"""


def _new_id() -> str:
    return uuid.uuid4().hex


def _row_to_calendar(row: aiosqlite.Row) -> Calendar:
    return Calendar(
        calendar_id=row["calendar_id"],
        code=row["code"],
        name=row["name"],
        description=row["description"],
        country=row["country"],
        region=row["region"],
        type=CalendarType(row["type"]),
        year=row["year"],
        company_id=row["company_id"],
        is_active=bool(row["is_active"]),
        entry_count=int(row["entry_count"]),
    )


def _row_to_entry(row: aiosqlite.Row) -> CalendarEntry:
    nth_weekday = None
    if row["nth_month"] is not None:
        nth_weekday = NthWeekday(
            month=int(row["nth_month"]),
            weekday=int(row["nth_weekday"]),
            nth=int(row["nth_occurrence"]),
        )
    return CalendarEntry(
        entry_id=row["entry_id"],
        calendar_id=row["calendar_id"],
        name=row["name"],
        date_type=row["date_type"],
        fixed_date=row["fixed_date"],
        easter_offset=int(row["easter_offset"]) if row["easter_offset"] is not None else None,
        nth_weekday=nth_weekday,
        start_date=row["start_date"],
        end_date=row["end_date"],
        is_recurring=bool(row["is_recurring"]),
    )


def _entry_params(entry: CalendarEntryInput) -> tuple:
    nth = entry.nth_weekday
    return (
        entry.name,
        entry.date_type,
        entry.fixed_date,
        entry.easter_offset,
        nth.month if nth else None,
        nth.weekday if nth else None,
        nth.nth if nth else None,
        entry.start_date,
        entry.end_date,
        int(entry.is_recurring),
    )


def _dates_response(calendar: CalendarDetail, year: int) -> CalendarDatesResponse:
    dates = materialize(calendar.entries, year)
    return CalendarDatesResponse(
        calendar_id=calendar.calendar_id,
        code=calendar.code,
        year=year,
        dates=dates,
        count=len(dates),
    )


class CalendarService:
    """SQLite-backed calendar store."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path

    # Calendars

    async def list_calendars(
        self,
        country: str | None = None,
        calendar_type: CalendarType | None = None,
        is_active: bool | None = None,
        company_id: str | None = None,
    ) -> list[Calendar]:
        """List calendars, optionally filtered."""
        conditions: list[str] = []
        params: list[str | int] = []
        if country is not None:
            conditions.append("c.country = ?")
            params.append(country)
        if calendar_type is not None:
            conditions.append("c.type = ?")
            params.append(CalendarType(calendar_type).value)
        if is_active is not None:
            conditions.append("c.is_active = ?")
            params.append(int(is_active))
        if company_id is not None:
            conditions.append("c.company_id = ?")
            params.append(company_id)

        sql = CALENDAR_SELECT
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY c.country, c.type, c.name"

        async with get_db(self.db_path, create=True) as db:
            async with db.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_calendar(row) for row in rows]

    async def list_calendars_for_company(self, company_id: str) -> list[Calendar]:
        """Active system-wide calendars plus the company's own."""
        sql = (
            CALENDAR_SELECT
            + """
            WHERE (c.company_id IS NULL OR c.company_id = ?) AND c.is_active = 1
            ORDER BY c.company_id IS NOT NULL, c.country, c.type, c.name
            """
        )
        async with get_db(self.db_path, create=True) as db:
            async with db.execute(sql, (company_id,)) as cursor:
                rows = await cursor.fetchall()
        return [_row_to_calendar(row) for row in rows]

    async def _fetch_calendar(
        self, db: aiosqlite.Connection, column: str, value: str
    ) -> CalendarDetail:
        async with db.execute(CALENDAR_SELECT + f" WHERE c.{column} = ?", (value,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            label = "ID" if column == "calendar_id" else column
            raise NotFoundError(f"Calendar with {label} {value} not found")

        async with db.execute(
            ENTRY_SELECT + " WHERE calendar_id = ? ORDER BY name", (row["calendar_id"],)
        ) as cursor:
            entries = [_row_to_entry(entry_row) async for entry_row in cursor]

        return CalendarDetail(**_row_to_calendar(row).model_dump(), entries=entries)

    async def get_calendar(self, calendar_id: str) -> CalendarDetail:
        """Raises NotFoundError if the calendar does not exist."""
        async with get_db(self.db_path, create=True) as db:
            return await self._fetch_calendar(db, "calendar_id", calendar_id)

    async def get_calendar_by_code(self, code: str) -> CalendarDetail:
        """Raises NotFoundError if no calendar has the code."""
        async with get_db(self.db_path, create=True) as db:
            return await self._fetch_calendar(db, "code", code)

    async def create_calendar(self, data: CalendarInput) -> Calendar:
        """Create a calendar.

        Raises:
            ConflictError: If the code is already taken.
        """
        calendar_id = _new_id()
        async with get_db(self.db_path, create=True) as db:
            async with db.execute(
                "SELECT 1 FROM calendars WHERE code = ?", (data.code,)
            ) as cursor:
                if await cursor.fetchone() is not None:
                    raise ConflictError(f"Calendar with code {data.code} already exists")

            await db.execute(
                """
                INSERT INTO calendars (
                    calendar_id, code, name, description, country, region, type,
                    year, company_id, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    calendar_id,
                    data.code,
                    data.name,
                    data.description,
                    data.country,
                    data.region,
                    CalendarType(data.type).value,
                    data.year,
                    data.company_id,
                    int(data.is_active),
                ),
            )
            await db.commit()

        logger.info(f"Created calendar {data.code} ({calendar_id})")
        return Calendar(calendar_id=calendar_id, **data.model_dump())

    async def update_calendar(self, calendar_id: str, **changes: object) -> CalendarDetail:
        """Update name, description, region, year or is_active.

        Raises:
            NotFoundError: If the calendar does not exist.
            ValueError: If a field that cannot be updated is passed.
        """
        unknown = set(changes) - set(UPDATABLE_CALENDAR_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update calendar fields: {', '.join(sorted(unknown))}")

        async with get_db(self.db_path, create=True) as db:
            await self._fetch_calendar(db, "calendar_id", calendar_id)
            updates = {k: v for k, v in changes.items() if v is not None}
            if updates:
                if "is_active" in updates:
                    updates["is_active"] = int(bool(updates["is_active"]))
                assignments = ", ".join(f"{column} = ?" for column in updates)
                await db.execute(
                    f"UPDATE calendars SET {assignments} WHERE calendar_id = ?",
                    (*updates.values(), calendar_id),
                )
                await db.commit()
            return await self._fetch_calendar(db, "calendar_id", calendar_id)

    async def delete_calendar(self, calendar_id: str) -> None:
        """Delete a calendar and its entries.

        Raises:
            NotFoundError: If the calendar does not exist.
        """
        async with get_db(self.db_path, create=True) as db:
            await self._fetch_calendar(db, "calendar_id", calendar_id)
            await db.execute("DELETE FROM calendar_entries WHERE calendar_id = ?", (calendar_id,))
            await db.execute("DELETE FROM calendars WHERE calendar_id = ?", (calendar_id,))
            await db.commit()
        logger.info(f"Deleted calendar {calendar_id}")

    # Entries

    async def _ensure_unique_entry_name(
        self,
        db: aiosqlite.Connection,
        calendar_id: str,
        name: str,
        exclude_entry_id: str | None = None,
    ) -> None:
        async with db.execute(
            "SELECT entry_id FROM calendar_entries WHERE calendar_id = ? AND name = ?",
            (calendar_id, name),
        ) as cursor:
            row = await cursor.fetchone()
        if row is not None and row["entry_id"] != exclude_entry_id:
            raise ConflictError(f"Calendar {calendar_id} already has an entry named '{name}'")

    async def create_entry(self, calendar_id: str, data: CalendarEntryInput) -> CalendarEntry:
        """Validate and add an entry to a calendar.

        Raises:
            NotFoundError: If the calendar does not exist.
            ConflictError: If the calendar already has an entry with this name.
            UnsupportedRuleError: Unknown date type.
            InvalidDateRuleError: Malformed or inconsistent rule.
        """
        validate_entry(data)
        entry_id = _new_id()

        async with get_db(self.db_path, create=True) as db:
            await self._fetch_calendar(db, "calendar_id", calendar_id)
            await self._ensure_unique_entry_name(db, calendar_id, data.name)
            await db.execute(
                """
                INSERT INTO calendar_entries (
                    entry_id, calendar_id, name, date_type, fixed_date, easter_offset,
                    nth_month, nth_weekday, nth_occurrence, start_date, end_date, is_recurring
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (entry_id, calendar_id, *_entry_params(data)),
            )
            await db.commit()

        return CalendarEntry(entry_id=entry_id, calendar_id=calendar_id, **data.model_dump())

    async def _fetch_entry(
        self, db: aiosqlite.Connection, calendar_id: str, entry_id: str
    ) -> CalendarEntry:
        async with db.execute(
            ENTRY_SELECT + " WHERE entry_id = ? AND calendar_id = ?", (entry_id, calendar_id)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Entry with ID {entry_id} not found in calendar {calendar_id}")
        return _row_to_entry(row)

    async def update_entry(
        self, calendar_id: str, entry_id: str, data: CalendarEntryInput
    ) -> CalendarEntry:
        """Replace an entry's name and rule.

        Raises:
            NotFoundError: If the calendar or entry does not exist.
            ConflictError: If another entry in the calendar has the new name.
            UnsupportedRuleError / InvalidDateRuleError: Invalid rule.
        """
        validate_entry(data)

        async with get_db(self.db_path, create=True) as db:
            await self._fetch_calendar(db, "calendar_id", calendar_id)
            await self._fetch_entry(db, calendar_id, entry_id)
            await self._ensure_unique_entry_name(db, calendar_id, data.name, entry_id)
            await db.execute(
                """
                UPDATE calendar_entries
                SET name = ?, date_type = ?, fixed_date = ?, easter_offset = ?,
                    nth_month = ?, nth_weekday = ?, nth_occurrence = ?,
                    start_date = ?, end_date = ?, is_recurring = ?
                WHERE entry_id = ?
                """,
                (*_entry_params(data), entry_id),
            )
            await db.commit()
            return await self._fetch_entry(db, calendar_id, entry_id)

    async def delete_entry(self, calendar_id: str, entry_id: str) -> None:
        """Raises NotFoundError if the calendar or entry does not exist."""
        async with get_db(self.db_path, create=True) as db:
            await self._fetch_calendar(db, "calendar_id", calendar_id)
            await self._fetch_entry(db, calendar_id, entry_id)
            await db.execute("DELETE FROM calendar_entries WHERE entry_id = ?", (entry_id,))
            await db.commit()

    # Dates

    async def get_calendar_dates(self, calendar_id: str, year: int) -> CalendarDatesResponse:
        """Materialize every entry of a calendar for a year, sorted by date."""
        return _dates_response(await self.get_calendar(calendar_id), year)

    async def get_calendar_dates_by_code(self, code: str, year: int) -> CalendarDatesResponse:
        return _dates_response(await self.get_calendar_by_code(code), year)

    async def get_calendars_dates(
        self, calendar_ids: list[str], year: int
    ) -> dict[str, CalendarDatesResponse]:
        """Materialized dates for several calendars, keyed by calendar id."""
        return {cid: await self.get_calendar_dates(cid, year) for cid in calendar_ids}

    async def dates_on(self, calendar_id: str, day: date) -> list[CalendarDate]:
        """Occurrences of a calendar falling on one day."""
        response = await self.get_calendar_dates(calendar_id, day.year)
        return [d for d in response.dates if d.date == day.isoformat()]

    async def is_date_in_calendar(self, calendar_id: str, day: date) -> bool:
        return bool(await self.dates_on(calendar_id, day))
