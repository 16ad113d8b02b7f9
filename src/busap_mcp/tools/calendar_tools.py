"""MCP tools for holiday and school calendars."""

from mcp.server.fastmcp import Context

from busap_mcp.app import get_app_context, mcp
from busap_mcp.models.calendars import (
    Calendar,
    CalendarDatesResponse,
    CalendarDetail,
    CalendarEntry,
    CalendarEntryInput,
    CalendarInput,
    CalendarType,
    DateInCalendarResponse,
    ListCalendarsResponse,
    NthWeekday,
)
from busap_mcp.services.calendar_rules import parse_full_date


@mcp.tool()
async def list_calendars(
    ctx: Context,
    country: str | None = None,
    calendar_type: CalendarType | None = None,
    is_active: bool | None = None,
    company_id: str | None = None,
) -> ListCalendarsResponse:
    """List holiday, school and custom calendars.

    Args:
        country: ISO country code filter (e.g., "PL").
        calendar_type: holidays, school_days or custom.
        is_active: Only active (True) or inactive (False) calendars.
        company_id: When set, returns the active system-wide calendars plus
                    this company's own calendars; other filters still apply.

    Returns:
        ListCalendarsResponse with calendars and their entry counts.
    """
    calendars = get_app_context(ctx).calendars
    if company_id is not None:
        result = await calendars.list_calendars_for_company(company_id)
        result = [
            c
            for c in result
            if (country is None or c.country == country)
            and (calendar_type is None or c.type == calendar_type)
            and (is_active is None or c.is_active == is_active)
        ]
    else:
        result = await calendars.list_calendars(country, calendar_type, is_active)
    return ListCalendarsResponse(calendars=result, count=len(result))


@mcp.tool()
async def get_calendar(
    ctx: Context,
    calendar_id: str | None = None,
    code: str | None = None,
) -> CalendarDetail:
    """Get a calendar with all of its entries, by ID or by code.

    Args:
        calendar_id: Calendar ID.
        code: Calendar code (e.g., "pl-holidays", "school-mazowieckie-2026").
    """
    calendars = get_app_context(ctx).calendars
    if calendar_id is not None:
        return await calendars.get_calendar(calendar_id)
    if code is not None:
        return await calendars.get_calendar_by_code(code)
    raise ValueError("Either calendar_id or code is required")


@mcp.tool()
async def create_calendar(
    code: str,
    name: str,
    country: str,
    calendar_type: CalendarType,
    ctx: Context,
    description: str | None = None,
    region: str | None = None,
    year: int | None = None,
    company_id: str | None = None,
) -> Calendar:
    """Create an empty calendar. Add dates with add_calendar_entry.

    Args:
        code: Unique code (e.g., "pl-holidays").
        name: Display name.
        country: ISO country code (e.g., "PL").
        calendar_type: holidays, school_days or custom.
        description: Optional description.
        region: Optional region code (e.g., a voivodeship).
        year: Year the calendar applies to, omit for every year.
        company_id: Owning company, omit for a system-wide calendar.
    """
    data = CalendarInput(
        code=code,
        name=name,
        description=description,
        country=country,
        region=region,
        type=calendar_type,
        year=year,
        company_id=company_id,
    )
    return await get_app_context(ctx).calendars.create_calendar(data)


@mcp.tool()
async def update_calendar(
    calendar_id: str,
    ctx: Context,
    name: str | None = None,
    description: str | None = None,
    region: str | None = None,
    year: int | None = None,
    is_active: bool | None = None,
) -> CalendarDetail:
    """Update a calendar's details. Omitted fields are left unchanged.

    Args:
        calendar_id: Calendar ID.
        name: New display name.
        description: New description.
        region: New region code.
        year: New year.
        is_active: Activate or deactivate the calendar.
    """
    return await get_app_context(ctx).calendars.update_calendar(
        calendar_id,
        name=name,
        description=description,
        region=region,
        year=year,
        is_active=is_active,
    )


@mcp.tool()
async def delete_calendar(calendar_id: str, ctx: Context) -> dict[str, str]:
    """Delete a calendar and all of its entries.

    Args:
        calendar_id: Calendar ID.
    """
    await get_app_context(ctx).calendars.delete_calendar(calendar_id)
    return {"deleted": calendar_id}


def _entry_input(
    name: str,
    date_type: str,
    fixed_date: str | None,
    easter_offset: int | None,
    nth_weekday: NthWeekday | None,
    start_date: str | None,
    end_date: str | None,
    is_recurring: bool,
) -> CalendarEntryInput:
    return CalendarEntryInput(
        name=name,
        date_type=date_type,
        fixed_date=fixed_date,
        easter_offset=easter_offset,
        nth_weekday=nth_weekday,
        start_date=start_date,
        end_date=end_date,
        is_recurring=is_recurring,
    )


@mcp.tool()
async def add_calendar_entry(
    calendar_id: str,
    name: str,
    date_type: str,
    ctx: Context,
    fixed_date: str | None = None,
    easter_offset: int | None = None,
    nth_weekday: NthWeekday | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    is_recurring: bool = True,
) -> CalendarEntry:
    """Add a dated entry to a calendar.

    Set exactly the fields for the chosen date_type:
    - fixed: fixed_date as MM-DD (every year) or YYYY-MM-DD (one year)
    - easter_relative: easter_offset in days (e.g., 1 = Easter Monday, 60 = Corpus Christi)
    - nth_weekday: nth_weekday {month, weekday (0=Sunday), nth (1-5, -1 = last)}
    - date_range: start_date and end_date as YYYY-MM-DD, inclusive

    Args:
        calendar_id: Calendar ID.
        name: Entry name, unique within the calendar.
        date_type: fixed, easter_relative, nth_weekday or date_range.
        is_recurring: For MM-DD fixed dates, False means the entry produces no dates.
    """
    data = _entry_input(
        name, date_type, fixed_date, easter_offset, nth_weekday, start_date, end_date, is_recurring
    )
    return await get_app_context(ctx).calendars.create_entry(calendar_id, data)


@mcp.tool()
async def update_calendar_entry(
    calendar_id: str,
    entry_id: str,
    name: str,
    date_type: str,
    ctx: Context,
    fixed_date: str | None = None,
    easter_offset: int | None = None,
    nth_weekday: NthWeekday | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    is_recurring: bool = True,
) -> CalendarEntry:
    """Replace a calendar entry's name and date rule.

    Takes the same fields as add_calendar_entry.
    """
    data = _entry_input(
        name, date_type, fixed_date, easter_offset, nth_weekday, start_date, end_date, is_recurring
    )
    return await get_app_context(ctx).calendars.update_entry(calendar_id, entry_id, data)


@mcp.tool()
async def delete_calendar_entry(calendar_id: str, entry_id: str, ctx: Context) -> dict[str, str]:
    """Remove an entry from a calendar."""
    await get_app_context(ctx).calendars.delete_entry(calendar_id, entry_id)
    return {"deleted": entry_id}


@mcp.tool()
async def get_calendar_dates(
    year: int,
    ctx: Context,
    calendar_id: str | None = None,
    code: str | None = None,
) -> CalendarDatesResponse:
    """Get the concrete dates a calendar covers in a year.

    Easter-relative holidays, nth-weekday rules and date ranges are resolved
    for the requested year. Date ranges yield one date per day.

    Args:
        year: Year to materialize (e.g., 2026).
        calendar_id: Calendar ID.
        code: Calendar code, used when calendar_id is omitted.

    Returns:
        CalendarDatesResponse with dates sorted chronologically.
    """
    calendars = get_app_context(ctx).calendars
    if calendar_id is not None:
        return await calendars.get_calendar_dates(calendar_id, year)
    if code is not None:
        return await calendars.get_calendar_dates_by_code(code, year)
    raise ValueError("Either calendar_id or code is required")


@mcp.tool()
async def get_calendars_dates(
    calendar_ids: list[str], year: int, ctx: Context
) -> list[CalendarDatesResponse]:
    """Get the dates of several calendars in a year, e.g. holidays plus a school calendar.

    Args:
        calendar_ids: Calendar IDs, returned in the same order.
        year: Year to materialize.
    """
    results = await get_app_context(ctx).calendars.get_calendars_dates(calendar_ids, year)
    return [results[cid] for cid in calendar_ids]


@mcp.tool()
async def is_date_in_calendar(calendar_id: str, day: str, ctx: Context) -> DateInCalendarResponse:
    """Check whether a date is covered by a calendar.

    Args:
        calendar_id: Calendar ID.
        day: Date as YYYY-MM-DD.

    Returns:
        DateInCalendarResponse with the names of the entries falling on the date.
    """
    parsed = parse_full_date(day)
    matches = await get_app_context(ctx).calendars.dates_on(calendar_id, parsed)
    return DateInCalendarResponse(
        calendar_id=calendar_id,
        date=parsed.isoformat(),
        in_calendar=bool(matches),
        names=[m.name for m in matches],
    )
