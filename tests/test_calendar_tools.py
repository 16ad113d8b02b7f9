"""Tests for the calendar MCP tools."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from busap_mcp.data.calendar_seed import seed_calendars
from busap_mcp.errors import InvalidDateRuleError, NotFoundError, UnsupportedRuleError
from busap_mcp.models.calendars import CalendarType, NthWeekday
from busap_mcp.services.calendar_service import CalendarService
from busap_mcp.tools.calendar_tools import (
    add_calendar_entry,
    create_calendar,
    delete_calendar,
    delete_calendar_entry,
    get_calendar,
    get_calendar_dates,
    get_calendars_dates,
    is_date_in_calendar,
    list_calendars,
    update_calendar,
    update_calendar_entry,
)
from conftest import make_ctx


@pytest.fixture
async def ctx(tmp_path: Path):
    db_path = tmp_path / "calendars.db"
    await seed_calendars(db_path)
    return make_ctx(SimpleNamespace(calendars=CalendarService(db_path)))


async def test_pl_holidays_dates_2026(ctx) -> None:
    response = await get_calendar_dates(2026, ctx, code="pl-holidays")
    pairs = [(d.date, d.name) for d in response.dates]

    assert response.code == "pl-holidays"
    assert response.count == 13
    assert ("2026-01-01", "Nowy Rok") in pairs
    assert ("2026-04-05", "Wielkanoc") in pairs
    assert ("2026-06-04", "Boże Ciało") in pairs
    assert pairs == sorted(pairs)


async def test_dates_by_id_match_by_code(ctx) -> None:
    calendar = await get_calendar(ctx, code="pl-holidays")

    by_id = await get_calendar_dates(2025, ctx, calendar_id=calendar.calendar_id)
    by_code = await get_calendar_dates(2025, ctx, code="pl-holidays")

    assert by_id == by_code


async def test_calendar_reference_required(ctx) -> None:
    with pytest.raises(ValueError):
        await get_calendar(ctx)
    with pytest.raises(ValueError):
        await get_calendar_dates(2026, ctx)


async def test_dates_tool_uses_calendar_store() -> None:
    calendars = AsyncMock()
    ctx = make_ctx(SimpleNamespace(calendars=calendars))

    await get_calendar_dates(2026, ctx, calendar_id="cal-1")
    await get_calendar_dates(2026, ctx, code="pl-holidays")

    calendars.get_calendar_dates.assert_awaited_once_with("cal-1", 2026)
    calendars.get_calendar_dates_by_code.assert_awaited_once_with("pl-holidays", 2026)


async def test_dates_for_several_calendars(ctx) -> None:
    holidays = await get_calendar(ctx, code="pl-holidays")
    school = await get_calendar(ctx, code="school-mazowieckie-2026")

    responses = await get_calendars_dates([school.calendar_id, holidays.calendar_id], 2026, ctx)

    assert [r.code for r in responses] == ["school-mazowieckie-2026", "pl-holidays"]
    assert responses[1].count == 13
    assert "2026-07-15" in {d.date for d in responses[0].dates}

    with pytest.raises(NotFoundError):
        await get_calendars_dates(["missing"], 2026, ctx)


async def test_list_calendars(ctx) -> None:
    everything = await list_calendars(ctx, country="PL")
    school = await list_calendars(ctx, calendar_type=CalendarType.SCHOOL_DAYS)

    assert everything.count == 18
    assert school.count == 16


async def test_list_calendars_for_company(ctx) -> None:
    await create_calendar(
        "acme-depot", "Zajezdnia", "PL", CalendarType.CUSTOM, ctx, company_id="acme"
    )
    await create_calendar(
        "rival-depot", "Inna", "PL", CalendarType.CUSTOM, ctx, company_id="rival"
    )

    custom = await list_calendars(ctx, calendar_type=CalendarType.CUSTOM, company_id="acme")

    assert [c.code for c in custom.calendars] == ["pl-workdays", "acme-depot"]


async def test_is_date_in_calendar(ctx) -> None:
    calendar = await get_calendar(ctx, code="school-mazowieckie-2026")

    inside = await is_date_in_calendar(calendar.calendar_id, "2026-02-03", ctx)
    outside = await is_date_in_calendar(calendar.calendar_id, "2026-03-03", ctx)

    assert inside.in_calendar
    assert inside.names == ["Ferie zimowe"]
    assert not outside.in_calendar
    assert outside.names == []


async def test_is_date_in_calendar_bad_date(ctx) -> None:
    calendar = await get_calendar(ctx, code="pl-holidays")

    with pytest.raises(InvalidDateRuleError):
        await is_date_in_calendar(calendar.calendar_id, "03/03/2026", ctx)


async def test_calendar_crud(ctx) -> None:
    created = await create_calendar(
        "depot-closures", "Zamknięcia zajezdni", "PL", CalendarType.CUSTOM, ctx, year=2026
    )
    assert created.entry_count == 0

    updated = await update_calendar(created.calendar_id, ctx, name="Przestoje")
    assert updated.name == "Przestoje"
    assert updated.year == 2026

    result = await delete_calendar(created.calendar_id, ctx)
    assert result == {"deleted": created.calendar_id}
    with pytest.raises(NotFoundError):
        await get_calendar(ctx, calendar_id=created.calendar_id)


async def test_entry_crud(ctx) -> None:
    calendar = await create_calendar("us-holidays", "US", "US", CalendarType.HOLIDAYS, ctx)

    thanksgiving = await add_calendar_entry(
        calendar.calendar_id,
        "Thanksgiving",
        "nth_weekday",
        ctx,
        nth_weekday=NthWeekday(month=11, weekday=4, nth=4),
    )
    dates = await get_calendar_dates(2026, ctx, calendar_id=calendar.calendar_id)
    assert [d.date for d in dates.dates] == ["2026-11-26"]

    await update_calendar_entry(
        calendar.calendar_id,
        thanksgiving.entry_id,
        "Memorial Day",
        "nth_weekday",
        ctx,
        nth_weekday=NthWeekday(month=5, weekday=1, nth=-1),
    )
    dates = await get_calendar_dates(2026, ctx, calendar_id=calendar.calendar_id)
    assert [(d.date, d.name) for d in dates.dates] == [("2026-05-25", "Memorial Day")]

    await delete_calendar_entry(calendar.calendar_id, thanksgiving.entry_id, ctx)
    assert (await get_calendar_dates(2026, ctx, calendar_id=calendar.calendar_id)).count == 0


async def test_add_entry_rejects_bad_rules(ctx) -> None:
    calendar = await get_calendar(ctx, code="pl-workdays")

    with pytest.raises(UnsupportedRuleError):
        await add_calendar_entry(calendar.calendar_id, "X", "weekly", ctx)
    with pytest.raises(InvalidDateRuleError):
        await add_calendar_entry(calendar.calendar_id, "X", "fixed", ctx)
