"""Seed data for Polish public holiday and school calendars."""

import logging
from pathlib import Path

from busap_mcp.errors import NotFoundError
from busap_mcp.models.calendars import (
    CalendarDetail,
    CalendarEntryInput,
    CalendarInput,
    CalendarType,
)
from busap_mcp.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)

POLISH_HOLIDAYS = [
    CalendarEntryInput(name="Nowy Rok", date_type="fixed", fixed_date="01-01"),
    CalendarEntryInput(name="Trzech Króli", date_type="fixed", fixed_date="01-06"),
    CalendarEntryInput(name="Wielkanoc", date_type="easter_relative", easter_offset=0),
    CalendarEntryInput(
        name="Poniedziałek Wielkanocny", date_type="easter_relative", easter_offset=1
    ),
    CalendarEntryInput(name="Święto Pracy", date_type="fixed", fixed_date="05-01"),
    CalendarEntryInput(name="Święto Konstytucji 3 Maja", date_type="fixed", fixed_date="05-03"),
    CalendarEntryInput(name="Zielone Świątki", date_type="easter_relative", easter_offset=49),
    CalendarEntryInput(name="Boże Ciało", date_type="easter_relative", easter_offset=60),
    CalendarEntryInput(name="Wniebowzięcie NMP", date_type="fixed", fixed_date="08-15"),
    CalendarEntryInput(name="Wszystkich Świętych", date_type="fixed", fixed_date="11-01"),
    CalendarEntryInput(
        name="Narodowe Święto Niepodległości", date_type="fixed", fixed_date="11-11"
    ),
    CalendarEntryInput(
        name="Boże Narodzenie (pierwszy dzień)", date_type="fixed", fixed_date="12-25"
    ),
    CalendarEntryInput(
        name="Boże Narodzenie (drugi dzień)", date_type="fixed", fixed_date="12-26"
    ),
]

# (region code, display name, winter break start, winter break end) for 2025/2026
WINTER_BREAKS_2026 = [
    ("dolnoslaskie", "Dolnośląskie", "2026-01-12", "2026-01-25"),
    ("kujawsko-pomorskie", "Kujawsko-Pomorskie", "2026-02-16", "2026-03-01"),
    ("lubelskie", "Lubelskie", "2026-01-26", "2026-02-08"),
    ("lubuskie", "Lubuskie", "2026-01-12", "2026-01-25"),
    ("lodzkie", "Łódzkie", "2026-02-02", "2026-02-15"),
    ("malopolskie", "Małopolskie", "2026-02-02", "2026-02-15"),
    ("mazowieckie", "Mazowieckie", "2026-01-26", "2026-02-08"),
    ("opolskie", "Opolskie", "2026-02-16", "2026-03-01"),
    ("podkarpackie", "Podkarpackie", "2026-01-12", "2026-01-25"),
    ("podlaskie", "Podlaskie", "2026-01-26", "2026-02-08"),
    ("pomorskie", "Pomorskie", "2026-01-12", "2026-01-25"),
    ("slaskie", "Śląskie", "2026-02-02", "2026-02-15"),
    ("swietokrzyskie", "Świętokrzyskie", "2026-02-02", "2026-02-15"),
    ("warminsko-mazurskie", "Warmińsko-Mazurskie", "2026-01-26", "2026-02-08"),
    ("wielkopolskie", "Wielkopolskie", "2026-01-12", "2026-01-25"),
    ("zachodniopomorskie", "Zachodniopomorskie", "2026-02-16", "2026-03-01"),
]

# Starts on the last Saturday of June
SUMMER_BREAK_2026 = ("2026-06-27", "2026-08-31")

HOLIDAYS_CALENDAR = CalendarInput(
    code="pl-holidays",
    name="Polskie święta państwowe",
    description="Dni ustawowo wolne od pracy w Polsce",
    country="PL",
    type=CalendarType.HOLIDAYS,
)

WORKDAYS_CALENDAR = CalendarInput(
    code="pl-workdays",
    name="Polskie dni robocze",
    description="Dodatkowe dni robocze i wyjątki",
    country="PL",
    type=CalendarType.CUSTOM,
)


def school_calendar(code: str, name: str) -> CalendarInput:
    return CalendarInput(
        code=f"school-{code}-2026",
        name=f"Kalendarz szkolny - {name} 2025/2026",
        description=f"Dni wolne od nauki w województwie {name.lower()} (rok szkolny 2025/2026)",
        country="PL",
        region=code,
        type=CalendarType.SCHOOL_DAYS,
        year=2026,
    )


def school_breaks(winter_start: str, winter_end: str) -> list[CalendarEntryInput]:
    summer_start, summer_end = SUMMER_BREAK_2026
    return [
        CalendarEntryInput(
            name="Ferie zimowe",
            date_type="date_range",
            start_date=winter_start,
            end_date=winter_end,
            is_recurring=False,
        ),
        CalendarEntryInput(
            name="Wakacje letnie",
            date_type="date_range",
            start_date=summer_start,
            end_date=summer_end,
            is_recurring=False,
        ),
    ]


async def _ensure_calendar(
    service: CalendarService, data: CalendarInput, entries: list[CalendarEntryInput]
) -> tuple[CalendarDetail, int]:
    """Create the calendar if missing and add entries it lacks.

    Returns:
        The calendar and the number of entries added.
    """
    try:
        calendar = await service.get_calendar_by_code(data.code)
    except NotFoundError:
        await service.create_calendar(data)
        calendar = await service.get_calendar_by_code(data.code)
        logger.info(f"Created calendar: {data.name}")

    existing = {entry.name for entry in calendar.entries}
    added = 0
    for entry in entries:
        if entry.name in existing:
            continue
        await service.create_entry(calendar.calendar_id, entry)
        added += 1
        logger.debug(f"  Added: {entry.name}")

    return calendar, added


async def seed_calendars(db_path: Path | None = None) -> dict[str, int]:
    """Seed the Polish calendars. Safe to run repeatedly.

    Args:
        db_path: Database path. Uses config default if not provided.

    Returns:
        Dict with the number of calendars seeded and entries added.
    """
    service = CalendarService(db_path)
    entries_added = 0

    _, added = await _ensure_calendar(service, HOLIDAYS_CALENDAR, POLISH_HOLIDAYS)
    entries_added += added

    for code, name, winter_start, winter_end in WINTER_BREAKS_2026:
        _, added = await _ensure_calendar(
            service, school_calendar(code, name), school_breaks(winter_start, winter_end)
        )
        entries_added += added

    await _ensure_calendar(service, WORKDAYS_CALENDAR, [])

    calendars = 2 + len(WINTER_BREAKS_2026)
    logger.info(f"Seeded {calendars} calendars, {entries_added} new entries")
    return {"calendars": calendars, "entries_added": entries_added}
