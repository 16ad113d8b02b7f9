"""Date rules for calendar entries.

Turns an entry's rule (fixed date, Easter offset, nth weekday of a month or
an explicit range) into the concrete dates it covers in a given year.
Date ranges are enumerated day by day, so each day is its own occurrence.
"""

import calendar
import re
from collections.abc import Iterable
from datetime import date, timedelta

from busap_mcp.errors import InvalidDateRuleError, UnsupportedRuleError
from busap_mcp.models.calendars import (
    CalendarDate,
    CalendarEntry,
    CalendarEntryInput,
    DateType,
    NthWeekday,
)

MONTH_DAY_PATTERN = re.compile(r"^(\d{2})-(\d{2})$")
FULL_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Rule fields that belong to each date type
RULE_FIELDS: dict[DateType, tuple[str, ...]] = {
    DateType.FIXED: ("fixed_date",),
    DateType.EASTER_RELATIVE: ("easter_offset",),
    DateType.NTH_WEEKDAY: ("nth_weekday",),
    DateType.DATE_RANGE: ("start_date", "end_date"),
}
ALL_RULE_FIELDS = ("fixed_date", "easter_offset", "nth_weekday", "start_date", "end_date")


def calculate_easter(year: int) -> date:
    """Easter Sunday for a year (anonymous Gregorian algorithm).

    Args:
        year: Gregorian year.

    Returns:
        Date of Easter Sunday.
    """
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def easter_relative_date(year: int, offset: int) -> date:
    """Date `offset` days after (negative: before) Easter Sunday."""
    return calculate_easter(year) + timedelta(days=offset)


def nth_weekday_of_month(year: int, month: int, weekday: int, nth: int) -> date | None:
    """Find the nth occurrence of a weekday in a month.

    Args:
        year: The year.
        month: The month (1-12).
        weekday: Day of week, 0=Sunday .. 6=Saturday.
        nth: Occurrence 1-5, or negative to count from the end (-1 = last).

    Returns:
        The date, or None if the month has no such occurrence.
    """
    if nth == 0:
        return None

    days_in_month = calendar.monthrange(year, month)[1]
    # date.weekday() counts from Monday=0; shift to Sunday=0
    first_weekday = (date(year, month, 1).weekday() + 1) % 7

    if nth > 0:
        day = 1 + (weekday - first_weekday) % 7 + (nth - 1) * 7
        return date(year, month, day) if day <= days_in_month else None

    last_weekday = (date(year, month, days_in_month).weekday() + 1) % 7
    day = days_in_month - (last_weekday - weekday) % 7 + (nth + 1) * 7
    return date(year, month, day) if day >= 1 else None


def parse_full_date(value: str) -> date:
    """Parse YYYY-MM-DD.

    Raises:
        InvalidDateRuleError: If the string is malformed or not a real date.
    """
    match = FULL_DATE_PATTERN.match(value.strip())
    if match is None:
        raise InvalidDateRuleError(f"Invalid date '{value}', expected YYYY-MM-DD")
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError as e:
        raise InvalidDateRuleError(f"Invalid date '{value}': {e}") from e


def parse_fixed_date(value: str, year: int) -> date | None:
    """Resolve an MM-DD or YYYY-MM-DD string for a year.

    MM-DD takes the given year. YYYY-MM-DD keeps its own year. Feb 29 in a
    non-leap year resolves to None.

    Raises:
        InvalidDateRuleError: If the string is malformed.
    """
    value = value.strip()
    if FULL_DATE_PATTERN.match(value):
        return parse_full_date(value)

    match = MONTH_DAY_PATTERN.match(value)
    if match is None:
        raise InvalidDateRuleError(f"Invalid fixed date '{value}', expected MM-DD or YYYY-MM-DD")

    month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        raise InvalidDateRuleError(f"Invalid fixed date '{value}'")
    if month == 2 and day == 29:
        return date(year, 2, 29) if calendar.isleap(year) else None
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidDateRuleError(f"Invalid fixed date '{value}': {e}") from e


def parse_date_type(value: str) -> DateType:
    """Raises UnsupportedRuleError for unknown date types."""
    try:
        return DateType(value)
    except ValueError as e:
        supported = ", ".join(t.value for t in DateType)
        raise UnsupportedRuleError(
            f"Unsupported date type '{value}' (supported: {supported})"
        ) from e


def _validate_nth_weekday(rule: NthWeekday) -> None:
    if not 1 <= rule.month <= 12:
        raise InvalidDateRuleError(f"nth_weekday month must be 1-12, got {rule.month}")
    if not 0 <= rule.weekday <= 6:
        raise InvalidDateRuleError(f"nth_weekday weekday must be 0-6, got {rule.weekday}")
    if rule.nth == 0 or not -5 <= rule.nth <= 5:
        raise InvalidDateRuleError(f"nth_weekday nth must be 1-5 or -1..-5, got {rule.nth}")


def validate_entry(entry: CalendarEntryInput) -> DateType:
    """Check that an entry carries exactly the rule its date_type declares.

    Returns:
        The parsed DateType.

    Raises:
        UnsupportedRuleError: Unknown date_type.
        InvalidDateRuleError: Missing, extra or malformed rule fields.
    """
    date_type = parse_date_type(entry.date_type)
    expected = RULE_FIELDS[date_type]

    missing = [name for name in expected if getattr(entry, name) is None]
    if missing:
        raise InvalidDateRuleError(
            f"{date_type.value} entry '{entry.name}' requires: {', '.join(missing)}"
        )
    extra = [
        name
        for name in ALL_RULE_FIELDS
        if name not in expected and getattr(entry, name) is not None
    ]
    if extra:
        raise InvalidDateRuleError(
            f"{date_type.value} entry '{entry.name}' must not set: {', '.join(extra)}"
        )

    if date_type is DateType.FIXED:
        # Any year works for a syntax check; 2000 is a leap year so 02-29 passes
        parse_fixed_date(entry.fixed_date, 2000)
    elif date_type is DateType.NTH_WEEKDAY:
        _validate_nth_weekday(entry.nth_weekday)
    elif date_type is DateType.DATE_RANGE:
        start, end = parse_full_date(entry.start_date), parse_full_date(entry.end_date)
        if end < start:
            raise InvalidDateRuleError(
                f"Date range for '{entry.name}' ends ({end}) before it starts ({start})"
            )

    return date_type


def resolve_entry_dates(entry: CalendarEntryInput, year: int) -> list[date]:
    """All dates an entry covers in the given year.

    Raises:
        UnsupportedRuleError: Unknown date_type.
        InvalidDateRuleError: Malformed rule.
    """
    date_type = validate_entry(entry)

    if date_type is DateType.DATE_RANGE:
        start = max(parse_full_date(entry.start_date), date(year, 1, 1))
        end = min(parse_full_date(entry.end_date), date(year, 12, 31))
        return [start + timedelta(days=n) for n in range((end - start).days + 1)]

    if date_type is DateType.FIXED:
        value = entry.fixed_date.strip()
        if FULL_DATE_PATTERN.match(value):
            resolved = parse_full_date(value)
            return [resolved] if resolved.year == year else []
        if not entry.is_recurring:
            return []
        resolved = parse_fixed_date(value, year)
        return [resolved] if resolved is not None else []

    if date_type is DateType.EASTER_RELATIVE:
        return [easter_relative_date(year, entry.easter_offset)]

    rule = entry.nth_weekday
    resolved = nth_weekday_of_month(year, rule.month, rule.weekday, rule.nth)
    return [resolved] if resolved is not None else []


def materialize(entries: Iterable[CalendarEntry], year: int) -> list[CalendarDate]:
    """Expand calendar entries into dated occurrences for a year, sorted by date."""
    dates = [
        CalendarDate(date=day.isoformat(), name=entry.name, entry_id=entry.entry_id)
        for entry in entries
        for day in resolve_entry_dates(entry, year)
    ]
    dates.sort(key=lambda d: (d.date, d.name))
    return dates
