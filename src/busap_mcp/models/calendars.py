"""Pydantic models for holiday and school calendars."""

from enum import Enum

from pydantic import BaseModel, Field


class CalendarType(str, Enum):
    HOLIDAYS = "holidays"
    SCHOOL_DAYS = "school_days"
    CUSTOM = "custom"


class DateType(str, Enum):
    """How a calendar entry's date is defined."""

    FIXED = "fixed"  # MM-DD (recurring) or YYYY-MM-DD
    EASTER_RELATIVE = "easter_relative"  # signed day offset from Easter Sunday
    NTH_WEEKDAY = "nth_weekday"  # e.g. 4th Thursday of November
    DATE_RANGE = "date_range"  # inclusive start_date..end_date


class NthWeekday(BaseModel):
    month: int = Field(description="Month (1-12)")
    weekday: int = Field(description="Weekday (0=Sunday, 1=Monday, ..., 6=Saturday)")
    nth: int = Field(description="Occurrence (1-5, negative counts from the end of the month)")


class CalendarEntryInput(BaseModel):
    """Payload for creating a calendar entry.

    Exactly one rule representation must be set, matching date_type.
    """

    name: str
    date_type: str = Field(description="fixed, easter_relative, nth_weekday or date_range")
    fixed_date: str | None = Field(default=None, description="MM-DD or YYYY-MM-DD")
    easter_offset: int | None = Field(default=None, description="Days from Easter Sunday")
    nth_weekday: NthWeekday | None = None
    start_date: str | None = Field(default=None, description="YYYY-MM-DD")
    end_date: str | None = Field(default=None, description="YYYY-MM-DD")
    is_recurring: bool = True


class CalendarEntry(CalendarEntryInput):
    entry_id: str
    calendar_id: str


class CalendarInput(BaseModel):
    """Payload for creating a calendar."""

    code: str = Field(description="Unique calendar code, e.g. 'pl-holidays'")
    name: str
    description: str | None = None
    country: str = Field(description="ISO 3166-1 alpha-2 country code")
    region: str | None = None
    type: CalendarType
    year: int | None = Field(default=None, description="Specific year, null for recurring")
    company_id: str | None = Field(default=None, description="Owning company, null for system-wide")
    is_active: bool = True


class Calendar(CalendarInput):
    calendar_id: str
    entry_count: int = 0


class CalendarDetail(Calendar):
    entries: list[CalendarEntry] = Field(default_factory=list)


class CalendarDate(BaseModel):
    """One materialized occurrence of a calendar entry."""

    date: str = Field(description="YYYY-MM-DD")
    name: str
    entry_id: str


class ListCalendarsResponse(BaseModel):
    calendars: list[Calendar]
    count: int


class CalendarDatesResponse(BaseModel):
    calendar_id: str
    code: str
    year: int
    dates: list[CalendarDate]
    count: int


class DateInCalendarResponse(BaseModel):
    calendar_id: str
    date: str
    in_calendar: bool
    names: list[str] = Field(default_factory=list, description="Entries falling on the date")
