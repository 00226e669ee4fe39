from datetime import datetime, timedelta
from typing import Any, Dict, List

from pydantic import BaseModel, field_validator, model_validator

# Sunday first, matching the booking site's weekday numbering.
WEEKDAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def time_to_minutes(time_str: str) -> int:
    """Converts an HH:MM string to minutes since midnight."""
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)


def describe_day(offset: int) -> str:
    """Human-readable description of a day relative to today."""
    if offset == 0:
        return "today"
    if offset == 1:
        return "tomorrow"
    if offset == 2:
        return "the day after tomorrow"
    if offset > 0:
        return f"in {offset} days"
    return f"{abs(offset)} days ago"


class Slot(BaseModel):
    court_id: int | str
    court_name: str
    date: str  # ISO format YYYY-MM-DD, facility local calendar
    time: str  # HH:MM format, facility local time
    duration_minutes: int = 90
    price: float | None = None

    @property
    def slot_id(self) -> str:
        return f"{self.date}|{self.court_id}|{self.time}"


class TimeRange(BaseModel):
    start: str  # HH:MM format, inclusive
    end: str  # HH:MM format, inclusive

    @field_validator("start", "end")
    @classmethod
    def _check_format(cls, value: str) -> str:
        datetime.strptime(value, "%H:%M")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.start_minutes > self.end_minutes:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    def contains(self, time_str: str) -> bool:
        return self.start_minutes <= time_to_minutes(time_str) <= self.end_minutes


class MonitoringWindow(BaseModel):
    """The two consecutive dates being watched: target day and the day after."""

    target_date: str
    next_date: str
    shift_days: int = 0

    @classmethod
    def starting_from(cls, today: str, shift_days: int = 0) -> "MonitoringWindow":
        base = datetime.strptime(today, "%Y-%m-%d")
        target = base + timedelta(days=shift_days)
        return cls(
            target_date=target.strftime("%Y-%m-%d"),
            next_date=(target + timedelta(days=1)).strftime("%Y-%m-%d"),
            shift_days=shift_days,
        )

    @property
    def dates(self) -> List[str]:
        return [self.target_date, self.next_date]

    def describe(self, date_str: str) -> str:
        if date_str == self.next_date:
            return describe_day(self.shift_days + 1)
        return describe_day(self.shift_days)


class CustomerInfo(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    sport_id: int = 7


class BookingResult(BaseModel):
    success: bool
    data: Dict[str, Any] | None = None
    error: Any = None
    status_code: int | None = None

    @property
    def booking_id(self) -> Any:
        if not self.data:
            return None
        nested = self.data.get("data")
        if isinstance(nested, dict) and nested.get("id") is not None:
            return nested["id"]
        return self.data.get("id")


class AutoBookingRule(BaseModel):
    weekday: int  # 0 = Sunday ... 6 = Saturday
    time: str  # HH:MM format

    @field_validator("weekday")
    @classmethod
    def _check_weekday(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError(f"weekday must be between 0 and 6, got {value}")
        return value

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        datetime.strptime(value, "%H:%M")
        return value

    @classmethod
    def parse(cls, day: str, time: str) -> "AutoBookingRule":
        """Builds a rule from a weekday name ("monday") or number (0 = Sunday)."""
        day = day.strip().lower()
        weekday = WEEKDAY_NAMES.index(day) if day in WEEKDAY_NAMES else int(day)
        return cls(weekday=weekday, time=time.strip())

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.weekday].capitalize()

    def matches(self, slot: Slot) -> bool:
        slot_weekday = (datetime.strptime(slot.date, "%Y-%m-%d").weekday() + 1) % 7
        return slot_weekday == self.weekday and slot.time == self.time
