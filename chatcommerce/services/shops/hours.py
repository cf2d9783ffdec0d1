"""Shop opening-hours evaluation."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

DAY_KEYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class OpeningStatusReason(str, Enum):
    """Why a shop is open or closed right now."""

    MANUAL_OPEN = "manual_open"
    MANUAL_CLOSED = "manual_closed"
    HOLIDAY = "holiday"
    SCHEDULE_CLOSED = "schedule_closed"
    OUTSIDE_HOURS = "outside_hours"
    NO_SCHEDULE = "no_schedule"
    AUTO = "auto"

    def __str__(self) -> str:
        return self.value


class OpeningStatus(BaseModel):
    """Open/closed state of a shop."""

    is_open: bool
    reason: OpeningStatusReason
    holiday_description: Optional[str] = None

    def closed_message(self) -> str:
        """User-facing explanation for a closed shop."""
        if self.reason == OpeningStatusReason.HOLIDAY:
            if self.holiday_description:
                return f"This shop is closed: {self.holiday_description}"
            return "This shop is closed today for a holiday."
        if self.reason == OpeningStatusReason.OUTSIDE_HOURS:
            return "This shop is currently closed. Please check the opening hours."
        if self.reason == OpeningStatusReason.MANUAL_CLOSED:
            return "This shop is temporarily closed."
        return "This shop is currently closed."


def _parse_time(value: Any) -> Optional[int]:
    """Minutes since midnight for "HH:MM", or None when malformed."""
    if not isinstance(value, str) or ":" not in value:
        return None
    hours_str, minutes_str = value.split(":", 1)
    try:
        hours, minutes = int(hours_str), int(minutes_str)
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def get_opening_status(
    opening_hours: Optional[Dict[str, Any]],
    holidays: Optional[List[Dict[str, Any]]],
    open_status_mode: Optional[str],
    now: Optional[datetime] = None,
) -> OpeningStatus:
    """
    Evaluate whether a shop is open.

    Manual modes win over the schedule; a holiday wins over the weekly hours.
    A missing or malformed schedule counts as open.
    """
    now = now or datetime.now()
    mode = open_status_mode or "auto"

    if mode == "manual_open":
        return OpeningStatus(is_open=True, reason=OpeningStatusReason.MANUAL_OPEN)
    if mode == "manual_closed":
        return OpeningStatus(is_open=False, reason=OpeningStatusReason.MANUAL_CLOSED)

    if not opening_hours:
        return OpeningStatus(is_open=True, reason=OpeningStatusReason.NO_SCHEDULE)

    today = now.strftime("%Y-%m-%d")
    for holiday in holidays or []:
        if holiday.get("date") == today:
            return OpeningStatus(
                is_open=False,
                reason=OpeningStatusReason.HOLIDAY,
                holiday_description=holiday.get("description"),
            )

    day_config = opening_hours.get(DAY_KEYS[now.weekday()])
    if not day_config or not day_config.get("enabled"):
        return OpeningStatus(is_open=False, reason=OpeningStatusReason.SCHEDULE_CLOSED)

    open_at = _parse_time(day_config.get("open"))
    close_at = _parse_time(day_config.get("close"))
    if open_at is None or close_at is None:
        return OpeningStatus(is_open=True, reason=OpeningStatusReason.NO_SCHEDULE)

    current = now.hour * 60 + now.minute
    if open_at <= current < close_at:
        return OpeningStatus(is_open=True, reason=OpeningStatusReason.AUTO)
    return OpeningStatus(is_open=False, reason=OpeningStatusReason.OUTSIDE_HOURS)
