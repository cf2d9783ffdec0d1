"""Unit tests for shop opening hours."""
from datetime import datetime

from chatcommerce.services.shops.hours import OpeningStatus, OpeningStatusReason, get_opening_status

# 2024-06-03 is a Monday
MONDAY_NOON = datetime(2024, 6, 3, 12, 0)
MONDAY_LATE = datetime(2024, 6, 3, 23, 30)

WEEKDAY_HOURS = {
    "monday": {"open": "09:00", "close": "22:00", "enabled": True},
    "tuesday": {"open": "09:00", "close": "22:00", "enabled": True},
    "sunday": {"open": "09:00", "close": "22:00", "enabled": False},
}


class TestOpeningStatus:
    """Test get_opening_status."""

    def test_manual_open_overrides_schedule(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "manual_open", MONDAY_LATE)
        assert status.is_open
        assert status.reason == OpeningStatusReason.MANUAL_OPEN

    def test_manual_closed_overrides_schedule(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "manual_closed", MONDAY_NOON)
        assert not status.is_open
        assert status.closed_message() == "This shop is temporarily closed."

    def test_no_schedule_is_open(self):
        status = get_opening_status(None, None, "auto", MONDAY_NOON)
        assert status.is_open
        assert status.reason == OpeningStatusReason.NO_SCHEDULE

    def test_missing_mode_means_auto(self):
        status = get_opening_status(WEEKDAY_HOURS, None, None, MONDAY_NOON)
        assert status.reason == OpeningStatusReason.AUTO

    def test_within_hours(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "auto", MONDAY_NOON)
        assert status.is_open

    def test_outside_hours(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "auto", MONDAY_LATE)
        assert not status.is_open
        assert status.reason == OpeningStatusReason.OUTSIDE_HOURS
        assert "opening hours" in status.closed_message()

    def test_close_time_is_exclusive(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "auto", datetime(2024, 6, 3, 22, 0))
        assert not status.is_open

    def test_disabled_day(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "auto", datetime(2024, 6, 9, 12, 0))
        assert not status.is_open
        assert status.reason == OpeningStatusReason.SCHEDULE_CLOSED

    def test_day_missing_from_schedule(self):
        status = get_opening_status(WEEKDAY_HOURS, None, "auto", datetime(2024, 6, 5, 12, 0))
        assert status.reason == OpeningStatusReason.SCHEDULE_CLOSED

    def test_holiday(self):
        """A holiday closes the shop and its description is surfaced."""
        holidays = [{"date": "2024-06-03", "description": "Eid holiday"}]

        status = get_opening_status(WEEKDAY_HOURS, holidays, "auto", MONDAY_NOON)

        assert not status.is_open
        assert status.reason == OpeningStatusReason.HOLIDAY
        assert status.closed_message() == "This shop is closed: Eid holiday"

    def test_holiday_without_description(self):
        """A holiday keeps its own message when no description is given."""
        holidays = [{"date": "2024-06-03"}]

        status = get_opening_status(WEEKDAY_HOURS, holidays, "auto", MONDAY_NOON)

        assert status.reason == OpeningStatusReason.HOLIDAY
        assert status.closed_message() == "This shop is closed today for a holiday."
        assert status.closed_message() != OpeningStatus(
            is_open=False, reason=OpeningStatusReason.SCHEDULE_CLOSED
        ).closed_message()

    def test_malformed_times_count_as_open(self):
        hours = {"monday": {"open": "nine", "close": "25:00", "enabled": True}}
        status = get_opening_status(hours, None, "auto", MONDAY_LATE)
        assert status.is_open
        assert status.reason == OpeningStatusReason.NO_SCHEDULE
