"""Tests for SLAClock and the business-hours calendar."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.config import SLAState
from src.sla.domain import BusinessHoursCalendar, SLAClock, SLAConfig


UTC = timezone.utc


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


# 2024-01-08 is a Monday, 2024-01-12 a Friday
MONDAY = (2024, 1, 8)
FRIDAY = (2024, 1, 12)
SATURDAY = (2024, 1, 13)


class TestCalculateDeadline:

    def test_friday_afternoon_carries_over_weekend(self):
        deadline = SLAClock.calculate_deadline(_utc(*FRIDAY, 16, 50), 30, True)
        assert deadline == _utc(2024, 1, 15, 9, 20)

    def test_within_same_day(self):
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 10, 0), 30, True)
        assert deadline == _utc(*MONDAY, 10, 30)

    def test_before_hours_starts_at_opening(self):
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 7, 0), 30, True)
        assert deadline == _utc(*MONDAY, 9, 30)

    def test_at_end_hour_moves_to_next_work_day(self):
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 17, 0), 30, True)
        assert deadline == _utc(2024, 1, 9, 9, 30)

    def test_weekend_start_moves_to_monday_opening(self):
        deadline = SLAClock.calculate_deadline(_utc(*SATURDAY, 11, 0), 60, True)
        assert deadline == _utc(2024, 1, 15, 10, 0)

    def test_exactly_filling_the_day_ends_at_closing(self):
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 16, 0), 60, True)
        assert deadline == _utc(*MONDAY, 17, 0)

    def test_multi_day_duration(self):
        # 420 Mon + 480 Tue + 480 Wed + 60 Thu
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 10, 0), 1440, True)
        assert deadline == _utc(2024, 1, 11, 10, 0)

    def test_zero_duration_returns_start(self):
        start = _utc(*SATURDAY, 3, 17)
        assert SLAClock.calculate_deadline(start, 0, True) == start

    def test_wall_clock_mode(self):
        deadline = SLAClock.calculate_deadline(_utc(*FRIDAY, 16, 50), 30, False)
        assert deadline == _utc(*FRIDAY, 17, 20)

    def test_naive_input_gives_naive_output(self):
        deadline = SLAClock.calculate_deadline(datetime(*FRIDAY, 16, 50), 30, True)
        assert deadline == datetime(2024, 1, 15, 9, 20)
        assert deadline.tzinfo is None

    def test_custom_work_days(self):
        calendar = BusinessHoursCalendar(work_days=[0, 1, 2, 3, 4, 5])
        deadline = SLAClock.calculate_deadline(_utc(*FRIDAY, 16, 50), 30, True, calendar)
        assert deadline == _utc(*SATURDAY, 9, 20)

    def test_calendar_timezone(self):
        calendar = BusinessHoursCalendar(timezone="Europe/Berlin")
        # 07:30 UTC is 08:30 in Berlin (CET, UTC+1): clock starts at 09:00 local
        deadline = SLAClock.calculate_deadline(_utc(*MONDAY, 7, 30), 30, True, calendar)
        assert deadline == _utc(*MONDAY, 8, 30)
        assert deadline.tzinfo == UTC


class TestBusinessHours:

    def test_is_within_business_hours(self):
        assert SLAClock.is_within_business_hours(_utc(*MONDAY, 9, 0))
        assert SLAClock.is_within_business_hours(_utc(*MONDAY, 16, 59))
        assert not SLAClock.is_within_business_hours(_utc(*MONDAY, 17, 0))
        assert not SLAClock.is_within_business_hours(_utc(*MONDAY, 8, 59))
        assert not SLAClock.is_within_business_hours(_utc(*SATURDAY, 12, 0))

    def test_elapsed_business_minutes_across_weekend(self):
        elapsed = SLAClock.elapsed_business_minutes(
            _utc(*FRIDAY, 16, 30), _utc(2024, 1, 15, 9, 30)
        )
        assert elapsed == 60

    def test_elapsed_business_minutes_empty_range(self):
        assert SLAClock.elapsed_business_minutes(_utc(*MONDAY, 12, 0), _utc(*MONDAY, 12, 0)) == 0


class TestClassify:

    def test_breached_after_deadline(self):
        deadline = _utc(*MONDAY, 12, 0)
        assert SLAClock.classify(deadline, deadline + timedelta(seconds=1)) == SLAState.BREACHED

    def test_at_deadline_is_at_risk_not_breached(self):
        deadline = _utc(*MONDAY, 12, 0)
        assert SLAClock.classify(deadline, deadline) == SLAState.AT_RISK

    def test_at_risk_under_thirty_minutes(self):
        deadline = _utc(*MONDAY, 12, 0)
        assert SLAClock.classify(deadline, deadline - timedelta(minutes=29)) == SLAState.AT_RISK

    def test_on_track_from_thirty_minutes(self):
        deadline = _utc(*MONDAY, 12, 0)
        assert SLAClock.classify(deadline, deadline - timedelta(minutes=30)) == SLAState.ON_TRACK

    def test_is_breached(self):
        deadline = _utc(*MONDAY, 12, 0)
        assert not SLAClock.is_breached(deadline, deadline)
        assert SLAClock.is_breached(deadline, deadline + timedelta(minutes=1))


class TestMinuteHelpers:

    def test_diff_minutes_rounds_up(self):
        start = _utc(*MONDAY, 10, 0)
        assert SLAClock.diff_minutes(start, start + timedelta(seconds=61)) == 2
        assert SLAClock.diff_minutes(start, start + timedelta(minutes=45)) == 45

    def test_diff_minutes_never_negative(self):
        start = _utc(*MONDAY, 10, 0)
        assert SLAClock.diff_minutes(start, start - timedelta(hours=1)) == 0

    def test_add_minutes(self):
        assert SLAClock.add_minutes(_utc(*MONDAY, 10, 0), 90) == _utc(*MONDAY, 11, 30)


class TestBusinessHoursCalendar:

    def test_defaults(self):
        calendar = BusinessHoursCalendar()
        assert (calendar.start_hour, calendar.end_hour) == (9, 17)
        assert calendar.work_days == [0, 1, 2, 3, 4]
        assert calendar.tzinfo == UTC

    def test_work_days_sorted_and_deduplicated(self):
        assert BusinessHoursCalendar(work_days=[4, 0, 0, 2]).work_days == [0, 2, 4]

    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            BusinessHoursCalendar(start_hour=17, end_hour=9)

    def test_work_days_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            BusinessHoursCalendar(work_days=[])

    def test_work_days_out_of_range(self):
        with pytest.raises(ValidationError):
            BusinessHoursCalendar(work_days=[0, 7])

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            BusinessHoursCalendar(timezone="Mars/Olympus_Mons")


class TestSLAConfig:

    def test_defaults_filled(self):
        config = SLAConfig()
        assert config.get_targets("critical") == (15, 240)
        assert config.get_targets("low") == (480, 10080)

    def test_partial_override_keeps_other_defaults(self):
        config = SLAConfig(default_targets={"HIGH": {"response": 45}})
        assert config.get_targets("high") == (45, 480)
        assert config.get_targets("medium") == (120, 1440)

    def test_unknown_priority_uses_medium(self):
        assert SLAConfig().get_targets("bogus") == (120, 1440)

    def test_non_positive_target_rejected(self):
        with pytest.raises(ValidationError):
            SLAConfig(default_targets={"low": {"response": 0}})

    def test_calendar_for_organization(self):
        berlin = BusinessHoursCalendar(timezone="Europe/Berlin")
        config = SLAConfig(organization_calendars={"org-berlin": berlin})

        assert config.calendar_for("org-berlin") == berlin
        assert config.calendar_for("org-elsewhere") == config.business_hours
        assert config.calendar_for(None) == config.business_hours
