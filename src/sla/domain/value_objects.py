"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from src.config import (
    AT_RISK_THRESHOLD_MINUTES,
    DEFAULT_SLA_TARGETS,
    Priority,
    SLAState,
    VALID_PRIORITIES,
)


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class BusinessHoursCalendar(BaseModel):
    """
    Work-day/work-hour window used for SLA arithmetic.

    ``work_days`` uses Python weekday numbers (Monday=0 ... Sunday=6).
    Hours are whole hours in the calendar's own timezone.
    """
    start_hour: int = Field(default=9, ge=0, le=23, description="First business hour")
    end_hour: int = Field(default=17, ge=1, le=24, description="Hour business ends (exclusive)")
    work_days: List[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4],
        description="Weekdays that are work days, Monday=0"
    )
    timezone: str = Field(default="UTC", description="IANA timezone name")

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, v: List[int]) -> List[int]:
        """Work days must be a non-empty subset of 0..6."""
        days = sorted(set(v))
        if not days:
            raise ValueError("work_days must not be empty")
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("work_days must be weekday numbers between 0 and 6")
        return days

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Timezone must be resolvable."""
        try:
            _resolve_timezone(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "BusinessHoursCalendar":
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self

    @property
    def tzinfo(self) -> tzinfo:
        return _resolve_timezone(self.timezone)


class SLAClock:
    """
    Pure functions for SLA time arithmetic.

    Stateless utility class: deadline computation, breach classification
    and the minute helpers used for pause/resume accounting.
    """

    # ========== Minute helpers ==========

    @staticmethod
    def add_minutes(value: datetime, minutes: int) -> datetime:
        """Shift a timestamp forward by whole minutes."""
        return value + timedelta(minutes=minutes)

    @staticmethod
    def diff_minutes(start: datetime, end: datetime) -> int:
        """Minutes from start to end, rounded up, never negative."""
        return max(0, math.ceil((end - start).total_seconds() / 60))

    # ========== Calendar helpers ==========

    @staticmethod
    def _to_calendar_time(value: datetime, calendar: BusinessHoursCalendar) -> datetime:
        # Naive input is read as calendar-local time
        if value.tzinfo is None:
            return value.replace(tzinfo=calendar.tzinfo)
        return value.astimezone(calendar.tzinfo)

    @staticmethod
    def _from_calendar_time(value: datetime, like: datetime) -> datetime:
        if like.tzinfo is None:
            return value.replace(tzinfo=None)
        return value.astimezone(like.tzinfo)

    @staticmethod
    def _at_hour(value: datetime, hour: int) -> datetime:
        # hour may be 24 (end of day)
        midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + timedelta(hours=hour)

    @staticmethod
    def _start_of_next_work_day(value: datetime, calendar: BusinessHoursCalendar) -> datetime:
        result = SLAClock._at_hour(value + timedelta(days=1), calendar.start_hour)
        while result.weekday() not in calendar.work_days:
            result += timedelta(days=1)
        return result

    @staticmethod
    def _next_business_moment(value: datetime, calendar: BusinessHoursCalendar) -> datetime:
        """Clamp a calendar-local time into the business window."""
        if value.hour < calendar.start_hour:
            value = SLAClock._at_hour(value, calendar.start_hour)
        elif value.hour >= calendar.end_hour:
            value = SLAClock._at_hour(value + timedelta(days=1), calendar.start_hour)

        if value.weekday() not in calendar.work_days:
            value = SLAClock._start_of_next_work_day(value, calendar)
        return value

    # ========== Public operations ==========

    @staticmethod
    def calculate_deadline(
        start: datetime,
        duration_minutes: int,
        business_hours_only: bool,
        calendar: Optional[BusinessHoursCalendar] = None
    ) -> datetime:
        """
        Calculate an SLA deadline.

        Args:
            start: When the clock starts
            duration_minutes: SLA target in minutes
            business_hours_only: Count only minutes inside the calendar window
            calendar: Business-hours calendar (default 9-17 Mon-Fri UTC)

        Returns:
            The deadline, in the timezone of ``start``

        Example:
            Friday 16:50 + 30 business minutes (9-17 Mon-Fri) is Monday 09:20:
            10 minutes are consumed on Friday, 20 on Monday.
        """
        if not business_hours_only:
            return start + timedelta(minutes=duration_minutes)

        calendar = calendar or BusinessHoursCalendar()
        remaining = int(duration_minutes)
        current = SLAClock._to_calendar_time(start, calendar)

        while remaining > 0:
            current = SLAClock._next_business_moment(current, calendar)

            end_of_day = SLAClock._at_hour(current, calendar.end_hour)
            available = int((end_of_day - current).total_seconds() // 60)

            if remaining <= available:
                return SLAClock._from_calendar_time(
                    current + timedelta(minutes=remaining), start
                )

            remaining -= available
            current = SLAClock._start_of_next_work_day(current, calendar)

        return SLAClock._from_calendar_time(current, start)

    @staticmethod
    def is_within_business_hours(
        value: datetime,
        calendar: Optional[BusinessHoursCalendar] = None
    ) -> bool:
        """Check weekday and hour membership in the calendar window."""
        calendar = calendar or BusinessHoursCalendar()
        local = SLAClock._to_calendar_time(value, calendar)
        if local.weekday() not in calendar.work_days:
            return False
        return calendar.start_hour <= local.hour < calendar.end_hour

    @staticmethod
    def elapsed_business_minutes(
        start: datetime,
        end: datetime,
        calendar: Optional[BusinessHoursCalendar] = None
    ) -> int:
        """
        Count in-business-hours minutes between two instants.

        Walks minute by minute, so cost is linear in the span. Callers use it
        for incident-lifetime ranges only.
        """
        calendar = calendar or BusinessHoursCalendar()
        elapsed = 0
        current = start
        step = timedelta(minutes=1)
        while current < end:
            if SLAClock.is_within_business_hours(current, calendar):
                elapsed += 1
            current += step
        return elapsed

    @staticmethod
    def is_breached(deadline: datetime, current_time: datetime) -> bool:
        """Check if the deadline has passed."""
        return current_time > deadline

    @staticmethod
    def classify(deadline: datetime, current_time: datetime) -> SLAState:
        """
        Classify a deadline against the current time.

        Breached once the deadline has passed, at risk when fewer than
        AT_RISK_THRESHOLD_MINUTES remain (a fixed cutoff, independent of the
        total SLA duration), otherwise on track.
        """
        if SLAClock.is_breached(deadline, current_time):
            return SLAState.BREACHED

        remaining_minutes = (deadline - current_time).total_seconds() / 60
        if remaining_minutes < AT_RISK_THRESHOLD_MINUTES:
            return SLAState.AT_RISK

        return SLAState.ON_TRACK


class SLAConfig(BaseModel):
    """
    SLA Configuration loaded from YAML.

    Holds the fallback targets used when an organization has no active
    policy, plus the business-hours calendars.
    """
    default_targets: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        validate_default=True,
        description="Fallback SLA targets in minutes by priority"
    )
    business_hours: BusinessHoursCalendar = Field(
        default_factory=BusinessHoursCalendar,
        description="Calendar used when an organization has none"
    )
    organization_calendars: Dict[str, BusinessHoursCalendar] = Field(
        default_factory=dict,
        description="Per-organization business-hours calendars"
    )

    @field_validator("default_targets")
    @classmethod
    def validate_default_targets(cls, v: Dict[str, Dict[str, int]]) -> Dict[str, Dict[str, int]]:
        """Fill missing priorities and clock types from the fixed default table."""
        targets = {str(k).lower(): dict(val) for k, val in v.items()}

        for priority in VALID_PRIORITIES:
            defaults = DEFAULT_SLA_TARGETS[priority]
            row = targets.setdefault(priority, {})
            for sla_type, minutes in defaults.items():
                row.setdefault(sla_type, minutes)
                if row[sla_type] <= 0:
                    raise ValueError(f"{priority}.{sla_type} must be a positive number of minutes")

        return targets

    def get_targets(self, priority: str) -> Tuple[int, int]:
        """
        Fallback (response, resolution) minutes for a priority.

        Unknown priorities use the medium row.
        """
        key = str(priority).lower()
        row = self.default_targets.get(key) or self.default_targets[Priority.MEDIUM.value]
        return row["response"], row["resolution"]

    def calendar_for(self, organization_id: Optional[str]) -> BusinessHoursCalendar:
        """Business-hours calendar for an organization."""
        if organization_id and organization_id in self.organization_calendars:
            return self.organization_calendars[organization_id]
        return self.business_hours


@dataclass(frozen=True)
class SLADeadlines:
    """
    Immutable value object with the two SLA deadlines of an incident.
    """
    response_due: datetime
    resolution_due: datetime
    policy_id: Optional[str] = None
    business_hours_only: bool = True
