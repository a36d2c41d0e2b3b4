"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src.config import SLAState, SLAType


@dataclass
class SLAPolicy:
    """
    Organization-scoped SLA policy for one priority.

    At most one active policy per organization and priority is used.
    """

    id: str
    organization_id: str
    priority: str
    response_time_mins: int
    resolution_time_mins: int
    business_hours_only: bool = True
    is_active: bool = True
    name: Optional[str] = None

    def __post_init__(self):
        """Validate policy on initialization."""
        if self.response_time_mins <= 0 or self.resolution_time_mins <= 0:
            raise ValueError("SLA policy targets must be positive")


@dataclass
class SLAClockStatus:
    """Status of one SLA clock (response or resolution)."""

    sla_type: SLAType
    state: SLAState
    deadline: Optional[datetime] = None
    met: Optional[bool] = None
    remaining_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "sla_type": self.sla_type.value,
            "state": self.state.value,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "met": self.met,
            "remaining_seconds": self.remaining_seconds,
        }


_URGENCY_ORDER = {
    SLAState.BREACHED: 0,
    SLAState.AT_RISK: 1,
    SLAState.PAUSED: 2,
    SLAState.ON_TRACK: 3,
    SLAState.MET: 4,
    SLAState.STOPPED: 5,
}


@dataclass
class IncidentSLAStatus:
    """
    SLA status for an incident.

    Contains both clocks plus pause accounting.
    """

    incident_id: str
    response: SLAClockStatus
    resolution: SLAClockStatus
    paused: bool = False
    total_paused_minutes: int = 0

    # Overall status (computed field)
    is_any_breached: bool = field(init=False)

    def __post_init__(self):
        """Calculate overall breach status."""
        self.is_any_breached = (
            self.response.state == SLAState.BREACHED
            or self.resolution.state == SLAState.BREACHED
        )

    @property
    def most_urgent_state(self) -> SLAState:
        """Get the most urgent SLA state of the two clocks."""
        return min(
            (self.response.state, self.resolution.state),
            key=lambda state: _URGENCY_ORDER[state]
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "incident_id": self.incident_id,
            "response": self.response.to_dict(),
            "resolution": self.resolution.to_dict(),
            "overall": {
                "state": self.most_urgent_state.value,
                "is_any_breached": self.is_any_breached,
                "paused": self.paused,
                "total_paused_minutes": self.total_paused_minutes,
            },
        }
