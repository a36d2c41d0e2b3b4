"""
Incident Domain Entities
========================

Pure Python domain entities for the incident lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.config import (
    Channel,
    IncidentStatus,
    Priority,
    TERMINAL_STATUSES,
)


# Open map of string -> scalar attached to timeline/audit/activity records
Metadata = Dict[str, Any]


@dataclass
class Incident:
    """
    Incident entity.

    Status, priority, impact, urgency and channel are held as their string
    values; stored records may still carry legacy status values, which
    are normalized by IncidentLifecycle when the incident is transitioned.
    """
    id: str
    organization_id: str
    ticket_number: str
    title: str
    description: str
    reporter_id: str
    created_at: datetime
    updated_at: datetime

    # Classification
    status: str = IncidentStatus.NEW.value
    priority: str = Priority.MEDIUM.value
    impact: str = Priority.MEDIUM.value
    urgency: str = Priority.MEDIUM.value

    # Content
    channel: str = Channel.PORTAL.value
    category_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    due_at: Optional[datetime] = None

    # Ownership
    assignee_id: Optional[str] = None
    team_id: Optional[str] = None

    # SLA tracking
    sla_policy_id: Optional[str] = None
    sla_response_due: Optional[datetime] = None
    sla_response_at: Optional[datetime] = None
    sla_response_met: Optional[bool] = None
    sla_resolution_due: Optional[datetime] = None
    sla_resolution_met: Optional[bool] = None
    sla_paused_at: Optional[datetime] = None
    sla_total_paused_mins: int = 0

    # Hold
    on_hold_reason: Optional[str] = None
    on_hold_until: Optional[datetime] = None

    # Lifecycle timestamps
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    # Relations
    configuration_item_ids: List[str] = field(default_factory=list)
    problem_id: Optional[str] = None
    change_request_id: Optional[str] = None

    # Optimistic concurrency
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        """Closed and cancelled incidents accept no further transitions."""
        return self.status in [s.value for s in TERMINAL_STATUSES]

    @property
    def display_ref(self) -> str:
        """Ticket number, or the id for records without one."""
        return self.ticket_number or self.id

    def add_tag(self, tag: str) -> None:
        """Add a tag once, keeping existing order."""
        if tag not in self.tags:
            self.tags = [*self.tags, tag]

    def clear_hold(self) -> None:
        self.on_hold_reason = None
        self.on_hold_until = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "ticket_number": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "impact": self.impact,
            "urgency": self.urgency,
            "channel": self.channel,
            "category_id": self.category_id,
            "tags": list(self.tags),
            "due_at": iso(self.due_at),
            "reporter_id": self.reporter_id,
            "assignee_id": self.assignee_id,
            "team_id": self.team_id,
            "sla_policy_id": self.sla_policy_id,
            "sla_response_due": iso(self.sla_response_due),
            "sla_response_at": iso(self.sla_response_at),
            "sla_response_met": self.sla_response_met,
            "sla_resolution_due": iso(self.sla_resolution_due),
            "sla_resolution_met": self.sla_resolution_met,
            "sla_paused_at": iso(self.sla_paused_at),
            "sla_total_paused_mins": self.sla_total_paused_mins,
            "on_hold_reason": self.on_hold_reason,
            "on_hold_until": iso(self.on_hold_until),
            "resolved_at": iso(self.resolved_at),
            "closed_at": iso(self.closed_at),
            "configuration_item_ids": list(self.configuration_item_ids),
            "problem_id": self.problem_id,
            "change_request_id": self.change_request_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "version": self.version,
        }


@dataclass(frozen=True)
class TimelineEntry:
    """
    One lifecycle event on an incident.

    Append-only: entries are never updated or deleted once written.
    """
    incident_id: str
    action: str
    created_at: datetime
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    actor_id: Optional[str] = None
    metadata: Metadata = field(default_factory=dict)
    id: Optional[str] = None


@dataclass(frozen=True)
class AuditLogEntry:
    """Tenant audit record for a state-changing operation."""
    organization_id: str
    actor_id: str
    action: str
    resource_id: str
    created_at: datetime
    previous_value: Metadata = field(default_factory=dict)
    new_value: Metadata = field(default_factory=dict)
    metadata: Metadata = field(default_factory=dict)
    correlation_id: Optional[str] = None
    actor_type: str = "user"
    resource: str = "incident"
    id: Optional[str] = None


@dataclass
class Comment:
    """Comment on an incident; content is stored trimmed."""
    id: Optional[str]  # UUID, None for new comments
    incident_id: str
    author_id: str
    content: str
    created_at: datetime
    is_internal: bool = False

    def __post_init__(self):
        """Validate comment on initialization."""
        self.content = (self.content or "").strip()
        if not self.content:
            raise ValueError("Comment content is required")


@dataclass
class ActivityRecord:
    """
    Human-readable activity feed event.

    Published fire-and-forget; delivery failures never affect the
    operation that produced the record.
    """
    organization_id: str
    entity_id: str
    action: str
    actor_id: str
    title: str
    description: Optional[str] = None
    metadata: Metadata = field(default_factory=dict)
    entity_type: str = "incident"


@dataclass
class DuplicateCandidate:
    """An incident scored as a potential duplicate of another."""
    incident: Incident
    similarity_score: float

    def to_dict(self) -> dict:
        return {
            "id": self.incident.id,
            "ticket_number": self.incident.ticket_number,
            "title": self.incident.title,
            "status": self.incident.status,
            "priority": self.incident.priority,
            "created_at": self.incident.created_at.isoformat(),
            "similarity_score": self.similarity_score,
        }
