"""
Incident Infrastructure Models
==============================

SQLAlchemy ORM models for the incident module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base
from src.config import Channel, IncidentStatus, Priority


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IncidentModel(Base):
    """
    Database model for Incident entity.

    Maps to the 'incidents' table. ``version`` is SQLAlchemy's version
    counter: every UPDATE checks and increments it.
    """
    __tablename__ = "incidents"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tenant and business identifier
    organization_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ticket_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    channel: Mapped[Channel] = mapped_column(String(50), nullable=False, default=Channel.PORTAL)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reporter_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Classification
    status: Mapped[IncidentStatus] = mapped_column(String(50), nullable=False, default=IncidentStatus.NEW)
    priority: Mapped[Priority] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    impact: Mapped[Priority] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    urgency: Mapped[Priority] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)

    # Ownership
    assignee_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    team_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # SLA tracking
    sla_policy_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sla_response_due: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_response_met: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    sla_resolution_due: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_resolution_met: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    sla_paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_total_paused_mins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Hold
    on_hold_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    on_hold_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relations by id
    configuration_item_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    problem_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    change_request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ux_incidents_org_ticket_number", "organization_id", "ticket_number", unique=True),
        Index("ix_incidents_org_status_created", "organization_id", "status", "created_at"),
    )


class TimelineModel(Base):
    """
    Database model for TimelineEntry.

    Maps to the 'incident_timeline' table. Rows are only ever inserted.
    """
    __tablename__ = "incident_timeline"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    incident_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    previous_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    actor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AuditLogModel(Base):
    """
    Database model for AuditLogEntry.

    Maps to the 'audit_logs' table.
    """
    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_type: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False, default="incident")
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    previous_value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    new_value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class CommentModel(Base):
    """
    Database model for Comment entity.

    Maps to the 'incident_comments' table.
    """
    __tablename__ = "incident_comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    incident_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    author_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class TicketCounterModel(Base):
    """
    Per-tenant, per-prefix ticket number counter.

    Maps to the 'ticket_counters' table.
    """
    __tablename__ = "ticket_counters"

    organization_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    prefix: Mapped[str] = mapped_column(String(20), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
