"""
Incident Infrastructure Repositories
====================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. All repositories of one operation share the
session of a SQLAlchemyUnitOfWork, so their writes commit together.
"""

import asyncio
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from src.config import TERMINAL_STATUSES
from src.core import ConflictException, RepositoryException
from src.incidents.application import (
    IAuditLogRepository,
    ICommentRepository,
    IIncidentRepository,
    ITicketNumberRepository,
    ITimelineRepository,
    IUnitOfWork,
)
from src.incidents.domain import AuditLogEntry, Comment, Incident, TimelineEntry
from src.incidents.infrastructure.models import (
    AuditLogModel,
    CommentModel,
    IncidentModel,
    TicketCounterModel,
    TimelineModel,
)
from src.infrastructure.database import as_utc


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


# Entity fields copied verbatim between Incident and IncidentModel
_INCIDENT_FIELDS = (
    "organization_id", "ticket_number", "title", "description", "category_id",
    "channel", "due_at", "reporter_id", "status", "priority", "impact", "urgency",
    "assignee_id", "team_id", "sla_policy_id", "sla_response_due", "sla_response_at",
    "sla_response_met", "sla_resolution_due", "sla_resolution_met", "sla_paused_at",
    "sla_total_paused_mins", "on_hold_reason", "on_hold_until", "problem_id",
    "change_request_id", "created_at", "updated_at", "resolved_at", "closed_at",
)

_DATETIME_FIELDS = {
    "due_at", "sla_response_due", "sla_response_at", "sla_resolution_due",
    "sla_paused_at", "on_hold_until", "created_at", "updated_at", "resolved_at",
    "closed_at",
}


def _to_entity(model: IncidentModel) -> Incident:
    values = {}
    for name in _INCIDENT_FIELDS:
        value = getattr(model, name)
        values[name] = as_utc(value) if name in _DATETIME_FIELDS else value

    return Incident(
        id=str(model.id),
        tags=list(model.tags or []),
        configuration_item_ids=list(model.configuration_item_ids or []),
        version=model.version,
        **values,
    )


def _copy_to_model(incident: Incident, model: IncidentModel) -> None:
    for name in _INCIDENT_FIELDS:
        setattr(model, name, getattr(incident, name))
    # New list objects so the JSON columns register as changed
    model.tags = list(incident.tags)
    model.configuration_item_ids = list(incident.configuration_item_ids)


class SQLAlchemyIncidentRepository(IIncidentRepository):
    """
    SQLAlchemy implementation of incident repository.

    ``for_update`` reads take a row lock (SELECT ... FOR UPDATE) on
    databases that support it; the version column catches lost updates
    everywhere else.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _load_model(self, incident_id: str) -> Optional[IncidentModel]:
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return None
        return await self._session.get(IncidentModel, incident_uuid)

    async def get(
        self,
        organization_id: str,
        incident_id: str,
        for_update: bool = False
    ) -> Optional[Incident]:
        """Get incident by ID within a tenant."""
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return None

        stmt = select(IncidentModel).where(
            IncidentModel.id == incident_uuid,
            IncidentModel.organization_id == organization_id,
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def get_many(
        self,
        organization_id: str,
        incident_ids: Sequence[str],
        for_update: bool = False
    ) -> List[Incident]:
        """Get incidents of a tenant by IDs; unknown IDs are skipped."""
        uuids = [u for u in (_parse_uuid(i) for i in incident_ids) if u is not None]
        if not uuids:
            return []

        stmt = (
            select(IncidentModel)
            .where(
                IncidentModel.id.in_(uuids),
                IncidentModel.organization_id == organization_id,
            )
            .order_by(IncidentModel.id)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self._session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]

    async def add(self, incident: Incident) -> Incident:
        """Create new incident."""
        model = IncidentModel(id=UUID(incident.id))
        _copy_to_model(incident, model)

        self._session.add(model)
        await self._session.flush()

        incident.version = model.version
        return incident

    async def save(self, incident: Incident) -> Incident:
        """
        Update existing incident.

        Raises:
            ConflictException: If the incident changed since it was read
        """
        model = await self._load_model(incident.id)
        if model is None or model.organization_id != incident.organization_id:
            raise RepositoryException(f"Incident {incident.id} not found")

        # Catches entities read in another session. Within one unit of work the
        # identity map returns the row as loaded, and the version column check
        # at flush raises StaleDataError instead.
        if model.version != incident.version:
            raise ConflictException(
                "Incident",
                incident.id,
                details={"expected_version": incident.version, "actual_version": model.version}
            )

        _copy_to_model(incident, model)
        await self._session.flush()

        incident.version = model.version
        return incident

    async def list_recent_open(
        self,
        organization_id: str,
        exclude_id: Optional[str],
        limit: int
    ) -> List[Incident]:
        """Most recently created non-terminal incidents of a tenant."""
        stmt = select(IncidentModel).where(
            IncidentModel.organization_id == organization_id,
            IncidentModel.status.not_in([s.value for s in TERMINAL_STATUSES]),
        )

        exclude_uuid = _parse_uuid(exclude_id) if exclude_id else None
        if exclude_uuid is not None:
            stmt = stmt.where(IncidentModel.id != exclude_uuid)

        stmt = stmt.order_by(IncidentModel.created_at.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]


class SQLAlchemyTimelineRepository(ITimelineRepository):
    """Append-only timeline storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: TimelineEntry) -> TimelineEntry:
        """Insert a timeline entry."""
        model = TimelineModel(
            incident_id=UUID(entry.incident_id),
            action=entry.action,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            actor_id=entry.actor_id,
            metadata_=dict(entry.metadata),
            created_at=entry.created_at,
        )
        self._session.add(model)
        await self._session.flush()

        return TimelineEntry(
            id=str(model.id),
            incident_id=entry.incident_id,
            action=entry.action,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            actor_id=entry.actor_id,
            metadata=dict(entry.metadata),
            created_at=entry.created_at,
        )

    async def list_for_incident(self, incident_id: str) -> List[TimelineEntry]:
        """Entries of one incident, oldest first."""
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return []

        stmt = (
            select(TimelineModel)
            .where(TimelineModel.incident_id == incident_uuid)
            .order_by(TimelineModel.created_at.asc())
        )
        result = await self._session.execute(stmt)

        return [
            TimelineEntry(
                id=str(model.id),
                incident_id=str(model.incident_id),
                action=model.action,
                previous_value=model.previous_value,
                new_value=model.new_value,
                actor_id=model.actor_id,
                metadata=dict(model.metadata_ or {}),
                created_at=as_utc(model.created_at),
            )
            for model in result.scalars().all()
        ]


class SQLAlchemyAuditLogRepository(IAuditLogRepository):
    """Audit log storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Insert an audit entry."""
        model = AuditLogModel(
            organization_id=entry.organization_id,
            actor_id=entry.actor_id,
            actor_type=entry.actor_type,
            action=entry.action,
            resource=entry.resource,
            resource_id=entry.resource_id,
            previous_value=dict(entry.previous_value),
            new_value=dict(entry.new_value),
            metadata_=dict(entry.metadata),
            correlation_id=entry.correlation_id,
            created_at=entry.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return entry

    async def list_for_resource(self, organization_id: str, resource_id: str) -> List[AuditLogEntry]:
        """Audit entries for one resource, oldest first."""
        stmt = (
            select(AuditLogModel)
            .where(
                AuditLogModel.organization_id == organization_id,
                AuditLogModel.resource_id == resource_id,
            )
            .order_by(AuditLogModel.created_at.asc())
        )
        result = await self._session.execute(stmt)

        return [
            AuditLogEntry(
                id=str(model.id),
                organization_id=model.organization_id,
                actor_id=model.actor_id,
                actor_type=model.actor_type,
                action=model.action,
                resource=model.resource,
                resource_id=model.resource_id,
                previous_value=dict(model.previous_value or {}),
                new_value=dict(model.new_value or {}),
                metadata=dict(model.metadata_ or {}),
                correlation_id=model.correlation_id,
                created_at=as_utc(model.created_at),
            )
            for model in result.scalars().all()
        ]


class SQLAlchemyCommentRepository(ICommentRepository):
    """Comment storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, comment: Comment) -> Comment:
        """Create new comment."""
        model = CommentModel(
            incident_id=UUID(comment.incident_id),
            author_id=comment.author_id,
            content=comment.content,
            is_internal=comment.is_internal,
            created_at=comment.created_at,
        )
        self._session.add(model)
        await self._session.flush()

        # Update comment with generated ID
        comment.id = str(model.id)
        return comment

    async def list_for_incident(self, incident_id: str) -> List[Comment]:
        """Comments of one incident, oldest first."""
        incident_uuid = _parse_uuid(incident_id)
        if incident_uuid is None:
            return []

        stmt = (
            select(CommentModel)
            .where(CommentModel.incident_id == incident_uuid)
            .order_by(CommentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)

        return [
            Comment(
                id=str(model.id),
                incident_id=str(model.incident_id),
                author_id=model.author_id,
                content=model.content,
                is_internal=model.is_internal,
                created_at=as_utc(model.created_at),
            )
            for model in result.scalars().all()
        ]


class SQLAlchemyTicketNumberRepository(ITicketNumberRepository):
    """
    Per-tenant ticket counter.

    The counter row is locked while incremented, so numbers are unique
    and gap-free per organization and prefix within committed work.
    """

    WIDTH = 6

    def __init__(self, session: AsyncSession):
        self._session = session

    async def allocate(self, organization_id: str, prefix: str) -> str:
        """Allocate the next ticket number, e.g. ``INC-000001``."""
        stmt = (
            select(TicketCounterModel)
            .where(
                TicketCounterModel.organization_id == organization_id,
                TicketCounterModel.prefix == prefix,
            )
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        counter = result.scalar_one_or_none()

        if counter is None:
            counter = TicketCounterModel(organization_id=organization_id, prefix=prefix, last_value=0)
            self._session.add(counter)

        counter.last_value += 1
        await self._session.flush()

        return f"{prefix}-{counter.last_value:0{self.WIDTH}d}"


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over one AsyncSession.

    Leaving the block without ``commit()`` rolls back. Storage errors are
    translated: a stale version becomes ConflictException, any other
    SQLAlchemy error a RepositoryException.

    When ``lock`` is given it is held from entry to exit. Units of work on a
    shared connection (in-memory SQLite) need it: one rollback would
    otherwise discard the uncommitted writes of another.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        lock: Optional[asyncio.Lock] = None
    ):
        self._session_maker = session_maker
        self._lock = lock
        self._session: Optional[AsyncSession] = None
        self._committed = False

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self._lock is not None:
            await self._lock.acquire()
        self._session = self._session_maker()
        self._committed = False

        self.incidents = SQLAlchemyIncidentRepository(self._session)
        self.timeline = SQLAlchemyTimelineRepository(self._session)
        self.audit_log = SQLAlchemyAuditLogRepository(self._session)
        self.comments = SQLAlchemyCommentRepository(self._session)
        self.ticket_numbers = SQLAlchemyTicketNumberRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None or not self._committed:
                await self.rollback()
        finally:
            try:
                await self._session.close()
            finally:
                self._session = None
                if self._lock is not None:
                    self._lock.release()

        if exc is not None:
            self._translate(exc)

    async def commit(self) -> None:
        """Commit the transaction."""
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            self._translate(e)
        self._committed = True

    async def rollback(self) -> None:
        """Roll back the transaction."""
        await self._session.rollback()

    @staticmethod
    def _translate(exc: BaseException) -> None:
        if isinstance(exc, StaleDataError):
            raise ConflictException("Incident", details={"error": str(exc)}) from exc
        if isinstance(exc, SQLAlchemyError):
            raise RepositoryException(
                "Database operation failed",
                details={"error": str(exc), "error_type": type(exc).__name__}
            ) from exc
