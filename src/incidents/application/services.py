"""
Incident Application Services
=============================

Application services orchestrate business logic and coordinate between
domain services and repositories.

Following SOLID principles:
- Single Responsibility: IncidentService owns the incident use cases,
  IncidentLifecycle and DuplicateDetector own the rules
- Dependency Inversion: Depend on abstractions (unit of work, directory,
  workflow gateway, activity sink), not concrete implementations
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from src.config import (
    CLOSURE_CODES,
    DEFAULT_MERGE_REASON,
    DUPLICATE_TAG,
    IncidentStatus,
    MAJOR_INCIDENT_TAG,
    PENDING_REASONS,
    Priority,
    VALID_CHANNELS,
    VALID_PRIORITIES,
    VALID_STATUSES,
    settings,
)
from src.core import (
    IllegalTransitionException,
    ResourceNotFoundException,
    ValidationException,
)
from src.incidents.application.dto import (
    DuplicateSearchResult,
    IncidentCreateDTO,
    IncidentOptions,
    IncidentUpdateDTO,
    MergeResult,
    TransitionRequestDTO,
)
from src.incidents.domain import (
    ActivityRecord,
    AuditLogEntry,
    Comment,
    DuplicateDetector,
    Incident,
    IncidentLifecycle,
    Metadata,
    TRANSITION_TABLE,
    TimelineEntry,
)
from src.shared.infrastructure.logging import get_logger, log_latency
from src.sla.application import SLAService
from src.sla.domain import IncidentSLAStatus, PriorityClassifier


CASE_TYPE = "incident"
TICKET_PREFIX = "INC"


# ========== Repository Interfaces (Dependency Inversion) ==========

class IIncidentRepository(ABC):
    """Interface for tenant-scoped incident persistence."""

    @abstractmethod
    async def get(
        self,
        organization_id: str,
        incident_id: str,
        for_update: bool = False
    ) -> Optional[Incident]:
        """Get incident by ID within a tenant, optionally locking the row."""

    @abstractmethod
    async def get_many(
        self,
        organization_id: str,
        incident_ids: Sequence[str],
        for_update: bool = False
    ) -> List[Incident]:
        """Get the incidents of a tenant among the given IDs."""

    @abstractmethod
    async def add(self, incident: Incident) -> Incident:
        """Persist a new incident."""

    @abstractmethod
    async def save(self, incident: Incident) -> Incident:
        """Write back a modified incident; bumps its version."""

    @abstractmethod
    async def list_recent_open(
        self,
        organization_id: str,
        exclude_id: Optional[str],
        limit: int
    ) -> List[Incident]:
        """Most recently created non-terminal incidents of a tenant."""


class ITimelineRepository(ABC):
    """Interface for the append-only incident timeline."""

    @abstractmethod
    async def append(self, entry: TimelineEntry) -> TimelineEntry:
        """Append a timeline entry."""

    @abstractmethod
    async def list_for_incident(self, incident_id: str) -> List[TimelineEntry]:
        """Entries of one incident, oldest first."""


class IAuditLogRepository(ABC):
    """Interface for audit log persistence."""

    @abstractmethod
    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an audit entry."""

    @abstractmethod
    async def list_for_resource(self, organization_id: str, resource_id: str) -> List[AuditLogEntry]:
        """Audit entries for one resource, oldest first."""


class ICommentRepository(ABC):
    """Interface for incident comments."""

    @abstractmethod
    async def add(self, comment: Comment) -> Comment:
        """Persist a comment, returning it with its ID."""

    @abstractmethod
    async def list_for_incident(self, incident_id: str) -> List[Comment]:
        """Comments of one incident, oldest first."""


class ITicketNumberRepository(ABC):
    """Interface for per-tenant ticket number allocation."""

    @abstractmethod
    async def allocate(self, organization_id: str, prefix: str) -> str:
        """Allocate the next ticket number, e.g. ``INC-000001``."""


class IUnitOfWork(ABC):
    """
    Transactional scope spanning every write of one operation.

    Used as an async context manager; leaving the block without
    ``commit()`` (or with an exception) rolls everything back.
    """

    incidents: IIncidentRepository
    timeline: ITimelineRepository
    audit_log: IAuditLogRepository
    comments: ICommentRepository
    ticket_numbers: ITicketNumberRepository

    @abstractmethod
    async def __aenter__(self) -> "IUnitOfWork":
        """Open the transaction."""

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Roll back unless committed."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Roll back the transaction."""


class IDirectory(ABC):
    """Interface for tenant user/team/configuration-item lookups."""

    @abstractmethod
    async def user_exists(self, organization_id: str, user_id: str) -> bool:
        """Check a user belongs to the tenant."""

    @abstractmethod
    async def team_exists(self, organization_id: str, team_id: str) -> bool:
        """Check a team belongs to the tenant."""

    @abstractmethod
    async def existing_configuration_items(
        self,
        organization_id: str,
        configuration_item_ids: Sequence[str]
    ) -> List[str]:
        """Return the subset of IDs that exist in the tenant."""


class IWorkflowGateway(ABC):
    """Interface for the workflow/task engine."""

    @abstractmethod
    async def count_open_tasks(self, organization_id: str, incident_id: str) -> int:
        """Count open workflow tasks correlated with an incident."""

    @abstractmethod
    async def auto_assign(
        self,
        organization_id: str,
        actor_id: str,
        incident: Incident
    ) -> Optional[Dict[str, str]]:
        """
        Attach a workflow template to a new incident.

        Returns:
            ``{"id": ..., "template_id": ...}`` of the started workflow, or
            None when no template matched
        """


class IActivitySink(ABC):
    """Interface for the activity feed."""

    @abstractmethod
    async def publish(self, record: ActivityRecord) -> None:
        """Publish an activity record."""


# ========== Side-channel failure reporting ==========

@dataclass(frozen=True)
class SideChannelFailure:
    """A best-effort side channel that failed without aborting its operation."""
    channel: str
    operation: str
    incident_id: Optional[str]
    error: Exception


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========== Application Services ==========

class IncidentService:
    """
    Service for the incident lifecycle.

    Every mutating operation runs its writes inside one unit of work.
    Activity publishing and workflow auto-assignment are best-effort:
    their failures are logged and handed to ``error_reporter``.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        sla_service: SLAService,
        directory: IDirectory,
        workflow: IWorkflowGateway,
        activity_sink: IActivitySink,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
        error_reporter: Optional[Callable[[SideChannelFailure], None]] = None,
        duplicate_candidate_window: Optional[int] = None,
        duplicate_min_score: Optional[float] = None,
        duplicate_max_limit: Optional[int] = None
    ):
        self._uow_factory = uow_factory
        self._sla_service = sla_service
        self._directory = directory
        self._workflow = workflow
        self._activity_sink = activity_sink
        self._clock = clock or _utcnow
        self._logger = logger or get_logger(__name__)
        self._error_reporter = error_reporter
        self._candidate_window = duplicate_candidate_window or settings.duplicate_candidate_window
        self._min_score = (
            settings.duplicate_min_score if duplicate_min_score is None else duplicate_min_score
        )
        self._max_limit = duplicate_max_limit or settings.duplicate_max_limit

    # ========== Create ==========

    async def create_incident(
        self,
        organization_id: str,
        reporter_id: str,
        draft: IncidentCreateDTO
    ) -> Incident:
        """
        Create an incident in ``new``.

        Priority comes from the impact x urgency matrix when both are
        given, else the explicit priority, else medium.

        Raises:
            ResourceNotFoundException: If the assignee, team or a configuration
                item is unknown
        """
        now = self._clock()

        if draft.impact and draft.urgency:
            priority = PriorityClassifier.calculate_priority(draft.impact, draft.urgency).value
        else:
            priority = draft.priority or Priority.MEDIUM.value

        await self._check_ownership(organization_id, draft.assignee_id, draft.team_id)
        configuration_item_ids = await self._validate_configuration_items(
            organization_id, draft.configuration_item_ids
        )
        deadlines = await self._sla_service.resolve_incident_sla(organization_id, priority, now)

        tags = list(draft.tags)
        if draft.is_major_incident and MAJOR_INCIDENT_TAG not in tags:
            tags.append(MAJOR_INCIDENT_TAG)

        with log_latency(self._logger, "incident.create", organization_id=organization_id):
            async with self._uow_factory() as uow:
                ticket_number = await uow.ticket_numbers.allocate(organization_id, TICKET_PREFIX)
                incident = Incident(
                    id=str(uuid4()),
                    organization_id=organization_id,
                    ticket_number=ticket_number,
                    title=draft.title,
                    description=draft.description,
                    reporter_id=reporter_id,
                    created_at=now,
                    updated_at=now,
                    status=IncidentStatus.NEW.value,
                    priority=priority,
                    impact=draft.impact or Priority.MEDIUM.value,
                    urgency=draft.urgency or Priority.MEDIUM.value,
                    channel=draft.channel,
                    category_id=draft.category_id,
                    tags=tags,
                    due_at=draft.due_at,
                    assignee_id=draft.assignee_id,
                    team_id=draft.team_id,
                    sla_policy_id=deadlines.policy_id,
                    sla_response_due=deadlines.response_due,
                    sla_resolution_due=deadlines.resolution_due,
                    configuration_item_ids=configuration_item_ids,
                    problem_id=draft.problem_id,
                    change_request_id=draft.change_request_id,
                )
                incident = await uow.incidents.add(incident)
                await uow.timeline.append(TimelineEntry(
                    incident_id=incident.id,
                    action="created",
                    new_value=incident.status,
                    actor_id=reporter_id,
                    metadata={"case_type": CASE_TYPE},
                    created_at=now,
                ))
                await uow.commit()

        self._logger.info(
            "Incident created",
            extra={
                "organization_id": organization_id,
                "incident_id": incident.id,
                "ticket_number": incident.ticket_number,
                "priority": incident.priority,
                "reporter_id": reporter_id,
            }
        )

        await self._publish(
            ActivityRecord(
                organization_id=organization_id,
                entity_id=incident.id,
                action="created",
                actor_id=reporter_id,
                title=f"Incident {incident.ticket_number} created: {incident.title}",
                description=incident.description,
                metadata=IncidentLifecycle.clean_metadata({
                    "priority": priority,
                    "impact": draft.impact,
                    "urgency": draft.urgency,
                }),
            ),
            operation="create_incident",
        )
        await self._auto_assign_workflow(organization_id, reporter_id, incident)

        return incident

    async def _auto_assign_workflow(
        self,
        organization_id: str,
        reporter_id: str,
        incident: Incident
    ) -> None:
        """Best-effort workflow auto-assignment for a new incident."""
        try:
            workflow = await self._workflow.auto_assign(organization_id, reporter_id, incident)
            if not workflow:
                return

            async with self._uow_factory() as uow:
                await uow.timeline.append(TimelineEntry(
                    incident_id=incident.id,
                    action="workflow_auto_assigned",
                    new_value=workflow.get("id"),
                    actor_id=reporter_id,
                    metadata=IncidentLifecycle.clean_metadata({
                        "case_type": CASE_TYPE,
                        "workflow_id": workflow.get("id"),
                        "workflow_template_id": workflow.get("template_id"),
                    }),
                    created_at=self._clock(),
                ))
                await uow.commit()
        except Exception as e:
            self._report_failure("workflow", "auto_assign", incident.id, e)

    # ========== Transition ==========

    async def transition(
        self,
        organization_id: str,
        incident_id: str,
        actor_id: str,
        details: TransitionRequestDTO
    ) -> Incident:
        """
        Move an incident to another status.

        The incident row is locked for the duration of the unit of work,
        so gates are evaluated against the state that is written back.

        Raises:
            ResourceNotFoundException: Unknown incident, assignee or team
            InvalidStateException: Unknown current or target status
            IllegalTransitionException: Transition or gate not satisfied
            ConflictException: Concurrent modification detected
        """
        with log_latency(self._logger, "incident.transition", incident_id=incident_id):
            async with self._uow_factory() as uow:
                incident = await self._get_or_raise(uow, organization_id, incident_id, for_update=True)

                current = IncidentLifecycle.normalize_status(incident.status)
                target = IncidentLifecycle.normalize_status(details.to_status)

                if IncidentLifecycle.is_noop(current, target):
                    return incident

                IncidentLifecycle.ensure_transition_allowed(current, target)
                IncidentLifecycle.check_gates(
                    incident,
                    current,
                    target,
                    assignee_id=details.assignee_id,
                    team_id=details.team_id,
                    pending_reason=details.pending_reason,
                    resolution_summary=details.resolution_summary,
                    closure_code=details.closure_code,
                    reason=details.reason,
                )
                await self._check_ownership(organization_id, details.assignee_id, details.team_id)
                if target == IncidentStatus.RESOLVED:
                    open_tasks = await self._workflow.count_open_tasks(organization_id, incident.id)
                    if open_tasks > 0:
                        raise IllegalTransitionException(
                            "Correlated workflow tasks must complete first",
                            from_status=current.value,
                            to_status=target.value,
                            details={"open_tasks": open_tasks},
                        )

                now = self._clock()
                previous = {
                    "status": current.value,
                    "assignee_id": incident.assignee_id,
                    "team_id": incident.team_id,
                    "priority": incident.priority,
                }

                IncidentLifecycle.apply(
                    incident,
                    current,
                    target,
                    now,
                    assignee_id=details.assignee_id,
                    team_id=details.team_id,
                    pending_reason=details.pending_reason,
                    on_hold_until=details.on_hold_until,
                    problem_id=details.problem_id,
                )
                incident = await uow.incidents.save(incident)

                metadata = IncidentLifecycle.clean_metadata({
                    "case_type": CASE_TYPE,
                    "transition_from": current.value,
                    "transition_to": target.value,
                    "reason": details.reason,
                    "comment": details.comment,
                    "pending_reason": details.pending_reason,
                    "resolution_summary": details.resolution_summary,
                    "closure_code": details.closure_code,
                    "problem_id": details.problem_id,
                    "knowledge_article_id": details.knowledge_article_id,
                    "sla_paused_at": now.isoformat() if target == IncidentStatus.PENDING else None,
                    **details.metadata,
                })

                await uow.timeline.append(TimelineEntry(
                    incident_id=incident.id,
                    action="status_transition",
                    previous_value=current.value,
                    new_value=target.value,
                    actor_id=actor_id,
                    metadata=metadata,
                    created_at=now,
                ))
                await uow.audit_log.append(AuditLogEntry(
                    organization_id=organization_id,
                    actor_id=actor_id,
                    action="incident_transition",
                    resource_id=incident.id,
                    previous_value=previous,
                    new_value={"status": target.value},
                    metadata=metadata,
                    correlation_id=f"incident-transition-{incident.id}-{uuid4().hex[:12]}",
                    created_at=now,
                ))
                await uow.commit()

        self._logger.info(
            "Incident transitioned",
            extra={
                "organization_id": organization_id,
                "incident_id": incident.id,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": actor_id,
            }
        )

        await self._publish(
            ActivityRecord(
                organization_id=organization_id,
                entity_id=incident.id,
                action="transitioned",
                actor_id=actor_id,
                title=f"Incident {incident.display_ref} transitioned",
                description=f"{current.value} -> {target.value}",
                metadata=metadata,
            ),
            operation="transition",
        )
        return incident

    # ========== Comments ==========

    async def add_comment(
        self,
        organization_id: str,
        incident_id: str,
        actor_id: str,
        content: str,
        is_internal: bool = False
    ) -> Comment:
        """
        Add a comment to an incident.

        Raises:
            ResourceNotFoundException: Unknown incident
            ValidationException: Blank content
        """
        async with self._uow_factory() as uow:
            incident = await self._get_or_raise(uow, organization_id, incident_id)

            if not content or not content.strip():
                raise ValidationException("Comment content is required")

            now = self._clock()
            comment = await uow.comments.add(Comment(
                id=None,
                incident_id=incident.id,
                author_id=actor_id,
                content=content,
                is_internal=is_internal,
                created_at=now,
            ))
            metadata = {
                "case_type": CASE_TYPE,
                "comment_id": comment.id,
                "is_internal": is_internal,
            }
            await uow.timeline.append(TimelineEntry(
                incident_id=incident.id,
                action="comment_added",
                new_value="internal" if is_internal else "public",
                actor_id=actor_id,
                metadata=metadata,
                created_at=now,
            ))
            await uow.commit()

        self._logger.info(
            "Comment added",
            extra={
                "incident_id": incident.id,
                "comment_id": comment.id,
                "is_internal": is_internal,
            }
        )

        await self._publish(
            ActivityRecord(
                organization_id=organization_id,
                entity_id=incident.id,
                action="commented",
                actor_id=actor_id,
                title=f"Comment added to {incident.display_ref}",
                description=comment.content[:140],
                metadata=metadata,
            ),
            operation="add_comment",
        )
        return comment

    # ========== Duplicates ==========

    async def find_potential_duplicates(
        self,
        organization_id: str,
        incident_id: str,
        limit: int = 5
    ) -> DuplicateSearchResult:
        """
        Rank recent open incidents of the tenant by similarity.

        Raises:
            ValidationException: limit outside 1..duplicate_max_limit
            ResourceNotFoundException: Unknown incident
        """
        if not 1 <= limit <= self._max_limit:
            raise ValidationException(
                f"limit must be between 1 and {self._max_limit}",
                details={"limit": limit}
            )

        async with self._uow_factory() as uow:
            source = await self._get_or_raise(uow, organization_id, incident_id)
            pool = await uow.incidents.list_recent_open(
                organization_id, exclude_id=source.id, limit=self._candidate_window
            )

        duplicates = DuplicateDetector.rank(source, pool, limit, min_score=self._min_score)
        return DuplicateSearchResult(target=source, duplicates=duplicates)

    async def merge_incidents(
        self,
        organization_id: str,
        actor_id: str,
        target_id: str,
        source_ids: Sequence[str],
        reason: Optional[str] = None
    ) -> MergeResult:
        """
        Merge duplicate incidents into a target.

        Every source is cancelled, tagged ``duplicate`` and linked to the
        target through the timeline. All-or-nothing.

        Raises:
            ValidationException: No source other than the target
            ResourceNotFoundException: Any ID unknown in the tenant
            IllegalTransitionException: Target (or a source) already closed/cancelled
        """
        sources = list(dict.fromkeys(i for i in source_ids if i and i != target_id))
        if not sources:
            raise ValidationException("At least one source incident is required")

        merge_reason = reason or DEFAULT_MERGE_REASON

        with log_latency(self._logger, "incident.merge", incident_id=target_id):
            async with self._uow_factory() as uow:
                found = await uow.incidents.get_many(
                    organization_id, [target_id, *sources], for_update=True
                )
                by_id = {incident.id: incident for incident in found}

                missing = [i for i in [target_id, *sources] if i not in by_id]
                if missing:
                    raise ResourceNotFoundException(
                        "Incident",
                        ", ".join(missing),
                        details={"missing_ids": missing}
                    )

                target = by_id[target_id]
                if target.is_terminal:
                    raise IllegalTransitionException(
                        "Target incident must be active to accept merged incidents",
                        from_status=target.status,
                        details={"target_incident_id": target_id},
                    )

                terminal_sources = [i for i in sources if by_id[i].is_terminal]
                if terminal_sources:
                    raise IllegalTransitionException(
                        "Closed or cancelled incidents cannot be merged",
                        to_status=IncidentStatus.CANCELLED.value,
                        details={"source_incident_ids": terminal_sources},
                    )

                now = self._clock()
                for source_id in sources:
                    source = by_id[source_id]
                    previous_status = source.status

                    if source.sla_paused_at is not None:
                        IncidentLifecycle.resume_sla(source, now)
                    source.status = IncidentStatus.CANCELLED.value
                    source.closed_at = now
                    source.add_tag(DUPLICATE_TAG)
                    source.clear_hold()
                    source.updated_at = now
                    await uow.incidents.save(source)

                    await uow.timeline.append(TimelineEntry(
                        incident_id=source.id,
                        action="merged_into",
                        previous_value=previous_status,
                        new_value=IncidentStatus.CANCELLED.value,
                        actor_id=actor_id,
                        metadata={
                            "case_type": CASE_TYPE,
                            "target_incident_id": target_id,
                            "reason": merge_reason,
                        },
                        created_at=now,
                    ))

                await uow.timeline.append(TimelineEntry(
                    incident_id=target_id,
                    action="merged_from",
                    actor_id=actor_id,
                    metadata={
                        "case_type": CASE_TYPE,
                        "source_incident_ids": list(sources),
                        "reason": merge_reason,
                    },
                    created_at=now,
                ))
                await uow.audit_log.append(AuditLogEntry(
                    organization_id=organization_id,
                    actor_id=actor_id,
                    action="incident_merge",
                    resource_id=target_id,
                    previous_value={"source_incident_ids": list(sources)},
                    new_value={"target_incident_id": target_id},
                    metadata={"reason": merge_reason},
                    correlation_id=f"incident-merge-{target_id}-{uuid4().hex[:12]}",
                    created_at=now,
                ))
                await uow.commit()

        self._logger.info(
            "Incidents merged",
            extra={
                "organization_id": organization_id,
                "target_incident_id": target_id,
                "source_incident_ids": sources,
                "actor_id": actor_id,
            }
        )

        await self._publish(
            ActivityRecord(
                organization_id=organization_id,
                entity_id=target_id,
                action="merged_duplicates",
                actor_id=actor_id,
                title=f"Merged {len(sources)} duplicate incident(s) into {target.display_ref}",
                description=reason or "Duplicate incident merge",
                metadata={"source_incident_ids": list(sources)},
            ),
            operation="merge_incidents",
        )

        return MergeResult(data=target, merged_count=len(sources), merged_incident_ids=sources)

    # ========== Update ==========

    async def update_incident(
        self,
        organization_id: str,
        incident_id: str,
        actor_id: str,
        changes: IncidentUpdateDTO
    ) -> Incident:
        """
        Update descriptive fields of an incident.

        Status only moves through ``transition``; a differing status is
        rejected. Changing priority does not recompute SLA deadlines.

        Raises:
            ResourceNotFoundException: Unknown incident, assignee, team or configuration item
            IllegalTransitionException: Status differs from the current one
        """
        async with self._uow_factory() as uow:
            incident = await self._get_or_raise(uow, organization_id, incident_id, for_update=True)

            if changes.status is not None:
                current = IncidentLifecycle.normalize_status(incident.status)
                requested = IncidentLifecycle.normalize_status(changes.status)
                if requested != current:
                    raise IllegalTransitionException(
                        "Direct status updates are disabled, use transition instead",
                        from_status=current.value,
                        to_status=requested.value,
                    )

            await self._check_ownership(organization_id, changes.assignee_id, changes.team_id)

            candidate = {
                "title": changes.title,
                "description": changes.description,
                "priority": changes.priority,
                "assignee_id": changes.assignee_id,
                "team_id": changes.team_id,
                "tags": changes.tags,
                "due_at": changes.due_at,
            }
            if changes.configuration_item_ids is not None:
                candidate["configuration_item_ids"] = await self._validate_configuration_items(
                    organization_id, changes.configuration_item_ids
                )

            changed_fields = []
            for name, value in candidate.items():
                if value is None and name != "configuration_item_ids":
                    continue
                if getattr(incident, name) != value:
                    setattr(incident, name, value)
                    changed_fields.append(name)

            if not changed_fields:
                return incident

            now = self._clock()
            incident.updated_at = now
            incident = await uow.incidents.save(incident)
            await uow.timeline.append(TimelineEntry(
                incident_id=incident.id,
                action="updated",
                actor_id=actor_id,
                metadata={"case_type": CASE_TYPE, "changed_fields": changed_fields},
                created_at=now,
            ))
            await uow.commit()

        self._logger.info(
            "Incident updated",
            extra={"incident_id": incident.id, "changed_fields": changed_fields}
        )
        return incident

    # ========== Reads ==========

    async def get_incident(self, organization_id: str, incident_id: str) -> Incident:
        """Get an incident within a tenant."""
        async with self._uow_factory() as uow:
            return await self._get_or_raise(uow, organization_id, incident_id)

    async def get_timeline(self, organization_id: str, incident_id: str) -> List[TimelineEntry]:
        """Get the timeline of an incident, oldest first."""
        async with self._uow_factory() as uow:
            incident = await self._get_or_raise(uow, organization_id, incident_id)
            return await uow.timeline.list_for_incident(incident.id)

    async def get_sla_status(self, organization_id: str, incident_id: str) -> IncidentSLAStatus:
        """Evaluate the SLA clocks of an incident now."""
        incident = await self.get_incident(organization_id, incident_id)
        return self._sla_service.evaluate(incident, self._clock())

    @staticmethod
    def options() -> IncidentOptions:
        """Choices for channel, pending reason, closure code and status."""
        return IncidentOptions(
            channels=list(VALID_CHANNELS),
            pending_reasons=list(PENDING_REASONS),
            closure_codes=list(CLOSURE_CODES),
            statuses=list(VALID_STATUSES),
            priorities=list(VALID_PRIORITIES),
            transitions={
                status.value: sorted(t.value for t in targets)
                for status, targets in TRANSITION_TABLE.items()
            },
        )

    # ========== Helpers ==========

    @staticmethod
    async def _get_or_raise(
        uow: IUnitOfWork,
        organization_id: str,
        incident_id: str,
        for_update: bool = False
    ) -> Incident:
        incident = await uow.incidents.get(organization_id, incident_id, for_update=for_update)
        if incident is None:
            raise ResourceNotFoundException("Incident", incident_id)
        return incident

    async def _check_ownership(
        self,
        organization_id: str,
        assignee_id: Optional[str],
        team_id: Optional[str]
    ) -> None:
        """Supplied assignee and team must exist in the tenant."""
        if assignee_id and not await self._directory.user_exists(organization_id, assignee_id):
            raise ResourceNotFoundException("Assignee", assignee_id)
        if team_id and not await self._directory.team_exists(organization_id, team_id):
            raise ResourceNotFoundException("Team", team_id)

    async def _validate_configuration_items(
        self,
        organization_id: str,
        configuration_item_ids: Sequence[str]
    ) -> List[str]:
        ids = list(dict.fromkeys(i for i in configuration_item_ids if i))
        if not ids:
            return []

        existing = set(await self._directory.existing_configuration_items(organization_id, ids))
        missing = [i for i in ids if i not in existing]
        if missing:
            raise ResourceNotFoundException(
                "ConfigurationItem",
                ", ".join(missing),
                details={"missing_ids": missing}
            )
        return ids

    async def _publish(self, record: ActivityRecord, operation: str) -> None:
        """Best-effort activity publishing."""
        try:
            await self._activity_sink.publish(record)
        except Exception as e:
            self._report_failure("activity", operation, record.entity_id, e)

    def _report_failure(
        self,
        channel: str,
        operation: str,
        incident_id: Optional[str],
        error: Exception
    ) -> None:
        self._logger.error(
            f"Side channel {channel} failed during {operation}: {error}",
            extra={
                "channel": channel,
                "operation": operation,
                "incident_id": incident_id,
                "error_type": type(error).__name__,
            }
        )
        if self._error_reporter is not None:
            self._error_reporter(SideChannelFailure(
                channel=channel,
                operation=operation,
                incident_id=incident_id,
                error=error,
            ))
