"""
Incident Lifecycle
==================

The guarded incident state machine.

Validates transitions against the transition table, enforces the
per-target preconditions ("gates") that need no I/O, and applies the
SLA pause/resume side effects of a transition to an Incident.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from src.config import (
    ACTIVE_STATUSES,
    IncidentStatus,
    LEGACY_STATUS_ALIASES,
)
from src.core import IllegalTransitionException, InvalidStateException
from src.incidents.domain.entities import Incident, Metadata
from src.sla.domain import SLAClock


S = IncidentStatus

TRANSITION_TABLE: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    S.NEW: frozenset({S.ASSIGNED, S.IN_PROGRESS, S.CANCELLED, S.ESCALATED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS, S.PENDING, S.RESOLVED, S.CANCELLED, S.ESCALATED}),
    S.IN_PROGRESS: frozenset({S.PENDING, S.RESOLVED, S.CANCELLED, S.ESCALATED}),
    S.PENDING: frozenset({S.IN_PROGRESS, S.RESOLVED, S.CANCELLED, S.ESCALATED}),
    S.ESCALATED: frozenset({S.ASSIGNED, S.IN_PROGRESS, S.PENDING, S.RESOLVED, S.CANCELLED}),
    S.RESOLVED: frozenset({S.CLOSED, S.IN_PROGRESS}),
    S.CLOSED: frozenset(),
    S.CANCELLED: frozenset(),
}


class IncidentLifecycle:
    """
    Pure functions for incident state transitions.

    Stateless utility class. Gates that need the directory or the
    workflow engine are checked by IncidentService before calling
    ``apply``.
    """

    @staticmethod
    def normalize_status(value: Optional[str]) -> IncidentStatus:
        """
        Map a raw status value onto the lifecycle.

        The legacy ``open`` value maps to ``assigned``; anything else
        outside the set raises InvalidStateException.
        """
        raw = str(getattr(value, "value", value) or "").strip().lower()

        if raw in LEGACY_STATUS_ALIASES:
            return LEGACY_STATUS_ALIASES[raw]

        try:
            return IncidentStatus(raw)
        except ValueError:
            raise InvalidStateException(value)

    @staticmethod
    def allowed_targets(status: IncidentStatus) -> FrozenSet[IncidentStatus]:
        return TRANSITION_TABLE[status]

    @staticmethod
    def is_noop(current: IncidentStatus, target: IncidentStatus) -> bool:
        return current == target

    @staticmethod
    def ensure_transition_allowed(current: IncidentStatus, target: IncidentStatus) -> None:
        """Raise IllegalTransitionException unless target is in table[current]."""
        if target not in TRANSITION_TABLE[current]:
            raise IllegalTransitionException(
                f"Invalid transition from {current.value} to {target.value}",
                from_status=current.value,
                to_status=target.value,
            )

    @staticmethod
    def check_gates(
        incident: Incident,
        current: IncidentStatus,
        target: IncidentStatus,
        assignee_id: Optional[str] = None,
        team_id: Optional[str] = None,
        pending_reason: Optional[str] = None,
        resolution_summary: Optional[str] = None,
        closure_code: Optional[str] = None,
        reason: Optional[str] = None
    ) -> None:
        """
        Check the field preconditions of entering ``target``.

        Raises:
            IllegalTransitionException: If a required field is missing
        """
        def fail(message: str) -> None:
            raise IllegalTransitionException(
                message, from_status=current.value, to_status=target.value
            )

        if target in ACTIVE_STATUSES:
            effective_assignee = assignee_id or incident.assignee_id
            effective_team = team_id or incident.team_id
            if not effective_assignee and not effective_team:
                fail(f"Transition to {target.value} requires an assignee or team ownership")

        if target == S.PENDING and not _present(pending_reason):
            fail("Transition to pending requires pending_reason")

        if target == S.RESOLVED and not _present(resolution_summary):
            fail("Transition to resolved requires resolution_summary")

        if target == S.CLOSED:
            if current != S.RESOLVED:
                fail("Only resolved incidents can be closed")
            if not _present(closure_code):
                fail("Transition to closed requires closure_code")

        if target == S.CANCELLED and not _present(reason):
            fail("Transition to cancelled requires reason")

    @staticmethod
    def apply(
        incident: Incident,
        current: IncidentStatus,
        target: IncidentStatus,
        now: datetime,
        assignee_id: Optional[str] = None,
        team_id: Optional[str] = None,
        pending_reason: Optional[str] = None,
        on_hold_until: Optional[datetime] = None,
        problem_id: Optional[str] = None
    ) -> None:
        """
        Apply the side effects of ``current -> target`` to the incident.

        Leaving pending shifts every unmet deadline by the paused minutes
        before any SLA stamp of this transition is evaluated, so stamps
        compare against the pause-adjusted deadlines.
        """
        if target == S.PENDING:
            incident.on_hold_reason = pending_reason
            incident.on_hold_until = on_hold_until
            if incident.sla_paused_at is None:
                incident.sla_paused_at = now
        else:
            if current == S.PENDING and incident.sla_paused_at is not None:
                IncidentLifecycle.resume_sla(incident, now)
            incident.clear_hold()
            incident.sla_paused_at = None

        # First response
        if target in ACTIVE_STATUSES and incident.sla_response_at is None:
            incident.sla_response_at = now
            if incident.sla_response_due is not None:
                incident.sla_response_met = now <= incident.sla_response_due

        if assignee_id:
            incident.assignee_id = assignee_id
        if team_id:
            incident.team_id = team_id
        if problem_id and target in (S.RESOLVED, S.CLOSED):
            incident.problem_id = problem_id

        if target == S.RESOLVED:
            incident.resolved_at = now
            if incident.sla_resolution_due is not None:
                incident.sla_resolution_met = now <= incident.sla_resolution_due

        # Reopen
        if current == S.RESOLVED and target == S.IN_PROGRESS:
            incident.resolved_at = None
            incident.closed_at = None
            incident.sla_resolution_met = None

        if target in (S.CLOSED, S.CANCELLED):
            incident.closed_at = now

        incident.status = target.value
        incident.updated_at = now

    @staticmethod
    def resume_sla(incident: Incident, now: datetime) -> int:
        """
        Account for a pause that ends at ``now``.

        Shifts the response deadline if no response has been stamped and
        the resolution deadline if the incident is not resolved, then adds
        the paused minutes to the running total.

        Returns:
            The paused minutes accounted
        """
        if incident.sla_paused_at is None:
            return 0

        paused_minutes = SLAClock.diff_minutes(incident.sla_paused_at, now)
        if paused_minutes > 0:
            if incident.sla_response_due is not None and incident.sla_response_at is None:
                incident.sla_response_due = SLAClock.add_minutes(
                    incident.sla_response_due, paused_minutes
                )
            if incident.sla_resolution_due is not None and incident.resolved_at is None:
                incident.sla_resolution_due = SLAClock.add_minutes(
                    incident.sla_resolution_due, paused_minutes
                )
            incident.sla_total_paused_mins = (incident.sla_total_paused_mins or 0) + paused_minutes

        incident.sla_paused_at = None
        return paused_minutes

    @staticmethod
    def clean_metadata(metadata: Optional[Dict[str, Any]]) -> Metadata:
        """Drop absent (None) entries from a metadata map."""
        if not metadata:
            return {}
        return {key: value for key, value in metadata.items() if value is not None}


def _present(value: Optional[str]) -> bool:
    return bool(value and str(value).strip())
