"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain value objects and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (lookups), not concrete implementations
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from src.config import IncidentStatus, SLAState, SLAType
from src.incidents.domain.entities import Incident
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import (
    IncidentSLAStatus,
    SLAClock,
    SLAClockStatus,
    SLAConfig,
    SLADeadlines,
    SLAPolicy,
)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLAPolicyLookup(ABC):
    """Interface for organization SLA policy access."""

    @abstractmethod
    async def get_active_policy(self, organization_id: str, priority: str) -> Optional[SLAPolicy]:
        """Get the active policy for an organization and priority, if any."""


class ISLAConfigProvider(ABC):
    """Interface for SLA configuration access."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


# ========== Application Services ==========

class SLAService:
    """
    Service for SLA deadline resolution and status evaluation.

    Coordinates between the SLA clock and the policy/config sources.
    """

    def __init__(
        self,
        policy_lookup: ISLAPolicyLookup,
        config_provider: ISLAConfigProvider,
        logger: Optional[logging.Logger] = None
    ):
        self._policy_lookup = policy_lookup
        self._config_provider = config_provider
        self._logger = logger or get_logger(__name__)

    async def resolve_incident_sla(
        self,
        organization_id: str,
        priority: str,
        created_at: datetime
    ) -> SLADeadlines:
        """
        Calculate the response and resolution deadlines for a new incident.

        Uses the organization's active policy for the priority when one
        exists (honouring its business_hours_only flag); otherwise the
        configured default targets, always business-hours aware.

        Args:
            organization_id: Tenant
            priority: Incident priority
            created_at: Clock start

        Returns:
            SLADeadlines
        """
        config = self._config_provider.get_config()
        calendar = config.calendar_for(organization_id)
        priority_key = str(getattr(priority, "value", priority)).lower()

        policy = await self._policy_lookup.get_active_policy(organization_id, priority_key)
        if policy is not None:
            return SLADeadlines(
                response_due=SLAClock.calculate_deadline(
                    created_at, policy.response_time_mins, policy.business_hours_only, calendar
                ),
                resolution_due=SLAClock.calculate_deadline(
                    created_at, policy.resolution_time_mins, policy.business_hours_only, calendar
                ),
                policy_id=policy.id,
                business_hours_only=policy.business_hours_only,
            )

        response_mins, resolution_mins = config.get_targets(priority_key)
        self._logger.debug(
            "No active SLA policy, using default targets",
            extra={
                "organization_id": organization_id,
                "priority": priority_key,
                "response_mins": response_mins,
                "resolution_mins": resolution_mins,
            }
        )
        return SLADeadlines(
            response_due=SLAClock.calculate_deadline(created_at, response_mins, True, calendar),
            resolution_due=SLAClock.calculate_deadline(created_at, resolution_mins, True, calendar),
        )

    def evaluate(self, incident: Incident, current_time: datetime) -> IncidentSLAStatus:
        """
        Evaluate both SLA clocks of an incident.

        Args:
            incident: Incident entity
            current_time: Evaluation time

        Returns:
            IncidentSLAStatus
        """
        paused = (
            incident.status == IncidentStatus.PENDING.value and incident.sla_paused_at is not None
        )
        paused_at = incident.sla_paused_at if paused else None

        response = self._evaluate_clock(
            SLAType.RESPONSE,
            deadline=incident.sla_response_due,
            met_at=incident.sla_response_at,
            met=incident.sla_response_met,
            paused_at=paused_at,
            stopped_at=incident.closed_at,
            current_time=current_time,
        )
        resolution = self._evaluate_clock(
            SLAType.RESOLUTION,
            deadline=incident.sla_resolution_due,
            met_at=incident.resolved_at,
            met=incident.sla_resolution_met,
            paused_at=paused_at,
            stopped_at=incident.closed_at,
            current_time=current_time,
        )

        return IncidentSLAStatus(
            incident_id=incident.id,
            response=response,
            resolution=resolution,
            paused=paused,
            total_paused_minutes=incident.sla_total_paused_mins or 0,
        )

    @staticmethod
    def _evaluate_clock(
        sla_type: SLAType,
        deadline: Optional[datetime],
        met_at: Optional[datetime],
        met: Optional[bool],
        paused_at: Optional[datetime],
        stopped_at: Optional[datetime],
        current_time: datetime
    ) -> SLAClockStatus:
        """Determine the state of a single clock."""
        if deadline is None:
            return SLAClockStatus(sla_type=sla_type, state=SLAState.ON_TRACK, met=met)

        # Clock already stamped
        if met_at is not None:
            state = SLAState.BREACHED if met is False else SLAState.MET
            return SLAClockStatus(sla_type=sla_type, state=state, deadline=deadline, met=met)

        # Clock stopped without being met (e.g. cancelled)
        if stopped_at is not None:
            state = (
                SLAState.BREACHED if SLAClock.is_breached(deadline, stopped_at) else SLAState.STOPPED
            )
            return SLAClockStatus(sla_type=sla_type, state=state, deadline=deadline, met=met)

        if paused_at is not None:
            state = (
                SLAState.BREACHED if SLAClock.is_breached(deadline, paused_at) else SLAState.PAUSED
            )
            return SLAClockStatus(
                sla_type=sla_type,
                state=state,
                deadline=deadline,
                met=met,
                remaining_seconds=max(0.0, (deadline - paused_at).total_seconds()),
            )

        return SLAClockStatus(
            sla_type=sla_type,
            state=SLAClock.classify(deadline, current_time),
            deadline=deadline,
            met=met,
            remaining_seconds=max(0.0, (deadline - current_time).total_seconds()),
        )
