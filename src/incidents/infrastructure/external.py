"""
Incident External Service Integrations
======================================

Adapters for the collaborators the incident core consumes:
- Activity feed sink that writes structured log events
- Workflow gateway for deployments without a workflow engine
- In-memory tenant directory for local runs
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from src.incidents.application import IActivitySink, IDirectory, IWorkflowGateway
from src.incidents.domain import ActivityRecord, Incident
from src.shared.infrastructure.logging import get_logger


class LoggingActivitySink(IActivitySink):
    """Publishes activity records as structured log events."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or get_logger("activity")

    async def publish(self, record: ActivityRecord) -> None:
        """Write the record at INFO."""
        self._logger.info(
            record.title,
            extra={
                "organization_id": record.organization_id,
                "entity_type": record.entity_type,
                "entity_id": record.entity_id,
                "action": record.action,
                "actor_id": record.actor_id,
                "description": record.description,
                "activity_metadata": record.metadata,
            }
        )


class NullWorkflowGateway(IWorkflowGateway):
    """Workflow gateway with no engine behind it: no tasks, no templates."""

    async def count_open_tasks(self, organization_id: str, incident_id: str) -> int:
        return 0

    async def auto_assign(
        self,
        organization_id: str,
        actor_id: str,
        incident: Incident
    ) -> Optional[Dict[str, str]]:
        return None


class InMemoryDirectory(IDirectory):
    """
    Tenant directory held in memory.

    Maps organization id -> known user, team and configuration item ids.
    """

    def __init__(self):
        self._users: Dict[str, Set[str]] = {}
        self._teams: Dict[str, Set[str]] = {}
        self._configuration_items: Dict[str, Set[str]] = {}

    def add_users(self, organization_id: str, user_ids: Iterable[str]) -> None:
        self._users.setdefault(organization_id, set()).update(user_ids)

    def add_teams(self, organization_id: str, team_ids: Iterable[str]) -> None:
        self._teams.setdefault(organization_id, set()).update(team_ids)

    def add_configuration_items(self, organization_id: str, item_ids: Iterable[str]) -> None:
        self._configuration_items.setdefault(organization_id, set()).update(item_ids)

    async def user_exists(self, organization_id: str, user_id: str) -> bool:
        return user_id in self._users.get(organization_id, set())

    async def team_exists(self, organization_id: str, team_id: str) -> bool:
        return team_id in self._teams.get(organization_id, set())

    async def existing_configuration_items(
        self,
        organization_id: str,
        configuration_item_ids: Sequence[str]
    ) -> List[str]:
        known = self._configuration_items.get(organization_id, set())
        return [i for i in configuration_item_ids if i in known]
