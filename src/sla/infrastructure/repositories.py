"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces.

This layer contains the data access logic - how we store and retrieve
SLA policies from the database and the SLA configuration from YAML.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core import ConfigurationException, RepositoryException
from src.shared.infrastructure.logging import get_logger
from src.sla.application import ISLAConfigProvider, ISLAPolicyLookup
from src.sla.domain import SLAConfig, SLAPolicy
from src.sla.infrastructure.models import SLAPolicyModel


class SQLAlchemySLAPolicyLookup(ISLAPolicyLookup):
    """
    SQLAlchemy implementation of the SLA policy lookup.

    Read-only; opens a short-lived session per lookup.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_active_policy(self, organization_id: str, priority: str) -> Optional[SLAPolicy]:
        """Get the most recently created active policy for the priority."""
        stmt = (
            select(SLAPolicyModel)
            .where(
                SLAPolicyModel.organization_id == organization_id,
                SLAPolicyModel.priority == str(priority).lower(),
                SLAPolicyModel.is_active.is_(True),
            )
            .order_by(SLAPolicyModel.created_at.desc())
            .limit(1)
        )

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to load SLA policy",
                details={"organization_id": organization_id, "error": str(e)}
            ) from e

        if model is None:
            return None

        return SLAPolicy(
            id=str(model.id),
            organization_id=model.organization_id,
            priority=model.priority,
            response_time_mins=model.response_time_mins,
            resolution_time_mins=model.resolution_time_mins,
            business_hours_only=model.business_hours_only,
            is_active=model.is_active,
            name=model.name,
        )


class YAMLConfigProvider(ISLAConfigProvider):
    """
    SLA configuration provider that loads from YAML.

    A missing file yields the default configuration. ``reload()`` may be
    called from a file-watcher thread.
    """

    def __init__(self, config_path: Union[str, Path], logger: Optional[logging.Logger] = None):
        self._config_path = Path(config_path)
        self._logger = logger or get_logger(__name__)
        self._config: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._load_config()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            self._logger.info(
                "SLA config file not found, using defaults",
                extra={"config_path": str(self._config_path)}
            )
            with self._lock:
                self._config = SLAConfig()
            return

        try:
            with open(self._config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            config = SLAConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid SLA configuration in {self._config_path}",
                details={"error": str(e)}
            ) from e

        with self._lock:
            self._config = config
        self._logger.info(
            "SLA config loaded",
            extra={
                "config_path": str(self._config_path),
                "organization_calendars": len(config.organization_calendars),
            }
        )

    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""
        with self._lock:
            return self._config

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()
