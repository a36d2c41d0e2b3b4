"""
Incident Service - Composition Root
===================================

Incident lifecycle and SLA core.

Modules:
- SLA: Priority matrix, business-hours deadlines, SLA status
- Incidents: Guarded lifecycle, timeline/audit, duplicate detection and merge

Clean Architecture Layers:
- Application: Services and DTOs
- Domain: Entities, value objects and domain services
- Infrastructure: Database, YAML config, collaborator adapters

The host process (HTTP server, worker, CLI) enters ``lifespan()`` once and
uses the IncidentService it yields.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Configuration
from src.config import settings

# Infrastructure
from src.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
    uses_shared_connection,
)

# SLA Module
from src.sla.application import ISLAConfigProvider, SLAService
from src.sla.infrastructure import (
    SLAConfigWatcher,
    SQLAlchemySLAPolicyLookup,
    YAMLConfigProvider,
)

# Incident Module
from src.incidents.application import (
    IActivitySink,
    IDirectory,
    IncidentService,
    IWorkflowGateway,
    SideChannelFailure,
)
from src.incidents.infrastructure import (
    InMemoryDirectory,
    LoggingActivitySink,
    NullWorkflowGateway,
    SQLAlchemyUnitOfWork,
)

# Logging
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class IncidentApplication:
    """Wired services handed to the host process."""
    incident_service: IncidentService
    sla_service: SLAService
    config_provider: ISLAConfigProvider
    config_watcher: Optional[SLAConfigWatcher] = None


def build_incident_service(
    session_maker: async_sessionmaker[AsyncSession],
    config_provider: ISLAConfigProvider,
    directory: IDirectory,
    workflow: Optional[IWorkflowGateway] = None,
    activity_sink: Optional[IActivitySink] = None,
    error_reporter: Optional[Callable[[SideChannelFailure], None]] = None,
    sla_service: Optional[SLAService] = None,
    **service_kwargs
) -> IncidentService:
    """
    Wire an IncidentService over a session factory.

    Args:
        session_maker: Async session factory for the units of work
        config_provider: SLA configuration source
        directory: Tenant user/team/configuration item lookups
        workflow: Workflow engine gateway (none configured by default)
        activity_sink: Activity feed (structured logs by default)
        error_reporter: Callback for best-effort side-channel failures
        sla_service: SLA service (built over the policy table by default)
        **service_kwargs: Passed through to IncidentService (clock, logger, ...)
    """
    # Sessions on one shared connection share one transaction
    lock = asyncio.Lock() if uses_shared_connection(session_maker) else None
    sla_service = sla_service or SLAService(
        SQLAlchemySLAPolicyLookup(session_maker),
        config_provider,
    )
    return IncidentService(
        uow_factory=lambda: SQLAlchemyUnitOfWork(session_maker, lock=lock),
        sla_service=sla_service,
        directory=directory,
        workflow=workflow or NullWorkflowGateway(),
        activity_sink=activity_sink or LoggingActivitySink(),
        error_reporter=error_reporter,
        **service_kwargs
    )


@asynccontextmanager
async def lifespan(
    directory: Optional[IDirectory] = None,
    workflow: Optional[IWorkflowGateway] = None,
    activity_sink: Optional[IActivitySink] = None,
    database_url: Optional[str] = None,
    create_schema: bool = False
) -> AsyncGenerator[IncidentApplication, None]:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (optionally create tables)
    3. Load SLA configuration (optionally watch the file)
    4. Wire services

    SHUTDOWN:
    1. Stop config watcher
    2. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Incident Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database(database_url)

    if create_schema:
        # For development - use migrations in production
        logger.info("Creating database tables")
        await create_tables()

    logger.info("Loading SLA configuration")
    config_provider = YAMLConfigProvider(settings.sla_config_path)
    config_watcher = None
    if settings.sla_config_watch:
        config_watcher = SLAConfigWatcher(config_provider)
        config_watcher.start_watching()

    session_maker = get_session_maker()
    sla_service = SLAService(SQLAlchemySLAPolicyLookup(session_maker), config_provider)
    incident_service = build_incident_service(
        session_maker,
        config_provider,
        sla_service=sla_service,
        directory=directory or InMemoryDirectory(),
        workflow=workflow,
        activity_sink=activity_sink,
    )
    app = IncidentApplication(
        incident_service=incident_service,
        sla_service=sla_service,
        config_provider=config_provider,
        config_watcher=config_watcher,
    )

    logger.info("Incident Service started successfully")

    try:
        yield app
    finally:
        # === SHUTDOWN ===
        logger.info("Shutting down Incident Service")

        if config_watcher is not None:
            config_watcher.stop_watching()

        await close_database()

        logger.info("Incident Service shutdown complete")


async def _run() -> None:
    """Start the core, create the schema and report the available options."""
    async with lifespan(create_schema=True) as app:
        options = app.incident_service.options()
        logger.info("Incident options", extra={"options": options.model_dump()})


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
