"""
Incident Infrastructure Layer
=============================

Infrastructure implementations for the incident module:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer and unit of work
- External: Activity sink, workflow gateway and directory adapters
"""

from src.incidents.infrastructure.models import (
    IncidentModel,
    TimelineModel,
    AuditLogModel,
    CommentModel,
    TicketCounterModel,
)
from src.incidents.infrastructure.repositories import (
    SQLAlchemyIncidentRepository,
    SQLAlchemyTimelineRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketNumberRepository,
    SQLAlchemyUnitOfWork,
)
from src.incidents.infrastructure.external import (
    LoggingActivitySink,
    NullWorkflowGateway,
    InMemoryDirectory,
)

__all__ = [
    "IncidentModel",
    "TimelineModel",
    "AuditLogModel",
    "CommentModel",
    "TicketCounterModel",
    "SQLAlchemyIncidentRepository",
    "SQLAlchemyTimelineRepository",
    "SQLAlchemyAuditLogRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyTicketNumberRepository",
    "SQLAlchemyUnitOfWork",
    "LoggingActivitySink",
    "NullWorkflowGateway",
    "InMemoryDirectory",
]
