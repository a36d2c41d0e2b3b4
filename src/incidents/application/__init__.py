"""
Incident Application Layer
==========================

Application layer for the incident module.

Contains:
- Services: IncidentService, orchestrating the lifecycle use cases
- DTOs: Request validation and composite results
- Repository Interfaces: Unit of work and collaborator ports

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.incidents.application.dto import (
    IncidentCreateDTO,
    TransitionRequestDTO,
    IncidentUpdateDTO,
    DuplicateSearchResult,
    MergeResult,
    IncidentOptions,
)
from src.incidents.application.services import (
    IncidentService,
    SideChannelFailure,
    IUnitOfWork,
    IIncidentRepository,
    ITimelineRepository,
    IAuditLogRepository,
    ICommentRepository,
    ITicketNumberRepository,
    IDirectory,
    IWorkflowGateway,
    IActivitySink,
)

__all__ = [
    # Services
    "IncidentService",
    "SideChannelFailure",
    # DTOs
    "IncidentCreateDTO",
    "TransitionRequestDTO",
    "IncidentUpdateDTO",
    "DuplicateSearchResult",
    "MergeResult",
    "IncidentOptions",
    # Repository Interfaces
    "IUnitOfWork",
    "IIncidentRepository",
    "ITimelineRepository",
    "IAuditLogRepository",
    "ICommentRepository",
    "ITicketNumberRepository",
    "IDirectory",
    "IWorkflowGateway",
    "IActivitySink",
]
