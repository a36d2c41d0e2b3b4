"""
Incident Domain Layer
=====================

Domain layer for the incident module.

Contains:
- Entities: Incident, TimelineEntry, AuditLogEntry, Comment, ActivityRecord
- Domain Services: Stateless business logic (IncidentLifecycle, DuplicateDetector)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.incidents.domain.entities import (
    Incident,
    TimelineEntry,
    AuditLogEntry,
    Comment,
    ActivityRecord,
    DuplicateCandidate,
    Metadata,
)
from src.incidents.domain.lifecycle import IncidentLifecycle, TRANSITION_TABLE
from src.incidents.domain.duplicates import DuplicateDetector

__all__ = [
    # Entities
    "Incident",
    "TimelineEntry",
    "AuditLogEntry",
    "Comment",
    "ActivityRecord",
    "DuplicateCandidate",
    "Metadata",
    # Domain Services
    "IncidentLifecycle",
    "TRANSITION_TABLE",
    "DuplicateDetector",
]
