"""
SLA Domain Layer
================

Domain layer for SLA module.

Contains:
- Entities: Core business objects with identity (SLAPolicy, IncidentSLAStatus)
- Value Objects: Immutable objects defined by attributes (BusinessHoursCalendar,
  SLAConfig, SLADeadlines)
- Domain Services: Stateless business logic (SLAClock, PriorityClassifier)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.entities import SLAPolicy, SLAClockStatus, IncidentSLAStatus
from src.sla.domain.priority import PriorityClassifier
from src.sla.domain.value_objects import (
    SLAClock,
    SLAConfig,
    BusinessHoursCalendar,
    SLADeadlines,
)

__all__ = [
    # Entities
    "SLAPolicy",
    "SLAClockStatus",
    "IncidentSLAStatus",
    # Value Objects & Services
    "SLAClock",
    "SLAConfig",
    "BusinessHoursCalendar",
    "SLADeadlines",
    "PriorityClassifier",
]
