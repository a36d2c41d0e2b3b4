"""
SLA Application Layer
======================

Application layer for SLA module.

Contains:
- Services: Orchestrate business logic and coordinate with lookups

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.services import (
    SLAService,
    ISLAPolicyLookup,
    ISLAConfigProvider,
)

__all__ = [
    # Services
    "SLAService",
    # Repository Interfaces
    "ISLAPolicyLookup",
    "ISLAConfigProvider",
]
