"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA:
- Models: SQLAlchemy ORM models
- Repositories: Policy lookup and YAML configuration provider
- External: Config file watcher
"""

from src.sla.infrastructure.models import SLAPolicyModel
from src.sla.infrastructure.repositories import (
    SQLAlchemySLAPolicyLookup,
    YAMLConfigProvider
)
from src.sla.infrastructure.external import SLAConfigWatcher

__all__ = [
    "SLAPolicyModel",
    "SQLAlchemySLAPolicyLookup",
    "YAMLConfigProvider",
    "SLAConfigWatcher",
]
