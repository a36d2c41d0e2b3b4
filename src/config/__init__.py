"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="incident-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/incidents",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )
    sla_config_watch: bool = Field(
        default=False,
        description="Reload the SLA configuration when the YAML file changes"
    )

    # ========== Duplicate Detection ==========
    duplicate_candidate_window: int = Field(
        default=80,
        description="Most recent active incidents scored per duplicate search",
        ge=1
    )
    duplicate_min_score: float = Field(
        default=0.25,
        description="Minimum similarity score for a duplicate candidate",
        ge=0.0,
        le=1.0
    )
    duplicate_max_limit: int = Field(
        default=20,
        description="Upper bound for the number of candidates returned",
        ge=1
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the logging level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Incident priority levels (also used for impact and urgency)."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncidentStatus(str, Enum):
    """Incident lifecycle statuses."""
    NEW = "new"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class Channel(str, Enum):
    """Channel through which an incident was reported."""
    PORTAL = "portal"
    EMAIL = "email"
    PHONE = "phone"
    CHAT = "chat"
    API = "api"


class SLAType(str, Enum):
    """Types of SLA clocks."""
    RESPONSE = "response"
    RESOLUTION = "resolution"


class SLAState(str, Enum):
    """SLA status states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"
    PAUSED = "paused"
    STOPPED = "stopped"


# Legacy status values still found in stored records
LEGACY_STATUS_ALIASES: Dict[str, IncidentStatus] = {
    "open": IncidentStatus.ASSIGNED,
}

# Minutes before a deadline at which a clock is reported at risk
AT_RISK_THRESHOLD_MINUTES = 30

# Response/resolution targets used when an organization has no active policy
DEFAULT_SLA_TARGETS: Dict[str, Dict[str, int]] = {
    Priority.CRITICAL.value: {"response": 15, "resolution": 240},
    Priority.HIGH.value: {"response": 30, "resolution": 480},
    Priority.MEDIUM.value: {"response": 120, "resolution": 1440},
    Priority.LOW.value: {"response": 480, "resolution": 10080},
}

PENDING_REASONS = [
    "awaiting_customer",
    "awaiting_vendor",
    "awaiting_change_window",
    "awaiting_security_approval",
]

CLOSURE_CODES = [
    "solved",
    "workaround_applied",
    "duplicate",
    "not_reproducible",
    "cancelled_by_requester",
]

DUPLICATE_TAG = "duplicate"
MAJOR_INCIDENT_TAG = "major"
DEFAULT_MERGE_REASON = "duplicate_merge"


# ========== Lists for validation ==========

VALID_PRIORITIES: List[str] = [p.value for p in Priority]
VALID_STATUSES: List[str] = [s.value for s in IncidentStatus]
VALID_CHANNELS: List[str] = [c.value for c in Channel]
TERMINAL_STATUSES = [IncidentStatus.CLOSED, IncidentStatus.CANCELLED]
ACTIVE_STATUSES = [IncidentStatus.ASSIGNED, IncidentStatus.IN_PROGRESS, IncidentStatus.ESCALATED]
