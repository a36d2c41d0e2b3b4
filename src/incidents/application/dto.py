"""
Incident Application DTOs
=========================

Data Transfer Objects for the incident service boundary.

These Pydantic models handle validation of caller input and the shape
of composite results. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.incidents.domain import DuplicateCandidate, Incident


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
ChannelStr = Literal["portal", "email", "phone", "chat", "api"]

# Caller metadata is an open map of string -> scalar
MetadataValue = Union[str, int, float, bool, None]


def _lower(v):
    return v.strip().lower() if isinstance(v, str) else v


def _dedupe(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


# ========== Request DTOs ==========

class IncidentCreateDTO(BaseModel):
    """DTO for creating an incident."""
    title: str = Field(..., min_length=1, description="Short summary")
    description: str = Field(default="", description="Full description")
    impact: Optional[PriorityStr] = Field(None, description="Business impact")
    urgency: Optional[PriorityStr] = Field(None, description="Time sensitivity")
    priority: Optional[PriorityStr] = Field(
        None,
        description="Explicit priority, used when impact and urgency are not both given"
    )
    channel: ChannelStr = Field(default="portal", description="Reporting channel")
    category_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_major_incident: bool = Field(default=False, description="Adds the 'major' tag")
    due_at: Optional[datetime] = None
    assignee_id: Optional[str] = None
    team_id: Optional[str] = None
    problem_id: Optional[str] = None
    change_request_id: Optional[str] = None
    configuration_item_ids: List[str] = Field(default_factory=list)

    @field_validator("impact", "urgency", "priority", "channel", mode="before")
    @classmethod
    def lowercase_choices(cls, v):
        """Choice fields are case-insensitive."""
        return _lower(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()

    @field_validator("configuration_item_ids")
    @classmethod
    def dedupe_configuration_items(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class TransitionRequestDTO(BaseModel):
    """
    DTO for a status transition.

    ``to_status`` is kept as a raw string; it is normalized by the
    lifecycle so unknown values surface as InvalidStateException.
    """
    to_status: str = Field(..., min_length=1, description="Target status")
    assignee_id: Optional[str] = None
    team_id: Optional[str] = None
    reason: Optional[str] = None
    comment: Optional[str] = None
    pending_reason: Optional[str] = None
    on_hold_until: Optional[datetime] = None
    resolution_summary: Optional[str] = None
    closure_code: Optional[str] = None
    problem_id: Optional[str] = None
    knowledge_article_id: Optional[str] = None
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)


class IncidentUpdateDTO(BaseModel):
    """DTO for the limited field update; unset fields are left alone."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    priority: Optional[PriorityStr] = None
    status: Optional[str] = Field(None, description="Must equal the current status")
    assignee_id: Optional[str] = None
    team_id: Optional[str] = None
    tags: Optional[List[str]] = None
    due_at: Optional[datetime] = None
    configuration_item_ids: Optional[List[str]] = None

    @field_validator("priority", mode="before")
    @classmethod
    def lowercase_priority(cls, v):
        return _lower(v)

    @field_validator("configuration_item_ids")
    @classmethod
    def dedupe_configuration_items(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _dedupe(v)


# ========== Result DTOs ==========

class DuplicateSearchResult(BaseModel):
    """Potential duplicates of one incident, best match first."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    target: Incident
    duplicates: List[DuplicateCandidate] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target": {
                "id": self.target.id,
                "ticket_number": self.target.ticket_number,
                "title": self.target.title,
                "status": self.target.status,
            },
            "duplicates": [d.to_dict() for d in self.duplicates],
        }


class MergeResult(BaseModel):
    """Result of merging duplicate incidents into a target."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Incident
    merged_count: int
    merged_incident_ids: List[str]

    def to_dict(self) -> dict:
        return {
            "data": self.data.to_dict(),
            "merged_count": self.merged_count,
            "merged_incident_ids": list(self.merged_incident_ids),
        }


class IncidentOptions(BaseModel):
    """Choices a caller can render for incident forms."""
    channels: List[str]
    pending_reasons: List[str]
    closure_codes: List[str]
    statuses: List[str]
    priorities: List[str]
    transitions: Dict[str, List[str]]
