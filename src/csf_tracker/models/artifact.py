"""
Artifact model.

Artifacts are evidence documents. Each belongs to at most one control and may
be referenced by observations across many assessments.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from csf_tracker.models.common import unique_ids, utc_now


class Artifact(BaseModel):
    """Evidence artifact."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    artifact_id: str = ''  # External key, usually a Jira issue key
    name: str
    description: str = ''
    link: str = ''
    type: str = ''
    control_id: Optional[str] = None
    linked_evaluation_ids: list[str] = []
    created_date: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    @field_validator('name')
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator('linked_evaluation_ids')
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return unique_ids(value)
