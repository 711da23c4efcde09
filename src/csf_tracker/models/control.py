"""
Control model.

A control is an organisation-specific safeguard. Its ``control_id`` is the
user-visible key (``CTL-001``) and each control may satisfy many framework
requirements.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from csf_tracker.models.common import unique_ids, utc_now


class Control(BaseModel):
    """Organisation control."""
    control_id: str
    implementation_description: str = ''
    owner_id: Optional[str] = None
    stakeholder_ids: list[str] = []
    linked_requirement_ids: list[str] = []
    created_date: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    @field_validator('control_id')
    @classmethod
    def _strip_control_id(cls, value: str) -> str:
        return value.strip()

    @field_validator('stakeholder_ids', 'linked_requirement_ids')
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return unique_ids(value)

    @field_validator('owner_id')
    @classmethod
    def _blank_owner_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ControlCoverage(BaseModel):
    """How many controls are linked to at least one requirement."""
    total: int
    covered: int
    uncovered: int
    percentage: int
