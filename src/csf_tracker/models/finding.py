"""
Finding model.

A finding is a deficiency raised against a control during an assessment,
tracked through to resolution and optionally mirrored as a Jira issue.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from csf_tracker.models.common import unique_ids, utc_now


# Type aliases
FindingStatus = Literal['Not Started', 'In Progress', 'Resolved']
FindingPriority = Literal['Low', 'Medium', 'High', 'Critical']

FINDING_STATUSES: tuple[FindingStatus, ...] = ('Not Started', 'In Progress', 'Resolved')
FINDING_PRIORITIES: tuple[FindingPriority, ...] = ('Low', 'Medium', 'High', 'Critical')


class Finding(BaseModel):
    """Compliance finding."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    summary: str
    description: str = ''
    control_id: Optional[str] = None
    assessment_id: Optional[str] = None
    root_cause: str = ''
    remediation_action_plan: str = ''
    remediation_owner_id: Optional[str] = None
    due_date: str = ''
    status: FindingStatus = 'Not Started'
    priority: FindingPriority = 'Medium'
    jira_key: Optional[str] = None
    linked_artifacts: list[str] = []
    created_date: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    @field_validator('linked_artifacts')
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return unique_ids(value)


class FindingStatistics(BaseModel):
    """Counts of findings by status and priority."""
    total: int = 0
    by_status: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    overdue: int = 0
