"""
Result models returned by import and aggregation operations.
"""

from typing import Optional

from pydantic import BaseModel

from csf_tracker.models.artifact import Artifact
from csf_tracker.models.finding import Finding


class RowError(BaseModel):
    """Why a CSV row was skipped."""
    row_number: int
    message: str


class ImportResult(BaseModel):
    """Outcome of a CSV import."""
    imported: int = 0
    skipped: int = 0
    keys: list[str] = []
    errors: list[RowError] = []


class RequirementControlData(BaseModel):
    """Everything the controls linked to one requirement contribute to it."""
    requirement_id: str
    control_ids: list[str] = []
    implementation_description: str = ''
    owner_ids: list[str] = []
    stakeholder_ids: list[str] = []
    control_owner: str = ''
    stakeholders: str = ''
    artifacts: list[Artifact] = []
    findings: list[Finding] = []
    matched_by_control_id: bool = False
    primary_control_id: Optional[str] = None
