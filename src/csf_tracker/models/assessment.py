"""
Assessment models.

An assessment scopes a set of controls or requirements and records, for each
scoped item, one observation carrying four quarterly records (Q1..Q4) plus a
remediation plan. Every observation always has all four quarters; an
untouched quarter reports ``Not Started``.
"""

import math
from datetime import date, datetime, timedelta
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from csf_tracker.models.common import unique_ids, utc_now


# Type aliases
Quarter = Literal['Q1', 'Q2', 'Q3', 'Q4']
TestingStatus = Literal['Not Started', 'In Progress', 'Submitted', 'Complete']
ScopeType = Literal['controls', 'requirements']

QUARTERS: tuple[Quarter, ...] = ('Q1', 'Q2', 'Q3', 'Q4')
TESTING_STATUSES: tuple[TestingStatus, ...] = ('Not Started', 'In Progress', 'Submitted', 'Complete')
SCOPE_TYPES: tuple[ScopeType, ...] = ('controls', 'requirements')

MIN_SCORE = 0.0
MAX_SCORE = 10.0


def snap_score(value: Any) -> float:
    """Clamp a score to 0..10 and round it to the nearest half point."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return MIN_SCORE
    if not math.isfinite(score):
        return MIN_SCORE
    score = min(max(score, MIN_SCORE), MAX_SCORE)
    return math.floor(score * 2 + 0.5) / 2


EXCEL_EPOCH = date(1899, 12, 30)


def normalize_date_text(value: Any) -> str:
    """Trim a date cell, converting an Excel serial day number to ISO format.

    Serials are recognised in the open range 1000..100000; any other text is
    kept as written.
    """
    text = str(value or '').strip()
    try:
        serial = float(text)
    except ValueError:
        return text
    if 1000 < serial < 100000:
        return (EXCEL_EPOCH + timedelta(days=int(serial))).isoformat()
    return text


def normalize_testing_status(value: Any) -> TestingStatus:
    """Map free text onto a known testing status, defaulting to Not Started."""
    if isinstance(value, str):
        wanted = value.strip().lower()
        for status in TESTING_STATUSES:
            if status.lower() == wanted:
                return status
    return 'Not Started'


def quarter_for_month(month: int) -> Quarter:
    return QUARTERS[(month - 1) // 3]


class QuarterRecord(BaseModel):
    """Result of testing one item in one quarter."""
    actual_score: float = 0.0
    target_score: float = 0.0
    observations: str = ''
    observation_date: str = ''
    testing_status: TestingStatus = 'Not Started'
    examine: bool = False
    interview: bool = False
    test: bool = False

    @field_validator('actual_score', 'target_score', mode='before')
    @classmethod
    def _snap(cls, value: Any) -> float:
        return snap_score(value)

    @field_validator('observation_date', mode='before')
    @classmethod
    def _date_text(cls, value: Any) -> str:
        return normalize_date_text(value)

    @field_validator('testing_status', mode='before')
    @classmethod
    def _known_status(cls, value: Any) -> str:
        return normalize_testing_status(value)


def empty_quarters() -> dict[Quarter, QuarterRecord]:
    return {quarter: QuarterRecord() for quarter in QUARTERS}


class Remediation(BaseModel):
    """Plan to close a gap found during testing."""
    owner_id: Optional[str] = None
    action_plan: str = ''
    due_date: str = ''

    @field_validator('due_date', mode='before')
    @classmethod
    def _date_text(cls, value: Any) -> str:
        return normalize_date_text(value)

    def is_planned(self) -> bool:
        return bool(self.owner_id or self.action_plan.strip() or self.due_date.strip())


class Observation(BaseModel):
    """Testing record for one scoped item within an assessment."""
    auditor_id: Optional[str] = None
    test_procedures: str = ''
    linked_artifacts: list[str] = []
    quarters: dict[Quarter, QuarterRecord] = Field(default_factory=empty_quarters)
    remediation: Remediation = Field(default_factory=Remediation)

    @field_validator('quarters')
    @classmethod
    def _all_quarters_present(cls, value: dict[Quarter, QuarterRecord]) -> dict[Quarter, QuarterRecord]:
        return {quarter: value.get(quarter) or QuarterRecord() for quarter in QUARTERS}

    @field_validator('linked_artifacts')
    @classmethod
    def _dedupe_artifacts(cls, value: list[str]) -> list[str]:
        return unique_ids(value)


class Assessment(BaseModel):
    """A scoped testing exercise across one year of quarters."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: str = ''
    scope_type: ScopeType = 'requirements'
    scope_ids: list[str] = []
    framework_filter: Optional[str] = None
    observations: dict[str, Observation] = {}
    created_date: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    @field_validator('scope_ids')
    @classmethod
    def _unique_scope(cls, value: list[str]) -> list[str]:
        return unique_ids(value)


class AssessmentProgress(BaseModel):
    """Testing progress for one quarter of an assessment."""
    assessment_id: str
    quarter: Quarter
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    submitted: int = 0
    not_started: int = 0
    percentage: int = 0


class RemediationItem(BaseModel):
    """An observation with a remediation plan, flattened for reporting."""
    assessment_id: str
    assessment_name: str
    item_id: str
    remediation: Remediation
