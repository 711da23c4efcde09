"""Data models for the assessment tracker."""

from csf_tracker.models.user import User
from csf_tracker.models.requirement import Requirement, derive_category_id
from csf_tracker.models.control import Control, ControlCoverage
from csf_tracker.models.assessment import (
    Assessment,
    AssessmentProgress,
    Observation,
    Quarter,
    QuarterRecord,
    QUARTERS,
    Remediation,
    RemediationItem,
    ScopeType,
    SCOPE_TYPES,
    TestingStatus,
    TESTING_STATUSES,
    empty_quarters,
    normalize_testing_status,
    quarter_for_month,
    snap_score,
)
from csf_tracker.models.artifact import Artifact
from csf_tracker.models.finding import (
    Finding,
    FindingPriority,
    FindingStatistics,
    FindingStatus,
    FINDING_PRIORITIES,
    FINDING_STATUSES,
)
from csf_tracker.models.results import ImportResult, RequirementControlData, RowError

__all__ = [
    "User",
    "Requirement",
    "derive_category_id",
    "Control",
    "ControlCoverage",
    "Assessment",
    "AssessmentProgress",
    "Observation",
    "Quarter",
    "QuarterRecord",
    "QUARTERS",
    "Remediation",
    "RemediationItem",
    "ScopeType",
    "SCOPE_TYPES",
    "TestingStatus",
    "TESTING_STATUSES",
    "empty_quarters",
    "normalize_testing_status",
    "quarter_for_month",
    "snap_score",
    "Artifact",
    "Finding",
    "FindingPriority",
    "FindingStatistics",
    "FindingStatus",
    "FINDING_PRIORITIES",
    "FINDING_STATUSES",
    "ImportResult",
    "RequirementControlData",
    "RowError",
]
