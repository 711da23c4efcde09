"""
Findings store.

Findings import from either the standard export or a Jira issue export;
Jira workflow statuses are folded onto the three tracker statuses. Exports
come in the standard layout and in the layout Jira's CSV importer expects
for the findings project.
"""

from datetime import date, datetime
from typing import Callable, Iterable, Optional
from uuid import uuid4

import structlog

from csf_tracker.codec.coercers import list_in, list_out, optional_text_in, text_out
from csf_tracker.codec.csv_io import parse_csv, write_csv
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.core.config import DEFAULT_HISTORY_LIMIT
from csf_tracker.identity.resolver import IdentityResolver
from csf_tracker.models.common import utc_now
from csf_tracker.models.finding import (
    FINDING_PRIORITIES,
    FINDING_STATUSES,
    Finding,
    FindingPriority,
    FindingStatistics,
    FindingStatus,
)
from csf_tracker.models.results import ImportResult
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

FINDING_ISSUE_TYPE = "Finding"
DEFAULT_PROJECT_KEY = "FND"
JIRA_PLAN_FIELD = "Custom field (Remediation Action Plan (Who will do What by When?))"

JIRA_STATUS_MAP: dict[str, FindingStatus] = {
    "to do": "Not Started",
    "not started": "Not Started",
    "open": "Not Started",
    "in progress": "In Progress",
    "done": "Resolved",
    "resolved": "Resolved",
    "closed": "Resolved",
}

RequirementLookup = Callable[[str], list[str]]


def map_jira_status(value: Optional[str]) -> FindingStatus:
    return JIRA_STATUS_MAP.get((value or "").strip().lower(), "Not Started")


def normalize_priority(value: Optional[str]) -> FindingPriority:
    wanted = (value or "").strip().lower()
    for priority in FINDING_PRIORITIES:
        if priority.lower() == wanted:
            return priority
    return "Medium"


def parse_due_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _timestamp_in(cell: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(cell.strip())
    except ValueError:
        return None


def jira_description(finding: Finding) -> str:
    return (
        "Finding created from CSF Profile assessment.\n\n"
        f"Root Cause:\n{finding.root_cause}\n\n"
        f"Remediation Plan:\n{finding.remediation_action_plan}"
    )


def build_findings_schema(resolver: IdentityResolver) -> TabularSchema:
    return TabularSchema([
        Column("Finding ID", ("id",), decode=optional_text_in),
        Column("Summary", ("summary",), required=True),
        Column("Description", ("description",)),
        Column(
            "Control ID",
            ("control_id",),
            decode=optional_text_in,
            aliases=("Custom field (Control ID)",),
        ),
        Column(
            "Root Cause",
            ("root_cause",),
            aliases=("Custom field (Root Cause)", "Custom field (Root Case)"),
        ),
        Column("Remediation Action Plan", ("remediation_action_plan",), aliases=(JIRA_PLAN_FIELD,)),
        Column(
            "Remediation Owner",
            ("remediation_owner_id",),
            encode=resolver.format_user,
            decode=resolver.resolve,
            aliases=("Assignee", "Reporter"),
        ),
        Column("Due Date", ("due_date",), aliases=("Due date",)),
        Column("Status", ("status",), decode=map_jira_status),
        Column("Priority", ("priority",), decode=normalize_priority),
        Column("Created Date", ("created_date",), decode=_timestamp_in, aliases=("Created",)),
        Column("Jira Key", ("jira_key",), decode=optional_text_in, aliases=("Issue key",)),
        Column("Linked Artifacts", ("linked_artifacts",), encode=list_out, decode=list_in),
    ])


LEGACY_REQUIREMENT_COLUMN = Column(
    "Compliance Requirement",
    ("compliance_requirement",),
    decode=optional_text_in,
    aliases=("Custom field (Compliance Requirement)",),
)

JIRA_FINDINGS_SCHEMA = TabularSchema([
    Column("Summary", ("summary",)),
    Column("Issue Type", ("issue_type",)),
    Column("Project key", ("project_key",)),
    Column("Priority", ("priority",)),
    Column("Assignee", ("assignee",)),
    Column("Due date", ("due_date",)),
    Column("Custom field (Compliance Requirement)", ("compliance_requirement",), encode=list_out),
    Column("Custom field (Control ID)", ("control_id",)),
    Column("Custom field (Root Cause)", ("root_cause",)),
    Column(JIRA_PLAN_FIELD, ("remediation_action_plan",)),
    Column("Description", ("jira_description",), encode=text_out),
])


class FindingsStore(EntityStore[Finding]):
    """Store of compliance findings."""

    store_name = "findings"
    collection = "findings"
    model = Finding

    def __init__(
        self,
        resolver: IdentityResolver,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(history_limit=history_limit, clock=clock)
        self.resolver = resolver
        self.schema = build_findings_schema(resolver)
        self.import_schema = TabularSchema(self.schema.columns + [LEGACY_REQUIREMENT_COLUMN])

    # ==================== Queries ====================

    def get_by_control(self, control_id: str) -> list[Finding]:
        return [f.model_copy(deep=True) for f in self._items if f.control_id == control_id]

    def get_by_assessment(self, assessment_id: str) -> list[Finding]:
        return [f.model_copy(deep=True) for f in self._items if f.assessment_id == assessment_id]

    def get_by_status(self, status: FindingStatus) -> list[Finding]:
        return [f.model_copy(deep=True) for f in self._items if f.status == status]

    def get_by_priority(self, priority: FindingPriority) -> list[Finding]:
        return [f.model_copy(deep=True) for f in self._items if f.priority == priority]

    def unsynced(self) -> list[Finding]:
        return [f.model_copy(deep=True) for f in self._items if not f.jira_key]

    def get_by_jira_key(self, jira_key: str) -> Optional[Finding]:
        for finding in self._items:
            if finding.jira_key == jira_key:
                return finding.model_copy(deep=True)
        return None

    def statistics(self, today: Optional[date] = None) -> FindingStatistics:
        """Counts by status and priority, plus unresolved findings past due."""
        today = today or self._clock().date()
        stats = FindingStatistics(
            total=len(self._items),
            by_status={status: 0 for status in FINDING_STATUSES},
            by_priority={priority: 0 for priority in FINDING_PRIORITIES},
        )
        for finding in self._items:
            stats.by_status[finding.status] += 1
            stats.by_priority[finding.priority] += 1
            due = parse_due_date(finding.due_date) if finding.due_date else None
            if due is not None and due < today and finding.status != "Resolved":
                stats.overdue += 1
        return stats

    # ==================== Links ====================

    def link_artifact(self, finding_id: str, artifact_id: str) -> Optional[Finding]:
        finding = self.get(finding_id)
        if finding is None or artifact_id in finding.linked_artifacts:
            return finding
        return self.update(finding_id, {"linked_artifacts": finding.linked_artifacts + [artifact_id]})

    def unlink_artifact(self, finding_id: str, artifact_id: str) -> Optional[Finding]:
        finding = self.get(finding_id)
        if finding is None or artifact_id not in finding.linked_artifacts:
            return finding
        return self.update(
            finding_id,
            {"linked_artifacts": [a for a in finding.linked_artifacts if a != artifact_id]},
        )

    def set_jira_key(self, finding_id: str, jira_key: str) -> Optional[Finding]:
        return self.update(finding_id, {"jira_key": jira_key})

    def set_jira_keys(self, jira_keys: dict[str, str]) -> int:
        """Record Jira keys for many findings as one change."""
        return self.bulk_update_items(
            jira_keys, lambda finding: {"jira_key": jira_keys[finding.id]}
        )

    # ==================== CSV ====================

    def import_csv(self, text: str) -> ImportResult:
        """Import standard or Jira-format finding rows.

        Rows match an existing finding on Finding ID, then on Jira issue key;
        matched findings are updated.

        Raises:
            CSVParseError: If the text is not well-formed CSV.
        """
        _, rows = parse_csv(text)
        result = ImportResult()
        records = []
        seen: dict[str, str] = {}
        for row_number, row in enumerate(rows, start=2):
            missing = self.import_schema.missing_required(row)
            if missing:
                self._skip_row(result, row_number, f"Missing {', '.join(missing)}")
                continue
            record = self.import_schema.unflatten(row)
            legacy_requirement = record.pop("compliance_requirement", None)
            if not record.get("control_id") and legacy_requirement:
                record["control_id"] = legacy_requirement
            record["id"] = self._match_id(record, seen)
            if record.get("jira_key"):
                seen[record["jira_key"]] = record["id"]
            if record.get("created_date") is None:
                record.pop("created_date", None)
            records.append((row_number, record))
        self._merge_records(records, result)
        return result

    def export_csv(self) -> str:
        return write_csv(
            self.schema.headers,
            (self.schema.flatten(f.model_dump()) for f in self._items),
        )

    def export_jira_csv(
        self,
        project_key: str = DEFAULT_PROJECT_KEY,
        requirements_for_control: Optional[RequirementLookup] = None,
    ) -> str:
        """Render findings in the layout of Jira's CSV importer.

        Args:
            project_key: Jira project receiving the issues.
            requirements_for_control: Returns the requirement ids linked to a
                control, used to fill the Compliance Requirement field.
        """
        rows = []
        for finding in self._items:
            record = finding.model_dump()
            owner = self.resolver.directory.get(finding.remediation_owner_id) if finding.remediation_owner_id else None
            requirements: Iterable[str] = []
            if finding.control_id and requirements_for_control is not None:
                requirements = requirements_for_control(finding.control_id)
            record.update({
                "issue_type": FINDING_ISSUE_TYPE,
                "project_key": project_key,
                "assignee": owner.email if owner and owner.email else "",
                "compliance_requirement": list(requirements),
                "jira_description": jira_description(finding),
            })
            rows.append(JIRA_FINDINGS_SCHEMA.flatten(record))
        return write_csv(JIRA_FINDINGS_SCHEMA.headers, rows)

    def _match_id(self, record: dict, seen: dict[str, str]) -> str:
        """Id of the finding a row refers to, or a fresh id for a new one."""
        if record.get("id"):
            return record["id"]
        jira_key = record.get("jira_key") or ""
        if jira_key:
            if jira_key in seen:
                return seen[jira_key]
            existing = self.get_by_jira_key(jira_key)
            if existing is not None:
                return existing.id
        return str(uuid4())

    # ==================== Hooks ====================

    def _prepare_create(self, raw: dict) -> dict:
        if not raw.get("id"):
            raw.pop("id", None)
        if raw.get("status") not in FINDING_STATUSES:
            raw["status"] = map_jira_status(raw.get("status"))
        if raw.get("priority") not in FINDING_PRIORITIES:
            raw["priority"] = normalize_priority(raw.get("priority"))
        return raw
