"""
Jira issue transforms.

Assessments map to one "work paper" issue per scoped item and tested
quarter, summarised ``WP-{assessment}-{item}-{quarter}``. Custom field ids
differ between Jira sites and are configured through ``JiraFieldConfig``.
"""

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from csf_tracker.identity.directory import UserDirectory
from csf_tracker.models.artifact import Artifact
from csf_tracker.models.assessment import QUARTERS, Assessment, Observation, QuarterRecord
from csf_tracker.models.control import Control
from csf_tracker.models.finding import Finding
from csf_tracker.stores.findings import jira_description, map_jira_status, normalize_priority

WORK_PAPER_PREFIX = "WP-"
IMPORTED_ASSESSMENT_NAME = "Imported Assessment"

FIELD_ENV_VARS = {
    "control_id": "JIRA_FIELD_CONTROL_ID",
    "quarter": "JIRA_FIELD_QUARTER",
    "year": "JIRA_FIELD_YEAR",
    "target_score": "JIRA_FIELD_TARGET_SCORE",
    "actual_score": "JIRA_FIELD_ACTUAL_SCORE",
    "testing_status": "JIRA_FIELD_TESTING_STATUS",
    "test_procedures": "JIRA_FIELD_TEST_PROCEDURES",
    "observations": "JIRA_FIELD_OBSERVATIONS",
    "root_cause": "JIRA_FIELD_ROOT_CAUSE",
    "remediation_plan": "JIRA_FIELD_REMEDIATION_PLAN",
    "link": "JIRA_FIELD_LINK",
    "artifact_type": "JIRA_FIELD_ARTIFACT_TYPE",
}


def _default_fields() -> dict[str, str]:
    return {name: name for name in FIELD_ENV_VARS}


@dataclass
class JiraFieldConfig:
    """Project keys, issue types and custom field ids of a Jira site."""

    project_key: str = "CSF"
    issue_type_id: str = ""
    findings_project_key: str = "FND"
    artifacts_project_key: str = "AR"
    confluence_controls_db_url: str = ""
    fields: dict[str, str] = field(default_factory=_default_fields)

    @classmethod
    def from_env(cls) -> "JiraFieldConfig":
        fields = _default_fields()
        for name, env_var in FIELD_ENV_VARS.items():
            fields[name] = os.environ.get(env_var, fields[name])
        return cls(
            project_key=os.environ.get("JIRA_PROJECT_KEY", "CSF"),
            issue_type_id=os.environ.get("JIRA_ISSUE_TYPE_ID", ""),
            findings_project_key=os.environ.get("CSF_TRACKER_FINDINGS_PROJECT", "FND"),
            artifacts_project_key=os.environ.get("CSF_TRACKER_ARTIFACTS_PROJECT", "AR"),
            confluence_controls_db_url=os.environ.get("CONFLUENCE_CONTROLS_DB_URL", ""),
            fields=fields,
        )


def work_paper_summary(assessment_name: str, item_id: str, quarter: str) -> str:
    return f"{WORK_PAPER_PREFIX}{assessment_name}-{item_id}-{quarter}"


def parse_work_paper_summary(summary: str, item_id: str, quarter: str) -> str:
    """Assessment name from a work paper summary, given its item and quarter."""
    suffix = f"-{item_id}-{quarter}"
    if summary.startswith(WORK_PAPER_PREFIX) and summary.endswith(suffix):
        name = summary[len(WORK_PAPER_PREFIX):-len(suffix)]
        if name:
            return name
    return IMPORTED_ASSESSMENT_NAME


def _year(observation_date: str) -> int:
    try:
        return date.fromisoformat(observation_date[:10]).year
    except ValueError:
        return date.today().year


def _check(flag: bool) -> str:
    return "(/) Yes" if flag else "(x) No"


def format_work_paper_description(
    control: Optional[Control],
    observation: Observation,
    record: QuarterRecord,
    config: JiraFieldConfig,
) -> str:
    """Jira wiki-markup body of a work paper issue."""
    lines = ["h2. Control Details"]
    if config.confluence_controls_db_url:
        lines.append(f"[View Control in Confluence|{config.confluence_controls_db_url}]")
    lines += [
        "",
        f"*Control ID:* {control.control_id if control else 'N/A'}",
        "",
        "*Implementation Description:*",
        (control.implementation_description if control else "") or "N/A",
        "",
        f"*Linked Requirements:* {', '.join(control.linked_requirement_ids) if control and control.linked_requirement_ids else 'None'}",
        "",
        "h2. Assessment Methods",
        f"* Examine: {_check(record.examine)}",
        f"* Interview: {_check(record.interview)}",
        f"* Test: {_check(record.test)}",
        "",
        "h2. Linked Artifacts",
    ]
    if observation.linked_artifacts:
        lines += [f"* {artifact}" for artifact in observation.linked_artifacts]
    else:
        lines.append("No artifacts linked")
    return "\n".join(lines)


def assessments_to_jira_issues(
    assessments: Iterable[Assessment],
    controls: Iterable[Control],
    users: UserDirectory,
    config: JiraFieldConfig,
) -> list[dict]:
    """One issue per scoped item and quarter whose testing has started."""
    controls_by_id = {control.control_id: control for control in controls}
    names = config.fields
    issues = []
    for assessment in assessments:
        for item_id in assessment.scope_ids:
            observation = assessment.observations.get(item_id) or Observation()
            auditor = users.get(observation.auditor_id) if observation.auditor_id else None
            for quarter in QUARTERS:
                record = observation.quarters[quarter]
                if record.testing_status == "Not Started":
                    continue
                issue_fields: dict[str, Any] = {
                    "project": {"key": config.project_key},
                    "summary": work_paper_summary(assessment.name, item_id, quarter),
                    "description": format_work_paper_description(
                        controls_by_id.get(item_id), observation, record, config
                    ),
                    "assignee": {"emailAddress": auditor.email} if auditor and auditor.email else None,
                    names["control_id"]: item_id,
                    names["quarter"]: {"value": quarter},
                    names["year"]: _year(record.observation_date),
                    names["target_score"]: {"value": format(record.target_score, "g")},
                    names["actual_score"]: {"value": format(record.actual_score, "g")},
                    names["testing_status"]: {"value": record.testing_status},
                    names["test_procedures"]: observation.test_procedures,
                    names["observations"]: record.observations,
                }
                if config.issue_type_id:
                    issue_fields["issuetype"] = {"id": config.issue_type_id}
                issues.append({"fields": issue_fields})
    return issues


def _option(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("value")
    return value


def jira_issues_to_assessments(issues: Iterable[dict], config: JiraFieldConfig) -> list[dict]:
    """Assessment records rebuilt from work paper issues, grouped by name."""
    names = config.fields
    grouped: dict[str, dict] = {}
    for issue in issues:
        fields = issue.get("fields") or {}
        item_id = str(fields.get(names["control_id"]) or "").strip()
        if not item_id:
            continue
        quarter = _option(fields.get(names["quarter"]))
        name = parse_work_paper_summary(fields.get("summary") or "", item_id, quarter or "")

        assessment = grouped.setdefault(name, {
            "name": name,
            "description": "Imported from Jira",
            "scope_type": "controls",
            "scope_ids": [],
            "observations": {},
        })
        if item_id not in assessment["scope_ids"]:
            assessment["scope_ids"].append(item_id)
        observation = assessment["observations"].setdefault(item_id, {
            "test_procedures": fields.get(names["test_procedures"]) or "",
            "quarters": {},
        })
        if quarter in QUARTERS:
            updated = str(fields.get("updated") or "")
            observation["quarters"][quarter] = {
                "actual_score": _option(fields.get(names["actual_score"])) or 0,
                "target_score": _option(fields.get(names["target_score"])) or 0,
                "observations": fields.get(names["observations"]) or "",
                "observation_date": updated.split("T")[0],
                "testing_status": _option(fields.get(names["testing_status"])) or "Not Started",
            }
    return list(grouped.values())


def finding_to_issue_fields(
    finding: Finding,
    users: UserDirectory,
    config: JiraFieldConfig,
) -> dict:
    owner = users.get(finding.remediation_owner_id) if finding.remediation_owner_id else None
    fields: dict[str, Any] = {
        "project": {"key": config.findings_project_key},
        "issuetype": {"name": "Finding"},
        "summary": finding.summary,
        "description": jira_description(finding),
        "priority": {"name": finding.priority},
        config.fields["control_id"]: finding.control_id or "",
        config.fields["root_cause"]: finding.root_cause,
        config.fields["remediation_plan"]: finding.remediation_action_plan,
    }
    if owner and owner.email:
        fields["assignee"] = {"emailAddress": owner.email}
    if finding.due_date:
        fields["duedate"] = finding.due_date
    return fields


def artifact_to_issue_fields(artifact: Artifact, config: JiraFieldConfig) -> dict:
    return {
        "project": {"key": config.artifacts_project_key},
        "issuetype": {"name": "Artifact"},
        "summary": artifact.name,
        "description": artifact.description,
        config.fields["control_id"]: artifact.control_id or "",
        config.fields["link"]: artifact.link,
        config.fields["artifact_type"]: artifact.type,
    }


def issue_to_finding_record(issue: dict, config: JiraFieldConfig) -> dict:
    """Finding fields from a Jira issue in the findings project."""
    fields = issue.get("fields") or {}
    status = fields.get("status") or {}
    priority = fields.get("priority") or {}
    return {
        "summary": fields.get("summary") or "",
        "description": fields.get("description") or "",
        "control_id": (fields.get(config.fields["control_id"]) or None),
        "root_cause": fields.get(config.fields["root_cause"]) or "",
        "remediation_action_plan": fields.get(config.fields["remediation_plan"]) or "",
        "due_date": fields.get("duedate") or "",
        "status": map_jira_status(status.get("name") if isinstance(status, dict) else status),
        "priority": normalize_priority(priority.get("name") if isinstance(priority, dict) else priority),
        "jira_key": issue.get("key"),
    }
