"""
Unit tests for the Jira issue transforms.
"""
import pytest

from csf_tracker.integrations.jira import (
    IMPORTED_ASSESSMENT_NAME,
    JiraFieldConfig,
    artifact_to_issue_fields,
    assessments_to_jira_issues,
    finding_to_issue_fields,
    issue_to_finding_record,
    jira_issues_to_assessments,
    parse_work_paper_summary,
    work_paper_summary,
)
from csf_tracker.models.artifact import Artifact
from csf_tracker.models.assessment import Assessment
from csf_tracker.models.control import Control
from csf_tracker.models.finding import Finding


@pytest.fixture
def config():
    return JiraFieldConfig(project_key="CSF", issue_type_id="10001")


class TestWorkPaperSummary:
    """Tests for the WP-{assessment}-{item}-{quarter} summary."""

    def test_summary_round_trip_with_hyphens(self):
        summary = work_paper_summary("FY24-H1 Review", "GV.OC-01", "Q3")
        assert summary == "WP-FY24-H1 Review-GV.OC-01-Q3"
        assert parse_work_paper_summary(summary, "GV.OC-01", "Q3") == "FY24-H1 Review"

    @pytest.mark.parametrize("summary", ["Something else", "WP--CTL-001-Q1", "WP-A1-CTL-002-Q1"])
    def test_unparseable_summary_uses_default_name(self, summary):
        assert parse_work_paper_summary(summary, "CTL-001", "Q1") == IMPORTED_ASSESSMENT_NAME


class TestAssessmentIssues:
    """Tests for assessment to work paper issue conversion."""

    @pytest.fixture
    def assessment(self):
        return Assessment(
            name="A1",
            scope_type="controls",
            scope_ids=["CTL-001", "CTL-002"],
            observations={
                "CTL-001": {
                    "auditor_id": "u-1",
                    "test_procedures": "Inspect config",
                    "linked_artifacts": ["AR-7"],
                    "quarters": {
                        "Q2": {
                            "testing_status": "Complete",
                            "actual_score": 7.5,
                            "target_score": 8,
                            "observations": "OK",
                            "observation_date": "2024-05-02",
                            "examine": True,
                        },
                    },
                },
            },
        )

    def test_one_issue_per_started_quarter(self, assessment, directory, config):
        directory.create({"id": "u-1", "name": "Amy Lee", "email": "amy@x.com"})
        controls = [Control(control_id="CTL-001", implementation_description="MFA everywhere")]

        issues = assessments_to_jira_issues([assessment], controls, directory, config)

        assert len(issues) == 1
        fields = issues[0]["fields"]
        assert fields["summary"] == "WP-A1-CTL-001-Q2"
        assert fields["issuetype"] == {"id": "10001"}
        assert fields["assignee"] == {"emailAddress": "amy@x.com"}
        assert fields["quarter"] == {"value": "Q2"}
        assert fields["year"] == 2024
        assert fields["actual_score"] == {"value": "7.5"}
        assert fields["target_score"] == {"value": "8"}
        assert "MFA everywhere" in fields["description"]
        assert "* Examine: (/) Yes" in fields["description"]
        assert "* AR-7" in fields["description"]

    def test_issues_rebuild_assessment(self, assessment, directory, config):
        issues = assessments_to_jira_issues([assessment], [], directory, config)
        issues[0]["fields"]["updated"] = "2024-05-03T10:00:00.000+0000"

        records = jira_issues_to_assessments(issues, config)

        assert len(records) == 1
        record = records[0]
        assert record["name"] == "A1"
        assert record["scope_ids"] == ["CTL-001"]
        rebuilt = Assessment.model_validate(record)
        q2 = rebuilt.observations["CTL-001"].quarters["Q2"]
        assert (q2.actual_score, q2.target_score, q2.testing_status) == (7.5, 8.0, "Complete")
        assert q2.observation_date == "2024-05-03"
        assert rebuilt.observations["CTL-001"].quarters["Q1"].testing_status == "Not Started"

    def test_issues_without_item_are_skipped(self, config):
        assert jira_issues_to_assessments([{"fields": {"summary": "WP-x"}}], config) == []


class TestFindingAndArtifactIssues:
    """Tests for finding and artifact issue fields."""

    def test_finding_fields(self, directory, config):
        directory.create({"id": "u-2", "name": "Raj Patel", "email": "raj@x.com"})
        finding = Finding(
            summary="No MFA on VPN",
            control_id="CTL-001",
            root_cause="Legacy appliance",
            remediation_action_plan="Replace appliance",
            remediation_owner_id="u-2",
            due_date="2024-09-30",
            priority="High",
        )

        fields = finding_to_issue_fields(finding, directory, config)

        assert fields["project"] == {"key": "FND"}
        assert fields["priority"] == {"name": "High"}
        assert fields["assignee"] == {"emailAddress": "raj@x.com"}
        assert fields["duedate"] == "2024-09-30"
        assert fields["control_id"] == "CTL-001"
        assert "Legacy appliance" in fields["description"]

    def test_finding_without_owner_has_no_assignee(self, directory, config):
        fields = finding_to_issue_fields(Finding(summary="Gap"), directory, config)
        assert "assignee" not in fields
        assert "duedate" not in fields

    def test_artifact_fields(self, config):
        artifact = Artifact(name="VPN config export", link="https://x/1", type="Config", control_id="CTL-001")
        fields = artifact_to_issue_fields(artifact, config)
        assert fields["project"] == {"key": "AR"}
        assert fields["summary"] == "VPN config export"
        assert fields["link"] == "https://x/1"

    def test_issue_to_finding_record(self, config):
        issue = {
            "key": "FND-12",
            "fields": {
                "summary": "No MFA on VPN",
                "status": {"name": "Done"},
                "priority": {"name": "highest"},
                "control_id": "CTL-001",
                "duedate": "2024-09-30",
            },
        }

        record = issue_to_finding_record(issue, config)

        assert record["jira_key"] == "FND-12"
        assert record["status"] == "Resolved"
        assert record["priority"] == "Medium"
        assert record["control_id"] == "CTL-001"
        assert record["due_date"] == "2024-09-30"
