"""
Unit tests for the findings store.
"""
from datetime import date

import pytest

from csf_tracker.codec import parse_csv
from csf_tracker.stores.findings import map_jira_status, normalize_priority


class TestFindingNormalisation:
    """Tests for status and priority mapping."""

    @pytest.mark.parametrize("raw,expected", [
        ("To Do", "Not Started"),
        ("open", "Not Started"),
        ("In Progress", "In Progress"),
        ("Done", "Resolved"),
        ("CLOSED", "Resolved"),
        ("Blocked", "Not Started"),
        (None, "Not Started"),
    ])
    def test_map_jira_status(self, raw, expected):
        assert map_jira_status(raw) == expected

    def test_normalize_priority(self):
        assert normalize_priority("high") == "High"
        assert normalize_priority("Urgent") == "Medium"

    def test_create_normalises(self, findings):
        finding = findings.create({"summary": "Gap", "status": "done", "priority": "critical"})
        assert (finding.status, finding.priority) == ("Resolved", "Critical")


class TestFindingQueries:
    """Tests for queries and statistics."""

    def test_filters(self, findings):
        findings.create({"summary": "A", "control_id": "CTL-001", "assessment_id": "as-1", "priority": "High"})
        findings.create({"summary": "B", "control_id": "CTL-002", "status": "In Progress", "jira_key": "FND-1"})

        assert [f.summary for f in findings.get_by_control("CTL-001")] == ["A"]
        assert [f.summary for f in findings.get_by_assessment("as-1")] == ["A"]
        assert [f.summary for f in findings.get_by_status("In Progress")] == ["B"]
        assert [f.summary for f in findings.get_by_priority("High")] == ["A"]
        assert [f.summary for f in findings.unsynced()] == ["A"]

    def test_statistics(self, findings):
        findings.create({"summary": "late", "due_date": "2024-01-31"})
        findings.create({"summary": "late but done", "due_date": "2024-01-31", "status": "Resolved"})
        findings.create({"summary": "future", "due_date": "2024-12-31", "priority": "Low"})
        findings.create({"summary": "no date"})

        stats = findings.statistics(today=date(2024, 5, 15))

        assert stats.total == 4
        assert stats.overdue == 1
        assert stats.by_status == {"Not Started": 3, "In Progress": 0, "Resolved": 1}
        assert stats.by_priority["Medium"] == 3
        assert stats.by_priority["Low"] == 1


class TestFindingLinks:
    """Tests for artifact links and Jira keys."""

    def test_link_and_unlink_artifact(self, findings):
        finding = findings.create({"summary": "Gap"})
        findings.link_artifact(finding.id, "art-1")
        findings.link_artifact(finding.id, "art-1")
        assert findings.get(finding.id).linked_artifacts == ["art-1"]
        findings.unlink_artifact(finding.id, "art-1")
        assert findings.get(finding.id).linked_artifacts == []

    def test_set_jira_keys(self, findings):
        a = findings.create({"summary": "A"})
        b = findings.create({"summary": "B"})
        assert findings.set_jira_keys({a.id: "FND-1", b.id: "FND-2"}) == 2
        assert findings.get(a.id).jira_key == "FND-1"
        assert findings.set_jira_key(b.id, "FND-9").jira_key == "FND-9"


class TestFindingsCsv:
    """Tests for CSV import and export."""

    def test_jira_export_import(self, findings, directory):
        text = (
            "Issue key,Summary,Status,Priority,Assignee,Due date,Custom field (Root Case),"
            "Custom field (Compliance Requirement),Created\n"
            "FND-12,Stale accounts,Done,High,Amy Lee <amy@x.com>,2024-06-30,No offboarding,GV.OC-01,"
            "2024-02-01T09:30:00+00:00\n"
        )

        result = findings.import_csv(text)

        assert result.imported == 1
        finding = findings.get_by_jira_key("FND-12")
        assert finding.id != "FND-12"
        assert finding.status == "Resolved"
        assert finding.priority == "High"
        assert finding.root_cause == "No offboarding"
        assert finding.control_id == "GV.OC-01"
        assert finding.created_date.year == 2024 and finding.created_date.month == 2
        assert directory.get(finding.remediation_owner_id).name == "Amy Lee"

    def test_reimport_updates_existing(self, findings):
        findings.import_csv("Finding ID,Summary,Status\nF-1,Gap,To Do\n")
        findings.import_csv("Finding ID,Summary,Status\nF-1,Gap,In Progress\n")

        assert findings.count() == 1
        assert findings.get("F-1").status == "In Progress"

    def test_jira_reimport_matches_on_jira_key(self, findings):
        local = findings.create({"summary": "Stale accounts", "linked_artifacts": ["a1"]})
        findings.set_jira_key(local.id, "FND-12")

        result = findings.import_csv("Issue key,Summary,Status\nFND-12,Stale accounts,Done\n")

        assert result.keys == [local.id]
        assert findings.count() == 1
        updated = findings.get(local.id)
        assert updated.status == "Resolved"
        assert updated.jira_key == "FND-12"
        assert updated.linked_artifacts == ["a1"]

    def test_repeated_jira_key_in_one_file_is_one_finding(self, findings):
        findings.import_csv("Issue key,Summary,Status\nFND-3,Gap,To Do\nFND-3,Gap,In Progress\n")

        assert findings.count() == 1
        assert findings.get_by_jira_key("FND-3").status == "In Progress"

    def test_rows_get_generated_ids(self, findings):
        result = findings.import_csv("Summary\nOne\nTwo\n")
        assert len(set(result.keys)) == 2
        assert findings.count() == 2

    def test_rows_without_summary_skipped(self, findings):
        result = findings.import_csv("Summary,Status\n,Done\n")
        assert result.skipped == 1
        assert findings.count() == 0

    def test_export_round_trip(self, findings, resolver):
        owner = resolver.resolve("Amy Lee <amy@x.com>")
        findings.create({
            "id": "F-1",
            "summary": "Gap",
            "description": "Multi\nline",
            "control_id": "CTL-001",
            "remediation_owner_id": owner,
            "due_date": "2024-06-30",
            "status": "In Progress",
            "priority": "High",
            "jira_key": "FND-1",
            "linked_artifacts": ["a1", "a2"],
        })
        before = findings.get("F-1")

        findings.import_csv(findings.export_csv())

        assert findings.get("F-1") == before

    def test_export_jira_csv(self, findings, resolver):
        owner = resolver.resolve("Amy Lee <amy@x.com>")
        findings.create({
            "summary": "Gap",
            "control_id": "CTL-001",
            "root_cause": "Manual process",
            "remediation_action_plan": "Automate",
            "remediation_owner_id": owner,
        })

        _, rows = parse_csv(findings.export_jira_csv(
            "FND", requirements_for_control=lambda control_id: ["GV.OC-01 Ex1", "GV.OC-02 Ex1"]
        ))

        row = rows[0]
        assert row["Issue Type"] == "Finding"
        assert row["Assignee"] == "amy@x.com"
        assert row["Custom field (Compliance Requirement)"] == "GV.OC-01 Ex1; GV.OC-02 Ex1"
        assert "Root Cause:\nManual process" in row["Description"]
