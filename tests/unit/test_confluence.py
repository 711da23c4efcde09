"""
Unit tests for the Confluence database row transforms.
"""
from csf_tracker.codec import parse_csv
from csf_tracker.integrations.confluence import (
    CONFLUENCE_REQUIREMENT_HEADERS,
    confluence_rows_to_controls,
    confluence_rows_to_requirements,
    controls_to_confluence_rows,
    export_requirements_confluence_csv,
    requirements_to_confluence_rows,
)
from csf_tracker.models.requirement import Requirement
from csf_tracker.services import CrossLinkAggregator


class TestControlRows:
    """Tests for control rows."""

    def test_rows_use_display_names(self, controls, resolver, directory):
        amy = resolver.resolve("Amy Lee <amy@x.com>")
        raj = resolver.resolve("Raj Patel <raj@x.com>")
        controls.create({
            "control_id": "CTL-001",
            "owner_id": amy,
            "stakeholder_ids": [raj, "u-gone"],
            "linked_requirement_ids": ["R1", "R2"],
        })

        rows = controls_to_confluence_rows(controls.all(), directory)

        assert rows[0]["Control Owner"] == "Amy Lee"
        assert rows[0]["Stakeholders"] == "Raj Patel"
        assert rows[0]["Linked Requirements"] == "R1, R2"

    def test_rows_resolve_people_by_name(self, resolver, directory):
        amy = resolver.resolve("Amy Lee <amy@x.com>")
        rows = [
            {
                "Control ID": "CTL-001",
                "Implementation Description": " MFA ",
                "Control Owner": "Amy Lee",
                "Stakeholders": "Amy Lee, Dana Wu",
                "Linked Requirements": "R1, R2,",
                "Created Date": "2024-01-02T00:00:00+00:00",
            },
            {"Control ID": "  ", "Control Owner": "Nobody"},
        ]

        records = confluence_rows_to_controls(rows, resolver)

        assert len(records) == 1
        record = records[0]
        assert record["implementation_description"] == "MFA"
        assert record["owner_id"] == amy
        assert record["stakeholder_ids"][0] == amy
        assert directory.get(record["stakeholder_ids"][1]).name == "Dana Wu"
        assert record["linked_requirement_ids"] == ["R1", "R2"]
        assert record["created_date"] == "2024-01-02T00:00:00+00:00"
        assert "last_modified" not in record
        assert directory.get_by_name("Nobody") is None


class TestRequirementRows:
    """Tests for requirement rows."""

    def test_rows_read_back(self):
        requirement = Requirement(
            id="GV.OC-01 Ex1",
            framework_id="nist-csf-2.0",
            function="GOVERN (GV)",
            category="Organizational Context (GV.OC)",
            subcategory_id="GV.OC-01",
            in_scope=True,
        )

        rows = requirements_to_confluence_rows([requirement])
        records = confluence_rows_to_requirements(rows, default_framework_id="other")

        assert Requirement.model_validate(records[0]) == requirement

    def test_missing_framework_uses_default(self):
        records = confluence_rows_to_requirements(
            [{"Requirement ID": "R1", "In Scope": "no"}, {"Requirement ID": ""}],
            default_framework_id="nist-csf-2.0",
        )
        assert records == [{
            "id": "R1",
            "framework_id": "nist-csf-2.0",
            "function": "",
            "category": "",
            "category_id": "",
            "subcategory_id": "",
            "subcategory_description": "",
            "implementation_example": "",
            "in_scope": False,
        }]

    def test_export_csv_has_owners_from_linked_controls(
        self, controls, requirements, artifacts, findings, directory, resolver
    ):
        requirements.restore({"requirements": [{"id": "R1", "framework_id": "nist-csf-2.0", "in_scope": True}]})
        controls.create({
            "control_id": "CTL-001",
            "owner_id": resolver.resolve("Amy Lee <amy@x.com>"),
            "linked_requirement_ids": ["R1"],
        })
        aggregator = CrossLinkAggregator(controls, requirements, artifacts, findings, directory)

        headers, rows = parse_csv(export_requirements_confluence_csv(aggregator, "nist-csf-2.0"))

        assert headers == CONFLUENCE_REQUIREMENT_HEADERS
        assert rows[0]["Control Owner"] == "Amy Lee"
        assert rows[0]["Controls In Scope"] == "CTL-001"
        assert rows[0]["In Scope"] == "Yes"
