"""
Unit tests for the assessments store: scope, observations, progress,
cloning and CSV interchange.
"""
import pytest

from csf_tracker.core.errors import ValidationError
from csf_tracker.models.assessment import QUARTERS
from csf_tracker.stores import AssessmentsStore
from conftest import fixed_clock

ITEMS = ["GV.OC-01 Ex1", "GV.OC-02 Ex1", "ID.AM-01 Ex1", "PR.AA-01 Ex1"]


@pytest.fixture
def scoped(assessments):
    """An assessment with four scoped requirements."""
    assessment = assessments.create({"name": "FY24", "scope_type": "requirements"})
    assessments.bulk_add_to_scope(assessment.id, ITEMS)
    return assessments.get(assessment.id)


class TestScope:
    """Tests for adding and removing scope."""

    def test_add_to_scope_seeds_empty_observation(self, assessments):
        assessment = assessments.create({"name": "FY24"})
        assessments.add_to_scope(assessment.id, "GV.OC-01 Ex1")

        observation = assessments.get_observation(assessment.id, "GV.OC-01 Ex1")

        assert tuple(observation.quarters) == QUARTERS
        assert all(q.testing_status == "Not Started" for q in observation.quarters.values())

    def test_adding_twice_keeps_one_entry(self, scoped, assessments):
        assessments.add_to_scope(scoped.id, ITEMS[0])
        assert assessments.get(scoped.id).scope_ids == ITEMS

    def test_adding_keeps_existing_observation(self, scoped, assessments):
        assessments.update_quarterly_observation(scoped.id, ITEMS[0], "Q1", {"actual_score": 5})
        assessments.bulk_add_to_scope(scoped.id, ITEMS + ["DE.CM-01 Ex1"])
        assert assessments.get_observation(scoped.id, ITEMS[0]).quarters["Q1"].actual_score == 5.0

    def test_remove_from_scope_drops_observation(self, scoped, assessments):
        assessments.remove_from_scope(scoped.id, ITEMS[1])

        current = assessments.get(scoped.id)
        assert ITEMS[1] not in current.scope_ids
        assert ITEMS[1] not in current.observations
        assert assessments.get_observation(scoped.id, ITEMS[1]) is None

    def test_unknown_scope_targets_rejected(self, resolver):
        store = AssessmentsStore(
            resolver,
            clock=fixed_clock,
            scope_exists=lambda scope_type, item_id: item_id.startswith("CTL-"),
        )
        assessment = store.create({"name": "Controls", "scope_type": "controls"})

        with pytest.raises(ValidationError):
            store.bulk_add_to_scope(assessment.id, ["CTL-001", "BOGUS"])
        assert store.get(assessment.id).scope_ids == []

    def test_unknown_assessment(self, assessments):
        assert assessments.add_to_scope("missing", "X") is None
        assert assessments.get_observation("missing", "X") is None


class TestObservations:
    """Tests for observation updates."""

    def test_update_quarterly_observation_snaps_scores(self, scoped, assessments):
        observation = assessments.update_quarterly_observation(
            scoped.id, ITEMS[0], "Q2", {"actual_score": 7.3, "target_score": 11, "testing_status": "complete"}
        )

        q2 = observation.quarters["Q2"]
        assert (q2.actual_score, q2.target_score, q2.testing_status) == (7.5, 10.0, "Complete")
        assert observation.quarters["Q1"].actual_score == 0.0

    def test_update_observation_merges_nested_fields(self, scoped, assessments, resolver):
        amy = resolver.resolve("Amy <amy@x.com>")
        assessments.update_observation(scoped.id, ITEMS[0], {"remediation": {"action_plan": "Fix it"}})
        observation = assessments.update_observation(scoped.id, ITEMS[0], {"remediation": {"owner_id": amy}})

        assert observation.remediation.action_plan == "Fix it"
        assert observation.remediation.owner_id == amy

    def test_updates_outside_scope_are_ignored(self, scoped, assessments):
        assert assessments.update_observation(scoped.id, "NOT-SCOPED", {"test_procedures": "x"}) is None
        assert "NOT-SCOPED" not in assessments.get(scoped.id).observations

    def test_invalid_quarter_rejected(self, scoped, assessments):
        with pytest.raises(ValidationError):
            assessments.update_quarterly_observation(scoped.id, ITEMS[0], "Q5", {"actual_score": 1})

    def test_bulk_update_observations(self, scoped, assessments):
        changed = assessments.bulk_update_observations(
            scoped.id, ITEMS[:3] + ["NOT-SCOPED"], "Q3", {"testing_status": "In Progress"}
        )

        assert changed == 3
        statuses = [assessments.get_observation(scoped.id, i).quarters["Q3"].testing_status for i in ITEMS]
        assert statuses == ["In Progress", "In Progress", "In Progress", "Not Started"]

        assessments.undo()
        assert assessments.get_observation(scoped.id, ITEMS[0]).quarters["Q3"].testing_status == "Not Started"

    def test_remediation_items(self, scoped, assessments):
        assessments.update_observation(scoped.id, ITEMS[2], {"remediation": {"due_date": "2024-09-30"}})

        items = assessments.get_remediation_items()

        assert [(i.assessment_name, i.item_id) for i in items] == [("FY24", ITEMS[2])]
        assert assessments.get_remediation_items("other") == []


class TestProgress:
    """Tests for per-quarter progress."""

    def test_progress_counts_current_quarter(self, scoped, assessments):
        assessments.update_quarterly_observation(scoped.id, ITEMS[0], "Q2", {"testing_status": "Complete"})
        assessments.update_quarterly_observation(scoped.id, ITEMS[1], "Q2", {"testing_status": "In Progress"})
        assessments.update_quarterly_observation(scoped.id, ITEMS[2], "Q1", {"testing_status": "Complete"})

        progress = assessments.get_assessment_progress(scoped.id)

        assert progress.quarter == "Q2"
        assert (progress.total, progress.completed, progress.in_progress) == (4, 1, 1)
        assert progress.not_started == 2
        assert progress.percentage == 25

    def test_progress_for_explicit_quarter(self, scoped, assessments):
        assessments.update_quarterly_observation(scoped.id, ITEMS[2], "Q1", {"testing_status": "Submitted"})
        progress = assessments.get_assessment_progress(scoped.id, "Q1")
        assert (progress.submitted, progress.percentage) == (1, 0)

    def test_progress_skips_deleted_targets(self, resolver):
        live = {"CTL-001"}
        store = AssessmentsStore(
            resolver,
            clock=fixed_clock,
            scope_exists=lambda scope_type, item_id: item_id in live,
        )
        assessment = store.create({"name": "A", "scope_type": "controls", "scope_ids": ["CTL-001", "CTL-002"]})

        assert store.get_assessment_progress(assessment.id).total == 1

    def test_percentage_rounds_halves_up(self, assessments):
        items = [f"CTL-{n:03d}" for n in range(1, 9)]
        assessment = assessments.create({"name": "Eight", "scope_type": "controls"})
        assessments.bulk_add_to_scope(assessment.id, items)
        assessments.update_quarterly_observation(assessment.id, items[0], "Q2", {"testing_status": "Complete"})

        progress = assessments.get_assessment_progress(assessment.id, "Q2")

        assert (progress.total, progress.completed, progress.percentage) == (8, 1, 13)

    def test_empty_assessment(self, assessments):
        assessment = assessments.create({"name": "Empty"})
        progress = assessments.get_assessment_progress(assessment.id)
        assert (progress.total, progress.percentage) == (0, 0)
        assert assessments.get_assessment_progress("missing") is None


class TestClone:
    """Tests for clone_assessment."""

    def test_clone_resets_results(self, assessments, resolver):
        auditor = resolver.resolve("Amy <amy@x.com>")
        source = assessments.create({"name": "A1"})
        assessments.add_to_scope(source.id, "CTL-001")
        assessments.update_observation(source.id, "CTL-001", {
            "auditor_id": auditor,
            "linked_artifacts": ["AR-1"],
            "remediation": {"action_plan": "Fix"},
        })
        assessments.update_quarterly_observation(source.id, "CTL-001", "Q1", {
            "actual_score": 7,
            "target_score": 8,
            "testing_status": "Complete",
            "observations": "All good",
            "examine": True,
        })

        clone = assessments.clone_assessment(source.id, "A1 Copy")

        assert clone.id != source.id
        assert clone.name == "A1 Copy"
        assert clone.scope_ids == ["CTL-001"]
        observation = clone.observations["CTL-001"]
        q1 = observation.quarters["Q1"]
        assert q1.testing_status == "Not Started"
        assert q1.actual_score == 0
        assert q1.observations == ""
        assert q1.target_score == 8
        assert q1.examine is True
        assert observation.auditor_id == auditor
        assert observation.linked_artifacts == ["AR-1"]
        assert observation.remediation.action_plan == ""
        assert assessments.get(source.id).observations["CTL-001"].quarters["Q1"].actual_score == 7

    def test_clone_default_name(self, assessments):
        source = assessments.create({"name": "A1"})
        assert assessments.clone_assessment(source.id).name == "A1 (Copy)"
        assert assessments.clone_assessment("missing") is None


class TestCurrentAssessment:
    """Tests for the selected assessment."""

    def test_select_notifies_and_is_persisted(self, assessments):
        events = []
        assessments.subscribe(lambda store, action: events.append(action))
        assessment = assessments.create({"name": "A"})

        assessments.set_current_assessment(assessment.id)

        assert events[-1] == "select"
        assert assessments.snapshot()["current_assessment_id"] == assessment.id

    def test_deleting_current_clears_selection(self, assessments):
        assessment = assessments.create({"name": "A"})
        assessments.set_current_assessment(assessment.id)
        assessments.delete(assessment.id)
        assert assessments.current_assessment_id is None


class TestAssessmentsCsv:
    """Tests for observation CSV export and import."""

    def test_export_import_round_trip(self, scoped, assessments, resolver):
        amy = resolver.resolve("Amy Lee <amy@x.com>")
        assessments.update_observation(scoped.id, ITEMS[0], {"auditor_id": amy, "test_procedures": "Inspect, interview"})
        assessments.update_quarterly_observation(scoped.id, ITEMS[0], "Q2", {
            "actual_score": 6.5, "testing_status": "Complete", "observation_date": "2024-05-01", "test": True,
        })
        text = assessments.export_csv(scoped.id)

        result = assessments.import_csv(text)

        assert result.imported == 4
        imported = assessments.get(result.keys[0])
        assert imported.id != scoped.id
        assert imported.name == "FY24"
        assert imported.scope_type == "requirements"
        assert imported.scope_ids == ITEMS
        assert imported.observations == assessments.get(scoped.id).observations

    def test_blank_assessment_cell_continues_previous(self, assessments):
        text = (
            "ID,Assessment,Scope Type,Q1 Actual Score\n"
            "CTL-001,Alpha,Controls,5\n"
            "CTL-002,,,6\n"
            "CTL-003,Beta,,7\n"
        )

        result = assessments.import_csv(text)

        alpha, beta = (assessments.get(key) for key in result.keys)
        assert (alpha.name, alpha.scope_ids, alpha.scope_type) == ("Alpha", ["CTL-001", "CTL-002"], "controls")
        assert (beta.name, beta.scope_ids, beta.scope_type) == ("Beta", ["CTL-003"], "controls")
        assert alpha.observations["CTL-002"].quarters["Q1"].actual_score == 6.0

    def test_legacy_single_period_file(self, assessments):
        text = "ID,Assessment,Actual Score,Testing Status\nCTL-001,Old,4,Complete\n"

        result = assessments.import_csv(text)

        q = assessments.get(result.keys[0]).observations["CTL-001"].quarters
        assert (q["Q1"].actual_score, q["Q1"].testing_status) == (4.0, "Complete")
        assert q["Q2"].testing_status == "Not Started"

    def test_rows_without_assessment_or_id_skipped(self, assessments):
        result = assessments.import_csv("ID,Assessment,Q1 Actual Score\nCTL-001,,1\n,Alpha,2\nCTL-002,Alpha,3\n")
        assert (result.imported, result.skipped) == (1, 2)

    def test_export_all(self, scoped, assessments):
        other = assessments.create({"name": "Other"})
        assessments.add_to_scope(other.id, "X")
        lines = assessments.export_all_csv().splitlines()
        assert len(lines) == 1 + len(ITEMS) + 1
        assert assessments.export_csv("missing") is None
