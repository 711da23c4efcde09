"""
Migration chains for every persisted store.

Early snapshots were written with camelCase keys, single-period
observations and legacy link fields; each chain lifts those shapes to the
current models one version at a time. Every step leaves state that is
already in its target shape unchanged, and seed data is only installed into
an empty collection.
"""

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from csf_tracker.core.config import DEFAULT_FRAMEWORK_ID
from csf_tracker.identity.parser import normalize_email
from csf_tracker.models.assessment import QUARTERS
from csf_tracker.models.common import unique_ids
from csf_tracker.models.requirement import derive_category_id
from csf_tracker.persistence.migrator import MigrationStep, SchemaMigrator

SEED_DIR = Path(__file__).parent / "seed"


def load_seed(name: str) -> list[dict]:
    """Records shipped in ``seed/<name>.json``, already in the current shape."""
    return json.loads((SEED_DIR / f"{name}.json").read_text(encoding="utf-8"))


# Installed only for installations whose collection is empty.
DEFAULT_USERS = load_seed("users")
DEFAULT_CONTROLS: list[dict] = []
DEFAULT_ASSESSMENTS = load_seed("assessments")
DEFAULT_FINDINGS = load_seed("findings")

CONTROL_KEYS = {
    "controlId": "control_id",
    "implementationDescription": "implementation_description",
    "ownerId": "owner_id",
    "stakeholderIds": "stakeholder_ids",
    "linkedRequirementIds": "linked_requirement_ids",
    "createdDate": "created_date",
    "lastModified": "last_modified",
}

REQUIREMENT_KEYS = {
    "frameworkId": "framework_id",
    "functionDescription": "function_description",
    "categoryDescription": "category_description",
    "categoryId": "category_id",
    "subcategoryId": "subcategory_id",
    "subcategoryDescription": "subcategory_description",
    "implementationExample": "implementation_example",
    "inScope": "in_scope",
}

ASSESSMENT_KEYS = {
    "scopeType": "scope_type",
    "scopeIds": "scope_ids",
    "frameworkFilter": "framework_filter",
    "createdDate": "created_date",
    "lastModified": "last_modified",
}

OBSERVATION_KEYS = {
    "auditorId": "auditor_id",
    "testProcedures": "test_procedures",
    "linkedArtifacts": "linked_artifacts",
}

QUARTER_KEYS = {
    "actualScore": "actual_score",
    "targetScore": "target_score",
    "observationDate": "observation_date",
    "testingStatus": "testing_status",
}

REMEDIATION_KEYS = {
    "ownerId": "owner_id",
    "actionPlan": "action_plan",
    "dueDate": "due_date",
}

ARTIFACT_KEYS = {
    "artifactId": "artifact_id",
    "controlId": "control_id",
    "linkedEvaluationIds": "linked_evaluation_ids",
    "linkedSubcategoryIds": "linked_subcategory_ids",
    "complianceRequirement": "compliance_requirement",
    "createdDate": "created_date",
    "lastModified": "last_modified",
}

FINDING_KEYS = {
    "controlId": "control_id",
    "assessmentId": "assessment_id",
    "rootCause": "root_cause",
    "remediationActionPlan": "remediation_action_plan",
    "remediationOwner": "remediation_owner_id",
    "remediation_owner": "remediation_owner_id",
    "dueDate": "due_date",
    "jiraKey": "jira_key",
    "linkedArtifacts": "linked_artifacts",
    "complianceRequirement": "compliance_requirement",
    "createdDate": "created_date",
    "lastModified": "last_modified",
}

LEGACY_QUARTER_FIELDS = ("actualScore", "targetScore", "observations", "observationDate", "testingStatus")


# ==================== Helpers ====================

def rename_keys(record: dict, mapping: dict[str, str]) -> dict:
    """Rename legacy keys; a canonical key already present wins."""
    renamed = {}
    for key, value in record.items():
        target = mapping.get(key, key)
        if target != key and target in record:
            continue
        renamed[target] = value
    return renamed


def records(state: dict, collection: str) -> list[dict]:
    return [record for record in state.get(collection) or [] if isinstance(record, dict)]


def as_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_id_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(";")
    return unique_ids(as_id(item) for item in value if as_id(item))


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("yes", "true", "1")
    return bool(value)


def seed_if_empty(collection: str, seed: Sequence[dict]) -> Callable[[dict], dict]:
    """Step installing ``seed`` only when ``collection`` holds no records."""

    def apply(state: dict) -> dict:
        if records(state, collection):
            return state
        return {**state, collection: deepcopy(list(seed))}

    return apply


def map_collection(collection: str, transform: Callable[[dict], Optional[dict]]) -> Callable[[dict], dict]:
    """Step applying ``transform`` to every record; None drops the record."""

    def apply(state: dict) -> dict:
        transformed = (transform(record) for record in records(state, collection))
        return {**state, collection: [record for record in transformed if record is not None]}

    return apply


def dedupe_by(collection: str, key: str) -> Callable[[dict], dict]:

    def apply(state: dict) -> dict:
        seen = set()
        kept = []
        for record in records(state, collection):
            if record.get(key) in seen:
                continue
            seen.add(record.get(key))
            kept.append(record)
        return {**state, collection: kept}

    return apply


def chain(*steps: Callable[[dict], dict]) -> Callable[[dict], dict]:

    def apply(state: dict) -> dict:
        for step in steps:
            state = step(state)
        return state

    return apply


# ==================== Users ====================

def _normalize_user(record: dict) -> Optional[dict]:
    name = str(record.get("name") or "").strip()
    if not name:
        return None
    user = dict(record)
    user["id"] = as_id(record.get("id"))
    user["name"] = name
    user["email"] = normalize_email(record.get("email"))
    if user["id"] is None:
        return None
    return user


def users_migrator(seed: Sequence[dict] = DEFAULT_USERS) -> SchemaMigrator:
    return SchemaMigrator("users", [
        MigrationStep(1, "string ids, repaired email addresses, defaults for empty installations", chain(
            map_collection("users", _normalize_user),
            dedupe_by("users", "id"),
            seed_if_empty("users", seed),
        )),
    ])


# ==================== Controls ====================

def _control_snake_case(record: dict) -> dict:
    control = rename_keys(record, CONTROL_KEYS)
    if "owner_id" in control:
        control["owner_id"] = as_id(control["owner_id"])
    return control


def _control_lists(record: dict) -> Optional[dict]:
    control = dict(record)
    control["control_id"] = as_id(control.get("control_id"))
    if control["control_id"] is None:
        return None
    control["stakeholder_ids"] = as_id_list(control.get("stakeholder_ids"))
    control["linked_requirement_ids"] = as_id_list(control.get("linked_requirement_ids"))
    control["implementation_description"] = control.get("implementation_description") or ""
    return control


def controls_migrator(seed: Sequence[dict] = DEFAULT_CONTROLS) -> SchemaMigrator:
    return SchemaMigrator("controls", [
        MigrationStep(1, "snake_case keys", map_collection("controls", _control_snake_case)),
        MigrationStep(2, "normalised link lists, unique control ids", chain(
            map_collection("controls", _control_lists),
            dedupe_by("controls", "control_id"),
        )),
        MigrationStep(3, "empty default collection", seed_if_empty("controls", seed)),
    ])


# ==================== Requirements ====================

def _requirement_fields(record: dict) -> Optional[dict]:
    requirement = rename_keys(record, REQUIREMENT_KEYS)
    requirement["id"] = as_id(requirement.get("id"))
    if requirement["id"] is None:
        return None
    for derived in ("controlOwner", "stakeholders"):
        requirement.pop(derived, None)
    requirement["framework_id"] = requirement.get("framework_id") or DEFAULT_FRAMEWORK_ID
    requirement["in_scope"] = as_bool(requirement.get("in_scope"))
    if not requirement.get("category_id"):
        requirement["category_id"] = derive_category_id(requirement.get("category"))
    return requirement


def requirements_migrator() -> SchemaMigrator:
    return SchemaMigrator("requirements", [
        MigrationStep(1, "snake_case keys, derived category ids", map_collection(
            "requirements", _requirement_fields
        )),
    ])


# ==================== Assessments ====================

def _legacy_observation_to_quarterly(observation: dict) -> dict:
    if "quarters" in observation:
        return observation
    methods = observation.get("assessmentMethods") or {}
    q1 = {field: observation[field] for field in LEGACY_QUARTER_FIELDS if field in observation}
    for method in ("examine", "interview", "test"):
        q1[method] = as_bool(methods.get(method, observation.get(method, False)))
    upgraded = {
        key: value for key, value in observation.items()
        if key not in LEGACY_QUARTER_FIELDS and key not in ("assessmentMethods", "examine", "interview", "test")
    }
    upgraded["quarters"] = {"Q1": q1, "Q2": {}, "Q3": {}, "Q4": {}}
    return upgraded


def _assessment_quarterly(record: dict) -> dict:
    assessment = dict(record)
    observations = assessment.get("observations") or {}
    assessment["observations"] = {
        item_id: _legacy_observation_to_quarterly(observation)
        for item_id, observation in observations.items()
        if isinstance(observation, dict)
    }
    return assessment


def _observation_snake_case(observation: dict) -> dict:
    upgraded = rename_keys(observation, OBSERVATION_KEYS)
    upgraded["auditor_id"] = as_id(upgraded.get("auditor_id"))
    upgraded["linked_artifacts"] = as_id_list(upgraded.get("linked_artifacts"))
    quarters = upgraded.get("quarters") or {}
    upgraded["quarters"] = {
        quarter: rename_keys(quarters.get(quarter) or {}, QUARTER_KEYS) for quarter in QUARTERS
    }
    remediation = rename_keys(upgraded.get("remediation") or {}, REMEDIATION_KEYS)
    if "owner_id" in remediation:
        remediation["owner_id"] = as_id(remediation["owner_id"])
    upgraded["remediation"] = remediation
    return upgraded


def _assessment_snake_case(record: dict) -> Optional[dict]:
    assessment = rename_keys(record, ASSESSMENT_KEYS)
    assessment["id"] = as_id(assessment.get("id"))
    if assessment["id"] is None:
        return None
    observations = {
        str(item_id): _observation_snake_case(observation)
        for item_id, observation in (assessment.get("observations") or {}).items()
    }
    # Observed items are always in scope.
    assessment["scope_ids"] = unique_ids(as_id_list(assessment.get("scope_ids")) + list(observations))
    assessment["observations"] = observations
    assessment["scope_type"] = str(assessment.get("scope_type") or "requirements").lower()
    return assessment


def _assessment_state_keys(state: dict) -> dict:
    return rename_keys(state, {"currentAssessmentId": "current_assessment_id"})


def assessments_migrator(seed: Sequence[dict] = DEFAULT_ASSESSMENTS) -> SchemaMigrator:
    return SchemaMigrator("assessments", [
        MigrationStep(0, "single-period observations moved into Q1", map_collection(
            "assessments", _assessment_quarterly
        )),
        MigrationStep(1, "snake_case keys, all four quarters, unique scope", chain(
            _assessment_state_keys,
            map_collection("assessments", _assessment_snake_case),
            dedupe_by("assessments", "id"),
        )),
        MigrationStep(2, "default assessments for empty installations", seed_if_empty("assessments", seed)),
    ])


# ==================== Artifacts ====================

def _artifact_control_link(record: dict) -> Optional[dict]:
    artifact = rename_keys(record, ARTIFACT_KEYS)
    artifact["id"] = as_id(artifact.get("id"))
    if artifact["id"] is None or not str(artifact.get("name") or "").strip():
        return None
    legacy_requirement = as_id(artifact.pop("compliance_requirement", None))
    legacy_subcategories = as_id_list(artifact.pop("linked_subcategory_ids", None))
    control_id = as_id(artifact.get("control_id"))
    if control_id is None:
        control_id = legacy_requirement or (legacy_subcategories[0] if legacy_subcategories else None)
    artifact["control_id"] = control_id
    artifact["linked_evaluation_ids"] = as_id_list(artifact.get("linked_evaluation_ids"))
    artifact["artifact_id"] = str(artifact.get("artifact_id") or "")
    return artifact


def artifacts_migrator() -> SchemaMigrator:
    return SchemaMigrator("artifacts", [
        MigrationStep(1, "legacy requirement links folded into control_id", map_collection(
            "artifacts", _artifact_control_link
        )),
    ])


# ==================== Findings ====================

def _finding_control_link(record: dict) -> Optional[dict]:
    finding = rename_keys(record, FINDING_KEYS)
    finding["id"] = as_id(finding.get("id"))
    if finding["id"] is None:
        return None
    legacy_requirement = as_id(finding.pop("compliance_requirement", None))
    finding["control_id"] = as_id(finding.get("control_id")) or legacy_requirement
    finding["remediation_owner_id"] = as_id(finding.get("remediation_owner_id"))
    finding["linked_artifacts"] = as_id_list(finding.get("linked_artifacts"))
    return finding


def findings_migrator(seed: Sequence[dict] = DEFAULT_FINDINGS) -> SchemaMigrator:
    return SchemaMigrator("findings", [
        MigrationStep(1, "legacy requirement link folded into control_id, defaults for empty installations", chain(
            map_collection("findings", _finding_control_link),
            seed_if_empty("findings", seed),
        )),
    ])


def default_migrators(seed_defaults: bool = True) -> dict[str, SchemaMigrator]:
    """Migrators for every store; ``seed_defaults=False`` leaves new installations empty."""
    def seed(records: Sequence[dict]) -> Sequence[dict]:
        return records if seed_defaults else ()

    migrators: Iterable[SchemaMigrator] = (
        users_migrator(seed(DEFAULT_USERS)),
        controls_migrator(seed(DEFAULT_CONTROLS)),
        requirements_migrator(),
        assessments_migrator(seed(DEFAULT_ASSESSMENTS)),
        artifacts_migrator(),
        findings_migrator(seed(DEFAULT_FINDINGS)),
    )
    return {migrator.store_name: migrator for migrator in migrators}
