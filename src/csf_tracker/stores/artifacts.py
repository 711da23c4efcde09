"""
Artifacts store.

Artifacts are evidence items attached to a control. Imports match existing
artifacts on their external ``artifact_id`` (usually a Jira key) and then on
name, so re-importing a Jira export updates rather than duplicates.
"""

from typing import Optional
from uuid import uuid4

import structlog

from csf_tracker.codec.coercers import list_in, list_out, optional_text_in
from csf_tracker.codec.csv_io import parse_csv, write_csv
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.models.artifact import Artifact
from csf_tracker.models.results import ImportResult
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

ARTIFACT_ISSUE_TYPE = "Artifact"
DEFAULT_PROJECT_KEY = "AR"

ARTIFACTS_SCHEMA = TabularSchema([
    Column("Artifact ID", ("artifact_id",), aliases=("Issue key",)),
    Column("Name", ("name",), required=True, aliases=("Summary",)),
    Column("Description", ("description",)),
    Column("Link", ("link",), aliases=("Custom field (Link)",)),
    Column("Type", ("type",), aliases=("Custom field (Artifact Type)", "Artifact Type")),
    Column(
        "Control ID",
        ("control_id",),
        decode=optional_text_in,
        aliases=("Custom field (Control ID)",),
    ),
    Column(
        "Linked Evaluation IDs",
        ("linked_evaluation_ids",),
        encode=list_out,
        decode=list_in,
        aliases=("Custom field (Linked Evaluation IDs)",),
    ),
])

# Older exports only carried the requirement an artifact evidenced.
LEGACY_IMPORT_SCHEMA = TabularSchema(ARTIFACTS_SCHEMA.columns + [
    Column(
        "Compliance Requirement",
        ("compliance_requirement",),
        decode=optional_text_in,
        aliases=("Custom field (Compliance Requirement)",),
    ),
])

JIRA_ARTIFACTS_SCHEMA = TabularSchema([
    Column("Summary", ("name",)),
    Column("Issue Type", ("issue_type",)),
    Column("Project key", ("project_key",)),
    Column("Custom field (Link)", ("link",)),
    Column("Custom field (Control ID)", ("control_id",)),
    Column("Custom field (Linked Evaluation IDs)", ("linked_evaluation_ids",), encode=list_out),
    Column("Custom field (Artifact Type)", ("type",)),
    Column("Description", ("description",)),
])


class ArtifactsStore(EntityStore[Artifact]):
    """Store of evidence artifacts."""

    store_name = "artifacts"
    collection = "artifacts"
    model = Artifact
    schema = ARTIFACTS_SCHEMA

    # ==================== Queries ====================

    def get_by_name(self, name: str) -> Optional[Artifact]:
        wanted = name.strip()
        for artifact in self._items:
            if artifact.name == wanted:
                return artifact.model_copy(deep=True)
        return None

    def get_by_artifact_id(self, artifact_id: str) -> Optional[Artifact]:
        wanted = artifact_id.strip()
        if not wanted:
            return None
        for artifact in self._items:
            if artifact.artifact_id == wanted:
                return artifact.model_copy(deep=True)
        return None

    def get_by_control(self, control_id: str) -> list[Artifact]:
        return [a.model_copy(deep=True) for a in self._items if a.control_id == control_id]

    def find_or_create(self, name: str, link: str = "") -> Artifact:
        existing = self.get_by_name(name)
        if existing is not None:
            return existing
        return self.create({"name": name, "link": link})

    # ==================== Links ====================

    def link_evaluation(self, artifact_id: str, evaluation_id: str) -> Optional[Artifact]:
        artifact = self.get(artifact_id)
        if artifact is None or evaluation_id in artifact.linked_evaluation_ids:
            return artifact
        return self.update(
            artifact_id,
            {"linked_evaluation_ids": artifact.linked_evaluation_ids + [evaluation_id]},
        )

    def unlink_evaluation(self, artifact_id: str, evaluation_id: str) -> Optional[Artifact]:
        artifact = self.get(artifact_id)
        if artifact is None or evaluation_id not in artifact.linked_evaluation_ids:
            return artifact
        return self.update(
            artifact_id,
            {"linked_evaluation_ids": [e for e in artifact.linked_evaluation_ids if e != evaluation_id]},
        )

    def set_artifact_ids(self, external_ids: dict[str, str]) -> int:
        """Record external keys for many artifacts as one change."""
        return self.bulk_update_items(
            external_ids, lambda artifact: {"artifact_id": external_ids[artifact.id]}
        )

    # ==================== CSV ====================

    def import_csv(self, text: str) -> ImportResult:
        """Import standard or Jira-format artifact rows.

        Raises:
            CSVParseError: If the text is not well-formed CSV.
        """
        _, rows = parse_csv(text)
        result = ImportResult()
        records = []
        seen: dict[tuple[str, str], str] = {}
        for row_number, row in enumerate(rows, start=2):
            missing = LEGACY_IMPORT_SCHEMA.missing_required(row)
            if missing:
                self._skip_row(result, row_number, f"Missing {', '.join(missing)}")
                continue
            record = LEGACY_IMPORT_SCHEMA.unflatten(row)
            legacy_requirement = record.pop("compliance_requirement", None)
            if not record.get("control_id") and legacy_requirement:
                record["control_id"] = legacy_requirement

            record["id"] = self._match_id(record, seen)
            seen[("name", record["name"])] = record["id"]
            if record.get("artifact_id"):
                seen[("artifact_id", record["artifact_id"])] = record["id"]
            records.append((row_number, record))
        self._merge_records(records, result)
        return result

    def export_csv(self) -> str:
        return write_csv(
            self.schema.headers,
            (self.schema.flatten(a.model_dump()) for a in self._items),
        )

    def export_jira_csv(self, project_key: str = DEFAULT_PROJECT_KEY) -> str:
        rows = []
        for artifact in self._items:
            record = artifact.model_dump()
            record.update({"issue_type": ARTIFACT_ISSUE_TYPE, "project_key": project_key})
            rows.append(JIRA_ARTIFACTS_SCHEMA.flatten(record))
        return write_csv(JIRA_ARTIFACTS_SCHEMA.headers, rows)

    def _match_id(self, record: dict, seen: dict[tuple[str, str], str]) -> str:
        """Id of the artifact a row refers to, or a fresh id for a new one."""
        artifact_id = record.get("artifact_id") or ""
        if artifact_id:
            if ("artifact_id", artifact_id) in seen:
                return seen[("artifact_id", artifact_id)]
            existing = self.get_by_artifact_id(artifact_id)
            if existing is not None:
                return existing.id
        if ("name", record["name"]) in seen:
            return seen[("name", record["name"])]
        existing = self.get_by_name(record["name"])
        if existing is not None:
            return existing.id
        return str(uuid4())
