"""
Assessments store.

Besides the usual entity lifecycle this store manages each assessment's
scope and its per-item observations. Adding an item to scope seeds an empty
observation with all four quarters; removing it discards the observation.
Progress is always reported for a single quarter, by default the current
calendar quarter.
"""

from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from csf_tracker.codec.csv_io import parse_csv, write_csv
from csf_tracker.codec.observation import ObservationCodec
from csf_tracker.core.config import DEFAULT_HISTORY_LIMIT
from csf_tracker.core.errors import ValidationError
from csf_tracker.identity.resolver import IdentityResolver
from csf_tracker.models.assessment import (
    QUARTERS,
    SCOPE_TYPES,
    Assessment,
    AssessmentProgress,
    Observation,
    Quarter,
    QuarterRecord,
    RemediationItem,
    ScopeType,
    quarter_for_month,
)
from csf_tracker.models.common import percentage, utc_now
from csf_tracker.models.results import ImportResult
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

ScopeCheck = Callable[[ScopeType, str], bool]

DEFAULT_SCOPE_TYPE: ScopeType = "controls"


def _deep_merge(base: dict, changes: dict) -> dict:
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def reset_for_new_period(observation: Observation) -> Observation:
    """Copy of an observation ready to be re-tested.

    Keeps auditor, procedures, linked artifacts, target scores and the
    planned assessment methods; clears results and remediation.
    """
    quarters = {
        quarter: QuarterRecord(
            target_score=record.target_score,
            examine=record.examine,
            interview=record.interview,
            test=record.test,
        )
        for quarter, record in observation.quarters.items()
    }
    return Observation(
        auditor_id=observation.auditor_id,
        test_procedures=observation.test_procedures,
        linked_artifacts=list(observation.linked_artifacts),
        quarters=quarters,
    )


class AssessmentsStore(EntityStore[Assessment]):
    """Store of assessments and their observations."""

    store_name = "assessments"
    collection = "assessments"
    model = Assessment

    def __init__(
        self,
        resolver: IdentityResolver,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
        scope_exists: Optional[ScopeCheck] = None,
    ):
        super().__init__(history_limit=history_limit, clock=clock)
        self.resolver = resolver
        self.codec = ObservationCodec(resolver.format_user, resolver.resolve)
        self.scope_exists = scope_exists
        self.current_assessment_id: Optional[str] = None

    def current_quarter(self) -> Quarter:
        return quarter_for_month(self._clock().month)

    def set_current_assessment(self, assessment_id: Optional[str]) -> None:
        self.current_assessment_id = assessment_id
        self._notify("select")

    def delete(self, key: str) -> bool:
        deleted = super().delete(key)
        if deleted and self.current_assessment_id == key:
            self.current_assessment_id = None
        return deleted

    # ==================== Scope ====================

    def add_to_scope(self, assessment_id: str, item_id: str) -> Optional[Assessment]:
        return self.bulk_add_to_scope(assessment_id, [item_id])

    def bulk_add_to_scope(self, assessment_id: str, item_ids: Iterable[str]) -> Optional[Assessment]:
        """Add items to scope, seeding an empty observation for each new one.

        Raises:
            ValidationError: If an item does not exist for the assessment's
                scope type.
        """
        assessment = self.get(assessment_id)
        if assessment is None:
            return None

        new_ids = [i for i in dict.fromkeys(item_ids) if i and i not in assessment.scope_ids]
        if not new_ids:
            return assessment
        if self.scope_exists is not None:
            unknown = [i for i in new_ids if not self.scope_exists(assessment.scope_type, i)]
            if unknown:
                raise ValidationError(
                    f"Unknown {assessment.scope_type} for scope: {', '.join(unknown)}",
                    field="scope_ids",
                    entity_id=assessment_id,
                )

        observations = dict(assessment.observations)
        for item_id in new_ids:
            observations.setdefault(item_id, Observation())
        return self.update(assessment_id, {
            "scope_ids": assessment.scope_ids + new_ids,
            "observations": observations,
        })

    def remove_from_scope(self, assessment_id: str, item_id: str) -> Optional[Assessment]:
        assessment = self.get(assessment_id)
        if assessment is None or item_id not in assessment.scope_ids:
            return assessment
        observations = dict(assessment.observations)
        observations.pop(item_id, None)
        return self.update(assessment_id, {
            "scope_ids": [i for i in assessment.scope_ids if i != item_id],
            "observations": observations,
        })

    # ==================== Observations ====================

    def get_observation(self, assessment_id: str, item_id: str) -> Optional[Observation]:
        """Observation for a scoped item; an empty one if never recorded."""
        assessment = self.get(assessment_id)
        if assessment is None or item_id not in assessment.scope_ids:
            return None
        return assessment.observations.get(item_id) or Observation()

    def update_observation(self, assessment_id: str, item_id: str, fields: dict) -> Optional[Observation]:
        """Merge ``fields`` (nested dicts merge recursively) into an observation."""
        return self._change_observations(
            assessment_id, [item_id], lambda observation: fields
        ).get(item_id)

    def update_quarterly_observation(
        self,
        assessment_id: str,
        item_id: str,
        quarter: Quarter,
        fields: dict,
    ) -> Optional[Observation]:
        self._check_quarter(quarter)
        return self._change_observations(
            assessment_id, [item_id], lambda observation: {"quarters": {quarter: fields}}
        ).get(item_id)

    def bulk_update_observations(
        self,
        assessment_id: str,
        item_ids: Iterable[str],
        quarter: Quarter,
        fields: dict,
    ) -> int:
        """Apply the same quarter fields to many scoped items in one change."""
        self._check_quarter(quarter)
        changed = self._change_observations(
            assessment_id, item_ids, lambda observation: {"quarters": {quarter: fields}}
        )
        return len(changed)

    def get_remediation_items(self, assessment_id: Optional[str] = None) -> list[RemediationItem]:
        items = []
        for assessment in self._items:
            if assessment_id is not None and assessment.id != assessment_id:
                continue
            for item_id in assessment.scope_ids:
                observation = assessment.observations.get(item_id)
                if observation is not None and observation.remediation.is_planned():
                    items.append(RemediationItem(
                        assessment_id=assessment.id,
                        assessment_name=assessment.name,
                        item_id=item_id,
                        remediation=observation.remediation.model_copy(deep=True),
                    ))
        return items

    # ==================== Progress & cloning ====================

    def get_assessment_progress(
        self,
        assessment_id: str,
        quarter: Optional[Quarter] = None,
    ) -> Optional[AssessmentProgress]:
        """Count scoped items by testing status for one quarter.

        Scope ids whose target no longer exists are left out when a scope
        check is configured.
        """
        assessment = self.get(assessment_id)
        if assessment is None:
            return None
        quarter = quarter or self.current_quarter()
        self._check_quarter(quarter)

        progress = AssessmentProgress(assessment_id=assessment_id, quarter=quarter)
        for item_id in assessment.scope_ids:
            if self.scope_exists is not None and not self.scope_exists(assessment.scope_type, item_id):
                continue
            observation = assessment.observations.get(item_id) or Observation()
            status = observation.quarters[quarter].testing_status
            progress.total += 1
            if status == "Complete":
                progress.completed += 1
            elif status == "In Progress":
                progress.in_progress += 1
            elif status == "Submitted":
                progress.submitted += 1
            else:
                progress.not_started += 1
        progress.percentage = percentage(progress.completed, progress.total)
        return progress

    def clone_assessment(self, assessment_id: str, new_name: Optional[str] = None) -> Optional[Assessment]:
        """Create a template copy of an assessment for a new testing period."""
        source = self.get(assessment_id)
        if source is None:
            return None
        return self.create({
            "name": new_name or f"{source.name} (Copy)",
            "description": source.description,
            "scope_type": source.scope_type,
            "scope_ids": list(source.scope_ids),
            "framework_filter": source.framework_filter,
            "observations": {
                item_id: reset_for_new_period(observation)
                for item_id, observation in source.observations.items()
            },
        })

    # ==================== CSV ====================

    def export_csv(self, assessment_id: str) -> Optional[str]:
        assessment = self.get(assessment_id)
        if assessment is None:
            return None
        return write_csv(self.codec.headers, self._rows(assessment))

    def export_all_csv(self) -> str:
        rows = []
        for assessment in self._items:
            rows.extend(self._rows(assessment))
        return write_csv(self.codec.headers, rows)

    def import_csv(self, text: str) -> ImportResult:
        """Create assessments from observation rows.

        Rows are grouped by the Assessment column; a blank Assessment cell
        continues the previous row's assessment. Files without ``Q1 ...``
        columns are read as a single period into Q1.

        Raises:
            CSVParseError: If the text is not well-formed CSV.
        """
        headers, rows = parse_csv(text)
        schema = self.codec.schema_for(headers)
        result = ImportResult()
        groups: dict[str, dict[str, Any]] = {}
        last_name: Optional[str] = None
        last_scope_type: ScopeType = DEFAULT_SCOPE_TYPE

        for row_number, row in enumerate(rows, start=2):
            name = (row.get("Assessment") or row.get("Assessment Name") or "").strip() or last_name
            if not name:
                self._skip_row(result, row_number, "Missing Assessment")
                continue
            last_name = name

            if name not in groups:
                scope_type = (row.get("Scope Type") or "").strip().lower() or last_scope_type
                if scope_type not in SCOPE_TYPES:
                    scope_type = DEFAULT_SCOPE_TYPE
                last_scope_type = scope_type
                groups[name] = {
                    "name": name,
                    "description": (row.get("Description") or "").strip(),
                    "scope_type": scope_type,
                    "framework_filter": (row.get("Framework Filter") or "").strip() or None,
                    "scope_ids": [],
                    "observations": {},
                }

            missing = schema.missing_required(row)
            if missing:
                self._skip_row(result, row_number, f"Missing {', '.join(missing)}")
                continue
            try:
                context, observation = self.codec.read_row(row, schema)
            except PydanticValidationError as e:
                self._skip_row(result, row_number, str(e.errors()[0].get("msg")))
                continue

            group = groups[name]
            group["scope_ids"].append(context["item_id"])
            group["observations"][context["item_id"]] = observation
            result.imported += 1

        created = [self.build(group) for group in groups.values() if group["scope_ids"]]
        result.keys = self.upsert_many(created)
        logger.info(
            "csv_import_completed",
            store=self.store_name,
            assessments=len(created),
            imported=result.imported,
            skipped=result.skipped,
        )
        return result

    # ==================== Internals ====================

    def _rows(self, assessment: Assessment) -> list[dict]:
        return [
            self.codec.flatten(
                assessment.observations.get(item_id) or Observation(),
                item_id=item_id,
                assessment=assessment.name,
                scope_type=assessment.scope_type,
            )
            for item_id in assessment.scope_ids
        ]

    def _change_observations(
        self,
        assessment_id: str,
        item_ids: Iterable[str],
        changes_for: Callable[[Observation], dict],
    ) -> dict[str, Observation]:
        assessment = self.get(assessment_id)
        if assessment is None:
            return {}
        observations = dict(assessment.observations)
        changed: dict[str, Observation] = {}
        for item_id in dict.fromkeys(item_ids):
            if item_id not in assessment.scope_ids:
                continue
            current = observations.get(item_id) or Observation()
            merged = _deep_merge(current.model_dump(), changes_for(current))
            try:
                changed[item_id] = Observation.model_validate(merged)
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Invalid observation for '{item_id}': {e.errors()[0].get('msg')}",
                    field="observations",
                    entity_id=assessment_id,
                ) from e
        if changed:
            observations.update(changed)
            self.update(assessment_id, {"observations": observations})
        return changed

    def _check_quarter(self, quarter: str) -> None:
        if quarter not in QUARTERS:
            raise ValidationError(
                f"Invalid quarter: {quarter}. Must be one of: {', '.join(QUARTERS)}",
                field="quarter",
            )

    def _extra_state(self) -> dict:
        return {"current_assessment_id": self.current_assessment_id}

    def _restore_extra_state(self, state: dict) -> None:
        self.current_assessment_id = state.get("current_assessment_id")
