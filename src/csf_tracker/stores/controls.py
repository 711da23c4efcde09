"""
Controls store.

Controls are keyed by their user-visible ``control_id``. New controls get the
next free ``CTL-NNN`` id unless one is supplied. CSV imports update controls
whose id already exists and append the rest.
"""

import re
from datetime import datetime
from typing import Callable, Iterable, Optional

import structlog

from csf_tracker.codec.coercers import list_in, list_out
from csf_tracker.codec.csv_io import parse_csv, write_csv
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.core.config import DEFAULT_HISTORY_LIMIT
from csf_tracker.core.errors import ValidationError
from csf_tracker.identity.resolver import IdentityResolver
from csf_tracker.models.common import percentage, unique_ids, utc_now
from csf_tracker.models.control import Control, ControlCoverage
from csf_tracker.models.results import ImportResult
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

CONTROL_ID_PATTERN = re.compile(r"^CTL-(\d+)$")


def build_controls_schema(resolver: IdentityResolver) -> TabularSchema:
    return TabularSchema([
        Column("Control ID", ("control_id",), required=True),
        Column(
            "Control Implementation Description",
            ("implementation_description",),
            aliases=("Implementation Description", "Description"),
        ),
        Column(
            "Control Owner ID",
            ("owner_id",),
            encode=resolver.format_user,
            decode=resolver.resolve,
            aliases=("Control Owner", "Owner"),
        ),
        Column(
            "Stakeholder IDs",
            ("stakeholder_ids",),
            encode=resolver.format_users,
            decode=resolver.resolve_many,
            aliases=("Stakeholders", "Stakeholder(s)"),
        ),
        Column(
            "Linked Requirements",
            ("linked_requirement_ids",),
            encode=list_out,
            decode=list_in,
            aliases=("Linked Requirement IDs",),
        ),
    ])


class ControlsStore(EntityStore[Control]):
    """Store of organisation controls."""

    store_name = "controls"
    collection = "controls"
    key_field = "control_id"
    model = Control

    def __init__(
        self,
        resolver: IdentityResolver,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(history_limit=history_limit, clock=clock)
        self.resolver = resolver
        self.schema = build_controls_schema(resolver)

    # ==================== Queries ====================

    def get_by_owner(self, user_id: str) -> list[Control]:
        return [c.model_copy(deep=True) for c in self._items if c.owner_id == user_id]

    def get_by_requirement(self, requirement_id: str) -> list[Control]:
        """Controls linked to a requirement, in store order."""
        return [
            c.model_copy(deep=True) for c in self._items
            if requirement_id in c.linked_requirement_ids
        ]

    def next_control_id(self) -> str:
        highest = 0
        for control in self._items:
            match = CONTROL_ID_PATTERN.match(control.control_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"CTL-{highest + 1:03d}"

    def coverage_stats(self) -> ControlCoverage:
        total = len(self._items)
        covered = sum(1 for c in self._items if c.linked_requirement_ids)
        return ControlCoverage(
            total=total,
            covered=covered,
            uncovered=total - covered,
            percentage=percentage(covered, total),
        )

    # ==================== Links ====================

    def link_requirement(self, control_id: str, requirement_id: str) -> Optional[Control]:
        control = self.get(control_id)
        if control is None or requirement_id in control.linked_requirement_ids:
            return control
        return self.update(
            control_id,
            {"linked_requirement_ids": control.linked_requirement_ids + [requirement_id]},
        )

    def unlink_requirement(self, control_id: str, requirement_id: str) -> Optional[Control]:
        control = self.get(control_id)
        if control is None or requirement_id not in control.linked_requirement_ids:
            return control
        return self.update(
            control_id,
            {"linked_requirement_ids": [r for r in control.linked_requirement_ids if r != requirement_id]},
        )

    def bulk_link_requirements(self, control_ids: Iterable[str], requirement_ids: Iterable[str]) -> int:
        """Link every requirement to every control in one change."""
        requirement_ids = list(requirement_ids)
        return self.bulk_update_items(
            control_ids,
            lambda control: {
                "linked_requirement_ids": unique_ids(control.linked_requirement_ids + requirement_ids)
            },
        )

    # ==================== CSV ====================

    def import_csv(self, text: str) -> ImportResult:
        """Import controls, updating those whose Control ID already exists.

        Raises:
            CSVParseError: If the text is not well-formed CSV. The store is
                left unchanged.
        """
        _, rows = parse_csv(text)
        result = ImportResult()
        records = []
        for row_number, row in enumerate(rows, start=2):
            missing = self.schema.missing_required(row)
            if missing:
                self._skip_row(result, row_number, f"Missing {', '.join(missing)}")
                continue
            records.append((row_number, self.schema.unflatten(row)))
        self._merge_records(records, result)
        return result

    def export_csv(self) -> str:
        return write_csv(
            self.schema.headers,
            (self.schema.flatten(control.model_dump()) for control in self._items),
        )

    # ==================== Hooks ====================

    def _prepare_create(self, raw: dict) -> dict:
        control_id = raw.get("control_id")
        if control_id is None:
            raw["control_id"] = self.next_control_id()
        elif not str(control_id).strip():
            raise ValidationError("Control ID cannot be blank", field="control_id")
        return raw

    def _prepare_update(self, current: Control, fields: dict) -> dict:
        if "control_id" in fields and not str(fields["control_id"] or "").strip():
            raise ValidationError(
                "Control ID cannot be blank",
                field="control_id",
                entity_id=current.control_id,
            )
        return fields
