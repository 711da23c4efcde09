"""
Requirements store.

Requirements are framework reference data. Apart from creation through
imports, the only permitted change is toggling ``in_scope``. Importing a
framework replaces that framework's requirements and leaves the others
untouched.
"""

from collections import Counter
from typing import Iterable, Optional

import structlog

from csf_tracker.codec.coercers import yes_no_in, yes_no_out
from csf_tracker.codec.csv_io import parse_csv, write_csv
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.core.errors import ValidationError
from csf_tracker.models.requirement import Requirement
from csf_tracker.models.results import ImportResult
from csf_tracker.core.store import EntityStore

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = {"in_scope"}

REQUIREMENTS_SCHEMA = TabularSchema([
    Column("Requirement ID", ("id",), required=True, aliases=("ID",)),
    Column("Framework", ("framework_id",)),
    Column("CSF Function", ("function",), aliases=("CSF FUNCTION", "Function")),
    Column("CSF Function Description", ("function_description",), aliases=("Function Description",)),
    Column("Category Name", ("category",), aliases=("CATEGORY", "Category")),
    Column("Category Description", ("category_description",)),
    Column("Category ID", ("category_id",)),
    Column("Subcategory ID", ("subcategory_id",), aliases=("SUBCATEGORY ID", "Subcategory")),
    Column(
        "Subcategory Description",
        ("subcategory_description",),
        aliases=("SUBCATEGORY DESCRIPTION",),
    ),
    Column(
        "Implementation Example",
        ("implementation_example",),
        aliases=("IMPLEMENTATION EXAMPLE",),
    ),
    Column("In Scope", ("in_scope",), encode=yes_no_out, decode=yes_no_in, aliases=("In Scope?",)),
])


class RequirementsStore(EntityStore[Requirement]):
    """Store of framework requirements."""

    store_name = "requirements"
    collection = "requirements"
    model = Requirement
    schema = REQUIREMENTS_SCHEMA

    # ==================== Queries ====================

    def get_by_framework(self, framework_id: str) -> list[Requirement]:
        return [r.model_copy(deep=True) for r in self._items if r.framework_id == framework_id]

    def functions(self, framework_id: Optional[str] = None) -> list[str]:
        return _unique(r.function for r in self._filtered(framework_id))

    def categories(self, function: Optional[str] = None, framework_id: Optional[str] = None) -> list[str]:
        return _unique(
            r.category for r in self._filtered(framework_id)
            if function is None or r.function == function
        )

    def subcategories(self, category_id: Optional[str] = None, framework_id: Optional[str] = None) -> list[str]:
        return _unique(
            r.subcategory_id for r in self._filtered(framework_id)
            if category_id is None or r.category_id == category_id
        )

    def in_scope(self, framework_id: Optional[str] = None) -> list[Requirement]:
        return [r.model_copy(deep=True) for r in self._filtered(framework_id) if r.in_scope]

    def count_by_framework(self) -> dict[str, int]:
        return dict(Counter(r.framework_id for r in self._items))

    # ==================== Scope ====================

    def toggle_in_scope(self, requirement_id: str) -> Optional[Requirement]:
        requirement = self.get(requirement_id)
        if requirement is None:
            return None
        return self.update(requirement_id, {"in_scope": not requirement.in_scope})

    def bulk_set_in_scope(self, requirement_ids: Iterable[str], in_scope: bool) -> int:
        return self.bulk_update_items(requirement_ids, {"in_scope": in_scope})

    def clear_all_scope(self, framework_id: Optional[str] = None) -> int:
        ids = [r.id for r in self._filtered(framework_id) if r.in_scope]
        return self.bulk_set_in_scope(ids, False)

    def delete(self, key: str) -> bool:
        raise ValidationError(
            "Requirements are reference data and cannot be deleted individually",
            entity_id=key,
        )

    # ==================== CSV ====================

    def import_csv(self, text: str, framework_id: str) -> ImportResult:
        """Replace ``framework_id``'s requirements with the rows in ``text``.

        Rows without a Framework column value are assigned ``framework_id``.
        Requirements of other frameworks are kept.

        Raises:
            CSVParseError: If the text is not well-formed CSV.
        """
        _, rows = parse_csv(text)
        result = ImportResult()
        incoming: dict[str, Requirement] = {}
        for row_number, row in enumerate(rows, start=2):
            missing = self.schema.missing_required(row)
            if missing:
                self._skip_row(result, row_number, f"Missing {', '.join(missing)}")
                continue
            record = self.schema.unflatten(row)
            record["framework_id"] = record.get("framework_id") or framework_id
            try:
                requirement = self._validate(record)
            except ValidationError as e:
                self._skip_row(result, row_number, e.message)
                continue
            incoming[requirement.id] = requirement
            result.imported += 1

        kept = [
            r for r in self._items
            if r.framework_id != framework_id and r.id not in incoming
        ]
        self._commit(kept + list(incoming.values()), "import")
        result.keys = list(incoming)
        logger.info(
            "csv_import_completed",
            store=self.store_name,
            framework_id=framework_id,
            imported=result.imported,
            skipped=result.skipped,
        )
        return result

    def export_csv(self, framework_id: Optional[str] = None) -> str:
        return write_csv(
            self.schema.headers,
            (self.schema.flatten(r.model_dump()) for r in self._filtered(framework_id)),
        )

    # ==================== Hooks ====================

    def _prepare_update(self, current: Requirement, fields: dict) -> dict:
        locked = set(fields) - EDITABLE_FIELDS
        if locked:
            raise ValidationError(
                f"Only in_scope can be changed on a requirement, not: {', '.join(sorted(locked))}",
                field=sorted(locked)[0],
                entity_id=current.id,
            )
        return fields

    def _filtered(self, framework_id: Optional[str]) -> list[Requirement]:
        if framework_id is None:
            return self._items
        return [r for r in self._items if r.framework_id == framework_id]


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))
