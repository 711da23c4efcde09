"""
Observation row schema.

One CSV row holds one observation: identifying context columns (item id,
assessment name, scope type), the auditor and test procedures, eight columns
per quarter, linked artifacts and the remediation plan. Files exported
before quarterly tracking carry a single unprefixed set of quarter columns;
those are read into Q1.
"""

from typing import Callable, Iterable, Optional

from csf_tracker.codec.coercers import (
    excel_date_in,
    list_in,
    list_out,
    score_in,
    score_out,
    testing_status_in,
    text_in,
    yes_no_in,
    yes_no_out,
)
from csf_tracker.codec.csv_io import Row
from csf_tracker.codec.tabular import Column, TabularSchema
from csf_tracker.models.assessment import QUARTERS, Observation, Quarter

UserFormatter = Callable[[Optional[str]], str]
UserResolver = Callable[[str], Optional[str]]

CONTEXT_FIELDS = ("item_id", "assessment", "scope_type")

# (label, field, encode, decode) for each per-quarter column
QUARTER_FIELDS = (
    ("Actual Score", "actual_score", score_out, score_in),
    ("Target Score", "target_score", score_out, score_in),
    ("Observations", "observations", None, None),
    ("Observation Date", "observation_date", None, excel_date_in),
    ("Testing Status", "testing_status", None, testing_status_in),
    ("Examine", "examine", yes_no_out, yes_no_in),
    ("Interview", "interview", yes_no_out, yes_no_in),
    ("Test", "test", yes_no_out, yes_no_in),
)


def quarter_columns(quarters: Iterable[Quarter] = QUARTERS, prefixed: bool = True) -> list[Column]:
    columns = []
    for quarter in quarters:
        for label, field, encode, decode in QUARTER_FIELDS:
            kwargs = {}
            if encode:
                kwargs["encode"] = encode
            if decode:
                kwargs["decode"] = decode
            columns.append(Column(
                header=f"{quarter} {label}" if prefixed else label,
                path=("quarters", quarter, field),
                **kwargs,
            ))
    return columns


def _scope_type_in(cell: str) -> str:
    return cell.strip().lower()


def build_observation_schema(
    format_user: UserFormatter,
    resolve_user: UserResolver,
    legacy: bool = False,
) -> TabularSchema:
    """Schema for observation rows.

    Args:
        format_user: Renders a user id as ``Name <email>``.
        resolve_user: Turns a person reference back into a user id.
        legacy: Read a single unprefixed period into Q1.
    """
    if legacy:
        quarters = quarter_columns(("Q1",), prefixed=False)
    else:
        quarters = quarter_columns()

    return TabularSchema([
        Column("ID", ("item_id",), required=True, aliases=("Item ID",)),
        Column("Assessment", ("assessment",), aliases=("Assessment Name",)),
        Column("Scope Type", ("scope_type",), decode=_scope_type_in),
        Column("Auditor", ("auditor_id",), encode=format_user, decode=resolve_user),
        Column("Test Procedure(s)", ("test_procedures",), aliases=("Test Procedures",)),
        *quarters,
        Column("Linked Artifacts", ("linked_artifacts",), encode=list_out, decode=list_in),
        Column("Remediation Owner", ("remediation", "owner_id"), encode=format_user, decode=resolve_user),
        Column("Action Plan", ("remediation", "action_plan")),
        Column(
            "Remediation Due Date",
            ("remediation", "due_date"),
            decode=excel_date_in,
            aliases=("Due Date",),
        ),
    ])


def is_quarterly(headers: Iterable[str]) -> bool:
    """Quarterly files are recognised by any header starting ``Q1 ``."""
    return any(header.startswith("Q1 ") for header in headers)


class ObservationCodec:
    """Flattens observations into CSV rows and reads them back."""

    def __init__(self, format_user: UserFormatter, resolve_user: UserResolver):
        self.schema = build_observation_schema(format_user, resolve_user)
        self.legacy_schema = build_observation_schema(format_user, resolve_user, legacy=True)

    @property
    def headers(self) -> list[str]:
        return self.schema.headers

    def schema_for(self, headers: Iterable[str]) -> TabularSchema:
        return self.schema if is_quarterly(headers) else self.legacy_schema

    def flatten(
        self,
        observation: Observation,
        item_id: str = "",
        assessment: str = "",
        scope_type: str = "",
    ) -> Row:
        record = observation.model_dump()
        record.update({"item_id": item_id, "assessment": assessment, "scope_type": scope_type})
        return self.schema.flatten(record)

    def read_row(self, row: Row, schema: Optional[TabularSchema] = None) -> tuple[dict, Observation]:
        """Decode a row into its context columns and its observation."""
        record = (schema or self.schema).unflatten(row)
        context = {field: record.pop(field, "") for field in CONTEXT_FIELDS}
        return context, Observation.model_validate(record)

    def unflatten(self, row: Row) -> Observation:
        return self.read_row(row, self.schema_for(row.keys()))[1]
