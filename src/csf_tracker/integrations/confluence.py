"""
Confluence database row transforms.

Confluence databases hold controls and requirements as flat rows with
comma-separated multi-value cells and plain display names for people.
"""

from typing import Iterable, Optional

from csf_tracker.codec.csv_io import Row, write_csv
from csf_tracker.identity.directory import UserDirectory
from csf_tracker.identity.resolver import IdentityResolver
from csf_tracker.models.control import Control
from csf_tracker.models.requirement import Requirement
from csf_tracker.services.aggregator import CrossLinkAggregator

CONFLUENCE_SEPARATOR = ", "

CONFLUENCE_REQUIREMENT_HEADERS = [
    "Requirement ID",
    "Framework",
    "CSF Function",
    "CSF Function Description",
    "Category Name",
    "Category Description",
    "Subcategory ID",
    "Subcategory Description",
    "Implementation Example",
    "In Scope",
    "Control Owner",
    "Stakeholders",
    "Controls In Scope",
]


def _split(cell: Optional[str]) -> list[str]:
    return [part.strip() for part in (cell or "").split(",") if part.strip()]


def _name(users: UserDirectory, user_id: Optional[str]) -> str:
    user = users.get(user_id) if user_id else None
    return user.name if user else ""


def controls_to_confluence_rows(controls: Iterable[Control], users: UserDirectory) -> list[Row]:
    rows = []
    for control in controls:
        stakeholder_names = (_name(users, s) for s in control.stakeholder_ids)
        rows.append({
            "Control ID": control.control_id,
            "Implementation Description": control.implementation_description,
            "Control Owner": _name(users, control.owner_id),
            "Stakeholders": CONFLUENCE_SEPARATOR.join(n for n in stakeholder_names if n),
            "Linked Requirements": CONFLUENCE_SEPARATOR.join(control.linked_requirement_ids),
            "Created Date": control.created_date.isoformat(),
            "Last Modified": control.last_modified.isoformat(),
        })
    return rows


def requirements_to_confluence_rows(requirements: Iterable[Requirement]) -> list[Row]:
    return [
        {
            "Requirement ID": requirement.id,
            "Framework": requirement.framework_id,
            "Function": requirement.function,
            "Category": requirement.category,
            "Category ID": requirement.category_id,
            "Subcategory ID": requirement.subcategory_id,
            "Subcategory Description": requirement.subcategory_description,
            "Implementation Example": requirement.implementation_example,
            "In Scope": "Yes" if requirement.in_scope else "No",
        }
        for requirement in requirements
    ]


def confluence_rows_to_controls(rows: Iterable[Row], resolver: IdentityResolver) -> list[dict]:
    """Control records from Confluence rows, resolving people by name.

    Rows without a Control ID are dropped.
    """
    controls = []
    for row in rows:
        control_id = (row.get("Control ID") or "").strip()
        if not control_id:
            continue
        record = {
            "control_id": control_id,
            "implementation_description": (row.get("Implementation Description") or "").strip(),
            "owner_id": resolver.resolve(row.get("Control Owner")),
            "stakeholder_ids": resolver.resolve_many(_split(row.get("Stakeholders"))),
            "linked_requirement_ids": _split(row.get("Linked Requirements")),
        }
        for header, field in (("Created Date", "created_date"), ("Last Modified", "last_modified")):
            if (row.get(header) or "").strip():
                record[field] = row[header].strip()
        controls.append(record)
    return controls


def confluence_rows_to_requirements(rows: Iterable[Row], default_framework_id: str) -> list[dict]:
    requirements = []
    for row in rows:
        requirement_id = (row.get("Requirement ID") or "").strip()
        if not requirement_id:
            continue
        requirements.append({
            "id": requirement_id,
            "framework_id": (row.get("Framework") or "").strip() or default_framework_id,
            "function": (row.get("Function") or "").strip(),
            "category": (row.get("Category") or "").strip(),
            "category_id": (row.get("Category ID") or "").strip(),
            "subcategory_id": (row.get("Subcategory ID") or "").strip(),
            "subcategory_description": (row.get("Subcategory Description") or "").strip(),
            "implementation_example": (row.get("Implementation Example") or "").strip(),
            "in_scope": (row.get("In Scope") or "").strip().lower() == "yes",
        })
    return requirements


def export_requirements_confluence_csv(
    aggregator: CrossLinkAggregator,
    framework_id: Optional[str] = None,
) -> str:
    """Requirements CSV for the Confluence database, with owners from linked controls."""
    return write_csv(
        CONFLUENCE_REQUIREMENT_HEADERS,
        aggregator.requirement_rows_for_confluence(framework_id),
    )
