"""
JSON interchange.

Whole-workspace export and import as ``{"data": {<collection>: [...]}}``.
Import validates every present collection before touching any store, then
upserts each collection into its store as a single change.
"""

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog

from csf_tracker import __version__
from csf_tracker.core.errors import InterchangeFormatError, ValidationError

if TYPE_CHECKING:
    from csf_tracker.workspace import Workspace

logger = structlog.get_logger(__name__)

INTERCHANGE_COLLECTIONS = ("users", "requirements", "controls", "assessments", "artifacts", "findings")


def export_workspace(workspace: "Workspace", collections: Optional[tuple[str, ...]] = None) -> dict:
    stores = workspace.stores
    wanted = collections or INTERCHANGE_COLLECTIONS
    data = {name: stores[name].snapshot()[stores[name].collection] for name in wanted}
    return {
        "version": __version__,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "data_type": "workspace" if collections is None else "partial",
        "metadata": {"counts": {name: len(records) for name, records in data.items()}},
        "data": data,
    }


def export_workspace_json(workspace: "Workspace", collections: Optional[tuple[str, ...]] = None) -> str:
    return json.dumps(export_workspace(workspace, collections), indent=2, ensure_ascii=False)


def import_workspace(workspace: "Workspace", document: dict) -> dict[str, int]:
    """Upsert every collection present in an interchange document.

    Returns:
        Number of records imported per collection.

    Raises:
        InterchangeFormatError: If ``data`` is missing or any record is
            invalid. No store is changed in that case.
    """
    if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
        raise InterchangeFormatError("Interchange document has no 'data' object")

    stores = workspace.stores
    staged = {}
    for name in INTERCHANGE_COLLECTIONS:
        records = document["data"].get(name)
        if records is None:
            continue
        if not isinstance(records, list):
            raise InterchangeFormatError(f"'{name}' must be a list", details={"collection": name})
        store = stores[name]
        try:
            staged[name] = [store.build(record) for record in records]
        except (ValidationError, TypeError, ValueError) as e:
            raise InterchangeFormatError(
                f"Invalid {name} record: {e}",
                details={"collection": name},
            ) from e

    counts = {}
    for name, entities in staged.items():
        counts[name] = len(stores[name].upsert_many(entities, action="interchange_import"))
    logger.info("interchange_import_completed", **counts)
    return counts


def import_workspace_json(workspace: "Workspace", text: str) -> dict[str, int]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise InterchangeFormatError(f"Interchange document is not valid JSON: {e}") from e
    return import_workspace(workspace, document)
