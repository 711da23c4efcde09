"""Domain stores: one copy-on-write collection per entity type."""

from csf_tracker.core.store import EntityStore
from csf_tracker.stores.controls import ControlsStore
from csf_tracker.stores.requirements import RequirementsStore
from csf_tracker.stores.assessments import AssessmentsStore
from csf_tracker.stores.artifacts import ArtifactsStore
from csf_tracker.stores.findings import FindingsStore

__all__ = [
    "EntityStore",
    "ControlsStore",
    "RequirementsStore",
    "AssessmentsStore",
    "ArtifactsStore",
    "FindingsStore",
]
