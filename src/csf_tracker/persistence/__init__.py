"""Snapshot persistence and schema migration."""

from csf_tracker.persistence.storage import SnapshotStorage
from csf_tracker.persistence.migrator import MigrationStep, SchemaMigrator
from csf_tracker.persistence.migrations import (
    artifacts_migrator,
    assessments_migrator,
    controls_migrator,
    default_migrators,
    findings_migrator,
    requirements_migrator,
    users_migrator,
)

__all__ = [
    "SnapshotStorage",
    "MigrationStep",
    "SchemaMigrator",
    "artifacts_migrator",
    "assessments_migrator",
    "controls_migrator",
    "default_migrators",
    "findings_migrator",
    "requirements_migrator",
    "users_migrator",
]
