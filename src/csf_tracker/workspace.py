"""
Workspace: the set of stores that make up one tracker installation.

The workspace wires every store to the shared identity resolver, loads
persisted snapshots through their migration chains, and saves a store's
snapshot after each change once autosave is enabled.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from csf_tracker.core.config import TrackerConfig
from csf_tracker.core.errors import SnapshotStorageError, ValidationError
from csf_tracker.core.logging import configure_logging
from csf_tracker.core.store import EntityStore
from csf_tracker.identity.directory import UserDirectory
from csf_tracker.identity.resolver import IdentityResolver
from csf_tracker.models.assessment import ScopeType
from csf_tracker.models.common import utc_now
from csf_tracker.persistence.migrations import default_migrators
from csf_tracker.persistence.migrator import SchemaMigrator
from csf_tracker.persistence.storage import SnapshotStorage
from csf_tracker.services.aggregator import CrossLinkAggregator
from csf_tracker.stores.artifacts import ArtifactsStore
from csf_tracker.stores.assessments import AssessmentsStore
from csf_tracker.stores.controls import ControlsStore
from csf_tracker.stores.findings import FindingsStore
from csf_tracker.stores.requirements import RequirementsStore

logger = structlog.get_logger(__name__)


class Workspace:
    """All stores of one installation plus their persistence."""

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        storage: Optional[SnapshotStorage] = None,
        migrators: Optional[dict[str, SchemaMigrator]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or TrackerConfig.from_env()
        self.storage = storage or SnapshotStorage(self.config.data_dir)
        self.migrators = migrators or default_migrators(self.config.seed_defaults)

        limit = self.config.history_limit
        self.users = UserDirectory(history_limit=limit, clock=clock)
        self.resolver = IdentityResolver(self.users)
        self.controls = ControlsStore(self.resolver, history_limit=limit, clock=clock)
        self.requirements = RequirementsStore(history_limit=limit, clock=clock)
        self.assessments = AssessmentsStore(
            self.resolver,
            history_limit=limit,
            clock=clock,
            scope_exists=self.scope_exists,
        )
        self.artifacts = ArtifactsStore(history_limit=limit, clock=clock)
        self.findings = FindingsStore(self.resolver, history_limit=limit, clock=clock)
        self.aggregator = CrossLinkAggregator(
            self.controls,
            self.requirements,
            self.artifacts,
            self.findings,
            self.users,
        )
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def stores(self) -> dict[str, EntityStore]:
        return {
            store.store_name: store
            for store in (
                self.users,
                self.controls,
                self.requirements,
                self.assessments,
                self.artifacts,
                self.findings,
            )
        }

    def scope_exists(self, scope_type: ScopeType, item_id: str) -> bool:
        if scope_type == "controls":
            return self.controls.exists(item_id)
        return self.requirements.exists(item_id)

    # ==================== Loading ====================

    def load(self, autosave: bool = True) -> dict[str, int]:
        """Load every store, migrating older snapshots.

        All snapshots are read and migrated before any store is touched, and
        upgraded snapshots are only written back once every store loaded.

        Returns:
            The persisted version each store was loaded from.

        Raises:
            MigrationError: If a snapshot cannot be upgraded. Nothing is
                written in that case.
            SnapshotStorageError: If a snapshot is unreadable or does not
                match the current models.
        """
        self.disable_autosave()
        staged: dict[str, tuple[int, dict]] = {}
        for name in self.stores:
            migrator = self.migrators[name]
            envelope = self.storage.read(name)
            if envelope is None:
                version, state = migrator.base_version, {}
            else:
                version, state = envelope["version"], envelope["state"]
            staged[name] = (version, migrator.upgrade(state, version))

        for name, (_, state) in staged.items():
            try:
                self.stores[name].restore(state)
            except ValidationError as e:
                raise SnapshotStorageError(
                    f"Snapshot does not match the current schema: {e.message}",
                    store=name,
                    path=str(self.storage.path_for(name)),
                ) from e

        for name, (version, _) in staged.items():
            if self.migrators[name].needs_upgrade(version):
                self.save(name)

        if autosave:
            self.enable_autosave()
        return {name: version for name, (version, _) in staged.items()}

    # ==================== Saving ====================

    def save(self, store_name: Optional[str] = None) -> None:
        """Write one store's snapshot, or every store's when no name is given.

        Raises:
            SnapshotStorageError: If a snapshot cannot be written.
        """
        names = [store_name] if store_name else list(self.stores)
        for name in names:
            self.storage.write(
                name,
                self.migrators[name].current_version,
                self.stores[name].snapshot(),
            )

    def enable_autosave(self) -> None:
        if self._unsubscribers:
            return
        for store in self.stores.values():
            self._unsubscribers.append(store.subscribe(self._on_change))

    def disable_autosave(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _on_change(self, store_name: str, action: str) -> None:
        try:
            self.save(store_name)
        except SnapshotStorageError as e:
            logger.error(
                "snapshot_save_failed",
                store=store_name,
                action=action,
                error=str(e),
            )


def open_workspace(config: Optional[TrackerConfig] = None, autosave: bool = True) -> Workspace:
    """Configure logging, then build and load a workspace from ``config``."""
    config = config or TrackerConfig.from_env()
    configure_logging(config)
    workspace = Workspace(config)
    versions = workspace.load(autosave=autosave)
    logger.info("workspace_opened", data_dir=str(config.data_dir), versions=versions)
    return workspace
