"""
Schema migrator.

A ``SchemaMigrator`` owns the ordered chain of single-step upgrades for one
store. Upgrading a snapshot runs every step from its persisted version up to
the current version, in order, on a copy of the state.
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

from csf_tracker.core.errors import MigrationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MigrationStep:
    """Upgrade of a store's state from ``from_version`` to ``from_version + 1``."""

    from_version: int
    description: str
    apply: Callable[[dict], dict]

    @property
    def to_version(self) -> int:
        return self.from_version + 1


class SchemaMigrator:
    """Applies a store's migration chain to persisted state."""

    def __init__(self, store_name: str, steps: Sequence[MigrationStep]):
        if not steps:
            raise ValueError(f"Migration chain for {store_name} is empty")
        ordered = sorted(steps, key=lambda step: step.from_version)
        for previous, step in zip(ordered, ordered[1:]):
            if step.from_version != previous.to_version:
                raise ValueError(
                    f"Migration chain for {store_name} has a gap between "
                    f"v{previous.to_version} and v{step.from_version}"
                )
        self.store_name = store_name
        self.steps = ordered

    @property
    def base_version(self) -> int:
        return self.steps[0].from_version

    @property
    def current_version(self) -> int:
        return self.steps[-1].to_version

    def needs_upgrade(self, version: int) -> bool:
        return version < self.current_version

    def upgrade(self, state: dict, version: int) -> dict:
        """Return ``state`` upgraded from ``version`` to the current version.

        The input is never modified.

        Raises:
            MigrationError: If the snapshot is newer than this code, or a step
                fails.
        """
        if version > self.current_version:
            raise MigrationError(
                f"Snapshot version {version} is newer than supported version {self.current_version}",
                store=self.store_name,
                from_version=version,
                to_version=self.current_version,
            )

        upgraded = deepcopy(state)
        for step in self.steps:
            if step.from_version < version:
                continue
            try:
                upgraded = step.apply(upgraded)
            except Exception as e:
                raise MigrationError(
                    f"Migration v{step.from_version}->v{step.to_version} failed: {e}",
                    store=self.store_name,
                    from_version=step.from_version,
                    to_version=step.to_version,
                ) from e
            logger.info(
                "migration_applied",
                store=self.store_name,
                from_version=step.from_version,
                to_version=step.to_version,
                description=step.description,
            )
        return upgraded
