"""
Snapshot storage.

Each store persists as one JSON file holding a version envelope,
``{"version": <int>, "state": {...}}``. Writes go to a temporary file in the
same directory and are moved into place, so a crash mid-write leaves the
previous snapshot intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from csf_tracker.core.errors import SnapshotStorageError

logger = structlog.get_logger(__name__)


class SnapshotStorage:
    """Directory of per-store snapshot envelopes."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, store_name: str) -> Path:
        return self.data_dir / f"{store_name}.json"

    def read(self, store_name: str) -> Optional[dict]:
        """Load a store's envelope, or None when nothing was saved yet.

        Raises:
            SnapshotStorageError: If the file exists but is not a valid
                envelope.
        """
        path = self.path_for(store_name)
        if not path.exists():
            return None
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotStorageError(
                f"Cannot read snapshot: {e}",
                store=store_name,
                path=str(path),
            ) from e

        if not isinstance(envelope, dict) or not isinstance(envelope.get("version"), int):
            raise SnapshotStorageError(
                "Snapshot is missing its integer version",
                store=store_name,
                path=str(path),
            )
        if not isinstance(envelope.get("state"), dict):
            raise SnapshotStorageError(
                "Snapshot is missing its state object",
                store=store_name,
                path=str(path),
            )

        logger.debug("snapshot_loaded", store=store_name, version=envelope["version"])
        return envelope

    def write(self, store_name: str, version: int, state: dict) -> None:
        """Atomically replace a store's envelope.

        Raises:
            SnapshotStorageError: If the file cannot be written.
        """
        path = self.path_for(store_name)
        payload = json.dumps({"version": version, "state": state}, indent=2, ensure_ascii=False)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{store_name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise SnapshotStorageError(
                f"Cannot write snapshot: {e}",
                store=store_name,
                path=str(path),
            ) from e

        logger.debug("snapshot_saved", store=store_name, version=version, path=str(path))
