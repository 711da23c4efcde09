"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_DATA_DIR = "~/.csf_tracker"
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_FRAMEWORK_ID = "nist-csf-2.0"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TrackerConfig:
    """Settings shared by the workspace, stores and integrations."""

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR).expanduser())
    log_level: str = "INFO"
    log_json: bool = False
    history_limit: int = DEFAULT_HISTORY_LIMIT
    default_framework_id: str = DEFAULT_FRAMEWORK_ID
    findings_project_key: str = "FND"
    artifacts_project_key: str = "AR"
    seed_defaults: bool = True
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, data_dir: Optional[str] = None) -> "TrackerConfig":
        """Build a config from ``CSF_TRACKER_*`` environment variables.

        Args:
            data_dir: Explicit data directory, taking precedence over the
                environment.
        """
        raw_dir = data_dir or os.environ.get("CSF_TRACKER_DATA_DIR", DEFAULT_DATA_DIR)
        try:
            history_limit = int(os.environ.get("CSF_TRACKER_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT))
        except ValueError:
            history_limit = DEFAULT_HISTORY_LIMIT
        log_file = os.environ.get("CSF_TRACKER_LOG_FILE")

        return cls(
            data_dir=Path(raw_dir).expanduser(),
            log_level=os.environ.get("CSF_TRACKER_LOG_LEVEL", "INFO"),
            log_json=_env_bool("CSF_TRACKER_LOG_JSON", False),
            history_limit=max(history_limit, 0),
            default_framework_id=os.environ.get(
                "CSF_TRACKER_DEFAULT_FRAMEWORK", DEFAULT_FRAMEWORK_ID
            ),
            findings_project_key=os.environ.get("CSF_TRACKER_FINDINGS_PROJECT", "FND"),
            artifacts_project_key=os.environ.get("CSF_TRACKER_ARTIFACTS_PROJECT", "AR"),
            seed_defaults=_env_bool("CSF_TRACKER_SEED_DEFAULTS", True),
            log_file=Path(log_file).expanduser() if log_file else None,
        )
