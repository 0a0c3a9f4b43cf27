"""Configuration management for Vacuum.

Storage Structure
-----------------
~/.vacuum/
└── config.yaml               # User-level defaults

<root>/.vacuum.yaml           # Project-level overrides (shareable via git)

<root>/.changes/              # The history log itself (see vacuum.paths)

Cascade: project ``.vacuum.yaml`` → user ``~/.vacuum/config.yaml`` →
built-in defaults. The ``VACUUM_ENABLED`` environment variable overrides
the ``enabled`` flag from any file.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Standard paths
VACUUM_DIR = Path.home() / ".vacuum"
USER_CONFIG_PATH = VACUUM_DIR / "config.yaml"
PROJECT_CONFIG_NAME = ".vacuum.yaml"

DEFAULT_LOG_DIR_NAME = ".changes"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class VacuumConfig:
    """Tracking parameters.

    The tracked/ignored lists drive the file classifier; the remaining
    fields tune the store and the caller-side scheduler.
    """

    enabled: bool = True

    # Name of the history directory created inside each tracked root
    log_dir_name: str = DEFAULT_LOG_DIR_NAME

    # File classifier
    tracked_suffixes: list[str] = field(default_factory=lambda: [".lean"])
    tracked_filenames: list[str] = field(
        default_factory=lambda: ["lakefile.lean", "lakefile.toml", "lean-toolchain"]
    )
    ignored_dirs: list[str] = field(default_factory=lambda: [".lake", ".git"])

    # Partition histories by HEAD commit when the root is a git repository
    namespace_by_git: bool = True

    # Upper bound on reference-checkpoint hops before giving up
    max_chain_depth: int = 1000

    # Debounce delay for the scheduler's bulk refresh
    checkpoint_delay_seconds: float = 3.0

    @classmethod
    def load(cls, config_path: Path) -> "VacuumConfig":
        """Load config from a YAML file.

        Args:
            config_path: Path to a config YAML file

        Returns:
            VacuumConfig with values from file, or defaults if not found
        """
        if config_path.exists():
            with open(config_path) as f:
                overrides = yaml.safe_load(f) or {}
            if not isinstance(overrides, dict):
                logger.warning(f"Ignoring non-mapping config file: {config_path}")
                return cls()
            # Only apply known fields
            valid_fields = {f.name for f in fields(cls)}
            unknown = sorted(k for k in overrides if k not in valid_fields)
            if unknown:
                logger.warning(f"Unknown config keys in {config_path}: {', '.join(unknown)}")
            valid_overrides = {k: v for k, v in overrides.items() if k in valid_fields}
            return cls(**valid_overrides)
        return cls()

    def save(self, config_path: Path) -> Path:
        """Save non-default values to a YAML file.

        Args:
            config_path: Destination path

        Returns:
            Path to saved config file
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)

        defaults = VacuumConfig()
        data = {}
        for key, value in self.to_dict().items():
            if getattr(defaults, key) != value:
                data[key] = value

        with open(config_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)

        return config_path

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _apply_env(config: VacuumConfig) -> VacuumConfig:
    if (value := os.environ.get("VACUUM_ENABLED")) is not None:
        config.enabled = value.strip().lower() not in _FALSE_VALUES
    return config


def get_config(project_path: Path | None = None) -> VacuumConfig:
    """Load VacuumConfig with project → user → default cascade.

    Priority (highest to lowest):
    1. Project-level config (<root>/.vacuum.yaml)
    2. User-level config (~/.vacuum/config.yaml)
    3. Built-in defaults

    Args:
        project_path: Tracked root to look for a project config in

    Returns:
        VacuumConfig with the environment override applied
    """
    if project_path is not None:
        project_config = project_path / PROJECT_CONFIG_NAME
        if project_config.exists():
            return _apply_env(VacuumConfig.load(project_config))

    return _apply_env(VacuumConfig.load(USER_CONFIG_PATH))
