"""Configuration for PKS.

Loads settings from .pks/config.yaml in the directory ``pks-init`` is run
from, so template locations, run logging and default initializer options
can be set per workspace.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]

# User templates live here unless templates_dir is configured
DEFAULT_TEMPLATES_DIR = Path.home() / ".pks" / "templates"

# Context metadata key the service uses to pass the user templates directory
USER_TEMPLATES_DIR_KEY = "UserTemplatesDirectory"


@dataclass
class PksConfig:
    """Top-level PKS configuration."""
    default_template: str = "console"
    templates_dir: Optional[str] = None
    logs_dir: Optional[str] = None
    lock_runs: bool = True
    show_summary: bool = True
    default_options: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'PksConfig':
        """Create a PksConfig from a dictionary (parsed YAML/JSON)."""
        config = PksConfig()

        config.default_template = data.get("default_template", "console")
        config.templates_dir = data.get("templates_dir")
        config.logs_dir = data.get("logs_dir")
        config.lock_runs = data.get("lock_runs", True)
        config.show_summary = data.get("show_summary", True)

        default_options = data.get("default_options") or {}
        if not isinstance(default_options, dict):
            raise ValueError("default_options must be a mapping of option name to value")
        config.default_options = dict(default_options)

        return config

    def user_templates_dir(self) -> Path:
        """Directory searched for user templates before the bundled ones."""
        if self.templates_dir:
            return Path(self.templates_dir).expanduser()
        return DEFAULT_TEMPLATES_DIR


def _load_config_file(config_path: Path) -> Dict[str, Any]:
    """Load a config file (YAML or JSON).

    Args:
        config_path: Path to the config file.

    Returns:
        Parsed configuration dictionary.
    """
    content = config_path.read_text(encoding="utf-8")

    if config_path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(content)
        return data if isinstance(data, dict) else {}

    if config_path.suffix == ".json":
        data = json.loads(content)
        return data if isinstance(data, dict) else {}

    raise ValueError(f"Unsupported config file format: {config_path.suffix}")


# Module-level cached config
_cached_config: Optional[PksConfig] = None


def load_config(config_path: Optional[Path] = None) -> PksConfig:
    """Load the PKS configuration.

    Searches for config in this order:
    1. Explicit path (if provided)
    2. .pks/config.yaml
    3. .pks/config.yml
    4. .pks/config.json
    5. pks.config.json

    If no config file is found, returns defaults.

    Args:
        config_path: Optional explicit path to config file.

    Returns:
        Loaded PksConfig.
    """
    global _cached_config

    if _cached_config is not None and config_path is None:
        return _cached_config

    if config_path is not None:
        config = PksConfig.from_dict(_load_config_file(config_path))
        _cached_config = config
        return config

    root = Path.cwd()
    candidates = [
        root / ".pks" / "config.yaml",
        root / ".pks" / "config.yml",
        root / ".pks" / "config.json",
        root / "pks.config.json",
    ]

    for candidate in candidates:
        if candidate.exists():
            config = PksConfig.from_dict(_load_config_file(candidate))
            _cached_config = config
            return config

    config = PksConfig()
    _cached_config = config
    return config


def reset_config() -> None:
    """Reset the cached configuration (useful for testing)."""
    global _cached_config
    _cached_config = None


def get_config() -> PksConfig:
    """Get the current configuration (cached)."""
    return load_config()
