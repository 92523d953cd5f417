"""YAML configuration loader.

Supports hierarchical configuration:
1. Built-in defaults
2. ~/.autopr/config.yaml (global user prefs)
3. .autopr/config.yaml (project-level)
4. Environment variables / .env (highest precedence)

The YAML layout is derived from the Settings class: each field lives under a
section named after its prefix (``github_base_branch`` -> ``github.base_branch``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_DIR_NAME = ".autopr"

# Field-name prefix -> YAML section. Longest prefix wins.
SECTION_PREFIXES: dict[str, str] = {
    "openai_compatible_": "openai_compatible",
    "openai_": "openai",
    "github_": "github",
    "llm_": "llm",
}

# Fields kept whole under a section instead of being split on their prefix.
SECTION_OVERRIDES: dict[str, str] = {
    "exclude_patterns": "github",
    "branch_prefix": "github",
    "otel_enabled": "observability",
    "otel_endpoint": "observability",
    "metrics_enabled": "observability",
    "metrics_port": "observability",
}


def get_global_config_path() -> Path:
    """Get path to global config file."""
    return Path.home() / CONFIG_DIR_NAME / "config.yaml"


def get_project_config_path(cwd: Path | None = None) -> Path | None:
    """Get path to project config file if it exists.

    Searches from cwd up to root for .autopr/config.yaml
    """
    if cwd is None:
        cwd = Path.cwd()

    current = cwd.resolve()

    while current != current.parent:
        config_path = current / CONFIG_DIR_NAME / "config.yaml"
        if config_path.exists():
            return config_path
        current = current.parent

    return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict. Missing or unreadable files yield {}."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config file", path=str(path), error=str(e))
        return {}
    return content if isinstance(content, dict) else {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Override values take precedence.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(cwd: Path | None = None) -> dict[str, Any]:
    """Load and merge the global and project config files."""
    config: dict[str, Any] = {}

    global_path = get_global_config_path()
    if global_path.exists():
        config = deep_merge(config, load_yaml_file(global_path))

    project_path = get_project_config_path(cwd)
    if project_path:
        config = deep_merge(config, load_yaml_file(project_path))

    return config


def yaml_path_for(field_name: str) -> tuple[str, str]:
    """Return the (section, key) a Settings field is stored under in YAML."""
    if field_name in SECTION_OVERRIDES:
        return SECTION_OVERRIDES[field_name], field_name
    for prefix in sorted(SECTION_PREFIXES, key=len, reverse=True):
        if field_name.startswith(prefix):
            return SECTION_PREFIXES[prefix], field_name[len(prefix) :]
    return "server", field_name


def _get_settings_schema() -> list[dict[str, Any]]:
    """Describe every Settings field: env var, YAML path, default, secrecy."""
    from autopr.settings import Settings

    schema = []
    for field_name, field_info in Settings.model_fields.items():
        env_var = field_info.alias or f"AUTOPR_{field_name.upper()}"
        schema.append(
            {
                "field_name": field_name,
                "env_var": env_var,
                "yaml_path": yaml_path_for(field_name),
                "default": field_info.get_default(call_default_factory=True),
                "is_secret": "SecretStr" in str(field_info.annotation),
            }
        )
    return schema


def create_default_config() -> dict[str, Any]:
    """Build a nested config dict of all non-secret Settings defaults."""
    config: dict[str, Any] = {}
    for field in _get_settings_schema():
        if field["is_secret"]:
            continue
        section, key = field["yaml_path"]
        config.setdefault(section, {})[key] = field["default"]
    return config


def save_config(config: dict[str, Any], path: Path) -> None:
    """Save configuration to YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)


def init_global_config() -> Path:
    """Initialize global configuration file with defaults."""
    config_path = get_global_config_path()

    if not config_path.exists():
        save_config(create_default_config(), config_path)

    return config_path


def init_project_config(project_path: Path) -> Path:
    """Initialize a minimal project configuration file."""
    config_path = project_path / CONFIG_DIR_NAME / "config.yaml"

    if not config_path.exists():
        save_config(
            {"github": {"owner": None, "repo": None, "base_branch": "main"}},
            config_path,
        )

    return config_path


class ConfigLoader:
    """Configuration loader with caching.

    Loads configuration from YAML files and provides merged settings.
    """

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd or Path.cwd()
        self._config: dict[str, Any] | None = None

    def load(self) -> dict[str, Any]:
        """Load and return merged configuration."""
        if self._config is None:
            self._config = load_config(self.cwd)
        return self._config

    def reload(self) -> dict[str, Any]:
        """Reload configuration from disk."""
        self._config = None
        return self.load()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (dot notation supported).

        Example: loader.get("github.base_branch") returns "main"
        """
        value: Any = self.load()
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def to_env_vars(self) -> dict[str, str]:
        """Convert configuration to environment variable format."""
        env_vars: dict[str, str] = {}

        for field in _get_settings_schema():
            value = self.get(".".join(field["yaml_path"]))
            if value is None:
                continue
            if isinstance(value, (list, dict)):
                env_vars[field["env_var"]] = json.dumps(value)
            elif isinstance(value, bool):
                env_vars[field["env_var"]] = str(value).lower()
            else:
                env_vars[field["env_var"]] = str(value)

        return env_vars
