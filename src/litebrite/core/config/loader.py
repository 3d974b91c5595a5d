"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import LitebriteConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".litebrite.json"

# Global cache to avoid reloading config multiple times per process
_config_cache: LitebriteConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/litebrite/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "litebrite" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)

    Returns:
        Path to .litebrite.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "sync": {"branch": "x"}}, {"sync": {"remote": "up"}})
        {'a': 1, 'sync': {'branch': 'x', 'remote': 'up'}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None

    if isinstance(data, dict):
        return data
    logger.warning("Ignoring config at %s: top level is not an object", path)
    return None


def _set_sync_value(config_dict: dict[str, Any], key: str, value: Any) -> None:
    sync = config_dict.get("sync")
    sync = dict(sync) if isinstance(sync, dict) else {}
    sync[key] = value
    config_dict["sync"] = sync


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        LB_ACTOR - overrides actor
        LB_BRANCH - overrides sync.branch
        LB_REMOTE - overrides sync.remote
        LB_GIT_TIMEOUT - overrides sync.git_timeout_seconds
        LB_PUBLISH_RETRIES - overrides sync.max_publish_retries

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if actor := os.environ.get("LB_ACTOR"):
        result["actor"] = actor

    if branch := os.environ.get("LB_BRANCH"):
        _set_sync_value(result, "branch", branch)

    if remote := os.environ.get("LB_REMOTE"):
        _set_sync_value(result, "remote", remote)

    if timeout_str := os.environ.get("LB_GIT_TIMEOUT"):
        try:
            timeout = float(timeout_str)
        except ValueError:
            logger.warning("Invalid LB_GIT_TIMEOUT value '%s', ignoring", timeout_str)
        else:
            if timeout <= 0:
                logger.warning("LB_GIT_TIMEOUT must be > 0, got %s, ignoring", timeout_str)
            else:
                _set_sync_value(result, "git_timeout_seconds", timeout)

    if retries_str := os.environ.get("LB_PUBLISH_RETRIES"):
        try:
            retries = int(retries_str)
        except ValueError:
            logger.warning("Invalid LB_PUBLISH_RETRIES value '%s', ignoring", retries_str)
        else:
            if retries < 0:
                logger.warning("LB_PUBLISH_RETRIES must be >= 0, got %d, ignoring", retries)
            else:
                _set_sync_value(result, "max_publish_retries", retries)

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded default configuration."""
    return {
        "id_prefix": "lb-",
        "sync": {
            "branch": "litebrite",
            "remote": "origin",
            "snapshot_file": "store.json",
            "git_timeout_seconds": 60,
            "max_publish_retries": 1,
        },
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> LitebriteConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (LB_*)
        2. Project config (.litebrite.json)
        3. User config (~/.config/litebrite/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .litebrite.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated LitebriteConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = LitebriteConfig(**merged)

    _config_cache = config

    return config


def clear_cache() -> None:
    """Clear the cached configuration."""
    global _config_cache
    _config_cache = None
