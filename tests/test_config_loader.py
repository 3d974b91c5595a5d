"""
Unit tests for configuration loader.

Tests multi-layer config merging, environment variable overrides,
caching, and XDG directory handling.
"""

import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from litebrite.core.config import (
    LitebriteConfig,
    SyncConfig,
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    load_config,
)
from litebrite.core.config.loader import (
    apply_env_overrides,
    deep_merge,
    get_default_config,
    get_xdg_config_home,
    load_json_file,
)

# ==============================================================================
# Helper Functions Tests
# ==============================================================================


class TestDeepMerge:
    """Test the deep_merge helper function."""

    def test_simple_merge(self):
        """Test merging two simple dicts."""
        result = deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self):
        """Test merging nested dicts."""
        base = {"actor": "a", "sync": {"branch": "x", "remote": "origin"}}
        override = {"sync": {"remote": "upstream"}}
        result = deep_merge(base, override)
        assert result == {"actor": "a", "sync": {"branch": "x", "remote": "upstream"}}

    def test_base_not_modified(self):
        base = {"sync": {"branch": "x"}}
        deep_merge(base, {"sync": {"branch": "y"}})
        assert base == {"sync": {"branch": "x"}}

    def test_empty_dicts(self):
        """Test merging with empty dicts."""
        assert deep_merge({}, {"a": 1}) == {"a": 1}
        assert deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadJsonFile:
    """Test JSON file loading."""

    def test_load_existing_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"actor": "alice"}))
        assert load_json_file(config_file) == {"actor": "alice"}

    def test_load_nonexistent_file(self, tmp_path):
        assert load_json_file(tmp_path / "nonexistent.json") is None

    def test_load_invalid_json(self, tmp_path, caplog):
        """Invalid JSON returns None and logs a warning."""
        config_file = tmp_path / "invalid.json"
        config_file.write_text("{ invalid json }")

        with caplog.at_level(logging.WARNING):
            assert load_json_file(config_file) is None

        assert "Failed to parse config" in caplog.text

    def test_load_non_object(self, tmp_path, caplog):
        config_file = tmp_path / "list.json"
        config_file.write_text("[1, 2]")
        with caplog.at_level(logging.WARNING):
            assert load_json_file(config_file) is None
        assert "not an object" in caplog.text


class TestApplyEnvOverrides:
    """Test environment variable override logic."""

    def test_actor(self, monkeypatch):
        monkeypatch.setenv("LB_ACTOR", "alice")
        assert apply_env_overrides({})["actor"] == "alice"

    def test_branch_and_remote(self, monkeypatch):
        monkeypatch.setenv("LB_BRANCH", "tracker")
        monkeypatch.setenv("LB_REMOTE", "upstream")
        result = apply_env_overrides({"sync": {"snapshot_file": "s.json"}})
        assert result["sync"] == {
            "snapshot_file": "s.json",
            "branch": "tracker",
            "remote": "upstream",
        }

    def test_timeout(self, monkeypatch):
        monkeypatch.setenv("LB_GIT_TIMEOUT", "2.5")
        assert apply_env_overrides({})["sync"]["git_timeout_seconds"] == 2.5

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_invalid_timeout_ignored(self, monkeypatch, caplog, value):
        monkeypatch.setenv("LB_GIT_TIMEOUT", value)
        with caplog.at_level(logging.WARNING):
            assert "sync" not in apply_env_overrides({})
        assert "LB_GIT_TIMEOUT" in caplog.text

    def test_publish_retries(self, monkeypatch):
        monkeypatch.setenv("LB_PUBLISH_RETRIES", "3")
        assert apply_env_overrides({})["sync"]["max_publish_retries"] == 3

    @pytest.mark.parametrize("value", ["many", "-1"])
    def test_invalid_retries_ignored(self, monkeypatch, value):
        monkeypatch.setenv("LB_PUBLISH_RETRIES", value)
        assert "sync" not in apply_env_overrides({})

    def test_input_not_modified(self, monkeypatch):
        monkeypatch.setenv("LB_BRANCH", "tracker")
        config = {"sync": {"branch": "litebrite"}}
        apply_env_overrides(config)
        assert config == {"sync": {"branch": "litebrite"}}


class TestPaths:
    """Test config path resolution."""

    def test_xdg_config_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        assert get_xdg_config_home() == tmp_path / "cfg"

    def test_xdg_default(self, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_xdg_config_home() == Path.home() / ".config"

    def test_user_config_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_user_config_path() == tmp_path / "litebrite" / "config.json"

    def test_project_config_path(self, tmp_path):
        assert get_project_config_path(tmp_path) == tmp_path / ".litebrite.json"


# ==============================================================================
# load_config Tests
# ==============================================================================


class TestLoadConfig:
    """Test the full layered load."""

    def test_defaults(self, tmp_path):
        config = load_config(tmp_path, use_cache=False)
        assert config.actor is None
        assert config.id_prefix == "lb-"
        assert config.sync == SyncConfig()
        assert config.model_dump(exclude={"actor"}) == LitebriteConfig(
            **get_default_config()
        ).model_dump(exclude={"actor"})

    def test_precedence(self, tmp_path, monkeypatch):
        """defaults < user < project < env."""
        user_file = get_user_config_path()
        user_file.parent.mkdir(parents=True)
        user_file.write_text(
            json.dumps({"actor": "user", "id_prefix": "u-", "sync": {"remote": "user-remote"}})
        )
        (tmp_path / ".litebrite.json").write_text(
            json.dumps({"id_prefix": "p-", "sync": {"branch": "project-branch"}})
        )
        monkeypatch.setenv("LB_ACTOR", "env")

        config = load_config(tmp_path, use_cache=False)

        assert config.actor == "env"
        assert config.id_prefix == "p-"
        assert config.sync.remote == "user-remote"
        assert config.sync.branch == "project-branch"
        assert config.sync.snapshot_file == "store.json"

    def test_cache(self, tmp_path, monkeypatch):
        first = load_config(tmp_path)
        monkeypatch.setenv("LB_ACTOR", "later")
        assert load_config(tmp_path) is first
        clear_cache()
        assert load_config(tmp_path).actor == "later"

    def test_invalid_value_raises(self, tmp_path):
        (tmp_path / ".litebrite.json").write_text(json.dumps({"sync": {"max_publish_retries": -1}}))
        with pytest.raises(ValidationError):
            load_config(tmp_path, use_cache=False)

    def test_unknown_keys_allowed(self, tmp_path):
        (tmp_path / ".litebrite.json").write_text(json.dumps({"future_option": True}))
        config = load_config(tmp_path, use_cache=False)
        assert config.model_extra == {"future_option": True}


class TestSyncConfig:
    @pytest.mark.parametrize("path", ["../escape.json", "", "/"])
    def test_invalid_snapshot_path(self, path):
        with pytest.raises(ValidationError):
            SyncConfig(snapshot_file=path)

    def test_snapshot_path_normalized(self):
        assert SyncConfig(snapshot_file="/data/store.json/").snapshot_file == "data/store.json"

    def test_validate_assignment(self):
        config = LitebriteConfig()
        with pytest.raises(ValidationError):
            config.id_prefix = ""
