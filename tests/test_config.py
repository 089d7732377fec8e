"""Tests for the central configuration loader (batchfetch/config.py)."""

import pytest
import yaml

from batchfetch.config import (
    BatcherSettings,
    ObservabilitySettings,
    Settings,
    _apply_dict,
    _load_yaml,
    get_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _clean_settings():
    """Reset the singleton before and after each test."""
    reset_settings()
    yield
    reset_settings()


def _write_config(tmp_path, data):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump(data))
    return f


# ── YAML loading ────────────────────────────────────────


class TestLoadYaml:
    def test_loads_valid_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("batcher:\n  delay_ms: 25\n")
        data = _load_yaml(f)
        assert data["batcher"]["delay_ms"] == 25

    def test_returns_empty_dict_for_missing_file(self, tmp_path):
        data = _load_yaml(tmp_path / "nonexistent.yaml")
        assert data == {}

    def test_returns_empty_dict_for_non_dict_yaml(self, tmp_path):
        f = tmp_path / "cfg.yaml"
        f.write_text("- item1\n- item2\n")
        data = _load_yaml(f)
        assert data == {}


# ── Settings defaults ───────────────────────────────────


class TestSettingsDefaults:
    def test_default_settings_have_expected_values(self):
        s = Settings()
        assert s.batcher.scheduler == "window"
        assert s.batcher.delay_ms == 10
        assert s.batcher.name_prefix == "batcher"
        assert s.observability.enabled is True
        assert s.observability.max_events == 1000
        assert s.logging.level == "INFO"


# ── get_settings() from YAML ────────────────────────────


class TestGetSettings:
    def test_loads_yaml_values(self, tmp_path):
        cfg = _write_config(tmp_path, {
            "batcher": {"scheduler": "buffer", "delay_ms": 50},
            "observability": {"max_events": 10},
        })
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.scheduler == "buffer"
        assert s.batcher.delay_ms == 50
        assert s.observability.max_events == 10

    def test_missing_yaml_uses_defaults(self, tmp_path):
        s = get_settings(yaml_path=tmp_path / "nope.yaml", _force_reload=True)
        assert s.batcher.delay_ms == 10

    def test_singleton_returns_same_object(self, tmp_path):
        cfg = _write_config(tmp_path, {"batcher": {"delay_ms": 5}})
        s1 = get_settings(yaml_path=cfg, _force_reload=True)
        s2 = get_settings()
        assert s1 is s2

    def test_force_reload_reloads(self, tmp_path):
        cfg = _write_config(tmp_path, {"batcher": {"delay_ms": 11}})
        s1 = get_settings(yaml_path=cfg, _force_reload=True)
        assert s1.batcher.delay_ms == 11

        cfg.write_text(yaml.dump({"batcher": {"delay_ms": 22}}))
        s2 = get_settings(yaml_path=cfg, _force_reload=True)
        assert s2.batcher.delay_ms == 22

    def test_non_dict_section_is_ignored(self, tmp_path):
        cfg = _write_config(tmp_path, {"batcher": "fast"})
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.scheduler == "window"

    def test_dotenv_file_is_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BATCHFETCH_BATCHER_NAME_PREFIX", raising=False)
        env = tmp_path / ".env"
        env.write_text("BATCHFETCH_BATCHER_NAME_PREFIX=loader\n")
        cfg = _write_config(tmp_path, {})
        # monkeypatch removes the variable again on teardown
        s = get_settings(yaml_path=cfg, env_path=env, _force_reload=True)
        assert s.batcher.name_prefix == "loader"


# ── Environment variable overrides ──────────────────────


class TestEnvOverrides:
    def test_env_override_int(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"batcher": {"delay_ms": 10}})
        monkeypatch.setenv("BATCHFETCH_BATCHER_DELAY_MS", "99")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.delay_ms == 99

    def test_env_override_bool(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("BATCHFETCH_OBSERVABILITY_ENABLED", "false")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.observability.enabled is False

    def test_env_override_string(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {})
        monkeypatch.setenv("BATCHFETCH_BATCHER_SCHEDULER", "capped")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.scheduler == "capped"

    def test_env_overrides_trump_yaml(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"batcher": {"delay_ms": 30}})
        monkeypatch.setenv("BATCHFETCH_BATCHER_DELAY_MS", "40")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.delay_ms == 40

    def test_invalid_env_override_is_ignored(self, tmp_path, monkeypatch):
        cfg = _write_config(tmp_path, {"batcher": {"delay_ms": 30}})
        monkeypatch.setenv("BATCHFETCH_BATCHER_DELAY_MS", "soon")
        s = get_settings(yaml_path=cfg, _force_reload=True)
        assert s.batcher.delay_ms == 30


# ── _apply_dict helper ──────────────────────────────────


class TestApplyDict:
    def test_applies_known_keys(self):
        target = BatcherSettings()
        _apply_dict(target, {"delay_ms": 7, "scheduler": "buffer"})
        assert target.delay_ms == 7
        assert target.scheduler == "buffer"

    def test_ignores_unknown_keys(self):
        target = ObservabilitySettings()
        _apply_dict(target, {"unknown_field": "value"})
        assert not hasattr(target, "unknown_field")
        assert target.max_events == 1000


# ── Integration: real config/config.yaml ─────────────────


class TestRealConfig:
    def test_loads_project_config_yaml(self, monkeypatch):
        """Verify that the actual config/config.yaml is loaded correctly."""
        for key in ("SCHEDULER", "DELAY_MS", "MAX_WAIT_MS", "NAME_PREFIX"):
            monkeypatch.delenv(f"BATCHFETCH_BATCHER_{key}", raising=False)
        s = get_settings(_force_reload=True)
        # These values match config/config.yaml
        assert s.batcher.scheduler == "window"
        assert s.batcher.delay_ms == 10
        assert s.batcher.max_wait_ms == 100
        assert s.observability.retention_hours == 24
