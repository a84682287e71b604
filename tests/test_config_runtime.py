"""Tests for runtime configuration loading."""

import json

import pytest

from dialectic.config_runtime import DEFAULTS, load_runtime_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("ZHIPU_API_KEY", raising=False)
    monkeypatch.delenv("DIALECTIC_TIMEOUTS_INSTALL", raising=False)
    monkeypatch.delenv("DIALECTIC_RISK_MODEL", raising=False)


def write_config(root, data):
    state = root / ".dialectic"
    state.mkdir()
    (state / "config.json").write_text(json.dumps(data), encoding="utf-8")


class TestLoadRuntimeConfig:
    def test_defaults(self, tmp_path):
        cfg = load_runtime_config(tmp_path)
        assert cfg == DEFAULTS
        assert cfg is not DEFAULTS

    def test_file_overrides(self, tmp_path):
        write_config(tmp_path, {"timeouts": {"install": 60}, "planner": {"default_strategy": "aggressive"}})
        cfg = load_runtime_config(tmp_path)
        assert cfg["timeouts"]["install"] == 60
        assert cfg["timeouts"]["test_run"] == 300.0
        assert cfg["planner"]["default_strategy"] == "aggressive"

    def test_wrong_types_ignored(self, tmp_path):
        write_config(tmp_path, {"timeouts": {"install": "forever", "bogus": 1}, "risk": "nope"})
        cfg = load_runtime_config(tmp_path)
        assert cfg["timeouts"]["install"] == 15.0
        assert "bogus" not in cfg["timeouts"]

    def test_invalid_json_falls_back(self, tmp_path):
        state = tmp_path / ".dialectic"
        state.mkdir()
        (state / "config.json").write_text("{broken", encoding="utf-8")
        assert load_runtime_config(tmp_path) == DEFAULTS

    def test_env_beats_file(self, tmp_path, monkeypatch):
        write_config(tmp_path, {"timeouts": {"install": 60}})
        monkeypatch.setenv("DIALECTIC_TIMEOUTS_INSTALL", "45")
        monkeypatch.setenv("DIALECTIC_RISK_MODEL", "glm-4.6")

        cfg = load_runtime_config(tmp_path)

        assert cfg["timeouts"]["install"] == 45.0
        assert cfg["risk"]["model"] == "glm-4.6"

    def test_bad_env_value_keeps_previous(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DIALECTIC_TIMEOUTS_INSTALL", "soon")
        assert load_runtime_config(tmp_path)["timeouts"]["install"] == 15.0

    def test_risk_api_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZHIPU_API_KEY", "secret")
        assert load_runtime_config(tmp_path)["risk"]["api_key"] == "secret"
