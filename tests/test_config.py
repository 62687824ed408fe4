"""
Tests for config loading and ${ENV_VAR} resolution.
"""

import pytest

from parley import config as cfg_mod
from parley.errors import ConfigurationError


@pytest.fixture(autouse=True)
def fresh_config():
    orig = cfg_mod._config
    cfg_mod.reset_config()
    yield
    cfg_mod._config = orig


def test_env_vars_resolved(tmp_path, monkeypatch):
    monkeypatch.setenv("PARLEY_TEST_KEY", "sk-from-env")
    path = tmp_path / "config.yaml"
    path.write_text("openai:\n  api_key: \"${PARLEY_TEST_KEY}\"\n  models: [\"${PARLEY_TEST_KEY}-x\"]\n")

    cfg = cfg_mod.load_config(path)
    assert cfg["openai"]["api_key"] == "sk-from-env"
    assert cfg["openai"]["models"] == ["sk-from-env-x"]


def test_unset_env_var_resolves_empty(tmp_path, monkeypatch):
    monkeypatch.delenv("PARLEY_MISSING_KEY", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("webhook:\n  url: \"${PARLEY_MISSING_KEY}\"\n  timeout: 30\n")

    cfg = cfg_mod.load_config(path)
    assert cfg["webhook"]["url"] == ""
    assert cfg["webhook"]["timeout"] == 30


def test_config_is_cached(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: 9000\n")
    first = cfg_mod.load_config(path)
    path.write_text("server:\n  port: 9001\n")
    assert cfg_mod.get_config() is first

    cfg_mod.reset_config()
    assert cfg_mod.load_config(path)["server"]["port"] == 9001


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        cfg_mod.load_config(tmp_path / "nope.yaml")


def test_repo_config_parses(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-repo")
    cfg = cfg_mod.load_config()
    assert cfg["openai"]["api_key"] == "sk-repo"
    assert cfg["openai"]["default_model"] == "gpt-4o-mini"
    assert cfg["assistant"]["run_timeout"] == 30.0


def test_env_fallback_used_when_unset(tmp_path, monkeypatch):
    monkeypatch.delenv("PARLEY_MISSING_URL", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("openai:\n  base_url: \"${PARLEY_MISSING_URL:-https://api.test/v1}\"\n")

    cfg = cfg_mod.load_config(path)
    assert cfg["openai"]["base_url"] == "https://api.test/v1"


def test_missing_sections_default_to_empty(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: 9000\nwebhook:\n")

    cfg = cfg_mod.load_config(path)
    assert cfg["webhook"] == {}
    assert cfg["sessions"] == {}


@pytest.mark.parametrize("text", [
    "openai: [1, 2]\n",
    "assistant:\n  run_timeout: 0\n",
    "sessions:\n  sweep_interval: soon\n",
    "- just\n- a list\n",
])
def test_invalid_config_rejected(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ConfigurationError):
        cfg_mod.load_config(path)
    assert cfg_mod._config is None
