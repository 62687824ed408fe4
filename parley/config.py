"""
Parley configuration.

config.yaml is read once and cached. Credentials stay out of the file:
string values may reference the environment (and .env) as ${VAR} or
${VAR:-fallback}. Every known section must be a mapping, and the timing
knobs must be positive numbers, or loading fails with ConfigurationError.
"""

import os
import re
from pathlib import Path

import yaml
from dotenv import load_dotenv

from parley.errors import ConfigurationError

load_dotenv()

_CONFIG_PATH = Path(os.environ.get(
    "PARLEY_CONFIG",
    Path(__file__).parent.parent / "config.yaml",
))

SECTIONS = ("server", "openai", "assistant", "webhook", "sessions", "logging")

# section -> keys that must be > 0 when present
_POSITIVE = {
    "openai": ("timeout", "max_tokens"),
    "assistant": ("poll_interval", "run_timeout"),
    "webhook": ("timeout",),
    "sessions": ("sweep_interval",),
}

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

_config: dict | None = None


def _expand(obj):
    if isinstance(obj, dict):
        return {k: _expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand(v) for v in obj]
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1)) or (m.group(2) or ""), obj)
    return obj


def _validate(cfg: dict, source: Path) -> dict:
    for name in SECTIONS:
        section = cfg.setdefault(name, {})
        if section is None:
            cfg[name] = section = {}
        if not isinstance(section, dict):
            raise ConfigurationError(f"{source}: '{name}' must be a mapping")

    for name, keys in _POSITIVE.items():
        for key in keys:
            value = cfg[name].get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{source}: {name}.{key} must be a positive number, got {value!r}")
    return cfg


def load_config(path: Path | None = None) -> dict:
    global _config
    if _config is not None:
        return _config

    config_path = Path(path) if path else _CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path}: top level must be a mapping")

    _config = _validate(_expand(raw), config_path)
    return _config


def get_config() -> dict:
    return _config if _config is not None else load_config()


def reset_config():
    """Drop the cached config so the next get_config() re-reads the file."""
    global _config
    _config = None
