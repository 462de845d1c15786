"""
YAML → typed settings loader.

Loads defaults.yaml (bundled with the package) and optionally merges user
overrides from ~/.strength-block/config.yaml.  ``STRENGTH_BLOCK_HOME``
replaces ~/.strength-block as the config home.

Usage:
    from strength_block.core.config_loader import load_settings
    settings = load_settings()
    settings.pr_lookback

If the user override file exists but cannot be parsed, a warning is
emitted and the file is ignored.
"""

from __future__ import annotations

import importlib.resources
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import (
    ATTENDANCE_LOOKAHEAD_DAYS,
    DEFAULT_INCREMENTS,
    DEFAULT_TEAMS,
    PR_LOOKBACK,
    RECENT_FETCH_CAP,
)

HOME_ENV = "STRENGTH_BLOCK_HOME"
CONFIG_FILENAME = "config.yaml"
STORE_FILENAME = "store.json"


@dataclass
class Settings:
    """Runtime settings after merging bundled defaults and user overrides."""

    data_dir: Path
    identity: str | None = None
    pr_lookback: int = PR_LOOKBACK
    recent_fetch_cap: int = RECENT_FETCH_CAP
    increments: dict = field(default_factory=lambda: dict(DEFAULT_INCREMENTS))
    lookahead_days: int = ATTENDANCE_LOOKAHEAD_DAYS
    teams: list = field(default_factory=lambda: list(DEFAULT_TEAMS))

    def __post_init__(self) -> None:
        if self.pr_lookback < 1:
            raise ValueError("pr_lookback must be at least 1")
        if self.recent_fetch_cap < 1:
            raise ValueError("recent_fetch_cap must be at least 1")
        for unit, step in self.increments.items():
            if step <= 0:
                raise ValueError(f"Plate increment for {unit} must be positive")

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    def increment_for(self, unit: str) -> float | None:
        return self.increments.get(unit)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; raise on unreadable or malformed files."""
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_config_home() -> Path:
    """Return $STRENGTH_BLOCK_HOME, or ~/.strength-block."""
    env = os.environ.get(HOME_ENV)
    if env:
        return Path(env).expanduser()
    return Path(os.environ.get("HOME", "~")).expanduser() / ".strength-block"


def get_bundled_yaml_path() -> Path:
    ref = importlib.resources.files("strength_block").joinpath("defaults.yaml")
    return Path(str(ref))


def get_user_yaml_path() -> Path | None:
    """Return the user config file if it exists, else None."""
    p = get_config_home() / CONFIG_FILENAME
    return p if p.exists() else None


def load_config() -> dict[str, Any]:
    """
    Load and merge configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/strength_block/defaults.yaml
    2. User override at <config home>/config.yaml
    """
    config = _load_yaml_file(get_bundled_yaml_path())

    user = get_user_yaml_path()
    if user is not None:
        try:
            user_cfg = _load_yaml_file(user)
        except (OSError, ValueError, yaml.YAMLError) as e:
            warnings.warn(f"Ignoring {user}: {e}", stacklevel=2)
        else:
            config = _deep_merge(config, user_cfg)

    return config


def settings_from_dict(config: dict[str, Any]) -> Settings:
    """Build Settings from a merged config mapping."""
    ledger = config.get("ledger") or {}
    attendance = config.get("attendance") or {}
    data_dir = config.get("data_dir")
    return Settings(
        data_dir=Path(data_dir).expanduser() if data_dir else get_config_home(),
        identity=config.get("identity") or None,
        pr_lookback=int(ledger.get("pr_lookback", PR_LOOKBACK)),
        recent_fetch_cap=int(ledger.get("recent_fetch_cap", RECENT_FETCH_CAP)),
        increments={
            unit: float(step)
            for unit, step in _deep_merge(DEFAULT_INCREMENTS, config.get("plates") or {}).items()
        },
        lookahead_days=int(attendance.get("lookahead_days", ATTENDANCE_LOOKAHEAD_DAYS)),
        teams=[str(t) for t in attendance.get("teams") or DEFAULT_TEAMS],
    )


def load_settings() -> Settings:
    return settings_from_dict(load_config())
