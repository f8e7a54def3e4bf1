"""Configuration loading (YAML file plus environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

DEFAULT_DB_URL = "sqlite:///shiftguard.db"

ENV_OVERRIDES = {
    "SHIFTGUARD_DB_URL": "db_url",
    "SHIFTGUARD_TIMEZONE": "timezone",
    "SHIFTGUARD_LOG_LEVEL": "log_level",
}


@dataclass
class GuardConfig:
    db_url: str = DEFAULT_DB_URL
    timezone: str = "Europe/Warsaw"  # reference frame for daily periods
    max_shift_hours: float = 24.0
    max_adjustment_minutes: int = 480
    validate_hanging_close: bool = False  # reject hanging closes that end before clock-in
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _from_mapping(data: Dict[str, Any]) -> GuardConfig:
    known = {f.name for f in fields(GuardConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    cfg = GuardConfig(**data)
    try:
        ZoneInfo(cfg.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {cfg.timezone}") from e
    return cfg


def load_config(path: Optional[str | Path] = None) -> GuardConfig:
    """
    Load configuration from a YAML file, then apply environment overrides.

    Args:
        path: Optional path to a YAML file; defaults are used when omitted

    Returns:
        GuardConfig
    """
    data: Dict[str, Any] = {}
    if path is not None:
        with open(path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(loaded)

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[key] = value

    return _from_mapping(data)


def restaurant_zone(tz: Optional[tzinfo] = None) -> tzinfo:
    """``tz`` if given, else the configured restaurant zone."""
    if tz is not None:
        return tz
    return load_config().tz
