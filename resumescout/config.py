"""
Scraper settings: defaults, overridden by the YAML ``scraper:`` section,
overridden by ``SCRAPER_*`` environment variables.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

# name -> (default, min, max)
NUMERIC_LIMITS = {
    "profile_delay_ms": (2500, 500, 12000),
    "page_delay_ms": (2000, 1000, 10000),
    "navigation_timeout_ms": (30000, 5000, 120000),
    "max_pages": (3, 1, 50),
}

ENV_VARS = {
    "profile_delay_ms": "SCRAPER_PROFILE_DELAY_MS",
    "page_delay_ms": "SCRAPER_PAGE_DELAY_MS",
    "max_pages": "SCRAPER_MAX_PAGES",
    "headless": "SCRAPER_HEADLESS",
    "storage_state": "SCRAPER_STORAGE_STATE",
}


class ConfigError(Exception):
    """Config file missing or not valid YAML."""


def _parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def clamp_number(value: Any, fallback: float, minimum: float, maximum: float) -> int:
    """Clamp ``value`` into ``[minimum, maximum]``; unparsable or non-finite → fallback."""
    parsed = _parse_number(value)
    if parsed is None:
        parsed = _parse_number(fallback)
        if parsed is None:
            parsed = minimum
    return int(max(minimum, min(maximum, parsed)))


def env_number(name: str, fallback: float, minimum: float = -(2**53 - 1), maximum: float = 2**53 - 1,
               environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    return clamp_number(env.get(name), fallback, minimum, maximum)


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return None


@dataclass(frozen=True)
class ScraperSettings:
    profile_delay_ms: int = 2500
    page_delay_ms: int = 2000
    navigation_timeout_ms: int = 30000
    max_pages: int = 3
    headless: bool = True
    storage_state: Optional[str] = None
    db_path: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_yaml(config_path: Path) -> Dict[str, Any]:
    config_path = Path(config_path)
    if not config_path.exists() or not config_path.is_file():
        raise ConfigError(f"file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"top-level YAML in {config_path} must be a mapping")
    return cfg


def _apply(settings: ScraperSettings, values: Mapping[str, Any]) -> ScraperSettings:
    updates: Dict[str, Any] = {}
    for name, (_, lo, hi) in NUMERIC_LIMITS.items():
        if values.get(name) is not None:
            updates[name] = clamp_number(values[name], getattr(settings, name), lo, hi)
    headless = _parse_bool(values.get("headless"))
    if headless is not None:
        updates["headless"] = headless
    for name in ("storage_state", "db_path"):
        if values.get(name):
            updates[name] = str(values[name])
    return replace(settings, **updates)


def load_settings(config: Optional[Mapping[str, Any]] = None,
                  environ: Optional[Mapping[str, str]] = None) -> ScraperSettings:
    """Resolve settings from defaults, a parsed YAML mapping and the environment."""
    settings = ScraperSettings()
    section = (config or {}).get("scraper", {}) if isinstance(config, Mapping) else {}
    if isinstance(section, Mapping):
        settings = _apply(settings, section)

    env = os.environ if environ is None else environ
    from_env = {field: env.get(var) for field, var in ENV_VARS.items() if env.get(var)}
    return _apply(settings, from_env)
