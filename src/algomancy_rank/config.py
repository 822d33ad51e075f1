"""Configuration file management for algomancy-rank.

Reads and writes ~/.algomancy-rank/config.json for settings that don't belong in the DB
(XP rate overrides, an alternate database path).
"""
from __future__ import annotations

import json
from dataclasses import fields, replace
from pathlib import Path

from algomancy_rank.xp import DEFAULT_RATES, XpRates

DEFAULT_CONFIG_PATH: Path = Path.home() / ".algomancy-rank" / "config.json"

RATE_NAMES: tuple[str, ...] = tuple(f.name for f in fields(XpRates))


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def get_xp_rates(config_path: Path | None = None) -> XpRates:
    """Return DEFAULT_RATES with any valid overrides from config applied.

    Unknown keys and non-integer values are ignored.
    """
    overrides = load_config(config_path).get("xp_rates")
    if not isinstance(overrides, dict):
        return DEFAULT_RATES
    valid = {
        name: value
        for name, value in overrides.items()
        if name in RATE_NAMES and isinstance(value, int) and not isinstance(value, bool)
    }
    return replace(DEFAULT_RATES, **valid)


def set_xp_rate(name: str, value: int, config_path: Path | None = None) -> None:
    """Persist one XP rate override. Raises ValueError for unknown rate names."""
    if name not in RATE_NAMES:
        raise ValueError(f"Unknown rate {name!r}. Must be one of: {', '.join(RATE_NAMES)}")
    config = load_config(config_path)
    rates = config.get("xp_rates")
    if not isinstance(rates, dict):
        rates = {}
    rates[name] = value
    config["xp_rates"] = rates
    save_config(config, config_path)


def get_db_path(config_path: Path | None = None) -> Path | None:
    """Return the configured database path, or None if not set."""
    raw = load_config(config_path).get("db_path")
    if raw:
        return Path(raw).expanduser()
    return None
