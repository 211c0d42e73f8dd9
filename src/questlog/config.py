from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from questlog.gamification import DEFAULT_XP_PER_CHECK, FREEZE_MILESTONE_EVERY, PERFECT_DAY_BONUS


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    host: str
    port: int
    log_level: str
    rules_path: Path


@dataclass(frozen=True)
class GameRules:
    perfect_day_bonus: int = PERFECT_DAY_BONUS
    default_xp_per_check: int = DEFAULT_XP_PER_CHECK
    freeze_milestone_every: int = FREEZE_MILESTONE_EVERY


DEFAULT_RULES = GameRules()


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def load_rules(path: Path) -> GameRules:
    if not path.exists():
        return DEFAULT_RULES

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        return DEFAULT_RULES
    section = raw.get("rules", raw)
    if not isinstance(section, dict):
        return DEFAULT_RULES

    return GameRules(
        perfect_day_bonus=_positive_int(section.get("perfect_day_bonus"), PERFECT_DAY_BONUS),
        default_xp_per_check=_positive_int(section.get("default_xp_per_check"), DEFAULT_XP_PER_CHECK),
        freeze_milestone_every=_positive_int(section.get("freeze_milestone_every"), FREEZE_MILESTONE_EVERY),
    )


def load_settings(env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    port_raw = os.getenv("PORT", "4100")
    try:
        port = int(port_raw)
    except ValueError:
        port = 4100

    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/questlog.db")),
        tz=os.getenv("TZ", "UTC"),
        host=os.getenv("HOST", "127.0.0.1"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        rules_path=Path(os.getenv("RULES_PATH", "./questlog.yaml")),
    )
