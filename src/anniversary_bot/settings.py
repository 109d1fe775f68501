from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from anniversary_bot.models import ALLOWED_LEAP_DAY_RULES, LEAP_DAY_FEB28
from anniversary_bot.scheduler import DEFAULT_CRON


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    reminder_cron: str
    leap_day_rule: str
    users_path: Path
    anniversaries_path: Path
    delivery_log_path: Path
    log_level: str = "INFO"


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _optional_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")

    leap_day_rule = _optional_env("LEAP_DAY_RULE", LEAP_DAY_FEB28).lower()
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise ValueError(f"LEAP_DAY_RULE must be one of {sorted(ALLOWED_LEAP_DAY_RULES)}")

    users_path = Path(os.getenv("USERS_PATH", root / "data" / "users.json"))
    anniversaries_path = Path(os.getenv("ANNIVERSARIES_PATH", root / "data" / "anniversaries.json"))
    delivery_log_path = Path(os.getenv("DELIVERY_LOG_PATH", root / "data" / "delivery_log.json"))

    return Settings(
        telegram_bot_token=token,
        reminder_cron=_optional_env("REMINDER_CRON", DEFAULT_CRON),
        leap_day_rule=leap_day_rule,
        users_path=users_path,
        anniversaries_path=anniversaries_path,
        delivery_log_path=delivery_log_path,
        log_level=_optional_env("LOG_LEVEL", "INFO").upper(),
    )
