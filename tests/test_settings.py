from pathlib import Path

import pytest

from anniversary_bot.settings import load_settings


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " token ")
    for name in ("REMINDER_CRON", "LEAP_DAY_RULE", "USERS_PATH", "ANNIVERSARIES_PATH", "DELIVERY_LOG_PATH", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.telegram_bot_token == "token"
    assert settings.reminder_cron == "* * * * *"
    assert settings.leap_day_rule == "feb28"
    assert settings.users_path == tmp_path / "data" / "users.json"
    assert settings.delivery_log_path == tmp_path / "data" / "delivery_log.json"
    assert settings.log_level == "INFO"


def test_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("REMINDER_CRON", "*/5 * * * *")
    monkeypatch.setenv("LEAP_DAY_RULE", "MAR1")
    monkeypatch.setenv("ANNIVERSARIES_PATH", str(tmp_path / "a.json"))

    settings = load_settings()

    assert settings.reminder_cron == "*/5 * * * *"
    assert settings.leap_day_rule == "mar1"
    assert settings.anniversaries_path == tmp_path / "a.json"


def test_missing_token_rejected(monkeypatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    with pytest.raises(ValueError):
        load_settings()


def test_invalid_leap_rule_rejected(monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("LEAP_DAY_RULE", "feb30")

    with pytest.raises(ValueError):
        load_settings()
