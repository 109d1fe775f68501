from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


LEAP_DAY_FEB28 = "feb28"
LEAP_DAY_MAR1 = "mar1"
ALLOWED_LEAP_DAY_RULES = {LEAP_DAY_FEB28, LEAP_DAY_MAR1}

DEFAULT_TIMEZONE = "Europe/Warsaw"
DEFAULT_NOTIFY_TIME = "09:00"
DEFAULT_LANGUAGE = "ru"
DEFAULT_TONE = "friendly"
SUPPORTED_LANGUAGES = ("ru", "pl", "en")
SUPPORTED_TONES = ("formal", "friendly")


def normalize_code(value: str | None) -> str:
    return (value or "").strip().lower()


class DeliveryStatus(str, Enum):
    SENT = "Sent"
    FAILED = "Failed"


@dataclass(frozen=True)
class User:
    owner_key: str
    chat_id: int
    timezone_id: str = DEFAULT_TIMEZONE
    notify_local_time: str = DEFAULT_NOTIFY_TIME
    language: str = DEFAULT_LANGUAGE
    tone: str = DEFAULT_TONE
    auto_generate_greeting: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class Anniversary:
    anniversary_id: str
    owner_key: str
    name: str
    date: date
    timezone_id: str | None = None
    relation: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DeliveryLogEntry:
    owner_key: str
    anniversary_id: str
    sent_at: datetime
    local_date: date
    status: DeliveryStatus
    message_id: str | None = None
    error: str | None = None
    entry_id: str = ""
