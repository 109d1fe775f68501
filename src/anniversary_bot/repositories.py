from __future__ import annotations

import json
import os
import tempfile
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from anniversary_bot.models import Anniversary, DeliveryLogEntry, DeliveryStatus, User
from anniversary_bot.occurrence import validate_month_day

STORE_VERSION = 1
SENT_INDEX_RETENTION_DAYS = 3


class StoreError(RuntimeError):
    pass


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _bool_or_default(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default


def user_to_row(user: User) -> dict[str, Any]:
    return {
        "owner_key": user.owner_key,
        "chat_id": user.chat_id,
        "timezone_id": user.timezone_id,
        "notify_local_time": user.notify_local_time,
        "language": user.language,
        "tone": user.tone,
        "auto_generate_greeting": user.auto_generate_greeting,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def user_from_row(row: dict[str, Any]) -> User:
    defaults = User(owner_key="", chat_id=0)
    return User(
        owner_key=str(row["owner_key"]),
        chat_id=int(row["chat_id"]),
        timezone_id=str(row.get("timezone_id") or defaults.timezone_id),
        notify_local_time=str(row.get("notify_local_time") or defaults.notify_local_time),
        language=str(row.get("language") or defaults.language),
        tone=str(row.get("tone") or defaults.tone),
        auto_generate_greeting=_bool_or_default(row.get("auto_generate_greeting"), defaults.auto_generate_greeting),
        created_at=_parse_datetime(row.get("created_at")),
    )


def anniversary_to_row(anniversary: Anniversary) -> dict[str, Any]:
    return {
        "anniversary_id": anniversary.anniversary_id,
        "owner_key": anniversary.owner_key,
        "name": anniversary.name,
        "date": anniversary.date.isoformat(),
        "timezone_id": anniversary.timezone_id,
        "relation": anniversary.relation,
        "notes": anniversary.notes,
    }


def anniversary_from_row(row: dict[str, Any]) -> Anniversary:
    return Anniversary(
        anniversary_id=str(row["anniversary_id"]),
        owner_key=str(row["owner_key"]),
        name=str(row["name"]),
        date=date.fromisoformat(str(row["date"])),
        timezone_id=_optional_str(row.get("timezone_id")),
        relation=_optional_str(row.get("relation")),
        notes=_optional_str(row.get("notes")),
    )


def delivery_log_to_row(entry: DeliveryLogEntry) -> dict[str, Any]:
    return {
        "entry_id": entry.entry_id,
        "owner_key": entry.owner_key,
        "anniversary_id": entry.anniversary_id,
        "sent_at": entry.sent_at.isoformat(),
        "local_date": entry.local_date.isoformat(),
        "status": entry.status.value,
        "message_id": entry.message_id,
        "error": entry.error,
    }


def delivery_log_from_row(row: dict[str, Any]) -> DeliveryLogEntry:
    sent_at = _parse_datetime(row.get("sent_at"))
    if sent_at is None:
        raise StoreError("delivery log row is missing sent_at")
    return DeliveryLogEntry(
        entry_id=str(row.get("entry_id", "")),
        owner_key=str(row["owner_key"]),
        anniversary_id=str(row["anniversary_id"]),
        sent_at=sent_at,
        local_date=date.fromisoformat(str(row["local_date"])),
        status=DeliveryStatus(str(row["status"])),
        message_id=_optional_str(row.get("message_id")),
        error=_optional_str(row.get("error")),
    )


class JsonDocumentStore:
    """A list of rows kept in one JSON document, rewritten atomically on every change."""

    collection = "rows"

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._rows: list[dict[str, Any]] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load_rows(self) -> list[dict[str, Any]]:
        if self._rows is not None:
            return self._rows

        if not self._path.exists():
            self._rows = []
            return self._rows

        try:
            with self._path.open("r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read {self._path}: {exc}") from exc

        rows = data.get(self.collection, []) if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise StoreError(f"{self._path} has no '{self.collection}' list")

        self._rows = [row for row in rows if isinstance(row, dict)]
        return self._rows

    def _save_rows(self, rows: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": STORE_VERSION, self.collection: rows}

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            delete=False,
        ) as temp_file:
            json.dump(payload, temp_file, indent=2, ensure_ascii=False)
            temp_file.write("\n")
            temp_name = temp_file.name

        os.replace(temp_name, self._path)
        self._rows = rows


class UserStore(JsonDocumentStore):
    collection = "users"

    def list_all(self) -> list[User]:
        return [user_from_row(row) for row in self._load_rows()]

    def get_by_chat_id(self, chat_id: int) -> User | None:
        for row in self._load_rows():
            if row.get("chat_id") == chat_id:
                return user_from_row(row)
        return None

    def create(self, user: User) -> User:
        rows = self._load_rows()
        if any(row.get("chat_id") == user.chat_id for row in rows):
            raise ValueError(f"User with chat id {user.chat_id} already exists")

        if not user.owner_key:
            user = replace(user, owner_key=str(uuid.uuid4()))
        if user.created_at is None:
            user = replace(user, created_at=datetime.now(timezone.utc))

        self._save_rows([*rows, user_to_row(user)])
        return user

    def update(self, user: User) -> User:
        rows = self._load_rows()
        updated_rows: list[dict[str, Any]] = []
        found = False
        for row in rows:
            if row.get("owner_key") == user.owner_key:
                updated_rows.append(user_to_row(user))
                found = True
            else:
                updated_rows.append(row)

        if not found:
            raise KeyError(f"Unknown user: {user.owner_key}")

        self._save_rows(updated_rows)
        return user

    def ensure(self, chat_id: int) -> User:
        existing = self.get_by_chat_id(chat_id)
        if existing is not None:
            return existing
        return self.create(User(owner_key="", chat_id=chat_id))


class AnniversaryStore(JsonDocumentStore):
    collection = "anniversaries"

    def list_for_owner(self, owner_key: str) -> list[Anniversary]:
        items = [anniversary_from_row(row) for row in self._load_rows() if row.get("owner_key") == owner_key]
        items.sort(key=lambda item: (item.date.month, item.date.day))
        return items

    def get(self, anniversary_id: str, owner_key: str) -> Anniversary | None:
        for row in self._load_rows():
            if row.get("anniversary_id") == anniversary_id and row.get("owner_key") == owner_key:
                return anniversary_from_row(row)
        return None

    def find_by_name(self, owner_key: str, name: str) -> Anniversary | None:
        wanted = name.strip().lower()
        for row in self._load_rows():
            if row.get("owner_key") == owner_key and str(row.get("name", "")).strip().lower() == wanted:
                return anniversary_from_row(row)
        return None

    def create(
        self,
        *,
        owner_key: str,
        name: str,
        anniversary_date: date,
        timezone_id: str | None = None,
        relation: str | None = None,
        notes: str | None = None,
    ) -> Anniversary:
        cleaned_name = name.strip()
        if not cleaned_name:
            raise ValueError("anniversary name must not be empty")
        validate_month_day(anniversary_date.month, anniversary_date.day, allow_feb_29=True)

        anniversary = Anniversary(
            anniversary_id=str(uuid.uuid4()),
            owner_key=owner_key,
            name=cleaned_name,
            date=anniversary_date,
            timezone_id=_optional_str(timezone_id),
            relation=_optional_str(relation),
            notes=_optional_str(notes),
        )
        self._save_rows([*self._load_rows(), anniversary_to_row(anniversary)])
        return anniversary

    def update(self, anniversary: Anniversary) -> Anniversary:
        rows = self._load_rows()
        updated_rows: list[dict[str, Any]] = []
        found = False
        for row in rows:
            if (
                row.get("anniversary_id") == anniversary.anniversary_id
                and row.get("owner_key") == anniversary.owner_key
            ):
                updated_rows.append(anniversary_to_row(anniversary))
                found = True
            else:
                updated_rows.append(row)

        if not found:
            raise KeyError(f"Unknown anniversary: {anniversary.anniversary_id}")

        self._save_rows(updated_rows)
        return anniversary

    def delete(self, anniversary_id: str, owner_key: str) -> bool:
        rows = self._load_rows()
        retained = [
            row
            for row in rows
            if not (row.get("anniversary_id") == anniversary_id and row.get("owner_key") == owner_key)
        ]
        if len(retained) == len(rows):
            return False

        self._save_rows(retained)
        return True


class DeliveryLogStore(JsonDocumentStore):
    """Append-only delivery audit trail, also used to skip repeat sends.

    Successful sends are indexed by local date for a few days only; older
    dates are answered from the log itself.
    """

    collection = "delivery_logs"

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._sent_index: set[tuple[str, str, date]] | None = None
        self._index_cutoff: date | None = None

    @staticmethod
    def _row_sent_key(row: dict[str, Any]) -> tuple[str, str, date] | None:
        if row.get("status") != DeliveryStatus.SENT.value:
            return None
        try:
            local_date = date.fromisoformat(str(row.get("local_date")))
        except ValueError:
            return None
        return str(row.get("owner_key")), str(row.get("anniversary_id")), local_date

    def _index(self) -> set[tuple[str, str, date]]:
        if self._sent_index is None:
            index: set[tuple[str, str, date]] = set()
            for row in self._load_rows():
                key = self._row_sent_key(row)
                if key is None:
                    continue
                if self._index_cutoff is not None and key[2] < self._index_cutoff:
                    continue
                index.add(key)
            self._sent_index = index
        return self._sent_index

    def prune_sent_index(self, today: date, *, retention_days: int = SENT_INDEX_RETENTION_DAYS) -> None:
        cutoff = today - timedelta(days=retention_days)
        self._index_cutoff = cutoff
        if self._sent_index is not None:
            self._sent_index = {key for key in self._sent_index if key[2] >= cutoff}

    def create(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        if not entry.entry_id:
            entry = replace(entry, entry_id=str(uuid.uuid4()))

        index = self._index()
        self._save_rows([*self._load_rows(), delivery_log_to_row(entry)])
        if entry.status is DeliveryStatus.SENT and (
            self._index_cutoff is None or entry.local_date >= self._index_cutoff
        ):
            index.add((entry.owner_key, entry.anniversary_id, entry.local_date))
        return entry

    def list_for_owner(self, owner_key: str, take: int = 50) -> list[DeliveryLogEntry]:
        entries = [delivery_log_from_row(row) for row in self._load_rows() if row.get("owner_key") == owner_key]
        entries.sort(key=lambda entry: entry.sent_at, reverse=True)
        return entries[:take]

    def has_sent(self, owner_key: str, anniversary_id: str, local_date: date) -> bool:
        key = (owner_key, anniversary_id, local_date)
        if self._index_cutoff is None or local_date >= self._index_cutoff:
            return key in self._index()
        return any(self._row_sent_key(row) == key for row in self._load_rows())
