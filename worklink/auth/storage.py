"""Durable key/value storage for the client session (the `token` / `user` entries)."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

from worklink.auth.adapters import user_from_record, user_to_record
from worklink.auth.models import User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class KeyValueStorage(Protocol):
    """String key/value store that survives restarts (browser localStorage equivalent)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


@dataclass
class MemoryStorage:
    """In-process storage; used in tests and for throwaway sessions."""

    data: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


@dataclass
class FileStorage:
    """Single JSON file holding every key; rewritten atomically on each change."""

    path: str

    def __post_init__(self) -> None:
        self.path = os.path.abspath(os.path.expanduser(self.path))
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        p = Path(self.path)
        if not p.exists():
            return {}
        try:
            data = json.loads(p.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            logger.warning("Unreadable session storage %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write_all(self, data: Dict[str, str]) -> None:
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_text(json.dumps(data, sort_keys=True, indent=2), encoding="utf-8")
        os.replace(tmp, p)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


def read_credentials(storage: KeyValueStorage) -> Tuple[Optional[User], Optional[str]]:
    """Return the durable (user, token) pair; a corrupt user entry reads as None."""
    token = (storage.get(TOKEN_KEY) or "").strip() or None
    raw_user = storage.get(USER_KEY)
    user: Optional[User] = None
    if raw_user:
        try:
            record = json.loads(raw_user)
            if isinstance(record, dict):
                user = user_from_record(record)
        except ValueError as e:
            logger.error("Error parsing stored user data: %s", e)
    return user, token


def write_user(storage: KeyValueStorage, user: User) -> None:
    storage.set(USER_KEY, json.dumps(user_to_record(user), sort_keys=True))


def write_credentials(storage: KeyValueStorage, user: User, token: str) -> None:
    # The token goes last: a stored token always has a stored user next to it.
    write_user(storage, user)
    storage.set(TOKEN_KEY, token)


def clear_credentials(storage: KeyValueStorage) -> None:
    storage.remove(TOKEN_KEY)
    storage.remove(USER_KEY)
