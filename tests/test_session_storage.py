from __future__ import annotations

import json

from worklink.auth.models import User
from worklink.auth.storage import (
    FileStorage,
    MemoryStorage,
    clear_credentials,
    read_credentials,
    write_credentials,
)


def test_file_storage_round_trips_across_instances(tmp_path) -> None:
    path = tmp_path / "nested" / "session.json"
    s1 = FileStorage(str(path))
    s1.set("token", "abc")
    s1.set("user", json.dumps({"id": "u1"}))

    s2 = FileStorage(str(path))
    assert s2.get("token") == "abc"
    s2.remove("token")
    assert s1.get("token") is None
    assert s1.get("user") is not None
    assert not (tmp_path / "nested" / "session.json.tmp").exists()


def test_file_storage_tolerates_corrupt_file(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    s = FileStorage(str(path))
    assert s.get("token") is None
    s.set("token", "fresh")
    assert json.loads(path.read_text(encoding="utf-8")) == {"token": "fresh"}


def test_credentials_written_and_cleared_together() -> None:
    storage = MemoryStorage()
    user = User(id="u1", email="a@b.co", user_type="worker", profile_completed=True, extra={"phone": "9876543210"})

    write_credentials(storage, user, "tok")
    stored = json.loads(storage.get("user") or "{}")
    assert stored["userType"] == "worker"
    assert stored["phone"] == "9876543210"

    u, tok = read_credentials(storage)
    assert tok == "tok"
    assert u == user

    clear_credentials(storage)
    assert read_credentials(storage) == (None, None)


def test_corrupt_user_entry_reads_as_none() -> None:
    storage = MemoryStorage({"token": "tok", "user": "{broken"})
    user, token = read_credentials(storage)
    assert user is None
    assert token == "tok"
