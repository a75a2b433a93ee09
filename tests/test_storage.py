import json

from usage_dashboard.config import STORAGE_KEY
from usage_dashboard.storage import FileSessionStorage, MemorySessionStorage, PersistedSession


def test_file_storage_round_trip_under_single_key(tmp_path) -> None:
    path = tmp_path / "session" / "auth.json"
    storage = FileSessionStorage(path)

    assert storage.load() == PersistedSession()

    storage.save(PersistedSession(token="t1", user={"id": 1}))

    assert json.loads(path.read_text(encoding="utf-8")) == {STORAGE_KEY: {"token": "t1", "user": {"id": 1}}}
    assert FileSessionStorage(path).get_token() == "t1"

    storage.clear()
    assert storage.load() == PersistedSession()
    assert STORAGE_KEY not in json.loads(path.read_text(encoding="utf-8"))


def test_file_storage_ignores_unreadable_documents(tmp_path) -> None:
    path = tmp_path / "auth.json"
    path.write_text("{not json", encoding="utf-8")

    storage = FileSessionStorage(path)

    assert storage.load() == PersistedSession()
    storage.save(PersistedSession(token="t2"))
    assert storage.get_token() == "t2"


def test_persisted_session_drops_invalid_fields() -> None:
    assert PersistedSession.from_payload({"token": "", "user": "bob"}) == PersistedSession()
    assert PersistedSession.from_payload(None) == PersistedSession()


def test_memory_storage_clear() -> None:
    storage = MemorySessionStorage(PersistedSession(token="t1"))
    assert storage.get_token() == "t1"
    storage.clear()
    assert storage.get_token() is None
