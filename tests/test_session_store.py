from __future__ import annotations

import json
import types
from unittest.mock import MagicMock

import pytest

from src.inbox_triage import session_blob
from src.inbox_triage.session_store import SessionStore, create_session_store


class _FakeBlobClient:
    def __init__(self) -> None:
        self._data: bytes | None = None
        self.fail_upload = False

    def download_blob(self):
        if self._data is None:
            raise self._ResourceNotFoundError()
        return types.SimpleNamespace(readall=lambda: self._data)

    def upload_blob(self, data: bytes, overwrite: bool):
        if self.fail_upload:
            raise RuntimeError("storage unavailable")
        if not overwrite and self._data is not None:
            raise Exception("Already exists")
        self._data = data

    def delete_blob(self):
        if self._data is None:
            raise self._ResourceNotFoundError()
        self._data = None

    class _ResourceNotFoundError(Exception):
        pass


@pytest.fixture()
def blob(monkeypatch):
    fake = _FakeBlobClient()

    monkeypatch.setattr(session_blob.BlobSessionStore, "_get_blob_client", lambda self: fake)
    monkeypatch.setattr(session_blob, "DefaultAzureCredential", MagicMock())
    monkeypatch.setattr(session_blob, "ResourceNotFoundError", _FakeBlobClient._ResourceNotFoundError)

    loc = session_blob.BlobSessionLocation(
        account_url="https://example.blob.core.windows.net",
        container_name="c",
        blob_name="b",
    )
    return session_blob.BlobSessionStore(loc), fake


def test_memory_store_lifecycle() -> None:
    store = SessionStore()
    assert store.get_user_id() is None
    assert store.is_logged_in() is False

    store.set_user_id("user-1")
    assert store.get_user_id() == "user-1"
    assert store.is_logged_in() is True

    store.clear()
    assert store.get_user_id() is None


def test_file_store_persists_between_instances(tmp_path) -> None:
    path = tmp_path / "session.json"

    SessionStore(path=path).set_user_id("user-1")
    assert json.loads(path.read_text()) == {"user_id": "user-1"}
    assert SessionStore(path=path).get_user_id() == "user-1"

    SessionStore(path=path).clear()
    assert not path.exists()
    assert SessionStore(path=path).get_user_id() is None


def test_file_store_with_invalid_content_has_no_user(tmp_path) -> None:
    path = tmp_path / "session.json"
    path.write_text("not json")

    assert SessionStore(path=path).get_user_id() is None


def test_blob_read_missing_returns_none(blob) -> None:
    store, _ = blob
    assert store.read_user_id() is None


def test_blob_write_overwrites_previous_user(blob) -> None:
    store, fake = blob
    store.write_user_id("user-1")
    store.write_user_id("user-2")

    assert json.loads(fake._data) == {"user_id": "user-2"}
    assert store.read_user_id() == "user-2"


def test_blob_delete_missing_is_ignored(blob) -> None:
    store, _ = blob
    store.delete()


def test_blob_write_failure_is_logged_not_raised(blob) -> None:
    blob_store, fake = blob
    fake.fail_upload = True
    store = SessionStore(blob_store=blob_store)

    store.set_user_id("user-1")

    assert store.get_user_id() == "user-1"
    assert SessionStore(blob_store=blob_store).get_user_id() is None


def test_blob_backed_session_store_round_trip(blob) -> None:
    blob_store, fake = blob
    store = SessionStore(blob_store=blob_store)

    store.set_user_id("user-1")
    assert SessionStore(blob_store=blob_store).get_user_id() == "user-1"

    store.clear()
    assert fake._data is None
    assert SessionStore(blob_store=blob_store).get_user_id() is None


def test_create_session_store_selects_backend(tmp_path) -> None:
    settings = MagicMock()
    settings.session_store_backend = "file"
    settings.session_file_path = str(tmp_path / "s.json")
    assert create_session_store(settings).path == tmp_path / "s.json"

    settings.session_store_backend = "azure_blob"
    settings.session_blob_account_url = ""
    settings.session_blob_container = None
    settings.session_blob_name = "b"
    fallback = create_session_store(settings)
    assert fallback.path is None
    assert fallback._blob_store is None

    settings.session_store_backend = "memory"
    assert create_session_store(settings).path is None
