import json

import pytest
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from md2gslides import auth
from md2gslides.auth import SCOPES, UserAuthorizer

STORED = {
    "token": "access",
    "refresh_token": "refresh",
    "client_id": "client",
    "client_secret": "secret",
    "token_uri": "https://oauth2.googleapis.com/token",
}
# Token store entry that is still valid; nothing needs refreshing
STORED_UNEXPIRED = {**STORED, "expiry": "2999-01-01T00:00:00Z"}


def _store(path, **users):
    path.write_text(json.dumps(users), encoding="utf-8")
    return path


def test_token_store_directory_is_created(tmp_path):
    store = tmp_path / "nested" / "dir" / "credentials.json"
    UserAuthorizer(tmp_path / "client_id.json", store)

    assert store.parent.is_dir()


@pytest.fixture
def no_refresh(monkeypatch):
    def _refresh(self, request):
        raise AssertionError("unexpected token refresh")

    monkeypatch.setattr(Credentials, "refresh", _refresh)


def test_valid_stored_credentials_are_used(tmp_path, no_refresh):
    store = _store(tmp_path / "credentials.json", default=STORED_UNEXPIRED)
    credentials = UserAuthorizer(tmp_path / "client_id.json", store).get_user_credentials("default", SCOPES)

    assert credentials.token == "access"


def test_users_are_kept_apart(tmp_path, no_refresh):
    store = _store(tmp_path / "credentials.json", alice=STORED_UNEXPIRED)
    authorizer = UserAuthorizer(tmp_path / "client_id.json", store)

    assert authorizer.stored_credentials("alice", SCOPES) is not None
    assert authorizer.stored_credentials("bob", SCOPES) is None


def test_expired_credentials_are_refreshed_and_saved(tmp_path, monkeypatch):
    def _refresh(self, request):
        self.token = "fresh"

    monkeypatch.setattr(Credentials, "refresh", _refresh)
    store = _store(tmp_path / "credentials.json", default={**STORED, "token": None})

    credentials = UserAuthorizer(tmp_path / "client_id.json", store).stored_credentials("default", SCOPES)

    assert credentials.token == "fresh"
    assert json.loads(store.read_text())["default"]["token"] == "fresh"


def test_refresh_failure_requires_client_id(tmp_path, monkeypatch):
    def _refresh(self, request):
        raise RefreshError("revoked")

    monkeypatch.setattr(Credentials, "refresh", _refresh)
    store = _store(tmp_path / "credentials.json", default={**STORED, "token": None})
    authorizer = UserAuthorizer(tmp_path / "client_id.json", store)

    assert authorizer.stored_credentials("default", SCOPES) is None
    with pytest.raises(FileNotFoundError):
        authorizer.get_user_credentials("default", SCOPES)


def test_corrupt_store_is_ignored(tmp_path):
    store = tmp_path / "credentials.json"
    store.write_text("{not json", encoding="utf-8")

    assert UserAuthorizer(tmp_path / "client_id.json", store).stored_credentials("default", SCOPES) is None


def test_interactive_flow_result_is_saved(tmp_path, monkeypatch):
    client_id = tmp_path / "client_id.json"
    client_id.write_text("{}", encoding="utf-8")
    calls = []

    class FakeFlow:
        @classmethod
        def from_client_secrets_file(cls, path, scopes):
            calls.append((path, scopes))
            return cls()

        def run_local_server(self, port):
            return Credentials(**STORED)

    monkeypatch.setattr(auth, "InstalledAppFlow", FakeFlow)
    store = tmp_path / "credentials.json"

    credentials = UserAuthorizer(client_id, store).get_user_credentials("me", SCOPES)

    assert credentials.token == "access"
    assert calls == [(str(client_id), SCOPES)]
    assert json.loads(store.read_text())["me"]["refresh_token"] == "refresh"


def test_service_account_is_preferred(tmp_path, monkeypatch):
    key_file = tmp_path / "sa.json"
    sentinel = object()

    class FakeServiceAccount:
        @staticmethod
        def from_service_account_file(path, scopes):
            assert path == str(key_file)
            assert scopes == SCOPES
            return sentinel

    monkeypatch.setenv("GOOGLE_SLIDES_CREDENTIALS", str(key_file))
    monkeypatch.setattr(auth, "ServiceAccountCredentials", FakeServiceAccount)

    assert auth.get_credentials("default") is sentinel
