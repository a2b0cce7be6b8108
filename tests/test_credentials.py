"""Tests for the credential store."""

import stat
import sys
import threading
from pathlib import Path

import pytest

from mal_query.config import Config
from mal_query.credentials import (
    CLIENT_ID_HEADER,
    Credentials,
    read_token_file,
    write_token_file,
)
from mal_query.errors import AuthenticationRequiredError


class TestTokenFile:
    """Tests for token file persistence."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert read_token_file(tmp_path / "token.txt") == ""

    def test_write_then_read(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "token.txt"
        write_token_file(path, "abc")

        assert path.read_text() == "abc"
        assert read_token_file(path) == "abc"

    def test_overwrites_in_full(self, tmp_path: Path) -> None:
        path = tmp_path / "token.txt"
        write_token_file(path, "a-much-longer-token")
        write_token_file(path, "short")
        assert path.read_text() == "short"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path: Path) -> None:
        path = tmp_path / "token.txt"
        write_token_file(path, "abc")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


class TestCredentials:
    """Tests for Credentials."""

    def test_load_reads_token(self, token_path: Path) -> None:
        token_path.parent.mkdir(parents=True)
        token_path.write_text("persisted\n")
        config = Config(client_id="cid", token_path=token_path)

        credentials = Credentials.load(config)

        assert credentials.client_id == "cid"
        assert credentials.token == "persisted"
        assert credentials.is_authenticated()

    def test_load_without_token_file(self, token_path: Path) -> None:
        credentials = Credentials.load(Config(client_id="cid", token_path=token_path))
        assert credentials.token == ""
        assert not credentials.is_authenticated()

    def test_client_id_headers_when_anonymous(self, credentials: Credentials) -> None:
        assert credentials.auth_headers() == {CLIENT_ID_HEADER: "test-client-id"}

    def test_bearer_headers_when_authenticated(self, authed_credentials: Credentials) -> None:
        assert authed_credentials.auth_headers() == {"Authorization": "Bearer user-token"}

    def test_set_token_persists(self, credentials: Credentials, token_path: Path) -> None:
        credentials.set_token("new-token")

        assert credentials.token == "new-token"
        assert token_path.read_text() == "new-token"

    def test_set_token_without_persist(self, credentials: Credentials, token_path: Path) -> None:
        credentials.set_token("memory-only", persist=False)

        assert credentials.token == "memory-only"
        assert not token_path.exists()

    def test_clear(self, authed_credentials: Credentials, token_path: Path) -> None:
        authed_credentials.set_token("to-remove")

        assert authed_credentials.clear() is True
        assert authed_credentials.token == ""
        assert not token_path.exists()
        assert not token_path.with_name("token.txt.lock").exists()
        assert list(token_path.parent.iterdir()) == []

    def test_clear_when_logged_out(self, credentials: Credentials) -> None:
        assert credentials.clear() is False

    def test_require_token(self, authed_credentials: Credentials) -> None:
        assert authed_credentials.require_token() == "user-token"

    def test_require_token_anonymous(self, credentials: Credentials) -> None:
        with pytest.raises(AuthenticationRequiredError, match="not logged in"):
            credentials.require_token()

    def test_bearer_headers_require_token(self, credentials: Credentials) -> None:
        with pytest.raises(AuthenticationRequiredError):
            credentials.bearer_headers()

    def test_repr_hides_token(self, authed_credentials: Credentials) -> None:
        assert "user-token" not in repr(authed_credentials)
        assert "authenticated" in repr(authed_credentials)

    def test_concurrent_reads_and_writes(self, credentials: Credentials) -> None:
        """Readers only ever see a complete token."""
        tokens = {"", "token-a", "token-b"}
        seen: set[str] = set()

        def writer() -> None:
            for i in range(200):
                credentials.set_token("token-a" if i % 2 else "token-b", persist=False)

        def reader() -> None:
            for _ in range(200):
                seen.add(credentials.token)

        threads = [threading.Thread(target=writer)] + [
            threading.Thread(target=reader) for _ in range(3)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert seen <= tokens
