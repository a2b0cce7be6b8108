"""Credential store: the client id and the user's bearer token.

A Credentials object is an explicit handle passed to MalClient and
LoginFlow. It holds one token string (empty means unauthenticated) and an
immutable client id. The token is loaded once from a plaintext file and
rewritten in full whenever a login stores a new one.

In-memory reads and writes are serialized by a threading.Lock that is only
held for the copy/replace, never across I/O or network calls. The token
file is written under an advisory file lock with 0600 permissions.
"""

import logging
import stat
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from .config import Config
from .errors import AuthenticationRequiredError

logger = logging.getLogger(__name__)

# Header used for unauthenticated (client id only) requests
CLIENT_ID_HEADER = "X-MAL-CLIENT-ID"

def _lock_path(filepath: Path) -> Path:
    return filepath.with_suffix(filepath.suffix + ".lock")


# File locking support
if sys.platform != "win32":
    import fcntl

    @contextmanager
    def _file_lock(filepath: Path, exclusive: bool = True) -> Generator[None, None, None]:
        """Acquire a file lock (Unix implementation using fcntl).

        Args:
            filepath: Path to the file to lock
            exclusive: If True, acquire exclusive lock; otherwise shared lock
        """
        lock_path = _lock_path(filepath)
        lock_path.touch(exist_ok=True)

        with open(lock_path, "r") as lock_file:
            try:
                if exclusive:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                else:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_SH)
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
else:
    import msvcrt

    @contextmanager
    def _file_lock(filepath: Path, exclusive: bool = True) -> Generator[None, None, None]:
        """Acquire a file lock (Windows implementation using msvcrt).

        msvcrt has no shared locks, so readers also lock exclusively.
        """
        lock_path = _lock_path(filepath)
        lock_path.touch(exist_ok=True)

        with open(lock_path, "r+") as lock_file:
            try:
                msvcrt.locking(lock_file.fileno(), msvcrt.LK_LOCK, 1)
                yield
            finally:
                try:
                    msvcrt.locking(lock_file.fileno(), msvcrt.LK_UNLCK, 1)
                except OSError:
                    pass


def read_token_file(path: Path) -> str:
    """Read a persisted token.

    A missing or unreadable file means "logged out" and yields "".
    """
    if not path.exists():
        logger.debug(f"No token file at {path}")
        return ""

    try:
        with _file_lock(path, exclusive=False):
            return path.read_text().strip()
    except OSError as e:
        logger.warning(f"Could not read token file {path}: {e}")
        return ""


def write_token_file(path: Path, token: str) -> None:
    """Write the token file in full with owner-only permissions.

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with _file_lock(path, exclusive=True):
        path.write_text(token)
        try:
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except OSError as e:
            logger.warning(f"Could not set token file permissions: {e}")


class Credentials:
    """Client id plus a mutable bearer token.

    Usage:
        credentials = Credentials.load(load_config())
        headers = credentials.auth_headers()
    """

    def __init__(self, client_id: str, token: str = "", token_path: Path | None = None):
        """Initialize credentials.

        Args:
            client_id: MyAnimeList API client id
            token: Initial bearer token ("" for unauthenticated)
            token_path: File the token is persisted to (None disables persistence)
        """
        self._client_id = client_id
        self._token = token
        self.token_path = token_path
        self._lock = threading.Lock()

    @classmethod
    def load(cls, config: Config) -> "Credentials":
        """Create credentials from config, reading the persisted token."""
        token = read_token_file(config.token_path)
        if token:
            logger.debug("Loaded persisted user token")
        return cls(config.client_id, token, config.token_path)

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def token(self) -> str:
        """Current token ("" when unauthenticated)."""
        with self._lock:
            return self._token

    def is_authenticated(self) -> bool:
        return bool(self.token)

    def set_token(self, token: str, persist: bool = True) -> None:
        """Replace the token and optionally persist it.

        Args:
            token: New bearer token
            persist: Write it to token_path as well

        Raises:
            OSError: If persisting fails (the in-memory token is still set)
        """
        with self._lock:
            self._token = token

        if persist and self.token_path is not None:
            write_token_file(self.token_path, token)
            logger.debug(f"Persisted token to {self.token_path}")

    def clear(self, persist: bool = True) -> bool:
        """Forget the token.

        Args:
            persist: Also delete the token file

        Returns:
            True if a token was loaded or a token file existed
        """
        with self._lock:
            had_token = bool(self._token)
            self._token = ""

        removed = False
        if persist and self.token_path is not None and self.token_path.exists():
            with _file_lock(self.token_path, exclusive=True):
                self.token_path.unlink()
            # Nothing else uses the lock file once the token is gone
            _lock_path(self.token_path).unlink(missing_ok=True)
            removed = True
            logger.info("Removed stored token")

        return had_token or removed

    def require_token(self) -> str:
        """Return the token, or raise if unauthenticated.

        Raises:
            AuthenticationRequiredError: If no token is loaded
        """
        token = self.token
        if not token:
            raise AuthenticationRequiredError(
                "User is not logged in. Run 'malq login' first."
            )
        return token

    def auth_headers(self) -> dict[str, str]:
        """Headers for a request: bearer token if present, else client id."""
        token = self.token
        if token:
            # Always "Bearer" (capital B) per RFC 6750
            return {"Authorization": f"Bearer {token}"}
        return {CLIENT_ID_HEADER: self._client_id}

    def bearer_headers(self) -> dict[str, str]:
        """Headers for a write request.

        Raises:
            AuthenticationRequiredError: If no token is loaded
        """
        return {"Authorization": f"Bearer {self.require_token()}"}

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated() else "anonymous"
        return f"{self.__class__.__name__}({state}, token_path={self.token_path})"
