"""Configuration loading for mal-query.

Settings come from environment variables (optionally loaded from a .env
file). The MyAnimeList client id is never compiled in; it is resolved from,
in order:

1. An explicit argument
2. The MAL_CLIENT_ID environment variable
3. The OS keyring (service "mal-query", user "client-id")
4. A secret file (MAL_CLIENT_ID_FILE, default ~/.config/mal-query/client_id)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import keyring
from dotenv import load_dotenv
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

# Keyring entry holding the client id
KEYRING_SERVICE = "mal-query"
KEYRING_USERNAME = "client-id"

CONFIG_DIR = Path.home() / ".config" / "mal-query"
CACHE_DIR = Path.home() / ".cache" / "mal-query"

DEFAULT_CLIENT_ID_PATH = CONFIG_DIR / "client_id"
DEFAULT_TOKEN_PATH = CACHE_DIR / "token.txt"

# Loopback address registered as the app's redirect URL on MyAnimeList
DEFAULT_REDIRECT_HOST = "127.0.0.1"
DEFAULT_REDIRECT_PORT = 8080

DEFAULT_CALLBACK_TIMEOUT = 300.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

# Env file search paths in priority order
ENV_SEARCH_PATHS = [
    Path(".env"),
    CONFIG_DIR / ".env",
]


@dataclass
class Config:
    """Resolved mal-query settings."""

    client_id: str = ""
    token_path: Path = DEFAULT_TOKEN_PATH
    client_id_path: Path = DEFAULT_CLIENT_ID_PATH
    redirect_host: str = DEFAULT_REDIRECT_HOST
    redirect_port: int = DEFAULT_REDIRECT_PORT
    redirect_uri: str | None = None
    callback_timeout: float | None = DEFAULT_CALLBACK_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    env_path: Path | None = None


def find_env_file(explicit_path: Path | None = None) -> Path | None:
    """Find the .env file, checking project then user level."""
    if explicit_path:
        if explicit_path.exists():
            return explicit_path
        return None

    for path in ENV_SEARCH_PATHS:
        if path.exists():
            return path
    return None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_timeout(name: str, default: float | None) -> float | None:
    """Parse a timeout in seconds. "none" or "0" disables the timeout."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    if raw.lower() in ("none", "0"):
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


def read_client_id_file(path: Path) -> str:
    """Read a client id from a secret file. Missing file yields ""."""
    try:
        return path.read_text().strip()
    except FileNotFoundError:
        return ""
    except OSError as e:
        logger.warning(f"Could not read client id file {path}: {e}")
        return ""


def get_keyring_client_id() -> str:
    """Look up the client id in the OS keyring. Unavailable keyring yields ""."""
    try:
        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME) or ""
    except KeyringError as e:
        logger.debug(f"Keyring lookup for client id failed: {type(e).__name__}: {e}")
        return ""


def store_client_id(client_id: str) -> None:
    """Save the client id in the OS keyring.

    Raises:
        KeyringError: If no usable keyring backend is available
    """
    keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, client_id)
    logger.debug("Stored client id in keyring")


def resolve_client_id(explicit: str | None, client_id_path: Path) -> str:
    """Resolve the client id from argument, environment, keyring or file."""
    if explicit:
        return explicit.strip()

    from_env = os.environ.get("MAL_CLIENT_ID", "").strip()
    if from_env:
        return from_env

    from_keyring = get_keyring_client_id()
    if from_keyring:
        return from_keyring.strip()

    from_file = read_client_id_file(client_id_path)
    if not from_file:
        logger.debug("No MyAnimeList client id configured")
    return from_file


def load_config(
    env_path: Path | None = None,
    client_id: str | None = None,
) -> Config:
    """Load configuration from the environment.

    Args:
        env_path: Explicit path to a .env file (optional)
        client_id: Explicit client id, overriding every other source

    Returns:
        Resolved Config

    Raises:
        ValueError: If a numeric MAL_* variable is malformed
    """
    env_file = find_env_file(env_path)
    if env_file:
        load_dotenv(env_file)
        logger.debug(f"Loaded environment from {env_file}")

    client_id_path = Path(
        os.environ.get("MAL_CLIENT_ID_FILE") or DEFAULT_CLIENT_ID_PATH
    ).expanduser()
    token_path = Path(os.environ.get("MAL_TOKEN_FILE") or DEFAULT_TOKEN_PATH).expanduser()

    return Config(
        client_id=resolve_client_id(client_id, client_id_path),
        token_path=token_path,
        client_id_path=client_id_path,
        redirect_host=os.environ.get("MAL_REDIRECT_HOST") or DEFAULT_REDIRECT_HOST,
        redirect_port=_env_int("MAL_REDIRECT_PORT", DEFAULT_REDIRECT_PORT),
        redirect_uri=os.environ.get("MAL_REDIRECT_URI") or None,
        callback_timeout=_env_timeout("MAL_CALLBACK_TIMEOUT", DEFAULT_CALLBACK_TIMEOUT),
        request_timeout=_env_timeout("MAL_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
        or DEFAULT_REQUEST_TIMEOUT,
        env_path=env_file,
    )
