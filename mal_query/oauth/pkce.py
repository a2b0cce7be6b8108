"""PKCE helpers (RFC 7636) for the MyAnimeList login.

MyAnimeList only implements the ``plain`` method: the challenge placed in
the authorization URL is the verifier itself, and the verifier is sent
again with the token request. ``S256`` is still available for
completeness.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass


# RFC 7636 section 4.1 bounds on the verifier
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64

# "unreserved" characters from RFC 3986
VERIFIER_CHARS = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "-._~"
)

PLAIN = "plain"
S256 = "S256"
SUPPORTED_METHODS = (PLAIN, S256)


@dataclass
class PKCEPair:
    """A verifier, its challenge and the method that links them."""

    verifier: str
    challenge: str
    method: str = PLAIN


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Return a random verifier of ``length`` unreserved characters.

    Raises:
        ValueError: If length is not within 43-128
    """
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Verifier length must be between {MIN_VERIFIER_LENGTH} and "
            f"{MAX_VERIFIER_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(VERIFIER_CHARS) for _ in range(length))


def generate_code_challenge(verifier: str, method: str = PLAIN) -> str:
    """Derive the challenge sent in the authorization URL.

    Raises:
        ValueError: If the method is not plain or S256
    """
    if method == PLAIN:
        return verifier
    if method == S256:
        hashed = hashlib.sha256(verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(hashed).rstrip(b"=").decode("ascii")
    raise ValueError(
        f"Unsupported PKCE method {method!r}, expected one of {', '.join(SUPPORTED_METHODS)}"
    )


def generate_pkce_pair(method: str = PLAIN, length: int = DEFAULT_VERIFIER_LENGTH) -> PKCEPair:
    verifier = generate_code_verifier(length)
    return PKCEPair(verifier, generate_code_challenge(verifier, method), method)


def generate_state() -> str:
    """Random CSRF state, 32 hex characters."""
    return secrets.token_hex(16)
