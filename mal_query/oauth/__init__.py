"""OAuth2 PKCE login for MyAnimeList.

Main Components:
    LoginFlow: Runs the browser login and stores the token
    LocalhostCallbackServer: Captures the authorization redirect
    generate_pkce_pair: PKCE verifier/challenge generation

Quick Start:
    from mal_query.config import load_config
    from mal_query.credentials import Credentials
    from mal_query.oauth import LoginFlow

    credentials = Credentials.load(load_config())
    await LoginFlow(credentials, on_status=print).run()
"""

from ..errors import LoginError
from .callback import (
    CallbackBindError,
    CallbackError,
    CallbackResult,
    CallbackTimeoutError,
    LocalhostCallbackServer,
)
from .flow import (
    LoginFlow,
    TokenExchangeError,
    TokenResponseError,
    build_authorization_url,
    exchange_code_for_token,
)
from .pkce import (
    PKCEPair,
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_pair,
    generate_state,
)

__all__ = [
    # Flow
    "LoginFlow",
    "LoginError",
    "TokenExchangeError",
    "TokenResponseError",
    "build_authorization_url",
    "exchange_code_for_token",
    # Callback
    "LocalhostCallbackServer",
    "CallbackResult",
    "CallbackError",
    "CallbackBindError",
    "CallbackTimeoutError",
    # PKCE
    "generate_pkce_pair",
    "generate_code_verifier",
    "generate_code_challenge",
    "generate_state",
    "PKCEPair",
]
