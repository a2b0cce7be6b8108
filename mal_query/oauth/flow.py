"""OAuth authorization code flow with PKCE for MyAnimeList.

LoginFlow.run() walks through the login:
1. Generate the PKCE pair and state
2. Start the loopback callback server
3. Show the authorization URL and open the browser
4. Wait for the redirect carrying the authorization code
5. Exchange the code (plus the original verifier) for an access token
6. Store and persist the token in the credential store
"""

import hmac
import logging
import webbrowser
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from ..credentials import Credentials
from ..errors import LoginError
from .callback import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_TIMEOUT, LocalhostCallbackServer
from .pkce import PLAIN, generate_pkce_pair, generate_state

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://myanimelist.net/v1/oauth2/authorize"
TOKEN_URL = "https://myanimelist.net/v1/oauth2/token"


class TokenExchangeError(LoginError):
    """The token request could not be completed."""

    pass


class TokenResponseError(LoginError):
    """The token endpoint answered without an access token.

    Attributes:
        body: Raw response body
    """

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


def build_authorization_url(
    client_id: str,
    code_challenge: str,
    state: str | None = None,
    method: str = PLAIN,
    redirect_uri: str | None = None,
) -> str:
    """Build the authorization URL the user opens in a browser.

    Args:
        client_id: The application's client id
        code_challenge: PKCE code challenge
        state: State parameter for CSRF protection
        method: PKCE challenge method
        redirect_uri: Only needed when several redirect URLs are registered

    Returns:
        Complete authorization URL
    """
    params: dict[str, str] = {
        "response_type": "code",
        "client_id": client_id,
        "code_challenge": code_challenge,
        "code_challenge_method": method,
    }
    if state:
        params["state"] = state
    if redirect_uri:
        params["redirect_uri"] = redirect_uri

    return f"{AUTHORIZE_URL}?{urlencode(params)}"


async def exchange_code_for_token(
    client_id: str,
    code: str,
    code_verifier: str,
    redirect_uri: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    token_url: str = TOKEN_URL,
) -> str:
    """Exchange an authorization code for an access token.

    Args:
        client_id: The application's client id
        code: Authorization code from the redirect
        code_verifier: The PKCE verifier the challenge was derived from
        redirect_uri: Sent only when it was sent in the authorization request
        http_client: Optional HTTP client

    Returns:
        The access token

    Raises:
        TokenExchangeError: On network failure
        TokenResponseError: If the response carries no access token
    """
    http = http_client or httpx.AsyncClient(timeout=30.0)
    should_close = http_client is None

    token_request: dict[str, str] = {
        "client_id": client_id,
        "code": code,
        "code_verifier": code_verifier,
        "grant_type": "authorization_code",
    }
    if redirect_uri:
        token_request["redirect_uri"] = redirect_uri

    try:
        response = await http.post(
            token_url,
            data=token_request,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except httpx.RequestError as e:
        raise TokenExchangeError(f"Network error during token exchange: {e}") from e
    finally:
        if should_close:
            await http.aclose()

    body = response.text
    try:
        data: Any = response.json()
    except ValueError:
        data = None

    access_token = data.get("access_token") if isinstance(data, dict) else None
    if not isinstance(access_token, str) or not access_token:
        detail = ""
        if isinstance(data, dict) and data.get("error"):
            detail = f": {data.get('error')} - {data.get('message') or data.get('hint') or ''}"
        raise TokenResponseError(
            f"Token endpoint returned no access token (HTTP {response.status_code}){detail}",
            body=body,
        )

    return access_token


class LoginFlow:
    """Runs the MyAnimeList login and stores the resulting token.

    Usage:
        flow = LoginFlow(credentials, on_status=print)
        await flow.run()
    """

    def __init__(
        self,
        credentials: Credentials,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        callback_timeout: float | None = DEFAULT_TIMEOUT,
        redirect_uri: str | None = None,
        open_browser: bool = True,
        on_status: Callable[[str], None] | None = None,
        http_client: httpx.AsyncClient | None = None,
        pkce_method: str = PLAIN,
    ):
        """Initialize the login flow.

        Args:
            credentials: Store that receives the token
            host: Address the callback server binds
            port: Port the callback server binds
            callback_timeout: Seconds to wait for the redirect; None waits forever
            redirect_uri: Redirect URL to send explicitly (optional)
            open_browser: Try to open the authorization URL in a browser
            on_status: Optional callback for status messages
            http_client: Optional HTTP client for the token request
            pkce_method: PKCE challenge method
        """
        self.credentials = credentials
        self.host = host
        self.port = port
        self.callback_timeout = callback_timeout
        self.redirect_uri = redirect_uri
        self.open_browser = open_browser
        self.on_status = on_status or (lambda msg: None)
        self.http_client = http_client
        self.pkce_method = pkce_method

    def _emit_status(self, message: str) -> None:
        logger.info(message)
        self.on_status(message)

    async def run(self) -> str:
        """Execute the login.

        Returns:
            The new access token (already stored in the credentials)

        Raises:
            LoginError: If no client id is configured or the state does not match
            CallbackBindError: If the callback address is in use
            CallbackTimeoutError: If no redirect arrives in time
            CallbackError: If a malformed redirect arrives
            TokenExchangeError: On network failure during the exchange
            TokenResponseError: If no access token is returned
        """
        client_id = self.credentials.client_id
        if not client_id:
            raise LoginError(
                "No MyAnimeList client id configured. Set MAL_CLIENT_ID or run "
                "'malq set-client-id'."
            )

        pkce = generate_pkce_pair(self.pkce_method)
        state = generate_state()

        async with LocalhostCallbackServer(
            host=self.host,
            port=self.port,
            timeout=self.callback_timeout,
        ) as callback_server:
            auth_url = build_authorization_url(
                client_id,
                pkce.challenge,
                state,
                pkce.method,
                self.redirect_uri,
            )

            self._emit_status(f"Please visit: {auth_url}")
            self._emit_status(f"Waiting for redirect on {callback_server.redirect_uri}")

            if self.open_browser and not webbrowser.open(auth_url):
                logger.debug("Could not open a browser")

            result = await callback_server.wait_for_callback()

        # MyAnimeList echoes state back; only compare when it does
        if result.state is not None and not hmac.compare_digest(result.state, state):
            raise LoginError("State mismatch in callback - possible CSRF attack")

        self._emit_status("Exchanging code for token...")
        token = await exchange_code_for_token(
            client_id,
            result.code or "",
            pkce.verifier,
            self.redirect_uri,
            http_client=self.http_client,
        )

        self.credentials.set_token(token)
        self._emit_status("Successfully logged in!")
        return token
