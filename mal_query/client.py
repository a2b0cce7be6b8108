"""HTTP transport for the MyAnimeList v2 API.

MalClient sends one request per call, attaching whatever the credential
store holds at that moment (bearer token, or the client id header when no
one is logged in), and decodes the JSON body into the data model.
Nothing is retried.
"""

import logging
from typing import Any

import httpx

from .credentials import Credentials
from .errors import RequestFailedError, SchemaError, TransportError
from .models import AnimeData, AnimeSearch
from .normalize import ItemNormalizer, decode_listing, normalize_search_item

logger = logging.getLogger(__name__)

API_BASE = "https://api.myanimelist.net/v2"

DEFAULT_TIMEOUT = 30.0  # seconds


class MalClient:
    """Async client for the MyAnimeList API.

    Owns its httpx.AsyncClient unless one is passed in, in which case the
    caller is responsible for closing it.

    Usage:
        async with MalClient(credentials) as client:
            payload = await client.get_json("/anime/6594?fields=num_episodes,")
    """

    def __init__(
        self,
        credentials: Credentials,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = API_BASE,
    ):
        """Initialize the client.

        Args:
            credentials: Credential store consulted on every request
            http_client: Optional HTTP client to use
            timeout: Request timeout in seconds (ignored for an injected client)
            base_url: API origin that relative URLs are resolved against
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._should_close = http_client is None

    def _resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if not url.startswith("/"):
            url = "/" + url
        return f"{self.base_url}{url}"

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request and enforce a 2xx status.

        Raises:
            TransportError: On network failure
            RequestFailedError: On a non-2xx status
        """
        full_url = self._resolve(url)
        logger.debug(f"{method} {full_url}")

        try:
            response = await self._http.request(method, full_url, headers=headers, data=data)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout during {method} {full_url}: {e}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error during {method} {full_url}: {e}") from e

        if not response.is_success:
            logger.debug(f"{method} {full_url} returned HTTP {response.status_code}")
            raise RequestFailedError(response.status_code, response.text)

        return response

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SchemaError(f"Response was not valid JSON: {e}") from e

    async def get_json(self, url: str) -> Any:
        """GET a URL and return the parsed JSON body.

        Args:
            url: Path relative to the API base (e.g. "/anime/1?fields=")
                or an absolute URL

        Raises:
            TransportError: On network failure
            RequestFailedError: On a non-2xx status
            SchemaError: If the body is not JSON
        """
        response = await self._send("GET", url, self.credentials.auth_headers())
        return self._parse_json(response)

    async def get_anime(self, url: str) -> AnimeData:
        """GET a single-anime URL and decode it."""
        payload = await self.get_json(url)
        if not isinstance(payload, dict):
            raise SchemaError("Anime response was not a JSON object")
        return AnimeData.from_dict(payload)

    async def get_search(
        self,
        url: str,
        normalize: ItemNormalizer = normalize_search_item,
    ) -> AnimeSearch:
        """GET a listing URL and decode it with the given item normalizer."""
        payload = await self.get_json(url)
        return decode_listing(payload, normalize)

    async def put_form(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """PUT form-encoded data as the logged-in user.

        Raises:
            AuthenticationRequiredError: If no token is loaded (nothing is sent)
        """
        headers = self.credentials.bearer_headers()
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        response = await self._send("PUT", url, headers, data=data)

        result = self._parse_json(response)
        if not isinstance(result, dict):
            raise SchemaError("Update response was not a JSON object")
        return result

    async def delete(self, url: str) -> None:
        """DELETE a resource as the logged-in user.

        Raises:
            AuthenticationRequiredError: If no token is loaded (nothing is sent)
        """
        await self._send("DELETE", url, self.credentials.bearer_headers())

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._should_close:
            await self._http.aclose()

    async def __aenter__(self) -> "MalClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
