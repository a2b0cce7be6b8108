"""Loopback HTTP listener that captures the OAuth authorization redirect.

MyAnimeList redirects the browser to the redirect URL registered for the
application, so the listener binds one fixed address (127.0.0.1:8080 by
default) instead of an ephemeral port. It:
- Fails immediately if the address is taken (for example by another login)
- Reads each connection independently and drops ones that stay silent
- Handles complete requests one at a time, in arrival order
- Answers every request so the browser never hangs
- Completes on the first request whose query contains ``code``
- Fails only on an HTTP request whose target cannot be parsed
- Gives up after a timeout
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from urllib.parse import parse_qs, urlsplit

from ..errors import LoginError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

# Default timeout for waiting for the redirect
DEFAULT_TIMEOUT = 300  # seconds

# Per-line read limit for one connection to the listener
REQUEST_READ_TIMEOUT = 10.0  # seconds


class CallbackError(LoginError):
    """The redirect could not be captured."""

    pass


class CallbackBindError(CallbackError):
    """The listener could not bind its address."""

    pass


class CallbackTimeoutError(CallbackError):
    """No redirect with an authorization code arrived in time."""

    pass


@dataclass
class CallbackResult:
    """Query parameters of a redirect request.

    Attributes:
        code: The authorization code, if present
        state: The state parameter echoed by the provider, if present
        error: OAuth error code, if the provider reported one
        error_description: Human-readable error description
    """

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def has_code(self) -> bool:
        return self.code is not None


# Both pages share one stylesheet; only the accent colour and text differ
PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<meta charset="utf-8">
<title>malq: {heading}</title>
<style>
  html, body {{ height: 100%; margin: 0; }}
  body {{ display: grid; place-items: center; background: {accent}; font: 16px system-ui, sans-serif; }}
  main {{ background: #fff; border-radius: 10px; padding: 2.5em 3.5em; max-width: 28em; text-align: center; }}
  h1 {{ font-size: 1.4em; margin: 0 0 .5em; }}
  p {{ color: #444; margin: .5em 0 0; }}
  code {{ color: {accent}; }}
</style>
<main>
  <h1>{heading}</h1>
  <p>{message}</p>
  {detail}
</main>
</html>"""

MAL_BLUE = "#2e51a2"
FAILURE_RED = "#b03a2e"


def render_page(heading: str, message: str, accent: str = MAL_BLUE, detail: str = "") -> str:
    """Fill the page template. Callers escape any text taken from the request."""
    return PAGE_TEMPLATE.format(heading=heading, message=message, accent=accent, detail=detail)


SUCCESS_PAGE = render_page(
    "Authorization received",
    "Return to the terminal; this tab can be closed.",
)


def parse_callback_target(target: str) -> CallbackResult:
    """Parse the query parameters of a request target.

    Args:
        target: Request target from the request line, e.g. "/?code=abc"

    Returns:
        CallbackResult with the first value of each known parameter

    Raises:
        CallbackError: If the target is not an origin-form or absolute URL
    """
    if not target.startswith(("/", "http://", "https://")):
        raise CallbackError(f"Malformed callback request target: {target!r}")

    try:
        params = parse_qs(urlsplit(target).query, keep_blank_values=True)
    except ValueError as e:
        raise CallbackError(f"Malformed callback URL {target!r}: {e}") from e

    def get_param(name: str) -> str | None:
        values = params.get(name, [])
        return values[0] if values else None

    return CallbackResult(
        code=get_param("code"),
        state=get_param("state"),
        error=get_param("error"),
        error_description=get_param("error_description"),
    )


class LocalhostCallbackServer:
    """Fixed-address HTTP listener for the OAuth redirect.

    Usage:
        async with LocalhostCallbackServer() as server:
            # Send the user to the authorization URL
            result = await server.wait_for_callback()
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        """Initialize callback server.

        Args:
            host: Loopback address to bind
            port: Port to bind (0 lets the OS pick one)
            timeout: Seconds to wait for the redirect; None waits forever
        """
        self.host = host
        self.port = port
        self.timeout = timeout

        self._server: asyncio.Server | None = None
        self._result: CallbackResult | None = None
        self._failure: CallbackError | None = None
        self._done: asyncio.Event | None = None
        self._lock: asyncio.Lock | None = None
        self._clients: set[asyncio.StreamWriter] = set()

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def start(self) -> str:
        """Bind the listener.

        Returns:
            The redirect URI the listener answers on

        Raises:
            CallbackBindError: If the address cannot be bound
        """
        self._done = asyncio.Event()
        self._lock = asyncio.Lock()
        self._result = None
        self._failure = None

        try:
            self._server = await asyncio.start_server(
                self._handle_connection, self.host, self.port
            )
        except OSError as e:
            raise CallbackBindError(
                f"Could not listen on {self.host}:{self.port}: {e}. "
                f"Is another login already running?"
            ) from e

        sockets = self._server.sockets
        if not sockets:
            await self.stop()
            raise CallbackBindError("Failed to start callback server: no sockets created")

        self.port = sockets[0].getsockname()[1]
        logger.debug(f"Callback server listening on {self.redirect_uri}")
        return self.redirect_uri

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            # Idle connections would otherwise keep wait_closed() blocked
            for client in list(self._clients):
                client.close()
            await self._server.wait_closed()
            self._server = None
            logger.debug("Callback server stopped")

    async def wait_for_callback(self) -> CallbackResult:
        """Wait for a redirect that carries an authorization code.

        Returns:
            CallbackResult whose ``code`` is set

        Raises:
            CallbackTimeoutError: If the timeout expires first
            CallbackError: If a malformed request arrives
        """
        if self._done is None:
            raise CallbackError("Server not started")

        try:
            await asyncio.wait_for(self._done.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CallbackTimeoutError(
                f"Authorization timed out after {self.timeout} seconds"
            ) from None

        if self._failure is not None:
            raise self._failure
        if self._result is None:
            raise CallbackError("No callback result received")

        return self._result

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        assert self._lock is not None
        self._clients.add(writer)
        try:
            # Reading happens outside the lock so an idle connection cannot
            # hold up the redirect that follows it
            request_line = await self._read_request(reader, writer)
            if request_line is not None:
                async with self._lock:
                    await self._handle_request(request_line, writer)
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.debug(f"Callback connection dropped: {e}")
        finally:
            self._clients.discard(writer)
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def _read_request(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> bytes | None:
        """Read the request line and drain the headers.

        Returns:
            The request line, or None if the connection should just be closed
        """
        try:
            request_line = await asyncio.wait_for(reader.readline(), REQUEST_READ_TIMEOUT)
            if not request_line.strip():
                # Speculative browser connections close without sending anything
                return None

            # The body is never needed
            line = await asyncio.wait_for(reader.readline(), REQUEST_READ_TIMEOUT)
            while line not in (b"\r\n", b"\n", b""):
                line = await asyncio.wait_for(reader.readline(), REQUEST_READ_TIMEOUT)
        except asyncio.TimeoutError:
            logger.debug("Closing idle callback connection")
            return None
        except (ValueError, asyncio.LimitOverrunError) as e:
            # readline() reports a line longer than the stream limit as ValueError
            logger.debug(f"Rejecting oversized callback request: {e}")
            await self._respond(writer, HTTPStatus.BAD_REQUEST, "Request too large")
            return None

        return request_line

    async def _handle_request(self, request_line: bytes, writer: asyncio.StreamWriter) -> None:
        if self._done is not None and self._done.is_set():
            await self._respond(writer, HTTPStatus.GONE, "Login already completed")
            return

        text = request_line.decode("utf-8", errors="replace").strip()
        parts = text.split(" ")
        if len(parts) != 3 or not parts[2].startswith("HTTP/"):
            # Not HTTP at all (e.g. a TLS handshake on the plain-text port)
            logger.debug(f"Ignoring non-HTTP request line: {text[:80]!r}")
            await self._respond(writer, HTTPStatus.BAD_REQUEST, "Malformed request")
            return

        target = parts[1]
        try:
            result = parse_callback_target(target)
        except CallbackError as e:
            logger.warning(str(e))
            await self._respond(writer, HTTPStatus.BAD_REQUEST, "Malformed request")
            self._finish(failure=e)
            return

        if result.has_code():
            await self._respond(writer, HTTPStatus.OK, SUCCESS_PAGE, html_page=True)
            self._finish(result=result)
            return

        if result.error:
            description = result.error_description or "no description"
            logger.warning(f"MyAnimeList refused authorization: {result.error} ({description})")
            # Request text is escaped before it reaches the page
            page = render_page(
                "Authorization failed",
                "MyAnimeList did not grant access. Run the login again to retry.",
                accent=FAILURE_RED,
                detail=f"<p><code>{html.escape(result.error)}: {html.escape(description)}</code></p>",
            )
            await self._respond(writer, HTTPStatus.OK, page, html_page=True)
            return

        logger.debug(f"Ignoring callback request without code: {target}")
        await self._respond(writer, HTTPStatus.NOT_FOUND, "Waiting for MyAnimeList authorization")

    def _finish(
        self,
        result: CallbackResult | None = None,
        failure: CallbackError | None = None,
    ) -> None:
        self._result = result
        self._failure = failure
        if self._done:
            self._done.set()

    async def _respond(
        self,
        writer: asyncio.StreamWriter,
        status: HTTPStatus,
        text: str,
        html_page: bool = False,
    ) -> None:
        """Write a complete HTTP/1.1 response and flush it.

        HTML pages carry headers that stop them being framed or sniffed.
        """
        payload = text.encode("utf-8")
        header_lines = [
            f"HTTP/1.1 {status.value} {status.phrase}",
            f"Content-Type: text/{'html' if html_page else 'plain'}; charset=utf-8",
            f"Content-Length: {len(payload)}",
        ]
        if html_page:
            header_lines += [
                "X-Content-Type-Options: nosniff",
                "X-Frame-Options: DENY",
                "Content-Security-Policy: default-src 'none'; style-src 'unsafe-inline'",
            ]
        header_lines.append("Connection: close")

        writer.write(("\r\n".join(header_lines) + "\r\n\r\n").encode("ascii") + payload)
        await writer.drain()

    async def __aenter__(self) -> "LocalhostCallbackServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
