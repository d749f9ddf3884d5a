"""Authenticated async HTTP transport for the Kits API.

WHY: Every API call needs the same base URL, bearer token, user agent and
timeout policy, and every failure needs to reach the user as one of a small
set of typed errors rather than an httpx traceback. Keeping that in one
place means the submitter, poller and client never touch httpx directly.

HOW: KitsTransport wraps httpx.AsyncClient and is an async context manager
(enter to open the connection pool, exit to close it). request() issues a
single call, returns a RawResponse on 2xx, and maps everything else onto
kits_cli.api.errors.

RULES:
- Use as: async with KitsTransport(credentials) as transport: ...
- The credential is read once, at construction
- Default timeout 300s; uploads pass UPLOAD_TIMEOUT_S (600s)
- No retries at this layer
- Non-2xx → APIServerError with the body's "message" or "error" field
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import httpx

from kits_cli import __version__
from kits_cli.api.errors import (
    APIServerError,
    APITimeoutError,
    ConnectionRefusedAPIError,
    HostUnresolvedError,
    MissingCredentialError,
    NoResponseError,
    TransportError,
)
from kits_cli.config import (
    CONNECT_TIMEOUT_S,
    KITS_BASE_URL,
    METADATA_TIMEOUT_S,
    CredentialSource,
)

logger = logging.getLogger(__name__)

USER_AGENT = f"kits-cli/{__version__}"

T = TypeVar("T")

# Substrings the OS resolver puts in name-resolution failures
_UNRESOLVED_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)


@dataclass
class RawResponse:
    """A successful (2xx) response: status code and parsed JSON body."""

    status_code: int
    data: Any

    def parse(self, parser: Callable[[Any], T], what: str) -> T:
        """Build a model from the body, or raise APIServerError.

        A 2xx body that does not have the expected shape is a vendor fault,
        reported like any other server error instead of a raw traceback.
        """
        try:
            return parser(self.data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Could not parse %s response: %r", what, self.data)
            raise APIServerError(
                self.status_code, f"Unexpected {what} response ({exc})"
            ) from exc


class KitsTransport:
    """Async transport for the Kits API.

    WHY: Provides authenticated request/response semantics with a closed
    failure taxonomy so higher layers can decide what to retry or translate.

    HOW: Builds an httpx.AsyncClient on __aenter__. ``transport`` is passed
    through to httpx so tests can plug in httpx.MockTransport.

    RULES:
    - Raises MissingCredentialError at construction if no key is configured
    - base_url defaults to KITS_BASE_URL from config
    """

    def __init__(
        self,
        credentials: CredentialSource,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        token = credentials.get_credential()
        if not token:
            raise MissingCredentialError()
        self._token = token
        self._base_url = (base_url or KITS_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> KitsTransport:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._token}",
                "User-Agent": USER_AGENT,
            },
            timeout=httpx.Timeout(METADATA_TIMEOUT_S, connect=CONNECT_TIMEOUT_S),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """The open httpx client; RuntimeError outside ``async with``."""
        if self._client is None:
            raise RuntimeError(
                "KitsTransport must be used as an async context manager: "
                "async with KitsTransport(credentials) as transport: ..."
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        data: Optional[dict] = None,
        files: Any = None,
        timeout: Optional[float] = None,
    ) -> RawResponse:
        """Perform one authenticated call and return the parsed 2xx body.

        Args:
            method: HTTP method, e.g. "GET" or "POST".
            path: Route relative to the base URL, e.g. "/tts/abc".
            params: Query parameters.
            json: JSON-serializable body.
            data: Form fields (sent multipart when ``files`` is given).
            files: httpx-style multipart parts.
            timeout: Per-call budget in seconds; defaults to 300s.

        Returns:
            RawResponse with the status code and decoded JSON (or None
            for an empty body).

        Raises:
            APITimeoutError, ConnectionRefusedAPIError, HostUnresolvedError,
            NoResponseError, APIServerError.
        """
        client = self._ensure_client()
        logger.debug("Making %s request to: %s", method.upper(), path)

        kwargs: dict = {}
        if params is not None:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout, connect=CONNECT_TIMEOUT_S)

        try:
            resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise classify_transport_error(exc) from exc

        if not 200 <= resp.status_code < 300:
            raise APIServerError(resp.status_code, _error_message(resp))

        return RawResponse(status_code=resp.status_code, data=_decode_body(resp))


def classify_transport_error(exc: httpx.HTTPError) -> TransportError:
    """Map an httpx exception onto the transport error taxonomy.

    RULES:
    - TimeoutException (connect/read/write/pool) → APITimeoutError
    - ConnectError from DNS failure → HostUnresolvedError
    - Any other ConnectError → ConnectionRefusedAPIError
    - Everything else (dropped connection, protocol error) → NoResponseError
    """
    if isinstance(exc, httpx.TimeoutException):
        return APITimeoutError(
            "Request timed out. The server took too long to respond. This might "
            "be due to a large file upload or server load. Please try again."
        )
    if isinstance(exc, httpx.ConnectError):
        if _is_resolution_failure(exc):
            return HostUnresolvedError(
                "Could not resolve host. Please check your internet connection."
            )
        return ConnectionRefusedAPIError(
            "Connection refused. Please check your internet connection and try again."
        )
    return NoResponseError(
        "No response received from server. Please check your internet "
        "connection and try again. ({})".format(exc)
    )


def _is_resolution_failure(exc: BaseException) -> bool:
    """Walk the exception chain looking for a resolver error."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        text = str(current).lower()
        if any(marker in text for marker in _UNRESOLVED_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(resp: httpx.Response) -> str:
    """Extract the vendor's error message from a non-2xx response."""
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return "Unknown error"
