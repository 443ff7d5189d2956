"""HTTP gateway to the commerce backend.

One gateway per shopper, usually over an ``httpx.AsyncClient`` shared by all
of them. Every request carries the bearer token held by the shopper's session
store, and every 401 response is turned into a *session invalidated* event
before the caller sees the failure.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx

from storefront.constants import REQUEST_TIMEOUT
from storefront.errors import ApiError, AuthenticationError, NetworkError

logger = logging.getLogger(__name__)

SessionListener = Callable[[], Awaitable[None]]


class TokenSource(Protocol):
    @property
    def token(self) -> Optional[str]: ...


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}", None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error") or payload.get("title")
        if message:
            return str(message), payload
    return response.reason_phrase or f"HTTP {response.status_code}", payload


def make_http_client(
    base_url: str,
    timeout: float = REQUEST_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers={"Content-Type": "application/json"},
        transport=transport,
    )


class HttpGateway:
    def __init__(
        self,
        base_url: str,
        tokens: TokenSource,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._tokens = tokens
        self._listeners: List[SessionListener] = []
        # a client passed in is shared with other gateways and closed by its owner
        self._owns_client = client is None
        self._client = client or make_http_client(base_url, timeout, transport)

    def subscribe(self, listener: SessionListener) -> None:
        """Register a coroutine called whenever the backend rejects the session."""
        self._listeners.append(listener)

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Dispatch one request and return the decoded JSON body.

        Raises:
            AuthenticationError: on 401, after listeners were notified
            ApiError: on any other error status
            NetworkError: on timeout or connectivity failure
        """
        headers = {}
        token = self._tokens.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", method, path, e)
            raise NetworkError("The server took too long to respond", timeout=True) from e
        except httpx.RequestError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise NetworkError(f"Cannot reach the server: {e}") from e

        if response.status_code == 401:
            logger.info("%s %s rejected the session", method, path)
            await self._invalidate_session()
            message, _ = _error_message(response)
            raise AuthenticationError(message)

        if response.is_error:
            message, payload = _error_message(response)
            raise ApiError(response.status_code, message, payload)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _invalidate_session(self) -> None:
        for listener in list(self._listeners):
            await listener()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
