"""Error kinds raised by the storefront client core.

Handlers catch :class:`StorefrontError` and turn it into a user-facing reply;
nothing in the core retries on its own.
"""

from __future__ import annotations

from typing import Any


class StorefrontError(Exception):
    """Base class for every failure surfaced to a user action."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StorefrontError):
    """Local input check failed; the request never left the client."""


class AuthenticationError(StorefrontError):
    """The backend rejected (or required) the bearer credential."""


class DomainError(StorefrontError):
    """Business failure for the initiating action (empty cart, stock, ...)."""


class ApiError(DomainError):
    """Non-401 error status returned by the backend."""

    def __init__(self, status_code: int, message: str, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class MutationInProgress(DomainError):
    """Another mutation for the same cart item has not settled yet."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item {item_id} is already being updated")


class CartRefreshError(StorefrontError):
    """The mutation was applied, but fetching the updated cart failed.

    ``error`` is the failure of the fetch. The cart view still holds the
    snapshot from before the mutation.
    """

    def __init__(self, error: StorefrontError):
        self.error = error
        super().__init__(error.message)


class NetworkError(StorefrontError):
    """Timeout or connectivity failure; the session is left untouched."""

    def __init__(self, message: str, timeout: bool = False):
        self.timeout = timeout
        super().__init__(message)
