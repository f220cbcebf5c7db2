"""Exception hierarchy shared by the conversion and aggregation services."""
from __future__ import annotations


class LoyaltyError(RuntimeError):
    """Base exception for loyalty service errors."""


class InvalidRangeError(LoyaltyError, ValueError):
    """Raised when a custom reporting window ends before it starts."""


class ScopeError(LoyaltyError):
    """Raised when an actor requests a scope its role does not allow."""


class InvalidDescriptionError(LoyaltyError, ValueError):
    """Raised when a new purchase description carries no cement-type tag."""


class DataFetchError(LoyaltyError):
    """Raised when a required read against the record store fails.

    ``entity`` names the sub-query that failed (``users``, ``transactions`` or
    ``rewards``) so callers can tell which part of an aggregation broke.
    """

    def __init__(self, entity: str, detail: str | None = None) -> None:
        self.entity = entity
        self.detail = detail
        message = f"Failed to fetch {entity}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class QueryTimeoutError(LoyaltyError, TimeoutError):
    """Raised when a store query or a whole aggregation exceeds its time bound."""

    def __init__(self, entity: str, timeout: float | None) -> None:
        self.entity = entity
        self.timeout = timeout
        super().__init__(f"Timed out fetching {entity} after {timeout}s")


__all__ = [
    "DataFetchError",
    "InvalidDescriptionError",
    "InvalidRangeError",
    "LoyaltyError",
    "QueryTimeoutError",
    "ScopeError",
]
