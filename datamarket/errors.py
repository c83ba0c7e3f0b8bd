"""
Typed marketplace failures.

Every rejected operation raises a subclass of ``MarketError``; each kind has a
stable numeric code so clients can match on it regardless of transport.
"""

from enum import Enum


class ErrorKind(str, Enum):
    OWNER_ONLY = "owner-only"
    NOT_FOUND = "not-found"
    INSUFFICIENT_FUNDS = "insufficient-funds"
    UNAUTHORIZED = "unauthorized"
    ALREADY_EXISTS = "already-exists"
    INVALID_PRICE = "invalid-price"
    UNAVAILABLE = "unavailable"


ERROR_CODES: dict[ErrorKind, int] = {
    ErrorKind.OWNER_ONLY: 100,
    ErrorKind.NOT_FOUND: 101,
    ErrorKind.INSUFFICIENT_FUNDS: 102,
    ErrorKind.UNAUTHORIZED: 103,
    ErrorKind.ALREADY_EXISTS: 104,
    ErrorKind.INVALID_PRICE: 105,
    ErrorKind.UNAVAILABLE: 106,
}


class MarketError(Exception):
    """Base exception for all marketplace rejections."""

    kind: ErrorKind

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind.value)

    @property
    def code(self) -> int:
        return ERROR_CODES[self.kind]


class OwnerOnly(MarketError):
    """Admin-only operation called by someone other than the administrator."""
    kind = ErrorKind.OWNER_ONLY


class NotFound(MarketError):
    """Referenced listing or purchase record does not exist."""
    kind = ErrorKind.NOT_FOUND


class InsufficientFunds(MarketError):
    """The transfer primitive declined a payment leg."""
    kind = ErrorKind.INSUFFICIENT_FUNDS


class Unauthorized(MarketError):
    """Caller does not own the resource, or access was never or is no longer granted."""
    kind = ErrorKind.UNAUTHORIZED


class AlreadyExists(MarketError):
    """The buyer already holds a purchase record for this listing."""
    kind = ErrorKind.ALREADY_EXISTS


class InvalidPrice(MarketError):
    """Non-positive price, or a fee rate above the cap."""
    kind = ErrorKind.INVALID_PRICE


class Unavailable(MarketError):
    """Listing is inactive."""
    kind = ErrorKind.UNAVAILABLE
