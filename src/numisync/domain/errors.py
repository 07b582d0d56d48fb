"""Error taxonomy shared by the catalog client, cache and record store."""

from __future__ import annotations


class NumisyncError(RuntimeError):
    """Base class for all numisync errors."""


class CatalogError(NumisyncError):
    """Raised when a catalog request fails."""


class AuthError(CatalogError):
    """The catalog rejected the API key (HTTP 401)."""


class QuotaExceeded(CatalogError):
    """The catalog rate limit or monthly quota was hit (HTTP 429)."""


class NotFoundError(CatalogError):
    """The requested catalog resource does not exist (HTTP 404)."""


class ServiceError(CatalogError):
    """The catalog answered with an unexpected HTTP status."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status


class NetworkError(CatalogError):
    """No response was received (connection failure or timeout)."""


class ClientError(CatalogError):
    """The request could not be sent at all."""


class ValidationError(NumisyncError):
    """Malformed local input, such as an unparseable year."""


class LockError(NumisyncError):
    """The cache lock file could not be created."""


class LockTimeoutError(LockError):
    """The cache lock could not be acquired before the timeout."""


class CorruptStateError(NumisyncError):
    """Cache or metadata contents could not be parsed.

    Always recovered locally to a safe default; used to give log records a type.
    """


class ProtectedFieldError(NumisyncError):
    """An update touched only primary-key or image foreign-key columns."""
