"""
Exception classes for the capability gateway.

Classification failures are raised as exceptions and surface to the caller
unchanged. Generation failures are described by ``ErrorKind`` values, which
the fallback router uses to decide whether another provider is worth trying.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Closed set of outcomes a failed generation attempt can have."""

    INVALID_CREDENTIALS = "invalid_credentials"
    TIMEOUT = "timeout"
    DNS_FAILURE = "dns_failure"
    CONNECTION_REFUSED = "connection_refused"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_OTHER = "upstream_other"


# Failures unrelated to the prompt itself; these justify trying the next provider.
FALLBACK_TRIGGERS = frozenset(
    {
        ErrorKind.INVALID_CREDENTIALS,
        ErrorKind.TIMEOUT,
        ErrorKind.DNS_FAILURE,
        ErrorKind.CONNECTION_REFUSED,
    }
)


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    kind = "gateway_error"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.metadata = metadata or {}

    def to_failure(self) -> Dict[str, Any]:
        """Structured failure record safe to hand to the UI layer."""
        return {"kind": self.kind, "detail": self.message}


class AuthError(GatewayError):
    """The credential exchange with the classification provider failed."""

    kind = "auth_error"


class UpstreamError(GatewayError):
    """A classification call returned an error."""

    kind = "upstream_error"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=status)
        self.status = status
        self.body = body

    def to_failure(self) -> Dict[str, Any]:
        failure = super().to_failure()
        failure["status"] = self.status
        return failure


class NormalizationError(GatewayError):
    """A 2xx generation response did not contain an image where expected."""

    kind = "normalization_error"


class ImageNotFoundError(GatewayError):
    """The requested catalog image does not exist."""

    kind = "image_not_found"


class InvalidImagePathError(GatewayError):
    """The requested file name escapes the image catalog directory."""

    kind = "invalid_path"
