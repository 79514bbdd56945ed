"""Errors raised by the identity server client."""

from typing import Optional


class IdentityError(Exception):
    """Base class for every identity server client failure."""


class InvalidArgument(IdentityError, ValueError):
    """Malformed caller input, detected before any request is sent."""


class InvalidState(IdentityError):
    """A validation session was asked for a transition it cannot make."""


class HashingUnavailable(IdentityError):
    """The local SHA-256 primitive could not be initialised."""


class UnsupportedHashAlgorithm(IdentityError):
    """The identity server does not offer sha256 lookups."""


class EndpointUnavailable(IdentityError):
    """The server answered 404 for a versioned endpoint."""

    def __init__(self, endpoint: str, message: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(message or f"Endpoint not available: {endpoint}")


class IdentityServerV2Unavailable(EndpointUnavailable):
    """The identity server does not implement the v2 lookup API."""

    def __init__(self, endpoint: str):
        super().__init__(endpoint, "Identity server v2 API is not available")


class ProtocolError(IdentityError):
    """Any other error reported by the server."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errcode: Optional[str] = None,
    ):
        self.status = status
        self.errcode = errcode
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.errcode:
            parts.append(f"errcode={self.errcode}")
        if self.status is not None:
            parts.append(f"status={self.status}")
        return " ".join(parts)


class TransportError(IdentityError):
    """The request never produced an HTTP response."""
