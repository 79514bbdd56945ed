"""Peppered SHA-256 hashing of third-party identifiers for v2 lookups."""

import base64
import hashlib

from .errors import HashingUnavailable

SHA256 = "sha256"


def _sha256():
    try:
        return hashlib.new(SHA256)
    except ValueError as e:
        raise HashingUnavailable(f"sha256 unavailable: {e}") from e


def digest(identifier: str, medium: str, pepper: str) -> str:
    """
    Hash "<lowercased identifier> <medium> <pepper>" with SHA-256.

    The result is unpadded URL-safe base64, the form the identity server
    stores in its lookup table.
    """
    h = _sha256()
    h.update(f"{identifier.lower()} {medium} {pepper}".encode("utf-8"))
    return base64.urlsafe_b64encode(h.digest()).decode("ascii").rstrip("=")
