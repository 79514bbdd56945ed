"""Identity server connection settings, loaded from .env / environment."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import InvalidArgument

DEFAULT_TIMEOUT = 12.0


@dataclass
class IdentityServerConfig:
    base_url: str
    access_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT


def load_config(
    base_url: Optional[str] = None,
    access_token: Optional[str] = None,
    timeout: Optional[float] = None,
) -> IdentityServerConfig:
    """Explicit arguments win over IDENTITY_SERVER_URL / IDENTITY_ACCESS_TOKEN /
    IDENTITY_SERVER_TIMEOUT."""
    load_dotenv()
    url = base_url or os.getenv("IDENTITY_SERVER_URL")
    if not url:
        raise InvalidArgument("No identity server configured (IDENTITY_SERVER_URL)")

    if timeout is None:
        raw = os.getenv("IDENTITY_SERVER_TIMEOUT")
        try:
            timeout = float(raw) if raw else DEFAULT_TIMEOUT
        except ValueError as e:
            raise InvalidArgument(f"IDENTITY_SERVER_TIMEOUT is not a number: {raw!r}") from e

    return IdentityServerConfig(
        base_url=url,
        access_token=access_token or os.getenv("IDENTITY_ACCESS_TOKEN") or None,
        timeout=timeout,
    )
