"""Shared data models for identity server lookups and validation."""

import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Sequence

from .errors import InvalidArgument, InvalidState


class Medium(str, Enum):
    EMAIL = "email"
    MSISDN = "msisdn"


MEDIA = frozenset(m.value for m in Medium)


@dataclass(frozen=True)
class ThreePid:
    address: str
    medium: str  # "email" or "msisdn"
    country: Optional[str] = None  # two-letter code, phone numbers only


@dataclass(frozen=True)
class HashDetails:
    algorithms: FrozenSet[str]
    pepper: str


@dataclass(frozen=True)
class Available:
    value: Any


@dataclass(frozen=True)
class EndpointMissing:
    endpoint: str


def identifiers_from(
    addresses: Optional[Sequence[str]], mediums: Optional[Sequence[str]]
) -> List[ThreePid]:
    """Pair parallel address/medium sequences into ThreePid values."""
    if addresses is None or mediums is None:
        raise InvalidArgument("invalid params: addresses and mediums are required")
    if len(addresses) != len(mediums):
        raise InvalidArgument(
            f"invalid params: {len(addresses)} addresses for {len(mediums)} mediums"
        )
    return [ThreePid(a, m) for a, m in zip(addresses, mediums)]


# --------------------------
# Validation session
# --------------------------


class SessionState(str, Enum):
    UNSENT = "unsent"
    TOKEN_REQUESTED = "token_requested"
    TOKEN_RECEIVED = "token_received"


_VALID_TRANSITIONS = {
    SessionState.UNSENT: {SessionState.TOKEN_REQUESTED},
    SessionState.TOKEN_REQUESTED: {
        SessionState.TOKEN_REQUESTED,
        SessionState.TOKEN_RECEIVED,
    },
    SessionState.TOKEN_RECEIVED: set(),
}


@dataclass
class ValidationSession:
    """
    Client-side record of one ownership validation handshake.

    ``send_attempt`` is the counter sent with the next token request. Once a
    request has gone out, a retry must use a larger value (see next_attempt).
    """

    client_secret: str
    send_attempt: int = 1
    sid: Optional[str] = None
    state: SessionState = SessionState.UNSENT
    _last_attempt: Optional[int] = field(default=None, init=False, repr=False)

    @classmethod
    def new(cls, send_attempt: int = 1) -> "ValidationSession":
        return cls(client_secret=secrets.token_urlsafe(24), send_attempt=send_attempt)

    def next_attempt(self) -> int:
        self.send_attempt += 1
        return self.send_attempt

    def mark_token_requested(self) -> None:
        self._transition(SessionState.TOKEN_REQUESTED)
        if self._last_attempt is not None and self.send_attempt <= self._last_attempt:
            raise InvalidState(
                f"send_attempt {self.send_attempt} was already used; "
                "call next_attempt() before retrying"
            )
        self._last_attempt = self.send_attempt
        self.state = SessionState.TOKEN_REQUESTED

    def mark_token_received(self, sid: str) -> None:
        self._transition(SessionState.TOKEN_RECEIVED)
        self.sid = sid
        self.state = SessionState.TOKEN_RECEIVED

    def _transition(self, target: SessionState) -> None:
        if target not in _VALID_TRANSITIONS[self.state]:
            raise InvalidState(
                f"Cannot transition from '{self.state.value}' to '{target.value}'"
            )
