"""Ownership validation of email addresses and phone numbers."""

import logging
from typing import Any, Dict, Optional

from email_validator import EmailNotValidError, validate_email

from .errors import InvalidArgument, InvalidState
from .models import EndpointMissing, Medium, SessionState, ThreePid, ValidationSession

logger = logging.getLogger(__name__)


def build_token_request(
    pid: ThreePid, session: ValidationSession, next_link: Optional[str] = None
) -> Dict[str, Any]:
    """Build the medium-specific requestToken body."""
    if pid.medium == Medium.EMAIL.value:
        try:
            validate_email(pid.address, check_deliverability=False)
        except EmailNotValidError as e:
            raise InvalidArgument(f"Syntax error: {e}") from e
        payload: Dict[str, Any] = {"email": pid.address}
    elif pid.medium == Medium.MSISDN.value:
        if not pid.address or not pid.country:
            raise InvalidArgument("A phone number and its country code are required")
        payload = {"phone_number": pid.address, "country": pid.country}
    else:
        raise InvalidArgument(f"Unsupported medium: {pid.medium!r}")

    payload["client_secret"] = session.client_secret
    payload["send_attempt"] = session.send_attempt
    if next_link:
        payload["next_link"] = next_link
    return payload


class ValidationCoordinator:
    """Drives requestToken / submitToken against the identity server."""

    def __init__(self, api):
        self.api = api

    def request_validation_token(
        self,
        pid: ThreePid,
        session: ValidationSession,
        next_link: Optional[str] = None,
    ) -> None:
        """
        Ask the server to send a validation token to ``pid``.

        The session moves to TOKEN_REQUESTED before the request is sent and
        stays there if it fails; on success it stores the sid and moves to
        TOKEN_RECEIVED.
        """
        payload = self.begin_token_request(pid, session, next_link)
        self.complete_token_request(pid, session, payload)

    def begin_token_request(
        self,
        pid: ThreePid,
        session: ValidationSession,
        next_link: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate input and move the session to TOKEN_REQUESTED. No I/O."""
        payload = build_token_request(pid, session, next_link)
        session.mark_token_requested()
        return payload

    def complete_token_request(
        self, pid: ThreePid, session: ValidationSession, payload: Dict[str, Any]
    ) -> None:
        logger.debug(
            "Requesting %s validation token, attempt %d", pid.medium, session.send_attempt
        )
        sid = self.api.request_token(pid.medium, payload)
        session.mark_token_received(sid)

    def submit_token(self, medium: str, token: str, client_secret: str, sid: str) -> bool:
        """Submit a token through v2, falling back once to v1 on 404."""
        res = self.api.submit_token_v2(medium, token, client_secret, sid)
        if isinstance(res, EndpointMissing):
            logger.info("%s not available, using legacy submitToken", res.endpoint)
            return self.submit_token_legacy(medium, token, client_secret, sid)
        return res.value

    def submit_token_legacy(
        self, medium: str, token: str, client_secret: str, sid: str
    ) -> bool:
        return self.api.submit_token_legacy(medium, token, client_secret, sid)

    def submit_session_token(
        self, pid: ThreePid, session: ValidationSession, token: str
    ) -> bool:
        if session.state is not SessionState.TOKEN_RECEIVED or not session.sid:
            raise InvalidState(
                f"Cannot submit a token from state '{session.state.value}'"
            )
        return self.submit_token(pid.medium, token, session.client_secret, session.sid)
