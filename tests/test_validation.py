import pytest

from threepid.errors import InvalidArgument, InvalidState, ProtocolError, TransportError
from threepid.models import SessionState, ThreePid, ValidationSession
from threepid.validation import ValidationCoordinator, build_token_request

EMAIL = ThreePid("alice@matrix.org", "email")
PHONE = ThreePid("5551234567", "msisdn", "US")


def _session():
    return ValidationSession(client_secret="s3cret")


def test_email_token_request_stores_sid(make_api):
    api = make_api(sid="abc")
    session = _session()

    ValidationCoordinator(api).request_validation_token(EMAIL, session)

    assert session.state is SessionState.TOKEN_RECEIVED
    assert session.sid == "abc"
    assert api.calls == [
        (
            "request_token",
            ("email", {"email": "alice@matrix.org", "client_secret": "s3cret", "send_attempt": 1}),
        )
    ]


def test_phone_payload_includes_country_and_next_link():
    payload = build_token_request(PHONE, _session(), next_link="https://example.org/done")

    assert payload == {
        "phone_number": "5551234567",
        "country": "US",
        "client_secret": "s3cret",
        "send_attempt": 1,
        "next_link": "https://example.org/done",
    }


def test_failed_request_leaves_token_requested(make_api):
    api = make_api(errors={"request_token": TransportError("HTTP error: timeout")})
    session = _session()

    with pytest.raises(TransportError):
        ValidationCoordinator(api).request_validation_token(EMAIL, session)

    assert session.state is SessionState.TOKEN_REQUESTED
    assert session.sid is None


def test_retry_requires_new_send_attempt(make_api):
    api = make_api(errors={"request_token": ProtocolError("slow down", status=429)})
    coordinator = ValidationCoordinator(api)
    session = _session()

    with pytest.raises(ProtocolError):
        coordinator.request_validation_token(EMAIL, session)
    with pytest.raises(InvalidState):
        coordinator.request_validation_token(EMAIL, session)
    assert len(api.calls) == 1

    api.errors.clear()
    session.next_attempt()
    coordinator.request_validation_token(EMAIL, session)

    assert session.state is SessionState.TOKEN_RECEIVED
    assert api.calls[-1][1][1]["send_attempt"] == 2


def test_no_request_after_token_received(make_api):
    api = make_api()
    coordinator = ValidationCoordinator(api)
    session = _session()
    coordinator.request_validation_token(EMAIL, session)
    session.next_attempt()

    with pytest.raises(InvalidState):
        coordinator.request_validation_token(EMAIL, session)


@pytest.mark.parametrize(
    "pid",
    [
        ThreePid("not-an-email", "email"),
        ThreePid("5551234567", "msisdn"),
        ThreePid("alice@matrix.org", "fax"),
    ],
)
def test_invalid_token_request_stays_unsent(make_api, pid):
    api = make_api()
    session = _session()

    with pytest.raises(InvalidArgument):
        ValidationCoordinator(api).request_validation_token(pid, session)

    assert session.state is SessionState.UNSENT
    assert api.calls == []


def test_submit_token_uses_v2_when_available(make_api):
    api = make_api(v2_success=True)

    assert ValidationCoordinator(api).submit_token("email", "123456", "s3cret", "abc")
    assert api.call_names() == ["submit_token_v2"]


def test_submit_token_false_is_not_retried(make_api):
    api = make_api(v2_success=False)

    assert ValidationCoordinator(api).submit_token("email", "000000", "s3cret", "abc") is False
    assert api.call_names() == ["submit_token_v2"]


def test_submit_token_falls_back_once_on_404(make_api):
    api = make_api(v2_success=None, legacy_success=True)

    assert ValidationCoordinator(api).submit_token("msisdn", "123456", "s3cret", "abc")
    assert api.calls == [
        ("submit_token_v2", ("msisdn", "123456", "s3cret", "abc")),
        ("submit_token_legacy", ("msisdn", "123456", "s3cret", "abc")),
    ]


def test_legacy_error_is_not_retried(make_api):
    api = make_api(
        v2_success=None,
        errors={"submit_token_legacy": ProtocolError("Not found", status=404)},
    )

    with pytest.raises(ProtocolError):
        ValidationCoordinator(api).submit_token("email", "123456", "s3cret", "abc")
    assert api.call_names() == ["submit_token_v2", "submit_token_legacy"]


def test_v2_server_error_does_not_fall_back(make_api):
    api = make_api(errors={"submit_token_v2": ProtocolError("oops", status=500)})

    with pytest.raises(ProtocolError):
        ValidationCoordinator(api).submit_token("email", "123456", "s3cret", "abc")
    assert api.call_names() == ["submit_token_v2"]


def test_submit_token_legacy_skips_v2(make_api):
    api = make_api(v2_success=True)

    assert ValidationCoordinator(api).submit_token_legacy("email", "1", "s3cret", "abc")
    assert api.call_names() == ["submit_token_legacy"]


def test_submit_session_token_requires_received_state(make_api):
    api = make_api(v2_success=True)
    coordinator = ValidationCoordinator(api)
    session = _session()

    with pytest.raises(InvalidState):
        coordinator.submit_session_token(EMAIL, session, "123456")
    assert api.calls == []

    coordinator.request_validation_token(EMAIL, session)
    assert coordinator.submit_session_token(EMAIL, session, "123456")
    assert api.calls[-1] == ("submit_token_v2", ("email", "123456", "s3cret", "sid-1"))


def test_new_session_has_random_secret():
    a, b = ValidationSession.new(), ValidationSession.new()

    assert a.client_secret != b.client_secret
    assert a.state is SessionState.UNSENT
    assert a.send_attempt == 1
