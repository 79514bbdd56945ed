import json

import pytest
import requests

from threepid.models import Available, EndpointMissing, HashDetails


class FakeApi:
    """In-process stand-in for IdentityServerApi that records every call."""

    def __init__(
        self,
        details=None,
        mappings=None,
        rows=None,
        sid="sid-1",
        v2_success=None,
        legacy_success=True,
        errors=None,
        lookup_missing=False,
    ):
        self.details = details
        self.mappings = mappings or {}
        self.rows = rows or []
        self.sid = sid
        self.v2_success = v2_success
        self.legacy_success = legacy_success
        self.errors = errors or {}
        self.lookup_missing = lookup_missing
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]

    def call_names(self):
        return [name for name, _ in self.calls]

    def hash_details(self):
        self._record("hash_details")
        if self.details is None:
            return EndpointMissing("/_matrix/identity/v2/hash_details")
        return Available(self.details)

    def lookup_hashed(self, addresses, algorithm, pepper):
        self._record("lookup_hashed", list(addresses), algorithm, pepper)
        if self.lookup_missing:
            return EndpointMissing("/_matrix/identity/v2/lookup")
        return Available(self.mappings)

    def bulk_lookup(self, pairs):
        self._record("bulk_lookup", list(pairs))
        return self.rows

    def request_token(self, medium, payload):
        self._record("request_token", medium, payload)
        return self.sid

    def submit_token_v2(self, medium, token, client_secret, sid):
        self._record("submit_token_v2", medium, token, client_secret, sid)
        if self.v2_success is None:
            return EndpointMissing(f"/_matrix/identity/v2/validate/{medium}/submitToken")
        return Available(self.v2_success)

    def submit_token_legacy(self, medium, token, client_secret, sid):
        self._record("submit_token_legacy", medium, token, client_secret, sid)
        return self.legacy_success


@pytest.fixture
def pepper_details():
    return HashDetails(frozenset({"none", "sha256"}), "salt1")


@pytest.fixture
def make_api():
    return FakeApi


def make_response(status, body=None):
    r = requests.Response()
    r.status_code = status
    r._content = b"" if body is None else json.dumps(body).encode("utf-8")
    return r


class FakeSession:
    """Replays canned responses and records the requests made."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r
