"""Future-returning facade over the lookup and validation coordinators."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional, Sequence

from .config import IdentityServerConfig
from .lookup import LookupCoordinator
from .models import HashDetails, ThreePid, ValidationSession, identifiers_from
from .transport import IdentityServerApi
from .validation import ValidationCoordinator


class IdentityService:
    """
    Runs each operation on a worker thread and hands back a Future.

    A Future resolves exactly once, with either the result or the raised
    error. Cancelling it before it starts means no request is sent; a
    running request is left to the transport timeout.
    """

    def __init__(self, api, max_workers: int = 4):
        self.lookup = LookupCoordinator(api)
        self.validation = ValidationCoordinator(api)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="threepid"
        )

    @classmethod
    def from_config(cls, config: IdentityServerConfig, **kwargs) -> "IdentityService":
        api = IdentityServerApi(config.base_url, config.access_token, config.timeout)
        return cls(api, **kwargs)

    def fetch_hash_details(self) -> "Future[HashDetails]":
        return self._executor.submit(self.lookup.fetch_hash_details)

    def lookup_many(
        self,
        identifiers: Sequence[ThreePid],
        hash_details: Optional[HashDetails] = None,
    ) -> "Future[List[str]]":
        return self._executor.submit(self.lookup.lookup_many, list(identifiers), hash_details)

    def lookup_many_legacy(self, identifiers: Sequence[ThreePid]) -> "Future[List[str]]":
        return self._executor.submit(self.lookup.lookup_many_legacy, list(identifiers))

    def lookup_addresses(
        self, addresses: Sequence[str], mediums: Sequence[str]
    ) -> "Future[List[str]]":
        # Length mismatches raise here, before anything is queued.
        pids = identifiers_from(addresses, mediums)
        return self._executor.submit(self.lookup.lookup_many, pids)

    def lookup_addresses_legacy(
        self, addresses: Sequence[str], mediums: Sequence[str]
    ) -> "Future[List[str]]":
        pids = identifiers_from(addresses, mediums)
        return self._executor.submit(self.lookup.lookup_many_legacy, pids)

    def request_validation_token(
        self,
        pid: ThreePid,
        session: ValidationSession,
        next_link: Optional[str] = None,
    ) -> "Future[None]":
        # The session leaves UNSENT here, before the request is queued.
        payload = self.validation.begin_token_request(pid, session, next_link)
        return self._executor.submit(
            self.validation.complete_token_request, pid, session, payload
        )

    def submit_token(
        self, medium: str, token: str, client_secret: str, sid: str
    ) -> "Future[bool]":
        return self._executor.submit(
            self.validation.submit_token, medium, token, client_secret, sid
        )

    def submit_token_legacy(
        self, medium: str, token: str, client_secret: str, sid: str
    ) -> "Future[bool]":
        return self._executor.submit(
            self.validation.submit_token_legacy, medium, token, client_secret, sid
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "IdentityService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
