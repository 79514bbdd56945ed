"""Resolve third-party identifiers to Matrix user ids."""

import logging
from typing import Dict, List, Optional, Sequence

from .errors import (
    IdentityServerV2Unavailable,
    InvalidArgument,
    UnsupportedHashAlgorithm,
)
from .hashing import SHA256, digest
from .models import MEDIA, EndpointMissing, HashDetails, ThreePid, identifiers_from

logger = logging.getLogger(__name__)

NOT_FOUND = ""


def _check_identifiers(identifiers: Optional[Sequence[ThreePid]]) -> List[ThreePid]:
    if identifiers is None:
        raise InvalidArgument("invalid params: identifiers are required")
    checked = list(identifiers)
    for i, pid in enumerate(checked):
        if not isinstance(pid, ThreePid):
            raise InvalidArgument(f"invalid params: item {i} is not a ThreePid")
        if not pid.address:
            raise InvalidArgument(f"invalid params: item {i} has no address")
        if pid.medium not in MEDIA:
            raise InvalidArgument(f"invalid params: unknown medium {pid.medium!r}")
    return checked


class LookupCoordinator:
    """Bulk lookups against the hashed (v2) and plaintext (v1) APIs."""

    def __init__(self, api):
        self.api = api

    def fetch_hash_details(self) -> HashDetails:
        """Fetch the current algorithms and pepper; never cached."""
        res = self.api.hash_details()
        if isinstance(res, EndpointMissing):
            raise IdentityServerV2Unavailable(res.endpoint)
        return res.value

    def lookup_many(
        self,
        identifiers: Sequence[ThreePid],
        hash_details: Optional[HashDetails] = None,
    ) -> List[str]:
        """
        Look up identifiers through the v2 hashed API.

        Returns one Matrix id per input, in input order, with "" for
        identifiers the server does not know. Raises
        IdentityServerV2Unavailable when the server has no v2 API; callers
        decide whether to use lookup_many_legacy instead.

        Empty addresses are rejected with InvalidArgument rather than sent
        and answered with "".
        """
        pids = _check_identifiers(identifiers)
        if not pids:
            return []

        details = hash_details or self.fetch_hash_details()
        if SHA256 not in details.algorithms:
            # "none" is deliberately not supported
            raise UnsupportedHashAlgorithm(
                f"sha256 is not supported (server offers {sorted(details.algorithms)})"
            )

        hashed = [digest(p.address, p.medium, details.pepper) for p in pids]

        res = self.api.lookup_hashed(hashed, SHA256, details.pepper)
        if isinstance(res, EndpointMissing):
            raise IdentityServerV2Unavailable(res.endpoint)
        mappings: Dict[str, str] = res.value

        # The pepper was fetched for this call, so a mismatch is not retried.
        results = [mappings.get(h) or NOT_FOUND for h in hashed]
        logger.debug("v2 lookup resolved %d of %d", sum(map(bool, results)), len(results))
        return results

    def lookup_many_legacy(self, identifiers: Sequence[ThreePid]) -> List[str]:
        """Look up identifiers in plaintext through the deprecated v1 API."""
        pids = _check_identifiers(identifiers)
        if not pids:
            return []

        rows = self.api.bulk_lookup([(p.medium, p.address) for p in pids])

        mxid_by_address: Dict[str, str] = {}
        for _medium, address, mxid in rows:
            mxid_by_address[address] = mxid  # last row wins

        results = [mxid_by_address.get(p.address, NOT_FOUND) for p in pids]
        logger.debug("v1 lookup resolved %d of %d", sum(map(bool, results)), len(results))
        return results

    def lookup_addresses(
        self,
        addresses: Sequence[str],
        mediums: Sequence[str],
        hash_details: Optional[HashDetails] = None,
    ) -> List[str]:
        """lookup_many over parallel address/medium sequences."""
        return self.lookup_many(identifiers_from(addresses, mediums), hash_details)

    def lookup_addresses_legacy(
        self, addresses: Sequence[str], mediums: Sequence[str]
    ) -> List[str]:
        return self.lookup_many_legacy(identifiers_from(addresses, mediums))
