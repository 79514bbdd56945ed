"""Matrix identity server HTTP client."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import requests

from .errors import ProtocolError, TransportError
from .models import Available, EndpointMissing, HashDetails

logger = logging.getLogger(__name__)

V1_PREFIX = "/_matrix/identity/api/v1"
V2_PREFIX = "/_matrix/identity/v2"

Probe = Union[Available, EndpointMissing]


class IdentityServerApi:
    """
    Thin wrapper over the identity server REST endpoints.

    Endpoints that may be missing on older servers (hash_details, v2 lookup,
    v2 submitToken) return Available/EndpointMissing instead of raising on 404.
    Every other failure raises ProtocolError or TransportError.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 12,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    # --------------------------
    # Lookup
    # --------------------------

    def hash_details(self) -> Probe:
        res = self._probe("GET", f"{V2_PREFIX}/hash_details")
        if isinstance(res, EndpointMissing):
            return res
        data = res.value
        algorithms = data.get("algorithms")
        pepper = data.get("lookup_pepper")
        if not isinstance(algorithms, list) or not isinstance(pepper, str):
            raise ProtocolError("Malformed hash_details response")
        return Available(HashDetails(frozenset(algorithms), pepper))

    def lookup_hashed(
        self, addresses: Sequence[str], algorithm: str, pepper: str
    ) -> Probe:
        res = self._probe(
            "POST",
            f"{V2_PREFIX}/lookup",
            json={"addresses": list(addresses), "algorithm": algorithm, "pepper": pepper},
        )
        if isinstance(res, EndpointMissing):
            return res
        mappings = res.value.get("mappings") or {}
        if not isinstance(mappings, dict):
            raise ProtocolError("Malformed lookup response")
        return Available(mappings)

    def bulk_lookup(
        self, pairs: Sequence[Tuple[str, str]]
    ) -> List[Tuple[str, str, str]]:
        data = self._call(
            "POST",
            f"{V1_PREFIX}/bulk_lookup",
            json={"threepids": [[medium, address] for medium, address in pairs]},
        )
        rows = data.get("threepids") or []
        triples: List[Tuple[str, str, str]] = []
        for row in rows:
            # [medium, address, mxid]
            if not isinstance(row, list) or len(row) < 3:
                raise ProtocolError("Malformed bulk_lookup response")
            triples.append((row[0], row[1], row[2]))
        return triples

    # --------------------------
    # Ownership validation
    # --------------------------

    def request_token(self, medium: str, payload: Dict[str, Any]) -> str:
        data = self._call(
            "POST", f"{V2_PREFIX}/validate/{medium}/requestToken", json=payload
        )
        sid = data.get("sid")
        if not isinstance(sid, str) or not sid:
            raise ProtocolError("Malformed requestToken response: no sid")
        return sid

    def submit_token_v2(
        self, medium: str, token: str, client_secret: str, sid: str
    ) -> Probe:
        res = self._probe(
            "POST",
            f"{V2_PREFIX}/validate/{medium}/submitToken",
            json={"client_secret": client_secret, "sid": sid, "token": token},
        )
        if isinstance(res, EndpointMissing):
            return res
        return Available(bool(res.value.get("success", False)))

    def submit_token_legacy(
        self, medium: str, token: str, client_secret: str, sid: str
    ) -> bool:
        data = self._call(
            "POST",
            f"{V1_PREFIX}/validate/{medium}/submitToken",
            params={"token": token, "client_secret": client_secret, "sid": sid},
        )
        return bool(data.get("success", False))

    # --------------------------
    # Plumbing
    # --------------------------

    def _probe(self, method: str, path: str, **kwargs: Any) -> Probe:
        r = self._send(method, path, **kwargs)
        if r.status_code == 404:
            logger.debug("%s %s -> 404", method, path)
            return EndpointMissing(path)
        return Available(self._decode(r))

    def _call(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self._decode(self._send(method, path, **kwargs))

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        headers = {}
        if self.access_token and path.startswith(V2_PREFIX):
            headers["Authorization"] = f"Bearer {self.access_token}"
        logger.debug("%s %s", method, path)
        try:
            return self.session.request(
                method,
                self.base_url + path,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportError(f"HTTP error: {e}") from e

    @staticmethod
    def _decode(r: requests.Response) -> Dict[str, Any]:
        try:
            data = r.json()
        except ValueError:
            data = None

        if not r.ok:
            errcode = error = None
            if isinstance(data, dict):
                errcode = data.get("errcode")
                error = data.get("error")
            raise ProtocolError(
                error or f"HTTP {r.status_code}", status=r.status_code, errcode=errcode
            )
        if not isinstance(data, dict):
            raise ProtocolError("Response body is not a JSON object", status=r.status_code)
        return data
