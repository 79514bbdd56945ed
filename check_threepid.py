#!/usr/bin/env python3
"""
check_threepid.py — Matrix identity server lookup and 3pid validation

Features
- Hashed (v2) bulk lookup of email addresses / phone numbers to Matrix ids
- Automatic use of the legacy plaintext (v1) lookup when v2 is missing
- Request and submit ownership validation tokens
- Clear CLI output

Environment (.env)
  IDENTITY_SERVER_URL=https://vector.im
  IDENTITY_ACCESS_TOKEN=...
  IDENTITY_SERVER_TIMEOUT=12

Usage
  # Lookup
  python check_threepid.py lookup alice@example.com bob@example.com
  python check_threepid.py lookup --medium msisdn 15551234567

  # Validation
  python check_threepid.py request-token alice@example.com
  python check_threepid.py submit-token TOKEN --sid SID --client-secret SECRET
"""

from __future__ import annotations

import logging
import socket
from typing import List, Optional, Tuple

import click

from threepid.config import load_config
from threepid.errors import IdentityError, IdentityServerV2Unavailable
from threepid.lookup import LookupCoordinator
from threepid.models import MEDIA, SessionState, ThreePid, ValidationSession, identifiers_from
from threepid.transport import IdentityServerApi
from threepid.validation import ValidationCoordinator

MEDIUM_CHOICE = click.Choice(sorted(MEDIA))


# --------------------------
# Decision logic
# --------------------------


def lookup_with_fallback(
    coordinator: LookupCoordinator,
    addresses: List[str],
    mediums: List[str],
    legacy: bool = False,
) -> Tuple[List[str], str]:
    """Return (matrix ids, api version used)."""
    if legacy:
        return coordinator.lookup_addresses_legacy(addresses, mediums), "v1"
    try:
        return coordinator.lookup_addresses(addresses, mediums), "v2"
    except IdentityServerV2Unavailable:
        return coordinator.lookup_addresses_legacy(addresses, mediums), "v1 (v2 unavailable)"


def print_lookup_results(pids: List[ThreePid], mxids: List[str], api: str) -> None:
    print("\n================ 3PID Lookup =================")
    print(f"🔌 API:             {api}")
    for pid, mxid in zip(pids, mxids):
        icon = "✅" if mxid else "❌"
        print(f"{icon} {pid.medium:7s} {pid.address:30s} → {mxid or 'not found'}")
    found = sum(1 for m in mxids if m)
    print(f"📊 Resolved:        {found}/{len(mxids)}")
    print("============================================\n")


# --------------------------
# CLI
# --------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--server", help="Identity server base URL (default: IDENTITY_SERVER_URL)")
@click.option("--access-token", help="Identity server access token for v2 calls")
@click.option("-v", "--verbose", is_flag=True, help="Log HTTP calls and fallbacks.")
@click.pass_context
def main(
    ctx: click.Context,
    server: Optional[str],
    access_token: Optional[str],
    verbose: bool,
) -> None:
    if verbose:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
        logging.getLogger("threepid").setLevel(logging.DEBUG)
        # urllib3 logs full request lines, query strings included
        logging.getLogger("urllib3").setLevel(logging.WARNING)
    try:
        config = load_config(server, access_token)
    except IdentityError as e:
        raise click.UsageError(str(e)) from e
    ctx.obj = IdentityServerApi(config.base_url, config.access_token, config.timeout)


@main.command()
@click.argument("addresses", nargs=-1, required=True)
@click.option("--medium", type=MEDIUM_CHOICE, default="email", show_default=True)
@click.option("--legacy", is_flag=True, help="Use the plaintext v1 lookup only.")
@click.pass_obj
def lookup(api: IdentityServerApi, addresses: Tuple[str, ...], medium: str, legacy: bool) -> None:
    """Resolve ADDRESSES to Matrix user ids."""
    mediums = [medium] * len(addresses)
    try:
        mxids, used = lookup_with_fallback(
            LookupCoordinator(api), list(addresses), mediums, legacy
        )
    except IdentityError as e:
        print(f"\n❌ Lookup failed: {e}")
        raise SystemExit(1)
    print_lookup_results(identifiers_from(addresses, mediums), mxids, used)


@main.command("request-token")
@click.argument("address")
@click.option("--medium", type=MEDIUM_CHOICE, default="email", show_default=True)
@click.option("--country", help="Two-letter country code (msisdn only)")
@click.option("--client-secret", help="Reuse an existing client secret")
@click.option("--send-attempt", type=int, default=1, show_default=True)
@click.option("--next-link", help="URL to redirect to after validation")
@click.pass_obj
def request_token(
    api: IdentityServerApi,
    address: str,
    medium: str,
    country: Optional[str],
    client_secret: Optional[str],
    send_attempt: int,
    next_link: Optional[str],
) -> None:
    """Ask the identity server to send a validation token to ADDRESS."""
    pid = ThreePid(address, medium, country)
    if client_secret:
        session = ValidationSession(client_secret=client_secret, send_attempt=send_attempt)
    else:
        session = ValidationSession.new(send_attempt=send_attempt)

    try:
        ValidationCoordinator(api).request_validation_token(pid, session, next_link)
    except IdentityError as e:
        print(f"\n❌ Token request failed: {e}")
        if session.state is not SessionState.UNSENT:
            print(f"   state: {session.state.value}, retry with --send-attempt {send_attempt + 1}")
        raise SystemExit(1)

    print("\n================ Token Requested =================")
    print(f"📧 {medium}:          {address}")
    print(f"🔑 Client secret:   {session.client_secret}")
    print(f"🆔 Session id:      {session.sid}")
    print(f"🔁 Send attempt:    {session.send_attempt}")
    print("============================================\n")


@main.command("submit-token")
@click.argument("token")
@click.option("--sid", required=True, help="Session id from request-token")
@click.option("--client-secret", required=True)
@click.option("--medium", type=MEDIUM_CHOICE, default="email", show_default=True)
@click.option("--legacy", is_flag=True, help="Use the v1 endpoint only.")
@click.pass_obj
def submit_token(
    api: IdentityServerApi,
    token: str,
    sid: str,
    client_secret: str,
    medium: str,
    legacy: bool,
) -> None:
    """Submit the TOKEN received out of band."""
    coordinator = ValidationCoordinator(api)
    submit = coordinator.submit_token_legacy if legacy else coordinator.submit_token
    try:
        ok = submit(medium, token, client_secret, sid)
    except IdentityError as e:
        print(f"\n❌ Token submission failed: {e}")
        raise SystemExit(1)

    if ok:
        print("\n✅ Validated: ownership confirmed")
    else:
        print("\n🚫 Not validated: token incorrect or expired")
        raise SystemExit(2)


if __name__ == "__main__":
    # Keep HTTP from hanging forever
    socket.setdefaulttimeout(15)
    main()
