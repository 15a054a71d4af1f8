"""
Validation of inbound DynDNS update requests.

The query string is validated here rather than by FastAPI so that every
malformed request can be answered with the DynDNS ``badauth`` code.
"""

from __future__ import annotations

import secrets
from ipaddress import IPv6Network, ip_network
from typing import TYPE_CHECKING

from ddns_multiplexer.errors import (
    AuthMismatchError,
    InvalidPrefixError,
    MissingAddressError,
    MissingFieldError,
)
from ddns_multiplexer.models import UpdateRequest

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Final

    from ddns_multiplexer.config import AccountConfig


MANDATORY_FIELDS: Final[tuple[str, ...]] = ("username", "passwd", "domain")


def parse_ip6_lan_prefix(prefix: str) -> IPv6Network:
    """
    Parse an IPv6 LAN prefix such as ``2001:db8:1::/64``.

    Host bits are masked off, so ``2001:db8::1/64`` yields ``2001:db8::/64``.

    Parameters
    ----------
    prefix : str
        The prefix in CIDR notation.

    Returns
    -------
    IPv6Network
        The parsed network.

    Raises
    ------
    InvalidPrefixError
        If the value is not CIDR notation or not an IPv6 network.
    """
    if "/" not in prefix:
        raise InvalidPrefixError(prefix, "not in CIDR notation")
    try:
        network = ip_network(prefix, strict=False)
    except ValueError as e:
        raise InvalidPrefixError(prefix, str(e)) from e
    if not isinstance(network, IPv6Network):
        raise InvalidPrefixError(prefix, "not an IPv6 prefix")
    return network


def parse_update_request(query: Mapping[str, str]) -> UpdateRequest:
    """
    Parse and validate update request query parameters.

    Parameters
    ----------
    query : Mapping[str, str]
        The query parameters of the inbound request.

    Returns
    -------
    UpdateRequest
        The validated request.

    Raises
    ------
    MissingFieldError
        If ``username``, ``passwd`` or ``domain`` is missing or empty.
    MissingAddressError
        If both ``ipaddr`` and ``ip6addr`` are missing or empty.
    InvalidPrefixError
        If ``ip6lanprefix`` is set but not a valid IPv6 network.
    """
    for field in MANDATORY_FIELDS:
        if not query.get(field):
            raise MissingFieldError(field)

    ipaddr = query.get("ipaddr", "")
    ip6addr = query.get("ip6addr", "")
    if not ipaddr and not ip6addr:
        raise MissingAddressError()

    ip6lanprefix = query.get("ip6lanprefix", "")
    ip6_lan_network = parse_ip6_lan_prefix(ip6lanprefix) if ip6lanprefix else None

    return UpdateRequest(
        username=query["username"],
        passwd=query["passwd"],
        domain=query["domain"],
        ipaddr=ipaddr,
        ip6addr=ip6addr,
        ip6lanprefix=ip6lanprefix,
        ip6_lan_network=ip6_lan_network,
        dualstack=query.get("dualstack", ""),
    )


def verify_account(request: UpdateRequest, account: AccountConfig) -> None:
    """
    Check the request credentials and domain against the configured account.

    Parameters
    ----------
    request : UpdateRequest
        The validated request.
    account : AccountConfig
        The expected account.

    Raises
    ------
    AuthMismatchError
        If any of username, password or domain differs. The error names the
        mismatched fields but never contains their values.
    """
    pairs = {
        "username": (request.username, account.username),
        "passwd": (request.password, account.password),
        "domain": (request.domain, account.domain),
    }
    mismatched = [
        field
        for field, (given, expected) in pairs.items()
        if not secrets.compare_digest(given.encode(), expected.encode())
    ]
    if mismatched:
        raise AuthMismatchError(mismatched)
