"""
IPv6 address synthesis.

Routers behind an ISP with a changing IPv6 prefix only know the delegated
LAN prefix. Hosts inside the LAN keep a stable interface identifier, so
their public address is the prefix's network bits combined with the host
bits of the interface identifier.
"""

from __future__ import annotations

from ipaddress import IPv6Address, IPv6Network

from ddns_multiplexer.errors import OverlapError


def parse_interface_id(value: str) -> IPv6Address:
    """
    Parse a configured interface identifier.

    The value is read as ``"::" + value`` so that short forms such as
    ``"1"`` or ``"1:2:3:4"`` denote host bits. Values that already start
    with ``"::"`` (e.g. ``"::1"``) are accepted as they are; full addresses
    such as ``"2001:db8::1"`` are rejected.

    Parameters
    ----------
    value : str
        The ``iid6`` value from the provider configuration.

    Returns
    -------
    IPv6Address
        The interface identifier as a 128-bit address.

    Raises
    ------
    ValueError
        If the value is not a valid interface identifier.
    """
    value = value.strip()
    candidate = value if value.startswith("::") else f"::{value}"
    try:
        return IPv6Address(candidate)
    except ValueError:
        msg = f"invalid interface ID: {value}"
        raise ValueError(msg) from None


def combine_prefix_and_iid(
    network: IPv6Network,
    interface_id: IPv6Address,
) -> IPv6Address:
    """
    Combine an IPv6 network prefix with an interface identifier.

    Parameters
    ----------
    network : IPv6Network
        The delegated network (its host bits are zero).
    interface_id : IPv6Address
        The interface identifier; only host bits may be set.

    Returns
    -------
    IPv6Address
        ``network.network_address | interface_id``.

    Raises
    ------
    OverlapError
        If any bit of the interface identifier lies inside the network mask.
    """
    if int(interface_id) & int(network.netmask):
        raise OverlapError(str(network), str(interface_id))

    return IPv6Address(int(network.network_address) | int(interface_id))
