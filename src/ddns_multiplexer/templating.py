"""
Provider URI template resolution.

Provider URIs are templates with ``<placeholder>`` markers. Identity
placeholders (``<username>``, ``<passwd>``, ``<domain>``) always come from the
provider configuration, never from the inbound request, so a provider is
always updated with its own configured account.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, NamedTuple

from ddns_multiplexer.addressing import combine_prefix_and_iid
from ddns_multiplexer.logging_config import MASK

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Final

    from ddns_multiplexer.config import ProviderConfig
    from ddns_multiplexer.models import UpdateRequest


# Placeholders
USERNAME: Final[str] = "<username>"
PASSWD: Final[str] = "<passwd>"  # noqa: S105
DOMAIN: Final[str] = "<domain>"
IPADDR: Final[str] = "<ipaddr>"
IP6ADDR: Final[str] = "<ip6addr>"
IP6LANPREFIX: Final[str] = "<ip6lanprefix>"
DUALSTACK: Final[str] = "<dualstack>"

MISSING_PREFIX_WARNING: Final[str] = (
    "Provider requires IID6, but no ip6lanprefix was provided in the request. "
    "Using empty ip6addr for request."
)


class ResolvedUri(NamedTuple):
    """
    A provider URI with all placeholders substituted.

    Attributes
    ----------
    uri : str
        The URI to call.
    log_uri : str
        The same URI with the provider credentials masked.
    warnings : tuple[str, ...]
        Non-fatal problems found while resolving.
    """

    uri: str
    log_uri: str
    warnings: tuple[str, ...] = ()


def substitute(template: str, values: Mapping[str, str]) -> str:
    """
    Replace every occurrence of each placeholder in a template.

    Substitution is done in a single pass, so substituted values are never
    scanned for placeholders again.

    Parameters
    ----------
    template : str
        The URI template.
    values : Mapping[str, str]
        Placeholder to value mapping.

    Returns
    -------
    str
        The substituted template.
    """
    if not values:
        return template
    pattern = re.compile("|".join(re.escape(placeholder) for placeholder in values))
    return pattern.sub(lambda match: values[match.group(0)], template)


def resolve_ip6addr(
    provider: ProviderConfig,
    request: UpdateRequest,
) -> tuple[str, str | None]:
    """
    Determine the value for ``<ip6addr>``.

    Parameters
    ----------
    provider : ProviderConfig
        The provider being updated.
    request : UpdateRequest
        The inbound request.

    Returns
    -------
    tuple[str, str | None]
        The address (possibly empty) and an optional warning.

    Raises
    ------
    OverlapError
        If the provider's interface identifier overlaps the request prefix.
    """
    interface_id = provider.interface_id
    if interface_id is None:
        return request.ip6addr, None
    if request.ip6_lan_network is None:
        return "", MISSING_PREFIX_WARNING
    address = combine_prefix_and_iid(request.ip6_lan_network, interface_id)
    return str(address), None


def _request_values(
    provider: ProviderConfig,
    request: UpdateRequest,
    ip6addr: str,
) -> dict[str, str]:
    return {
        DOMAIN: provider.domain,
        IPADDR: request.ipaddr,
        IP6ADDR: ip6addr,
        IP6LANPREFIX: request.ip6lanprefix,
        DUALSTACK: request.dualstack,
    }


def mask_uri(
    provider: ProviderConfig,
    request: UpdateRequest,
    ip6addr: str = "",
) -> str:
    """
    Resolve a provider URI template for logging.

    ``<username>`` and ``<passwd>`` are replaced with the mask instead of
    the provider credentials.

    Parameters
    ----------
    provider : ProviderConfig
        The provider being updated.
    request : UpdateRequest
        The inbound request.
    ip6addr : str, optional
        Value for ``<ip6addr>``, empty when no address could be determined.

    Returns
    -------
    str
        The masked URI.
    """
    values = _request_values(provider, request, ip6addr)
    return substitute(provider.uri, {**values, USERNAME: MASK, PASSWD: MASK})


def resolve_uri(provider: ProviderConfig, request: UpdateRequest) -> ResolvedUri:
    """
    Resolve a provider URI template for a request.

    Parameters
    ----------
    provider : ProviderConfig
        The provider being updated.
    request : UpdateRequest
        The inbound request.

    Returns
    -------
    ResolvedUri
        The resolved URI, its masked form and any warnings.

    Raises
    ------
    OverlapError
        If the IPv6 address cannot be synthesized for the provider.
    """
    ip6addr, warning = resolve_ip6addr(provider, request)

    values = _request_values(provider, request, ip6addr)
    uri = substitute(
        provider.uri,
        {**values, USERNAME: provider.username, PASSWD: provider.passwd},
    )

    return ResolvedUri(
        uri=uri,
        log_uri=mask_uri(provider, request, ip6addr),
        warnings=(warning,) if warning else (),
    )
