"""
Data models for DDNS Multiplexer.

This module defines the core data structures used throughout the application,
including the DynDNS v2 status codes and their severity ranks, the inbound
update request, and the per-provider and aggregated update results.
"""

from __future__ import annotations

from enum import StrEnum
from ipaddress import IPv6Network
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from typing import Final


class Status(StrEnum):
    """
    DynDNS v2 return codes understood by the multiplexer.

    ``ADMINISTRATIVE_ERROR`` and ``UNKNOWN`` are never sent by providers; they
    are produced internally for failed calls and unrecognized replies.
    """

    BADAUTH = "badauth"
    NOTFQDN = "notfqdn"
    NOHOST = "nohost"
    NUMHOST = "numhost"
    ABUSE = "abuse"
    BADAGENT = "badagent"
    NOT_YOURS = "!yours"
    NOT_DONATOR = "!donator"
    ADMINISTRATIVE_ERROR = "administrative-error"
    DNSERR = "dnserr"
    UNKNOWN = "unknown"
    GOOD = "good"
    OK = "ok"
    NOCHG = "nochg"


# Higher rank = more severe. See https://help.dyn.com/remote-access-api/return-codes/
SEVERITY_RANKS: Final[dict[Status, int]] = {
    Status.BADAUTH: 12,
    Status.NOTFQDN: 11,
    Status.NOHOST: 10,
    Status.NUMHOST: 9,
    Status.ABUSE: 8,
    Status.BADAGENT: 7,
    Status.NOT_YOURS: 6,
    Status.NOT_DONATOR: 5,
    Status.ADMINISTRATIVE_ERROR: 4,
    Status.DNSERR: 3,
    Status.UNKNOWN: 2,
    Status.GOOD: 1,
    Status.OK: 0,
    Status.NOCHG: -1,
}

# Labels matched against provider headers and bodies, most severe first.
# "ok" is only honored when a provider reports it as a structured status.
LABEL_PRIORITY: Final[tuple[Status, ...]] = tuple(
    status
    for status in sorted(SEVERITY_RANKS, key=SEVERITY_RANKS.__getitem__, reverse=True)
    if status is not Status.OK
)

# Labels that carry the anchor address in the final status line.
ADDRESS_LABELS: Final[frozenset[Status]] = frozenset({Status.GOOD, Status.NOCHG})


def to_status(label: str) -> Status:
    """
    Map a raw label to a known status.

    Parameters
    ----------
    label : str
        The label reported by a provider or produced by the classifier.

    Returns
    -------
    Status
        The matching status, or ``Status.UNKNOWN`` for anything unrecognized.
    """
    try:
        return Status(label)
    except ValueError:
        return Status.UNKNOWN


class UpdateRequest(BaseModel):
    """
    Inbound DynDNS update request.

    Absent query parameters are represented as empty strings.

    Attributes
    ----------
    username : str
        Account user name.
    password : str
        Account password (query parameter ``passwd``).
    domain : str
        Account domain name.
    ipaddr : str
        IPv4 address to publish.
    ip6addr : str
        IPv6 address to publish.
    ip6lanprefix : str
        IPv6 LAN prefix in CIDR notation, as sent by the client.
    ip6_lan_network : IPv6Network | None
        The parsed ``ip6lanprefix``.
    dualstack : str
        Opaque dual-stack flag passed through to providers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, alias="passwd", repr=False)
    domain: str = Field(..., min_length=1)
    ipaddr: str = ""
    ip6addr: str = ""
    ip6lanprefix: str = ""
    ip6_lan_network: IPv6Network | None = None
    dualstack: str = ""

    @property
    def anchor_address(self) -> str:
        """Address echoed back in ``good``/``nochg`` results."""
        return self.ipaddr or self.ip6addr


class ProviderOutcome(BaseModel):
    """
    Classified result of one provider update.

    Attributes
    ----------
    provider_index : int
        Position of the provider in the configuration.
    label : str
        The status label observed for the provider.
    exact_match : bool
        Whether the label came from a structured signal (header) rather than
        a substring match on the response body.
    """

    model_config = ConfigDict(frozen=True)

    provider_index: int
    label: str
    exact_match: bool

    @property
    def status(self) -> Status:
        """The canonical status for ``label``."""
        return to_status(self.label)


class UpdateResult(BaseModel):
    """
    Result of fanning an update request out to all providers.

    Attributes
    ----------
    final_status : str
        The aggregated status line returned to the caller.
    outcomes : tuple[ProviderOutcome, ...]
        Per-provider outcomes in configured order.
    """

    model_config = ConfigDict(frozen=True)

    final_status: str
    outcomes: tuple[ProviderOutcome, ...] = ()
