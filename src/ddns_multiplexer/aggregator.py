"""
Aggregation of per-provider outcomes into one status line.

The aggregation is a left fold over the provider outcomes in configured
order. The state only moves to a strictly more severe status, so among
outcomes of equal severity the first one in configured order wins.
"""

from __future__ import annotations

from functools import reduce
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ddns_multiplexer.models import ADDRESS_LABELS, SEVERITY_RANKS, Status, to_status

if TYPE_CHECKING:
    from collections.abc import Iterable


class AggregationState(BaseModel):
    """
    Running result of an update request.

    Attributes
    ----------
    anchor_address : str
        Address appended to ``good`` and ``nochg`` results.
    highest_rank : int
        Severity rank of the most severe status seen so far.
    final_status : str
        Status line to return to the caller.
    """

    model_config = ConfigDict(frozen=True)

    anchor_address: str
    highest_rank: int
    final_status: str

    @classmethod
    def initial(cls, anchor_address: str) -> AggregationState:
        """
        Create the state before any provider was contacted.

        Parameters
        ----------
        anchor_address : str
            The request's IPv4 address, or its IPv6 address if none.

        Returns
        -------
        AggregationState
            A ``nochg <anchor_address>`` state.
        """
        return cls(
            anchor_address=anchor_address,
            highest_rank=SEVERITY_RANKS[Status.NOCHG],
            final_status=format_status(Status.NOCHG, anchor_address),
        )

    def advance(self, label: str) -> AggregationState:
        """
        Fold one provider label into the state.

        Parameters
        ----------
        label : str
            The provider's status label; unrecognized labels count as
            ``unknown``.

        Returns
        -------
        AggregationState
            A new state if the label is strictly more severe, else ``self``.
        """
        status = to_status(label)
        rank = SEVERITY_RANKS[status]
        if rank <= self.highest_rank:
            return self
        return self.model_copy(
            update={
                "highest_rank": rank,
                "final_status": format_status(status, self.anchor_address),
            },
        )


def format_status(status: Status, anchor_address: str) -> str:
    """Render a status line, with the anchor address for success statuses."""
    if status in ADDRESS_LABELS:
        return f"{status} {anchor_address}"
    return str(status)


def aggregate(anchor_address: str, labels: Iterable[str]) -> AggregationState:
    """
    Fold provider labels, in configured order, into a final state.

    Parameters
    ----------
    anchor_address : str
        Address appended to ``good`` and ``nochg`` results.
    labels : Iterable[str]
        Provider labels in configured provider order.

    Returns
    -------
    AggregationState
        The final state; its ``final_status`` is the response body.
    """
    return reduce(
        lambda state, label: state.advance(label),
        labels,
        AggregationState.initial(anchor_address),
    )
