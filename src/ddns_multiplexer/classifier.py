"""
Classification of provider replies into DynDNS status labels.

Providers report their result in different ways. The classifier looks at,
in this order:

1. The dedicated ``DDNSS-Response`` status header (ddnss.de), used verbatim.
2. A header named after a known status label with a non-empty value.
3. The body, searched for the first known status label it contains.

Labels are always tried in `LABEL_PRIORITY` order (most severe first), so
the result never depends on dictionary or header ordering.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from ddns_multiplexer.models import LABEL_PRIORITY, Status

if TYPE_CHECKING:
    from typing import Final

    from ddns_multiplexer.dispatcher import ProviderResponse


STATUS_HEADER: Final[str] = "DDNSS-Response"
MESSAGE_HEADER: Final[str] = "DDNSS-Message"


logger = logging.getLogger(__name__)


class Classification(NamedTuple):
    """
    Status label found in a provider reply.

    Attributes
    ----------
    label : str
        The status label. Labels taken from the status header are returned
        verbatim and may not be a known `Status`.
    exact_match : bool
        True when the label came from a header, False for body matches and
        the ``unknown`` fallback.
    """

    label: str
    exact_match: bool


def classify(response: ProviderResponse) -> Classification:
    """
    Classify a provider reply.

    Parameters
    ----------
    response : ProviderResponse
        The raw provider reply.

    Returns
    -------
    Classification
        The status label and whether it was an exact (header) match.
    """
    # 1. Structured status header
    if status := response.headers.get(STATUS_HEADER):
        if message := response.headers.get(MESSAGE_HEADER):
            logger.info("[%s] %s", MESSAGE_HEADER, message)
        return Classification(status, exact_match=True)

    # 2. Header named after a status label
    for label in LABEL_PRIORITY:
        if response.headers.get(label):
            return Classification(label.value, exact_match=True)

    # 3. Status label anywhere in the body
    for label in LABEL_PRIORITY:
        if label in response.body:
            return Classification(label.value, exact_match=False)

    return Classification(Status.UNKNOWN.value, exact_match=False)
