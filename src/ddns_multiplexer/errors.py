"""
Exception hierarchy for DDNS Multiplexer.

Request-level errors (invalid query, account mismatch) abort the update and
are translated into HTTP responses by the server. Provider-level errors
(address synthesis, transport) only affect the outcome of a single provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class DDNSMultiplexerError(Exception):
    """Base class for all DDNS Multiplexer errors."""


class InvalidRequestError(DDNSMultiplexerError):
    """Raised when the inbound update request is malformed."""


class MissingFieldError(InvalidRequestError):
    """
    Raised when a mandatory query parameter is absent or empty.

    Attributes
    ----------
    field : str
        Name of the missing query parameter.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing mandatory query param: {field}")


class MissingAddressError(InvalidRequestError):
    """Raised when neither ``ipaddr`` nor ``ip6addr`` is supplied."""

    def __init__(self) -> None:
        super().__init__("either ipaddr or ip6addr must be set")


class InvalidPrefixError(InvalidRequestError):
    """Raised when ``ip6lanprefix`` is not an IPv6 CIDR network."""

    def __init__(self, prefix: str, reason: str) -> None:
        self.prefix = prefix
        super().__init__(f'invalid ip6lanprefix "{prefix}": {reason}')


class AuthMismatchError(DDNSMultiplexerError):
    """
    Raised when the request credentials or domain do not match the account.

    Only the names of the mismatched fields are kept, never their values.

    Attributes
    ----------
    fields : tuple[str, ...]
        Names of the mismatched fields.
    """

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = tuple(fields)
        super().__init__("query parameters do not match configuration")


class AddressSynthesisError(DDNSMultiplexerError):
    """Raised when an IPv6 address cannot be built for a provider."""


class OverlapError(AddressSynthesisError):
    """Raised when an interface identifier has bits inside the network prefix."""

    def __init__(self, network: str, interface_id: str) -> None:
        self.network = network
        self.interface_id = interface_id
        super().__init__(
            f"interface ID {interface_id} contains bits that overlap with "
            f"the prefix {network}",
        )


class TransportError(DDNSMultiplexerError):
    """Raised when the outbound call to a provider fails."""
