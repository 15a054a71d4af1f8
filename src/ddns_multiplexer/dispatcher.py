"""
Outbound calls to dynamic DNS providers.

Each provider is called exactly once per update with a GET request on the
resolved URI. There is no retry: a failed call is reported to the caller as
a `TransportError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from ddns_multiplexer.errors import TransportError

if TYPE_CHECKING:
    from typing import Final


# HTTP timeout in seconds
HTTP_TIMEOUT: Final[float] = 60.0


class ProviderResponse:
    """
    Raw reply of a provider.

    Attributes
    ----------
    status_code : int
        HTTP status code of the reply.
    headers : httpx.Headers
        Reply headers (case-insensitive lookup).
    body : str
        Decoded reply body.
    """

    def __init__(
        self,
        *,
        status_code: int,
        headers: httpx.Headers | dict[str, str] | None = None,
        body: str = "",
    ) -> None:
        """
        Initialize a ProviderResponse.

        Parameters
        ----------
        status_code : int
            HTTP status code of the reply.
        headers : httpx.Headers | dict[str, str] | None, optional
            Reply headers.
        body : str, optional
            Decoded reply body.
        """
        self.status_code = status_code
        self.headers = httpx.Headers(headers)
        self.body = body

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> ProviderResponse:
        """Build a ProviderResponse from an httpx response."""
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            body=response.text,
        )


def create_client(
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create the HTTP client used for provider calls.

    Parameters
    ----------
    transport : httpx.AsyncBaseTransport | None, optional
        Custom transport (e.g. ``httpx.MockTransport`` in tests).

    Returns
    -------
    httpx.AsyncClient
        A client with the provider timeout that follows redirects.
    """
    return httpx.AsyncClient(
        timeout=HTTP_TIMEOUT,
        follow_redirects=True,
        transport=transport,
    )


class ProviderDispatcher:
    """
    Sends update calls to providers.

    The dispatcher does not own the client; its lifetime is managed by the
    application lifespan.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def dispatch(self, uri: str) -> ProviderResponse:
        """
        Call a provider update URI once.

        Parameters
        ----------
        uri : str
            The resolved provider URI (contains credentials, never log it).

        Returns
        -------
        ProviderResponse
            The provider reply, whatever its HTTP status code.

        Raises
        ------
        TransportError
            On timeout, connection or DNS failure, or an unusable URI. The
            message names the failure type only, never the URI.
        """
        try:
            response = await self._client.get(uri)
        except httpx.TimeoutException as e:
            msg = f"request timed out after {HTTP_TIMEOUT:g}s"
            raise TransportError(msg) from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # ValueError covers UnicodeError from IDNA host encoding
            msg = f"request failed: {type(e).__name__}"
            raise TransportError(msg) from e

        return ProviderResponse.from_httpx(response)
