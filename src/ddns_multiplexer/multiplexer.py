"""
Fan-out of one update request to all configured providers.

Providers are contacted one after another in configured order. A failure at
one provider never stops the others; it is recorded as
``administrative-error`` for that provider.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from ddns_multiplexer.aggregator import aggregate
from ddns_multiplexer.classifier import classify
from ddns_multiplexer.dispatcher import ProviderDispatcher
from ddns_multiplexer.errors import AddressSynthesisError, TransportError
from ddns_multiplexer.models import ProviderOutcome, Status, UpdateResult
from ddns_multiplexer.templating import mask_uri, resolve_uri
from ddns_multiplexer.validation import verify_account

if TYPE_CHECKING:
    import httpx

    from ddns_multiplexer.config import Config, ProviderConfig
    from ddns_multiplexer.models import UpdateRequest


logger = logging.getLogger(__name__)


class UpdateMultiplexer:
    """
    Forwards update requests to every configured provider.

    Holds only read-only state (configuration and HTTP client), so a single
    instance serves all requests.
    """

    def __init__(self, config: Config, client: httpx.AsyncClient) -> None:
        """
        Initialize the multiplexer.

        Parameters
        ----------
        config : Config
            The application configuration (account and provider registry).
        client : httpx.AsyncClient
            HTTP client for provider calls.
        """
        self._config = config
        self._dispatcher = ProviderDispatcher(client)

    @property
    def providers(self) -> tuple[ProviderConfig, ...]:
        """The provider registry."""
        return self._config.providers

    def authorize(self, request: UpdateRequest) -> None:
        """
        Check that the request matches the configured account.

        Raises
        ------
        AuthMismatchError
            If username, password or domain do not match.
        """
        verify_account(request, self._config.account)

    async def update(self, request: UpdateRequest) -> UpdateResult:
        """
        Forward an update to all providers and aggregate their results.

        Parameters
        ----------
        request : UpdateRequest
            The validated and authorized request.

        Returns
        -------
        UpdateResult
            The aggregated status line and the per-provider outcomes.
        """
        start_time = time.monotonic()

        outcomes = [
            await self._update_provider(index, provider, request)
            for index, provider in enumerate(self.providers)
        ]
        state = aggregate(request.anchor_address, (o.label for o in outcomes))

        logger.info(
            "[result] status=%s providers=%d duration=%.2fs",
            state.final_status,
            len(outcomes),
            time.monotonic() - start_time,
        )
        return UpdateResult(final_status=state.final_status, outcomes=tuple(outcomes))

    async def _update_provider(
        self,
        index: int,
        provider: ProviderConfig,
        request: UpdateRequest,
    ) -> ProviderOutcome:
        """
        Update a single provider.

        Parameters
        ----------
        index : int
            Position of the provider in the configuration.
        provider : ProviderConfig
            The provider to update.
        request : UpdateRequest
            The inbound request.

        Returns
        -------
        ProviderOutcome
            The classified outcome; failures become ``administrative-error``.
        """
        try:
            resolved = resolve_uri(provider, request)
        except AddressSynthesisError as e:
            logger.error(  # noqa: TRY400
                "[error] index=%d uri=%s error=%s",
                index,
                mask_uri(provider, request),
                e,
            )
            return self._failed(index)

        for warning in resolved.warnings:
            logger.warning("[warning] index=%d uri=%s %s", index, resolved.log_uri, warning)
        logger.info("[request] index=%d uri=%s", index, resolved.log_uri)

        try:
            response = await self._dispatcher.dispatch(resolved.uri)
        except TransportError as e:
            logger.error("[error] index=%d uri=%s error=%s", index, resolved.log_uri, e)  # noqa: TRY400
            return self._failed(index)

        if self._config.logging.verbose:
            logger.info(
                "[headers] index=%d status=%d %s",
                index,
                response.status_code,
                ", ".join(f"{k}: {v}" for k, v in response.headers.items()),
            )

        label, exact_match = classify(response)
        logger.info(
            "[response] index=%d uri=%s status=%d label=%s exact=%s body=%r",
            index,
            resolved.log_uri,
            response.status_code,
            label,
            exact_match,
            response.body.strip(),
        )
        return ProviderOutcome(provider_index=index, label=label, exact_match=exact_match)

    @staticmethod
    def _failed(index: int) -> ProviderOutcome:
        return ProviderOutcome(
            provider_index=index,
            label=Status.ADMINISTRATIVE_ERROR.value,
            exact_match=True,
        )
