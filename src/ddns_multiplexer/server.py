"""
FastAPI server for DDNS Multiplexer.

This module provides the DynDNS-compatible ``/update`` endpoint and the
``/health`` endpoint. Responses are plain text so that routers can read the
DynDNS return code directly.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette import status as st_status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ddns_multiplexer import __version__
from ddns_multiplexer.config import (
    Config,
    ConfigValidationError,
    load_config,
    parse_args,
)
from ddns_multiplexer.dispatcher import create_client
from ddns_multiplexer.errors import AuthMismatchError, InvalidRequestError
from ddns_multiplexer.models import Status
from ddns_multiplexer.multiplexer import UpdateMultiplexer
from ddns_multiplexer.validation import parse_update_request

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from typing import Final

    import httpx


logger = logging.getLogger(__name__)

UNHEALTHY_PREFIX: Final[str] = "UNHEALTHY: config error. "

router = APIRouter()


def _unhealthy_response(error: ConfigValidationError) -> Response:
    return PlainTextResponse(
        f"{UNHEALTHY_PREFIX}{error}",
        status_code=st_status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _is_verbose(request: Request) -> bool:
    config: Config | None = request.app.state.config
    return config is not None and config.logging.verbose


class ConfigGuardMiddleware(BaseHTTPMiddleware):
    """
    Middleware that rejects updates while the configuration is broken.

    Intercepts requests to /update before any parameter handling and
    answers 500 if the configuration failed to load at startup.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Short-circuit /update when the configuration is unavailable."""
        # Only apply to /update path
        if request.url.path != "/update":
            return await call_next(request)

        error: ConfigValidationError | None = getattr(
            request.app.state,
            "config_error",
            None,
        )
        if error is None:
            return await call_next(request)

        logger.error("%s%s", UNHEALTHY_PREFIX, error)
        return _unhealthy_response(error)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    state = app.state

    # If config was not passed in (e.g., running via uvicorn directly),
    # load it here
    if state.config is None and state.config_error is None:
        try:
            state.config = load_config(parse_args([]))
        except ConfigValidationError as e:
            state.config_error = e

    # "/health" always reports a broken configuration
    if state.config_error is not None or state.config.health.enabled:
        app.add_api_route("/health", health, methods=["GET"])

    if state.config_error is not None:
        logger.critical("Config error: %s", state.config_error)
        yield
        return

    config: Config = state.config
    # Log provider attributes without username and password
    for index, provider in enumerate(config.providers):
        logger.info(
            "Provider[%d]: uri=%s, domain=%s, iid6=%s",
            index,
            provider.uri,
            provider.domain,
            str(provider.interface_id) if provider.iid6 else "",
        )

    async with create_client(state.transport) as client:
        state.multiplexer = UpdateMultiplexer(config, client)
        logger.info(
            'DDNS Multiplexer starting on "%s:%d" (%d providers).',
            config.server.host,
            config.server.port,
            len(config.providers),
        )

        yield

    logger.info("DDNS Multiplexer shutting down.")


async def invalid_request_handler(request: Request, exc: Exception) -> Response:
    """Answer malformed update requests with 400 ``badauth``."""
    logger.error("[error] %s", exc)
    return PlainTextResponse(
        Status.BADAUTH.value,
        status_code=st_status.HTTP_400_BAD_REQUEST,
    )


async def auth_mismatch_handler(request: Request, exc: Exception) -> Response:
    """
    Answer account mismatches with 401 ``badauth``.

    The caller is never told which field was wrong. In verbose mode the
    field names (not values) are logged.
    """
    logger.error("[error] %s", exc)
    if _is_verbose(request) and isinstance(exc, AuthMismatchError):
        logger.info("[error] mismatched fields: %s", ", ".join(exc.fields))
    return PlainTextResponse(
        Status.BADAUTH.value,
        status_code=st_status.HTTP_401_UNAUTHORIZED,
    )


@router.get("/update", response_class=PlainTextResponse)
async def update(request: Request) -> Response:
    """
    Forward a DynDNS update to all configured providers.

    Query parameters: ``username``, ``passwd``, ``domain`` (required),
    ``ipaddr`` and/or ``ip6addr`` (at least one), ``ip6lanprefix`` and
    ``dualstack`` (optional). The body is the aggregated status line.
    """
    # Configuration errors are handled by ConfigGuardMiddleware
    logger.info("[requestor] %s", request.client.host if request.client else "-")
    if _is_verbose(request):
        # Credentials are masked by the logging filter
        logger.info("[requestor] full url: %s", str(request.url))

    params = parse_update_request(request.query_params)
    if _is_verbose(request) and params.ip6_lan_network is not None:
        logger.info("[request] parsed ip6lanprefix: %s", params.ip6_lan_network)

    multiplexer: UpdateMultiplexer = request.app.state.multiplexer
    multiplexer.authorize(params)
    result = await multiplexer.update(params)

    return PlainTextResponse(result.final_status)


# Note: Unlike the routes above, this endpoint is dynamically registered
# in lifespan() based on config.health.enabled.
async def health(request: Request) -> Response:
    """Health check endpoint."""
    error: ConfigValidationError | None = request.app.state.config_error
    if error is not None:
        return _unhealthy_response(error)
    return PlainTextResponse("OK")


def create_app(
    config: Config | None = None,
    *,
    config_error: ConfigValidationError | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create the application.

    Parameters
    ----------
    config : Config | None, optional
        Preloaded configuration. If both ``config`` and ``config_error`` are
        None, the configuration is loaded on startup.
    config_error : ConfigValidationError | None, optional
        Error from a failed configuration load; the app then runs unhealthy.
    transport : httpx.AsyncBaseTransport | None, optional
        Transport for provider calls (e.g. ``httpx.MockTransport`` in tests).

    Returns
    -------
    FastAPI
        The application.
    """
    app = FastAPI(
        title="DDNS Multiplexer",
        description="Forwards DynDNS updates to multiple dynamic DNS providers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.config_error = config_error
    app.state.transport = transport
    app.state.multiplexer = None

    app.add_middleware(ConfigGuardMiddleware)
    app.add_exception_handler(InvalidRequestError, invalid_request_handler)
    app.add_exception_handler(AuthMismatchError, auth_mismatch_handler)
    app.include_router(router)

    return app


app = create_app()
