"""
CLI entry point for DDNS Multiplexer.

This module provides the command-line interface for starting the server.
"""

from __future__ import annotations

import sys

import uvicorn

from ddns_multiplexer.config import (
    ConfigValidationError,
    LoggingConfig,
    ServerConfig,
    load_config,
    parse_args,
)
from ddns_multiplexer.logging_config import build_uvicorn_log_config, setup_logging
from ddns_multiplexer.server import create_app


def main() -> None:
    """
    Start the DDNS Multiplexer server.

    Parse command-line arguments, load configuration, and run the server.
    A broken configuration does not stop the server: it starts unhealthy,
    so "/health" reports the error and "/update" answers 500.
    """
    args = parse_args()
    try:
        config = load_config(args)
    except ConfigValidationError as e:
        print(e, file=sys.stderr)  # noqa: T201
        config = None
        config_error = e
    else:
        config_error = None

    if config is not None:
        server_config = config.server
        logging_config = config.logging
    else:
        defaults = ServerConfig()
        server_config = ServerConfig(
            host=args.host or defaults.host,
            port=args.port or defaults.port,
        )
        logging_config = LoggingConfig(level=args.log_level or LoggingConfig().level)

    setup_logging(logging_config)

    # Hand the loaded configuration to the application so it is not
    # re-parsed when the app starts.
    app = create_app(config, config_error=config_error)

    uvicorn.run(
        app,
        host=server_config.host,
        port=server_config.port,
        log_level=logging_config.level.lower(),
        access_log=True,
        log_config=build_uvicorn_log_config(logging_config),
    )


if __name__ == "__main__":
    main()
