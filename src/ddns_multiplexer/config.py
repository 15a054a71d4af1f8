"""
Configuration management for DDNS Multiplexer.

Configuration is merged from several sources. Priority (high to low):
1. Command-line arguments
2. Environment variables
3. Configuration file (TOML)
4. Default values

The resulting `Config` is immutable. It is built once at startup and passed
to the request handling path; its ``providers`` tuple is the provider
registry, in the order providers are contacted.
"""

from __future__ import annotations

import argparse
import copy
import json
import logging
import os
import tomllib
from ipaddress import IPv6Address
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ddns_multiplexer.addressing import parse_interface_id
from ddns_multiplexer.errors import DDNSMultiplexerError
from ddns_multiplexer.logging_config import DATE_FORMAT, LOG_FORMAT, MASK

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any, Final


def _startup_logger() -> logging.Logger:
    """
    Logger for messages emitted before `setup_logging` runs.

    It writes to the console only, since the log file path is not known
    until the configuration has been loaded.
    """
    logger = logging.getLogger(__name__)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger


logger_basic = _startup_logger()


DEFAULT_CONFIG_FILE: Final[Path] = Path("config.toml")

# Environment variables
ENV_USER_NAME: Final[str] = "USER_NAME"
ENV_USER_PASSWORD: Final[str] = "USER_PASSWORD"  # noqa: S105
ENV_USER_DOMAIN_NAME: Final[str] = "USER_DOMAIN_NAME"
ENV_PROVIDERS: Final[str] = "PROVIDERS"
ENV_LOG_VERBOSE: Final[str] = "LOG_VERBOSE"

# Environment variable -> account key
_ENV_ACCOUNT_KEYS: Final[dict[str, str]] = {
    ENV_USER_NAME: "username",
    ENV_USER_PASSWORD: "password",
    ENV_USER_DOMAIN_NAME: "domain",
}

# argparse destination -> (section, key)
_CLI_OVERRIDES: Final[dict[str, tuple[str, str]]] = {
    "host": ("server", "host"),
    "port": ("server", "port"),
    "log_level": ("logging", "level"),
    "log_verbose": ("logging", "verbose"),
    "log_file_enabled": ("logging", "file_enabled"),
    "log_file_path": ("logging", "file_path"),
    "health_enabled": ("health", "enabled"),
}

# Field names whose input values are never echoed in error messages
_SECRET_FIELDS: Final[frozenset[str]] = frozenset({"password", "passwd"})

# Pydantic error type -> expected type shown to the user
_EXPECTED_TYPES: Final[dict[str, str]] = {
    "int_type": "int",
    "int_parsing": "int",
    "bool_type": "bool",
    "bool_parsing": "bool",
    "string_type": "str",
    "string_too_short": "non-empty str",
    "list_type": "list",
    "tuple_type": "list",
    "too_short": "non-empty list",
    "model_type": "table",
    "dict_type": "table",
}


class ConfigValidationError(DDNSMultiplexerError):
    """
    Raised when the configuration cannot be loaded or is invalid.

    Attributes
    ----------
    config_path : Path | None
        Path to the configuration file involved, if any.
    """

    def __init__(self, message: str, config_path: Path | None = None) -> None:
        self.config_path = config_path
        super().__init__(message)


# Configuration models


class ServerConfig(BaseModel):
    """
    Server configuration.

    Attributes
    ----------
    host : str
        Host address to bind to.
    port : int
        Port number to listen on.
    """

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080


class AccountConfig(BaseModel):
    """
    Credentials that inbound update requests must present.

    Attributes
    ----------
    username : str
        Expected user name.
    password : str
        Expected password. Required.
    domain : str
        Expected domain name.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(default="user", min_length=1)
    password: str = Field(..., min_length=1, repr=False)
    domain: str = Field(default="any.domain", min_length=1)


class LoggingConfig(BaseModel):
    """
    Logging configuration.

    Attributes
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    verbose : bool
        Whether to log inbound URLs, upstream headers and mismatch details.
    file_enabled : bool
        Whether to log to file.
    file_path : str
        Path to the log file.
    """

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    verbose: bool = False
    file_enabled: bool = False
    file_path: str = "/var/log/ddns-multiplexer.log"

    @property
    def file_path_as_path(self) -> Path:
        """The log file path as a Path."""
        return Path(self.file_path)


class HealthConfig(BaseModel):
    """Health endpoint configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True


class ProviderConfig(BaseModel):
    """
    A single upstream dynamic DNS provider.

    Unknown keys in the provider definition are ignored.

    Attributes
    ----------
    uri : str
        Update URI template with ``<placeholder>`` markers.
    username : str
        User name sent to the provider.
    passwd : str
        Password sent to the provider.
    domain : str
        Domain name updated at the provider.
    iid6 : str | None
        IPv6 interface identifier used to synthesize ``<ip6addr>``.
    """

    model_config = ConfigDict(frozen=True)

    uri: str
    username: str = ""
    passwd: str = Field(default="", repr=False)
    domain: str = ""
    iid6: str | None = None

    @field_validator("uri")
    @classmethod
    def check_uri_not_blank(cls, value: str) -> str:
        """Reject empty or whitespace-only URI templates."""
        if not value.strip():
            msg = "provider URI must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("iid6")
    @classmethod
    def check_iid6(cls, value: str | None) -> str | None:
        """
        Validate that the interface identifier parses as an IPv6 address.

        Empty values are treated as absent.

        Raises
        ------
        ValueError
            If the value is not a valid interface identifier.
        """
        if value is None or not value.strip():
            return None
        parse_interface_id(value)
        return value

    @property
    def interface_id(self) -> IPv6Address | None:
        """The parsed interface identifier, if configured."""
        if self.iid6 is None:
            return None
        return parse_interface_id(self.iid6)


class Config(BaseModel):
    """
    Application configuration.

    Attributes
    ----------
    server : ServerConfig
        Server configuration.
    account : AccountConfig
        Expected inbound credentials.
    logging : LoggingConfig
        Logging configuration.
    health : HealthConfig
        Health endpoint configuration.
    providers : tuple[ProviderConfig, ...]
        Providers in the order they are contacted. At least one is required.
    """

    model_config = ConfigDict(frozen=True)

    server: ServerConfig = ServerConfig()
    account: AccountConfig
    logging: LoggingConfig = LoggingConfig()
    health: HealthConfig = HealthConfig()
    providers: tuple[ProviderConfig, ...] = Field(..., min_length=1)


def _describe_error(err: Mapping[str, Any]) -> str:
    """Render one Pydantic error without leaking secret input values."""
    loc = err["loc"]
    field_path = ".".join(str(part) for part in loc)

    # A missing field's input is its parent object, which may hold secrets
    if err["type"] == "missing":
        return f"  [{field_path}]: Missing required value."
    if err["type"] == "value_error":
        return f"  [{field_path}]: {err['msg']}."

    error_input = err["input"]
    if loc and str(loc[-1]) in _SECRET_FIELDS:
        value_repr = MASK
    elif isinstance(error_input, str):
        value_repr = f'"{error_input}"'
    else:
        value_repr = repr(error_input)

    expected = _EXPECTED_TYPES.get(err["type"], err["type"])
    return (
        f"  [{field_path}]: Expected {expected}, got {type(error_input).__name__} "
        f"(value: {value_repr}). {err['msg']}."
    )


def _format_validation_errors(error: ValidationError, config_path: Path | None) -> str:
    """
    Format Pydantic validation errors into human-readable messages.

    Parameters
    ----------
    error : ValidationError
        Pydantic validation error.
    config_path : Path | None
        Path to the configuration file.

    Returns
    -------
    str
        One header line followed by one line per error.
    """
    header = (
        f'Configuration error in "{config_path}":'
        if config_path
        else "Configuration error:"
    )
    return "\n".join([header, *(_describe_error(err) for err in error.errors())])


def validate_config_dict(
    data: dict[str, Any],
    config_path: Path | None = None,
) -> Config:
    """
    Validate a merged configuration dictionary.

    Parameters
    ----------
    data : dict[str, Any]
        Configuration dictionary to validate.
    config_path : Path | None, optional
        Path to the configuration file (for error messages).

    Returns
    -------
    Config
        The validated configuration.

    Raises
    ------
    ConfigValidationError
        If validation fails.
    """
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(
            _format_validation_errors(e, config_path),
            config_path,
        ) from e


def load_config_from_file(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a TOML file.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    tomllib.TOMLDecodeError
        If the configuration file is not valid TOML.
    """
    with config_path.open("rb") as f:
        return tomllib.load(f)


def load_config_from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Extract configuration overrides from environment variables.

    Supported variables are ``USER_NAME``, ``USER_PASSWORD``,
    ``USER_DOMAIN_NAME``, ``PROVIDERS`` (JSON array of provider objects) and
    ``LOG_VERBOSE`` ("true", case-insensitive, enables verbose logging).

    Parameters
    ----------
    environ : Mapping[str, str]
        Environment to read from.

    Returns
    -------
    dict[str, Any]
        Configuration overrides. Empty account and provider values are
        ignored.

    Raises
    ------
    ConfigValidationError
        If ``PROVIDERS`` is not valid JSON.
    """
    overrides: dict[str, Any] = {}

    account = {
        key: environ[env_key]
        for env_key, key in _ENV_ACCOUNT_KEYS.items()
        if environ.get(env_key)
    }
    if account:
        overrides["account"] = account

    if providers_json := environ.get(ENV_PROVIDERS):
        try:
            overrides["providers"] = json.loads(providers_json)
        except json.JSONDecodeError as e:
            msg = f"Failed to parse {ENV_PROVIDERS}: {e}"
            raise ConfigValidationError(msg) from e

    log_verbose = environ.get(ENV_LOG_VERBOSE)
    if log_verbose is not None:
        overrides["logging"] = {"verbose": log_verbose.strip().lower() == "true"}

    return overrides


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge two configuration dictionaries.

    Tables are merged key by key; everything else, including the
    ``providers`` array, is replaced. Neither argument is modified.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = merge_config(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def dict_to_config(data: dict[str, Any]) -> Config:
    """
    Convert a configuration dictionary to a Config, expanding ``~`` in the
    log file path.
    """
    file_path = data.get("logging", {}).get("file_path")
    if file_path is not None:
        data = merge_config(
            data,
            {"logging": {"file_path": str(Path(file_path).expanduser())}},
        )
    return Config.model_validate(data)


def _add_switch(
    parser: argparse.ArgumentParser,
    dest: str,
    on: tuple[str, str],
    off: tuple[str, str],
) -> None:
    """Add a pair of mutually exclusive on/off flags writing to ``dest``."""
    group = parser.add_mutually_exclusive_group()
    for (flag, help_text), action in ((on, "store_true"), (off, "store_false")):
        group.add_argument(flag, action=action, dest=dest, default=None, help=help_text)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Every option defaults to None, meaning "not given on the command line".

    Parameters
    ----------
    args : list[str] | None, optional
        Command-line arguments. If None, uses sys.argv.

    Returns
    -------
    argparse.Namespace
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="ddns-multiplexer",
        description="DDNS Multiplexer - Forward DynDNS updates to multiple providers",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument("--host", help="Host address to bind to")
    parser.add_argument("--port", type=int, help="Port number to listen on")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level",
    )
    _add_switch(
        parser,
        "log_verbose",
        ("--log-verbose", "Log inbound URLs, upstream headers and mismatch details"),
        ("--log-quiet", "Disable verbose logging"),
    )
    _add_switch(
        parser,
        "log_file_enabled",
        ("--log-file-enabled", "Enable logging to file"),
        ("--log-file-disabled", "Disable logging to file"),
    )
    parser.add_argument("--log-file-path", type=Path, help="Path to the log file")
    _add_switch(
        parser,
        "health_enabled",
        ("--health-enabled", 'Enable "/health" endpoint'),
        ("--health-disabled", 'Disable "/health" endpoint'),
    )
    return parser.parse_args(args)


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for dest, (section, key) in _CLI_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        overrides.setdefault(section, {})[key] = (
            str(value) if isinstance(value, Path) else value
        )
    return overrides


def _resolve_config_path(args: argparse.Namespace) -> Path | None:
    if args.config is not None:
        return args.config.expanduser()
    if DEFAULT_CONFIG_FILE.exists():
        return DEFAULT_CONFIG_FILE
    return None


def load_config(
    args: argparse.Namespace | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Load configuration from file, environment and command-line arguments.

    Without ``--config``, ``config.toml`` in the working directory is used
    if it exists.

    Parameters
    ----------
    args : argparse.Namespace | None, optional
        Parsed command-line arguments. If None, sys.argv is parsed.
    environ : Mapping[str, str] | None, optional
        Environment variables. If None, uses os.environ.

    Returns
    -------
    Config
        Loaded configuration.

    Raises
    ------
    ConfigValidationError
        If the configuration file cannot be loaded or the merged
        configuration is invalid.
    """
    if args is None:
        args = parse_args()
    if environ is None:
        environ = os.environ

    config_dict: dict[str, Any] = {}
    config_path = _resolve_config_path(args)
    if config_path is not None:
        if not config_path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise ConfigValidationError(msg, config_path)
        logger_basic.info('Loading configuration from "%s".', config_path)
        try:
            config_dict = load_config_from_file(config_path)
        except tomllib.TOMLDecodeError as e:
            msg = f'Failed to parse configuration file "{config_path}": {e}'
            raise ConfigValidationError(msg, config_path) from e

    for overrides in (load_config_from_env(environ), _cli_overrides(args)):
        if overrides:
            config_dict = merge_config(config_dict, overrides)

    validate_config_dict(config_dict, config_path)
    return dict_to_config(config_dict)
