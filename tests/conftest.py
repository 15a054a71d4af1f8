"""Shared fixtures for DDNS Multiplexer tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from ddns_multiplexer.config import Config

if TYPE_CHECKING:
    from collections.abc import Callable


ACCOUNT: dict[str, str] = {
    "username": "router",
    "password": "router-secret",
    "domain": "home.example.org",
}

# Query parameters matching ACCOUNT
VALID_QUERY: dict[str, str] = {
    "username": "router",
    "passwd": "router-secret",
    "domain": "home.example.org",
    "ipaddr": "198.51.100.7",
}


@pytest.fixture
def make_config() -> Callable[..., Config]:
    """Create a factory for configurations with the test account."""

    def _make_config(*providers: dict[str, Any], **sections: Any) -> Config:
        return Config.model_validate(
            {"account": ACCOUNT, "providers": list(providers), **sections},
        )

    return _make_config
