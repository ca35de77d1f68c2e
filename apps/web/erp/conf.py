"""
ERP connection configuration and client factory.

Connection details come from Django settings (populated from the environment
by django-environ). `ERP_MODE=mock` swaps the network for the in-memory
MockERP while keeping the real client and wire format.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import TypeVar
from urllib.parse import urlsplit, urlunsplit

from django.conf import settings

from apps.web.erp.client import ERPClient, ERPConfig, RetryPolicy
from apps.web.erp.exceptions import ConfigurationFailure
from apps.web.erp.mock import MockERP

logger = logging.getLogger(__name__)

T = TypeVar("T")

MODE_JSON2 = "json2"
MODE_MOCK = "mock"


def is_mock_mode() -> bool:
    return getattr(settings, "ERP_MODE", MODE_JSON2) == MODE_MOCK


def _normalize_base_url(raw: str) -> str:
    parts = urlsplit(raw.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationFailure("ERP_BASE_URL must be an http(s) URL")
    if parts.scheme == "http" and not getattr(settings, "ERP_ALLOW_INSECURE", False):
        logger.warning("ERP_BASE_URL uses http://, upgrading to https://")
        parts = parts._replace(scheme="https")
    return urlunsplit(parts._replace(query="", fragment="")).rstrip("/")


def load_config() -> ERPConfig:
    """
    Build the ERP connection config from settings.

    Raises:
        ConfigurationFailure: If the URL, API key or database is missing or invalid.
    """
    if is_mock_mode():
        return ERPConfig(
            base_url="https://erp.mock",
            api_key="mock-api-key",
            database="mock",
            timeout_seconds=settings.ERP_TIMEOUT_SECONDS,
        )

    missing = [
        name
        for name in ("ERP_BASE_URL", "ERP_API_KEY", "ERP_DATABASE")
        if not getattr(settings, name, "")
    ]
    if missing:
        raise ConfigurationFailure(
            f"Missing ERP configuration: {', '.join(missing)}"
        )

    timeout = float(settings.ERP_TIMEOUT_SECONDS)
    if timeout <= 0:
        raise ConfigurationFailure("ERP_TIMEOUT_SECONDS must be positive")

    return ERPConfig(
        base_url=_normalize_base_url(settings.ERP_BASE_URL),
        api_key=settings.ERP_API_KEY,
        database=settings.ERP_DATABASE,
        timeout_seconds=timeout,
    )


def load_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(1, int(settings.ERP_MAX_ATTEMPTS)),
        base_delay=float(settings.ERP_RETRY_BASE_DELAY),
        max_delay=float(settings.ERP_RETRY_MAX_DELAY),
    )


@lru_cache(maxsize=1)
def get_mock_backend() -> MockERP:
    """Process-wide mock ERP, seeded with demo data (development only)."""
    return MockERP(seed_demo_data=True)


def get_client() -> ERPClient:
    """Create an ERP client for one logical operation. Close it when done."""
    transport = None
    if is_mock_mode():
        transport = get_mock_backend().transport()
    return ERPClient(load_config(), retry=load_retry_policy(), transport=transport)


def run_with_client(operation: Callable[[ERPClient], Awaitable[T]]) -> T:
    """
    Run an async ERP operation from sync code.

    Opens a client, awaits `operation(client)` and closes the client, all
    inside a single event loop.
    """

    async def _run() -> T:
        async with get_client() as erp:
            return await operation(erp)

    return asyncio.run(_run())
