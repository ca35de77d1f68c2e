"""ERP RPC client - typed bridge to the ERP's JSON object-model interface."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, SecretStr
from ram_schemas import Domain, RemoteCallRequest

from apps.web.erp.exceptions import (
    CallNotAllowed,
    RemoteRejection,
    TransientFailure,
)

logger = logging.getLogger(__name__)

RESERVATION_MODEL = "restaurant.reservation"

READ_METHODS = frozenset({"search_read", "read", "search_count"})

ALLOWED_CALLS: frozenset[tuple[str, str]] = frozenset(
    {
        ("product.product", "search_read"),
        ("payment.provider", "search_read"),
        ("restaurant.floor", "search_read"),
        ("restaurant.table", "search_read"),
        ("res.partner", "search_read"),
        ("res.partner", "create"),
        ("res.company", "search_read"),
        ("pos.session", "search_read"),
        ("pos.payment.method", "search_read"),
        ("pos.order", "search_read"),
        ("pos.order", "search_count"),
        ("pos.order", "create"),
        ("pos.order", "write"),
        ("pos.order", "add_payment"),
        ("pos.order", "action_pos_order_paid"),
        ("pos.order.line", "search_read"),
        (RESERVATION_MODEL, "search_read"),
        (RESERVATION_MODEL, "create"),
        (RESERVATION_MODEL, "write"),
    }
)

TRANSIENT_STATUS = frozenset({408, 429, 502, 503, 504})

# ERP error messages are shown to operators; keep them short.
MAX_MESSAGE_LENGTH = 300


class ERPConfig(BaseModel):
    """Connection details for the ERP."""

    base_url: str
    api_key: SecretStr
    database: str
    timeout_seconds: float = 10.0
    user_agent: str = "RAM-Restaurant-Website/1.0"


@dataclass
class RetryPolicy:
    """Bounded exponential backoff for transient failures."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    exponential_base: float = 2.0

    def get_delay(self, attempt: int) -> float:
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)


def is_retryable(request: RemoteCallRequest) -> bool:
    """
    Reads are always safe to repeat. Writes are only repeated when the caller
    tagged them with an idempotency key the ERP enforces as unique; otherwise
    a retried create could produce a duplicate order or reservation.
    """
    return request.method in READ_METHODS or request.idempotency_key is not None


class ERPClient:
    """
    Async client for the ERP's JSON-2 call interface.

    Every call goes through `call()`, which enforces the (model, method)
    allow-list, applies the request timeout and maps failures to
    TransientFailure / RemoteRejection. Use as an async context manager so the
    underlying HTTP connection pool is closed when the operation ends.

    Usage:
        async with ERPClient(config) as erp:
            products = await erp.search_read(
                "product.product", [("sale_ok", "=", True)], ["id", "name"]
            )
    """

    def __init__(
        self,
        config: ERPConfig,
        http_client: httpx.AsyncClient | None = None,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.retry = retry or RetryPolicy()
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds, transport=transport
        )
        self._owns_client = http_client is None

    async def __aenter__(self) -> "ERPClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Typed helpers
    # =========================================================================

    async def search_read(
        self,
        model: str,
        domain: Domain | list[Any],
        fields: set[str] | frozenset[str] | list[str],
        **params: Any,
    ) -> list[dict[str, Any]]:
        """Read records matching `domain`, projected onto `fields`."""
        result = await self.call(
            RemoteCallRequest(
                model=model,
                method="search_read",
                domain=domain,
                fields=frozenset(fields),
                params=params,
            )
        )
        return list(result or [])

    async def search_count(self, model: str, domain: Domain | list[Any]) -> int:
        """Number of records matching `domain`."""
        result = await self.call(
            RemoteCallRequest(model=model, method="search_count", domain=domain)
        )
        return int(result or 0)

    async def create(
        self,
        model: str,
        vals: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> int:
        """Create a single record and return its id."""
        result = await self.call(
            RemoteCallRequest(
                model=model,
                method="create",
                params={"vals_list": [vals]},
                idempotency_key=idempotency_key,
            )
        )
        ids = result if isinstance(result, list) else [result]
        if not ids or not isinstance(ids[0], int):
            raise RemoteRejection(
                "ERP returned no id for created record",
                model=model,
                method="create",
            )
        return ids[0]

    async def write(
        self,
        model: str,
        ids: list[int],
        vals: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> bool:
        """Update records; returns the ERP's acknowledgement."""
        result = await self.call(
            RemoteCallRequest(
                model=model,
                method="write",
                params={"ids": ids, "vals": vals},
                idempotency_key=idempotency_key,
            )
        )
        return bool(result)

    async def execute(
        self, model: str, method: str, ids: list[int], **params: Any
    ) -> Any:
        """Invoke a record business method (single attempt unless keyed)."""
        idempotency_key = params.pop("idempotency_key", None)
        return await self.call(
            RemoteCallRequest(
                model=model,
                method=method,
                params={"ids": ids, **params},
                idempotency_key=idempotency_key,
            )
        )

    # =========================================================================
    # Core call
    # =========================================================================

    async def call(self, request: RemoteCallRequest) -> Any:
        """
        Execute a remote call.

        Raises:
            CallNotAllowed: If (model, method) is not allow-listed.
            TransientFailure: If the ERP is unreachable after the permitted attempts.
            RemoteRejection: If the ERP reports a business error.
        """
        if (request.model, request.method) not in ALLOWED_CALLS:
            raise CallNotAllowed(
                f"Call {request.model}.{request.method} is not permitted",
                model=request.model,
                method=request.method,
            )

        attempts = self.retry.max_attempts if is_retryable(request) else 1

        attempt = 0
        while True:
            try:
                return await self._send(request)
            except TransientFailure as e:
                attempt += 1
                if attempt >= attempts:
                    e.attempts = attempts
                    logger.error(
                        "ERP %s.%s unavailable after %d attempt(s): %s",
                        request.model,
                        request.method,
                        attempts,
                        e.message,
                    )
                    raise
                delay = self.retry.get_delay(attempt - 1)
                logger.warning(
                    "ERP %s.%s failed (attempt %d/%d), retry in %.1fs: %s",
                    request.model,
                    request.method,
                    attempt,
                    attempts,
                    delay,
                    e.message,
                )
                await asyncio.sleep(delay)

    def _url(self, request: RemoteCallRequest) -> str:
        return f"{self.config.base_url.rstrip('/')}/json/2/{request.model}/{request.method}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key.get_secret_value()}",
            "X-Odoo-Database": self.config.database,
            "User-Agent": self.config.user_agent,
            "Content-Type": "application/json",
        }

    async def _send(self, request: RemoteCallRequest) -> Any:
        logger.debug("ERP call %s.%s", request.model, request.method)
        try:
            response = await self._client.post(
                self._url(request),
                json=request.wire_payload(),
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            raise TransientFailure(
                f"ERP request timed out after {self.config.timeout_seconds}s",
                model=request.model,
                method=request.method,
            ) from e
        except httpx.RequestError as e:
            raise TransientFailure(
                f"ERP connection failed: {type(e).__name__}",
                model=request.model,
                method=request.method,
            ) from e

        if response.status_code in TRANSIENT_STATUS:
            raise TransientFailure(
                f"ERP temporarily unavailable ({response.status_code})",
                model=request.model,
                method=request.method,
            )

        if response.is_error:
            raise self._rejection(request, response)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteRejection(
                "ERP returned a malformed response",
                model=request.model,
                method=request.method,
                status_code=response.status_code,
            ) from e

    def _rejection(
        self, request: RemoteCallRequest, response: httpx.Response
    ) -> RemoteRejection:
        """Map an ERP error body to a RemoteRejection, dropping tracebacks."""
        code: str | None = None
        message = response.reason_phrase or "ERP error"
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            name = body.get("name")
            if isinstance(name, str) and name:
                code = name.rsplit(".", 1)[-1]
            if isinstance(body.get("message"), str) and body["message"]:
                message = body["message"]

        return RemoteRejection(
            self._sanitize(message),
            model=request.model,
            method=request.method,
            code=code,
            status_code=response.status_code,
        )

    def _sanitize(self, message: str) -> str:
        secret = self.config.api_key.get_secret_value()
        if secret:
            message = message.replace(secret, "[redacted]")
        # First line only: tracebacks and SQL detail follow on later lines.
        message = message.strip().splitlines()[0] if message.strip() else message
        return message[:MAX_MESSAGE_LENGTH]
