"""Tests for ERPClient - mocked JSON-2 API tests."""

import json

import httpx
import pytest
import respx
from pydantic import ValidationError
from ram_schemas import RemoteCallRequest

from apps.web.erp.client import (
    ALLOWED_CALLS,
    ERPClient,
    ERPConfig,
    RetryPolicy,
    is_retryable,
)
from apps.web.erp.exceptions import (
    CallNotAllowed,
    RemoteRejection,
    TransientFailure,
)

BASE_URL = "https://erp.example.com"
PRODUCTS_URL = f"{BASE_URL}/json/2/product.product/search_read"
ORDER_CREATE_URL = f"{BASE_URL}/json/2/pos.order/create"

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config() -> ERPConfig:
    return ERPConfig(
        base_url=BASE_URL,
        api_key="erp-api-key-123",
        database="ram",
        timeout_seconds=2.0,
    )


@pytest.fixture
def erp(config: ERPConfig) -> ERPClient:
    """ERP client that retries without sleeping."""
    return ERPClient(config, retry=RetryPolicy(max_attempts=3, base_delay=0))


# =============================================================================
# Request shape
# =============================================================================


class TestRemoteCallRequest:
    """Tests for the immutable call envelope."""

    def test_request_is_frozen(self):
        request = RemoteCallRequest(model="product.product", method="search_read")

        with pytest.raises(ValidationError):
            request.model = "res.partner"  # type: ignore[misc]

    def test_wire_payload_for_search_read(self):
        request = RemoteCallRequest(
            model="product.product",
            method="search_read",
            domain=[("sale_ok", "=", True), "|", ("id", "=", 1), ("id", "=", 2)],
            fields=frozenset({"name", "id"}),
            params={"limit": 10},
        )

        assert request.wire_payload() == {
            "domain": [["sale_ok", "=", True], "|", ["id", "=", 1], ["id", "=", 2]],
            "fields": ["id", "name"],
            "limit": 10,
            "context": {"lang": "en_US"},
        }

    def test_wire_payload_for_create_has_no_domain(self):
        request = RemoteCallRequest(
            model="pos.order",
            method="create",
            params={"vals_list": [{"uuid": "k1"}]},
        )

        payload = request.wire_payload()

        assert "domain" not in payload
        assert payload["vals_list"] == [{"uuid": "k1"}]


class TestRetryPolicy:
    """Tests for backoff and retry eligibility."""

    def test_delay_is_exponential_and_capped(self):
        policy = RetryPolicy(base_delay=0.5, max_delay=4.0)

        assert policy.get_delay(0) == 0.5
        assert policy.get_delay(1) == 1.0
        assert policy.get_delay(2) == 2.0
        assert policy.get_delay(5) == 4.0

    def test_reads_are_retryable(self):
        request = RemoteCallRequest(model="product.product", method="search_read")
        assert is_retryable(request)

    def test_unkeyed_writes_are_not_retryable(self):
        request = RemoteCallRequest(model="pos.order", method="create")
        assert not is_retryable(request)

    def test_keyed_writes_are_retryable(self):
        request = RemoteCallRequest(
            model="pos.order", method="create", idempotency_key="key-1"
        )
        assert is_retryable(request)


# =============================================================================
# Calls
# =============================================================================


class TestERPClientCalls:
    """Tests for successful calls and wire details."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_search_read_sends_auth_and_database(self, erp):
        route = respx.post(PRODUCTS_URL).mock(
            return_value=httpx.Response(200, json=[{"id": 1, "name": "Ramen"}])
        )

        records = await erp.search_read(
            "product.product", [("sale_ok", "=", True)], ["id", "name"], limit=5
        )

        assert records == [{"id": 1, "name": "Ramen"}]
        sent = route.calls.last.request
        assert sent.headers["Authorization"] == "Bearer erp-api-key-123"
        assert sent.headers["X-Odoo-Database"] == "ram"
        body = json.loads(sent.content)
        assert body["domain"] == [["sale_ok", "=", True]]
        assert body["fields"] == ["id", "name"]
        assert body["limit"] == 5

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_returns_single_id(self, erp):
        respx.post(ORDER_CREATE_URL).mock(return_value=httpx.Response(200, json=[42]))

        order_id = await erp.create("pos.order", {"uuid": "k1"})

        assert order_id == 42

    @pytest.mark.asyncio
    @respx.mock
    async def test_write_sends_ids_and_vals(self, erp):
        route = respx.post(f"{BASE_URL}/json/2/pos.order/write").mock(
            return_value=httpx.Response(200, json=True)
        )

        assert await erp.write("pos.order", [7], {"state": "cancel"}) is True
        body = json.loads(route.calls.last.request.content)
        assert body["ids"] == [7]
        assert body["vals"] == {"state": "cancel"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_search_count_sends_domain(self, erp):
        route = respx.post(f"{BASE_URL}/json/2/pos.order/search_count").mock(
            return_value=httpx.Response(200, json=4)
        )

        count = await erp.search_count("pos.order", [("partner_id", "=", 7)])

        assert count == 4
        body = json.loads(route.calls[0].request.content)
        assert body["domain"] == [["partner_id", "=", 7]]
        assert "fields" not in body

    @pytest.mark.asyncio
    async def test_disallowed_call_never_reaches_network(self, erp):
        with respx.mock(assert_all_called=False) as router:
            route = router.post(url__regex=r".*").mock(
                return_value=httpx.Response(200, json=[])
            )

            with pytest.raises(CallNotAllowed):
                await erp.call(RemoteCallRequest(model="res.users", method="unlink"))

            assert not route.called

    def test_allow_list_covers_core_methods(self):
        assert ("product.product", "search_read") in ALLOWED_CALLS
        assert ("pos.order", "create") in ALLOWED_CALLS
        assert ("restaurant.reservation", "write") in ALLOWED_CALLS
        assert ("payment.provider", "write") not in ALLOWED_CALLS
        assert ("product.product", "read") not in ALLOWED_CALLS


# =============================================================================
# Failures
# =============================================================================


class TestERPClientFailures:
    """Tests for failure mapping and retry behaviour."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_read_retries_transient_errors(self, erp):
        route = respx.post(PRODUCTS_URL)
        route.side_effect = [
            httpx.Response(503),
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=[{"id": 1}]),
        ]

        records = await erp.search_read("product.product", [], ["id"])

        assert records == [{"id": 1}]
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_read_gives_up_after_max_attempts(self, erp):
        route = respx.post(PRODUCTS_URL).mock(return_value=httpx.Response(502))

        with pytest.raises(TransientFailure) as exc_info:
            await erp.search_read("product.product", [], ["id"])

        assert route.call_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.model == "product.product"

    @pytest.mark.asyncio
    @respx.mock
    async def test_last_attempt_failure_is_raised(self, erp):
        route = respx.post(PRODUCTS_URL)
        route.side_effect = [
            httpx.ConnectError("connection refused"),
            httpx.Response(503),
            httpx.Response(504),
        ]

        with pytest.raises(TransientFailure, match="504") as exc_info:
            await erp.search_read("product.product", [], ["id"])

        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_single_attempt_failure_records_one_attempt(self, erp):
        respx.post(ORDER_CREATE_URL).mock(return_value=httpx.Response(503))

        with pytest.raises(TransientFailure) as exc_info:
            await erp.create("pos.order", {"uuid": "k1"})

        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_unkeyed_create_is_attempted_once(self, erp):
        route = respx.post(ORDER_CREATE_URL).mock(
            side_effect=httpx.ReadTimeout("timed out")
        )

        with pytest.raises(TransientFailure):
            await erp.create("pos.order", {"uuid": "k1"})

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_keyed_create_is_retried(self, erp):
        route = respx.post(ORDER_CREATE_URL)
        route.side_effect = [
            httpx.ReadTimeout("timed out"),
            httpx.Response(200, json=[9]),
        ]

        order_id = await erp.create("pos.order", {"uuid": "k1"}, idempotency_key="k1")

        assert order_id == 9
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_maps_to_transient_failure(self, erp):
        respx.post(PRODUCTS_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

        with pytest.raises(TransientFailure) as exc_info:
            await erp.search_read("product.product", [], ["id"])

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_business_error_maps_to_rejection(self, erp):
        respx.post(PRODUCTS_URL).mock(
            return_value=httpx.Response(
                422,
                json={
                    "name": "odoo.exceptions.AccessError",
                    "message": "You are not allowed to access 'Product'",
                    "debug": "Traceback (most recent call last):\n  File ...",
                },
            )
        )

        with pytest.raises(RemoteRejection) as exc_info:
            await erp.search_read("product.product", [], ["id"])

        error = exc_info.value
        assert error.code == "AccessError"
        assert error.status_code == 422
        assert "Traceback" not in error.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejection_is_not_retried(self, erp):
        route = respx.post(PRODUCTS_URL).mock(
            return_value=httpx.Response(
                404, json={"name": "werkzeug.exceptions.NotFound", "message": "nope"}
            )
        )

        with pytest.raises(RemoteRejection):
            await erp.search_read("product.product", [], ["id"])

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejection_message_never_contains_api_key(self, erp):
        respx.post(PRODUCTS_URL).mock(
            return_value=httpx.Response(
                401,
                json={
                    "name": "odoo.exceptions.AccessDenied",
                    "message": "Invalid key erp-api-key-123\nmore detail",
                },
            )
        )

        with pytest.raises(RemoteRejection) as exc_info:
            await erp.search_read("product.product", [], ["id"])

        assert "erp-api-key-123" not in str(exc_info.value)
        assert "more detail" not in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_duplicate_key_rejection_is_detected(self, erp):
        respx.post(ORDER_CREATE_URL).mock(
            return_value=httpx.Response(
                422,
                json={
                    "name": "psycopg2.errors.UniqueViolation",
                    "message": 'duplicate key value violates unique constraint "pos_order_uuid_unique"',
                },
            )
        )

        with pytest.raises(RemoteRejection) as exc_info:
            await erp.create("pos.order", {"uuid": "k1"}, idempotency_key="k1")

        assert exc_info.value.is_duplicate_key

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body_maps_to_rejection(self, erp):
        respx.post(PRODUCTS_URL).mock(
            return_value=httpx.Response(200, content=b"<html>proxy</html>")
        )

        with pytest.raises(RemoteRejection):
            await erp.search_read("product.product", [], ["id"])
