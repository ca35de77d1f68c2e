"""Mock ERP backend for development and testing.

Speaks the same JSON-2 wire protocol as the real ERP through
`httpx.MockTransport`, so the production ERPClient runs against it unchanged.
"""

import copy
import json
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import httpx

from apps.web.erp.client import RESERVATION_MODEL
from apps.web.erp.wire import m2o_id, to_erp_datetime

MODEL_FIELDS: dict[str, set[str]] = {
    "product.product": {
        "name",
        "list_price",
        "sale_ok",
        "available_in_pos",
        "active",
        "categ_id",
        "pos_categ_ids",
        "description_sale",
        "taxes_id",
    },
    "payment.provider": {
        "name",
        "code",
        "state",
        "stripe_publishable_key",
        "stripe_secret_key",
        "stripe_webhook_secret",
        "razorpay_key_id",
        "razorpay_key_secret",
        "razorpay_webhook_secret",
    },
    "restaurant.floor": {"name", "table_ids", "active"},
    "restaurant.table": {"table_number", "floor_id", "seats", "active"},
    "res.partner": {"name", "email", "phone"},
    "res.company": {"name", "currency_id"},
    "pos.session": {"name", "state", "config_id"},
    "pos.payment.method": {"name", "is_online_payment", "is_cash_count"},
    "pos.order": {
        "name",
        "uuid",
        "session_id",
        "partner_id",
        "lines",
        "amount_total",
        "amount_tax",
        "amount_paid",
        "amount_return",
        "state",
        "pos_reference",
        "general_customer_note",
        "date_order",
    },
    "pos.order.line": {
        "order_id",
        "product_id",
        "qty",
        "price_unit",
        "price_subtotal",
        "price_subtotal_incl",
        "customer_note",
    },
    RESERVATION_MODEL: {
        "table_id",
        "floor_id",
        "party_size",
        "start",
        "stop",
        "partner_id",
        "state",
        "hold_expires_at",
        "booking_key",
    },
}

UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "pos.order": ("uuid",),
    RESERVATION_MODEL: ("booking_key",),
}

PATH_RE = re.compile(r"/json/2/(?P<model>[\w.]+)/(?P<method>\w+)$")


class MockERPError(Exception):
    """Raised inside the mock to produce an ERP-shaped error response."""

    def __init__(self, name: str, message: str, status: int = 422) -> None:
        super().__init__(message)
        self.name = name
        self.message = message
        self.status = status


def _is_many2one(value: Any) -> bool:
    return isinstance(value, list) and len(value) == 2 and isinstance(value[1], str)


def _compare(field_value: Any, operator: str, value: Any) -> bool:  # noqa: PLR0911
    if _is_many2one(field_value):
        field_value = m2o_id(field_value)
    match operator:
        case "=":
            return bool(field_value == value)
        case "!=":
            return bool(field_value != value)
        case "in" | "not in":
            if isinstance(field_value, list):
                # x2many: any linked id matches
                hit = any(v in value for v in field_value)
            else:
                hit = field_value in value
            return hit if operator == "in" else not hit
        case "<" | "<=" | ">" | ">=":
            if field_value is False or field_value is None:
                return False
            return {
                "<": field_value < value,
                "<=": field_value <= value,
                ">": field_value > value,
                ">=": field_value >= value,
            }[operator]
        case "ilike" | "not ilike":
            hit = str(value).lower() in str(field_value or "").lower()
            return hit if operator == "ilike" else not hit
        case "=ilike":
            return str(field_value or "").lower() == str(value).lower()
    raise MockERPError("builtins.ValueError", f"Invalid domain operator {operator!r}")


def evaluate_domain(record: dict[str, Any], domain: list[Any]) -> bool:
    """Evaluate a Polish-notation domain against a record (implicit AND)."""

    def parse(position: int) -> tuple[bool, int]:
        term = domain[position]
        if term == "!":
            value, nxt = parse(position + 1)
            return not value, nxt
        if term in ("&", "|"):
            left, nxt = parse(position + 1)
            right, nxt = parse(nxt)
            return (left and right) if term == "&" else (left or right), nxt
        field, operator, value = term
        return _compare(record.get(field, False), operator, value), position + 1

    position = 0
    result = True
    while position < len(domain):
        value, position = parse(position)
        result = result and value
    return result


class MockERP:
    """
    In-memory ERP with the models the storefront integration touches.

    Supports search_read / read / search_count / create / write plus the POS
    order payment methods. Unique fields are enforced like database
    constraints so idempotent creates can be exercised.
    """

    def __init__(self, seed_demo_data: bool = False) -> None:
        self.records: dict[str, dict[int, dict[str, Any]]] = {
            model: {} for model in MODEL_FIELDS
        }
        self._next_id: dict[str, int] = dict.fromkeys(MODEL_FIELDS, 1)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        if seed_demo_data:
            self.seed_demo_data()

    # =========================================================================
    # Data management
    # =========================================================================

    def seed(self, model: str, records: Iterable[dict[str, Any]]) -> list[int]:
        """Insert records as-is (ids may be supplied)."""
        ids = []
        for record in records:
            ids.append(self._insert(model, dict(record)))
        return ids

    def get(self, model: str, record_id: int) -> dict[str, Any] | None:
        return self.records[model].get(record_id)

    def all(self, model: str) -> list[dict[str, Any]]:
        return list(self.records[model].values())

    def _insert(self, model: str, vals: dict[str, Any]) -> int:
        self._check_fields(model, vals.keys() - {"id"})
        for field in UNIQUE_FIELDS.get(model, ()):
            value = vals.get(field)
            if value and any(r.get(field) == value for r in self.all(model)):
                table = model.replace(".", "_")
                raise MockERPError(
                    "psycopg2.errors.UniqueViolation",
                    f'duplicate key value violates unique constraint "{table}_{field}_unique"\n'
                    f"DETAIL: Key ({field})=({value}) already exists.",
                )
        record_id = int(vals.pop("id", 0) or self._next_id[model])
        self._next_id[model] = max(self._next_id[model], record_id + 1)
        self.records[model][record_id] = {"id": record_id, **vals}
        return record_id

    def _check_fields(self, model: str, fields: Iterable[str]) -> None:
        unknown = sorted(set(fields) - MODEL_FIELDS[model] - {"id"})
        if unknown:
            raise MockERPError(
                "builtins.ValueError",
                f"Invalid field {unknown[0]!r} on model {model!r}",
            )

    def seed_demo_data(self) -> None:
        """A small restaurant: menu, one Stripe provider, two floors, open session."""
        self.seed(
            "product.product",
            [
                {
                    "id": 1,
                    "name": "Tonkotsu Ramen",
                    "list_price": 14.5,
                    "sale_ok": True,
                    "available_in_pos": True,
                    "active": True,
                    "categ_id": [1, "Food / Ramen"],
                    "pos_categ_ids": [1],
                    "description_sale": "Pork broth, chashu, ajitama",
                },
                {
                    "id": 2,
                    "name": "Gyoza (6 pcs)",
                    "list_price": 7.0,
                    "sale_ok": True,
                    "available_in_pos": True,
                    "active": True,
                    "categ_id": [2, "Food / Sides"],
                    "pos_categ_ids": [2],
                    "description_sale": False,
                },
                {
                    "id": 3,
                    "name": "Matcha Cheesecake",
                    "list_price": 6.5,
                    "sale_ok": True,
                    "available_in_pos": False,
                    "active": True,
                    "categ_id": [3, "Food / Desserts"],
                    "pos_categ_ids": [3],
                    "description_sale": False,
                },
            ],
        )
        self.seed(
            "payment.provider",
            [
                {
                    "id": 1,
                    "name": "Stripe",
                    "code": "stripe",
                    "state": "test",
                    "stripe_publishable_key": "pk_test_demo",
                    "stripe_secret_key": "sk_test_demo",
                    "stripe_webhook_secret": "whsec_demo",
                }
            ],
        )
        self.seed(
            "restaurant.floor",
            [
                {"id": 1, "name": "Main Floor", "table_ids": [1, 2, 3], "active": True},
                {"id": 2, "name": "Terrace", "table_ids": [4], "active": True},
            ],
        )
        self.seed(
            "restaurant.table",
            [
                {"id": 1, "table_number": 1, "floor_id": [1, "Main Floor"], "seats": 4, "active": True},
                {"id": 2, "table_number": 2, "floor_id": [1, "Main Floor"], "seats": 2, "active": True},
                {"id": 3, "table_number": 3, "floor_id": [1, "Main Floor"], "seats": 6, "active": True},
                {"id": 4, "table_number": 10, "floor_id": [2, "Terrace"], "seats": 4, "active": True},
            ],
        )
        self.seed("res.company", [{"id": 1, "name": "RAM", "currency_id": [1, "USD"]}])
        self.seed(
            "pos.session",
            [{"id": 1, "name": "POS/0001", "state": "opened", "config_id": [1, "Restaurant"]}],
        )
        self.seed(
            "pos.payment.method",
            [
                {"id": 1, "name": "Cash", "is_online_payment": False, "is_cash_count": True},
                {"id": 2, "name": "Stripe", "is_online_payment": False, "is_cash_count": False},
            ],
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return self._error(
                MockERPError(
                    "odoo.exceptions.AccessDenied", "Access Denied", status=401
                )
            )

        match = PATH_RE.search(request.url.path)
        if match is None:
            return self._error(
                MockERPError("werkzeug.exceptions.NotFound", "Not Found", status=404)
            )

        model, method = match["model"], match["method"]
        params = json.loads(request.content or b"{}")
        self.calls.append((model, method, params))
        try:
            if model not in MODEL_FIELDS:
                raise MockERPError(
                    "werkzeug.exceptions.NotFound",
                    f"Model {model!r} does not exist",
                    status=404,
                )
            result = self.dispatch(model, method, params)
        except MockERPError as e:
            return self._error(e)
        return httpx.Response(200, json=result)

    def dispatch(self, model: str, method: str, params: dict[str, Any]) -> Any:
        handler = getattr(self, f"_rpc_{method}", None)
        if handler is None:
            raise MockERPError(
                "werkzeug.exceptions.NotFound",
                f"Method {method!r} does not exist on {model!r}",
                status=404,
            )
        return handler(model, params)

    def _error(self, error: MockERPError) -> httpx.Response:
        return httpx.Response(
            error.status,
            json={
                "name": error.name,
                "message": error.message,
                "arguments": [error.message],
                "context": {},
                "debug": "Traceback (most recent call last):\n  ...",
            },
        )

    # =========================================================================
    # Methods
    # =========================================================================

    def _project(self, record: dict[str, Any], fields: list[str]) -> dict[str, Any]:
        if not fields:
            return copy.deepcopy(record)
        return {"id": record["id"], **{f: copy.deepcopy(record.get(f, False)) for f in fields}}

    def _search(self, model: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        domain = params.get("domain", [])
        for term in domain:
            if isinstance(term, list):
                self._check_fields(model, [term[0]])
        records = [r for r in self.all(model) if evaluate_domain(r, domain)]
        order = params.get("order")
        if order:
            field, _, direction = order.partition(" ")
            records.sort(
                key=lambda r: (r.get(field) is False, r.get(field)),
                reverse=direction.strip().lower() == "desc",
            )
        else:
            records.sort(key=lambda r: r["id"])
        offset = int(params.get("offset") or 0)
        limit = params.get("limit")
        records = records[offset:]
        if limit:
            records = records[: int(limit)]
        return records

    def _rpc_search_read(self, model: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        fields = params.get("fields") or []
        self._check_fields(model, fields)
        return [self._project(r, fields) for r in self._search(model, params)]

    def _rpc_search_count(self, model: str, params: dict[str, Any]) -> int:
        return len(self._search(model, {"domain": params.get("domain", [])}))

    def _rpc_read(self, model: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        fields = params.get("fields") or []
        self._check_fields(model, fields)
        records = []
        for record_id in params.get("ids", []):
            record = self.get(model, record_id)
            if record is None:
                raise MockERPError(
                    "odoo.exceptions.MissingError",
                    f"Record does not exist or has been deleted. ({model}({record_id},))",
                )
            records.append(self._project(record, fields))
        return records

    def _rpc_create(self, model: str, params: dict[str, Any]) -> list[int]:
        ids = []
        for vals in params.get("vals_list", []):
            vals = dict(vals)
            lines = vals.pop("lines", None) if model == "pos.order" else None
            record_id = self._insert(model, vals)
            if lines is not None:
                self._create_order_lines(record_id, lines)
            ids.append(record_id)
        return ids

    def _create_order_lines(self, order_id: int, commands: list[Any]) -> None:
        line_ids = []
        for command in commands:
            # (0, 0, vals) creates a new line
            if command[0] != 0:
                continue
            vals = {"order_id": [order_id, f"Order {order_id}"], **command[2]}
            line_ids.append(self._insert("pos.order.line", vals))
        order = self.records["pos.order"][order_id]
        order["lines"] = line_ids
        order.setdefault("state", "draft")
        order.setdefault("pos_reference", f"Order {order_id:05d}")
        order.setdefault("amount_paid", 0.0)
        order.setdefault("date_order", to_erp_datetime(datetime.now(UTC)))

    def _rpc_write(self, model: str, params: dict[str, Any]) -> bool:
        vals = params.get("vals", {})
        self._check_fields(model, vals.keys())
        for record_id in params.get("ids", []):
            record = self.get(model, record_id)
            if record is None:
                raise MockERPError(
                    "odoo.exceptions.MissingError",
                    f"Record does not exist or has been deleted. ({model}({record_id},))",
                )
            record.update(copy.deepcopy(vals))
        return True

    def _rpc_add_payment(self, model: str, params: dict[str, Any]) -> bool:
        data = params.get("data", {})
        for record_id in params.get("ids", []):
            order = self.records[model][record_id]
            order["amount_paid"] = float(order.get("amount_paid") or 0) + float(
                data.get("amount", 0)
            )
        return True

    def _rpc_action_pos_order_paid(self, model: str, params: dict[str, Any]) -> bool:
        for record_id in params.get("ids", []):
            self.records[model][record_id]["state"] = "paid"
        return True
