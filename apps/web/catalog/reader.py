"""
Catalog & reference reader - read-only ERP queries for the storefront.

Every entity has a fixed field projection; nothing outside it is requested
from the ERP. Payment provider secrets are only requested with
`FieldScope.CREDENTIALS`, which only the payment resolver uses.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from ram_schemas import (
    Customer,
    Floor,
    PaymentProvider,
    PosSession,
    Product,
    ProviderState,
    Table,
)

from apps.web.erp.client import ERPClient
from apps.web.erp.exceptions import ERPError
from apps.web.erp.wire import m2o_id, m2o_name, money, text

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CURRENCY = "usd"

# =============================================================================
# Field projections
# =============================================================================

PRODUCT_FIELDS = frozenset(
    {
        "id",
        "name",
        "list_price",
        "sale_ok",
        "available_in_pos",
        "categ_id",
        "description_sale",
    }
)
PROVIDER_FIELDS = frozenset({"id", "name", "code", "state"})
FLOOR_FIELDS = frozenset({"id", "name", "table_ids"})
TABLE_FIELDS = frozenset({"id", "table_number", "floor_id", "seats"})
CUSTOMER_FIELDS = frozenset({"id", "name", "email", "phone"})
SESSION_FIELDS = frozenset({"id", "name", "config_id"})


@dataclass(frozen=True)
class CredentialFields:
    """Where a provider module keeps its keys on payment.provider."""

    publishable: str
    secret: str
    webhook: str


PROVIDER_CREDENTIAL_FIELDS: dict[str, CredentialFields] = {
    "stripe": CredentialFields(
        publishable="stripe_publishable_key",
        secret="stripe_secret_key",
        webhook="stripe_webhook_secret",
    ),
    "razorpay": CredentialFields(
        publishable="razorpay_key_id",
        secret="razorpay_key_secret",
        webhook="razorpay_webhook_secret",
    ),
}


class FieldScope(str, Enum):
    """Which provider fields a caller may see."""

    PUBLIC = "public"
    CREDENTIALS = "credentials"


def provider_fields(code: str | None, scope: FieldScope) -> frozenset[str]:
    """
    Projection for payment.provider.

    Credential fields are module-specific, so they are only requested for a
    known provider code. Secret and webhook fields additionally require the
    CREDENTIALS scope.
    """
    keys = PROVIDER_CREDENTIAL_FIELDS.get(code or "")
    if keys is None:
        return PROVIDER_FIELDS
    fields = {*PROVIDER_FIELDS, keys.publishable}
    if scope is FieldScope.CREDENTIALS:
        fields |= {keys.secret, keys.webhook}
    return frozenset(fields)


# =============================================================================
# Record mapping
# =============================================================================


def _product(record: dict[str, Any]) -> Product:
    return Product(
        id=record["id"],
        name=text(record.get("name")) or "",
        price=money(record.get("list_price")),
        available=bool(record.get("sale_ok")) and bool(record.get("available_in_pos")),
        category=m2o_name(record.get("categ_id")),
        description=text(record.get("description_sale")) or "",
    )


def _provider_state(value: Any) -> ProviderState:
    try:
        return ProviderState(value)
    except ValueError:
        return ProviderState.DISABLED


def _provider(record: dict[str, Any]) -> PaymentProvider:
    code = text(record.get("code")) or ""
    keys = PROVIDER_CREDENTIAL_FIELDS.get(code)
    publishable = secret = webhook = None
    if keys is not None:
        publishable = text(record.get(keys.publishable))
        secret = text(record.get(keys.secret))
        webhook = text(record.get(keys.webhook))
    return PaymentProvider(
        id=record["id"],
        name=text(record.get("name")) or code,
        code=code,
        state=_provider_state(record.get("state")),
        publishable_credential=publishable,
        secret_credential=secret,
        webhook_credential=webhook,
    )


def _table(record: dict[str, Any]) -> Table:
    number = text(record.get("table_number"))
    return Table(
        id=record["id"],
        name=number or str(record["id"]),
        floor_id=m2o_id(record.get("floor_id")),
        capacity=int(record.get("seats") or 0),
    )


def _customer(record: dict[str, Any]) -> Customer:
    return Customer(
        id=record["id"],
        name=text(record.get("name")) or "",
        email=text(record.get("email")),
        phone=text(record.get("phone")),
    )


class CatalogReader:
    """
    Read-only queries over ERP reference data.

    ERP failures propagate unchanged, annotated with the entity being read.

    Usage:
        async with get_client() as erp:
            products = await CatalogReader(erp).list_products(query="ramen")
    """

    def __init__(self, erp: ERPClient) -> None:
        self.erp = erp

    async def _read(self, entity: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except ERPError as e:
            logger.warning("Catalog read of %s failed: %s", entity, e.message)
            raise e.annotate(entity)

    # =========================================================================
    # Products
    # =========================================================================

    async def list_products(
        self, query: str | None = None, limit: int = 100, offset: int = 0
    ) -> list[Product]:
        """Sellable products for the menu, optionally filtered by name."""
        domain: list[Any] = [
            ("sale_ok", "=", True),
            ("available_in_pos", "=", True),
            ("name", "not ilike", "tip"),
        ]
        if query:
            domain.append(("name", "ilike", query))
        records = await self._read(
            "product",
            self.erp.search_read(
                "product.product",
                domain,
                PRODUCT_FIELDS,
                limit=limit,
                offset=offset,
                order="name asc",
            ),
        )
        return [_product(r) for r in records]

    async def get_products(self, product_ids: list[int]) -> dict[int, Product]:
        """
        Current catalog state for specific products, keyed by id.

        Unavailable products are included (with `available=False`); ids the
        ERP does not know are absent.
        """
        if not product_ids:
            return {}
        records = await self._read(
            "product",
            self.erp.search_read(
                "product.product",
                [("id", "in", sorted(set(product_ids)))],
                PRODUCT_FIELDS,
            ),
        )
        return {r["id"]: _product(r) for r in records}

    # =========================================================================
    # Payment providers
    # =========================================================================

    async def list_payment_providers(
        self,
        code: str | None = None,
        *,
        scope: FieldScope = FieldScope.PUBLIC,
    ) -> list[PaymentProvider]:
        """Payment providers, ordered by id. Secrets only with CREDENTIALS scope."""
        domain: list[Any] = [("code", "=", code)] if code else []
        records = await self._read(
            "payment_provider",
            self.erp.search_read(
                "payment.provider",
                domain,
                provider_fields(code, scope),
                order="id asc",
            ),
        )
        return [_provider(r) for r in records]

    # =========================================================================
    # Floors and tables
    # =========================================================================

    async def list_floors(self) -> list[Floor]:
        records = await self._read(
            "floor",
            self.erp.search_read("restaurant.floor", [], FLOOR_FIELDS, order="id asc"),
        )
        return [
            Floor(
                id=r["id"],
                name=text(r.get("name")) or "",
                table_ids=list(r.get("table_ids") or []),
            )
            for r in records
        ]

    async def list_tables(self, floor_id: int | None = None) -> list[Table]:
        domain: list[Any] = [("active", "=", True)]
        if floor_id is not None:
            domain.append(("floor_id", "=", floor_id))
        records = await self._read(
            "table",
            self.erp.search_read("restaurant.table", domain, TABLE_FIELDS, order="id asc"),
        )
        return [_table(r) for r in records]

    async def get_table(self, table_id: int) -> Table | None:
        records = await self._read(
            "table",
            self.erp.search_read(
                "restaurant.table",
                [("id", "=", table_id), ("active", "=", True)],
                TABLE_FIELDS,
                limit=1,
            ),
        )
        return _table(records[0]) if records else None

    # =========================================================================
    # Customers
    # =========================================================================

    async def find_customer(self, email: str) -> Customer | None:
        records = await self._read(
            "customer",
            self.erp.search_read(
                "res.partner",
                [("email", "=ilike", email)],
                CUSTOMER_FIELDS,
                limit=1,
                order="id asc",
            ),
        )
        return _customer(records[0]) if records else None

    async def list_customers(
        self, query: str | None = None, limit: int = 20, offset: int = 0
    ) -> list[Customer]:
        """Staff lookup by name or email."""
        domain: list[Any] = []
        if query:
            domain = ["|", ("name", "ilike", query), ("email", "ilike", query)]
        records = await self._read(
            "customer",
            self.erp.search_read(
                "res.partner",
                domain,
                CUSTOMER_FIELDS,
                limit=limit,
                offset=offset,
                order="id desc",
            ),
        )
        return [_customer(r) for r in records]

    # =========================================================================
    # Point of sale
    # =========================================================================

    async def find_open_session(self) -> PosSession | None:
        """The open POS session, if the restaurant is taking orders."""
        records = await self._read(
            "pos_session",
            self.erp.search_read(
                "pos.session", [("state", "=", "opened")], SESSION_FIELDS, limit=1
            ),
        )
        if not records:
            return None
        record = records[0]
        return PosSession(
            id=record["id"],
            config_id=m2o_id(record.get("config_id")),
            name=text(record.get("name")) or "",
        )

    async def company_currency(self) -> str:
        """Lower-case ISO code of the company currency."""
        records = await self._read(
            "company",
            self.erp.search_read(
                "res.company", [], {"id", "currency_id"}, limit=1, order="id asc"
            ),
        )
        if records:
            name = m2o_name(records[0].get("currency_id"))
            if name:
                return name.lower()
        return DEFAULT_CURRENCY

    async def find_payment_method(self, name: str) -> int | None:
        """
        POS payment method to book an external payment against.

        Prefers a non-online method matching `name`, then any non-cash,
        non-online method.
        """
        fields = {"id", "name"}
        for domain in (
            [("name", "ilike", name), ("is_online_payment", "=", False)],
            [("is_cash_count", "=", False), ("is_online_payment", "=", False)],
        ):
            records = await self._read(
                "payment_method",
                self.erp.search_read(
                    "pos.payment.method", domain, fields, limit=1, order="id asc"
                ),
            )
            if records:
                return int(records[0]["id"])
        return None
