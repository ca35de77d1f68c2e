"""
Cart & order orchestrator - turns a validated cart into exactly one ERP order.

Checkout re-validates every line against the live catalog, resolves the
payment provider, and creates a `pos.order` tagged with the caller's
idempotency key (stored as the order's unique `uuid`). A replayed checkout,
or a create the ERP rejects as a duplicate key, returns the existing order.
"""

import logging
from decimal import Decimal
from typing import Any

from ram_schemas import Cart, CartStatus, CustomerInfo, Order, OrderLine, OrderStatus

from apps.web.catalog.reader import CatalogReader
from apps.web.core.exceptions import (
    ProviderUnavailable,
    StaleCartItem,
    StaleLine,
    StorefrontError,
    StoreClosed,
    ValidationFailure,
)
from apps.web.erp.client import ERPClient
from apps.web.erp.exceptions import ERPError, RemoteRejection
from apps.web.erp.wire import from_erp_datetime, m2o_id, money, text
from apps.web.orders.customers import ensure_customer
from apps.web.payments.resolver import PaymentProviderResolver

logger = logging.getLogger(__name__)

ORDER_FIELDS = frozenset(
    {
        "id",
        "name",
        "uuid",
        "pos_reference",
        "amount_total",
        "amount_paid",
        "state",
        "date_order",
    }
)
LINE_FIELDS = frozenset({"id", "order_id", "product_id", "qty", "price_unit"})

PAID_STATES = frozenset({"paid", "done", "invoiced"})

CHECKOUT_FAILED_MESSAGE = "We couldn't place your order. Please try again."


def find_stale_lines(cart: Cart, products: dict[int, Any]) -> list[StaleLine]:
    """Lines whose product vanished, became unavailable, or changed price."""
    stale = []
    for line in cart.lines:
        product = products.get(line.product_id)
        if product is None or not product.available:
            stale.append(StaleLine(product_id=line.product_id, reason="unavailable"))
        elif product.price != line.unit_price:
            stale.append(
                StaleLine(
                    product_id=line.product_id,
                    reason="price_changed",
                    current_price=product.price,
                )
            )
    return stale


class OrderOrchestrator:
    """
    Cart-to-order lifecycle against the ERP.

    Usage:
        async with get_client() as erp:
            order = await OrderOrchestrator(erp).checkout(cart, "stripe", key)
    """

    def __init__(
        self,
        erp: ERPClient,
        reader: CatalogReader | None = None,
        resolver: PaymentProviderResolver | None = None,
    ) -> None:
        self.erp = erp
        self.reader = reader or CatalogReader(erp)
        self.resolver = resolver or PaymentProviderResolver(self.reader)

    # =========================================================================
    # Checkout
    # =========================================================================

    async def checkout(
        self,
        cart: Cart,
        payment_code: str,
        idempotency_key: str,
        customer: CustomerInfo | None = None,
        note: str = "",
    ) -> Order:
        """
        Create the ERP order for `cart`.

        A key that already has an order returns that order before anything
        about the cart is checked, so a retry after a lost response succeeds
        even if the cart was emptied or the catalog changed since.

        The cart is updated in place: `confirmed` with its lines cleared once
        the ERP acknowledged the order, `active` again for correctable errors,
        `failed` (with `last_error`) when the ERP call failed.

        Raises:
            ValidationFailure: Empty cart or missing idempotency key.
            StaleCartItem: Lines changed in the catalog; cart is kept.
            ProviderUnavailable: No active provider for `payment_code`.
            StoreClosed: No open POS session.
            TransientFailure / RemoteRejection: ERP failure; safe to retry
                with the same key.
        """
        if not idempotency_key:
            raise ValidationFailure.for_field("idempotency_key", "Idempotency key is required")

        previous_status = cart.status
        cart.status = CartStatus.CHECKING_OUT
        cart.last_error = None
        try:
            existing = await self.find_by_key(idempotency_key)
            if existing is not None:
                logger.info(
                    "Checkout replay for key=%s -> order_id=%s", idempotency_key, existing.id
                )
                order = await self._with_provider(existing, payment_code)
            elif not cart.lines:
                raise ValidationFailure.for_field("cart", "Cart is empty")
            else:
                order = await self._place_order(
                    cart, payment_code, idempotency_key, customer, note
                )
        except StorefrontError:
            cart.status = CartStatus.ACTIVE if cart.lines else previous_status
            raise
        except ERPError as e:
            cart.status = CartStatus.FAILED
            cart.last_error = CHECKOUT_FAILED_MESSAGE
            logger.warning(
                "Checkout failed for cart=%s key=%s: %s", cart.cart_id, idempotency_key, e.message
            )
            raise

        cart.lines = []
        cart.status = CartStatus.CONFIRMED
        logger.info(
            "Checkout confirmed: cart=%s order_id=%s reference=%s",
            cart.cart_id,
            order.id,
            order.reference,
        )
        return order

    async def _place_order(
        self,
        cart: Cart,
        payment_code: str,
        idempotency_key: str,
        customer: CustomerInfo | None,
        note: str,
    ) -> Order:
        products = await self.reader.get_products([line.product_id for line in cart.lines])
        stale = find_stale_lines(cart, products)
        if stale:
            raise StaleCartItem(stale)

        provider = await self.resolver.resolve_active_provider(payment_code)

        session = await self.reader.find_open_session()
        if session is None:
            raise StoreClosed()

        partner_id = await ensure_customer(self.erp, customer) if customer else None

        try:
            await self.erp.create(
                "pos.order",
                self._order_vals(cart, idempotency_key, session.id, partner_id, note),
                idempotency_key=idempotency_key,
            )
        except RemoteRejection as e:
            if not e.is_duplicate_key:
                raise
            logger.info("Order for key=%s already exists, returning it", idempotency_key)

        order = await self.find_by_key(idempotency_key)
        if order is None:
            raise RemoteRejection(
                "Order not found after creation",
                model="pos.order",
                method="search_read",
            )
        return order.model_copy(update={"payment_provider_id": provider.id})

    async def _with_provider(self, order: Order, payment_code: str) -> Order:
        """Tag a replayed order with the provider, if it is still active."""
        try:
            provider = await self.resolver.resolve_active_provider(payment_code)
        except ProviderUnavailable:
            logger.info("Provider %s no longer active for replayed order=%s", payment_code, order.id)
            return order
        return order.model_copy(update={"payment_provider_id": provider.id})

    @staticmethod
    def _order_vals(
        cart: Cart,
        idempotency_key: str,
        session_id: int,
        partner_id: int | None,
        note: str,
    ) -> dict[str, Any]:
        # Totals are line snapshots; tax is computed inside the ERP
        lines = []
        for line in cart.lines:
            subtotal = float(line.line_total)
            lines.append(
                [
                    0,
                    0,
                    {
                        "product_id": line.product_id,
                        "qty": line.quantity,
                        "price_unit": float(line.unit_price),
                        "price_subtotal": subtotal,
                        "price_subtotal_incl": subtotal,
                        "customer_note": "",
                    },
                ]
            )
        return {
            "uuid": idempotency_key,
            "session_id": session_id,
            "partner_id": partner_id or False,
            "lines": lines,
            "amount_total": float(cart.total),
            "amount_tax": 0.0,
            "amount_paid": 0.0,
            "amount_return": 0.0,
            "general_customer_note": note,
        }

    # =========================================================================
    # Read-back
    # =========================================================================

    async def _load(self, domain: list[Any], order: str | None = None) -> Order | None:
        params = {"order": order} if order else {}
        records = await self.erp.search_read(
            "pos.order", domain, ORDER_FIELDS, limit=1, **params
        )
        orders = await self._with_lines(records)
        return orders[0] if orders else None

    async def _with_lines(self, records: list[dict[str, Any]]) -> list[Order]:
        """Map order records, fetching the lines of all of them in one call."""
        if not records:
            return []
        line_records = await self.erp.search_read(
            "pos.order.line",
            [("order_id", "in", [r["id"] for r in records])],
            LINE_FIELDS,
            order="id asc",
        )
        lines_by_order: dict[int, list[dict[str, Any]]] = {}
        for line in line_records:
            lines_by_order.setdefault(m2o_id(line.get("order_id")) or 0, []).append(line)
        return [self._to_order(r, lines_by_order.get(r["id"], [])) for r in records]

    @staticmethod
    def _to_order(record: dict[str, Any], line_records: list[dict[str, Any]]) -> Order:
        state = text(record.get("state")) or "draft"
        return Order(
            id=record["id"],
            reference=text(record.get("pos_reference")) or text(record.get("name")) or "",
            placed_at=from_erp_datetime(record.get("date_order")),
            lines=[
                OrderLine(
                    product_id=m2o_id(line.get("product_id")) or 0,
                    quantity=int(line.get("qty") or 0),
                    unit_price=money(line.get("price_unit")),
                )
                for line in line_records
            ],
            total=money(record.get("amount_total")),
            # The ERP acknowledged the order; only a cancelled one counts as failed
            status=OrderStatus.FAILED if state == "cancel" else OrderStatus.CONFIRMED,
            payment_state="paid" if state in PAID_STATES else "unpaid",
            idempotency_key=text(record.get("uuid")),
        )

    async def find_by_key(self, idempotency_key: str) -> Order | None:
        return await self._load([("uuid", "=", idempotency_key)])

    async def get_order(self, order_id: int) -> Order | None:
        return await self._load([("id", "=", order_id)])

    # =========================================================================
    # Customer history
    # =========================================================================

    async def list_for_customer(
        self, email: str, limit: int = 20, offset: int = 0
    ) -> tuple[list[Order], int]:
        """
        A customer's orders, newest first, and how many they have in total.

        An email with no ERP customer yields no orders.
        """
        customer = await self.reader.find_customer(email)
        if customer is None:
            return [], 0
        domain = [("partner_id", "=", customer.id)]
        records = await self.erp.search_read(
            "pos.order",
            domain,
            ORDER_FIELDS,
            limit=limit,
            offset=offset,
            order="date_order desc",
        )
        total = await self.erp.search_count("pos.order", domain)
        return await self._with_lines(records), total

    async def latest_for_customer(self, email: str) -> Order | None:
        """The customer's most recent order, for order tracking."""
        customer = await self.reader.find_customer(email)
        if customer is None:
            return None
        return await self._load([("partner_id", "=", customer.id)], order="date_order desc")

    # =========================================================================
    # Payment
    # =========================================================================

    async def record_payment(
        self, order_id: int, amount: Decimal, method_name: str = "Stripe"
    ) -> bool:
        """
        Book an external payment on the ERP order and mark it paid.

        Returns False when the order was already paid (webhook replay).

        Raises:
            ValidationFailure: Unknown order.
            RemoteRejection: No usable POS payment method, or the ERP refused.
        """
        records = await self.erp.search_read(
            "pos.order", [("id", "=", order_id)], ORDER_FIELDS, limit=1
        )
        if not records:
            raise ValidationFailure.for_field("order_id", "Order not found")
        record = records[0]

        if record.get("state") in PAID_STATES:
            logger.info(
                "Order already paid, skipping: order_id=%s state=%s",
                order_id,
                record.get("state"),
            )
            return False

        # add_payment is not idempotent; skip it if a previous attempt got that far
        if money(record.get("amount_paid")) < money(record.get("amount_total")):
            method_id = await self.reader.find_payment_method(method_name)
            if method_id is None:
                raise RemoteRejection(
                    "No POS payment method available",
                    model="pos.payment.method",
                    method="search_read",
                )
            await self.erp.execute(
                "pos.order",
                "add_payment",
                [order_id],
                data={
                    "pos_order_id": order_id,
                    "amount": float(amount),
                    "payment_method_id": method_id,
                },
            )

        await self.erp.execute("pos.order", "action_pos_order_paid", [order_id])
        logger.info("Payment recorded: order_id=%s amount=%s", order_id, amount)
        return True
