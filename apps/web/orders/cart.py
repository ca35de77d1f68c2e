"""
Cart service - client-owned cart state, priced from the catalog.

The cart lives in the caller's session (a signed cookie); this module only
transforms it. Prices always come from the current catalog, never from the
client.
"""

import logging

from django.conf import settings
from django.http import HttpRequest
from pydantic import ValidationError as PydanticValidationError
from ram_schemas import Cart, CartLine, CartStatus, Product

from apps.web.catalog.reader import CatalogReader
from apps.web.core.exceptions import ValidationFailure

logger = logging.getLogger(__name__)

SESSION_KEY = "cart"


def load_cart(request: HttpRequest) -> Cart:
    """Cart from the session, or a new empty cart."""
    data = request.session.get(SESSION_KEY)
    if not data:
        return Cart()
    try:
        return Cart.model_validate(data)
    except PydanticValidationError:
        logger.warning("Discarding unreadable cart in session")
        return Cart()


def save_cart(request: HttpRequest, cart: Cart) -> None:
    request.session[SESSION_KEY] = cart.model_dump(mode="json")


class CartService:
    """
    Add, update and remove cart lines.

    Every mutation returns a new Cart; the input is left untouched.
    """

    def __init__(self, reader: CatalogReader, max_quantity: int | None = None) -> None:
        self.reader = reader
        self.max_quantity = max_quantity or settings.CART_MAX_QUANTITY

    def _check_quantity(self, quantity: int) -> None:
        if quantity < 1:
            raise ValidationFailure.for_field("quantity", "Quantity must be at least 1")
        if quantity > self.max_quantity:
            raise ValidationFailure.for_field(
                "quantity", f"Quantity cannot exceed {self.max_quantity}"
            )

    async def _sellable(self, product_id: int) -> Product:
        products = await self.reader.get_products([product_id])
        product = products.get(product_id)
        if product is None:
            raise ValidationFailure.for_field("product_id", "Product does not exist")
        if not product.available:
            raise ValidationFailure.for_field("product_id", "Product is not available")
        return product

    @staticmethod
    def _editable(cart: Cart) -> Cart:
        cart = cart.model_copy(deep=True)
        cart.last_error = None
        return cart

    @staticmethod
    def _settle(cart: Cart) -> Cart:
        # Any edit after a confirmed or failed checkout starts a new cycle
        cart.status = CartStatus.ACTIVE if cart.lines else CartStatus.EMPTY
        return cart

    async def add_item(self, cart: Cart, product_id: int, quantity: int) -> Cart:
        """
        Add `quantity` of a product, merging with an existing line.

        The line's price is re-snapshotted from the catalog.

        Raises:
            ValidationFailure: Bad quantity, unknown or unavailable product.
        """
        self._check_quantity(quantity)
        cart = self._editable(cart)
        existing = cart.find_line(product_id)
        if existing is not None:
            self._check_quantity(existing.quantity + quantity)

        product = await self._sellable(product_id)
        if existing is None:
            cart.lines.append(
                CartLine(
                    product_id=product.id,
                    name=product.name,
                    quantity=quantity,
                    unit_price=product.price,
                )
            )
        else:
            existing.quantity += quantity
            existing.unit_price = product.price
            existing.name = product.name
        return self._settle(cart)

    async def update_item(self, cart: Cart, product_id: int, quantity: int) -> Cart:
        """Set a line's quantity, refreshing its price."""
        self._check_quantity(quantity)
        cart = self._editable(cart)
        line = cart.find_line(product_id)
        if line is None:
            raise ValidationFailure.for_field("product_id", "Product is not in the cart")

        product = await self._sellable(product_id)
        line.quantity = quantity
        line.unit_price = product.price
        line.name = product.name
        return self._settle(cart)

    @classmethod
    def remove_item(cls, cart: Cart, product_id: int) -> Cart:
        cart = cls._editable(cart)
        cart.lines = [line for line in cart.lines if line.product_id != product_id]
        return cls._settle(cart)

    @staticmethod
    def clear(cart: Cart) -> Cart:
        return Cart(cart_id=cart.cart_id)
