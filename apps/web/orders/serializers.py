"""
Pydantic schemas for cart and checkout API requests and responses.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field
from ram_schemas import Cart, CustomerInfo, Order

# =============================================================================
# Cart
# =============================================================================


class CartItemAddRequest(BaseModel):
    """Request body for POST /api/cart/items. Prices are never accepted."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(default=1)


class CartItemUpdateRequest(BaseModel):
    """Request body for PUT /api/cart/items/{product_id}."""

    quantity: int


class CartLineSchema(BaseModel):
    """A cart line in responses."""

    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CartResponse(BaseModel):
    """Response for the cart endpoints."""

    cart_id: str
    status: str
    lines: list[CartLineSchema]
    total: Decimal
    last_error: str | None = None

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartResponse":
        return cls(
            cart_id=cart.cart_id,
            status=cart.status.value,
            lines=[
                CartLineSchema(
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in cart.lines
            ],
            total=cart.total,
            last_error=cart.last_error,
        )


# =============================================================================
# Checkout and orders
# =============================================================================


class CheckoutRequest(BaseModel):
    """Request body for POST /api/checkout."""

    payment_code: str = Field(..., min_length=1, max_length=64)
    customer: CustomerInfo | None = None
    note: str = Field(default="", max_length=1000)


class OrderLineSchema(BaseModel):
    """A line item in an order response."""

    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderResponse(BaseModel):
    """An ERP order."""

    order_id: int
    reference: str
    placed_at: datetime | None = None
    status: str
    payment_state: str
    lines: list[OrderLineSchema]
    total: Decimal
    payment_provider_id: int | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            order_id=order.id,
            reference=order.reference,
            placed_at=order.placed_at,
            status=order.status.value,
            payment_state=order.payment_state,
            lines=[
                OrderLineSchema(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in order.lines
            ],
            total=order.total,
            payment_provider_id=order.payment_provider_id,
        )


class CheckoutResponse(BaseModel):
    """Response for POST /api/checkout."""

    order: OrderResponse
    cart: CartResponse


# =============================================================================
# Customer history
# =============================================================================


class CustomerOrdersQuery(BaseModel):
    """Query string for GET /api/staff/orders."""

    email: EmailStr
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class LatestOrderQuery(BaseModel):
    """Query string for GET /api/staff/orders/latest."""

    email: EmailStr


class CustomerOrdersResponse(BaseModel):
    """A page of a customer's orders, newest first."""

    orders: list[OrderResponse]
    total: int
    limit: int
    offset: int
