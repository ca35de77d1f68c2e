"""Cart and order schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class CartStatus(str, Enum):
    """Cart lifecycle."""

    EMPTY = "empty"
    ACTIVE = "active"
    CHECKING_OUT = "checking_out"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class OrderStatus(str, Enum):
    """Order lifecycle."""

    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CartLine(BaseModel):
    """One product in the cart, priced from the catalog at add time."""

    product_id: int
    name: str = ""
    quantity: int = Field(ge=1)
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    """
    Session-owned cart.

    The cart is serialized into the client's session between requests; the
    server keeps no copy of it.
    """

    cart_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    lines: list[CartLine] = Field(default_factory=list)
    status: CartStatus = CartStatus.EMPTY
    last_error: str | None = None

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def find_line(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None


class CustomerInfo(BaseModel):
    """Customer details supplied by the storefront."""

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(default="", max_length=32)


class OrderLine(BaseModel):
    """Validated line snapshot on an order."""

    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """An order as acknowledged by the ERP."""

    id: int
    reference: str = ""
    placed_at: datetime | None = None
    lines: list[OrderLine]
    total: Decimal
    payment_provider_id: int | None = None
    status: OrderStatus
    payment_state: str = "unpaid"
    idempotency_key: str | None = None
