"""Shared response schemas for storefront errors."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class ValidationErrorDetail(BaseModel):
    """A single validation error."""

    field: str
    message: str


class ValidationErrorResponse(BaseModel):
    """Response for validation errors."""

    error: Literal["validation_error"]
    details: list[ValidationErrorDetail]


class StaleLineSchema(BaseModel):
    """A cart line the customer must update or remove."""

    product_id: int
    reason: Literal["unavailable", "price_changed"]
    current_price: Decimal | None = None


class StaleCartResponse(BaseModel):
    """Response when checkout found stale cart lines."""

    error: Literal["stale_cart_item"]
    message: str
    lines: list[StaleLineSchema]


class ErrorResponse(BaseModel):
    """Generic storefront error."""

    error: str
    message: str


class TryAgainResponse(BaseModel):
    """The ERP could not complete the request; details stay server-side."""

    error: Literal["try_again"] = "try_again"
    message: str = "Something went wrong on our side. Please try again."
    request_id: str
