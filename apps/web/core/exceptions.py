"""
Storefront-facing errors.

These are recoverable conditions the caller can correct (bad input, stale
cart, no provider, taken slot, closed store). They are returned to the
storefront unchanged; ERP failures live in `apps.web.erp.exceptions`.
"""

from dataclasses import dataclass
from decimal import Decimal


class StorefrontError(Exception):
    """Base exception for user-correctable storefront errors."""

    code = "storefront_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailure(StorefrontError):
    """Bad input: unknown product, quantity out of range, party too large, ..."""

    code = "validation_error"

    def __init__(self, message: str, details: list[tuple[str, str]] | None = None):
        super().__init__(message)
        self.details = details or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailure":
        return cls(message, details=[(field, message)])


@dataclass(frozen=True)
class StaleLine:
    """A cart line that no longer matches the catalog."""

    product_id: int
    reason: str  # "unavailable" | "price_changed"
    current_price: Decimal | None = None


class StaleCartItem(StorefrontError):
    """One or more cart lines changed in the catalog since they were added."""

    code = "stale_cart_item"

    def __init__(self, lines: list[StaleLine]) -> None:
        super().__init__("Some items in your cart have changed")
        self.lines = lines


class ProviderUnavailable(StorefrontError):
    """No enabled payment provider matches the requested code."""

    code = "provider_unavailable"

    def __init__(self, provider_code: str) -> None:
        super().__init__(f"Payment method '{provider_code}' is not available")
        self.provider_code = provider_code


class SlotConflict(StorefrontError):
    """The table/time slot was claimed by another reservation."""

    code = "slot_conflict"

    def __init__(self, table_id: int) -> None:
        super().__init__("This table is no longer available for the selected time")
        self.table_id = table_id


class StoreClosed(StorefrontError):
    """No open point-of-sale session; the restaurant is not taking orders."""

    code = "store_closed"

    def __init__(self) -> None:
        super().__init__("The restaurant is not accepting online orders right now")
