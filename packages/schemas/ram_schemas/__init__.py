"""RAM Schemas - Pydantic models for the storefront/ERP data contracts."""

from ram_schemas.booking import Reservation, ReservationStatus, TimeSlot
from ram_schemas.catalog import (
    Customer,
    Floor,
    PaymentProvider,
    PosSession,
    Product,
    ProviderState,
    PublicProviderView,
    Table,
)
from ram_schemas.erp import Domain, DomainTerm, RemoteCallRequest
from ram_schemas.orders import (
    Cart,
    CartLine,
    CartStatus,
    CustomerInfo,
    Order,
    OrderLine,
    OrderStatus,
)

__all__ = [
    # ERP
    "Domain",
    "DomainTerm",
    "RemoteCallRequest",
    # Catalog
    "Customer",
    "Floor",
    "PaymentProvider",
    "PosSession",
    "Product",
    "ProviderState",
    "PublicProviderView",
    "Table",
    # Orders
    "Cart",
    "CartLine",
    "CartStatus",
    "CustomerInfo",
    "Order",
    "OrderLine",
    "OrderStatus",
    # Booking
    "Reservation",
    "ReservationStatus",
    "TimeSlot",
]
