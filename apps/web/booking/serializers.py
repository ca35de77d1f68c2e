"""
Pydantic schemas for booking API requests and responses.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from ram_schemas import CustomerInfo, Reservation, Table


class AvailabilityQuery(BaseModel):
    """Query string for GET /api/booking/availability."""

    party_size: int = Field(..., ge=1)
    start: datetime
    end: datetime | None = None


class AvailabilityResponse(BaseModel):
    """Tables free for the whole requested slot."""

    start: datetime
    end: datetime
    tables: list[Table]


class ReserveRequest(BaseModel):
    """Request body for POST /api/booking/reserve."""

    table_id: int = Field(..., gt=0)
    party_size: int = Field(..., ge=1)
    start: datetime
    end: datetime | None = None
    customer: CustomerInfo | None = None


class ReservationResponse(BaseModel):
    """A reservation as returned to the storefront."""

    reservation_id: int
    table_id: int
    floor_id: int | None
    party_size: int
    start: datetime
    end: datetime
    status: str

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            reservation_id=reservation.id,
            table_id=reservation.table_id,
            floor_id=reservation.floor_id,
            party_size=reservation.party_size,
            start=reservation.slot.start,
            end=reservation.slot.end,
            status=reservation.status.value,
        )
