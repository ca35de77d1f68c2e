"""Table booking schemas."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class ReservationStatus(str, Enum):
    """Reservation lifecycle."""

    HELD = "held"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class TimeSlot(BaseModel):
    """A half-open [start, end) window in UTC."""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive datetimes are UTC, as the ERP stores them
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("slot end must be after slot start")
        return self

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end


class Reservation(BaseModel):
    """A table reservation stored in the ERP."""

    id: int
    table_id: int
    floor_id: int | None = None
    party_size: int = Field(ge=1)
    slot: TimeSlot
    customer_ref: int | None = None
    status: ReservationStatus
    hold_expires_at: datetime | None = None
    booking_key: str | None = None
