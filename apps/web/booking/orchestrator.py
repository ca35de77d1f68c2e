"""
Booking orchestrator - table availability and two-phase reservations.

A reservation is first created as a short-lived `held` record, then the
table/slot is re-checked against every other active reservation before the
hold is confirmed with a single write. Two concurrent bookings for the same
slot both see each other's hold; the older hold (lowest id) wins and the
other is released with `SlotConflict`. Abandoned holds stop counting once
`hold_expires_at` passes and are swept by `release_expired_holds`.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from django.conf import settings
from ram_schemas import Reservation, ReservationStatus, Table, TimeSlot

from apps.web.catalog.reader import CatalogReader
from apps.web.core.exceptions import SlotConflict, ValidationFailure
from apps.web.erp.client import RESERVATION_MODEL, ERPClient
from apps.web.erp.exceptions import ERPError, RemoteRejection
from apps.web.erp.wire import from_erp_datetime, m2o_id, text, to_erp_datetime

logger = logging.getLogger(__name__)

RESERVATION_FIELDS = frozenset(
    {
        "id",
        "table_id",
        "floor_id",
        "party_size",
        "start",
        "stop",
        "partner_id",
        "state",
        "hold_expires_at",
        "booking_key",
    }
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _reservation(record: dict[str, Any]) -> Reservation:
    try:
        status = ReservationStatus(record.get("state"))
    except ValueError:
        status = ReservationStatus.CANCELLED
    return Reservation(
        id=record["id"],
        table_id=m2o_id(record.get("table_id")) or 0,
        floor_id=m2o_id(record.get("floor_id")),
        party_size=int(record.get("party_size") or 1),
        slot=TimeSlot(
            start=from_erp_datetime(record.get("start")),
            end=from_erp_datetime(record.get("stop")),
        ),
        customer_ref=m2o_id(record.get("partner_id")),
        status=status,
        hold_expires_at=from_erp_datetime(record.get("hold_expires_at")),
        booking_key=text(record.get("booking_key")),
    )


class BookingOrchestrator:
    """
    Availability and reservation lifecycle against the ERP.

    Usage:
        async with get_client() as erp:
            booking = BookingOrchestrator(erp)
            tables = await booking.check_availability(4, slot)
            reservation = await booking.reserve(tables[0].id, slot, 4)
    """

    def __init__(
        self,
        erp: ERPClient,
        reader: CatalogReader | None = None,
        hold_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.erp = erp
        self.reader = reader or CatalogReader(erp)
        self.hold_seconds = hold_seconds or settings.BOOKING_HOLD_SECONDS
        self.clock = clock or _utcnow

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def _active_domain(slot: TimeSlot, now: datetime) -> list[Any]:
        """Confirmed or unexpired held reservations overlapping `slot`."""
        return [
            "|",
            ("state", "=", ReservationStatus.CONFIRMED.value),
            "&",
            ("state", "=", ReservationStatus.HELD.value),
            ("hold_expires_at", ">", to_erp_datetime(now)),
            ("start", "<", to_erp_datetime(slot.end)),
            ("stop", ">", to_erp_datetime(slot.start)),
        ]

    async def _active(
        self, slot: TimeSlot, now: datetime, table_ids: list[int]
    ) -> list[Reservation]:
        domain = [*self._active_domain(slot, now), ("table_id", "in", table_ids)]
        records = await self.erp.search_read(
            RESERVATION_MODEL, domain, RESERVATION_FIELDS, order="id asc"
        )
        return [_reservation(r) for r in records]

    async def _get(self, domain: list[Any]) -> Reservation | None:
        records = await self.erp.search_read(
            RESERVATION_MODEL, domain, RESERVATION_FIELDS, limit=1
        )
        return _reservation(records[0]) if records else None

    async def check_availability(self, party_size: int, slot: TimeSlot) -> list[Table]:
        """
        Tables seating at least `party_size` with no active reservation
        overlapping `slot`, ordered by id.

        Raises:
            ValidationFailure: party_size below 1.
        """
        if party_size < 1:
            raise ValidationFailure.for_field("party_size", "Party size must be at least 1")

        tables = [t for t in await self.reader.list_tables() if t.capacity >= party_size]
        if not tables:
            return []

        taken = {
            r.table_id for r in await self._active(slot, self.clock(), [t.id for t in tables])
        }
        return [t for t in tables if t.id not in taken]

    # =========================================================================
    # Reserve
    # =========================================================================

    async def reserve(
        self,
        table_id: int,
        slot: TimeSlot,
        party_size: int,
        customer_ref: int | None = None,
        booking_key: str | None = None,
    ) -> Reservation:
        """
        Hold, re-check and confirm a reservation.

        A `booking_key` makes the call idempotent: replaying it returns the
        reservation confirmed the first time, or finishes confirming a hold
        that is still live. A key whose reservation was released or expired
        is spent and raises SlotConflict.

        Raises:
            ValidationFailure: Unknown table, party too large, slot in the past.
            SlotConflict: The table/slot is taken; re-query availability.
            TransientFailure / RemoteRejection: ERP failure; any hold placed
                by this call has been released.
        """
        if party_size < 1:
            raise ValidationFailure.for_field("party_size", "Party size must be at least 1")
        now = self.clock()
        if slot.start <= now:
            raise ValidationFailure.for_field("start", "Reservation must be in the future")

        table = await self.reader.get_table(table_id)
        if table is None:
            raise ValidationFailure.for_field("table_id", "Table does not exist")
        if table.capacity < party_size:
            raise ValidationFailure.for_field(
                "party_size", f"Table seats at most {table.capacity}"
            )

        if booking_key:
            existing = await self._get([("booking_key", "=", booking_key)])
            if existing is not None:
                return await self._resume(existing, now)

        if await self._active(slot, now, [table_id]):
            raise SlotConflict(table_id)

        key = booking_key or uuid.uuid4().hex
        hold_expires_at = now + timedelta(seconds=self.hold_seconds)
        try:
            hold_id = await self.erp.create(
                RESERVATION_MODEL,
                {
                    "table_id": table_id,
                    "floor_id": table.floor_id or False,
                    "party_size": party_size,
                    "start": to_erp_datetime(slot.start),
                    "stop": to_erp_datetime(slot.end),
                    "partner_id": customer_ref or False,
                    "state": ReservationStatus.HELD.value,
                    "hold_expires_at": to_erp_datetime(hold_expires_at),
                    "booking_key": key,
                },
                idempotency_key=key,
            )
        except RemoteRejection as e:
            if not e.is_duplicate_key:
                raise
            # A concurrent request with the same key got there first
            existing = await self._get([("booking_key", "=", key)])
            if existing is None:
                raise
            return await self._resume(existing, now)

        hold = Reservation(
            id=hold_id,
            table_id=table_id,
            floor_id=table.floor_id,
            party_size=party_size,
            slot=slot,
            customer_ref=customer_ref,
            status=ReservationStatus.HELD,
            hold_expires_at=hold_expires_at,
            booking_key=key,
        )
        return await self._confirm(hold, now)

    async def _resume(self, existing: Reservation, now: datetime) -> Reservation:
        """Answer a replayed booking key from the reservation it created."""
        if existing.status is ReservationStatus.CONFIRMED:
            logger.info(
                "Reservation replay for key=%s -> id=%s", existing.booking_key, existing.id
            )
            return existing
        if existing.status is ReservationStatus.HELD and self._is_live(existing, now):
            logger.info(
                "Resuming hold=%s for key=%s", existing.id, existing.booking_key
            )
            return await self._confirm(existing, now)

        logger.info(
            "Key=%s belongs to inactive reservation id=%s status=%s",
            existing.booking_key,
            existing.id,
            existing.status.value,
        )
        if existing.status is ReservationStatus.HELD:
            await self._release(existing.id)
        raise SlotConflict(existing.table_id)

    @staticmethod
    def _is_live(hold: Reservation, now: datetime) -> bool:
        return hold.hold_expires_at is not None and hold.hold_expires_at > now

    async def _confirm(self, hold: Reservation, now: datetime) -> Reservation:
        """Re-check the slot and turn a live hold into a confirmed reservation."""
        competitors = [
            r for r in await self._active(hold.slot, now, [hold.table_id]) if r.id != hold.id
        ]
        if any(r.status is ReservationStatus.CONFIRMED or r.id < hold.id for r in competitors):
            logger.info("Slot conflict on table=%s, releasing hold=%s", hold.table_id, hold.id)
            await self._release(hold.id)
            raise SlotConflict(hold.table_id)

        # The hold may have been swept or lapsed while we re-checked
        current = await self._get([("id", "=", hold.id)])
        if current is not None and current.status is ReservationStatus.CONFIRMED:
            return current
        if (
            current is None
            or current.status is not ReservationStatus.HELD
            or not self._is_live(current, self.clock())
        ):
            logger.info("Hold=%s lapsed before confirmation", hold.id)
            if current is not None and current.status is ReservationStatus.HELD:
                await self._release(hold.id)
            raise SlotConflict(hold.table_id)

        try:
            await self.erp.write(
                RESERVATION_MODEL,
                [hold.id],
                {"state": ReservationStatus.CONFIRMED.value, "hold_expires_at": False},
                idempotency_key=hold.booking_key,
            )
        except ERPError:
            await self._release(hold.id)
            raise

        logger.info(
            "Reservation confirmed: id=%s table=%s start=%s party=%s",
            hold.id,
            hold.table_id,
            hold.slot.start.isoformat(),
            hold.party_size,
        )
        return hold.model_copy(
            update={"status": ReservationStatus.CONFIRMED, "hold_expires_at": None}
        )

    async def _release(self, reservation_id: int) -> None:
        try:
            await self.erp.write(
                RESERVATION_MODEL,
                [reservation_id],
                {"state": ReservationStatus.CANCELLED.value},
            )
        except ERPError as e:
            # The hold still expires on its own
            logger.warning("Could not release hold=%s: %s", reservation_id, e.message)

    # =========================================================================
    # Cancel and expiry
    # =========================================================================

    async def cancel(self, reservation_id: int) -> Reservation:
        """
        Cancel a reservation. Cancelling twice is a no-op.

        Raises:
            ValidationFailure: Unknown reservation.
        """
        reservation = await self._get([("id", "=", reservation_id)])
        if reservation is None:
            raise ValidationFailure.for_field("reservation_id", "Reservation does not exist")
        if reservation.status is ReservationStatus.CANCELLED:
            return reservation

        await self.erp.write(
            RESERVATION_MODEL,
            [reservation_id],
            {"state": ReservationStatus.CANCELLED.value, "hold_expires_at": False},
        )
        logger.info("Reservation cancelled: id=%s", reservation_id)
        return reservation.model_copy(
            update={"status": ReservationStatus.CANCELLED, "hold_expires_at": None}
        )

    async def release_expired_holds(self) -> int:
        """Cancel held reservations past their expiry. Returns how many."""
        records = await self.erp.search_read(
            RESERVATION_MODEL,
            [
                ("state", "=", ReservationStatus.HELD.value),
                ("hold_expires_at", "<=", to_erp_datetime(self.clock())),
            ],
            {"id"},
        )
        ids = [r["id"] for r in records]
        if not ids:
            return 0
        await self.erp.write(
            RESERVATION_MODEL, ids, {"state": ReservationStatus.CANCELLED.value}
        )
        logger.info("Released %d expired holds", len(ids))
        return len(ids)
