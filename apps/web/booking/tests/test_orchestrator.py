"""Tests for BookingOrchestrator against the mock ERP."""

import asyncio
import itertools
from datetime import UTC, datetime, timedelta

import pytest
from ram_schemas import ReservationStatus, TimeSlot

from apps.web.booking.orchestrator import BookingOrchestrator
from apps.web.core.exceptions import SlotConflict, ValidationFailure
from apps.web.erp.exceptions import RemoteRejection
from apps.web.erp.mock import MockERPError
from apps.web.erp.tests.factories import ReservationRecordFactory, TableRecordFactory

NOW = datetime(2029, 12, 31, 12, 0, tzinfo=UTC)
SLOT = TimeSlot(
    start=datetime(2030, 1, 1, 19, 0, tzinfo=UTC),
    end=datetime(2030, 1, 1, 20, 30, tzinfo=UTC),
)


@pytest.fixture
def tables(mock_erp):
    mock_erp.seed(
        "restaurant.table",
        [TableRecordFactory(id=1, seats=4), TableRecordFactory(id=2, seats=2)],
    )
    return mock_erp


@pytest.fixture
def booking(erp):
    return BookingOrchestrator(erp, hold_seconds=120, clock=lambda: NOW)


def _inject_before(mock_erp, method, records):
    """Seed `records` just before the first reservation `method` call."""
    original = mock_erp.dispatch
    done = []

    def dispatch(model, called_method, params):
        if model == "restaurant.reservation" and called_method == method and not done:
            done.append(True)
            mock_erp.seed("restaurant.reservation", records)
        return original(model, called_method, params)

    mock_erp.dispatch = dispatch


class TestCheckAvailability:
    """Tests for check_availability()."""

    @pytest.mark.asyncio
    async def test_only_tables_large_enough(self, tables, booking):
        available = await booking.check_availability(4, SLOT)

        assert [t.id for t in available] == [1]

    @pytest.mark.asyncio
    async def test_overlapping_confirmed_reservation_excludes_table(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(
                    table_id=1, start="2030-01-01 20:00:00", stop="2030-01-01 21:30:00"
                )
            ],
        )

        assert [t.id for t in await booking.check_availability(2, SLOT)] == [2]

    @pytest.mark.asyncio
    async def test_adjacent_reservation_does_not_overlap(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(
                    table_id=1, start="2030-01-01 20:30:00", stop="2030-01-01 22:00:00"
                )
            ],
        )

        assert [t.id for t in await booking.check_availability(4, SLOT)] == [1]

    @pytest.mark.asyncio
    async def test_expired_hold_is_ignored(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(
                    table_id=1, state="held", hold_expires_at="2029-12-31 11:59:00"
                ),
                ReservationRecordFactory(
                    table_id=2, state="held", hold_expires_at="2029-12-31 12:01:00"
                ),
            ],
        )

        assert [t.id for t in await booking.check_availability(2, SLOT)] == [1]

    @pytest.mark.asyncio
    async def test_cancelled_reservation_is_ignored(self, tables, booking):
        tables.seed(
            "restaurant.reservation", [ReservationRecordFactory(table_id=1, state="cancelled")]
        )

        assert [t.id for t in await booking.check_availability(4, SLOT)] == [1]

    @pytest.mark.asyncio
    async def test_invalid_party_size(self, tables, booking):
        with pytest.raises(ValidationFailure):
            await booking.check_availability(0, SLOT)


class TestReserve:
    """Tests for reserve()."""

    @pytest.mark.asyncio
    async def test_confirms_reservation(self, tables, booking):
        reservation = await booking.reserve(1, SLOT, 4, customer_ref=7)

        assert reservation.status == ReservationStatus.CONFIRMED
        record = tables.get("restaurant.reservation", reservation.id)
        assert record["state"] == "confirmed"
        assert record["hold_expires_at"] is False
        assert record["start"] == "2030-01-01 19:00:00"
        assert record["stop"] == "2030-01-01 20:30:00"
        assert record["partner_id"] == 7
        assert [t.id for t in await booking.check_availability(4, SLOT)] == []

    @pytest.mark.asyncio
    async def test_hold_is_placed_before_confirm(self, tables, booking):
        await booking.reserve(1, SLOT, 2)

        reservation_calls = [
            (method, params)
            for model, method, params in tables.calls
            if model == "restaurant.reservation" and method in ("create", "write")
        ]
        [(create, create_params), (write, write_params)] = reservation_calls
        assert create == "create"
        assert create_params["vals_list"][0]["state"] == "held"
        assert create_params["vals_list"][0]["hold_expires_at"] == "2029-12-31 12:02:00"
        assert write == "write"
        assert write_params["vals"]["state"] == "confirmed"

    @pytest.mark.asyncio
    async def test_taken_slot_conflicts(self, tables, booking):
        tables.seed("restaurant.reservation", [ReservationRecordFactory(table_id=1)])

        with pytest.raises(SlotConflict) as exc_info:
            await booking.reserve(1, SLOT, 2)

        assert exc_info.value.table_id == 1
        assert len(tables.all("restaurant.reservation")) == 1

    @pytest.mark.asyncio
    async def test_competing_older_hold_wins(self, tables, booking):
        competitor = ReservationRecordFactory(
            id=1, table_id=1, state="held", hold_expires_at="2029-12-31 12:02:00"
        )
        _inject_before(tables, "create", [competitor])

        with pytest.raises(SlotConflict):
            await booking.reserve(1, SLOT, 2)

        states = {r["id"]: r["state"] for r in tables.all("restaurant.reservation")}
        assert states == {1: "held", 2: "cancelled"}

    @pytest.mark.asyncio
    async def test_concurrent_bookings_confirm_exactly_one(self, tables, erp):
        first = BookingOrchestrator(erp, clock=lambda: NOW)
        second = BookingOrchestrator(erp, clock=lambda: NOW)

        results = await asyncio.gather(
            first.reserve(1, SLOT, 2),
            second.reserve(1, SLOT, 2),
            return_exceptions=True,
        )

        confirmed = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, SlotConflict)]
        assert len(confirmed) == 1
        assert len(conflicts) == 1
        states = [r["state"] for r in tables.all("restaurant.reservation")]
        assert states.count("confirmed") == 1

    @pytest.mark.asyncio
    async def test_failed_confirm_releases_hold(self, tables, booking):
        original = tables.dispatch

        def dispatch(model, method, params):
            if method == "write" and params["vals"].get("state") == "confirmed":
                raise MockERPError("odoo.exceptions.ValidationError", "Table is closed")
            return original(model, method, params)

        tables.dispatch = dispatch

        with pytest.raises(RemoteRejection):
            await booking.reserve(1, SLOT, 2)

        [record] = tables.all("restaurant.reservation")
        assert record["state"] == "cancelled"

    @pytest.mark.asyncio
    async def test_booking_key_replay_returns_same_reservation(self, tables, booking):
        first = await booking.reserve(1, SLOT, 2, booking_key="book-0001")
        second = await booking.reserve(1, SLOT, 2, booking_key="book-0001")

        assert first.id == second.id
        assert len(tables.all("restaurant.reservation")) == 1

    @pytest.mark.asyncio
    async def test_same_key_after_failed_confirm_conflicts(self, tables, booking):
        original = tables.dispatch
        rejected = []

        def dispatch(model, method, params):
            if method == "write" and params["vals"].get("state") == "confirmed" and not rejected:
                rejected.append(True)
                raise MockERPError("odoo.exceptions.ValidationError", "Table is closed")
            return original(model, method, params)

        tables.dispatch = dispatch
        with pytest.raises(RemoteRejection):
            await booking.reserve(1, SLOT, 2, booking_key="bk-1")

        with pytest.raises(SlotConflict):
            await booking.reserve(1, SLOT, 2, booking_key="bk-1")

        [record] = tables.all("restaurant.reservation")
        assert record["state"] == "cancelled"

    @pytest.mark.asyncio
    async def test_same_key_confirms_live_hold(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(
                    id=5,
                    table_id=1,
                    state="held",
                    hold_expires_at="2029-12-31 12:01:00",
                    booking_key="bk-2",
                )
            ],
        )

        reservation = await booking.reserve(1, SLOT, 2, booking_key="bk-2")

        assert reservation.id == 5
        assert reservation.status == ReservationStatus.CONFIRMED
        [record] = tables.all("restaurant.reservation")
        assert record["state"] == "confirmed"
        assert record["hold_expires_at"] is False

    @pytest.mark.asyncio
    async def test_same_key_with_expired_hold_conflicts(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(
                    id=5,
                    table_id=1,
                    state="held",
                    hold_expires_at="2029-12-31 11:59:00",
                    booking_key="bk-3",
                )
            ],
        )

        with pytest.raises(SlotConflict):
            await booking.reserve(1, SLOT, 2, booking_key="bk-3")

        assert tables.get("restaurant.reservation", 5)["state"] == "cancelled"

    @pytest.mark.asyncio
    async def test_hold_swept_before_confirm_is_not_revived(self, tables, booking):
        original = tables.dispatch

        def dispatch(model, method, params):
            result = original(model, method, params)
            if model == "restaurant.reservation" and method == "create":
                tables.get("restaurant.reservation", result[0])["state"] = "cancelled"
            return result

        tables.dispatch = dispatch

        with pytest.raises(SlotConflict):
            await booking.reserve(1, SLOT, 2)

        [record] = tables.all("restaurant.reservation")
        assert record["state"] == "cancelled"
        confirms = [
            params
            for model, method, params in tables.calls
            if method == "write" and params["vals"].get("state") == "confirmed"
        ]
        assert confirms == []

    @pytest.mark.asyncio
    async def test_hold_lapsing_before_confirm_is_released(self, tables, erp):
        later = NOW + timedelta(minutes=3)
        clock = itertools.chain([NOW], itertools.repeat(later))
        booking = BookingOrchestrator(erp, hold_seconds=120, clock=lambda: next(clock))

        with pytest.raises(SlotConflict):
            await booking.reserve(1, SLOT, 2)

        [record] = tables.all("restaurant.reservation")
        assert record["state"] == "cancelled"

    @pytest.mark.asyncio
    async def test_party_too_large_for_table(self, tables, booking):
        with pytest.raises(ValidationFailure, match="at most 2"):
            await booking.reserve(2, SLOT, 4)

    @pytest.mark.asyncio
    async def test_unknown_table(self, tables, booking):
        with pytest.raises(ValidationFailure):
            await booking.reserve(99, SLOT, 2)

    @pytest.mark.asyncio
    async def test_past_slot(self, tables, erp):
        booking = BookingOrchestrator(erp, clock=lambda: SLOT.start + timedelta(minutes=1))

        with pytest.raises(ValidationFailure):
            await booking.reserve(1, SLOT, 2)


class TestCancelAndExpiry:
    """Tests for cancel() and release_expired_holds()."""

    @pytest.mark.asyncio
    async def test_cancel(self, tables, booking):
        reservation = await booking.reserve(1, SLOT, 2)

        cancelled = await booking.cancel(reservation.id)

        assert cancelled.status == ReservationStatus.CANCELLED
        assert tables.get("restaurant.reservation", reservation.id)["state"] == "cancelled"
        assert [t.id for t in await booking.check_availability(2, SLOT)] == [1, 2]

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, tables, booking):
        with pytest.raises(ValidationFailure):
            await booking.cancel(99)

    @pytest.mark.asyncio
    async def test_release_expired_holds(self, tables, booking):
        tables.seed(
            "restaurant.reservation",
            [
                ReservationRecordFactory(id=1, state="held", hold_expires_at="2029-12-31 11:00:00"),
                ReservationRecordFactory(id=2, state="held", hold_expires_at="2029-12-31 13:00:00"),
                ReservationRecordFactory(id=3, state="confirmed"),
            ],
        )

        assert await booking.release_expired_holds() == 1

        states = {r["id"]: r["state"] for r in tables.all("restaurant.reservation")}
        assert states == {1: "cancelled", 2: "held", 3: "confirmed"}
