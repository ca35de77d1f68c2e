"""Tests for booking API views."""

import pytest
from django.urls import reverse

from apps.web.erp.tests.factories import (
    PartnerRecordFactory,
    ReservationRecordFactory,
    TableRecordFactory,
)


@pytest.fixture
def tables(mock_erp):
    mock_erp.seed(
        "restaurant.table",
        [TableRecordFactory(id=1, seats=4), TableRecordFactory(id=2, seats=2)],
    )
    return mock_erp


def _reserve(client, headers=None, **body):
    payload = {"table_id": 1, "party_size": 2, "start": "2030-01-01T19:00:00Z", **body}
    return client.post(
        reverse("booking:reserve"),
        data=payload,
        content_type="application/json",
        **(headers or {}),
    )


class TestAvailability:
    """Tests for GET /api/booking/availability."""

    def test_returns_tables_for_party(self, client, tables):
        response = client.get(
            reverse("booking:availability"),
            {"party_size": 4, "start": "2030-01-01T19:00:00Z"},
        )

        assert response.status_code == 200
        data = response.json()
        assert [t["id"] for t in data["tables"]] == [1]
        assert data["end"].startswith("2030-01-01T20:30:00")

    def test_explicit_end(self, client, tables):
        tables.seed(
            "restaurant.reservation",
            [ReservationRecordFactory(table_id=2, start="2030-01-01 21:00:00", stop="2030-01-01 22:00:00")],
        )

        response = client.get(
            reverse("booking:availability"),
            {"party_size": 2, "start": "2030-01-01T19:00:00Z", "end": "2030-01-01T20:00:00Z"},
        )

        assert [t["id"] for t in response.json()["tables"]] == [1, 2]

    def test_end_before_start(self, client, tables):
        response = client.get(
            reverse("booking:availability"),
            {"party_size": 2, "start": "2030-01-01T19:00:00Z", "end": "2030-01-01T18:00:00Z"},
        )

        assert response.status_code == 400

    def test_missing_party_size(self, client, tables):
        response = client.get(
            reverse("booking:availability"), {"start": "2030-01-01T19:00:00Z"}
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "party_size"


class TestReserve:
    """Tests for POST /api/booking/reserve."""

    def test_creates_confirmed_reservation(self, client, tables):
        response = _reserve(client)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["table_id"] == 1
        assert data["floor_id"] == 1

    def test_customer_block_links_partner(self, client, tables):
        tables.seed("res.partner", [PartnerRecordFactory(id=7, email="ana@example.com")])

        response = _reserve(client, customer={"name": "Ana", "email": "ana@example.com"})

        record = tables.get("restaurant.reservation", response.json()["reservation_id"])
        assert record["partner_id"] == 7

    def test_taken_slot_is_conflict(self, client, tables):
        tables.seed("restaurant.reservation", [ReservationRecordFactory(table_id=1)])

        response = _reserve(client)

        assert response.status_code == 409
        assert response.json()["error"] == "slot_conflict"

    def test_idempotency_key_replays(self, client, tables):
        headers = {"HTTP_IDEMPOTENCY_KEY": "booking-key-0001"}

        first = _reserve(client, headers=headers)
        second = _reserve(client, headers=headers)

        assert first.json()["reservation_id"] == second.json()["reservation_id"]
        assert len(tables.all("restaurant.reservation")) == 1

    def test_party_too_large(self, client, tables):
        response = _reserve(client, table_id=2, party_size=4)

        assert response.status_code == 400


class TestStaffCancel:
    """Tests for the staff cancel endpoint."""

    def test_requires_login(self, client, tables):
        response = client.post(reverse("booking:staff_cancel", args=[1]))

        assert response.status_code == 302

    @pytest.mark.django_db
    def test_staff_can_cancel(self, client, tables, staff_user):
        tables.seed("restaurant.reservation", [ReservationRecordFactory(id=1, table_id=1)])
        client.force_login(staff_user)

        response = client.post(reverse("booking:staff_cancel", args=[1]))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert tables.get("restaurant.reservation", 1)["state"] == "cancelled"
