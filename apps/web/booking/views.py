"""
Table booking API views.

Reservations are created in the ERP with a hold-then-confirm protocol; a
taken table comes back as a 409 `slot_conflict` and the caller re-queries
availability.
"""

from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from ram_schemas import Reservation, TimeSlot

from apps.web.booking.orchestrator import BookingOrchestrator
from apps.web.booking.serializers import (
    AvailabilityQuery,
    AvailabilityResponse,
    ReservationResponse,
    ReserveRequest,
)
from apps.web.core.decorators import storefront_errors
from apps.web.core.http import parse_body, parse_data, schema_response
from apps.web.erp.client import ERPClient
from apps.web.erp.conf import run_with_client
from apps.web.orders.customers import ensure_customer


def _slot(start: datetime, end: datetime | None) -> TimeSlot:
    if end is None:
        end = start + timedelta(minutes=settings.BOOKING_SLOT_MINUTES)
    return parse_data({"start": start, "end": end}, TimeSlot)


@require_GET
@storefront_errors
def availability(request: HttpRequest) -> JsonResponse:
    """
    GET /api/booking/availability?party_size=&start=&end=

    `end` defaults to `start` plus the standard slot length.
    """
    query = parse_data(request.GET.dict(), AvailabilityQuery)
    slot = _slot(query.start, query.end)
    tables = run_with_client(
        lambda erp: BookingOrchestrator(erp).check_availability(query.party_size, slot)
    )
    return schema_response(AvailabilityResponse(start=slot.start, end=slot.end, tables=tables))


@csrf_exempt
@require_POST
@storefront_errors
def reserve(request: HttpRequest) -> JsonResponse:
    """
    POST /api/booking/reserve

    Request body: ReserveRequest. An optional Idempotency-Key header makes
    retries return the same reservation.
    Response: ReservationResponse (201), ErrorResponse `slot_conflict` (409)
    """
    body = parse_body(request, ReserveRequest)
    slot = _slot(body.start, body.end)
    booking_key = request.headers.get("Idempotency-Key", "").strip()[:128] or None

    async def book(erp: ERPClient) -> Reservation:
        customer_ref = await ensure_customer(erp, body.customer) if body.customer else None
        return await BookingOrchestrator(erp).reserve(
            body.table_id,
            slot,
            body.party_size,
            customer_ref=customer_ref,
            booking_key=booking_key,
        )

    reservation = run_with_client(book)
    return schema_response(ReservationResponse.from_reservation(reservation), status=201)


@csrf_exempt
@require_POST
@login_required
@storefront_errors
def staff_cancel(request: HttpRequest, reservation_id: int) -> JsonResponse:
    """
    POST /api/booking/staff/reservations/{reservation_id}/cancel

    Staff only.
    """
    if not request.user.is_staff:
        raise PermissionDenied("Staff access required")
    reservation = run_with_client(lambda erp: BookingOrchestrator(erp).cancel(reservation_id))
    return schema_response(ReservationResponse.from_reservation(reservation))
