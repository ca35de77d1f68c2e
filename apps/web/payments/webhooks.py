"""
Stripe webhook handlers.

Handles payment events from Stripe:
- payment_intent.succeeded: book the payment on the ERP order and mark it paid
- payment_intent.payment_failed: logged; the order stays unpaid

The signing secret comes from the ERP's Stripe provider record. Stripe
retries any non-2xx delivery, so ERP outages answer 503 and the event is
handled again later; recording a payment twice is a no-op.
"""

import logging
from typing import Any

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

import stripe

from apps.web.catalog.reader import CatalogReader
from apps.web.core.exceptions import StorefrontError
from apps.web.erp.conf import run_with_client
from apps.web.erp.exceptions import ERPError
from apps.web.orders.orchestrator import OrderOrchestrator
from apps.web.payments.resolver import PaymentProviderResolver
from apps.web.payments.services import construct_webhook_event, from_smallest_unit

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Handle Stripe webhook events.

    POST /api/payment/webhooks/stripe
    """
    try:
        provider = run_with_client(
            lambda erp: PaymentProviderResolver(CatalogReader(erp)).resolve_credentials("stripe")
        )
    except (StorefrontError, ERPError) as e:
        logger.error("Cannot verify Stripe webhook, provider unavailable: %s", e)
        return HttpResponse("Provider unavailable", status=503)

    if provider.webhook_credential is None:
        logger.error("Stripe provider %s has no webhook secret configured", provider.id)
        return HttpResponse("Provider unavailable", status=503)

    try:
        event = construct_webhook_event(
            request.body,
            request.headers.get("Stripe-Signature", ""),
            provider.webhook_credential,
        )
    except ValueError as e:
        logger.warning("Invalid Stripe webhook payload: %s", e)
        return HttpResponse("Invalid payload", status=400)
    except stripe.SignatureVerificationError as e:
        logger.warning("Invalid Stripe webhook signature: %s", e)
        return HttpResponse("Invalid signature", status=400)

    logger.info("Received Stripe event: %s", event["type"])

    match event["type"]:
        case "payment_intent.succeeded":
            try:
                _handle_payment_succeeded(_as_dict(event["data"]["object"]))
            except ERPError as e:
                logger.error("Recording payment failed, Stripe will retry: %s", e.message)
                return HttpResponse("ERP unavailable", status=503)
        case "payment_intent.payment_failed":
            _handle_payment_failed(_as_dict(event["data"]["object"]))
        case _:
            logger.debug("Ignoring unhandled Stripe event: %s", event["type"])

    return HttpResponse(status=200)


def _as_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _order_id(payment_intent: dict[str, Any]) -> int | None:
    metadata = payment_intent.get("metadata") or {}
    raw = metadata.get("order_id")
    if not raw:
        logger.warning("PaymentIntent has no order_id in metadata: %s", payment_intent.get("id"))
        return None
    try:
        return int(raw)
    except (ValueError, TypeError):
        logger.error("Invalid order_id in metadata: %s", raw)
        return None


def _handle_payment_succeeded(payment_intent: dict[str, Any]) -> None:
    order_id = _order_id(payment_intent)
    if order_id is None:
        return

    amount = from_smallest_unit(
        int(payment_intent.get("amount_received") or payment_intent.get("amount") or 0),
        str(payment_intent.get("currency") or "usd"),
    )
    try:
        recorded = run_with_client(
            lambda erp: OrderOrchestrator(erp).record_payment(order_id, amount)
        )
    except StorefrontError as e:
        logger.error("Cannot record payment for order_id=%s: %s", order_id, e.message)
        return

    if recorded:
        logger.info("Order paid via webhook: order_id=%s amount=%s", order_id, amount)


def _handle_payment_failed(payment_intent: dict[str, Any]) -> None:
    order_id = _order_id(payment_intent)
    last_error = payment_intent.get("last_payment_error") or {}
    logger.info(
        "Payment failed for order_id=%s: %s",
        order_id,
        last_error.get("message", "Unknown error"),
    )
