"""
Payment API views - provider lookup, Stripe config and payment intents.

Only public provider fields are ever serialized; secret keys are resolved
server-side from the ERP and used for the Stripe call itself.
"""

import logging
from decimal import Decimal

from django.http import Http404, HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from ram_schemas import Order, PaymentProvider

from apps.web.catalog.reader import CatalogReader
from apps.web.core.decorators import storefront_errors
from apps.web.core.exceptions import ProviderUnavailable, ValidationFailure
from apps.web.core.http import json_response, parse_body, parse_data, schema_response
from apps.web.erp.client import ERPClient
from apps.web.erp.conf import run_with_client
from apps.web.orders.orchestrator import OrderOrchestrator
from apps.web.payments.resolver import PaymentProviderResolver
from apps.web.payments.serializers import (
    PaymentConfigResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    ProviderQuery,
    ProviderResponse,
)
from apps.web.payments.services import PaymentError, create_payment_intent, to_smallest_unit

logger = logging.getLogger(__name__)

STRIPE = "stripe"


@require_GET
@storefront_errors
def provider_detail(request: HttpRequest) -> JsonResponse:
    """
    GET /api/providers?code=

    The active provider for a code, public fields only.
    """
    query = parse_data(request.GET.dict(), ProviderQuery)
    provider = run_with_client(
        lambda erp: PaymentProviderResolver(CatalogReader(erp)).resolve_active_provider(
            query.code
        )
    )
    return schema_response(ProviderResponse(provider=provider))


@require_GET
@storefront_errors
def payment_config(_request: HttpRequest) -> JsonResponse:
    """
    GET /api/payment/config

    Publishable Stripe key and store currency for the checkout form.
    """

    async def load(erp: ERPClient) -> PaymentConfigResponse:
        reader = CatalogReader(erp)
        provider = await PaymentProviderResolver(reader).resolve_active_provider(STRIPE)
        if not provider.publishable_credential:
            logger.error("Payment provider %s has no publishable key", provider.id)
            raise ProviderUnavailable(STRIPE)
        return PaymentConfigResponse(
            provider=provider.code,
            public_key=provider.publishable_credential,
            currency=await reader.company_currency(),
        )

    return schema_response(run_with_client(load))


@csrf_exempt
@require_POST
@storefront_errors
def create_intent(request: HttpRequest) -> JsonResponse:
    """
    POST /api/payment/intent

    Create a Stripe PaymentIntent for an ERP order's total.

    Request body: PaymentIntentRequest
    Response: PaymentIntentResponse (201)
    """
    body = parse_body(request, PaymentIntentRequest)

    async def prepare(erp: ERPClient) -> tuple[Order, PaymentProvider, str]:
        reader = CatalogReader(erp)
        order = await OrderOrchestrator(erp, reader).get_order(body.order_id)
        if order is None:
            raise Http404(f"Order {body.order_id} not found")
        if order.payment_state == "paid":
            raise ValidationFailure.for_field("order_id", "Order is already paid")
        credentials = await PaymentProviderResolver(reader).resolve_credentials(STRIPE)
        return order, credentials, await reader.company_currency()

    order, provider, currency = run_with_client(prepare)
    if order.total <= Decimal("0"):
        raise ValidationFailure.for_field("order_id", "Order has nothing to pay")

    try:
        intent = create_payment_intent(
            provider.secret_credential,  # type: ignore[arg-type]
            amount=order.total,
            currency=currency,
            metadata={"order_id": str(order.id), "order_reference": order.reference},
            idempotency_key=f"order-{order.idempotency_key or order.id}",
        )
    except PaymentError as e:
        logger.warning("PaymentIntent creation failed: order_id=%s code=%s", order.id, e.code)
        return json_response(
            {"error": "payment_failed", "message": e.message},
            status=502,
        )

    response = PaymentIntentResponse(
        client_secret=intent.client_secret,
        provider=STRIPE,
        amount=to_smallest_unit(order.total, currency),
        currency=currency,
    )
    return schema_response(response, status=201)
