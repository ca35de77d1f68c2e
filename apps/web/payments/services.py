"""
Payment services - Stripe integration.

Stripe keys are not process configuration: they are held by the ERP's
payment provider record and passed per call.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from pydantic import SecretStr

# https://docs.stripe.com/currencies#zero-decimal
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "bif",
        "clp",
        "djf",
        "gnf",
        "jpy",
        "kmf",
        "mga",
        "pyg",
        "rwf",
        "ugx",
        "vnd",
        "vuv",
        "xaf",
        "xof",
        "xpf",
    }
)


class PaymentError(Exception):
    """Error during payment processing."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def to_smallest_unit(amount: Decimal, currency: str) -> int:
    """Decimal amount -> Stripe integer amount (cents, or whole yen, ...)."""
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_smallest_unit(amount: int, currency: str) -> Decimal:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def create_payment_intent(
    secret_key: SecretStr,
    amount: Decimal,
    currency: str = "usd",
    metadata: dict[str, Any] | None = None,
    idempotency_key: str | None = None,
) -> stripe.PaymentIntent:
    """
    Create a Stripe PaymentIntent for an order.

    Args:
        secret_key: Stripe secret key from the ERP payment provider
        amount: Amount in major units (converted to the smallest unit)
        currency: Lower-case ISO currency code
        metadata: Additional metadata to attach (e.g., order_id)
        idempotency_key: Stripe idempotency key, so a retried request
            returns the same PaymentIntent

    Returns:
        stripe.PaymentIntent with client_secret for frontend

    Raises:
        PaymentError: If Stripe API call fails
    """
    params: dict[str, Any] = {
        "amount": to_smallest_unit(amount, currency),
        "currency": currency,
        "automatic_payment_methods": {"enabled": True},
        "metadata": metadata or {},
        "api_key": secret_key.get_secret_value(),
    }
    if idempotency_key:
        params["idempotency_key"] = idempotency_key

    try:
        return stripe.PaymentIntent.create(**params)
    except stripe.StripeError as e:
        raise PaymentError(
            message=str(e.user_message or "Payment processing failed"),
            code=getattr(e, "code", None),
        ) from e


def construct_webhook_event(
    payload: bytes, sig_header: str, webhook_secret: SecretStr
) -> stripe.Event:
    """
    Verify a webhook signature and parse the event.

    Raises:
        ValueError: If the payload is not valid JSON
        stripe.SignatureVerificationError: If the signature does not match
    """
    return stripe.Webhook.construct_event(
        payload, sig_header, webhook_secret.get_secret_value()
    )
