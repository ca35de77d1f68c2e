"""
URL routing for payment endpoints.
"""

from django.urls import path

from apps.web.payments import views, webhooks

app_name = "payments"

urlpatterns = [
    path("providers", views.provider_detail, name="provider_detail"),
    path("payment/config", views.payment_config, name="payment_config"),
    path("payment/intent", views.create_intent, name="create_intent"),
    path("payment/webhooks/stripe", webhooks.stripe_webhook, name="stripe-webhook"),
]
