"""
URL configuration for the RAM storefront backend.

All endpoints are JSON APIs consumed by the storefront.
"""

from django.urls import include, path

urlpatterns = [
    path("api/", include("apps.web.catalog.urls")),
    path("api/", include("apps.web.payments.urls")),
    path("api/", include("apps.web.orders.urls")),
    path("api/booking/", include("apps.web.booking.urls")),
]
