"""
URL routing for booking endpoints.
"""

from django.urls import path

from apps.web.booking import views

app_name = "booking"

urlpatterns = [
    path("availability", views.availability, name="availability"),
    path("reserve", views.reserve, name="reserve"),
    path(
        "staff/reservations/<int:reservation_id>/cancel",
        views.staff_cancel,
        name="staff_cancel",
    ),
]
