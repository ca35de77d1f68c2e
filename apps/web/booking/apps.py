"""Django app configuration for table booking."""

from django.apps import AppConfig


class BookingConfig(AppConfig):
    """Booking app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.booking"
    verbose_name = "Table Booking"
