"""Django app configuration for cart and checkout."""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    """Cart & order app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.orders"
    verbose_name = "Cart & Orders"
