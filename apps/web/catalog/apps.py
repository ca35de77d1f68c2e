"""Django app configuration for the catalog read endpoints."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Catalog app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.catalog"
    verbose_name = "Catalog"
