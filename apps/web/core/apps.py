"""Django app configuration for shared storefront plumbing."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Core app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.core"
    verbose_name = "Core"
