"""Django app configuration for the ERP integration."""

from django.apps import AppConfig


class ErpConfig(AppConfig):
    """ERP integration app configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.erp"
    verbose_name = "ERP Integration"

    def ready(self) -> None:
        # Fail at startup, not on the first storefront request.
        from apps.web.erp.conf import load_config

        load_config()
