"""
Payment provider resolver.

Selects the payment provider checkout may use. The public view it returns
never carries secret or webhook credentials; `resolve_credentials` is for the
server-side Stripe calls only and its result must not be serialized.
"""

import logging

from django.conf import settings
from ram_schemas import PaymentProvider, ProviderState, PublicProviderView

from apps.web.catalog.reader import CatalogReader, FieldScope
from apps.web.core.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)


class PaymentProviderResolver:
    """
    Pick the active provider for a code.

    A provider is active when its state is `enabled`, or `test` when test
    providers are allowed (non-production). Enabled providers win over test
    ones; ties go to the lowest id.
    """

    def __init__(self, reader: CatalogReader, allow_test: bool | None = None) -> None:
        self.reader = reader
        if allow_test is None:
            allow_test = settings.PAYMENT_ALLOW_TEST_PROVIDERS
        self.allow_test = allow_test

    @property
    def accepted_states(self) -> frozenset[ProviderState]:
        if self.allow_test:
            return frozenset({ProviderState.ENABLED, ProviderState.TEST})
        return frozenset({ProviderState.ENABLED})

    async def _select(self, code: str, scope: FieldScope) -> PaymentProvider:
        providers = await self.reader.list_payment_providers(code, scope=scope)
        candidates = [p for p in providers if p.state in self.accepted_states]
        if not candidates:
            logger.info("No active payment provider for code=%s", code)
            raise ProviderUnavailable(code)
        candidates.sort(key=lambda p: (p.state is not ProviderState.ENABLED, p.id))
        return candidates[0]

    async def resolve_active_provider(self, code: str) -> PublicProviderView:
        """
        Resolve the provider checkout should use for `code`.

        Raises:
            ProviderUnavailable: If no enabled (or allowed test) provider matches.
        """
        provider = await self._select(code, FieldScope.PUBLIC)
        return provider.public_view()

    async def resolve_credentials(self, code: str) -> PaymentProvider:
        """
        Resolve the active provider including its secret credentials.

        Raises:
            ProviderUnavailable: If no provider is active or it has no secret key.
        """
        provider = await self._select(code, FieldScope.CREDENTIALS)
        if provider.secret_credential is None:
            logger.error("Payment provider %s has no secret key configured", provider.id)
            raise ProviderUnavailable(code)
        return provider
