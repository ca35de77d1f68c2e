import pytest
from django.core.cache import cache

from apps.web.erp.tests.factories import (
    PaymentMethodRecordFactory,
    ProductRecordFactory,
    ProviderRecordFactory,
    SessionRecordFactory,
)


@pytest.fixture
def shop(mock_erp):
    """An open restaurant with two dishes and a Stripe provider."""
    mock_erp.seed(
        "product.product",
        [
            ProductRecordFactory(id=1, name="Ramen", list_price=10.0),
            ProductRecordFactory(id=2, name="Gyoza", list_price=4.5),
            ProductRecordFactory(id=3, name="Seasonal", available_in_pos=False),
        ],
    )
    mock_erp.seed("payment.provider", [ProviderRecordFactory(id=1)])
    mock_erp.seed("pos.session", [SessionRecordFactory(id=1)])
    mock_erp.seed("pos.payment.method", [PaymentMethodRecordFactory(id=1)])
    return mock_erp


@pytest.fixture(autouse=True)
def _clear_idempotency_cache():
    cache.clear()
