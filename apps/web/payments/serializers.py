"""
Pydantic schemas for payment API requests and responses.
"""

from pydantic import BaseModel, Field
from ram_schemas import PublicProviderView


class ProviderQuery(BaseModel):
    """Query string for GET /api/providers."""

    code: str = Field(..., min_length=1, max_length=64)


class ProviderResponse(BaseModel):
    """Response for GET /api/providers. Public fields only."""

    provider: PublicProviderView


class PaymentConfigResponse(BaseModel):
    """Response for GET /api/payment/config."""

    provider: str
    public_key: str
    currency: str


class PaymentIntentRequest(BaseModel):
    """Request body for POST /api/payment/intent."""

    order_id: int = Field(..., gt=0)


class PaymentIntentResponse(BaseModel):
    """Response for POST /api/payment/intent."""

    client_secret: str
    provider: str
    amount: int
    currency: str
