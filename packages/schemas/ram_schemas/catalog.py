"""Catalog and reference schemas - read models projected from ERP records."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, SecretStr


class ProviderState(str, Enum):
    """Payment provider state as configured in the ERP."""

    ENABLED = "enabled"
    TEST = "test"
    DISABLED = "disabled"


class Product(BaseModel):
    """A sellable product."""

    id: int
    name: str
    price: Decimal
    available: bool = True
    category: str | None = None
    description: str = ""


class PaymentProvider(BaseModel):
    """
    Full payment provider record.

    Secret and webhook credentials are only populated when the caller asked
    for credential fields; they never leave the integration layer.
    """

    id: int
    name: str
    code: str
    state: ProviderState
    publishable_credential: str | None = None
    secret_credential: SecretStr | None = None
    webhook_credential: SecretStr | None = None

    def public_view(self) -> "PublicProviderView":
        return PublicProviderView(
            id=self.id,
            name=self.name,
            code=self.code,
            state=self.state,
            publishable_credential=self.publishable_credential,
        )


class PublicProviderView(BaseModel):
    """What may be forwarded to the storefront about a payment provider."""

    id: int
    name: str
    code: str
    state: ProviderState
    publishable_credential: str | None = None


class Floor(BaseModel):
    """A restaurant floor."""

    id: int
    name: str
    table_ids: list[int] = Field(default_factory=list)


class Table(BaseModel):
    """A table on a floor."""

    id: int
    name: str
    floor_id: int | None = None
    capacity: int = Field(ge=0)


class Customer(BaseModel):
    """An ERP partner acting as customer."""

    id: int
    name: str
    email: str | None = None
    phone: str | None = None


class PosSession(BaseModel):
    """An open point-of-sale session orders are attached to."""

    id: int
    config_id: int | None = None
    name: str = ""
