"""
Pydantic schemas for catalog API requests and responses.
"""

from pydantic import BaseModel, Field
from ram_schemas import Customer, Floor, Product, Table


class ProductListQuery(BaseModel):
    """Query string for GET /api/products."""

    q: str | None = Field(default=None, max_length=100)
    limit: int = Field(default=100, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class ProductListResponse(BaseModel):
    """Response for GET /api/products."""

    products: list[Product]
    limit: int
    offset: int


class FloorListResponse(BaseModel):
    """Response for GET /api/floors."""

    floors: list[Floor]


class TableListQuery(BaseModel):
    """Query string for GET /api/tables."""

    floor_id: int | None = None


class TableListResponse(BaseModel):
    """Response for GET /api/tables."""

    tables: list[Table]


class StoreStatusResponse(BaseModel):
    """Response for GET /api/status."""

    is_open: bool
    message: str


class CustomerListQuery(BaseModel):
    """Query string for GET /api/staff/customers."""

    q: str | None = Field(default=None, max_length=100)
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class CustomerListResponse(BaseModel):
    """Response for GET /api/staff/customers."""

    customers: list[Customer]
