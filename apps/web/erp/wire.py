"""Helpers for the ERP's JSON value conventions."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

ERP_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_erp_datetime(value: datetime) -> str:
    """Serialize an aware datetime as the ERP's naive-UTC string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(ERP_DATETIME_FORMAT)


def from_erp_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, ERP_DATETIME_FORMAT).replace(tzinfo=UTC)


def m2o_id(value: Any) -> int | None:
    """Many2one values arrive as [id, display_name], a bare id, or False."""
    if isinstance(value, list | tuple):
        return int(value[0]) if value else None
    if isinstance(value, bool) or value is None:
        return None
    return int(value)


def m2o_name(value: Any) -> str | None:
    if isinstance(value, list | tuple) and len(value) > 1:
        return str(value[1])
    return None


def text(value: Any) -> str | None:
    """Empty scalars arrive as False."""
    if value is False or value is None:
        return None
    return str(value)


def money(value: Any) -> Decimal:
    if value is False or value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))
