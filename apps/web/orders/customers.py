"""Customer find-or-create on the ERP side."""

import logging

from ram_schemas import CustomerInfo

from apps.web.catalog.reader import CatalogReader
from apps.web.erp.client import ERPClient

logger = logging.getLogger(__name__)


async def ensure_customer(erp: ERPClient, info: CustomerInfo) -> int:
    """Return the ERP partner id for `info.email`, creating the partner if needed."""
    existing = await CatalogReader(erp).find_customer(info.email)
    if existing is not None:
        return existing.id

    partner_id = await erp.create(
        "res.partner",
        {"name": info.name, "email": info.email, "phone": info.phone or False},
    )
    logger.info("Created ERP customer: partner_id=%s", partner_id)
    return partner_id
