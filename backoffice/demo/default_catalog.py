from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice.api.utils import now_utc
from backoffice.core.config import get_settings
from backoffice.persistence.models import CustomerModel, OrganizationModel, ProductVariantModel

logger = logging.getLogger(__name__)

DEMO_CUSTOMER_ID = "cus-demo-001"

# (variant_id, product_id, product_name, variant_name, sku, price, stock)
DEMO_VARIANTS: list[tuple[str, str, str, str, str, int, int]] = [
    ("var-1", "prod-tee", "Organic Cotton T-Shirt", "White / S", "TEE-WHT-S", 4500, 10),
    ("var-2", "prod-tee", "Organic Cotton T-Shirt", "White / M", "TEE-WHT-M", 4500, 15),
    ("var-3", "prod-tee", "Organic Cotton T-Shirt", "White / L", "TEE-WHT-L", 4500, 8),
    ("var-4", "prod-tee", "Organic Cotton T-Shirt", "Black / S", "TEE-BLK-S", 4500, 12),
    ("var-5", "prod-tee", "Organic Cotton T-Shirt", "Black / M", "TEE-BLK-M", 4500, 20),
    ("var-6", "prod-tee", "Organic Cotton T-Shirt", "Black / L", "TEE-BLK-L", 4500, 5),
    ("var-7", "prod-pants", "Linen Wide Pants", "Beige / S", "PNT-BEI-S", 8900, 8),
    ("var-8", "prod-pants", "Linen Wide Pants", "Beige / M", "PNT-BEI-M", 8900, 12),
    ("var-9", "prod-pants", "Linen Wide Pants", "Beige / L", "PNT-BEI-L", 8900, 6),
    ("var-10", "prod-bag", "Handmade Leather Bag", "Brown", "BAG-BRN", 24800, 5),
    ("var-11", "prod-bag", "Handmade Leather Bag", "Black", "BAG-BLK", 24800, 3),
    ("var-12", "prod-soap", "Organic Soap Set", "Set of 3", "SOAP-SET3", 3500, 30),
]


def seed_default_catalog(session: Session, organization_id: str | None = None) -> dict[str, Any]:
    """Create the demo organization, customer and catalog once."""
    settings = get_settings()
    organization_id = organization_id or settings.demo_organization_id
    # ids are global keys, so catalogs seeded for other organizations get a prefix
    prefix = "" if organization_id == settings.demo_organization_id else f"{organization_id}-"
    existing = session.get(OrganizationModel, organization_id)
    if existing is not None:
        count = len(
            session.scalars(
                select(ProductVariantModel.id).where(ProductVariantModel.organization_id == organization_id)
            ).all()
        )
        return {"organization_id": organization_id, "seeded_now": False, "variants": count}

    now = now_utc()
    session.add(OrganizationModel(id=organization_id, name="Demo Store", created_at=now))
    session.add(
        CustomerModel(
            id=f"{prefix}{DEMO_CUSTOMER_ID}",
            organization_id=organization_id,
            name="Hanako Yamada",
            email="hanako@example.com",
            created_at=now,
        )
    )
    for variant_id, product_id, product_name, name, sku, price, stock in DEMO_VARIANTS:
        session.add(
            ProductVariantModel(
                id=f"{prefix}{variant_id}",
                organization_id=organization_id,
                product_id=product_id,
                product_name=product_name,
                name=name,
                sku=sku,
                price=price,
                stock=stock,
                low_stock_threshold=settings.default_low_stock_threshold,
                lock_version=0,
                updated_at=now,
            )
        )
    session.flush()
    logger.info("demo catalog seeded: org=%s variants=%s", organization_id, len(DEMO_VARIANTS))
    return {"organization_id": organization_id, "seeded_now": True, "variants": len(DEMO_VARIANTS)}
