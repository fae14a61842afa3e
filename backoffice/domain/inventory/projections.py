from __future__ import annotations

from pydantic import BaseModel
from sqlalchemy.orm import Session

from backoffice.domain.inventory.reservations import reserved_by_variant
from backoffice.domain.inventory.variants import VariantStore


class InventoryItem(BaseModel):
    variant_id: str
    product_id: str
    product_name: str
    variant_name: str
    sku: str
    current_stock: int
    reserved_stock: int
    # clamped at zero for display; a manual adjustment can leave stock
    # below open reservations
    available_stock: int
    low_stock_threshold: int
    is_low_stock: bool


class InventoryStats(BaseModel):
    total_items: int
    total_stock: int
    low_stock_items: int
    out_of_stock_items: int


def inventory_summary(session: Session, organization_id: str) -> list[InventoryItem]:
    reserved = reserved_by_variant(session, organization_id)
    items = []
    for variant in VariantStore(session).list_for_organization(organization_id):
        held = reserved.get(variant.id, 0)
        available = max(0, int(variant.stock) - held)
        items.append(
            InventoryItem(
                variant_id=variant.id,
                product_id=variant.product_id,
                product_name=variant.product_name,
                variant_name=variant.name,
                sku=variant.sku,
                current_stock=int(variant.stock),
                reserved_stock=held,
                available_stock=available,
                low_stock_threshold=variant.low_stock_threshold,
                is_low_stock=available <= variant.low_stock_threshold,
            )
        )
    return items


def inventory_stats(session: Session, organization_id: str) -> InventoryStats:
    summary = inventory_summary(session, organization_id)
    return InventoryStats(
        total_items=len(summary),
        total_stock=sum(item.current_stock for item in summary),
        low_stock_items=sum(1 for item in summary if item.is_low_stock and item.available_stock > 0),
        out_of_stock_items=sum(1 for item in summary if item.available_stock == 0),
    )
