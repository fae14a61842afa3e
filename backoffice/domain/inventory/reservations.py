from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice.domain.inventory.variants import VariantStore
from backoffice.domain.orders.lifecycle import STOCK_HOLDING_STATUSES
from backoffice.persistence.models import OrderLineModel, OrderModel


@dataclass(frozen=True)
class Availability:
    variant_id: str
    stock: int
    reserved: int

    @property
    def available(self) -> int:
        return self.stock - self.reserved


def reserved_by_variant(
    session: Session,
    organization_id: str | None = None,
    variant_ids: Iterable[str] | None = None,
) -> dict[str, int]:
    # Always a fresh aggregate over the current stock-holding orders.
    stmt = (
        select(OrderLineModel.variant_id, func.sum(OrderLineModel.quantity))
        .join(OrderModel, OrderModel.id == OrderLineModel.order_id)
        .where(OrderModel.status.in_([status.value for status in STOCK_HOLDING_STATUSES]))
        .group_by(OrderLineModel.variant_id)
    )
    if organization_id is not None:
        stmt = stmt.where(OrderModel.organization_id == organization_id)
    if variant_ids is not None:
        stmt = stmt.where(OrderLineModel.variant_id.in_(list(variant_ids)))
    return {variant_id: int(total) for variant_id, total in session.execute(stmt).all() if total}


def reserved_quantity(session: Session, variant_id: str) -> int:
    return reserved_by_variant(session, variant_ids=[variant_id]).get(variant_id, 0)


def available(session: Session, variant_id: str) -> Availability:
    variant = VariantStore(session).get(variant_id)
    reserved = reserved_by_variant(session, variant.organization_id, [variant_id]).get(variant_id, 0)
    return Availability(variant_id=variant_id, stock=int(variant.stock), reserved=reserved)


def get_reserved_stock(session: Session, organization_id: str, variant_id: str | None = None) -> dict[str, int]:
    variant_ids = [variant_id] if variant_id is not None else None
    return reserved_by_variant(session, organization_id, variant_ids)
