from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from backoffice.api.utils import now_utc
from backoffice.core.security import Actor
from backoffice.domain.errors import InsufficientStock
from backoffice.domain.inventory.commands import StockAdjustmentInput
from backoffice.domain.inventory.reservations import reserved_by_variant
from backoffice.domain.inventory.variants import VariantStore
from backoffice.ledger.entries import MovementCreate, MovementKind
from backoffice.ledger.store import MovementLedger
from backoffice.persistence.models import StockMovementModel

logger = logging.getLogger(__name__)


def adjust_stock(session: Session, data: StockAdjustmentInput, actor: Actor | None = None) -> StockMovementModel:
    """Apply a manual physical stock change and record it in the ledger.

    Stock may not go negative. Dropping below the quantity held by open
    orders is allowed (goods can be lost or damaged) but is logged, since
    those orders will then fail at ship time.
    """
    actor = actor or Actor.system()
    variants = VariantStore(session)
    variant = variants.lock([data.variant_id], organization_id=data.organization_id)[data.variant_id]

    previous = int(variant.stock)
    new_stock = previous + data.delta
    if new_stock < 0:
        raise InsufficientStock(variant.id, -data.delta, previous, sku=variant.sku, phase="adjustment")

    reserved = reserved_by_variant(session, data.organization_id, [variant.id]).get(variant.id, 0)
    if new_stock < reserved:
        logger.warning(
            "stock for %s now below open reservations: stock=%s reserved=%s",
            variant.sku,
            new_stock,
            reserved,
        )

    variants.set_stock(variant.id, new_stock)
    entry = MovementLedger(session).record(
        MovementCreate(
            organization_id=data.organization_id,
            product_id=variant.product_id,
            variant_id=variant.id,
            type=data.type,
            kind=MovementKind.MANUAL,
            quantity=data.delta,
            previous_stock=previous,
            new_stock=new_stock,
            reason=data.reason,
            reference=data.reference,
            lot_number=data.lot_number,
            product_name=variant.product_name,
            variant_name=variant.name,
            sku=variant.sku,
            actor_id=actor.id,
            created_by=actor.name,
            created_at=now_utc(),
        )
    )
    logger.info("stock adjusted: sku=%s %s -> %s (%s)", variant.sku, previous, new_stock, data.type.value)
    return entry
