from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Select, case, func, or_, select
from sqlalchemy.orm import Session

from backoffice.ledger.entries import (
    ChainBreak,
    ChainVerification,
    MovementCreate,
    MovementKind,
    MovementType,
    physical_delta,
)
from backoffice.persistence.models import StockMovementModel

logger = logging.getLogger(__name__)


@dataclass
class MovementPage:
    items: list[StockMovementModel]
    total: int
    limit: int
    offset: int


def _reservation_delta():
    # reservation (-q) opens a hold, release (+q) and shipment (-q) close it
    return case(
        (StockMovementModel.kind == MovementKind.RESERVATION.value, -StockMovementModel.quantity),
        (StockMovementModel.kind == MovementKind.RELEASE.value, -StockMovementModel.quantity),
        (StockMovementModel.kind == MovementKind.SHIPMENT.value, StockMovementModel.quantity),
        else_=0,
    )


class MovementLedger:
    """Append-only stock movement log.

    Rows are only ever inserted; there is deliberately no update or delete
    path on this class.
    """

    def __init__(self, session: Session):
        self.session = session

    def record(self, entry: MovementCreate) -> StockMovementModel:
        row = StockMovementModel(
            organization_id=entry.organization_id,
            product_id=entry.product_id,
            variant_id=entry.variant_id,
            type=entry.type.value,
            kind=entry.kind.value,
            quantity=entry.quantity,
            previous_stock=entry.previous_stock,
            new_stock=entry.new_stock,
            reason=entry.reason,
            reference=entry.reference,
            lot_number=entry.lot_number,
            product_name=entry.product_name,
            variant_name=entry.variant_name,
            sku=entry.sku,
            actor_id=entry.actor_id,
            created_by=entry.created_by,
            created_at=entry.created_at,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def entries_for_variant(self, variant_id: str) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.variant_id == variant_id)
            .order_by(StockMovementModel.seq_id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def entries_for_reference(self, reference: str) -> list[StockMovementModel]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.reference == reference)
            .order_by(StockMovementModel.seq_id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def sum_active_reservations(self, variant_id: str) -> int:
        stmt = select(func.coalesce(func.sum(_reservation_delta()), 0)).where(
            StockMovementModel.variant_id == variant_id
        )
        return int(self.session.scalar(stmt) or 0)

    def active_reservations(self, organization_id: str, variant_id: str | None = None) -> dict[str, int]:
        stmt = (
            select(StockMovementModel.variant_id, func.sum(_reservation_delta()))
            .where(StockMovementModel.organization_id == organization_id)
            .group_by(StockMovementModel.variant_id)
        )
        if variant_id is not None:
            stmt = stmt.where(StockMovementModel.variant_id == variant_id)
        return {vid: int(total) for vid, total in self.session.execute(stmt).all() if total}

    def list_movements(
        self,
        organization_id: str,
        variant_id: str | None = None,
        product_id: str | None = None,
        movement_type: MovementType | str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> MovementPage:
        stmt: Select[tuple[StockMovementModel]] = select(StockMovementModel).where(
            StockMovementModel.organization_id == organization_id
        )
        if variant_id:
            stmt = stmt.where(StockMovementModel.variant_id == variant_id)
        if product_id:
            stmt = stmt.where(StockMovementModel.product_id == product_id)
        if movement_type:
            stmt = stmt.where(StockMovementModel.type == MovementType(movement_type).value)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    StockMovementModel.product_name.ilike(pattern),
                    StockMovementModel.variant_name.ilike(pattern),
                    StockMovementModel.sku.ilike(pattern),
                    StockMovementModel.reason.ilike(pattern),
                    StockMovementModel.reference.ilike(pattern),
                )
            )

        total = int(self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0)
        page = stmt.order_by(StockMovementModel.seq_id.desc()).limit(limit).offset(offset)
        return MovementPage(items=list(self.session.scalars(page).all()), total=total, limit=limit, offset=offset)

    def verify_chain(self, variant_id: str, current_stock: int | None = None) -> ChainVerification:
        entries = self.entries_for_variant(variant_id)
        result = ChainVerification(variant_id=variant_id, entries=len(entries), ok=True, current_stock=current_stock)
        if not entries:
            return result

        running = entries[0].previous_stock
        result.opening_stock = running
        for entry in entries:
            expected_new = running + physical_delta(entry.kind, entry.quantity)
            problem = None
            if entry.previous_stock != running:
                problem = "previous_stock does not continue the chain"
            elif entry.new_stock != expected_new:
                problem = "new_stock does not match previous_stock plus physical delta"
            if problem:
                result.ok = False
                result.breaks.append(
                    ChainBreak(
                        seq_id=entry.seq_id,
                        movement_id=entry.movement_id,
                        expected_previous_stock=running,
                        expected_new_stock=expected_new,
                        previous_stock=entry.previous_stock,
                        new_stock=entry.new_stock,
                        reason=problem,
                    )
                )
            running = entry.new_stock

        result.closing_stock = running
        if current_stock is not None and current_stock != running:
            result.ok = False
        if not result.ok:
            logger.error(
                "movement ledger chain broken for variant=%s breaks=%s closing=%s current=%s",
                variant_id,
                len(result.breaks),
                running,
                current_stock,
            )
        return result
