from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.api.utils import iso_z
from backoffice.core.security import Actor, get_actor
from backoffice.domain.inventory.adjustments import adjust_stock
from backoffice.domain.inventory.commands import StockAdjustmentInput
from backoffice.domain.inventory.projections import inventory_stats, inventory_summary
from backoffice.domain.inventory.reservations import available, get_reserved_stock
from backoffice.persistence.models import StockMovementModel
from backoffice.persistence.pg import get_session, run_atomic

router = APIRouter(tags=["inventory"])


def movement_payload(row: StockMovementModel) -> dict:
    return {
        "seq_id": row.seq_id,
        "movement_id": row.movement_id,
        "organization_id": row.organization_id,
        "product_id": row.product_id,
        "variant_id": row.variant_id,
        "type": row.type,
        "kind": row.kind,
        "quantity": row.quantity,
        "previous_stock": row.previous_stock,
        "new_stock": row.new_stock,
        "reason": row.reason,
        "reference": row.reference,
        "lot_number": row.lot_number,
        "product_name": row.product_name,
        "variant_name": row.variant_name,
        "sku": row.sku,
        "actor_id": row.actor_id,
        "created_by": row.created_by,
        "created_at": iso_z(row.created_at),
    }


@router.get("/inventory/reserved")
def reserved_stock(
    organization_id: str = Query(min_length=1),
    variant_id: str | None = Query(default=None),
    session: Session = Depends(get_session),
):
    return {
        "organization_id": organization_id,
        "reserved": get_reserved_stock(session, organization_id, variant_id),
    }


@router.get("/inventory/variants/{variant_id}/availability")
def variant_availability(variant_id: str, session: Session = Depends(get_session)):
    result = available(session, variant_id)
    return {
        "variant_id": result.variant_id,
        "stock": result.stock,
        "reserved": result.reserved,
        "available": result.available,
    }


@router.get("/inventory/summary")
def summary(organization_id: str = Query(min_length=1), session: Session = Depends(get_session)):
    items = inventory_summary(session, organization_id)
    return {"organization_id": organization_id, "count": len(items), "items": items}


@router.get("/inventory/stats")
def stats(organization_id: str = Query(min_length=1), session: Session = Depends(get_session)):
    return inventory_stats(session, organization_id)


@router.post("/inventory/adjustments", status_code=201)
def create_adjustment(body: StockAdjustmentInput, actor: Actor = Depends(get_actor)):
    return run_atomic(lambda session: movement_payload(adjust_stock(session, body, actor=actor)))
