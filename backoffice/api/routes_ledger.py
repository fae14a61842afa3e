from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.api.routes_inventory import movement_payload
from backoffice.core.config import get_settings
from backoffice.domain.inventory.reservations import reserved_quantity
from backoffice.domain.inventory.variants import VariantStore
from backoffice.ledger.entries import MovementType
from backoffice.ledger.store import MovementLedger
from backoffice.persistence.pg import get_session

router = APIRouter(tags=["ledger"])


@router.get("/ledger/movements")
def list_movements(
    organization_id: str = Query(min_length=1),
    variant_id: str | None = Query(default=None),
    product_id: str | None = Query(default=None),
    movement_type: MovementType | None = Query(default=None, alias="type"),
    search: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    page = MovementLedger(session).list_movements(
        organization_id,
        variant_id=variant_id,
        product_id=product_id,
        movement_type=movement_type,
        search=search,
        limit=limit or get_settings().movements_page_size,
        offset=offset,
    )
    return {
        "organization_id": organization_id,
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
        "movements": [movement_payload(row) for row in page.items],
    }


@router.get("/ledger/variants/{variant_id}/verify")
def verify_variant_chain(variant_id: str, session: Session = Depends(get_session)):
    stock = VariantStore(session).get_stock(variant_id)
    ledger = MovementLedger(session)
    result = ledger.verify_chain(variant_id, current_stock=stock)
    return {
        **result.model_dump(),
        "ledger_reserved": ledger.sum_active_reservations(variant_id),
        "order_reserved": reserved_quantity(session, variant_id),
    }
