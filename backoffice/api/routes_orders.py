from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.core.security import Actor, get_actor
from backoffice.domain.orders.commands import (
    CreateOrderInput,
    NotesUpdate,
    PaymentStatusUpdate,
    RefundOrderInput,
    ShipOrderInput,
    TrackingNumberUpdate,
)
from backoffice.domain.orders.engine import FulfillmentEngine
from backoffice.domain.orders.projections import OrderView, get_order, list_orders, to_view
from backoffice.persistence.pg import get_session, run_atomic

router = APIRouter(tags=["orders"])


def _run(actor: Actor, operation) -> OrderView:
    # one transaction per request; the view is built before the session closes
    return run_atomic(lambda session: to_view(operation(FulfillmentEngine(session, actor=actor))))


@router.post("/orders", status_code=201, response_model=OrderView)
def create_order(body: CreateOrderInput, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.create_order(body))


@router.get("/orders")
def list_organization_orders(
    organization_id: str = Query(min_length=1),
    status: str | None = Query(default=None),
    session: Session = Depends(get_session),
):
    orders = list_orders(session, organization_id, status=status)
    return {"organization_id": organization_id, "count": len(orders), "orders": orders}


@router.get("/orders/{order_id}", response_model=OrderView)
def show_order(order_id: str, session: Session = Depends(get_session)):
    return get_order(session, order_id)


@router.post("/orders/{order_id}/confirm", response_model=OrderView)
def confirm_order(order_id: str, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.confirm_order(order_id))


@router.post("/orders/{order_id}/processing", response_model=OrderView)
def start_processing(order_id: str, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.start_processing(order_id))


@router.post("/orders/{order_id}/ship", response_model=OrderView)
def ship_order(order_id: str, body: ShipOrderInput | None = None, actor: Actor = Depends(get_actor)):
    tracking_number = body.tracking_number if body else None
    return _run(actor, lambda engine: engine.ship_order(order_id, tracking_number=tracking_number))


@router.post("/orders/{order_id}/deliver", response_model=OrderView)
def mark_delivered(order_id: str, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.mark_delivered(order_id))


@router.post("/orders/{order_id}/cancel", response_model=OrderView)
def cancel_order(order_id: str, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.cancel_order(order_id))


@router.post("/orders/{order_id}/refund", response_model=OrderView)
def refund_order(order_id: str, body: RefundOrderInput | None = None, actor: Actor = Depends(get_actor)):
    return_stock = body.return_stock if body else True
    return _run(actor, lambda engine: engine.refund_order(order_id, return_stock=return_stock))


@router.patch("/orders/{order_id}/payment-status", response_model=OrderView)
def update_payment_status(order_id: str, body: PaymentStatusUpdate, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.update_payment_status(order_id, body.payment_status))


@router.patch("/orders/{order_id}/tracking-number", response_model=OrderView)
def update_tracking_number(order_id: str, body: TrackingNumberUpdate, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.update_tracking_number(order_id, body.tracking_number))


@router.patch("/orders/{order_id}/notes", response_model=OrderView)
def update_notes(order_id: str, body: NotesUpdate, actor: Actor = Depends(get_actor)):
    return _run(actor, lambda engine: engine.update_notes(order_id, body.notes))
