from __future__ import annotations

import pytest
from sqlalchemy import select

from backoffice.core.config import Settings
from backoffice.domain.errors import InsufficientStock, InvalidTransition, OrderNotFound, VariantNotFound
from backoffice.domain.inventory.reservations import get_reserved_stock
from backoffice.domain.orders.engine import FulfillmentEngine
from backoffice.domain.orders.projections import get_order, to_view
from backoffice.ledger.store import MovementLedger
from backoffice.persistence import pg
from backoffice.persistence.models import ProductVariantModel, StockMovementModel


def _engine_call(method: str, *args, settings: Settings | None = None, **kwargs):
    return pg.run_atomic(
        lambda s: to_view(getattr(FulfillmentEngine(s, settings=settings), method)(*args, **kwargs))
    )


def _stock(variant_id: str) -> int:
    with pg.session_scope() as s:
        return int(s.get(ProductVariantModel, variant_id).stock)


def _movements(reference: str) -> list[tuple]:
    with pg.session_scope() as s:
        return [
            (e.variant_id, e.type, e.kind, e.quantity, e.previous_stock, e.new_stock)
            for e in MovementLedger(s).entries_for_reference(reference)
        ]


@pytest.fixture()
def placed_order(make_catalog, new_order):
    make_catalog({"v1": 10, "v2": 5})
    return _engine_call("create_order", new_order([("v1", 3), ("v2", 2)]))


@pytest.fixture()
def shipped_order(placed_order):
    _engine_call("confirm_order", placed_order.id)
    return _engine_call("ship_order", placed_order.id, tracking_number="TRK-1")


def test_confirm_and_processing(placed_order):
    confirmed = _engine_call("confirm_order", placed_order.id)
    assert confirmed.status == "confirmed"
    processing = _engine_call("start_processing", placed_order.id)
    assert processing.status == "processing"


def test_ship_commits_physical_stock(shipped_order):
    assert shipped_order.status == "shipped"
    assert shipped_order.tracking_number == "TRK-1"
    assert shipped_order.shipped_at is not None
    assert _stock("v1") == 7
    assert _stock("v2") == 3
    assert _movements(shipped_order.order_number)[2:] == [
        ("v1", "out", "shipment", -3, 10, 7),
        ("v2", "out", "shipment", -2, 5, 3),
    ]
    with pg.session_scope() as s:
        assert get_reserved_stock(s, "org-test") == {}


def test_ship_from_placed_is_invalid(placed_order):
    with pytest.raises(InvalidTransition) as excinfo:
        _engine_call("ship_order", placed_order.id)
    assert excinfo.value.current_status == "placed"
    assert _stock("v1") == 10


def test_second_ship_is_rejected_without_double_decrement(shipped_order):
    with pytest.raises(InvalidTransition) as excinfo:
        _engine_call("ship_order", shipped_order.id)
    assert excinfo.value.current_status == "shipped"
    assert _stock("v1") == 7
    assert len(_movements(shipped_order.order_number)) == 4


def test_ship_detects_physical_drift_and_changes_nothing(placed_order):
    _engine_call("confirm_order", placed_order.id)
    with pg.session_scope() as s:
        # a manual write-off outside the engine
        s.get(ProductVariantModel, "v2").stock = 1

    with pytest.raises(InsufficientStock) as excinfo:
        _engine_call("ship_order", placed_order.id)

    assert excinfo.value.phase == "shipment"
    assert excinfo.value.variant_id == "v2"
    assert (excinfo.value.requested, excinfo.value.available) == (2, 1)
    assert _stock("v1") == 10
    assert _stock("v2") == 1
    with pg.session_scope() as s:
        assert get_order(s, placed_order.id).status == "confirmed"
    assert len(_movements(placed_order.order_number)) == 2


def test_deliver(shipped_order):
    delivered = _engine_call("mark_delivered", shipped_order.id)
    assert delivered.status == "delivered"
    assert delivered.delivered_at is not None


def test_cancel_releases_reservation_without_touching_stock(placed_order):
    cancelled = _engine_call("cancel_order", placed_order.id)
    assert cancelled.status == "cancelled"
    assert _stock("v1") == 10
    assert _movements(placed_order.order_number)[2:] == [
        ("v1", "adjustment", "release", 3, 10, 10),
        ("v2", "adjustment", "release", 2, 5, 5),
    ]
    with pg.session_scope() as s:
        assert get_reserved_stock(s, "org-test") == {}


def test_cancel_goes_ahead_when_a_variant_left_the_catalog(placed_order):
    with pg.session_scope() as s:
        s.delete(s.get(ProductVariantModel, "v2"))

    cancelled = _engine_call("cancel_order", placed_order.id)
    assert cancelled.status == "cancelled"
    # the removed variant gets no release entry
    assert _movements(placed_order.order_number)[2:] == [("v1", "adjustment", "release", 3, 10, 10)]
    with pg.session_scope() as s:
        assert get_reserved_stock(s, "org-test") == {}
        assert MovementLedger(s).sum_active_reservations("v1") == 0


def test_ship_still_requires_every_variant(placed_order):
    _engine_call("confirm_order", placed_order.id)
    with pg.session_scope() as s:
        s.delete(s.get(ProductVariantModel, "v2"))

    with pytest.raises(VariantNotFound):
        _engine_call("ship_order", placed_order.id)
    assert _stock("v1") == 10


def test_cancel_after_ship_is_invalid_and_refund_restocks(shipped_order):
    with pytest.raises(InvalidTransition):
        _engine_call("cancel_order", shipped_order.id)

    refunded = _engine_call("refund_order", shipped_order.id)
    assert refunded.status == "refunded"
    assert refunded.payment_status == "refunded"
    assert _stock("v1") == 10
    assert _stock("v2") == 5
    assert _movements(shipped_order.order_number)[4:] == [
        ("v1", "in", "restock", 3, 7, 10),
        ("v2", "in", "restock", 2, 3, 5),
    ]


def test_refund_without_returning_stock(shipped_order):
    refunded = _engine_call("refund_order", shipped_order.id, return_stock=False)
    assert refunded.status == "refunded"
    assert refunded.payment_status == "refunded"
    assert _stock("v1") == 7
    assert len(_movements(shipped_order.order_number)) == 4


def test_refund_from_delivered(shipped_order):
    _engine_call("mark_delivered", shipped_order.id)
    assert _engine_call("refund_order", shipped_order.id).status == "refunded"


def test_refund_before_ship_is_invalid(placed_order):
    with pytest.raises(InvalidTransition):
        _engine_call("refund_order", placed_order.id)


def test_refund_can_require_captured_payment(shipped_order):
    strict = Settings(refund_requires_captured_payment=True)
    with pytest.raises(InvalidTransition) as excinfo:
        _engine_call("refund_order", shipped_order.id, settings=strict)
    assert excinfo.value.reason == "payment was not captured"
    assert _stock("v1") == 7

    _engine_call("update_payment_status", shipped_order.id, "paid")
    assert _engine_call("refund_order", shipped_order.id, settings=strict).status == "refunded"


def test_terminal_orders_reject_everything(placed_order):
    _engine_call("cancel_order", placed_order.id)
    for method in ("confirm_order", "start_processing", "ship_order", "mark_delivered", "cancel_order", "refund_order"):
        with pytest.raises(InvalidTransition):
            _engine_call(method, placed_order.id)
    with pg.session_scope() as s:
        assert len(s.scalars(select(StockMovementModel)).all()) == 4


def test_unknown_order():
    with pytest.raises(OrderNotFound):
        _engine_call("confirm_order", "does-not-exist")


def test_payment_status_updates(shipped_order):
    assert _engine_call("update_payment_status", shipped_order.id, "paid").payment_status == "paid"
    with pytest.raises(ValueError):
        _engine_call("update_payment_status", shipped_order.id, "bogus")
    with pytest.raises(InvalidTransition):
        _engine_call("update_payment_status", shipped_order.id, "refunded")

    _engine_call("refund_order", shipped_order.id)
    with pytest.raises(InvalidTransition):
        _engine_call("update_payment_status", shipped_order.id, "paid")


def test_tracking_number_and_notes(placed_order):
    assert _engine_call("update_tracking_number", placed_order.id, "TRK-9").tracking_number == "TRK-9"
    assert _engine_call("update_notes", placed_order.id, "gift wrap").notes == "gift wrap"

    _engine_call("cancel_order", placed_order.id)
    with pytest.raises(InvalidTransition):
        _engine_call("update_tracking_number", placed_order.id, "TRK-10")
    assert _engine_call("update_notes", placed_order.id, None).notes is None
