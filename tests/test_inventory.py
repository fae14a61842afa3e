from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from backoffice.core.security import Actor
from backoffice.domain.errors import InsufficientStock, VariantNotFound
from backoffice.domain.inventory.adjustments import adjust_stock
from backoffice.domain.inventory.commands import StockAdjustmentInput
from backoffice.domain.inventory.projections import inventory_stats, inventory_summary
from backoffice.domain.inventory.reservations import available
from backoffice.domain.orders.engine import FulfillmentEngine
from backoffice.persistence import pg
from backoffice.persistence.models import ProductVariantModel


def _adjust(variant_id: str, type_: str, quantity: int, **extra):
    data = StockAdjustmentInput(organization_id="org-test", variant_id=variant_id, type=type_, quantity=quantity, **extra)
    return pg.run_atomic(lambda s: adjust_stock(s, data, actor=Actor(id="u-7", name="Warehouse")).seq_id)


def _stock(variant_id: str) -> int:
    with pg.session_scope() as s:
        return int(s.get(ProductVariantModel, variant_id).stock)


def test_adjustment_types(make_catalog):
    make_catalog({"v1": 10})
    _adjust("v1", "in", 5, reason="delivery", lot_number="LOT-1")
    assert _stock("v1") == 15
    _adjust("v1", "out", 3, reason="damaged")
    assert _stock("v1") == 12
    _adjust("v1", "adjustment", -2, reason="cycle count")
    assert _stock("v1") == 10


def test_adjustment_cannot_go_negative(make_catalog):
    make_catalog({"v1": 2})
    with pytest.raises(InsufficientStock) as excinfo:
        _adjust("v1", "out", 3)
    assert excinfo.value.phase == "adjustment"
    assert _stock("v1") == 2


def test_adjustment_below_reservations_is_allowed_but_logged(make_catalog, new_order, caplog):
    make_catalog({"v1": 5})
    pg.run_atomic(lambda s: FulfillmentEngine(s).create_order(new_order([("v1", 4)])))

    with caplog.at_level(logging.WARNING, logger="backoffice"):
        _adjust("v1", "out", 3)

    assert _stock("v1") == 2
    assert "below open reservations" in caplog.text
    with pg.session_scope() as s:
        assert available(s, "v1").available == -2


def test_adjustment_input_validation():
    with pytest.raises(ValidationError):
        StockAdjustmentInput(organization_id="o", variant_id="v", type="in", quantity=0)
    with pytest.raises(ValidationError):
        StockAdjustmentInput(organization_id="o", variant_id="v", type="out", quantity=-1)
    with pytest.raises(ValidationError):
        StockAdjustmentInput(organization_id="o", variant_id="v", type="transfer", quantity=1)
    assert StockAdjustmentInput(organization_id="o", variant_id="v", type="out", quantity=4).delta == -4


def test_adjusting_unknown_variant(make_catalog):
    make_catalog({"v1": 1})
    with pytest.raises(VariantNotFound):
        _adjust("nope", "in", 1)


def test_summary_and_stats(make_catalog, new_order):
    make_catalog({"v1": 20, "v2": 6, "v3": 0})
    pg.run_atomic(lambda s: FulfillmentEngine(s).create_order(new_order([("v1", 2), ("v2", 3)])))

    with pg.session_scope() as s:
        items = {item.variant_id: item for item in inventory_summary(s, "org-test")}
        stats = inventory_stats(s, "org-test")

    assert (items["v1"].current_stock, items["v1"].reserved_stock, items["v1"].available_stock) == (20, 2, 18)
    assert not items["v1"].is_low_stock
    assert items["v2"].available_stock == 3
    assert items["v2"].is_low_stock
    assert items["v3"].available_stock == 0
    assert stats.model_dump() == {
        "total_items": 3,
        "total_stock": 26,
        "low_stock_items": 1,
        "out_of_stock_items": 1,
    }


def test_summary_clamps_available_at_zero(make_catalog, new_order):
    make_catalog({"v1": 5})
    pg.run_atomic(lambda s: FulfillmentEngine(s).create_order(new_order([("v1", 5)])))
    _adjust("v1", "out", 2)

    with pg.session_scope() as s:
        (item,) = inventory_summary(s, "org-test")
    assert item.current_stock == 3
    assert item.reserved_stock == 5
    assert item.available_stock == 0


def test_rejection_after_overdrawn_adjustment_reports_zero_available(make_catalog, new_order):
    make_catalog({"v1": 5})
    pg.run_atomic(lambda s: FulfillmentEngine(s).create_order(new_order([("v1", 4)])))
    _adjust("v1", "out", 3)

    with pytest.raises(InsufficientStock) as excinfo:
        pg.run_atomic(lambda s: FulfillmentEngine(s).create_order(new_order([("v1", 1)])))
    assert excinfo.value.available == 0
    assert excinfo.value.requested == 1
