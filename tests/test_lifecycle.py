from __future__ import annotations

import pytest

from backoffice.domain.errors import InvalidTransition
from backoffice.domain.orders.lifecycle import (
    Action,
    STOCK_HOLDING_STATUSES,
    OrderStatus,
    allowed_sources,
    transition,
)

ALLOWED = {
    (OrderStatus.PLACED, Action.CONFIRM): OrderStatus.CONFIRMED,
    (OrderStatus.CONFIRMED, Action.START_PROCESSING): OrderStatus.PROCESSING,
    (OrderStatus.CONFIRMED, Action.SHIP): OrderStatus.SHIPPED,
    (OrderStatus.PROCESSING, Action.SHIP): OrderStatus.SHIPPED,
    (OrderStatus.SHIPPED, Action.DELIVER): OrderStatus.DELIVERED,
    (OrderStatus.PLACED, Action.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.CONFIRMED, Action.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.PROCESSING, Action.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.SHIPPED, Action.REFUND): OrderStatus.REFUNDED,
    (OrderStatus.DELIVERED, Action.REFUND): OrderStatus.REFUNDED,
}


@pytest.mark.parametrize("status", list(OrderStatus))
@pytest.mark.parametrize("action", list(Action))
def test_transition_table(status, action):
    expected = ALLOWED.get((status, action))
    assert (status in allowed_sources(action)) is (expected is not None)
    if expected is None:
        with pytest.raises(InvalidTransition) as excinfo:
            transition("order-1", status, action)
        assert excinfo.value.current_status == status.value
        assert excinfo.value.action == action.value
    else:
        assert transition("order-1", status.value, action) == expected


def test_stock_holding_statuses():
    assert [s for s in OrderStatus if s in STOCK_HOLDING_STATUSES] == [
        OrderStatus.PLACED,
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
    ]


def test_placed_orders_cannot_ship_directly():
    with pytest.raises(InvalidTransition):
        transition("order-1", "placed", Action.SHIP)
