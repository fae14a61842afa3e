"""Order status state machine.

Every status change in the engine goes through :func:`transition`; call
sites never compare status strings on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from backoffice.domain.errors import InvalidTransition


class OrderStatus(str, Enum):
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Action(str, Enum):
    CONFIRM = "confirm"
    START_PROCESSING = "start_processing"
    SHIP = "ship"
    DELIVER = "deliver"
    CANCEL = "cancel"
    REFUND = "refund"


@dataclass(frozen=True)
class Transition:
    action: Action
    sources: frozenset[OrderStatus]
    target: OrderStatus


TRANSITIONS: dict[Action, Transition] = {
    Action.CONFIRM: Transition(
        Action.CONFIRM,
        frozenset({OrderStatus.PLACED}),
        OrderStatus.CONFIRMED,
    ),
    Action.START_PROCESSING: Transition(
        Action.START_PROCESSING,
        frozenset({OrderStatus.CONFIRMED}),
        OrderStatus.PROCESSING,
    ),
    Action.SHIP: Transition(
        Action.SHIP,
        frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING}),
        OrderStatus.SHIPPED,
    ),
    Action.DELIVER: Transition(
        Action.DELIVER,
        frozenset({OrderStatus.SHIPPED}),
        OrderStatus.DELIVERED,
    ),
    Action.CANCEL: Transition(
        Action.CANCEL,
        frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}),
        OrderStatus.CANCELLED,
    ),
    Action.REFUND: Transition(
        Action.REFUND,
        frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED}),
        OrderStatus.REFUNDED,
    ),
}

# Accepted but not yet shipped, cancelled or refunded.
STOCK_HOLDING_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PLACED, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
)


def allowed_sources(action: Action) -> frozenset[OrderStatus]:
    return TRANSITIONS[action].sources


def transition(order_id: str, current: OrderStatus | str, action: Action) -> OrderStatus:
    status = OrderStatus(current)
    rule = TRANSITIONS[action]
    if status not in rule.sources:
        raise InvalidTransition(order_id, status.value, action.value)
    return rule.target