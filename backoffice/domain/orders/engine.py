"""Order lifecycle engine.

Each public method is one unit of work against the caller's session: the
caller owns the transaction (see ``persistence.pg.run_atomic``) and any
exception raised here must roll the whole unit back.

Rows are claimed before they are read for a decision. The order row is
claimed with a status-guarded ``UPDATE``, so of two racing transitions
only one matches; variant rows are claimed in id order through
:class:`VariantStore.lock` before availability or physical stock is
evaluated.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice.api.utils import now_utc
from backoffice.core.config import Settings, get_settings
from backoffice.core.security import Actor
from backoffice.domain.directory import CustomerContact, CustomerDirectory, OrganizationConfig
from backoffice.domain.errors import (
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    PersistenceConflict,
)
from backoffice.domain.inventory.reservations import reserved_by_variant
from backoffice.domain.inventory.variants import VariantStore
from backoffice.domain.orders.aggregates import LineDraft, generate_order_number
from backoffice.domain.orders.commands import CreateOrderInput
from backoffice.domain.orders.lifecycle import (
    Action,
    OrderStatus,
    PaymentStatus,
    allowed_sources,
    transition,
)
from backoffice.domain.orders.pricing import calculate_pricing
from backoffice.ledger.entries import MovementCreate, MovementKind, MovementType
from backoffice.ledger.store import MovementLedger
from backoffice.persistence.models import OrderLineModel, OrderModel, ProductVariantModel

logger = logging.getLogger(__name__)

REASON_RESERVATION = "order reservation"
REASON_SHIPMENT = "order shipment"
REASON_RELEASE = "order cancelled (reservation released)"
REASON_RESTOCK = "returned goods restocked"

_MANUAL_PAYMENT_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PAID, PaymentStatus.FAILED})
_CLOSED_STATUSES = frozenset({OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value})


class FulfillmentEngine:
    def __init__(self, session: Session, actor: Actor | None = None, settings: Settings | None = None):
        self.session = session
        self.actor = actor or Actor.system()
        self.settings = settings or get_settings()
        self.variants = VariantStore(session)
        self.ledger = MovementLedger(session)

    # -- create ---------------------------------------------------------------

    def create_order(self, data: CreateOrderInput) -> OrderModel:
        organization_id = data.organization_id
        contact = self._resolve_contact(data)
        policy = OrganizationConfig(self.session, self.settings).pricing_policy(organization_id)

        requested: dict[str, int] = defaultdict(int)
        for item in data.items:
            requested[item.variant_id] += item.quantity

        variants = self.variants.lock(requested.keys(), organization_id=organization_id)
        reserved = reserved_by_variant(self.session, organization_id, requested.keys())
        for variant_id in sorted(requested):
            variant = variants[variant_id]
            available = int(variant.stock) - reserved.get(variant_id, 0)
            if requested[variant_id] > available:
                logger.warning(
                    "reservation rejected: org=%s variant=%s requested=%s available=%s",
                    organization_id,
                    variant_id,
                    requested[variant_id],
                    available,
                )
                # a manual adjustment can leave stock below open reservations
                raise InsufficientStock(variant_id, requested[variant_id], max(0, available), sku=variant.sku)

        drafts = [LineDraft.from_variant(variants[item.variant_id], item.quantity, item.unit_price) for item in data.items]
        pricing = calculate_pricing(drafts, policy)

        now = now_utc()
        order = OrderModel(
            id=str(uuid4()),
            organization_id=organization_id,
            order_number=self._allocate_order_number(organization_id, now),
            customer_id=contact.customer_id,
            customer_name=contact.name,
            customer_email=contact.email,
            subtotal=pricing.subtotal,
            shipping_cost=pricing.shipping_cost,
            tax=pricing.tax,
            total=pricing.total,
            status=OrderStatus.PLACED.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=data.payment_method,
            shipping_address=data.shipping_address.model_dump(),
            billing_address=data.billing_address.model_dump() if data.billing_address else None,
            notes=data.notes,
            created_at=now,
            updated_at=now,
            lock_version=0,
        )
        order.lines = [draft.to_model(position) for position, draft in enumerate(drafts, start=1)]
        self.session.add(order)
        self._flush()

        for line in order.lines:
            stock = int(variants[line.variant_id].stock)
            self._record(order, line, MovementType.OUT, MovementKind.RESERVATION, -line.quantity, stock, stock, REASON_RESERVATION, now)

        logger.info(
            "order placed: org=%s number=%s lines=%s total=%s",
            organization_id,
            order.order_number,
            len(order.lines),
            order.total,
        )
        return order

    # -- simple transitions ---------------------------------------------------

    def confirm_order(self, order_id: str) -> OrderModel:
        order = self._claim(order_id, Action.CONFIRM)
        self._apply(order, Action.CONFIRM, now_utc())
        return order

    def start_processing(self, order_id: str) -> OrderModel:
        order = self._claim(order_id, Action.START_PROCESSING)
        self._apply(order, Action.START_PROCESSING, now_utc())
        return order

    def mark_delivered(self, order_id: str) -> OrderModel:
        order = self._claim(order_id, Action.DELIVER)
        now = now_utc()
        self._apply(order, Action.DELIVER, now)
        order.delivered_at = now
        self._flush()
        return order

    # -- stock-affecting transitions -------------------------------------------

    def ship_order(self, order_id: str, tracking_number: str | None = None) -> OrderModel:
        order = self._claim(order_id, Action.SHIP)
        variants = self._lock_lines(order)

        # Validate every line before touching any counter.
        running = {variant_id: int(variant.stock) for variant_id, variant in variants.items()}
        plan: list[tuple[OrderLineModel, int, int]] = []
        for line in order.lines:
            previous = running[line.variant_id]
            new_stock = previous - line.quantity
            if new_stock < 0:
                logger.warning(
                    "shipment rejected: order=%s variant=%s requested=%s on_hand=%s",
                    order.order_number,
                    line.variant_id,
                    line.quantity,
                    previous,
                )
                raise InsufficientStock(line.variant_id, line.quantity, previous, sku=line.sku, phase="shipment")
            running[line.variant_id] = new_stock
            plan.append((line, previous, new_stock))

        now = now_utc()
        for line, previous, new_stock in plan:
            self.variants.set_stock(line.variant_id, new_stock)
            self._record(order, line, MovementType.OUT, MovementKind.SHIPMENT, -line.quantity, previous, new_stock, REASON_SHIPMENT, now)

        self._apply(order, Action.SHIP, now)
        order.shipped_at = now
        if tracking_number:
            order.tracking_number = tracking_number
        self._flush()
        return order

    def cancel_order(self, order_id: str) -> OrderModel:
        order = self._claim(order_id, Action.CANCEL)
        variants = self._lock_lines(order, missing_ok=True)

        now = now_utc()
        for line in order.lines:
            variant = variants.get(line.variant_id)
            if variant is None:
                # the status change alone drops this line from the reservation sum
                logger.warning(
                    "cancel without release entry: order=%s variant=%s is no longer in the catalog",
                    order.order_number,
                    line.variant_id,
                )
                continue
            # nothing was decremented, so physical stock is unchanged
            stock = int(variant.stock)
            self._record(order, line, MovementType.ADJUSTMENT, MovementKind.RELEASE, line.quantity, stock, stock, REASON_RELEASE, now)

        self._apply(order, Action.CANCEL, now)
        return order

    def refund_order(self, order_id: str, return_stock: bool = True) -> OrderModel:
        order = self._claim(order_id, Action.REFUND)
        if self.settings.refund_requires_captured_payment and order.payment_status != PaymentStatus.PAID.value:
            raise InvalidTransition(order.id, order.status, Action.REFUND.value, reason="payment was not captured")

        now = now_utc()
        if return_stock:
            variants = self._lock_lines(order)
            running = {variant_id: int(variant.stock) for variant_id, variant in variants.items()}
            for line in order.lines:
                previous = running[line.variant_id]
                new_stock = previous + line.quantity
                running[line.variant_id] = new_stock
                self.variants.set_stock(line.variant_id, new_stock)
                self._record(order, line, MovementType.IN, MovementKind.RESTOCK, line.quantity, previous, new_stock, REASON_RESTOCK, now)

        self._apply(order, Action.REFUND, now)
        order.payment_status = PaymentStatus.REFUNDED.value
        self._flush()
        return order

    # -- header maintenance ---------------------------------------------------

    def update_payment_status(self, order_id: str, payment_status: PaymentStatus | str) -> OrderModel:
        target = PaymentStatus(payment_status)
        order = self._claim(order_id, None)
        if target not in _MANUAL_PAYMENT_STATUSES or order.payment_status == PaymentStatus.REFUNDED.value:
            raise InvalidTransition(
                order.id,
                order.status,
                "update_payment_status",
                reason=f"payment status {order.payment_status} -> {target.value} is not allowed",
            )
        order.payment_status = target.value
        order.updated_at = now_utc()
        self._flush()
        return order

    def update_tracking_number(self, order_id: str, tracking_number: str) -> OrderModel:
        order = self._claim(order_id, None)
        if order.status in _CLOSED_STATUSES:
            raise InvalidTransition(order.id, order.status, "update_tracking_number")
        order.tracking_number = tracking_number
        order.updated_at = now_utc()
        self._flush()
        return order

    def update_notes(self, order_id: str, notes: str | None) -> OrderModel:
        order = self._claim(order_id, None)
        order.notes = notes
        order.updated_at = now_utc()
        self._flush()
        return order

    # -- internals ------------------------------------------------------------

    def _resolve_contact(self, data: CreateOrderInput) -> CustomerContact:
        if data.customer_id is None:
            return CustomerContact(customer_id=None, name=data.customer_name or "", email=data.customer_email or "")
        contact = CustomerDirectory(self.session).lookup(data.organization_id, data.customer_id)
        # explicit values on the request win over the directory entry
        return CustomerContact(
            customer_id=contact.customer_id,
            name=data.customer_name or contact.name,
            email=data.customer_email or contact.email,
        )

    def _allocate_order_number(self, organization_id: str, now: datetime) -> str:
        local_now = now.astimezone(self.settings.order_number_zone)
        for _ in range(self.settings.order_number_max_attempts):
            candidate = generate_order_number(local_now, self.settings.order_number_prefix)
            taken = self.session.scalar(
                select(OrderModel.id)
                .where(OrderModel.organization_id == organization_id)
                .where(OrderModel.order_number == candidate)
            )
            if taken is None:
                return candidate
        raise PersistenceConflict(f"could not allocate a unique order number for {organization_id}")

    def _claim(self, order_id: str, action: Action | None) -> OrderModel:
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        if action is not None:
            stmt = stmt.where(OrderModel.status.in_([status.value for status in allowed_sources(action)]))
        result = self.session.execute(
            stmt.values(lock_version=OrderModel.lock_version + 1).execution_options(synchronize_session=False)
        )
        order = self.session.get(OrderModel, order_id, populate_existing=True)
        if order is None:
            raise OrderNotFound(order_id)
        if result.rowcount == 0 and action is not None:
            raise InvalidTransition(order.id, order.status, action.value)
        return order

    def _lock_lines(self, order: OrderModel, missing_ok: bool = False) -> dict[str, ProductVariantModel]:
        return self.variants.lock(
            (line.variant_id for line in order.lines),
            organization_id=order.organization_id,
            missing_ok=missing_ok,
        )

    def _apply(self, order: OrderModel, action: Action, now: datetime) -> None:
        previous = order.status
        order.status = transition(order.id, order.status, action).value
        order.updated_at = now
        self._flush()
        logger.info("order %s: %s -> %s (%s)", order.order_number, previous, order.status, action.value)

    def _record(
        self,
        order: OrderModel,
        line: OrderLineModel,
        movement_type: MovementType,
        kind: MovementKind,
        quantity: int,
        previous_stock: int,
        new_stock: int,
        reason: str,
        now: datetime,
    ) -> None:
        self.ledger.record(
            MovementCreate(
                organization_id=order.organization_id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                type=movement_type,
                kind=kind,
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=new_stock,
                reason=reason,
                reference=order.order_number,
                product_name=line.product_name,
                variant_name=line.variant_name,
                sku=line.sku,
                actor_id=self.actor.id,
                created_by=self.actor.name,
                created_at=now,
            )
        )

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise PersistenceConflict(f"write rejected by the database: {exc.orig}") from exc
