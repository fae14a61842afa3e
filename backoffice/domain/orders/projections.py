from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from backoffice.api.utils import iso_z
from backoffice.domain.errors import OrderNotFound
from backoffice.persistence.models import OrderModel


class OrderLineView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    product_id: str
    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    quantity: int
    unit_price: int
    total_price: int


class OrderView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    order_number: str
    customer_id: str | None
    customer_name: str
    customer_email: str
    subtotal: int
    shipping_cost: int
    tax: int
    total: int
    status: str
    payment_status: str
    payment_method: str | None
    shipping_address: dict
    billing_address: dict | None
    notes: str | None
    tracking_number: str | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    created_at: datetime
    updated_at: datetime
    lines: list[OrderLineView]

    @field_serializer("shipped_at", "delivered_at", "created_at", "updated_at")
    def _timestamp(self, value: datetime | None) -> str | None:
        return iso_z(value)


def to_view(order: OrderModel) -> OrderView:
    return OrderView.model_validate(order)


def get_order(session: Session, order_id: str) -> OrderView:
    order = session.scalar(
        select(OrderModel)
        .where(OrderModel.id == order_id)
        .options(selectinload(OrderModel.lines))
        .execution_options(populate_existing=True)
    )
    if order is None:
        raise OrderNotFound(order_id)
    return to_view(order)


def list_orders(session: Session, organization_id: str, status: str | None = None) -> list[OrderView]:
    stmt = (
        select(OrderModel)
        .where(OrderModel.organization_id == organization_id)
        .options(selectinload(OrderModel.lines))
        .order_by(OrderModel.created_at.desc(), OrderModel.order_number.desc())
    )
    if status:
        stmt = stmt.where(OrderModel.status == status)
    return [to_view(order) for order in session.scalars(stmt).all()]
