from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ShippingAddress(BaseModel):
    postal_code: str
    prefecture: str
    city: str
    line1: str
    line2: str | None = None
    phone: str | None = None


class OrderItemInput(BaseModel):
    variant_id: str
    quantity: int = Field(gt=0)
    unit_price: int | None = Field(default=None, ge=0, description="int minor units; defaults to the variant price")


class CreateOrderInput(BaseModel):
    organization_id: str
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    items: list[OrderItemInput] = Field(min_length=1)
    shipping_address: ShippingAddress
    billing_address: ShippingAddress | None = None
    payment_method: str | None = None
    notes: str | None = None

    @field_validator("customer_name", "customer_email")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _guest_contact_required(self) -> "CreateOrderInput":
        if self.customer_id is None and (not self.customer_name or not self.customer_email):
            raise ValueError("guest orders require customer_name and customer_email")
        return self


class ShipOrderInput(BaseModel):
    tracking_number: str | None = None


class RefundOrderInput(BaseModel):
    return_stock: bool = True


class PaymentStatusUpdate(BaseModel):
    payment_status: Literal["pending", "paid", "failed"]


class TrackingNumberUpdate(BaseModel):
    tracking_number: str = Field(min_length=1)


class NotesUpdate(BaseModel):
    notes: str | None = None
