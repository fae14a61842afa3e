from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime

from backoffice.persistence.models import OrderLineModel, ProductVariantModel


@dataclass(frozen=True)
class LineDraft:
    """An order line with catalog data frozen at order time."""

    product_id: str
    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @classmethod
    def from_variant(cls, variant: ProductVariantModel, quantity: int, unit_price: int | None) -> "LineDraft":
        return cls(
            product_id=variant.product_id,
            variant_id=variant.id,
            product_name=variant.product_name,
            variant_name=variant.name,
            sku=variant.sku,
            quantity=quantity,
            unit_price=int(variant.price) if unit_price is None else unit_price,
        )

    def to_model(self, position: int) -> OrderLineModel:
        return OrderLineModel(
            position=position,
            product_id=self.product_id,
            variant_id=self.variant_id,
            product_name=self.product_name,
            variant_name=self.variant_name,
            sku=self.sku,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.line_total,
        )


def generate_order_number(now: datetime, prefix: str = "ORD", rng: random.Random | None = None) -> str:
    suffix = (rng or random).randint(0, 9999)
    return f"{prefix}-{now:%Y%m%d}-{suffix:04d}"
