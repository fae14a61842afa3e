from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable

from backoffice.core.config import Settings


@dataclass(frozen=True)
class PricingPolicy:
    free_shipping_threshold: int
    flat_shipping_fee: int
    tax_rate: Decimal

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            free_shipping_threshold=settings.free_shipping_threshold,
            flat_shipping_fee=settings.flat_shipping_fee,
            tax_rate=settings.tax_rate,
        )


@dataclass(frozen=True)
class PricedLine:
    unit_price: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: int
    shipping_cost: int
    tax: int
    total: int


def calculate_tax(subtotal: int, tax_rate: Decimal) -> int:
    # floor(subtotal * rate), computed in Decimal so 0.1 stays exact
    return int((Decimal(subtotal) * tax_rate).to_integral_value(rounding=ROUND_FLOOR))


def calculate_pricing(lines: Iterable[PricedLine], policy: PricingPolicy) -> PricingBreakdown:
    subtotal = 0
    for line in lines:
        if line.quantity <= 0:
            raise ValueError(f"line quantity must be positive, got {line.quantity}")
        if line.unit_price < 0:
            raise ValueError(f"unit price must be >= 0, got {line.unit_price}")
        subtotal += line.line_total

    shipping_cost = 0 if subtotal >= policy.free_shipping_threshold else policy.flat_shipping_fee
    tax = calculate_tax(subtotal, policy.tax_rate)
    return PricingBreakdown(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax=tax,
        total=subtotal + shipping_cost + tax,
    )
