from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class MovementKind(str, Enum):
    RESERVATION = "reservation"
    SHIPMENT = "shipment"
    RELEASE = "release"
    RESTOCK = "restock"
    MANUAL = "manual"


# Kinds that never touch the physical counter.
SOFT_KINDS = frozenset({MovementKind.RESERVATION, MovementKind.RELEASE})


def physical_delta(kind: MovementKind | str, quantity: int) -> int:
    return 0 if MovementKind(kind) in SOFT_KINDS else quantity

EXPECTED_TYPES: dict[MovementKind, frozenset[MovementType]] = {
    MovementKind.RESERVATION: frozenset({MovementType.OUT}),
    MovementKind.SHIPMENT: frozenset({MovementType.OUT}),
    MovementKind.RELEASE: frozenset({MovementType.ADJUSTMENT}),
    MovementKind.RESTOCK: frozenset({MovementType.IN}),
    MovementKind.MANUAL: frozenset({MovementType.IN, MovementType.OUT, MovementType.ADJUSTMENT}),
}


class MovementCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=False)

    organization_id: str
    product_id: str
    variant_id: str
    type: MovementType
    kind: MovementKind
    quantity: int
    previous_stock: int = Field(ge=0)
    new_stock: int = Field(ge=0)
    reason: str | None = None
    reference: str | None = None
    lot_number: str | None = None
    product_name: str | None = None
    variant_name: str | None = None
    sku: str | None = None
    actor_id: str | None = None
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_consistency(self) -> "MovementCreate":
        if self.type not in EXPECTED_TYPES[self.kind]:
            raise ValueError(f"movement kind {self.kind.value} cannot have type {self.type.value}")
        if self.quantity == 0:
            raise ValueError("movement quantity must be non-zero")
        if self.type == MovementType.OUT and self.quantity > 0:
            raise ValueError("out movements carry a negative quantity")
        if self.type == MovementType.IN and self.quantity < 0:
            raise ValueError("in movements carry a positive quantity")

        if self.kind in SOFT_KINDS:
            if self.previous_stock != self.new_stock:
                raise ValueError("reservation movements must not change physical stock")
        elif self.new_stock != self.previous_stock + self.quantity:
            raise ValueError(
                f"new_stock {self.new_stock} != previous_stock {self.previous_stock} + quantity {self.quantity}"
            )
        return self


class ChainBreak(BaseModel):
    seq_id: int
    movement_id: str
    expected_previous_stock: int
    expected_new_stock: int
    previous_stock: int
    new_stock: int
    reason: str


class ChainVerification(BaseModel):
    variant_id: str
    entries: int
    ok: bool
    opening_stock: int | None = None
    closing_stock: int | None = None
    current_stock: int | None = None
    breaks: list[ChainBreak] = Field(default_factory=list)
