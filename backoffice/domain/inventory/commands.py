from __future__ import annotations

from pydantic import BaseModel, model_validator

from backoffice.ledger.entries import MovementType


class StockAdjustmentInput(BaseModel):
    organization_id: str
    variant_id: str
    type: MovementType
    quantity: int
    reason: str | None = None
    reference: str | None = None
    lot_number: str | None = None

    @model_validator(mode="after")
    def _check_quantity(self) -> "StockAdjustmentInput":
        if self.quantity == 0:
            raise ValueError("adjustment quantity must be non-zero")
        if self.type != MovementType.ADJUSTMENT and self.quantity < 0:
            raise ValueError("in/out adjustments take a positive quantity")
        return self

    @property
    def delta(self) -> int:
        if self.type == MovementType.OUT:
            return -self.quantity
        return self.quantity
