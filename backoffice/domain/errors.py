from __future__ import annotations

from typing import Any


class FulfillmentError(Exception):
    code = "fulfillment_error"
    retryable = False

    def details(self) -> dict[str, Any]:
        return {}


class InsufficientStock(FulfillmentError):
    code = "insufficient_stock"

    def __init__(
        self,
        variant_id: str,
        requested: int,
        available: int,
        *,
        sku: str | None = None,
        phase: str = "reservation",
    ) -> None:
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        self.sku = sku
        self.phase = phase
        label = sku or variant_id
        super().__init__(
            f"insufficient stock for {label}: requested={requested} available={available} ({phase})"
        )

    def details(self) -> dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "sku": self.sku,
            "requested": self.requested,
            "available": self.available,
            "phase": self.phase,
        }


class VariantNotFound(FulfillmentError):
    code = "variant_not_found"

    def __init__(self, variant_id: str) -> None:
        self.variant_id = variant_id
        super().__init__(f"variant not found: {variant_id}")

    def details(self) -> dict[str, Any]:
        return {"variant_id": self.variant_id}


class OrderNotFound(FulfillmentError):
    code = "order_not_found"

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"order not found: {order_id}")

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id}


class CustomerNotFound(FulfillmentError):
    code = "customer_not_found"

    def __init__(self, customer_id: str) -> None:
        self.customer_id = customer_id
        super().__init__(f"customer not found: {customer_id}")

    def details(self) -> dict[str, Any]:
        return {"customer_id": self.customer_id}


class InvalidTransition(FulfillmentError):
    code = "invalid_transition"

    def __init__(self, order_id: str, current_status: str, action: str, reason: str | None = None) -> None:
        self.order_id = order_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = f"cannot {action} order {order_id} in status {current_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "current_status": self.current_status,
            "action": self.action,
        }


class PersistenceConflict(FulfillmentError):
    code = "persistence_conflict"
    retryable = True

    def details(self) -> dict[str, Any]:
        return {"retryable": True}
