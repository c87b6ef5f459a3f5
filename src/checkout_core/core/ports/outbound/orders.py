from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

from returns.result import Result

from checkout_core.core.domain.model.cart import CartLine
from checkout_core.core.domain.model.errors import CheckoutError
from checkout_core.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderStatus,
    PaymentStatus,
)
from checkout_core.core.domain.model.payment import PaymentMethod


@dataclass(frozen=True)
class OrderCreationRequest:
    """Derived from the cart snapshot and the selection, never edited by hand."""

    customer_id: CustomerId
    delivery_address_id: str
    billing_address_id: str
    delivery_method_id: str
    payment_method: PaymentMethod
    coupon_code: str | None
    customer_note: str | None
    lines: Tuple[CartLine, ...]


@dataclass(frozen=True)
class OrderStatusUpdate:
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None


class OrderService(Protocol):
    async def create_order(
        self, request: OrderCreationRequest, idempotency_key: str | None = None
    ) -> Result[Order, CheckoutError]: ...

    async def get_order(self, order_id: OrderId) -> Result[Order, CheckoutError]: ...

    async def update_order_status(
        self, order_id: OrderId, update: OrderStatusUpdate
    ) -> Result[Order, CheckoutError]: ...
