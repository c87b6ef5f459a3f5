from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Mapping, Tuple
from uuid import uuid4

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import (
    CheckoutError,
    IdempotencyKeyConflict,
    OrderError,
)
from checkout_core.core.domain.model.order import (
    DEFAULT_CURRENCY,
    Money,
    Order,
    OrderId,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    fold_money,
    now_utc,
)
from checkout_core.core.ports.outbound.orders import (
    OrderCreationRequest,
    OrderService,
    OrderStatusUpdate,
)


@dataclass
class InMemoryOrderService(OrderService):
    """Prices orders the way the real Order Service does, minus persistence.

    Honours idempotency keys: same key and same request returns the first
    order; same key with a different request is a conflict.
    """

    shipping_costs: Mapping[str, Decimal] = field(default_factory=dict)
    coupon_discounts: Mapping[str, Decimal] = field(default_factory=dict)
    tax_rate: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    latency_seconds: float = 0.0
    fail_with: CheckoutError | None = None
    create_calls: int = 0
    _store: Dict[str, Order] = field(default_factory=dict)
    _keys: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    async def create_order(
        self, request: OrderCreationRequest, idempotency_key: str | None = None
    ) -> Result[Order, CheckoutError]:
        self.create_calls += 1
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if self.fail_with is not None:
            return Failure(self.fail_with)

        if idempotency_key is not None:
            req_hash = _request_hash(request)
            seen = self._keys.get(idempotency_key)
            if seen is not None:
                seen_hash, order_id = seen
                if seen_hash != req_hash:
                    return Failure(
                        IdempotencyKeyConflict(
                            "same idempotency key used with different request",
                            status_code=409,
                            key=idempotency_key,
                        )
                    )
                return Success(self._store[order_id])

        order = self._price(request)
        self._store[order.order_id.value] = order
        if idempotency_key is not None:
            self._keys[idempotency_key] = (req_hash, order.order_id.value)
        return Success(order)

    async def get_order(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        order = self._store.get(order_id.value)
        if order is None:
            return Failure(
                OrderError("order not found", order_id=order_id.value, status_code=404)
            )
        return Success(order)

    async def update_order_status(
        self, order_id: OrderId, update: OrderStatusUpdate
    ) -> Result[Order, CheckoutError]:
        found = await self.get_order(order_id)
        if isinstance(found, Failure):
            return found
        order = found.unwrap()
        order = replace(
            order,
            status=update.status or order.status,
            payment_status=update.payment_status or order.payment_status,
        )
        self._store[order_id.value] = order
        return Success(order)

    def orders(self) -> Tuple[Order, ...]:
        return tuple(self._store.values())

    def _price(self, request: OrderCreationRequest) -> Order:
        lines = tuple(
            OrderLine(
                product_id=str(ln.product_id),
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                subtotal=ln.subtotal(),
            )
            for ln in request.lines
        )
        subtotal = fold_money((ln.subtotal for ln in lines), currency=self.currency)
        shipping = Money.of(
            self.shipping_costs.get(request.delivery_method_id, 0), self.currency
        )
        discount = Money.of(
            min(
                self.coupon_discounts.get(request.coupon_code or "", Decimal("0")),
                subtotal.amount,
            ),
            self.currency,
        )
        tax = Money.of(subtotal.amount * self.tax_rate, self.currency)
        return Order(
            order_id=OrderId(uuid4().hex),
            order_number=f"ENC-{len(self._store) + 1:06d}",
            customer_id=request.customer_id,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            subtotal=subtotal,
            shipping=shipping,
            discount=discount,
            tax=tax,
            total=subtotal + shipping + tax - discount,
            lines=lines,
            created_at=now_utc(),
        )


def _request_hash(request: OrderCreationRequest) -> str:
    payload = {
        "customer_id": request.customer_id.value,
        "delivery_address_id": request.delivery_address_id,
        "billing_address_id": request.billing_address_id,
        "delivery_method_id": request.delivery_method_id,
        "payment_method": request.payment_method.value,
        "coupon_code": request.coupon_code,
        "customer_note": request.customer_note,
        "lines": [
            {
                "product_id": str(ln.product_id),
                "quantity": ln.quantity,
                "unit_price": str(ln.unit_price.amount),
            }
            for ln in request.lines
        ],
    }
    blob = json.dumps(
        payload, ensure_ascii=False, sort_keys=True, separators=(",", ":")
    ).encode("utf-8")
    return hashlib.sha256(blob).hexdigest()
