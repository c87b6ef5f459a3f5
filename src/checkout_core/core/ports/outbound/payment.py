from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from checkout_core.core.domain.model.errors import CheckoutError
from checkout_core.core.domain.model.order import OrderId
from checkout_core.core.domain.model.payment import (
    GatewayMethod,
    PaymentHandle,
    PaymentType,
)


@dataclass(frozen=True)
class PaymentInitiationRequest:
    order_id: OrderId
    method: GatewayMethod
    currency: str
    payment_type: PaymentType
    client_origin: str
    client_agent: str
    return_url: str


class PaymentService(Protocol):
    async def initiate_payment(
        self, request: PaymentInitiationRequest
    ) -> Result[PaymentHandle, CheckoutError]: ...
