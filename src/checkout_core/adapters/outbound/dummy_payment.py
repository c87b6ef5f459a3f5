from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List
from uuid import uuid4

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError, PaymentError
from checkout_core.core.domain.model.order import PaymentStatus, now_utc
from checkout_core.core.domain.model.payment import PaymentHandle, PaymentType
from checkout_core.core.ports.outbound.payment import (
    PaymentInitiationRequest,
    PaymentService,
)


@dataclass
class DummyPaymentService(PaymentService):
    decline_order_ids: set[str] | None = None
    fail_with: CheckoutError | None = None
    gateway_url: str = "https://pagamentos.emis.co.ao/online-payment"
    ttl_seconds: int = 900
    requests: List[PaymentInitiationRequest] = field(default_factory=list)

    async def initiate_payment(
        self, request: PaymentInitiationRequest
    ) -> Result[PaymentHandle, CheckoutError]:
        self.requests.append(request)
        if self.fail_with is not None:
            return Failure(self.fail_with)
        if request.order_id.value in (self.decline_order_ids or set()):
            return Failure(
                PaymentError(
                    "payment declined", order_id=request.order_id.value, status_code=402
                )
            )

        payment_id = uuid4().hex
        url = ""
        # Only the instant gateway has a page to embed.
        if request.payment_type is PaymentType.DEBIT_CARD:
            url = f"{self.gateway_url}?token={payment_id}"
        return Success(
            PaymentHandle(
                payment_id=payment_id,
                status=PaymentStatus.PENDING,
                redirect_or_embed_url=url,
                expires_at=now_utc() + timedelta(seconds=self.ttl_seconds),
            )
        )
