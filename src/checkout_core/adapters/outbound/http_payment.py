from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

import httpx
import structlog
from returns.result import Failure, Result, Success

from checkout_core.adapters.outbound.http_support import error_detail, payment_status
from checkout_core.core.domain.model.errors import CheckoutError, PaymentError
from checkout_core.core.domain.model.order import now_utc
from checkout_core.core.domain.model.payment import PaymentHandle
from checkout_core.core.ports.outbound.payment import (
    PaymentInitiationRequest,
    PaymentService,
)

logger = structlog.get_logger(__name__)


@dataclass
class HttpPaymentService(PaymentService):
    client: httpx.AsyncClient

    async def initiate_payment(
        self, request: PaymentInitiationRequest
    ) -> Result[PaymentHandle, CheckoutError]:
        order_id = request.order_id.value
        log = logger.bind(order_id=order_id, method=request.method.value)
        try:
            response = await self.client.post(
                "/pagamentos/criar", json=_initiation_payload(request)
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            log.error("Payment service timed out")
            return Failure(PaymentError("payment service timed out", order_id=order_id))
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = error_detail(e.response)
            if status == 402:
                log.warning("Payment declined", detail=detail)
            else:
                log.error("Payment service returned an error", status_code=status, detail=detail)
            return Failure(PaymentError(detail, order_id=order_id, status_code=status))
        except httpx.TransportError as e:
            log.error("Payment service unreachable", error=str(e))
            return Failure(PaymentError(f"payment service unreachable: {e}", order_id=order_id))

        try:
            return Success(handle_from_wire(response.json()))
        except (ValueError, KeyError, TypeError) as e:
            log.error("Payment service sent an unreadable response", error=str(e))
            return Failure(
                PaymentError(
                    "unreadable payment response",
                    order_id=order_id,
                    status_code=response.status_code,
                )
            )


def _initiation_payload(request: PaymentInitiationRequest) -> dict[str, Any]:
    return {
        "encomenda_id": request.order_id.value,
        "metodo": request.method.value,
        "moeda": request.currency,
        "tipo_pagamento": request.payment_type.value,
        "ip_cliente": request.client_origin,
        "user_agent": request.client_agent,
        "url_retorno": request.return_url,
    }


def handle_from_wire(body: Mapping[str, Any]) -> PaymentHandle:
    ttl = body.get("tempo_expiracao")
    return PaymentHandle(
        payment_id=str(body["pagamento_id"]),
        status=payment_status(body.get("estado")),
        redirect_or_embed_url=str(body.get("url_pagamento") or ""),
        expires_at=now_utc() + timedelta(seconds=int(ttl)) if ttl else None,
    )
