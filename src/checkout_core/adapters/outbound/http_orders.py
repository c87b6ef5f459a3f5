from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

import httpx
import structlog
from returns.result import Failure, Result, Success

from checkout_core.adapters.outbound.http_support import (
    ORDER_STATUS_TO_WIRE,
    PAYMENT_STATUS_TO_WIRE,
    error_detail,
    money,
    order_status,
    payment_status,
)
from checkout_core.core.domain.model.errors import (
    CheckoutError,
    IdempotencyKeyConflict,
    OrderError,
)
from checkout_core.core.domain.model.order import (
    DEFAULT_CURRENCY,
    CustomerId,
    Order,
    OrderId,
    OrderLine,
)
from checkout_core.core.ports.outbound.orders import (
    OrderCreationRequest,
    OrderService,
    OrderStatusUpdate,
)

logger = structlog.get_logger(__name__)


@dataclass
class HttpOrderService(OrderService):
    client: httpx.AsyncClient
    currency: str = DEFAULT_CURRENCY

    async def create_order(
        self, request: OrderCreationRequest, idempotency_key: str | None = None
    ) -> Result[Order, CheckoutError]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        return await self._call(
            "POST",
            "/orders/",
            json=_creation_payload(request),
            headers=headers,
            idempotency_key=idempotency_key,
        )

    async def get_order(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        return await self._call("GET", f"/orders/{order_id.value}", order_id=order_id.value)

    async def update_order_status(
        self, order_id: OrderId, update: OrderStatusUpdate
    ) -> Result[Order, CheckoutError]:
        body: dict[str, str] = {}
        if update.status is not None:
            body["estado"] = ORDER_STATUS_TO_WIRE[update.status]
        if update.payment_status is not None:
            body["estado_pagamento"] = PAYMENT_STATUS_TO_WIRE[update.payment_status]
        return await self._call(
            "PUT", f"/orders/{order_id.value}", json=body, order_id=order_id.value
        )

    async def _call(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        order_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> Result[Order, CheckoutError]:
        log = logger.bind(method=method, url=url, order_id=order_id)
        try:
            response = await self.client.request(method, url, json=json, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException:
            # Outcome unknown; the idempotency key makes a manual resubmit safe.
            log.error("Order service timed out")
            return Failure(OrderError("order service timed out", order_id=order_id))
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = error_detail(e.response)
            log.error("Order service returned an error", status_code=status, detail=detail)
            if status == 409 and idempotency_key:
                return Failure(
                    IdempotencyKeyConflict(
                        detail, order_id=order_id, status_code=status, key=idempotency_key
                    )
                )
            return Failure(OrderError(detail, order_id=order_id, status_code=status))
        except httpx.TransportError as e:
            log.error("Order service unreachable", error=str(e))
            return Failure(OrderError(f"order service unreachable: {e}", order_id=order_id))

        try:
            return Success(order_from_wire(response.json(), currency=self.currency))
        except (ValueError, KeyError, TypeError) as e:
            log.error("Order service sent an unreadable order", error=str(e))
            return Failure(
                OrderError(
                    "unreadable order response",
                    order_id=order_id,
                    status_code=response.status_code,
                )
            )


def _creation_payload(request: OrderCreationRequest) -> dict[str, Any]:
    return {
        "cliente_id": request.customer_id.value,
        "endereco_entrega_id": request.delivery_address_id,
        "endereco_faturacao_id": request.billing_address_id,
        "metodo_entrega_id": request.delivery_method_id,
        "metodo_pagamento": request.payment_method.value,
        "cupom_codigo": request.coupon_code,
        "notas_cliente": request.customer_note,
        "itens": [
            {"produto_id": str(ln.product_id), "quantidade": ln.quantity}
            for ln in request.lines
        ],
    }


def order_from_wire(body: Mapping[str, Any], currency: str = DEFAULT_CURRENCY) -> Order:
    lines = tuple(
        OrderLine(
            product_id=str(it["produto_id"]),
            quantity=int(it["quantidade"]),
            unit_price=money(it.get("preco_unitario"), currency),
            subtotal=money(it.get("subtotal"), currency),
        )
        for it in body.get("itens") or ()
    )
    created = body.get("data_criacao")
    return Order(
        order_id=OrderId(str(body["id"])),
        order_number=str(body.get("numero_encomenda") or body["id"]),
        customer_id=CustomerId(str(body.get("cliente_id", ""))),
        status=order_status(body.get("estado")),
        payment_status=payment_status(body.get("estado_pagamento")),
        subtotal=money(body.get("subtotal_produtos"), currency),
        shipping=money(body.get("taxa_entrega"), currency),
        discount=money(body.get("desconto_cupom"), currency),
        tax=money(body.get("impostos"), currency),
        total=money(body.get("total"), currency),
        lines=lines,
        created_at=datetime.fromisoformat(created) if created else None,
    )
