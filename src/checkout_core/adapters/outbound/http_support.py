from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

import httpx

from checkout_core.core.domain.model.order import (
    DEFAULT_CURRENCY,
    Money,
    OrderStatus,
    PaymentStatus,
)

# Wire vocabulary of the upstream services (Portuguese).
ORDER_STATUS_FROM_WIRE: Mapping[str, OrderStatus] = {
    "pendente": OrderStatus.PENDING,
    "confirmado": OrderStatus.CONFIRMED,
    "processamento": OrderStatus.PROCESSING,
    "enviado": OrderStatus.SHIPPED,
    "entregue": OrderStatus.DELIVERED,
    "cancelado": OrderStatus.CANCELLED,
}
PAYMENT_STATUS_FROM_WIRE: Mapping[str, PaymentStatus] = {
    "pendente": PaymentStatus.PENDING,
    "pago": PaymentStatus.PAID,
    "falhou": PaymentStatus.FAILED,
    "reembolsado": PaymentStatus.REFUNDED,
}
ORDER_STATUS_TO_WIRE = {v: k for k, v in ORDER_STATUS_FROM_WIRE.items()}
PAYMENT_STATUS_TO_WIRE = {v: k for k, v in PAYMENT_STATUS_FROM_WIRE.items()}


def order_status(raw: Any) -> OrderStatus:
    return ORDER_STATUS_FROM_WIRE.get(str(raw or "").lower(), OrderStatus.PENDING)


def payment_status(raw: Any) -> PaymentStatus:
    return PAYMENT_STATUS_FROM_WIRE.get(str(raw or "").lower(), PaymentStatus.PENDING)


def money(raw: Any, currency: str = DEFAULT_CURRENCY) -> Money:
    if raw is None or raw == "":
        return Money.zero(currency)
    try:
        return Money.of(Decimal(str(raw)), currency=currency)
    except InvalidOperation as e:
        raise ValueError(f"not a monetary amount: {raw!r}") from e


def error_detail(response: httpx.Response) -> str:
    """Best human-readable message an upstream error response offers."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, Mapping):
        for key in ("detail", "message", "mensagem", "erro"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or f"HTTP {response.status_code}"


def build_client(
    base_url: str,
    timeout_seconds: float = 8.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(timeout_seconds, connect=min(timeout_seconds, 5.0))
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
