from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from checkout_core.core.domain.model.order import PaymentStatus, now_utc


class PaymentMethod(str, Enum):
    """What the customer picks on the payment step."""

    BANK_TRANSFER = "transfer"
    PAYMENT_REFERENCE = "reference"
    ON_CONSULTATION = "consultation"
    MULTICAIXA_EXPRESS = "multicaixa_express"

    @classmethod
    def fallback(cls) -> "PaymentMethod":
        return cls.MULTICAIXA_EXPRESS

    @classmethod
    def parse(cls, raw: "str | PaymentMethod | None") -> "PaymentMethod":
        if isinstance(raw, cls):
            return raw
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.fallback()


class GatewayMethod(str, Enum):
    BANK_TRANSFER = "transferencia"
    PAYMENT_REFERENCE = "referencia"
    MANUAL = "manual"
    GPO = "gpo"


class PaymentType(str, Enum):
    OFFLINE = "offline"
    DEBIT_CARD = "debit_card"


@dataclass(frozen=True)
class GatewayRoute:
    method: GatewayMethod
    payment_type: PaymentType

    @property
    def is_instant(self) -> bool:
        return self.payment_type is PaymentType.DEBIT_CARD


def _exhaustive(
    routes: Mapping[PaymentMethod, GatewayRoute],
) -> Mapping[PaymentMethod, GatewayRoute]:
    missing = [m.value for m in PaymentMethod if m not in routes]
    if missing:
        raise RuntimeError(f"payment methods without a gateway route: {', '.join(missing)}")
    return MappingProxyType(dict(routes))


GATEWAY_ROUTES: Mapping[PaymentMethod, GatewayRoute] = _exhaustive(
    {
        PaymentMethod.BANK_TRANSFER: GatewayRoute(GatewayMethod.BANK_TRANSFER, PaymentType.OFFLINE),
        PaymentMethod.PAYMENT_REFERENCE: GatewayRoute(GatewayMethod.PAYMENT_REFERENCE, PaymentType.OFFLINE),
        PaymentMethod.ON_CONSULTATION: GatewayRoute(GatewayMethod.MANUAL, PaymentType.OFFLINE),
        PaymentMethod.MULTICAIXA_EXPRESS: GatewayRoute(GatewayMethod.GPO, PaymentType.DEBIT_CARD),
    }
)


def route_for(method: PaymentMethod) -> GatewayRoute:
    return GATEWAY_ROUTES[method]


@dataclass(frozen=True)
class PaymentHandle:
    payment_id: str
    status: PaymentStatus
    redirect_or_embed_url: str = ""
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or now_utc()) >= self.expires_at
