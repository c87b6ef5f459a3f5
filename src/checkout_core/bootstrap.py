from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

import httpx

from checkout_core.adapters.outbound.dummy_payment import DummyPaymentService
from checkout_core.adapters.outbound.http_client_origin import HttpClientOriginLookup
from checkout_core.adapters.outbound.http_orders import HttpOrderService
from checkout_core.adapters.outbound.http_payment import HttpPaymentService
from checkout_core.adapters.outbound.http_providers import (
    HttpAddressProvider,
    HttpDeliveryMethodProvider,
)
from checkout_core.adapters.outbound.http_support import build_client
from checkout_core.adapters.outbound.in_memory_confirmation_channel import (
    InMemoryConfirmationChannel,
)
from checkout_core.adapters.outbound.in_memory_orders import InMemoryOrderService
from checkout_core.adapters.outbound.static_providers import (
    StaticAddressProvider,
    StaticClientOriginLookup,
    StaticDeliveryMethodProvider,
)
from checkout_core.config import Settings, load_settings
from checkout_core.core.domain.model.confirmation import OriginAllowList
from checkout_core.core.domain.model.order import Money
from checkout_core.core.domain.model.selection import Address, DeliveryMethod
from checkout_core.core.domain.service.checkout_service import (
    CheckoutDeps,
    CheckoutService,
)
from checkout_core.core.ports.outbound.confirmation import ConfirmationChannel


@dataclass(frozen=True)
class UseCases:
    checkout: CheckoutService
    channel: ConfirmationChannel
    clients: Tuple[httpx.AsyncClient, ...] = ()

    async def aclose(self) -> None:
        for client in self.clients:
            await client.aclose()


def build_usecases(settings: Settings | None = None) -> UseCases:
    settings = settings or load_settings()
    channel = InMemoryConfirmationChannel()
    allow_list = OriginAllowList.of(settings.confirmation_origins)

    if settings.adapters == "http":
        return _build_http(settings, channel, allow_list)
    return _build_memory(settings, channel, allow_list)


def _build_memory(
    settings: Settings, channel: InMemoryConfirmationChannel, allow_list: OriginAllowList
) -> UseCases:
    methods = (
        DeliveryMethod("standard", "Entrega normal", Money.of("2500", settings.currency)),
        DeliveryMethod("express", "Entrega expresso", Money.of("5000", settings.currency)),
        DeliveryMethod("pickup", "Levantamento na loja", Money.zero(settings.currency)),
    )
    deps = CheckoutDeps(
        orders=InMemoryOrderService(
            shipping_costs={m.id: m.cost.amount for m in methods},
            coupon_discounts={"BEMVINDO": Decimal("1000")},
            currency=settings.currency,
        ),
        payments=DummyPaymentService(),
        client_origin=StaticClientOriginLookup(),
        addresses=StaticAddressProvider(
            (
                Address("addr-home", "Rua Direita 12, Luanda", is_default=True),
                Address("addr-office", "Av. 4 de Fevereiro 80, Luanda"),
            )
        ),
        delivery_methods=StaticDeliveryMethodProvider(methods),
        channel=channel,
        allow_list=allow_list,
        application_origin=settings.application_origin,
        currency=settings.currency,
    )
    return UseCases(checkout=CheckoutService(deps), channel=channel)


def _build_http(
    settings: Settings, channel: InMemoryConfirmationChannel, allow_list: OriginAllowList
) -> UseCases:
    timeout = settings.http_timeout_seconds
    orders_client = build_client(settings.order_service_url, timeout)
    payments_client = build_client(settings.payment_service_url, timeout)
    origin_client = build_client("", timeout)

    deps = CheckoutDeps(
        orders=HttpOrderService(orders_client, currency=settings.currency),
        payments=HttpPaymentService(payments_client),
        client_origin=HttpClientOriginLookup(
            origin_client, url=settings.client_origin_lookup_url
        ),
        addresses=HttpAddressProvider(orders_client),
        delivery_methods=HttpDeliveryMethodProvider(
            orders_client, currency=settings.currency
        ),
        channel=channel,
        allow_list=allow_list,
        application_origin=settings.application_origin,
        currency=settings.currency,
    )
    return UseCases(
        checkout=CheckoutService(deps),
        channel=channel,
        clients=(orders_client, payments_client, origin_client),
    )
