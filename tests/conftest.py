from __future__ import annotations

from decimal import Decimal

import pytest

from checkout_core.adapters.outbound.dummy_payment import DummyPaymentService
from checkout_core.adapters.outbound.in_memory_confirmation_channel import (
    InMemoryConfirmationChannel,
)
from checkout_core.adapters.outbound.in_memory_orders import InMemoryOrderService
from checkout_core.adapters.outbound.static_providers import (
    StaticAddressProvider,
    StaticClientOriginLookup,
    StaticDeliveryMethodProvider,
)
from checkout_core.core.domain.model.confirmation import OriginAllowList
from checkout_core.core.domain.model.order import Money
from checkout_core.core.domain.model.selection import Address, DeliveryMethod
from checkout_core.core.domain.service.checkout_service import (
    CheckoutDeps,
    CheckoutService,
)
from checkout_core.core.ports.inbound.checkout import RawCartLine

PRODUCT_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
OTHER_PRODUCT_ID = "9b2e4c1a-7d3f-4e8a-b5c6-1f2a3b4c5d6e"
APP_ORIGIN = "https://loja.example.ao"
GATEWAY_ORIGIN = "https://pagamentos.emis.co.ao"


def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def cart_lines():
    return [RawCartLine(product_id=PRODUCT_ID, quantity=2, unit_price=Decimal("5000"))]


@pytest.fixture
def addresses():
    return (
        Address("addr-1", "Rua Direita 12", is_default=False),
        Address("addr-2", "Av. Marginal 3", is_default=True),
    )


@pytest.fixture
def delivery_methods():
    return (
        DeliveryMethod("standard", "Entrega normal", Money.of("2500")),
        DeliveryMethod("express", "Entrega expresso", Money.of("5000")),
    )


@pytest.fixture
def orders(delivery_methods):
    return InMemoryOrderService(
        shipping_costs={m.id: m.cost.amount for m in delivery_methods},
        coupon_discounts={"BEMVINDO": Decimal("1000")},
    )


@pytest.fixture
def payments():
    return DummyPaymentService(gateway_url=f"{GATEWAY_ORIGIN}/online-payment")


@pytest.fixture
def channel():
    return InMemoryConfirmationChannel()


@pytest.fixture
def allow_list():
    return OriginAllowList.of([GATEWAY_ORIGIN, APP_ORIGIN])


@pytest.fixture
def deps(orders, payments, channel, allow_list, addresses, delivery_methods):
    return CheckoutDeps(
        orders=orders,
        payments=payments,
        client_origin=StaticClientOriginLookup("41.63.0.10"),
        addresses=StaticAddressProvider(addresses),
        delivery_methods=StaticDeliveryMethodProvider(delivery_methods),
        channel=channel,
        allow_list=allow_list,
        application_origin=APP_ORIGIN,
    )


@pytest.fixture
def checkout(deps):
    return CheckoutService(deps)
