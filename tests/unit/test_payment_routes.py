from __future__ import annotations

from datetime import timedelta

import pytest

from checkout_core.core.domain.model.order import PaymentStatus, now_utc
from checkout_core.core.domain.model.payment import (
    GATEWAY_ROUTES,
    GatewayMethod,
    PaymentHandle,
    PaymentMethod,
    PaymentType,
    route_for,
)


class TestGatewayRoutes:
    def test_every_method_is_mapped(self):
        assert set(GATEWAY_ROUTES) == set(PaymentMethod)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            GATEWAY_ROUTES[PaymentMethod.BANK_TRANSFER] = None  # type: ignore[index]

    @pytest.mark.parametrize(
        "method, gateway, payment_type",
        [
            (PaymentMethod.BANK_TRANSFER, GatewayMethod.BANK_TRANSFER, PaymentType.OFFLINE),
            (PaymentMethod.PAYMENT_REFERENCE, GatewayMethod.PAYMENT_REFERENCE, PaymentType.OFFLINE),
            (PaymentMethod.ON_CONSULTATION, GatewayMethod.MANUAL, PaymentType.OFFLINE),
            (PaymentMethod.MULTICAIXA_EXPRESS, GatewayMethod.GPO, PaymentType.DEBIT_CARD),
        ],
    )
    def test_route(self, method, gateway, payment_type):
        route = route_for(method)
        assert route.method is gateway
        assert route.payment_type is payment_type

    def test_only_the_card_gateway_is_instant(self):
        instant = [m for m in PaymentMethod if route_for(m).is_instant]
        assert instant == [PaymentMethod.MULTICAIXA_EXPRESS]


class TestParse:
    @pytest.mark.parametrize("raw", ["transfer", " Transfer ", PaymentMethod.BANK_TRANSFER])
    def test_known_values(self, raw):
        assert PaymentMethod.parse(raw) is PaymentMethod.BANK_TRANSFER

    @pytest.mark.parametrize("raw", ["", None, "bitcoin"])
    def test_unknown_values_fall_back_to_instant_gateway(self, raw):
        method = PaymentMethod.parse(raw)
        assert method is PaymentMethod.fallback()
        assert route_for(method).is_instant


class TestPaymentHandle:
    def test_without_expiry_never_expires(self):
        handle = PaymentHandle("p1", PaymentStatus.PENDING)
        assert not handle.is_expired()

    def test_expiry(self):
        now = now_utc()
        handle = PaymentHandle("p1", PaymentStatus.PENDING, expires_at=now + timedelta(minutes=5))
        assert not handle.is_expired(now)
        assert handle.is_expired(now + timedelta(minutes=5))
