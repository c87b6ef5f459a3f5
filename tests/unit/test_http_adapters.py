from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest
from returns.result import Success

from checkout_core.adapters.outbound.http_client_origin import HttpClientOriginLookup
from checkout_core.adapters.outbound.http_orders import HttpOrderService
from checkout_core.adapters.outbound.http_payment import HttpPaymentService
from checkout_core.adapters.outbound.http_providers import (
    HttpAddressProvider,
    HttpDeliveryMethodProvider,
)
from checkout_core.adapters.outbound.http_support import build_client
from checkout_core.core.domain.model.errors import (
    IdempotencyKeyConflict,
    OrderError,
    PaymentError,
    ProviderError,
)
from checkout_core.core.domain.model.order import (
    CustomerId,
    Money,
    OrderId,
    OrderStatus,
    PaymentStatus,
)
from checkout_core.core.domain.model.payment import (
    GatewayMethod,
    PaymentMethod,
    PaymentType,
)
from checkout_core.core.domain.service.cart_validation import validate_cart
from checkout_core.core.ports.inbound.checkout import RawCartLine
from checkout_core.core.ports.outbound.orders import (
    OrderCreationRequest,
    OrderStatusUpdate,
)
from checkout_core.core.ports.outbound.payment import PaymentInitiationRequest

PRODUCT = "3fa85f64-5717-4562-b3fc-2c963f66afa6"

ORDER_BODY = {
    "id": "ord-1",
    "numero_encomenda": "ENC-2026-0001",
    "cliente_id": "c-1",
    "estado": "pendente",
    "estado_pagamento": "pendente",
    "subtotal_produtos": "10000.00",
    "desconto_cupom": "0",
    "taxa_entrega": "2500.00",
    "impostos": "0",
    "total": "12500.00",
    "itens": [
        {
            "id": "it-1",
            "produto_id": PRODUCT,
            "nome": "Cafe",
            "quantidade": 2,
            "preco_unitario": "5000.00",
            "subtotal": "10000.00",
        }
    ],
}


def _client(handler, base_url="http://orders.test"):
    return build_client(base_url, 2.0, transport=httpx.MockTransport(handler))


def _creation_request():
    cart = validate_cart([RawCartLine(PRODUCT, 2, Decimal("5000"))]).unwrap()
    return OrderCreationRequest(
        customer_id=CustomerId("c-1"),
        delivery_address_id="a1",
        billing_address_id="a2",
        delivery_method_id="m1",
        payment_method=PaymentMethod.BANK_TRANSFER,
        coupon_code=None,
        customer_note="obrigado",
        lines=cart.lines,
    )


class TestHttpOrderService:
    async def test_create_sends_wire_body_and_idempotency_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("Idempotency-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=ORDER_BODY)

        async with _client(handler) as client:
            result = await HttpOrderService(client).create_order(
                _creation_request(), idempotency_key="tok-1"
            )

        order = result.unwrap()
        assert seen["method"] == "POST"
        assert seen["path"] == "/orders/"
        assert seen["key"] == "tok-1"
        assert seen["body"]["cliente_id"] == "c-1"
        assert seen["body"]["endereco_faturacao_id"] == "a2"
        assert seen["body"]["metodo_entrega_id"] == "m1"
        assert seen["body"]["notas_cliente"] == "obrigado"
        assert seen["body"]["itens"] == [{"produto_id": PRODUCT, "quantidade": 2}]
        assert order.order_id == OrderId("ord-1")
        assert order.order_number == "ENC-2026-0001"
        assert order.subtotal == Money.of("10000")
        assert order.total == Money.of("12500")
        assert order.lines[0].quantity == 2

    async def test_server_error_becomes_order_error_with_status(self):
        def handler(request):
            return httpx.Response(503, json={"detail": "manutencao"})

        async with _client(handler) as client:
            result = await HttpOrderService(client).create_order(_creation_request())

        err = result.failure()
        assert type(err) is OrderError
        assert err.status_code == 503
        assert err.message == "manutencao"

    async def test_conflict_on_reused_key(self):
        def handler(request):
            return httpx.Response(409, json={"message": "key reused"})

        async with _client(handler) as client:
            result = await HttpOrderService(client).create_order(
                _creation_request(), idempotency_key="tok-1"
            )

        err = result.failure()
        assert isinstance(err, IdempotencyKeyConflict)
        assert err.key == "tok-1"

    async def test_timeout_has_no_status(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            result = await HttpOrderService(client).get_order(OrderId("ord-1"))

        err = result.failure()
        assert isinstance(err, OrderError)
        assert err.status_code is None
        assert err.order_id == "ord-1"

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            result = await HttpOrderService(client).get_order(OrderId("ord-1"))

        assert "unreachable" in result.failure().message

    async def test_unreadable_body(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        async with _client(handler) as client:
            result = await HttpOrderService(client).get_order(OrderId("ord-1"))

        assert result.failure().message == "unreadable order response"

    @pytest.mark.parametrize(
        "wire, status, payment",
        [
            ("processamento", OrderStatus.PROCESSING, PaymentStatus.PENDING),
            ("enviado", OrderStatus.SHIPPED, PaymentStatus.PAID),
            ("entregue", OrderStatus.DELIVERED, PaymentStatus.REFUNDED),
            ("cancelado", OrderStatus.CANCELLED, PaymentStatus.FAILED),
            ("desconhecido", OrderStatus.PENDING, PaymentStatus.PENDING),
        ],
    )
    async def test_status_vocabulary(self, wire, status, payment):
        pay_wire = {
            PaymentStatus.PENDING: "pendente",
            PaymentStatus.PAID: "pago",
            PaymentStatus.REFUNDED: "reembolsado",
            PaymentStatus.FAILED: "falhou",
        }[payment]

        def handler(request):
            return httpx.Response(
                200, json={**ORDER_BODY, "estado": wire, "estado_pagamento": pay_wire}
            )

        async with _client(handler) as client:
            order = (await HttpOrderService(client).get_order(OrderId("ord-1"))).unwrap()

        assert order.status is status
        assert order.payment_status is payment

    async def test_update_status_uses_wire_names(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={**ORDER_BODY, "estado_pagamento": "pago"})

        async with _client(handler) as client:
            result = await HttpOrderService(client).update_order_status(
                OrderId("ord-1"), OrderStatusUpdate(payment_status=PaymentStatus.PAID)
            )

        assert seen == {
            "method": "PUT",
            "path": "/orders/ord-1",
            "body": {"estado_pagamento": "pago"},
        }
        assert result.unwrap().payment_status is PaymentStatus.PAID


def _payment_request():
    return PaymentInitiationRequest(
        order_id=OrderId("ord-1"),
        method=GatewayMethod.GPO,
        currency="AOA",
        payment_type=PaymentType.DEBIT_CARD,
        client_origin="41.63.0.10",
        client_agent="UA/1",
        return_url="https://loja.example.ao/order-success/ord-1",
    )


class TestHttpPaymentService:
    async def test_initiate(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "pagamento_id": "pg-9",
                    "estado": "pendente",
                    "url_pagamento": "https://pagamentos.emis.co.ao/online-payment?token=t",
                    "tempo_expiracao": 600,
                },
            )

        async with _client(handler, "http://payments.test") as client:
            handle = (await HttpPaymentService(client).initiate_payment(_payment_request())).unwrap()

        assert seen["path"] == "/pagamentos/criar"
        assert seen["body"] == {
            "encomenda_id": "ord-1",
            "metodo": "gpo",
            "moeda": "AOA",
            "tipo_pagamento": "debit_card",
            "ip_cliente": "41.63.0.10",
            "user_agent": "UA/1",
            "url_retorno": "https://loja.example.ao/order-success/ord-1",
        }
        assert handle.payment_id == "pg-9"
        assert handle.status is PaymentStatus.PENDING
        assert handle.redirect_or_embed_url.startswith("https://pagamentos.emis.co.ao")
        assert handle.expires_at is not None and not handle.is_expired()

    async def test_declined(self):
        def handler(request):
            return httpx.Response(402, json={"detail": "saldo insuficiente"})

        async with _client(handler, "http://payments.test") as client:
            result = await HttpPaymentService(client).initiate_payment(_payment_request())

        err = result.failure()
        assert isinstance(err, PaymentError)
        assert err.status_code == 402
        assert err.order_id == "ord-1"
        assert err.message == "saldo insuficiente"

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler, "http://payments.test") as client:
            result = await HttpPaymentService(client).initiate_payment(_payment_request())

        assert result.failure().status_code is None


class TestLookups:
    async def test_client_origin(self):
        def handler(request):
            return httpx.Response(200, json={"ip": "41.63.0.10"})

        async with _client(handler, "http://ip.test") as client:
            result = await HttpClientOriginLookup(client).lookup()

        assert result == Success("41.63.0.10")

    @pytest.mark.parametrize(
        "response",
        [httpx.Response(500), httpx.Response(200, json={}), httpx.Response(200, text="nope")],
    )
    async def test_client_origin_failures(self, response):
        async with _client(lambda request: response, "http://ip.test") as client:
            result = await HttpClientOriginLookup(client).lookup()

        assert isinstance(result.failure(), ProviderError)

    async def test_addresses_from_customer(self):
        def handler(request):
            assert request.url.path == "/customers/c-1"
            return httpx.Response(
                200,
                json={
                    "id": "c-1",
                    "enderecos": [
                        {"id": 7, "tipo": "entrega", "provincia": "Luanda", "municipio": "Belas", "rua": "Rua 1"},
                        {"id": 8, "tipo": "faturacao", "provincia": "Luanda", "padrao": True},
                    ],
                },
            )

        async with _client(handler) as client:
            addresses = (await HttpAddressProvider(client).list_addresses(CustomerId("c-1"))).unwrap()

        assert [a.id for a in addresses] == ["7", "8"]
        assert addresses[0].label == "Rua 1, Belas, Luanda"
        assert addresses[1].is_default

    async def test_delivery_methods(self):
        def handler(request):
            assert request.url.path == "/sales/delivery-methods"
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "nome": "Normal", "custo": "2500", "activo": True},
                    {"id": 2, "nome": "Antigo", "custo": "0", "activo": False},
                ],
            )

        async with _client(handler) as client:
            methods = (await HttpDeliveryMethodProvider(client).list_delivery_methods()).unwrap()

        assert methods[0].cost == Money.of("2500")
        assert methods[1].active is False

    async def test_provider_errors_are_results(self):
        def handler(request):
            return httpx.Response(200, json=[{"nome": "sem id"}])

        async with _client(handler) as client:
            result = await HttpDeliveryMethodProvider(client).list_delivery_methods()

        assert isinstance(result.failure(), ProviderError)
