from __future__ import annotations

from decimal import Decimal

from returns.result import Failure, Success

from checkout_core.adapters.outbound.dummy_payment import DummyPaymentService
from checkout_core.adapters.outbound.in_memory_orders import InMemoryOrderService
from checkout_core.adapters.outbound.static_providers import StaticClientOriginLookup
from checkout_core.core.domain.model.errors import (
    IdempotencyKeyConflict,
    InvalidTransition,
    OrderError,
    PaymentError,
    ProviderError,
)
from checkout_core.core.domain.model.order import CustomerId, Money
from checkout_core.core.domain.model.payment import (
    GatewayMethod,
    PaymentMethod,
    PaymentType,
)
from checkout_core.core.domain.model.selection import SelectionStore
from checkout_core.core.domain.model.session import CheckoutSession
from checkout_core.core.domain.service.cart_validation import validate_cart
from checkout_core.core.domain.service.order_submission_service import (
    OrderSubmissionService,
    build_request,
)
from checkout_core.core.domain.service.payment_initiation_service import (
    PaymentInitiationService,
)
from checkout_core.core.ports.inbound.checkout import RawCartLine

PRODUCT = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
APP = "https://loja.example.ao"


def _session(method=PaymentMethod.BANK_TRANSFER, coupon=None):
    cart = validate_cart([RawCartLine(PRODUCT, 2, Decimal("5000"))]).unwrap()
    session = CheckoutSession(customer_id=CustomerId("c-1"), cart=cart, selection=SelectionStore())
    session.selection.update(
        delivery_address_id="a1",
        billing_address_id="a1",
        delivery_method_id="standard",
        payment_method=method,
        coupon_code=coupon,
        customer_note="Tocar a campainha",
    )
    return session


def _initiation(payments=None, origin=None):
    return PaymentInitiationService(
        payments=payments or DummyPaymentService(),
        client_origin=origin or StaticClientOriginLookup("41.63.0.10"),
        application_origin=APP + "/",
    )


class TestOrderSubmission:
    async def test_request_is_derived_from_cart_and_selection(self):
        session = _session(coupon="BEMVINDO")
        request = build_request(session)

        assert request.customer_id == CustomerId("c-1")
        assert request.delivery_address_id == "a1"
        assert request.billing_address_id == "a1"
        assert request.delivery_method_id == "standard"
        assert request.payment_method is PaymentMethod.BANK_TRANSFER
        assert request.coupon_code == "BEMVINDO"
        assert request.customer_note == "Tocar a campainha"
        assert request.lines == session.cart.lines

    async def test_success_stores_the_order(self):
        orders = InMemoryOrderService(shipping_costs={"standard": Decimal("2500")})
        session = _session()

        result = await OrderSubmissionService(orders).submit(session)

        order = result.unwrap()
        assert session.order is order
        assert order.subtotal == Money.of("10000")
        assert order.shipping == Money.of("2500")
        assert order.total == Money.of("12500")
        assert orders.create_calls == 1

    async def test_coupon_discount_is_applied(self):
        orders = InMemoryOrderService(coupon_discounts={"BEMVINDO": Decimal("1000")})
        order = (await OrderSubmissionService(orders).submit(_session(coupon="BEMVINDO"))).unwrap()
        assert order.discount == Money.of("1000")
        assert order.total == Money.of("9000")

    async def test_failure_stores_nothing_and_is_not_retried(self):
        orders = InMemoryOrderService(fail_with=OrderError("boom", status_code=503))
        session = _session()

        result = await OrderSubmissionService(orders).submit(session)

        assert isinstance(result.failure(), OrderError)
        assert result.failure().status_code == 503
        assert session.order is None
        assert orders.create_calls == 1

    async def test_second_submit_is_refused(self):
        orders = InMemoryOrderService()
        session = _session()
        service = OrderSubmissionService(orders)
        await service.submit(session)

        result = await service.submit(session)

        assert isinstance(result.failure(), InvalidTransition)
        assert orders.create_calls == 1
        assert len(orders.orders()) == 1

    async def test_attempt_token_deduplicates_a_resubmission(self):
        orders = InMemoryOrderService()
        session = _session()
        first = (await OrderSubmissionService(orders).submit(session)).unwrap()

        # Same attempt, e.g. after a timeout whose request did land.
        session.order = None
        second = (await OrderSubmissionService(orders).submit(session)).unwrap()

        assert second.order_id == first.order_id
        assert len(orders.orders()) == 1

    async def test_reused_token_with_changed_request_conflicts(self):
        orders = InMemoryOrderService()
        session = _session()
        await OrderSubmissionService(orders).submit(session)

        session.order = None
        session.selection.update(customer_note="outra nota")
        result = await OrderSubmissionService(orders).submit(session)

        assert isinstance(result.failure(), IdempotencyKeyConflict)


class TestPaymentInitiation:
    async def _with_order(self, method):
        session = _session(method=method)
        await OrderSubmissionService(InMemoryOrderService()).submit(session)
        return session

    async def test_bank_transfer_goes_offline_without_redirect(self):
        payments = DummyPaymentService()
        session = await self._with_order(PaymentMethod.BANK_TRANSFER)

        handle = (await _initiation(payments).initiate(session, client_agent="UA/1")).unwrap()

        sent = payments.requests[-1]
        assert sent.method is GatewayMethod.BANK_TRANSFER
        assert sent.payment_type is PaymentType.OFFLINE
        assert sent.currency == "AOA"
        assert sent.client_origin == "41.63.0.10"
        assert sent.client_agent == "UA/1"
        assert sent.return_url == f"{APP}/order-success/{session.order.order_id.value}"
        assert handle.redirect_or_embed_url == ""
        assert session.payment_handle is handle

    async def test_instant_gateway_gets_an_embed_url(self):
        payments = DummyPaymentService()
        session = await self._with_order(PaymentMethod.MULTICAIXA_EXPRESS)

        handle = (await _initiation(payments).initiate(session)).unwrap()

        assert payments.requests[-1].method is GatewayMethod.GPO
        assert payments.requests[-1].payment_type is PaymentType.DEBIT_CARD
        assert handle.redirect_or_embed_url

    async def test_host_supplied_origin_wins_over_lookup(self):
        payments = DummyPaymentService()
        session = await self._with_order(PaymentMethod.BANK_TRANSFER)

        await _initiation(payments).initiate(session, client_origin="197.149.1.20")

        assert payments.requests[-1].client_origin == "197.149.1.20"

    async def test_origin_lookup_failure_does_not_block(self):
        payments = DummyPaymentService()
        session = await self._with_order(PaymentMethod.PAYMENT_REFERENCE)
        origin = StaticClientOriginLookup(fail_with=ProviderError("down"))

        result = await _initiation(payments, origin).initiate(session)

        assert isinstance(result, Success)
        assert payments.requests[-1].client_origin == ""

    async def test_failure_keeps_the_order(self):
        session = await self._with_order(PaymentMethod.BANK_TRANSFER)
        order = session.order
        payments = DummyPaymentService(decline_order_ids={order.order_id.value})

        result = await _initiation(payments).initiate(session)

        err = result.failure()
        assert isinstance(err, PaymentError)
        assert err.order_id == order.order_id.value
        assert err.status_code == 402
        assert session.order is order
        assert session.payment_handle is None

    async def test_instant_handle_without_url_is_an_error(self):
        session = await self._with_order(PaymentMethod.MULTICAIXA_EXPRESS)
        class NoUrl(DummyPaymentService):
            async def initiate_payment(self, request):
                handle = (await super().initiate_payment(request)).unwrap()
                return Success(type(handle)(handle.payment_id, handle.status, ""))

        result = await _initiation(NoUrl()).initiate(session)

        assert isinstance(result.failure(), PaymentError)
        assert session.payment_handle is None

    async def test_needs_an_order(self):
        result = await _initiation().initiate(_session())
        assert isinstance(result, Failure)
        assert isinstance(result.failure(), InvalidTransition)
