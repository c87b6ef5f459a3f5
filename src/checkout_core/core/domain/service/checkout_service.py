from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.confirmation import OriginAllowList
from checkout_core.core.domain.model.errors import (
    CheckoutError,
    InvalidTransition,
    PaymentError,
    SubmissionInProgress,
    ValidationError,
)
from checkout_core.core.domain.model.order import DEFAULT_CURRENCY, CustomerId
from checkout_core.core.domain.model.payment import (
    PaymentHandle,
    PaymentMethod,
    route_for,
)
from checkout_core.core.domain.model.selection import Selection, SelectionStore
from checkout_core.core.domain.model.session import CheckoutSession, CheckoutStep
from checkout_core.core.domain.service.cart_validation import validate_cart
from checkout_core.core.domain.service.confirmation_listener import (
    ConfirmationListener,
)
from checkout_core.core.domain.service.order_submission_service import (
    OrderSubmissionService,
)
from checkout_core.core.domain.service.payment_initiation_service import (
    PaymentInitiationService,
)
from checkout_core.core.domain.service.reconciliation_service import (
    ReconciliationService,
)
from checkout_core.core.ports.inbound.checkout import CheckoutUseCase, RawCartLine
from checkout_core.core.ports.outbound.client_origin import ClientOriginLookup
from checkout_core.core.ports.outbound.confirmation import ConfirmationChannel
from checkout_core.core.ports.outbound.orders import OrderService
from checkout_core.core.ports.outbound.payment import PaymentService
from checkout_core.core.ports.outbound.providers import (
    AddressProvider,
    DeliveryMethodProvider,
)

logger = structlog.get_logger(__name__)

PAYMENT_METHOD_VALUES = frozenset(m.value for m in PaymentMethod)


@dataclass(frozen=True)
class CheckoutDeps:
    orders: OrderService
    payments: PaymentService
    client_origin: ClientOriginLookup
    addresses: AddressProvider
    delivery_methods: DeliveryMethodProvider
    channel: ConfirmationChannel
    allow_list: OriginAllowList
    application_origin: str
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class CheckoutService(CheckoutUseCase):
    """Info -> Payment -> Confirmation, with the session passed in explicitly."""

    deps: CheckoutDeps

    @property
    def submission(self) -> OrderSubmissionService:
        return OrderSubmissionService(self.deps.orders)

    @property
    def initiation(self) -> PaymentInitiationService:
        return PaymentInitiationService(
            payments=self.deps.payments,
            client_origin=self.deps.client_origin,
            application_origin=self.deps.application_origin,
            currency=self.deps.currency,
        )

    @property
    def reconciliation(self) -> ReconciliationService:
        return ReconciliationService(self.deps.orders)

    # ---- Info ----------------------------------------------------------------

    async def begin(
        self, customer_id: str, lines: Sequence[RawCartLine]
    ) -> Result[CheckoutSession, CheckoutError]:
        if not customer_id.strip():
            return Failure(ValidationError("customer_id is required"))

        snapshot = validate_cart(lines, currency=self.deps.currency)
        if isinstance(snapshot, Failure):
            logger.warning("Cart rejected", customer_id=customer_id, error=str(snapshot.failure()))
            return snapshot

        session = CheckoutSession(
            customer_id=CustomerId(customer_id.strip()),
            cart=snapshot.unwrap(),
            selection=SelectionStore(),
        )
        await self._load_selection_defaults(session)
        logger.info(
            "Checkout started",
            session_id=session.session_id,
            customer_id=session.customer_id.value,
            lines=len(session.cart),
        )
        return Success(session)

    def update_selection(
        self, session: CheckoutSession, **changes: Any
    ) -> Result[Selection, CheckoutError]:
        guard = self._guard_selection(session, changes)
        if isinstance(guard, Failure):
            return guard
        raw_method = changes.get("payment_method")
        if (
            isinstance(raw_method, str)
            and raw_method.strip().lower() not in PAYMENT_METHOD_VALUES
        ):
            logger.warning(
                "Unknown payment method, using fallback",
                session_id=session.session_id,
                requested=raw_method,
                fallback=PaymentMethod.fallback().value,
            )
        return session.selection.update(**changes)

    def advance_to_payment(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]:
        if session.step is not CheckoutStep.INFO:
            return Failure(_transition(session, "advance", "only possible from info"))

        checked = session.selection.require_advance(session.cart)
        if isinstance(checked, Failure):
            logger.info(
                "Advance blocked",
                session_id=session.session_id,
                missing=list(checked.failure().violations),
            )
            return checked

        session.move_to(CheckoutStep.PAYMENT)
        return Success(session)

    # ---- Payment -------------------------------------------------------------

    async def place_order(
        self, session: CheckoutSession, client_agent: str = "", client_origin: str = ""
    ) -> Result[CheckoutSession, CheckoutError]:
        if session.submitting:
            logger.warning("Duplicate submission rejected", session_id=session.session_id)
            return Failure(
                SubmissionInProgress(
                    "an order submission is already running",
                    session_id=session.session_id,
                )
            )
        if session.step is not CheckoutStep.PAYMENT:
            return Failure(_transition(session, "place_order", "only possible from payment"))
        if session.order is not None:
            return Failure(_transition(session, "place_order", "order already created"))

        # Set before the first await so a concurrent call sees it.
        session.submitting = True
        try:
            submitted = await self.submission.submit(session)
            if isinstance(submitted, Failure):
                return submitted

            paid = await self.initiation.initiate(
                session, client_agent=client_agent, client_origin=client_origin
            )
            session.move_to(CheckoutStep.CONFIRMATION)
            if isinstance(paid, Failure):
                err = paid.failure()
                session.record_payment_error(_as_payment_error(err, session))
                return Success(session)

            self._arm_listener(session)
            return Success(session)
        finally:
            session.submitting = False

    async def retry_payment(
        self, session: CheckoutSession, client_agent: str = "", client_origin: str = ""
    ) -> Result[PaymentHandle, CheckoutError]:
        if session.submitting:
            return Failure(
                SubmissionInProgress(
                    "a payment request is already running",
                    session_id=session.session_id,
                )
            )
        if session.step is not CheckoutStep.CONFIRMATION or session.order is None:
            return Failure(_transition(session, "retry_payment", "no order to pay for"))
        if session.payment_handle is not None:
            return Failure(_transition(session, "retry_payment", "payment already initiated"))
        if session.payment_confirmed:
            return Failure(_transition(session, "retry_payment", "payment already confirmed"))

        session.submitting = True
        try:
            paid = await self.initiation.initiate(
                session, client_agent=client_agent, client_origin=client_origin
            )
        finally:
            session.submitting = False

        if isinstance(paid, Failure):
            session.record_payment_error(_as_payment_error(paid.failure(), session))
            return paid

        session.payment_error = None
        self._arm_listener(session)
        return paid

    # ---- Confirmation --------------------------------------------------------

    async def reconcile(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]:
        result = await self.reconciliation.reconcile(session)
        if isinstance(result, Success) and session.payment_handle is None:
            self._disarm(session)
        return result

    def restart(
        self, session: CheckoutSession, lines: Sequence[RawCartLine] | None = None
    ) -> Result[CheckoutSession, CheckoutError]:
        """Back to Info ("create new order") with no order and no handle."""
        if session.submitting:
            return Failure(
                SubmissionInProgress(
                    "cannot restart while an order is being submitted",
                    session_id=session.session_id,
                )
            )

        cart = None
        if lines is not None:
            snapshot = validate_cart(lines, currency=self.deps.currency)
            if isinstance(snapshot, Failure):
                return snapshot
            cart = snapshot.unwrap()

        self._disarm(session)
        previous = session.order.order_id.value if session.order else None
        session.reset_for_new_order(cart)
        logger.info(
            "Checkout restarted",
            session_id=session.session_id,
            previous_order_id=previous,
        )
        return Success(session)

    def complete(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]:
        if session.step is not CheckoutStep.CONFIRMATION:
            return Failure(_transition(session, "complete", "only possible from confirmation"))
        self._disarm(session)
        session.closed = True
        logger.info(
            "Checkout completed",
            session_id=session.session_id,
            payment_confirmed=session.payment_confirmed,
        )
        return Success(session)

    def discard(self, session: CheckoutSession) -> None:
        self._disarm(session)
        session.closed = True
        logger.info("Checkout discarded", session_id=session.session_id)

    # ---- helpers -------------------------------------------------------------

    async def _load_selection_defaults(self, session: CheckoutSession) -> None:
        addresses = await self.deps.addresses.list_addresses(session.customer_id)
        methods = await self.deps.delivery_methods.list_delivery_methods()
        if isinstance(addresses, Failure):
            logger.warning(
                "Address lookup failed",
                session_id=session.session_id,
                error=str(addresses.failure()),
            )
        if isinstance(methods, Failure):
            logger.warning(
                "Delivery method lookup failed",
                session_id=session.session_id,
                error=str(methods.failure()),
            )
        session.selection.apply_defaults(
            addresses.value_or(()),
            methods.value_or(()),
        )

    def _guard_selection(
        self, session: CheckoutSession, changes: dict[str, Any]
    ) -> Result[None, CheckoutError]:
        if session.step is CheckoutStep.INFO:
            return Success(None)
        payment_only = set(changes) <= {"payment_method"}
        if payment_only and session.step is CheckoutStep.PAYMENT:
            return Success(None)
        if (
            payment_only
            and session.step is CheckoutStep.CONFIRMATION
            and session.payment_handle is None
            and not session.payment_confirmed
            and not session.submitting
        ):
            return Success(None)
        return Failure(
            _transition(session, "update_selection", "selection is locked in this step")
        )

    def _arm_listener(self, session: CheckoutSession) -> None:
        handle = session.payment_handle
        route = route_for(session.selection.current.payment_method)
        if handle is None or not route.is_instant or session.listener is not None:
            return
        listener = ConfirmationListener(
            session=session, channel=self.deps.channel, allow_list=self.deps.allow_list
        )
        if isinstance(listener.start(), Success):
            session.listener = listener

    def _disarm(self, session: CheckoutSession) -> None:
        if session.listener is not None:
            session.listener.stop()
            session.listener = None


def _transition(session: CheckoutSession, action: str, message: str) -> InvalidTransition:
    return InvalidTransition(message, step=session.step.value, action=action)


def _as_payment_error(err: CheckoutError, session: CheckoutSession) -> PaymentError:
    if isinstance(err, PaymentError):
        return err
    order_id = session.order.order_id.value if session.order else None
    return PaymentError(str(err), order_id=order_id)
