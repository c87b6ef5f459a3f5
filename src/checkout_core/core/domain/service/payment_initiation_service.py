from __future__ import annotations

from dataclasses import dataclass

import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import (
    CheckoutError,
    InvalidTransition,
    PaymentError,
)
from checkout_core.core.domain.model.order import DEFAULT_CURRENCY, Order
from checkout_core.core.domain.model.payment import PaymentHandle, route_for
from checkout_core.core.domain.model.session import CheckoutSession
from checkout_core.core.ports.outbound.client_origin import ClientOriginLookup
from checkout_core.core.ports.outbound.payment import (
    PaymentInitiationRequest,
    PaymentService,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentInitiationService:
    payments: PaymentService
    client_origin: ClientOriginLookup
    application_origin: str
    currency: str = DEFAULT_CURRENCY

    async def initiate(
        self, session: CheckoutSession, client_agent: str = "", client_origin: str = ""
    ) -> Result[PaymentHandle, CheckoutError]:
        """``client_origin`` is the customer address the host saw; the lookup
        only fills in when the host has none.
        """
        order = session.order
        if order is None:
            return Failure(
                InvalidTransition(
                    "payment needs a created order",
                    step=session.step.value,
                    action="initiate_payment",
                )
            )
        if session.payment_handle is not None:
            return Failure(
                InvalidTransition(
                    "payment was already initiated for this order",
                    step=session.step.value,
                    action="initiate_payment",
                )
            )

        route = route_for(session.selection.current.payment_method)
        request = PaymentInitiationRequest(
            order_id=order.order_id,
            method=route.method,
            currency=self.currency,
            payment_type=route.payment_type,
            client_origin=client_origin or await self._resolve_client_origin(order),
            client_agent=client_agent,
            return_url=self.return_url(order),
        )
        logger.info(
            "Initiating payment",
            session_id=session.session_id,
            order_id=order.order_id.value,
            method=route.method.value,
            payment_type=route.payment_type.value,
        )

        result = await self.payments.initiate_payment(request)
        if isinstance(result, Success):
            handle = result.unwrap()
            if route.is_instant and not handle.redirect_or_embed_url:
                result = Failure(
                    PaymentError(
                        "gateway returned no payment page",
                        order_id=order.order_id.value,
                    )
                )
            else:
                session.payment_handle = handle
                logger.info(
                    "Payment initiated",
                    session_id=session.session_id,
                    order_id=order.order_id.value,
                    payment_id=handle.payment_id,
                )
                return result

        err = result.failure()
        # The order stays; only the payment is missing.
        logger.error(
            "Payment initiation failed",
            session_id=session.session_id,
            order_id=order.order_id.value,
            status_code=getattr(err, "status_code", None),
            error=str(err),
        )
        return result

    def return_url(self, order: Order) -> str:
        return f"{self.application_origin.rstrip('/')}/order-success/{order.order_id.value}"

    async def _resolve_client_origin(self, order: Order) -> str:
        looked_up = await self.client_origin.lookup()
        if isinstance(looked_up, Failure):
            logger.warning(
                "Client origin lookup failed, continuing without it",
                order_id=order.order_id.value,
                error=str(looked_up.failure()),
            )
            return ""
        return looked_up.unwrap()
