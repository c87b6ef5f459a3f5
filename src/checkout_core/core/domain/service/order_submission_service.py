from __future__ import annotations

from dataclasses import dataclass

import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError, InvalidTransition
from checkout_core.core.domain.model.order import Order
from checkout_core.core.domain.model.session import CheckoutSession
from checkout_core.core.domain.service.cart_validation import ensure_well_formed
from checkout_core.core.ports.outbound.orders import (
    OrderCreationRequest,
    OrderService,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderSubmissionService:
    orders: OrderService

    async def submit(self, session: CheckoutSession) -> Result[Order, CheckoutError]:
        if session.order is not None:
            return Failure(
                InvalidTransition(
                    "an order already exists for this checkout",
                    step=session.step.value,
                    action="submit",
                )
            )

        checked = ensure_well_formed(session.cart)
        if isinstance(checked, Failure):
            logger.warning(
                "Cart failed re-validation before submission",
                session_id=session.session_id,
                error=str(checked.failure()),
            )
            return checked

        request = build_request(session)
        logger.info(
            "Submitting order",
            session_id=session.session_id,
            lines=len(request.lines),
            payment_method=request.payment_method.value,
        )
        # Exactly one call per attempt; retries are the customer's decision.
        result = await self.orders.create_order(
            request, idempotency_key=session.attempt_token
        )
        if isinstance(result, Success):
            order = result.unwrap()
            session.order = order
            logger.info(
                "Order created",
                session_id=session.session_id,
                order_id=order.order_id.value,
                order_number=order.order_number,
            )
        else:
            err = result.failure()
            logger.error(
                "Order submission failed",
                session_id=session.session_id,
                status_code=getattr(err, "status_code", None),
                error=str(err),
            )
        return result


def build_request(session: CheckoutSession) -> OrderCreationRequest:
    sel = session.selection.current
    return OrderCreationRequest(
        customer_id=session.customer_id,
        delivery_address_id=sel.delivery_address_id,
        billing_address_id=sel.billing_address_id,
        delivery_method_id=sel.delivery_method_id,
        payment_method=sel.payment_method,
        coupon_code=sel.coupon_code,
        customer_note=sel.customer_note,
        lines=session.cart.lines,
    )
