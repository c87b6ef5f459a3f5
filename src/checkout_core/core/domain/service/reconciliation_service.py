from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError, InvalidTransition
from checkout_core.core.domain.model.order import Order, PaymentStatus, now_utc
from checkout_core.core.domain.model.session import CheckoutSession, NoticeKind
from checkout_core.core.ports.outbound.orders import OrderService

logger = structlog.get_logger(__name__)

EXPIRED_NOTICE = "O prazo de pagamento expirou"
FAILED_NOTICE = "O pagamento foi recusado"


@dataclass(frozen=True)
class ReconciliationService:
    """Pull-side fallback for when the gateway never pushes a confirmation.

    The host decides when to call it; nothing polls in the background.
    """

    orders: OrderService

    async def reconcile(
        self, session: CheckoutSession, now: datetime | None = None
    ) -> Result[CheckoutSession, CheckoutError]:
        if session.order is None:
            return Failure(
                InvalidTransition(
                    "nothing to reconcile before an order exists",
                    step=session.step.value,
                    action="reconcile",
                )
            )

        fetched = await self.orders.get_order(session.order.order_id)
        if isinstance(fetched, Failure):
            logger.error(
                "Could not fetch order for reconciliation",
                session_id=session.session_id,
                order_id=session.order.order_id.value,
                error=str(fetched.failure()),
            )
            return fetched

        order = fetched.unwrap()
        session.order = order
        self._apply(session, order, now or now_utc())
        return Success(session)

    def _apply(self, session: CheckoutSession, order: Order, now: datetime) -> None:
        log = logger.bind(session_id=session.session_id, order_id=order.order_id.value)

        if session.payment_confirmed:
            # Confirmed is final, whatever the order service still reports.
            log.debug("Payment already confirmed, nothing to reconcile")
            return

        if order.payment_status is PaymentStatus.PAID:
            if session.confirm_payment():
                session.add_notice(NoticeKind.INFO, "Pagamento confirmado")
                log.info("Payment confirmed by reconciliation")
            return

        if order.payment_status is PaymentStatus.FAILED:
            last = session.notices[-1] if session.notices else None
            if last is not None and (last.kind, last.message) == (NoticeKind.ERROR, FAILED_NOTICE):
                return
            session.add_notice(NoticeKind.ERROR, FAILED_NOTICE)
            log.warning("Order service reports failed payment")
            return

        handle = session.payment_handle
        if (
            order.payment_status is PaymentStatus.PENDING
            and handle is not None
            and handle.is_expired(now)
        ):
            session.add_notice(NoticeKind.EXPIRED, EXPIRED_NOTICE)
            session.clear_payment_handle()
            log.info("Payment handle expired", payment_id=handle.payment_id)
