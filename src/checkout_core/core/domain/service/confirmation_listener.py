from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.confirmation import (
    ConfirmationEnvelope,
    ConfirmationMessage,
    ConfirmationOutcome,
    ConfirmationType,
    OriginAllowList,
)
from checkout_core.core.domain.model.errors import (
    CheckoutError,
    ConfirmationProvenanceError,
    InvalidTransition,
    ValidationError,
)
from checkout_core.core.domain.model.session import (
    CheckoutSession,
    CheckoutStep,
    NoticeKind,
)
from checkout_core.core.ports.outbound.confirmation import (
    ConfirmationChannel,
    Subscription,
)

logger = structlog.get_logger(__name__)

DEFAULT_PAYMENT_ERROR = "Ocorreu um erro durante o pagamento"
CANCELLED_NOTICE = "O pagamento foi cancelado"
CONFIRMED_NOTICE = "Pagamento confirmado"


@dataclass
class ConfirmationListener:
    """Consumes gateway messages for one session while it sits in Confirmation.

    Only ``handle`` touches the session; it runs on the consumer task, so
    messages are applied one at a time.
    """

    session: CheckoutSession
    channel: ConfirmationChannel
    allow_list: OriginAllowList
    _subscription: Subscription | None = field(default=None, init=False, repr=False)
    _task: "asyncio.Task[None] | None" = field(default=None, init=False, repr=False)

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def start(self) -> Result[None, CheckoutError]:
        if self.active:
            return Success(None)
        if self.session.step is not CheckoutStep.CONFIRMATION:
            return Failure(
                InvalidTransition(
                    "listener only runs in the confirmation step",
                    step=self.session.step.value,
                    action="listen",
                )
            )
        if self.session.payment_handle is None:
            return Failure(
                InvalidTransition(
                    "listener needs a payment handle",
                    step=self.session.step.value,
                    action="listen",
                )
            )

        self._subscription = self.channel.subscribe(self.session.session_id)
        self._task = asyncio.get_running_loop().create_task(
            self._consume(self._subscription)
        )
        logger.info("Confirmation listener armed", session_id=self.session.session_id)
        return Success(None)

    def stop(self) -> None:
        if self._subscription is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
            logger.info(
                "Confirmation listener stopped", session_id=self.session.session_id
            )
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _consume(self, subscription: Subscription) -> None:
        while True:
            envelope = await subscription.receive()
            try:
                self.handle(envelope)
            except Exception:
                logger.exception(
                    "Confirmation message handling crashed",
                    session_id=self.session.session_id,
                )
            finally:
                subscription.acknowledge()

    def handle(
        self, envelope: ConfirmationEnvelope
    ) -> Result[ConfirmationOutcome, CheckoutError]:
        session_id = self.session.session_id
        if not self.allow_list.allows(envelope.origin):
            # Spoofing boundary: never acted upon, never surfaced.
            logger.warning(
                "Dropped confirmation from untrusted origin",
                session_id=session_id,
                origin=envelope.origin,
            )
            return Failure(
                ConfirmationProvenanceError(
                    "origin not allowed", origin=envelope.origin or ""
                )
            )

        message = ConfirmationMessage.from_payload(envelope.payload)
        if message is None:
            logger.warning(
                "Dropped malformed confirmation payload",
                session_id=session_id,
                origin=envelope.origin,
            )
            return Failure(ValidationError("malformed confirmation payload"))

        if message.type is ConfirmationType.PAYMENT_SUCCESS:
            if not self.session.confirm_payment():
                logger.debug("Repeated payment success ignored", session_id=session_id)
                return Success(ConfirmationOutcome.ALREADY_CONFIRMED)
            self.session.add_notice(NoticeKind.INFO, CONFIRMED_NOTICE)
            logger.info("Payment confirmed by gateway", session_id=session_id)
            return Success(ConfirmationOutcome.CONFIRMED)

        if message.type is ConfirmationType.PAYMENT_ERROR:
            text = message.message or DEFAULT_PAYMENT_ERROR
            self.session.add_notice(NoticeKind.ERROR, text)
            logger.warning("Gateway reported a payment error", session_id=session_id, error=text)
            return Success(ConfirmationOutcome.ERROR_REPORTED)

        self.session.add_notice(NoticeKind.CANCELLED, message.message or CANCELLED_NOTICE)
        logger.info("Payment cancelled by customer", session_id=session_id)
        return Success(ConfirmationOutcome.CANCELLED)
