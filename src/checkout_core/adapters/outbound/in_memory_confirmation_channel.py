from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict

import structlog

from checkout_core.core.domain.model.confirmation import ConfirmationEnvelope
from checkout_core.core.ports.outbound.confirmation import (
    ConfirmationChannel,
    Subscription,
)

logger = structlog.get_logger(__name__)


@dataclass
class QueueSubscription(Subscription):
    session_id: str
    queue: "asyncio.Queue[ConfirmationEnvelope]" = field(default_factory=asyncio.Queue)

    async def receive(self) -> ConfirmationEnvelope:
        return await self.queue.get()

    def acknowledge(self) -> None:
        self.queue.task_done()

    def discard_pending(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()


@dataclass
class InMemoryConfirmationChannel(ConfirmationChannel):
    """One queue per subscribed session; nothing is buffered for absent ones."""

    _subscriptions: Dict[str, QueueSubscription] = field(default_factory=dict)

    def subscribe(self, session_id: str) -> Subscription:
        previous = self._subscriptions.get(session_id)
        if previous is not None:
            previous.discard_pending()
        subscription = QueueSubscription(session_id)
        self._subscriptions[session_id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        current = self._subscriptions.get(subscription.session_id)
        if current is subscription:
            del self._subscriptions[subscription.session_id]
            current.discard_pending()

    def publish(self, session_id: str, envelope: ConfirmationEnvelope) -> bool:
        subscription = self._subscriptions.get(session_id)
        if subscription is None:
            logger.debug(
                "Confirmation dropped, no listener", session_id=session_id, origin=envelope.origin
            )
            return False
        subscription.queue.put_nowait(envelope)
        return True

    def is_subscribed(self, session_id: str) -> bool:
        return session_id in self._subscriptions

    async def drain(self, session_id: str) -> None:
        subscription = self._subscriptions.get(session_id)
        if subscription is not None:
            await subscription.queue.join()
