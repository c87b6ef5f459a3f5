from __future__ import annotations

from typing import Protocol

from checkout_core.core.domain.model.confirmation import ConfirmationEnvelope


class Subscription(Protocol):
    session_id: str

    async def receive(self) -> ConfirmationEnvelope: ...

    def acknowledge(self) -> None: ...


class ConfirmationChannel(Protocol):
    """Push channel from the payment gateway, scoped per checkout session.

    Messages published while nobody is subscribed are dropped.
    """

    def subscribe(self, session_id: str) -> Subscription: ...

    def unsubscribe(self, subscription: Subscription) -> None: ...

    def publish(self, session_id: str, envelope: ConfirmationEnvelope) -> bool: ...

    async def drain(self, session_id: str) -> None:
        """Wait until every published message for the session was handled."""
        ...
