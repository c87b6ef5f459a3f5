from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError, SessionNotFound
from checkout_core.core.domain.model.session import CheckoutSession


@dataclass
class SessionRegistry:
    """Process-local home of open checkout sessions."""

    _sessions: Dict[str, CheckoutSession] = field(default_factory=dict)

    def add(self, session: CheckoutSession) -> None:
        self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Result[CheckoutSession, CheckoutError]:
        session = self._sessions.get(session_id)
        if session is None or session.closed:
            return Failure(SessionNotFound("checkout session not found", session_id=session_id))
        return Success(session)

    def remove(self, session_id: str) -> CheckoutSession | None:
        return self._sessions.pop(session_id, None)

    def all(self) -> Tuple[CheckoutSession, ...]:
        return tuple(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
