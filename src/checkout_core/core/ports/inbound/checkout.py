from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, Sequence

from returns.result import Result

from checkout_core.core.domain.model.errors import CheckoutError
from checkout_core.core.domain.model.payment import PaymentHandle
from checkout_core.core.domain.model.selection import Selection
from checkout_core.core.domain.model.session import CheckoutSession


@dataclass(frozen=True)
class RawCartLine:
    product_id: str
    quantity: int
    unit_price: Decimal | int | str


class CheckoutUseCase(Protocol):
    async def begin(
        self, customer_id: str, lines: Sequence[RawCartLine]
    ) -> Result[CheckoutSession, CheckoutError]: ...

    def update_selection(
        self, session: CheckoutSession, **changes: Any
    ) -> Result[Selection, CheckoutError]: ...

    def advance_to_payment(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]: ...

    async def place_order(
        self, session: CheckoutSession, client_agent: str = "", client_origin: str = ""
    ) -> Result[CheckoutSession, CheckoutError]: ...

    async def retry_payment(
        self, session: CheckoutSession, client_agent: str = "", client_origin: str = ""
    ) -> Result[PaymentHandle, CheckoutError]: ...

    async def reconcile(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]: ...

    def restart(
        self, session: CheckoutSession, lines: Sequence[RawCartLine] | None = None
    ) -> Result[CheckoutSession, CheckoutError]: ...

    def complete(
        self, session: CheckoutSession
    ) -> Result[CheckoutSession, CheckoutError]: ...

    def discard(self, session: CheckoutSession) -> None: ...
