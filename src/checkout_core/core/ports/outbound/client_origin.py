from __future__ import annotations

from typing import Protocol

from returns.result import Result

from checkout_core.core.domain.model.errors import CheckoutError


class ClientOriginLookup(Protocol):
    """Best-effort lookup of the customer's network address."""

    async def lookup(self) -> Result[str, CheckoutError]: ...
