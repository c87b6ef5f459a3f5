from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from checkout_core.core.domain.model.errors import CheckoutError
from checkout_core.core.domain.model.order import CustomerId
from checkout_core.core.domain.model.selection import Address, DeliveryMethod


class AddressProvider(Protocol):
    async def list_addresses(
        self, customer_id: CustomerId
    ) -> Result[Sequence[Address], CheckoutError]: ...


class DeliveryMethodProvider(Protocol):
    async def list_delivery_methods(
        self,
    ) -> Result[Sequence[DeliveryMethod], CheckoutError]: ...
