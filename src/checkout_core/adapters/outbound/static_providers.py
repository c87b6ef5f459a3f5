from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError
from checkout_core.core.domain.model.order import CustomerId
from checkout_core.core.domain.model.selection import Address, DeliveryMethod
from checkout_core.core.ports.outbound.client_origin import ClientOriginLookup
from checkout_core.core.ports.outbound.providers import (
    AddressProvider,
    DeliveryMethodProvider,
)


@dataclass
class StaticAddressProvider(AddressProvider):
    addresses: Tuple[Address, ...] = ()
    fail_with: CheckoutError | None = None

    async def list_addresses(
        self, customer_id: CustomerId
    ) -> Result[Sequence[Address], CheckoutError]:
        if self.fail_with is not None:
            return Failure(self.fail_with)
        return Success(self.addresses)


@dataclass
class StaticDeliveryMethodProvider(DeliveryMethodProvider):
    methods: Tuple[DeliveryMethod, ...] = ()
    fail_with: CheckoutError | None = None

    async def list_delivery_methods(
        self,
    ) -> Result[Sequence[DeliveryMethod], CheckoutError]:
        if self.fail_with is not None:
            return Failure(self.fail_with)
        return Success(self.methods)


@dataclass
class StaticClientOriginLookup(ClientOriginLookup):
    address: str = "127.0.0.1"
    fail_with: CheckoutError | None = None

    async def lookup(self) -> Result[str, CheckoutError]:
        if self.fail_with is not None:
            return Failure(self.fail_with)
        return Success(self.address)
