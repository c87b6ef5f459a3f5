from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import httpx
import structlog
from returns.result import Failure, Result, Success

from checkout_core.adapters.outbound.http_support import error_detail, money
from checkout_core.core.domain.model.errors import CheckoutError, ProviderError
from checkout_core.core.domain.model.order import DEFAULT_CURRENCY, CustomerId
from checkout_core.core.domain.model.selection import Address, DeliveryMethod
from checkout_core.core.ports.outbound.providers import (
    AddressProvider,
    DeliveryMethodProvider,
)

logger = structlog.get_logger(__name__)


async def _get_json(client: httpx.AsyncClient, url: str) -> Result[Any, CheckoutError]:
    try:
        response = await client.get(url)
        response.raise_for_status()
        return Success(response.json())
    except httpx.HTTPStatusError as e:
        return Failure(
            ProviderError(error_detail(e.response), status_code=e.response.status_code)
        )
    except (httpx.HTTPError, ValueError) as e:
        return Failure(ProviderError(f"{url} unavailable: {e}"))


def _parse(
    fetched: Result[Any, CheckoutError], parse: Callable[[Any], Any], what: str
) -> Result[Any, CheckoutError]:
    if isinstance(fetched, Failure):
        return fetched
    try:
        return Success(parse(fetched.unwrap()))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("Unreadable provider response", what=what, error=str(e))
        return Failure(ProviderError(f"unreadable {what} response"))


@dataclass
class HttpAddressProvider(AddressProvider):
    client: httpx.AsyncClient

    async def list_addresses(
        self, customer_id: CustomerId
    ) -> Result[Sequence[Address], CheckoutError]:
        fetched = await _get_json(self.client, f"/customers/{customer_id.value}")
        return _parse(fetched, _addresses_from_customer, "addresses")


@dataclass
class HttpDeliveryMethodProvider(DeliveryMethodProvider):
    client: httpx.AsyncClient
    currency: str = DEFAULT_CURRENCY

    async def list_delivery_methods(
        self,
    ) -> Result[Sequence[DeliveryMethod], CheckoutError]:
        fetched = await _get_json(self.client, "/sales/delivery-methods")
        return _parse(
            fetched, lambda body: _delivery_methods(body, self.currency), "delivery_methods"
        )


def _addresses_from_customer(body: Mapping[str, Any]) -> Sequence[Address]:
    addresses = []
    for raw in body.get("enderecos") or ():
        parts = [raw.get(k) for k in ("rua", "municipio", "provincia")]
        addresses.append(
            Address(
                id=str(raw["id"]),
                label=", ".join(p for p in parts if p),
                is_default=bool(raw.get("padrao", False)),
            )
        )
    return tuple(addresses)


def _delivery_methods(body: Any, currency: str) -> Sequence[DeliveryMethod]:
    items = body.get("data", ()) if isinstance(body, Mapping) else body
    return tuple(
        DeliveryMethod(
            id=str(raw["id"]),
            name=str(raw.get("nome", "")),
            cost=money(raw.get("custo"), currency),
            active=bool(raw.get("activo", True)),
        )
        for raw in items
    )
