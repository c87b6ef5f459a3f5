from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog
from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.errors import CheckoutError, ProviderError
from checkout_core.core.ports.outbound.client_origin import ClientOriginLookup

logger = structlog.get_logger(__name__)


@dataclass
class HttpClientOriginLookup(ClientOriginLookup):
    """Asks an ``{"ip": "..."}`` echo endpoint for the caller's address."""

    client: httpx.AsyncClient
    url: str = "/"

    async def lookup(self) -> Result[str, CheckoutError]:
        try:
            response = await self.client.get(self.url)
            response.raise_for_status()
            ip = response.json().get("ip")
        except httpx.HTTPStatusError as e:
            return Failure(
                ProviderError("origin lookup failed", status_code=e.response.status_code)
            )
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug("Origin lookup error", error=str(e))
            return Failure(ProviderError(f"origin lookup failed: {e}"))
        if not isinstance(ip, str) or not ip:
            return Failure(ProviderError("origin lookup returned no address"))
        return Success(ip)
