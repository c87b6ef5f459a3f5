from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Tuple

from dotenv import load_dotenv

from checkout_core.core.domain.model.order import DEFAULT_CURRENCY

BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"


def _clean_env(v: str | None) -> str:
    """Strip whitespace and stray quotes pasted into env files."""
    return (v or "").strip().strip("'").strip('"').strip("`")


def _split(v: str | None) -> Tuple[str, ...]:
    return tuple(p.strip() for p in _clean_env(v).split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    order_service_url: str = "http://localhost:8001"
    payment_service_url: str = "http://localhost:8002"
    client_origin_lookup_url: str = "https://api.ipify.org?format=json"
    application_origin: str = "http://localhost:8000"
    payment_gateway_origins: Tuple[str, ...] = ("https://pagamentos.emis.co.ao",)
    currency: str = DEFAULT_CURRENCY
    http_timeout_seconds: float = 8.0
    adapters: str = "memory"
    log_level: str = ""
    environment: str = "development"
    confirmation_secret: str = field(default="", repr=False)

    @property
    def confirmation_origins(self) -> Tuple[str, ...]:
        """Gateway origins plus our own; both may post confirmations."""
        return self.payment_gateway_origins + (self.application_origin,)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    if env is None:
        load_dotenv(dotenv_path=ENV_PATH, override=False)
        env = os.environ

    defaults = Settings()
    adapters = _clean_env(env.get("CHECKOUT_ADAPTERS")).lower() or defaults.adapters
    if adapters not in ("memory", "http"):
        raise ValueError(f"CHECKOUT_ADAPTERS must be 'memory' or 'http', got {adapters!r}")

    timeout_raw = _clean_env(env.get("HTTP_TIMEOUT_SECONDS"))
    try:
        timeout = float(timeout_raw) if timeout_raw else defaults.http_timeout_seconds
    except ValueError as e:
        raise ValueError(f"HTTP_TIMEOUT_SECONDS is not a number: {timeout_raw!r}") from e

    return Settings(
        order_service_url=_clean_env(env.get("ORDER_SERVICE_URL")).rstrip("/")
        or defaults.order_service_url,
        payment_service_url=_clean_env(env.get("PAYMENT_SERVICE_URL")).rstrip("/")
        or defaults.payment_service_url,
        client_origin_lookup_url=_clean_env(env.get("CLIENT_ORIGIN_LOOKUP_URL"))
        or defaults.client_origin_lookup_url,
        application_origin=_clean_env(env.get("APPLICATION_ORIGIN")).rstrip("/")
        or defaults.application_origin,
        payment_gateway_origins=_split(env.get("PAYMENT_GATEWAY_ORIGINS"))
        or defaults.payment_gateway_origins,
        currency=_clean_env(env.get("CHECKOUT_CURRENCY")).upper() or defaults.currency,
        http_timeout_seconds=timeout,
        adapters=adapters,
        log_level=_clean_env(env.get("LOG_LEVEL")).upper(),
        environment=_clean_env(env.get("ENVIRONMENT")).lower() or defaults.environment,
        confirmation_secret=_clean_env(env.get("CONFIRMATION_SECRET")),
    )
