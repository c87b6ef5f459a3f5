from __future__ import annotations

from fastapi import FastAPI

from checkout_core.adapters.inbound.web.fastapi_app import create_app
from checkout_core.bootstrap import build_usecases
from checkout_core.config import load_settings
from checkout_core.utils.logging import configure_logging


def create_asgi_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.environment, settings.log_level)
    usecases = build_usecases(settings)
    return create_app(
        usecases.checkout,
        usecases.channel,
        on_shutdown=usecases.aclose,
        confirmation_secret=settings.confirmation_secret,
    )
