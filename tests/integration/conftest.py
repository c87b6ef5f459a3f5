from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from checkout_core.adapters.inbound.web.fastapi_app import create_app
from checkout_core.adapters.inbound.web.sessions import SessionRegistry


@pytest.fixture
def sessions():
    return SessionRegistry()


@pytest.fixture
def app(checkout, channel, sessions):
    return create_app(checkout, channel, sessions=sessions)


@pytest.fixture
def client(app):
    # Lifespan context keeps one event loop for listener tasks.
    with TestClient(app) as c:
        yield c
