"""Shared fixtures for delifast-sync tests."""

from __future__ import annotations

import os

# The logger configures its handlers at import time
os.environ.setdefault("LOG_TO_FILE", "false")

import json  # noqa: E402
from typing import Any, Callable, Union  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from delifast_sync.core.encryption import encrypt  # noqa: E402
from delifast_sync.db import get_session_factory, init_db  # noqa: E402
from delifast_sync.db.repository import (  # noqa: E402
    LogRepository,
    SettingsRepository,
    ShipmentRepository,
)
from delifast_sync.server.dependencies import build_services  # noqa: E402

SHOP = "test-shop.myshopify.com"
OTHER_SHOP = "other-shop.myshopify.com"

Reply = Union[httpx.Response, dict, list, Callable[[httpx.Request], httpx.Response]]


class PartnerStub:
    """
    Fake Delifast and Shopify HTTP endpoints for ``httpx.MockTransport``.

    Replies are registered per path suffix. Queued replies are consumed in
    order and the last one keeps answering.
    """

    def __init__(self) -> None:
        self.routes: dict[str, list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, *replies: Reply) -> "PartnerStub":
        self.routes[path] = list(replies)
        return self

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, replies in self.routes.items():
            if not request.url.path.endswith(path):
                continue
            reply = replies.pop(0) if len(replies) > 1 else replies[0]
            if callable(reply):
                return reply(request)
            if isinstance(reply, httpx.Response):
                return httpx.Response(
                    reply.status_code, content=reply.content, headers=reply.headers
                )
            return httpx.Response(200, json=reply)
        return httpx.Response(404, json={"message": f"no stub for {request.url.path}"})


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture()
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture()
def settings_repo(session_factory) -> SettingsRepository:
    return SettingsRepository(session_factory)


@pytest.fixture()
def shipment_repo(session_factory) -> ShipmentRepository:
    return ShipmentRepository(session_factory)


@pytest.fixture()
def log_repo(session_factory) -> LogRepository:
    return LogRepository(session_factory)


@pytest.fixture()
def partner() -> PartnerStub:
    stub = PartnerStub()
    stub.on("/Login/Login", {"Token": "tok-fresh"})
    stub.on("/graphql.json", {"data": {}})
    return stub


@pytest.fixture()
async def http_client(partner):
    client = httpx.AsyncClient(transport=httpx.MockTransport(partner.handler))
    yield client
    await client.aclose()


@pytest.fixture()
def make_services(session_factory, http_client):
    def _make(**options):
        options.setdefault("sync_delay", 0)
        options.setdefault("lookup_delay", 0)
        return build_services(session_factory, http_client=http_client, **options)

    return _make


@pytest.fixture()
def services(make_services):
    return make_services()


@pytest.fixture()
async def tenant(settings_repo):
    return await settings_repo.upsert(
        SHOP,
        delifast_username="merchant",
        delifast_password=encrypt("secret"),
        default_city_id=5,
    )


def make_order(order_id: int = 5001, **overrides) -> dict:
    order = {
        "id": order_id,
        "order_number": 1001,
        "email": "buyer@example.com",
        "total_price": "150.00",
        "financial_status": "pending",
        "gateway": "Cash on Delivery (COD)",
        "billing_address": {
            "first_name": "Sara",
            "last_name": "Khan",
            "address1": "Street 1",
            "city": "Dubai",
            "province": "Dubai",
            "province_code": "AE-DU",
            "country_code": "AE",
            "phone": "+971500000000",
        },
        "line_items": [
            {"name": "T-Shirt", "variant_title": "Red / XL", "quantity": 2},
        ],
    }
    order.update(overrides)
    return order
