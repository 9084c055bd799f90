"""Delifast API client behaviour."""

from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from conftest import SHOP, request_json

from delifast_sync.api.endpoints import (
    CANCEL_SHIPMENT,
    CREATE_SHIPMENT,
    GET_CITIES,
    GET_STATUS,
    LOGIN,
    LOOKUP_BY_ORDER_NUMBER,
    LOOKUP_SHIPMENT,
)
from delifast_sync.core.exceptions import AuthFailed, PartnerApiError
from delifast_sync.db.base import utcnow
from delifast_sync.models.shipment import ShipmentStatus


@pytest.fixture()
async def client(services, tenant):
    await services.token_manager.set_token(SHOP, "cached", utcnow() + timedelta(hours=6))
    return services.client


class TestRequest:
    async def test_headers(self, client, partner) -> None:
        partner.on(GET_CITIES, [{"id": 8, "name": "Dubai"}])

        assert await client.get_cities(SHOP) == [{"id": 8, "name": "Dubai"}]

        request = partner.calls(GET_CITIES)[0]
        assert request.headers["Authorization"] == "Bearer cached"
        assert request.headers["Accept-Language"] == "en-US"

    async def test_unauthorized_refreshes_and_retries_once(
        self, client, partner, settings_repo
    ) -> None:
        partner.on(GET_STATUS, httpx.Response(401), {"Status": 1})

        result = await client.get_shipment_status(SHOP, "DF123456")

        assert result.status == ShipmentStatus.IN_TRANSIT
        assert len(partner.calls(LOGIN)) == 1
        calls = partner.calls(GET_STATUS)
        assert calls[1].headers["Authorization"] == "Bearer tok-fresh"
        assert (await settings_repo.get(SHOP)).api_token == "tok-fresh"

    async def test_second_unauthorized_raises(self, client, partner) -> None:
        partner.on(GET_STATUS, httpx.Response(401))

        with pytest.raises(AuthFailed):
            await client.get_shipment_status(SHOP, "DF123456")
        assert len(partner.calls(LOGIN)) == 1

    async def test_server_error(self, client, partner) -> None:
        partner.on(CANCEL_SHIPMENT, httpx.Response(500, text="boom"))

        with pytest.raises(PartnerApiError) as exc_info:
            await client.cancel_shipment(SHOP, "DF123456")
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"

    async def test_non_json_body(self, client, partner) -> None:
        partner.on(GET_CITIES, httpx.Response(200, text="<html>"))

        with pytest.raises(PartnerApiError):
            await client.get_cities(SHOP)

    async def test_transport_error_is_wrapped(self, client, partner) -> None:
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        partner.on(GET_CITIES, fail)

        with pytest.raises(PartnerApiError):
            await client.get_cities(SHOP)


class TestCreateShipment:
    async def test_returns_shipment_id(self, client, partner) -> None:
        partner.on(CREATE_SHIPMENT, {"success": True, "shipmentNo": "DF123456"})

        result = await client.create_shipment(SHOP, {"billing_ref": "1001"})

        assert result.shipment_id == "DF123456"
        assert not result.is_temporary
        assert not result.needs_lookup
        assert request_json(partner.calls(CREATE_SHIPMENT)[0]) == {"billing_ref": "1001"}

    async def test_success_without_id_needs_lookup(self, client, partner) -> None:
        partner.on(CREATE_SHIPMENT, {"success": True})

        result = await client.create_shipment(SHOP, {"billing_ref": "1001"})

        assert result.needs_lookup
        assert result.shipment_id is None

    async def test_failure_message(self, client, partner) -> None:
        partner.on(CREATE_SHIPMENT, {"success": False, "message": "Invalid city"})

        with pytest.raises(PartnerApiError, match="Invalid city"):
            await client.create_shipment(SHOP, {"billing_ref": "1001"})


class TestShipmentStatus:
    async def test_temporary_id_is_not_sent(self, client, partner) -> None:
        result = await client.get_shipment_status(SHOP, "PENDING-1001-1")

        assert result.status == ShipmentStatus.NEW
        assert result.is_temporary
        assert partner.calls(GET_STATUS) == []

    async def test_retry_without_query_parameter(self, client, partner) -> None:
        partner.on(GET_STATUS, httpx.Response(500), {"Status": "Delivered"})

        result = await client.get_shipment_status(SHOP, "DF123456")

        assert result.status == ShipmentStatus.COMPLETED
        first, second = partner.calls(GET_STATUS)
        assert first.url.params["shno"] == "DF123456"
        assert "shno" not in second.url.params
        assert request_json(second) == {"ShNo": "DF123456"}

    async def test_not_found(self, client, partner) -> None:
        partner.on(GET_STATUS, {"success": False, "Status": "Not found"})

        result = await client.get_shipment_status(SHOP, "DF123456")

        assert result.status == ShipmentStatus.NOT_FOUND
        assert not result.success


class TestLookup:
    async def test_falls_back_to_alternate_endpoint(self, client, partner) -> None:
        partner.on(LOOKUP_BY_ORDER_NUMBER, httpx.Response(500))
        partner.on(LOOKUP_SHIPMENT, {"SH": {"ShipmentNo": "DF555555"}})

        assert await client.lookup_by_order_number(SHOP, "1001") == "DF555555"
        assert request_json(partner.calls(LOOKUP_SHIPMENT)[0]) == {"OrderNumber": "1001"}

    async def test_primary_hit_skips_alternate(self, client, partner) -> None:
        partner.on(LOOKUP_BY_ORDER_NUMBER, [{"ShipmentNo": "DF444444"}])

        assert await client.lookup_by_order_number(SHOP, "1001") == "DF444444"
        assert partner.calls(LOOKUP_SHIPMENT) == []

    async def test_nothing_found(self, client, partner) -> None:
        partner.on(LOOKUP_BY_ORDER_NUMBER, {})
        partner.on(LOOKUP_SHIPMENT, httpx.Response(404))

        assert await client.lookup_by_order_number(SHOP, "1001") is None


async def test_test_connection_forces_login(client, partner) -> None:
    assert await client.test_connection(SHOP) == {"success": True, "has_token": True}
    assert len(partner.calls(LOGIN)) == 1
