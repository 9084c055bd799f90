"""Background sweeps: status sync, temporary ID resolution, stuck orders."""

from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from conftest import OTHER_SHOP, SHOP, request_json

from delifast_sync.api.endpoints import GET_STATUS, LOOKUP_BY_ORDER_NUMBER, LOOKUP_SHIPMENT
from delifast_sync.config.constants import (
    MANUAL_INTERVENTION_DETAILS,
    RETRY_AFTER_ERROR_DETAILS,
)
from delifast_sync.core.encryption import encrypt
from delifast_sync.db.base import utcnow


async def _record(shipment_repo, order_id, shop=SHOP, **fields):
    fields.setdefault("shopify_order_number", f"10{order_id}")
    fields.setdefault("status", "new")
    return await shipment_repo.upsert(shop, order_id, create=fields, update=fields)


def _temporary(order_id: str, **fields) -> dict:
    fields.setdefault("shipment_id", f"PENDING-10{order_id}-1")
    fields.setdefault("is_temporary_id", True)
    return fields


@pytest.fixture()
def reconciliation(services, tenant):
    return services.reconciliation_service


class TestStatusSync:
    async def test_only_active_shipments_are_polled(
        self, reconciliation, shipment_repo, partner
    ) -> None:
        await _record(shipment_repo, "1", shipment_id="DF000001", status="in_transit")
        await _record(shipment_repo, "2", shipment_id="DF000002", status="completed")
        await _record(shipment_repo, "3", shipment_id="DF000003", status="error")
        await _record(shipment_repo, "4", **_temporary("4"))
        partner.on(GET_STATUS, {"Status": 5})

        result = await reconciliation.sync_all_statuses()

        assert result.success
        assert result.tenants == 1
        assert result.processed == 1
        assert result.updated == 1
        assert [request_json(r) for r in partner.calls(GET_STATUS)] == [{"ShNo": "DF000001"}]
        assert (await shipment_repo.get(SHOP, "1")).status == "completed"

    async def test_unchanged_status_is_not_written(
        self, reconciliation, shipment_repo, log_repo, partner
    ) -> None:
        await _record(shipment_repo, "1", shipment_id="DF000001", status="in_transit")
        partner.on(GET_STATUS, {"Status": 2})

        result = await reconciliation.sync_all_statuses()

        assert result.processed == 1
        assert result.updated == 0
        assert await log_repo.list(SHOP) == []

    async def test_terminal_shipment_is_never_polled_again(
        self, reconciliation, shipment_repo, partner
    ) -> None:
        await _record(shipment_repo, "1", shipment_id="DF000001", status="in_transit")
        partner.on(GET_STATUS, {"Status": "Delivered"})

        await reconciliation.sync_all_statuses()
        second = await reconciliation.sync_all_statuses()

        assert second.processed == 0
        assert len(partner.calls(GET_STATUS)) == 1

    async def test_one_failing_shipment_does_not_stop_the_sweep(
        self, reconciliation, shipment_repo, partner
    ) -> None:
        await _record(shipment_repo, "1", shipment_id="DF000001", status="new")
        await _record(shipment_repo, "2", shipment_id="DF000002", status="new")

        def reply(request):
            if request_json(request)["ShNo"] == "DF000001":
                return httpx.Response(500)
            return httpx.Response(200, json={"Status": 1})

        partner.on(GET_STATUS, reply)

        result = await reconciliation.sync_all_statuses()

        assert result.processed == 2
        assert result.failed == 1
        assert result.updated == 1
        assert (await shipment_repo.get(SHOP, "2")).status == "in_transit"

    async def test_tenant_failure_is_isolated(
        self, reconciliation, settings_repo, shipment_repo, partner, monkeypatch
    ) -> None:
        await settings_repo.upsert(
            OTHER_SHOP, delifast_username="other", delifast_password=encrypt("pw")
        )
        await settings_repo.upsert("inactive.myshopify.com", delifast_username="x")
        await _record(shipment_repo, "1", shipment_id="DF000001", status="new")
        partner.on(GET_STATUS, {"Status": 1})

        original = shipment_repo.list_for_status_sync

        async def flaky(shop, limit):
            if shop == OTHER_SHOP:
                raise RuntimeError("database unavailable")
            return await original(shop, limit)

        monkeypatch.setattr(reconciliation.shipment_repo, "list_for_status_sync", flaky)

        result = await reconciliation.sync_all_statuses()

        assert result.tenants == 2
        assert not result.success
        assert result.errors == [f"{OTHER_SHOP}: database unavailable"]
        assert result.updated == 1


class TestTemporaryIdResolution:
    async def test_promotes_found_id(self, reconciliation, shipment_repo, partner) -> None:
        await _record(shipment_repo, "1", lookup_attempts=3, **_temporary("1"))
        partner.on(LOOKUP_BY_ORDER_NUMBER, {"ShipmentNo": "DF777777"})

        result = await reconciliation.resolve_all_temp_ids()

        assert result.updated == 1
        row = await shipment_repo.get(SHOP, "1")
        assert row.shipment_id == "DF777777"
        assert not row.is_temporary_id
        assert row.lookup_attempts == 0
        assert row.next_lookup_at is None
        assert row.status == "new"
        assert request_json(partner.calls(LOOKUP_BY_ORDER_NUMBER)[0]) == {"OrderNumber": "101"}

    async def test_miss_schedules_next_lookup(
        self, reconciliation, shipment_repo, partner
    ) -> None:
        await _record(shipment_repo, "1", **_temporary("1"))
        partner.on(LOOKUP_BY_ORDER_NUMBER, {})
        partner.on(LOOKUP_SHIPMENT, {})

        result = await reconciliation.resolve_all_temp_ids()

        assert result.processed == 1
        assert result.updated == 0
        row = await shipment_repo.get(SHOP, "1")
        assert row.is_temporary_id
        assert row.lookup_attempts == 1
        assert row.last_lookup_at is not None
        assert utcnow() + timedelta(minutes=59) < row.next_lookup_at

    async def test_attempt_cap_stops_lookups(
        self, make_services, tenant, shipment_repo, partner
    ) -> None:
        reconciliation = make_services(max_lookup_attempts=3).reconciliation_service
        await _record(shipment_repo, "1", lookup_attempts=2, **_temporary("1"))
        partner.on(LOOKUP_BY_ORDER_NUMBER, {})
        partner.on(LOOKUP_SHIPMENT, {})

        await reconciliation.resolve_all_temp_ids()
        again = await reconciliation.resolve_all_temp_ids()

        row = await shipment_repo.get(SHOP, "1")
        assert row.lookup_attempts == 3
        assert row.next_lookup_at is None
        assert row.status_details == MANUAL_INTERVENTION_DETAILS
        assert again.processed == 0

    async def test_lookup_not_yet_due(self, reconciliation, shipment_repo, partner) -> None:
        await _record(
            shipment_repo,
            "1",
            next_lookup_at=utcnow() + timedelta(minutes=10),
            **_temporary("1"),
        )

        result = await reconciliation.resolve_all_temp_ids()

        assert result.processed == 0
        assert partner.calls(LOOKUP_BY_ORDER_NUMBER) == []


class TestPendingCheck:
    async def test_flags_stuck_and_requeues_recent_errors(
        self, reconciliation, shipment_repo
    ) -> None:
        now = utcnow()
        await _record(
            shipment_repo,
            "1",
            sent_at=now - timedelta(hours=48),
            lookup_attempts=24,
            **_temporary("1"),
        )
        await _record(shipment_repo, "2", status="error", status_details="Invalid address")
        await _record(
            shipment_repo,
            "3",
            status="error",
            created_at=now - timedelta(hours=48),
        )
        await _record(shipment_repo, "4", sent_at=now - timedelta(hours=1), **_temporary("4"))

        result = await reconciliation.check_all_pending()

        assert result.updated == 2
        stuck = await shipment_repo.get(SHOP, "1")
        assert stuck.status == "error"
        assert stuck.status_details == MANUAL_INTERVENTION_DETAILS

        retried = await shipment_repo.get(SHOP, "2")
        assert retried.status == "new"
        assert retried.status_details == RETRY_AFTER_ERROR_DETAILS

        assert (await shipment_repo.get(SHOP, "3")).status == "error"
        assert (await shipment_repo.get(SHOP, "4")).status == "new"

    async def test_stuck_shipment_stays_flagged_across_sweeps(
        self, reconciliation, shipment_repo
    ) -> None:
        two_days_ago = utcnow() - timedelta(hours=48)
        await _record(
            shipment_repo,
            "1",
            created_at=two_days_ago,
            sent_at=two_days_ago,
            lookup_attempts=24,
            **_temporary("1"),
        )

        first = await reconciliation.check_all_pending()
        later = [await reconciliation.check_all_pending() for _ in range(3)]

        assert first.updated == 1
        assert [r.updated for r in later] == [0, 0, 0]
        row = await shipment_repo.get(SHOP, "1")
        assert row.status == "error"
        assert row.status_details == MANUAL_INTERVENTION_DETAILS

    async def test_recent_error_is_requeued_once(self, reconciliation, shipment_repo) -> None:
        await _record(shipment_repo, "2", status="error", status_details="Invalid address")

        first = await reconciliation.check_all_pending()
        second = await reconciliation.check_all_pending()

        assert first.updated == 1
        assert second.updated == 0
        assert (await shipment_repo.get(SHOP, "2")).status == "new"
