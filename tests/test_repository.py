"""Repository tests against an in-memory aiosqlite database."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import OTHER_SHOP, SHOP

from delifast_sync.core.exceptions import ShipmentNotFound
from delifast_sync.db.base import utcnow
from delifast_sync.db.models import LogEntry


async def _shipment(repo, shop=SHOP, order_id="1", **fields):
    fields.setdefault("shopify_order_number", f"#{order_id}")
    return await repo.upsert(shop, order_id, create=fields, update=fields)


class TestSettingsRepository:
    async def test_upsert_creates_then_updates(self, settings_repo) -> None:
        created = await settings_repo.upsert(SHOP, delifast_username="merchant")
        assert created.mode == "manual"
        assert created.default_city_id == 5

        updated = await settings_repo.upsert(SHOP, mode="auto")
        assert updated.id == created.id
        assert updated.mode == "auto"
        assert updated.delifast_username == "merchant"

    async def test_update_fields_ignores_unknown_shop(self, settings_repo) -> None:
        await settings_repo.update_fields("missing.myshopify.com", api_token="x")
        assert await settings_repo.get("missing.myshopify.com") is None

    async def test_active_shops_need_both_credentials(self, settings_repo) -> None:
        await settings_repo.upsert(SHOP, delifast_username="a", delifast_password="p")
        await settings_repo.upsert(OTHER_SHOP, delifast_username="b", delifast_password="")
        await settings_repo.upsert("third.myshopify.com", delifast_username=None)

        assert await settings_repo.list_active_shops() == [SHOP]


class TestShipmentRepository:
    async def test_upsert_keeps_one_row_per_order(self, shipment_repo) -> None:
        await _shipment(shipment_repo, status="error", status_details="boom")
        row = await _shipment(shipment_repo, shipment_id="DF100001", status="new")

        assert row.shipment_id == "DF100001"
        assert row.status == "new"
        rows, total = await shipment_repo.list(SHOP)
        assert total == 1
        assert rows[0].id == row.id

    async def test_same_order_id_in_two_shops(self, shipment_repo) -> None:
        await _shipment(shipment_repo, SHOP, "1", shipment_id="DF100001")
        await _shipment(shipment_repo, OTHER_SHOP, "1", shipment_id="DF200002")

        assert (await shipment_repo.get(SHOP, "1")).shipment_id == "DF100001"
        assert (await shipment_repo.get(OTHER_SHOP, "1")).shipment_id == "DF200002"

    async def test_rejects_status_outside_vocabulary(self, shipment_repo) -> None:
        await _shipment(shipment_repo)
        with pytest.raises(ValueError):
            await shipment_repo.update(SHOP, "1", status="shipped")

    async def test_update_missing_row(self, shipment_repo) -> None:
        with pytest.raises(ShipmentNotFound):
            await shipment_repo.update(SHOP, "404", status="new")

    async def test_status_sync_selection(self, shipment_repo) -> None:
        await _shipment(shipment_repo, order_id="1", shipment_id="DF000001", status="new")
        await _shipment(shipment_repo, order_id="2", shipment_id="DF000002", status="in_transit")
        await _shipment(shipment_repo, order_id="3", shipment_id="DF000003", status="completed")
        await _shipment(shipment_repo, order_id="4", shipment_id="DF000004", status="error")
        await _shipment(
            shipment_repo,
            order_id="5",
            shipment_id="PENDING-5-1",
            is_temporary_id=True,
            status="new",
        )
        await _shipment(shipment_repo, order_id="6", status="error")
        await _shipment(shipment_repo, OTHER_SHOP, "7", shipment_id="DF000007", status="new")

        rows = await shipment_repo.list_for_status_sync(SHOP, limit=100)
        assert sorted(r.shopify_order_id for r in rows) == ["1", "2"]

    async def test_due_temporary_selection(self, shipment_repo) -> None:
        now = utcnow()
        temp = {"is_temporary_id": True, "status": "new"}
        await _shipment(shipment_repo, order_id="1", shipment_id="PENDING-1-1", **temp)
        await _shipment(
            shipment_repo,
            order_id="2",
            shipment_id="PENDING-2-1",
            next_lookup_at=now - timedelta(minutes=1),
            **temp,
        )
        await _shipment(
            shipment_repo,
            order_id="3",
            shipment_id="PENDING-3-1",
            next_lookup_at=now + timedelta(minutes=10),
            **temp,
        )
        await _shipment(
            shipment_repo,
            order_id="4",
            shipment_id="PENDING-4-1",
            lookup_attempts=24,
            **temp,
        )

        rows = await shipment_repo.list_due_temporary(SHOP, max_attempts=24, now=now)
        assert [r.shopify_order_id for r in rows] == ["1", "2"]

        capped = await shipment_repo.list_due_temporary(SHOP, max_attempts=24, now=now, limit=1)
        assert [r.shopify_order_id for r in capped] == ["1"]

    async def test_recent_errors_skip_old_and_exhausted_rows(self, shipment_repo) -> None:
        now = utcnow()
        await _shipment(shipment_repo, order_id="1", status="error")
        await _shipment(
            shipment_repo,
            order_id="2",
            status="error",
            created_at=now - timedelta(hours=48),
        )
        await _shipment(
            shipment_repo,
            order_id="3",
            status="error",
            shipment_id="PENDING-3-1",
            is_temporary_id=True,
            lookup_attempts=24,
        )

        rows = await shipment_repo.list_recent_errors(
            SHOP, since=now - timedelta(hours=24), limit=10, max_attempts=24
        )
        assert [r.shopify_order_id for r in rows] == ["1"]

    async def test_list_filters_and_pages(self, shipment_repo) -> None:
        for i in range(5):
            await _shipment(shipment_repo, order_id=str(i), status="new")
        await _shipment(shipment_repo, order_id="9", status="error")

        rows, total = await shipment_repo.list(SHOP, status="new", limit=2, offset=0)
        assert total == 5
        assert len(rows) == 2

        with pytest.raises(ValueError):
            await shipment_repo.list(SHOP, status="shipped")


class TestLogRepository:
    async def test_add_and_list(self, log_repo) -> None:
        await log_repo.add(SHOP, "info", "Order sent", {"order_id": "1"})
        await log_repo.add(SHOP, "error", "Send failed")
        await log_repo.add(OTHER_SHOP, "info", "Elsewhere")

        entries = await log_repo.list(SHOP)
        assert [e.message for e in entries] == ["Send failed", "Order sent"]
        assert entries[1].context == '{"order_id": "1"}'

        errors = await log_repo.list(SHOP, level="error")
        assert len(errors) == 1

    async def test_clear_older_than(self, log_repo, session_factory) -> None:
        async with session_factory() as session:
            session.add(
                LogEntry(
                    shop=SHOP,
                    level="info",
                    message="old",
                    created_at=utcnow() - timedelta(days=10),
                )
            )
            session.add(
                LogEntry(
                    shop=OTHER_SHOP,
                    level="info",
                    message="old elsewhere",
                    created_at=utcnow() - timedelta(days=10),
                )
            )
            await session.commit()
        await log_repo.add(SHOP, "info", "recent")

        assert await log_repo.clear_older_than(SHOP, days_to_keep=7) == 1
        assert [e.message for e in await log_repo.list(SHOP)] == ["recent"]
        assert len(await log_repo.list(OTHER_SHOP)) == 1
