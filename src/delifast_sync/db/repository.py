"""Repositories for tenant settings, shipments and audit logs.

Every accessor takes the shop explicitly; no query ever crosses shops.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError

from delifast_sync.core.exceptions import ShipmentNotFound
from delifast_sync.models.shipment import SYNC_EXCLUDED_STATUSES, ShipmentStatus

from .base import utcnow
from .models import LogEntry, Shipment, TenantSettings


def _validate_status(value: Any) -> str:
    """Reject anything outside the canonical status vocabulary."""
    return ShipmentStatus(value).value


def _validated(fields: Dict[str, Any]) -> Dict[str, Any]:
    if "status" in fields and fields["status"] is not None:
        fields = dict(fields, status=_validate_status(fields["status"]))
    return fields


class SettingsRepository:
    """Data access layer for TenantSettings."""

    def __init__(self, session_factory):
        """Initialize repository with an async session factory."""
        self.session_factory = session_factory

    async def get(self, shop: str) -> Optional[TenantSettings]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TenantSettings).where(TenantSettings.shop == shop)
            )
            return result.scalar_one_or_none()

    async def upsert(self, shop: str, **fields) -> TenantSettings:
        """Create the shop's settings row or update the given fields."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TenantSettings).where(TenantSettings.shop == shop)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = TenantSettings(shop=shop, **fields)
                session.add(row)
            else:
                for key, value in fields.items():
                    setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    async def update_fields(self, shop: str, **fields) -> None:
        """Update fields on an existing settings row (no-op if absent)."""
        if not fields:
            return
        async with self.session_factory() as session:
            result = await session.execute(
                select(TenantSettings).where(TenantSettings.shop == shop)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return
            for key, value in fields.items():
                setattr(row, key, value)
            await session.commit()

    async def list_active_shops(self) -> List[str]:
        """Shops with Delifast credentials configured."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TenantSettings.shop)
                .where(
                    TenantSettings.delifast_username.is_not(None),
                    TenantSettings.delifast_username != "",
                    TenantSettings.delifast_password.is_not(None),
                    TenantSettings.delifast_password != "",
                )
                .order_by(TenantSettings.shop)
            )
            return list(result.scalars().all())


class ShipmentRepository:
    """Data access layer for the shipment ledger."""

    def __init__(self, session_factory):
        """Initialize repository with an async session factory."""
        self.session_factory = session_factory

    async def get(self, shop: str, order_id: str) -> Optional[Shipment]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment).where(
                    Shipment.shop == shop,
                    Shipment.shopify_order_id == str(order_id),
                )
            )
            return result.scalar_one_or_none()

    async def upsert(
        self,
        shop: str,
        order_id: str,
        create: Dict[str, Any],
        update: Dict[str, Any],
    ) -> Shipment:
        """
        Insert the (shop, order) row with ``create`` fields, or apply
        ``update`` fields to the existing row.
        """
        create = _validated(create)
        update = _validated(update)
        order_id = str(order_id)

        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment).where(
                    Shipment.shop == shop,
                    Shipment.shopify_order_id == order_id,
                )
            )
            row = result.scalar_one_or_none()

            if row is None:
                row = Shipment(shop=shop, shopify_order_id=order_id, **create)
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    # Lost an insert race; fall back to updating the winner
                    await session.rollback()
                    result = await session.execute(
                        select(Shipment).where(
                            Shipment.shop == shop,
                            Shipment.shopify_order_id == order_id,
                        )
                    )
                    row = result.scalar_one()
                    for key, value in update.items():
                        setattr(row, key, value)
                    await session.commit()
            else:
                for key, value in update.items():
                    setattr(row, key, value)
                await session.commit()

            await session.refresh(row)
            return row

    async def update(self, shop: str, order_id: str, **fields) -> Shipment:
        """Update an existing ledger row.

        Raises:
            ShipmentNotFound: If the shop has no row for the order
        """
        fields = _validated(fields)
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment).where(
                    Shipment.shop == shop,
                    Shipment.shopify_order_id == str(order_id),
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise ShipmentNotFound(shop, str(order_id))
            for key, value in fields.items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    async def list_for_status_sync(self, shop: str, limit: int) -> List[Shipment]:
        """Real-ID shipments that are neither terminal nor in error."""
        excluded = [s.value for s in SYNC_EXCLUDED_STATUSES]
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment)
                .where(
                    Shipment.shop == shop,
                    Shipment.is_temporary_id.is_(False),
                    Shipment.shipment_id.is_not(None),
                    Shipment.status.not_in(excluded),
                )
                .order_by(Shipment.updated_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_due_temporary(
        self,
        shop: str,
        max_attempts: int,
        now: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[Shipment]:
        """Temporary-ID shipments whose next lookup is due, oldest first."""
        now = now or utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment)
                .where(
                    Shipment.shop == shop,
                    Shipment.is_temporary_id.is_(True),
                    Shipment.lookup_attempts < max_attempts,
                    or_(
                        Shipment.next_lookup_at.is_(None),
                        Shipment.next_lookup_at <= now,
                    ),
                )
                .order_by(Shipment.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_stuck(
        self,
        shop: str,
        sent_before: datetime,
        max_attempts: int,
    ) -> List[Shipment]:
        """Temporary shipments still ``new`` that exhausted their lookups."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment).where(
                    Shipment.shop == shop,
                    Shipment.status == ShipmentStatus.NEW.value,
                    Shipment.is_temporary_id.is_(True),
                    Shipment.sent_at < sent_before,
                    Shipment.lookup_attempts >= max_attempts,
                )
            )
            return list(result.scalars().all())

    async def list_recent_errors(
        self,
        shop: str,
        since: datetime,
        limit: int,
        max_attempts: int,
    ) -> List[Shipment]:
        """
        Error shipments created after ``since``.

        Temporary shipments that exhausted their lookups stay in error.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment)
                .where(
                    Shipment.shop == shop,
                    Shipment.status == ShipmentStatus.ERROR.value,
                    Shipment.created_at > since,
                    or_(
                        Shipment.is_temporary_id.is_(False),
                        Shipment.lookup_attempts < max_attempts,
                    ),
                )
                .order_by(Shipment.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list(
        self,
        shop: str,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Shipment], int]:
        """Page through a shop's shipments, newest first, with total count."""
        conditions = [Shipment.shop == shop]
        if status:
            conditions.append(Shipment.status == _validate_status(status))

        async with self.session_factory() as session:
            result = await session.execute(
                select(Shipment)
                .where(*conditions)
                .order_by(Shipment.created_at.desc(), Shipment.id.desc())
                .limit(limit)
                .offset(offset)
            )
            total = await session.scalar(
                select(func.count()).select_from(Shipment).where(*conditions)
            )
            return list(result.scalars().all()), int(total or 0)


class LogRepository:
    """Data access layer for the per-shop audit log."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(
        self,
        shop: str,
        level: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with self.session_factory() as session:
            session.add(
                LogEntry(
                    shop=shop,
                    level=level,
                    message=message,
                    context=json.dumps(context, default=str, ensure_ascii=False)
                    if context
                    else None,
                )
            )
            await session.commit()

    async def list(
        self,
        shop: str,
        level: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[LogEntry]:
        conditions = [LogEntry.shop == shop]
        if level:
            conditions.append(LogEntry.level == level)
        async with self.session_factory() as session:
            result = await session.execute(
                select(LogEntry)
                .where(*conditions)
                .order_by(LogEntry.created_at.desc(), LogEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    async def clear_older_than(self, shop: str, days_to_keep: int = 7) -> int:
        """Delete a shop's log entries older than ``days_to_keep`` days."""
        cutoff = utcnow() - timedelta(days=days_to_keep)
        async with self.session_factory() as session:
            result = await session.execute(
                delete(LogEntry).where(
                    LogEntry.shop == shop,
                    LogEntry.created_at < cutoff,
                )
            )
            await session.commit()
            return result.rowcount
