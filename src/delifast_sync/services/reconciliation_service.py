"""
Reconciliation Service for Delifast shipments.

Background sweeps over every shop with Delifast credentials:
- Status sync: polls Delifast for non-terminal shipments with real IDs
- Temp-ID resolution: looks up real IDs for temporary shipments
- Pending check: flags stuck temporary shipments and re-queues recent errors

A failure for one shop or one shipment is logged and counted, never raised.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

from delifast_sync.api.client import DelifastAPIClient
from delifast_sync.config.constants import (
    ERROR_RETRY_BATCH_SIZE,
    ERROR_RETRY_WINDOW_HOURS,
    MANUAL_INTERVENTION_DETAILS,
    RETRY_AFTER_ERROR_DETAILS,
    STATUS_SYNC_BATCH_SIZE,
    STATUS_SYNC_DELAY_SECONDS,
    STUCK_THRESHOLD_HOURS,
    TEMP_ID_BATCH_SIZE,
    TEMP_ID_DELAY_SECONDS,
)
from delifast_sync.config.settings import settings
from delifast_sync.core.event_logger import TenantLogger
from delifast_sync.core.logger import setup_logger
from delifast_sync.core.monitoring import capture_exception, set_tenant_context
from delifast_sync.db.base import utcnow
from delifast_sync.db.models import Shipment
from delifast_sync.db.repository import SettingsRepository, ShipmentRepository
from delifast_sync.integrations.shopify import OrderAnnotator
from delifast_sync.models.shipment import ShipmentStatus
from delifast_sync.utils.status_mapping import is_temporary_id

logger = setup_logger(__name__)


@dataclass
class JobResult:
    """Result of a reconciliation sweep."""
    job: str
    started_at: float
    completed_at: float = 0.0
    tenants: int = 0
    processed: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["success"] = self.success
        return data


class ReconciliationService:
    """Runs the background reconciliation sweeps."""

    def __init__(
        self,
        settings_repo: SettingsRepository,
        shipment_repo: ShipmentRepository,
        client: DelifastAPIClient,
        annotator: OrderAnnotator,
        audit: TenantLogger,
        max_lookup_attempts: Optional[int] = None,
        lookup_interval_minutes: Optional[int] = None,
        sync_delay: float = STATUS_SYNC_DELAY_SECONDS,
        lookup_delay: float = TEMP_ID_DELAY_SECONDS,
    ):
        """
        Initialize reconciliation service.

        Args:
            settings_repo: Tenant settings (source of the shop list)
            shipment_repo: Shipment ledger
            client: Delifast API client
            annotator: Best-effort Shopify order annotation
            audit: Per-shop audit trail
            max_lookup_attempts: Temp-ID lookup cap (defaults to settings)
            lookup_interval_minutes: Delay between lookups (defaults to settings)
            sync_delay: Seconds between status calls
            lookup_delay: Seconds between lookup calls
        """
        self.settings_repo = settings_repo
        self.shipment_repo = shipment_repo
        self.client = client
        self.annotator = annotator
        self.audit = audit
        self.max_lookup_attempts = max_lookup_attempts or settings.max_lookup_attempts
        self.lookup_interval = timedelta(
            minutes=lookup_interval_minutes or settings.lookup_interval_minutes
        )
        self.sync_delay = sync_delay
        self.lookup_delay = lookup_delay

        self._lock = asyncio.Lock()

    async def _for_each_tenant(
        self,
        job: str,
        handler: Callable[[str, JobResult], Awaitable[None]],
    ) -> JobResult:
        """Run ``handler`` for every active shop, isolating per-shop failures."""
        result = JobResult(job=job, started_at=time.time())
        logger.info(f"Starting {job}")

        shops = await self.settings_repo.list_active_shops()
        for shop in shops:
            result.tenants += 1
            set_tenant_context(shop, job=job)
            try:
                await handler(shop, result)
            except Exception as e:
                logger.error(f"{job} failed for {shop}: {e}", exc_info=True)
                capture_exception(e, {"job": job, "shop": shop})
                result.errors.append(f"{shop}: {e}")

        result.completed_at = time.time()
        logger.info(
            f"Completed {job}: tenants={result.tenants}, processed={result.processed}, "
            f"updated={result.updated}, failed={result.failed}"
        )
        return result

    # ==================== Status sync ====================

    async def sync_all_statuses(self) -> JobResult:
        async with self._lock:
            return await self._for_each_tenant("sync_statuses", self.sync_tenant_statuses)

    async def sync_tenant_statuses(self, shop: str, result: JobResult) -> None:
        shipments = await self.shipment_repo.list_for_status_sync(shop, STATUS_SYNC_BATCH_SIZE)
        logger.info(f"Found {len(shipments)} shipments to sync for {shop}")

        for index, shipment in enumerate(shipments):
            if index:
                await asyncio.sleep(self.sync_delay)
            result.processed += 1
            try:
                if await self._sync_shipment(shop, shipment):
                    result.updated += 1
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Failed to sync status for order {shipment.shopify_order_id} ({shop}): {e}"
                )

    async def _sync_shipment(self, shop: str, shipment: Shipment) -> bool:
        """Poll one shipment; write only when the status changed."""
        status = await self.client.get_shipment_status(shop, shipment.shipment_id)
        if status.status.value == shipment.status:
            return False

        await self.shipment_repo.update(
            shop,
            shipment.shopify_order_id,
            status=status.status,
            status_details=status.status_details,
        )
        await self.audit.info(
            shop,
            "Shipment status updated",
            {
                "order_id": shipment.shopify_order_id,
                "shipment_id": shipment.shipment_id,
                "old_status": shipment.status,
                "new_status": status.status.value,
            },
        )
        await self.annotator.status_changed(
            shop, shipment.shopify_order_id, status.status.value, status.status_details
        )
        return True

    # ==================== Temp-ID resolution ====================

    async def resolve_all_temp_ids(self) -> JobResult:
        async with self._lock:
            return await self._for_each_tenant("update_temp_ids", self.resolve_tenant_temp_ids)

    async def resolve_tenant_temp_ids(self, shop: str, result: JobResult) -> None:
        shipments = await self.shipment_repo.list_due_temporary(
            shop, self.max_lookup_attempts, utcnow(), limit=TEMP_ID_BATCH_SIZE
        )
        logger.info(f"Found {len(shipments)} temporary shipments to resolve for {shop}")

        for index, shipment in enumerate(shipments):
            if index:
                await asyncio.sleep(self.lookup_delay)
            result.processed += 1
            try:
                if await self._resolve_shipment(shop, shipment):
                    result.updated += 1
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Failed to resolve temporary ID for order "
                    f"{shipment.shopify_order_id} ({shop}): {e}"
                )

    async def _resolve_shipment(self, shop: str, shipment: Shipment) -> bool:
        """
        Look up the real ID for one temporary shipment.

        Returns:
            True if the shipment was promoted to a real ID
        """
        real_id = await self.client.lookup_by_order_number(shop, shipment.shopify_order_number)

        if real_id and not is_temporary_id(real_id):
            await self.shipment_repo.update(
                shop,
                shipment.shopify_order_id,
                shipment_id=real_id,
                is_temporary_id=False,
                lookup_attempts=0,
                next_lookup_at=None,
                status=ShipmentStatus.NEW,
                status_details=None,
            )
            await self.audit.info(
                shop,
                "Temporary ID resolved",
                {
                    "order_id": shipment.shopify_order_id,
                    "old_id": shipment.shipment_id,
                    "new_id": real_id,
                },
            )
            await self.annotator.shipment_id_changed(shop, shipment.shopify_order_id, real_id)
            return True

        now = utcnow()
        attempts = shipment.lookup_attempts + 1
        fields = {"lookup_attempts": attempts, "last_lookup_at": now}

        if attempts < self.max_lookup_attempts:
            fields["next_lookup_at"] = now + self.lookup_interval
        else:
            fields["next_lookup_at"] = None
            fields["status_details"] = MANUAL_INTERVENTION_DETAILS
            await self.audit.warning(
                shop,
                "Max lookup attempts reached",
                {"order_id": shipment.shopify_order_id, "attempts": attempts},
            )

        await self.shipment_repo.update(shop, shipment.shopify_order_id, **fields)
        return False

    # ==================== Pending check ====================

    async def check_all_pending(self) -> JobResult:
        async with self._lock:
            return await self._for_each_tenant("check_pending", self.check_tenant_pending)

    async def check_tenant_pending(self, shop: str, result: JobResult) -> None:
        now = utcnow()
        stuck = await self.shipment_repo.list_stuck(
            shop,
            sent_before=now - timedelta(hours=STUCK_THRESHOLD_HOURS),
            max_attempts=self.max_lookup_attempts,
        )
        if stuck:
            logger.warning(f"Found {len(stuck)} stuck temporary shipments for {shop}")

        for shipment in stuck:
            result.processed += 1
            try:
                await self.shipment_repo.update(
                    shop,
                    shipment.shopify_order_id,
                    status=ShipmentStatus.ERROR,
                    status_details=MANUAL_INTERVENTION_DETAILS,
                )
                result.updated += 1
                await self.audit.warning(
                    shop,
                    "Shipment requires manual intervention",
                    {"order_id": shipment.shopify_order_id, "shipment_id": shipment.shipment_id},
                )
            except Exception as e:
                result.failed += 1
                logger.error(f"Failed to flag stuck order {shipment.shopify_order_id}: {e}")

        errors = await self.shipment_repo.list_recent_errors(
            shop,
            since=now - timedelta(hours=ERROR_RETRY_WINDOW_HOURS),
            limit=ERROR_RETRY_BATCH_SIZE,
            max_attempts=self.max_lookup_attempts,
        )
        if errors:
            logger.info(f"Found {len(errors)} recent error shipments for {shop}")

        for shipment in errors:
            result.processed += 1
            try:
                await self.shipment_repo.update(
                    shop,
                    shipment.shopify_order_id,
                    status=ShipmentStatus.NEW,
                    status_details=RETRY_AFTER_ERROR_DETAILS,
                )
                result.updated += 1
            except Exception as e:
                result.failed += 1
                logger.error(f"Failed to reset error order {shipment.shopify_order_id}: {e}")

        logger.info(
            f"Pending check completed for {shop}: stuck={len(stuck)}, errors={len(errors)}"
        )
