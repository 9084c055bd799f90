"""Shipment lifecycle: send, refresh and manual shipment ID correction."""

from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from delifast_sync.api.client import DelifastAPIClient
from delifast_sync.config.constants import (
    AWAITING_ID_DETAILS,
    CANCELLED_DETAILS,
    INITIAL_LOOKUP_DELAY_MINUTES,
    SHIPMENT_CREATED_DETAILS,
    TEMPORARY_ID_REFRESH_DETAILS,
)
from delifast_sync.core.event_logger import TenantLogger
from delifast_sync.core.exceptions import ShipmentNotFound
from delifast_sync.core.logger import setup_logger
from delifast_sync.core.monitoring import set_tenant_context
from delifast_sync.db.base import utcnow
from delifast_sync.db.models import Shipment
from delifast_sync.db.repository import ShipmentRepository
from delifast_sync.integrations.shopify import OrderAnnotator
from delifast_sync.models.order import ShopifyOrder
from delifast_sync.models.shipment import (
    AutoSendTrigger,
    SendResult,
    ShipmentStatus,
    StatusResult,
)
from delifast_sync.services.order_mapper import OrderMapper, ensure_order, extract_order_info
from delifast_sync.utils.status_mapping import generate_temporary_id, is_temporary_id

logger = setup_logger(__name__)


class ShipmentService:
    """Drives a shipment through its lifecycle and keeps the ledger current."""

    def __init__(
        self,
        shipment_repo: ShipmentRepository,
        client: DelifastAPIClient,
        mapper: OrderMapper,
        annotator: OrderAnnotator,
        audit: TenantLogger,
    ):
        """
        Initialize shipment service.

        Args:
            shipment_repo: Shipment ledger
            client: Delifast API client
            mapper: Builds create-shipment payloads
            annotator: Best-effort Shopify order annotation
            audit: Per-shop audit trail
        """
        self.shipment_repo = shipment_repo
        self.client = client
        self.mapper = mapper
        self.annotator = annotator
        self.audit = audit

    async def send_order(
        self,
        shop: str,
        order: Union[ShopifyOrder, Dict[str, Any]],
    ) -> SendResult:
        """
        Send an order to Delifast and record the shipment.

        An order that already has a shipment ID is not sent again. When
        Delifast accepts the order without returning an ID, a temporary ID is
        stored and the first lookup is scheduled.

        Args:
            shop: Shop domain
            order: Shopify order (model or raw webhook dict)

        Returns:
            SendResult with the stored shipment ID

        Raises:
            Any mapping, auth or partner error, after recording an error row
        """
        order = ensure_order(order)
        order_id = str(order.id)
        order_number = order.display_number
        set_tenant_context(shop, order_id)

        existing = await self.shipment_repo.get(shop, order_id)
        if existing is not None and existing.shipment_id:
            logger.info(
                f"Order {order_number} already sent for {shop} "
                f"(shipment_id={existing.shipment_id}), skipping"
            )
            return SendResult(
                success=True,
                shipment_id=existing.shipment_id,
                is_temporary=existing.is_temporary_id,
                skipped=True,
            )

        await self.audit.info(shop, "Sending order to Delifast", extract_order_info(order))

        try:
            payload = await self.mapper.prepare_shipment_payload(shop, order)
            result = await self.client.create_shipment(shop, payload)
        except Exception as e:
            await self.audit.error(
                shop,
                "Failed to send order to Delifast",
                {"order_id": order_id, "error": str(e)},
            )
            error_fields = {"status": ShipmentStatus.ERROR, "status_details": str(e)}
            await self.shipment_repo.upsert(
                shop,
                order_id,
                create=dict(error_fields, shopify_order_number=order_number),
                update=error_fields,
            )
            raise

        now = utcnow()
        if result.shipment_id and not result.needs_lookup:
            shipment_id = result.shipment_id
            is_temporary = result.is_temporary
        else:
            shipment_id = generate_temporary_id(order_number)
            is_temporary = True

        details = AWAITING_ID_DETAILS if is_temporary else SHIPMENT_CREATED_DETAILS
        fields = {
            "shipment_id": shipment_id,
            "is_temporary_id": is_temporary,
            "status": ShipmentStatus.NEW,
            "status_details": details,
            "sent_at": now,
            "lookup_attempts": 0,
            "last_lookup_at": None,
            "next_lookup_at": (
                now + timedelta(minutes=INITIAL_LOOKUP_DELAY_MINUTES) if is_temporary else None
            ),
        }
        await self.shipment_repo.upsert(
            shop,
            order_id,
            create=dict(fields, shopify_order_number=order_number),
            update=fields,
        )

        await self.annotator.shipment_sent(shop, order_id, shipment_id, is_temporary, details)
        await self.audit.info(
            shop,
            "Order sent to Delifast successfully",
            {"order_id": order_id, "shipment_id": shipment_id, "is_temporary": is_temporary},
        )

        return SendResult(success=True, shipment_id=shipment_id, is_temporary=is_temporary)

    async def get_shipment(self, shop: str, order_id: str) -> Shipment:
        shipment = await self.shipment_repo.get(shop, order_id)
        if shipment is None:
            raise ShipmentNotFound(shop, str(order_id))
        return shipment

    async def list_shipments(
        self,
        shop: str,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Shipment], int]:
        return await self.shipment_repo.list(shop, status=status, limit=limit, offset=offset)

    async def refresh_status(self, shop: str, order_id: str) -> StatusResult:
        """
        Fetch the current status from Delifast and store it.

        The result is always written, changed or not. Temporary IDs are not
        sent to Delifast.

        Raises:
            ShipmentNotFound: If the order has no ledger row
        """
        shipment = await self.get_shipment(shop, order_id)

        if shipment.is_temporary_id or is_temporary_id(shipment.shipment_id):
            logger.debug(
                f"Cannot refresh status for temporary ID {shipment.shipment_id} ({shop})"
            )
            return StatusResult(
                status=ShipmentStatus.NEW,
                status_details=TEMPORARY_ID_REFRESH_DETAILS,
                is_temporary=True,
            )

        if not shipment.shipment_id:
            # Creation failed; nothing to ask Delifast about
            return StatusResult(
                status=ShipmentStatus(shipment.status),
                status_details=shipment.status_details,
                success=False,
            )

        status = await self.client.get_shipment_status(shop, shipment.shipment_id)
        await self.shipment_repo.update(
            shop,
            order_id,
            status=status.status,
            status_details=status.status_details,
        )

        await self.annotator.status_changed(
            shop, order_id, status.status.value, status.status_details
        )
        logger.info(f"Status refreshed for order {order_id} ({shop}): {status.status.value}")
        return status

    async def update_shipment_id(
        self,
        shop: str,
        order_id: str,
        new_shipment_id: str,
    ) -> StatusResult:
        """
        Replace the shipment ID (typically a temporary one) and refresh.

        Raises:
            ShipmentNotFound: If the order has no ledger row
        """
        shipment = await self.get_shipment(shop, order_id)
        old_shipment_id = shipment.shipment_id

        await self.shipment_repo.update(
            shop,
            order_id,
            shipment_id=new_shipment_id,
            is_temporary_id=False,
            status=ShipmentStatus.NEW,
            status_details=None,
            lookup_attempts=0,
            next_lookup_at=None,
        )
        await self.audit.info(
            shop,
            "Shipment ID updated",
            {"order_id": order_id, "old_id": old_shipment_id, "new_id": new_shipment_id},
        )

        await self.annotator.shipment_id_changed(shop, order_id, new_shipment_id)
        return await self.refresh_status(shop, order_id)

    async def cancel_shipment(self, shop: str, order_id: str) -> StatusResult:
        """
        Cancel the order's shipment in Delifast and mark it cancelled.

        Shipments without a real ID are left untouched.

        Raises:
            ShipmentNotFound: If the order has no ledger row
        """
        shipment = await self.get_shipment(shop, order_id)

        if not shipment.shipment_id or shipment.is_temporary_id:
            return StatusResult(
                status=ShipmentStatus(shipment.status),
                status_details="No Delifast shipment ID to cancel",
                is_temporary=shipment.is_temporary_id,
                success=False,
            )

        result = await self.client.cancel_shipment(shop, shipment.shipment_id)
        await self.shipment_repo.update(
            shop,
            order_id,
            status=ShipmentStatus.CANCELLED,
            status_details=CANCELLED_DETAILS,
        )
        await self.audit.info(
            shop,
            "Shipment cancelled",
            {"order_id": order_id, "shipment_id": shipment.shipment_id},
        )
        await self.annotator.status_changed(
            shop, order_id, ShipmentStatus.CANCELLED.value, CANCELLED_DETAILS
        )
        return StatusResult(
            status=ShipmentStatus.CANCELLED,
            status_details=CANCELLED_DETAILS,
            raw=result,
        )

    async def handle_order_event(
        self,
        shop: str,
        trigger: Union[AutoSendTrigger, str],
        order: Union[ShopifyOrder, Dict[str, Any]],
    ) -> Optional[SendResult]:
        """
        Apply the shop's auto-send rule to an order event.

        Returns:
            SendResult if the order was sent (or already had a shipment),
            None if the rule did not match
        """
        trigger = AutoSendTrigger(trigger)
        order = ensure_order(order)

        if not await self.mapper.should_auto_send(shop, trigger):
            logger.debug(f"Auto-send not configured for {trigger.value} on {shop}")
            return None

        if trigger == AutoSendTrigger.PAID:
            existing = await self.shipment_repo.get(shop, str(order.id))
            if existing is not None and existing.shipment_id:
                logger.info(f"Order {order.id} already sent for {shop}, skipping paid event")
                return None

        logger.info(f"Auto-sending order {order.display_number} for {shop} on {trigger.value}")
        return await self.send_order(shop, order)

    async def bulk_send(
        self,
        shop: str,
        orders: Iterable[Union[ShopifyOrder, Dict[str, Any]]],
    ) -> Dict[str, Dict[str, Any]]:
        """Send several orders one after another; failures are reported per order."""
        results = {}
        for order in orders:
            order = ensure_order(order)
            order_id = str(order.id)
            try:
                sent = await self.send_order(shop, order)
                results[order_id] = sent.model_dump()
            except Exception as e:
                results[order_id] = {"success": False, "error": str(e)}
        return results

    async def bulk_refresh(self, shop: str, order_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        results = {}
        for order_id in order_ids:
            try:
                status = await self.refresh_status(shop, order_id)
                results[str(order_id)] = {
                    "success": True,
                    "status": status.status.value,
                    "status_details": status.status_details,
                }
            except Exception as e:
                results[str(order_id)] = {"success": False, "error": str(e)}
        return results
