"""Shopify order webhook handling."""

from typing import Any, Dict, Optional

from delifast_sync.core.logger import setup_logger
from delifast_sync.models.shipment import AutoSendTrigger, SendResult
from delifast_sync.services.shipment_service import ShipmentService

logger = setup_logger(__name__)

# Webhook topic -> auto-send trigger
TOPIC_TRIGGERS = {
    "orders/create": AutoSendTrigger.CREATED,
    "orders/paid": AutoSendTrigger.PAID,
    "orders/fulfilled": AutoSendTrigger.FULFILLED,
}

# Accepted but no lifecycle action
INFORMATIONAL_TOPICS = ("orders/updated",)


async def handle_order_webhook(
    shipment_service: ShipmentService,
    shop: str,
    topic: str,
    payload: Dict[str, Any],
) -> Optional[SendResult]:
    """
    Handle an order webhook after it has been acknowledged.

    Failures are logged and never raised; the webhook response has already
    been sent.

    Args:
        shipment_service: Lifecycle engine
        shop: Shop domain from X-Shopify-Shop-Domain
        topic: Webhook topic, e.g. ``orders/paid``
        payload: Parsed order payload
    """
    order_id = payload.get("id")
    logger.info(f"Processing webhook: topic={topic}, shop={shop}, order_id={order_id}")

    if topic in INFORMATIONAL_TOPICS:
        logger.debug(f"Order {order_id} updated for {shop}, no action")
        return None

    trigger = TOPIC_TRIGGERS.get(topic)
    if trigger is None:
        logger.warning(f"Unhandled webhook topic {topic} for {shop}")
        return None

    try:
        result = await shipment_service.handle_order_event(shop, trigger, payload)
    except Exception as e:
        logger.error(
            f"Error processing {topic} for order {order_id} ({shop}): {e}",
            exc_info=True,
        )
        return None

    if result is not None:
        logger.info(
            f"Webhook {topic} handled for order {order_id} ({shop}): "
            f"shipment_id={result.shipment_id}, skipped={result.skipped}"
        )
    return result
