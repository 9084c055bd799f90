"""API routes: health, Shopify webhooks and manual shipment actions."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from pydantic import BaseModel

from delifast_sync.config.settings import settings
from delifast_sync.core.logger import setup_logger
from delifast_sync.core.signature import verify_webhook_signature
from delifast_sync.handlers.webhook import handle_order_webhook
from delifast_sync.server.auth import require_shop, verify_api_key
from delifast_sync.server.dependencies import Services, get_services, track_task
from delifast_sync.utils.city_mapping import get_available_cities
from delifast_sync.utils.status_mapping import get_status_label, get_status_label_ar

logger = setup_logger(__name__)
router = APIRouter()


class UpdateShipmentIdRequest(BaseModel):
    shipment_id: str


class BulkSendRequest(BaseModel):
    orders: List[Dict[str, Any]]


class BulkRefreshRequest(BaseModel):
    order_ids: List[str]


def _status_payload(result) -> Dict[str, Any]:
    return result.model_dump(mode="json", exclude={"raw"})


def _shipment_payload(shipment) -> Dict[str, Any]:
    data = shipment.to_dict()
    data["status_label"] = get_status_label(shipment.status)
    data["status_label_ar"] = get_status_label_ar(shipment.status)
    return data


def _bulk_summary(results: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Split per-order results into succeeded and failed lists."""
    summary = {"success": [], "failed": []}
    for order_id, result in results.items():
        entry = dict(result, order_id=order_id)
        if result.get("success"):
            summary["success"].append(entry)
        else:
            summary["failed"].append(entry)
    return summary


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint for monitoring."""
    health_status = {
        "status": "healthy",
        "service": "delifast-sync",
        "environment": settings.environment,
        "checks": {
            "job_secret": "ok" if settings.job_secret else "missing",
            "shopify_api_secret": "ok" if settings.shopify_api_secret else "missing",
        },
    }

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and scheduler.is_running:
        health_status["checks"]["scheduler"] = "running"
        health_status["next_runs"] = scheduler.get_next_run_times()
    else:
        health_status["checks"]["scheduler"] = "disabled"

    return health_status


# ==================== Shopify webhooks ====================


@router.post("/webhooks/orders/{event}")
async def shopify_order_webhook(
    event: str,
    request: Request,
    x_shopify_hmac_sha256: Optional[str] = Header(None),
    x_shopify_shop_domain: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> Response:
    """
    Receive a Shopify order webhook.

    The HMAC is checked, then the webhook is acknowledged at once and the
    lifecycle work runs in a tracked background task.
    """
    raw_body = await request.body()

    if not verify_webhook_signature(raw_body, x_shopify_hmac_sha256, settings.shopify_api_secret):
        return Response(content="", status_code=status.HTTP_401_UNAUTHORIZED)

    if not x_shopify_shop_domain:
        logger.warning(f"Webhook orders/{event} received without shop domain")
        return Response(content="", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        logger.error(f"Invalid JSON in webhook orders/{event}: {e}")
        return Response(content="", status_code=status.HTTP_400_BAD_REQUEST)

    shop = x_shopify_shop_domain.strip().lower()
    task = asyncio.create_task(
        handle_order_webhook(services.shipment_service, shop, f"orders/{event}", payload)
    )
    track_task(task)

    return Response(content="", status_code=status.HTTP_200_OK)


# ==================== Manual actions ====================


@router.get("/api/orders")
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=250),
    offset: int = Query(0, ge=0),
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """List a shop's shipments, newest first."""
    try:
        shipments, total = await services.shipment_service.list_shipments(
            shop, status=status_filter, limit=limit, offset=offset
        )
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status_filter}")

    return {
        "shipments": [_shipment_payload(s) for s in shipments],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/orders/{order_id}")
async def get_order(
    order_id: str,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    shipment = await services.shipment_service.get_shipment(shop, order_id)
    return {"shipment": _shipment_payload(shipment)}


@router.post("/api/orders/{order_id}/send")
async def send_order(
    order_id: str,
    request: Request,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Manually send an order to Delifast.

    Body: the Shopify order JSON (bare, or wrapped as ``{"order": {...}}``).
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be the order JSON")

    order = body.get("order", body) if isinstance(body, dict) else None
    if not isinstance(order, dict):
        raise HTTPException(status_code=400, detail="Request body must be the order JSON")
    order.setdefault("id", order_id)

    if str(order["id"]) != order_id:
        raise HTTPException(status_code=400, detail="Order ID in body does not match the URL")

    result = await services.shipment_service.send_order(shop, order)
    if result.skipped:
        raise HTTPException(
            status_code=400,
            detail=f"Order already sent to Delifast (shipment_id={result.shipment_id})",
        )

    return result.model_dump()


@router.post("/api/orders/{order_id}/refresh-status")
async def refresh_status(
    order_id: str,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.shipment_service.refresh_status(shop, order_id)
    return _status_payload(result)


@router.put("/api/orders/{order_id}/shipment-id")
async def update_shipment_id(
    order_id: str,
    body: UpdateShipmentIdRequest,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Replace a (usually temporary) shipment ID with the real one."""
    new_id = body.shipment_id.strip()
    if not new_id:
        raise HTTPException(status_code=400, detail="shipment_id is required")

    result = await services.shipment_service.update_shipment_id(shop, order_id, new_id)
    return _status_payload(result)


@router.post("/api/orders/{order_id}/cancel")
async def cancel_order_shipment(
    order_id: str,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.shipment_service.cancel_shipment(shop, order_id)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.status_details)
    return _status_payload(result)


@router.post("/api/bulk/send")
async def bulk_send(
    body: BulkSendRequest,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Send several orders; each one succeeds or fails on its own."""
    if not body.orders:
        raise HTTPException(status_code=400, detail="At least one order is required")

    results = await services.shipment_service.bulk_send(shop, body.orders)
    return _bulk_summary(results)


@router.post("/api/bulk/refresh-status")
async def bulk_refresh_status(
    body: BulkRefreshRequest,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    if not body.order_ids:
        raise HTTPException(status_code=400, detail="At least one order ID is required")

    results = await services.shipment_service.bulk_refresh(shop, body.order_ids)
    return _bulk_summary(results)


@router.post("/api/test-connection")
async def test_connection(
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await services.client.test_connection(shop)


@router.get("/api/cities")
async def get_cities(
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Cities from Delifast, with the built-in emirate table for reference."""
    return {
        "cities": await services.client.get_cities(shop),
        "emirates": get_available_cities(),
    }


@router.get("/api/areas/{city_id}")
async def get_areas(
    city_id: int,
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return {"areas": await services.client.get_areas(shop, city_id)}


@router.get("/api/payment-methods")
async def get_payment_methods(
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return {"payment_methods": await services.client.get_payment_methods(shop)}


@router.get("/api/token-status")
async def token_status(
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.token_manager.check_token_status(shop)
    return result.model_dump(mode="json")


@router.get("/api/logs")
async def get_logs(
    level: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Recent audit log entries for a shop."""
    entries = await services.log_repo.list(shop, level=level, limit=limit, offset=offset)
    return {
        "logs": [
            {
                "level": e.level,
                "message": e.message,
                "context": json.loads(e.context) if e.context else None,
                "created_at": e.created_at.isoformat(),
            }
            for e in entries
        ]
    }


@router.delete("/api/logs")
async def clear_logs(
    days_to_keep: int = Query(7, ge=0),
    shop: str = Depends(require_shop),
    _: bool = Depends(verify_api_key),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Delete audit entries older than ``days_to_keep`` days."""
    deleted = await services.audit.clear_old_logs(shop, days_to_keep)
    return {"success": True, "deleted": deleted}
