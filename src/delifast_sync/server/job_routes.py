"""Job endpoints for triggering reconciliation sweeps from an external cron."""

from typing import Awaitable, Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from delifast_sync.core.logger import setup_logger
from delifast_sync.server.auth import verify_job_secret
from delifast_sync.server.dependencies import Services, get_services
from delifast_sync.services.reconciliation_service import JobResult

logger = setup_logger(__name__)
router = APIRouter(prefix="/api/jobs")

JOB_DESCRIPTIONS = {
    "sync-statuses": {
        "job": "sync-statuses",
        "description": "Sync shipment statuses from Delifast for all active shops",
        "schedule": "Every hour",
        "method": "POST",
        "auth": "Bearer token (JOB_SECRET)",
    },
    "update-temp-ids": {
        "job": "update-temp-ids",
        "description": "Resolve temporary shipment IDs to real Delifast IDs",
        "schedule": "Every hour (offset 30 minutes)",
        "method": "POST",
        "auth": "Bearer token (JOB_SECRET)",
    },
    "check-pending": {
        "job": "check-pending",
        "description": "Flag stuck temporary shipments and re-queue recent errors",
        "schedule": "Every 4 hours",
        "method": "POST",
        "auth": "Bearer token (JOB_SECRET)",
    },
}


async def _run_job(name: str, job: Callable[[], Awaitable[JobResult]]) -> JSONResponse:
    logger.info(f"Job {name} triggered via API")
    try:
        result = await job()
    except Exception as e:
        logger.error(f"Job {name} failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return JSONResponse(
        content={
            "success": True,
            "job": name,
            "tenants": result.tenants,
            "processed": result.processed,
            "updated": result.updated,
            "failed": result.failed,
            "errors": result.errors,
            "duration_seconds": round(result.completed_at - result.started_at, 3),
        }
    )


@router.get("/sync-statuses")
async def describe_sync_statuses() -> dict:
    return JOB_DESCRIPTIONS["sync-statuses"]


@router.post("/sync-statuses")
async def run_sync_statuses(
    _: bool = Depends(verify_job_secret),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return await _run_job("sync-statuses", services.reconciliation_service.sync_all_statuses)


@router.get("/update-temp-ids")
async def describe_update_temp_ids() -> dict:
    return JOB_DESCRIPTIONS["update-temp-ids"]


@router.post("/update-temp-ids")
async def run_update_temp_ids(
    _: bool = Depends(verify_job_secret),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return await _run_job("update-temp-ids", services.reconciliation_service.resolve_all_temp_ids)


@router.get("/check-pending")
async def describe_check_pending() -> dict:
    return JOB_DESCRIPTIONS["check-pending"]


@router.post("/check-pending")
async def run_check_pending(
    _: bool = Depends(verify_job_secret),
    services: Services = Depends(get_services),
) -> JSONResponse:
    return await _run_job("check-pending", services.reconciliation_service.check_all_pending)
