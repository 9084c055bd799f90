"""Service wiring shared by the HTTP routes."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Set

import httpx
from fastapi import HTTPException, status

from delifast_sync.api.client import DelifastAPIClient
from delifast_sync.config.settings import settings
from delifast_sync.core.event_logger import TenantLogger
from delifast_sync.core.logger import setup_logger
from delifast_sync.core.token_manager import TokenManager
from delifast_sync.db.repository import LogRepository, SettingsRepository, ShipmentRepository
from delifast_sync.integrations.shopify import OrderAnnotator, ShopifyAdminClient
from delifast_sync.services.order_mapper import OrderMapper
from delifast_sync.services.reconciliation_service import ReconciliationService
from delifast_sync.services.shipment_service import ShipmentService

logger = setup_logger(__name__)


@dataclass
class Services:
    """Everything the routes need, built once per process."""
    settings_repo: SettingsRepository
    shipment_repo: ShipmentRepository
    log_repo: LogRepository
    audit: TenantLogger
    token_manager: TokenManager
    client: DelifastAPIClient
    shipment_service: ShipmentService
    reconciliation_service: ReconciliationService
    http_client: httpx.AsyncClient

    async def close(self) -> None:
        await self.http_client.aclose()


def build_services(
    session_factory,
    http_client: Optional[httpx.AsyncClient] = None,
    **reconciliation_options,
) -> Services:
    """
    Wire repositories, clients and services around one session factory.

    Args:
        session_factory: Async session factory
        http_client: Shared HTTP client for Delifast and Shopify calls
        **reconciliation_options: Passed through to ReconciliationService
    """
    http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    settings_repo = SettingsRepository(session_factory)
    shipment_repo = ShipmentRepository(session_factory)
    log_repo = LogRepository(session_factory)
    audit = TenantLogger(log_repo)

    token_manager = TokenManager(settings_repo, http_client=http_client)
    client = DelifastAPIClient(token_manager, http_client=http_client)
    annotator = OrderAnnotator(settings_repo, ShopifyAdminClient(http_client=http_client))
    mapper = OrderMapper(settings_repo)

    return Services(
        settings_repo=settings_repo,
        shipment_repo=shipment_repo,
        log_repo=log_repo,
        audit=audit,
        token_manager=token_manager,
        client=client,
        shipment_service=ShipmentService(shipment_repo, client, mapper, annotator, audit),
        reconciliation_service=ReconciliationService(
            settings_repo,
            shipment_repo,
            client,
            annotator,
            audit,
            **reconciliation_options,
        ),
        http_client=http_client,
    )


# Global instance (initialized in app.py on startup)
_services: Optional[Services] = None


def set_services(services: Optional[Services]) -> None:
    """Set the global services instance."""
    global _services
    _services = services


def get_services() -> Services:
    """FastAPI dependency returning the initialized services."""
    if _services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not initialized",
        )
    return _services


def current_services() -> Optional[Services]:
    return _services


# Webhook work still running after its request was acknowledged
_pending_tasks: Set[asyncio.Task] = set()


def track_task(task: asyncio.Task) -> None:
    """
    Track a background task for graceful shutdown.

    Args:
        task: The asyncio Task to track
    """
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)


async def wait_for_pending_tasks() -> None:
    if _pending_tasks:
        logger.info(f"Waiting for {len(_pending_tasks)} pending tasks to complete...")
        await asyncio.gather(*list(_pending_tasks), return_exceptions=True)
