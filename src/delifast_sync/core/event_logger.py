"""
Tenant Event Logger

Writes lifecycle events to the application log and to the per-shop audit trail
in the ``logs`` table. A failed audit write is logged and never raised.
"""

import logging
from typing import Any, Dict, Optional

from delifast_sync.core.logger import setup_logger
from delifast_sync.db.repository import LogRepository

logger = setup_logger(__name__)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Audit entries older than this are pruned
DEFAULT_RETENTION_DAYS = 7


class TenantLogger:
    """Audit logger bound to the log repository."""

    def __init__(self, log_repo: LogRepository):
        self.log_repo = log_repo

    async def log(
        self,
        shop: str,
        level: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log an event for a shop.

        Args:
            shop: Shop domain
            level: One of debug, info, warning, error
            message: Human readable message
            context: Extra structured data stored alongside the entry
        """
        logger.log(
            LEVELS.get(level, logging.INFO),
            f"[{shop}] {message}",
            extra={"shop": shop},
        )

        try:
            await self.log_repo.add(shop, level, message, context)
        except Exception as e:
            logger.error(f"Failed to persist audit log for {shop}: {e}")

    async def debug(self, shop: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(shop, "debug", message, context)

    async def info(self, shop: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(shop, "info", message, context)

    async def warning(self, shop: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(shop, "warning", message, context)

    async def error(self, shop: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        await self.log(shop, "error", message, context)

    async def clear_old_logs(self, shop: str, days_to_keep: int = DEFAULT_RETENTION_DAYS) -> int:
        """Prune a shop's audit entries; returns the number removed."""
        try:
            removed = await self.log_repo.clear_older_than(shop, days_to_keep)
            logger.info(f"Cleared {removed} old audit log entries for {shop}")
            return removed
        except Exception as e:
            logger.error(f"Failed to clear old audit logs for {shop}: {e}")
            return 0
