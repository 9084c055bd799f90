"""
GlitchTip Error Monitoring Utilities

Helper functions for error tracking and context management. All of them are
no-ops while the Sentry SDK has not been initialised.
"""

from typing import Any, Dict, Optional

import sentry_sdk

from delifast_sync.core.logger import setup_logger

logger = setup_logger(__name__)


def set_tenant_context(
    shop: str,
    order_id: Optional[str] = None,
    **extra_tags
) -> None:
    """
    Tag the current scope with the tenant (and order) being processed.

    Args:
        shop: Shop domain
        order_id: Shopify order ID
        **extra_tags: Additional tags to add
    """
    try:
        sentry_sdk.set_tag("tenant.shop", shop)
        if order_id:
            sentry_sdk.set_tag("tenant.order_id", order_id)

        for key, value in extra_tags.items():
            sentry_sdk.set_tag(key, value)

        context_data = {"shop": shop, "order_id": order_id}
        context_data.update(extra_tags)
        sentry_sdk.set_context("tenant", context_data)
    except Exception as e:
        logger.warning(f"Failed to set tenant context: {e}")


def capture_exception(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture an exception and send to GlitchTip.

    Args:
        error: The exception to capture
        context: Additional context data
    """
    try:
        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("custom", context)
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception in GlitchTip: {e}")
