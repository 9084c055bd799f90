"""Handlers module - Shopify webhook event handlers."""

from delifast_sync.handlers.webhook import handle_order_webhook

__all__ = ["handle_order_webhook"]
