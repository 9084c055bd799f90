"""Integrations module - Shopify Admin API."""

from delifast_sync.integrations.shopify import OrderAnnotator, ShopifyAdminClient

__all__ = ["OrderAnnotator", "ShopifyAdminClient"]
