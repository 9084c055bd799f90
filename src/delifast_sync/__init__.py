"""Delifast Sync - Shopify to Delifast shipment integration."""

__version__ = "1.0.0"
