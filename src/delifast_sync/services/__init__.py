"""Services module - Order mapping, shipment lifecycle and reconciliation."""
