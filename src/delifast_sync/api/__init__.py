"""Delifast API module."""
