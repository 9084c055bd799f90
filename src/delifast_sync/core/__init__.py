"""Core module - Logging, errors, encryption, tokens and monitoring."""

from delifast_sync.core.logger import setup_logger
from delifast_sync.core.signature import verify_webhook_signature

__all__ = ["setup_logger", "verify_webhook_signature"]
