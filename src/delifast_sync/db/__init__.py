"""Database module."""

from .base import Base, get_engine, get_session_factory, init_db, utcnow
from .models import LogEntry, Shipment, TenantSettings
from .repository import LogRepository, SettingsRepository, ShipmentRepository

__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "init_db",
    "utcnow",
    "LogEntry",
    "Shipment",
    "TenantSettings",
    "LogRepository",
    "SettingsRepository",
    "ShipmentRepository",
]
