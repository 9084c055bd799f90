"""Domain models for shipments and partner results."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ShipmentStatus(str, Enum):
    """Canonical shipment status."""

    NEW = "new"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    ERROR = "error"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# No further polling once a shipment reaches one of these
TERMINAL_STATUSES = frozenset(
    {ShipmentStatus.COMPLETED, ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED}
)

# Excluded from the hourly status sync
SYNC_EXCLUDED_STATUSES = TERMINAL_STATUSES | {ShipmentStatus.ERROR}


class OperatingMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class AutoSendTrigger(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FULFILLED = "fulfilled"


class CreateShipmentResult(BaseModel):
    """Outcome of a create-shipment call."""

    success: bool = True
    shipment_id: Optional[str] = None
    is_temporary: bool = False
    needs_lookup: bool = False
    raw: Optional[Dict[str, Any]] = None


class StatusResult(BaseModel):
    """Outcome of a status check or refresh."""

    status: ShipmentStatus
    status_details: Optional[str] = None
    is_temporary: bool = False
    success: bool = True
    raw: Optional[Any] = None


class SendResult(BaseModel):
    """Outcome of sending an order to Delifast."""

    success: bool = True
    shipment_id: Optional[str] = None
    is_temporary: bool = False
    skipped: bool = False


class TokenStatus(BaseModel):
    """Cached token state for display."""

    has_token: bool
    is_valid: bool
    message: str
    expiry: Optional[Any] = None
