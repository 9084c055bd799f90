"""Status mapping and temporary shipment ID utilities."""

import re
import threading
import time
from typing import Any, Dict, List, Optional

from delifast_sync.config.constants import TEMPORARY_ID_PREFIX, TEMPORARY_ID_PREFIXES
from delifast_sync.models.shipment import ShipmentStatus

# Numeric Delifast status codes
NUMERIC_STATUS_MAP: Dict[int, ShipmentStatus] = {
    0: ShipmentStatus.NEW,
    1: ShipmentStatus.IN_TRANSIT,
    2: ShipmentStatus.IN_TRANSIT,
    3: ShipmentStatus.IN_TRANSIT,
    4: ShipmentStatus.IN_TRANSIT,
    5: ShipmentStatus.COMPLETED,
    6: ShipmentStatus.CANCELLED,
    7: ShipmentStatus.RETURNED,
    20: ShipmentStatus.IN_TRANSIT,
    100: ShipmentStatus.COMPLETED,
    101: ShipmentStatus.CANCELLED,
    102: ShipmentStatus.RETURNED,
}

# Keyword categories, scanned in this order
TEXT_STATUS_KEYWORDS: Dict[ShipmentStatus, List[str]] = {
    ShipmentStatus.NEW: ["new", "جديد", "جديدة"],
    ShipmentStatus.IN_TRANSIT: [
        "transit", "driver", "office", "process", "pickup", "picked",
        "قيد", "جاري", "مكتب", "سائق", "استلام",
    ],
    ShipmentStatus.COMPLETED: [
        "deliver", "complete", "success", "done",
        "تم", "تسليم", "مكتمل", "ناجح",
    ],
    ShipmentStatus.CANCELLED: [
        "cancel", "void",
        "ملغي", "ألغيت", "الغ", "ملغى",
    ],
    ShipmentStatus.RETURNED: [
        "return", "rto",
        "مرتجع", "مرجع", "راجع",
    ],
}

# Shopify order tag per canonical status
SHOPIFY_TAGS: Dict[ShipmentStatus, str] = {
    ShipmentStatus.NEW: "delifast-new",
    ShipmentStatus.IN_TRANSIT: "delifast-in-transit",
    ShipmentStatus.COMPLETED: "delifast-delivered",
    ShipmentStatus.CANCELLED: "delifast-cancelled",
    ShipmentStatus.RETURNED: "delifast-returned",
    ShipmentStatus.UNKNOWN: "delifast-unknown",
}

STATUS_LABELS = {
    ShipmentStatus.NEW: "New",
    ShipmentStatus.IN_TRANSIT: "In Transit",
    ShipmentStatus.COMPLETED: "Delivered",
    ShipmentStatus.CANCELLED: "Cancelled",
    ShipmentStatus.RETURNED: "Returned",
    ShipmentStatus.UNKNOWN: "Unknown",
}

STATUS_LABELS_AR = {
    ShipmentStatus.NEW: "جديد",
    ShipmentStatus.IN_TRANSIT: "قيد التوصيل",
    ShipmentStatus.COMPLETED: "تم التسليم",
    ShipmentStatus.CANCELLED: "ملغي",
    ShipmentStatus.RETURNED: "مرتجع",
    ShipmentStatus.UNKNOWN: "غير معروف",
}

_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")

_temp_id_lock = threading.Lock()
_last_temp_id_millis = 0


def _parse_leading_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def map_status_value(value: Any) -> ShipmentStatus:
    """
    Map a raw Delifast status (numeric code or text) to a canonical status.

    Args:
        value: Status value from the partner response

    Returns:
        Canonical status, UNKNOWN when nothing matches
    """
    if value is None:
        return ShipmentStatus.UNKNOWN

    numeric = _parse_leading_int(value)
    if numeric is not None and numeric in NUMERIC_STATUS_MAP:
        return NUMERIC_STATUS_MAP[numeric]

    if isinstance(value, str):
        value_lower = value.lower().strip()
        for status, keywords in TEXT_STATUS_KEYWORDS.items():
            for keyword in keywords:
                if keyword.lower() in value_lower:
                    return status

    return ShipmentStatus.UNKNOWN


def is_temporary_id(shipment_id: Optional[str]) -> bool:
    """Check if a shipment ID is a locally generated placeholder."""
    if not shipment_id:
        return False
    return str(shipment_id).startswith(TEMPORARY_ID_PREFIXES)


def generate_temporary_id(order_number: Any) -> str:
    """
    Generate a temporary shipment ID: ``PENDING-{order_number}-{unix_millis}``.

    Two calls within the same millisecond still get distinct timestamps.
    """
    global _last_temp_id_millis

    with _temp_id_lock:
        millis = int(time.time() * 1000)
        if millis <= _last_temp_id_millis:
            millis = _last_temp_id_millis + 1
        _last_temp_id_millis = millis

    return f"{TEMPORARY_ID_PREFIX}-{order_number}-{millis}"


def get_shopify_tag(status: Any) -> str:
    """Shopify tag for a status; unknown for anything without its own tag."""
    try:
        status = ShipmentStatus(status)
    except ValueError:
        status = ShipmentStatus.UNKNOWN
    return SHOPIFY_TAGS.get(status, SHOPIFY_TAGS[ShipmentStatus.UNKNOWN])


def get_all_delifast_tags() -> List[str]:
    """All possible Delifast tags (for removing old tags)."""
    return list(SHOPIFY_TAGS.values())


def get_status_label(status: Any) -> str:
    try:
        return STATUS_LABELS.get(ShipmentStatus(status), STATUS_LABELS[ShipmentStatus.UNKNOWN])
    except ValueError:
        return STATUS_LABELS[ShipmentStatus.UNKNOWN]


def get_status_label_ar(status: Any) -> str:
    try:
        return STATUS_LABELS_AR.get(ShipmentStatus(status), STATUS_LABELS_AR[ShipmentStatus.UNKNOWN])
    except ValueError:
        return STATUS_LABELS_AR[ShipmentStatus.UNKNOWN]
