"""Field extraction from loosely structured Delifast responses.

The partner API is inconsistent about field casing and nesting. These
functions are the only code that probes raw response JSON; callers get plain
strings and canonical statuses back.
"""

from typing import Any, Optional

from delifast_sync.models.shipment import ShipmentStatus
from delifast_sync.utils.status_mapping import map_status_value

# Candidate ID fields at the root and inside "SH"
ID_FIELDS = (
    "shipmentId", "ShipmentId",
    "shipmentNo", "ShipmentNo",
    "trackingNumber", "TrackingNumber",
    "id", "Id",
)

# Candidate ID fields during the nested search (bare "id" is too generic there)
DEEP_ID_FIELDS = (
    "ShipmentNo", "shipmentNo",
    "shipmentId", "ShipmentId",
    "trackingNumber", "TrackingNumber",
)

STATUS_FIELDS = (
    "status", "Status",
    "shipmentStatus", "ShipmentStatus",
    "CurrentStatus", "currentStatus",
    "state", "State",
)

MAX_SEARCH_DEPTH = 5


def is_valid_shipment_id(value: Any) -> bool:
    """A usable ID is a scalar whose string form is 4 to 29 characters long."""
    if not value or isinstance(value, (bool, dict, list)):
        return False
    return 3 < len(str(value)) < 30


def _first_valid_id(obj: dict, fields) -> Optional[str]:
    for field in fields:
        value = obj.get(field)
        if is_valid_shipment_id(value):
            return str(value)
    return None


def _deep_search_shipment_id(obj: Any, depth: int) -> Optional[str]:
    if depth > MAX_SEARCH_DEPTH or not obj:
        return None

    if isinstance(obj, dict):
        found = _first_valid_id(obj, DEEP_ID_FIELDS)
        if found:
            return found
        children = obj.values()
    elif isinstance(obj, list):
        children = obj
    else:
        return None

    for value in children:
        if isinstance(value, (dict, list)):
            found = _deep_search_shipment_id(value, depth + 1)
            if found:
                return found

    return None


def extract_shipment_id(response: Any) -> Optional[str]:
    """
    Find the shipment ID in a Delifast response.

    Checks the root, then the "SH" sub-object, then searches nested objects
    up to five levels deep.

    Args:
        response: Parsed JSON response

    Returns:
        Shipment ID as a string, or None if no usable value exists
    """
    if not response:
        return None

    if isinstance(response, dict):
        found = _first_valid_id(response, ID_FIELDS)
        if found:
            return found

        sh = response.get("SH")
        if isinstance(sh, dict):
            found = _first_valid_id(sh, ID_FIELDS)
            if found:
                return found

    return _deep_search_shipment_id(response, 0)


def extract_raw_status(response: Any) -> Any:
    """Locate the raw status value in a response without interpreting it."""
    if not isinstance(response, dict):
        return None

    status_value = None

    for field in STATUS_FIELDS:
        if field in response:
            status_value = response[field]
            break

    sh = response.get("SH")
    if status_value is None and isinstance(sh, dict):
        for field in STATUS_FIELDS:
            if field in sh:
                status_value = sh[field]
                break

    if status_value is None:
        for key, value in response.items():
            if "status" in key.lower():
                status_value = value
                break

    return status_value


def extract_status(response: Any) -> ShipmentStatus:
    """Extract and canonicalise the shipment status from a response."""
    if not response:
        return ShipmentStatus.UNKNOWN
    return map_status_value(extract_raw_status(response))


def extract_status_details(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    details = response.get("statusDetails") or response.get("StatusDetails")
    return str(details) if details else None
