"""
Centralized application constants.

This file acts as the single point of truth for business logic constants
shared across the webhook handlers, the lifecycle engine and the jobs.
"""

# ==============================================================================
# DELIFAST API
# ==============================================================================

# Fixed language header sent with every partner request
ACCEPT_LANGUAGE = "en-US"

# Prefixes reserved for locally generated placeholder shipment IDs
TEMPORARY_ID_PREFIXES = ("DELIFAST-", "PENDING-", "TEMP-")

# Prefix used when this service issues a new placeholder
TEMPORARY_ID_PREFIX = "PENDING"

# ==============================================================================
# SHIPMENT LIFECYCLE
# ==============================================================================

# First temp-ID lookup is scheduled this long after creation
INITIAL_LOOKUP_DELAY_MINUTES = 15

AWAITING_ID_DETAILS = "Awaiting real shipment ID"
TEMPORARY_ID_REFRESH_DETAILS = (
    "This is a temporary ID. Please update with real shipment ID."
)
SHIPMENT_CREATED_DETAILS = "Shipment created"
MANUAL_INTERVENTION_DETAILS = (
    "Unable to find real shipment ID after maximum attempts. "
    "Please update manually."
)
RETRY_AFTER_ERROR_DETAILS = "Scheduled for retry after error"
CANCELLED_DETAILS = "Cancelled by merchant"

# ==============================================================================
# RECONCILIATION CONFIGURATION
# ==============================================================================

# Status sync
STATUS_SYNC_INTERVAL_HOURS = 1
STATUS_SYNC_BATCH_SIZE = 100
STATUS_SYNC_DELAY_SECONDS = 0.5

# Temp-ID resolution (runs hourly, offset from status sync)
TEMP_ID_INTERVAL_HOURS = 1
TEMP_ID_OFFSET_MINUTES = 30
TEMP_ID_BATCH_SIZE = 50
TEMP_ID_DELAY_SECONDS = 1.0

# Stuck-order sweep
PENDING_CHECK_INTERVAL_HOURS = 4
STUCK_THRESHOLD_HOURS = 24
ERROR_RETRY_WINDOW_HOURS = 24
ERROR_RETRY_BATCH_SIZE = 10

# ==============================================================================
# REGIONAL SETTINGS
# ==============================================================================

TIMEZONE_NAME = "Asia/Dubai"
