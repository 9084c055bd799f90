"""Error taxonomy for the Delifast integration."""

from typing import Optional


class DelifastError(Exception):
    """Base class for every error raised by the integration."""


class CredentialsMissing(DelifastError):
    """No Delifast username/password configured for the shop."""

    def __init__(self, shop: str):
        self.shop = shop
        super().__init__("Delifast credentials not configured")


class AuthFailed(DelifastError):
    """Delifast rejected the login, or rejected a fresh token a second time."""


class PartnerApiError(DelifastError):
    """Non-2xx or malformed response from the Delifast API.

    Carries the status code and raw body for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SettingsMissing(DelifastError):
    """The shop has no settings row."""

    def __init__(self, shop: str):
        self.shop = shop
        super().__init__("Store settings not found")


class ShipmentNotFound(DelifastError):
    """The ledger has no shipment for the given shop and order."""

    def __init__(self, shop: str, order_id: str):
        self.shop = shop
        self.order_id = order_id
        super().__init__("Shipment not found")


class EncryptionFormatError(DelifastError):
    """Stored ciphertext is not in iv:tag:cipher form."""
