"""Token management for Delifast API authentication.

Each shop's bearer token and its expiry are cached on the shop's settings row.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import httpx

from delifast_sync.api.endpoints import LOGIN
from delifast_sync.config.settings import settings
from delifast_sync.core.encryption import decrypt
from delifast_sync.core.exceptions import AuthFailed, CredentialsMissing, PartnerApiError
from delifast_sync.core.logger import setup_logger
from delifast_sync.db.base import utcnow
from delifast_sync.db.repository import SettingsRepository
from delifast_sync.models.shipment import TokenStatus

logger = setup_logger(__name__)

CUSTOMER_ID_CLAIM = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"

# Login response field -> settings column, applied only when present
SENDER_PROFILE_FIELDS = {
    "SenderNumber": "sender_no",
    "FullName": "sender_name",
    "Address": "sender_address",
    "WorkPhone": "sender_mobile",
    "CityId": "sender_city_id",
    "AreaId": "sender_area_id",
}


def extract_sender_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the sender-profile updates carried by a login response."""
    updates = {}
    customer_id = data.get(CUSTOMER_ID_CLAIM)
    if customer_id:
        updates["delifast_customer_id"] = str(customer_id)

    for field, column in SENDER_PROFILE_FIELDS.items():
        value = data.get(field)
        if not value:
            continue
        if column in ("sender_city_id", "sender_area_id"):
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric {field} in login response: {value!r}")
                continue
        else:
            value = str(value)
        updates[column] = value

    return updates


class TokenManager:
    """Caches and refreshes Delifast bearer tokens per shop."""

    def __init__(
        self,
        settings_repo: SettingsRepository,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        """
        Initialize token manager.

        Args:
            settings_repo: Repository holding the shop's credentials and token
            http_client: Shared HTTP client (one is created if omitted)
            base_url: Delifast API base URL (defaults to settings)
        """
        self.settings_repo = settings_repo
        self.base_url = (base_url or settings.delifast_base_url).rstrip("/")
        self.client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self.expiry = timedelta(hours=settings.token_expiry_hours)
        self.refresh_window = timedelta(minutes=settings.token_refresh_minutes)

    async def get_token(self, shop: str) -> Optional[str]:
        """Return the cached token, or None when absent or expired."""
        row = await self.settings_repo.get(shop)
        if row is None or not row.api_token:
            logger.debug(f"No token found for {shop}")
            return None

        if row.token_expiry and row.token_expiry <= utcnow():
            logger.debug(f"Token expired for {shop} (expiry={row.token_expiry})")
            return None

        return row.api_token

    async def set_token(
        self,
        shop: str,
        token: str,
        expiry: Optional[datetime] = None,
    ) -> datetime:
        """Persist a token; expiry defaults to the configured lifetime from now."""
        expiry = expiry or utcnow() + self.expiry
        await self.settings_repo.update_fields(shop, api_token=token, token_expiry=expiry)
        logger.info(f"Token saved for {shop} (expiry={expiry.isoformat()})")
        return expiry

    async def clear_token(self, shop: str) -> None:
        await self.settings_repo.update_fields(shop, api_token=None, token_expiry=None)
        logger.info(f"Token cleared for {shop}")

    async def login(self, shop: str) -> str:
        """
        Log in to Delifast with the shop's stored credentials.

        Args:
            shop: Shop domain

        Returns:
            The new bearer token

        Raises:
            CredentialsMissing: If the shop has no username or password
            AuthFailed: If Delifast rejects the login or omits the token
            PartnerApiError: If the login endpoint cannot be reached
        """
        row = await self.settings_repo.get(shop)
        if row is None or not row.has_credentials:
            raise CredentialsMissing(shop)

        password = decrypt(row.delifast_password)
        payload = {
            "UserNameOrEmail": row.delifast_username,
            "Password": password,
            "FireBaseDeviceToken": "",
            "RememberMe": True,
        }

        logger.info(f"Attempting Delifast login for {shop} (username={row.delifast_username})")

        try:
            response = await self.client.post(f"{self.base_url}{LOGIN}", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Login request failed for {shop}: {e}")
            raise PartnerApiError(f"Login request failed: {e}") from e

        if not response.is_success:
            logger.error(f"Login failed for {shop} with status {response.status_code}")
            raise AuthFailed(f"Login failed with status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise AuthFailed("Login response is not valid JSON") from e

        token = data.get("Token") if isinstance(data, dict) else None
        if not token:
            logger.error(f"Login response missing token for {shop}: {str(data)[:500]}")
            raise AuthFailed("Token not found in login response")

        await self.clear_token(shop)
        await self.set_token(shop, token)

        profile = extract_sender_profile(data)
        if profile:
            await self.settings_repo.update_fields(shop, **profile)
            logger.info(f"Updated sender info from login response for {shop}: {sorted(profile)}")

        logger.info(f"Login successful for {shop}")
        return token

    async def get_valid_token(self, shop: str) -> str:
        """
        Return a usable token, logging in when none is cached or the cached one
        expires within the refresh window.

        Raises:
            CredentialsMissing: If the shop has no stored credentials, even
                when a token is still cached
        """
        row = await self.settings_repo.get(shop)
        if row is None or not row.has_credentials:
            raise CredentialsMissing(shop)

        if not row.api_token or row.token_expiry is None:
            return await self.login(shop)

        if row.token_expiry <= utcnow() + self.refresh_window:
            logger.info(f"Token expiring soon for {shop}, refreshing")
            return await self.login(shop)

        return row.api_token

    async def check_token_status(self, shop: str) -> TokenStatus:
        """Describe the cached token for display."""
        row = await self.settings_repo.get(shop)
        if row is None or not row.api_token:
            return TokenStatus(has_token=False, is_valid=False, message="No token found")

        if not row.token_expiry or row.token_expiry <= utcnow():
            return TokenStatus(
                has_token=True,
                is_valid=False,
                message="Token expired",
                expiry=row.token_expiry,
            )

        return TokenStatus(
            has_token=True,
            is_valid=True,
            message="Token is valid",
            expiry=row.token_expiry,
        )

    async def close(self) -> None:
        await self.client.aclose()
