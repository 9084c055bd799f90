"""Delifast API client."""

import json
from typing import Any, Dict, List, Optional

import httpx

from delifast_sync.config.constants import ACCEPT_LANGUAGE, AWAITING_ID_DETAILS
from delifast_sync.config.settings import settings
from delifast_sync.core.exceptions import AuthFailed, PartnerApiError
from delifast_sync.core.logger import setup_logger
from delifast_sync.core.token_manager import TokenManager
from delifast_sync.models.shipment import CreateShipmentResult, ShipmentStatus, StatusResult
from delifast_sync.utils.status_mapping import is_temporary_id

from .endpoints import (
    CANCEL_SHIPMENT,
    CREATE_SHIPMENT,
    GET_AREAS,
    GET_CITIES,
    GET_PAYMENT_METHODS,
    GET_STATUS,
    LOOKUP_BY_ORDER_NUMBER,
    LOOKUP_SHIPMENT,
)
from .extraction import extract_shipment_id, extract_status, extract_status_details

logger = setup_logger(__name__)

NOT_FOUND_DETAILS = "Shipment not found in Delifast system"


def _truncate(data: Any, limit: int = 500) -> str:
    text = data if isinstance(data, str) else json.dumps(data, default=str, ensure_ascii=False)
    return text[:limit]


class DelifastAPIClient:
    """Async HTTP client for the Delifast API."""

    def __init__(
        self,
        token_manager: TokenManager,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        """
        Initialize API client.

        Args:
            token_manager: Supplies per-shop bearer tokens
            http_client: Shared HTTP client (defaults to the token manager's)
            base_url: Delifast API base URL (defaults to settings)
        """
        self.token_manager = token_manager
        self.client = http_client or token_manager.client
        self.base_url = (base_url or settings.delifast_base_url).rstrip("/")

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        body: Optional[dict],
        params: Optional[dict],
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept-Language": ACCEPT_LANGUAGE,
        }
        try:
            return await self.client.request(
                method,
                url,
                json=body,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling {url}: {e}")
            raise PartnerApiError(f"Delifast request failed: {e}") from e

    async def request(
        self,
        shop: str,
        method: str,
        path: str,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Make an authenticated request to the Delifast API.

        A 401 clears the cached token, forces a fresh login and retries once.

        Args:
            shop: Shop domain whose token is used
            method: HTTP method
            path: Endpoint path relative to the base URL
            body: JSON body
            params: Query parameters

        Returns:
            Parsed JSON response

        Raises:
            AuthFailed: If the retried request is rejected again
            PartnerApiError: On any other non-2xx, non-JSON or transport failure
        """
        url = f"{self.base_url}{path}"
        token = await self.token_manager.get_valid_token(shop)

        logger.debug(
            f"Delifast API request {method} {path} for {shop}: "
            f"{_truncate(body) if body else None}"
        )
        response = await self._send(method, url, token, body, params)

        if response.status_code == 401:
            logger.info(f"Token unauthorized for {shop}, refreshing and retrying")
            await self.token_manager.clear_token(shop)
            token = await self.token_manager.login(shop)
            response = await self._send(method, url, token, body, params)
            if response.status_code == 401:
                raise AuthFailed("Delifast rejected a freshly issued token")

        if not response.is_success:
            logger.error(
                f"Delifast API error {response.status_code} on {path} for {shop}: "
                f"{response.text[:500]}"
            )
            raise PartnerApiError(
                f"Delifast API returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PartnerApiError(
                "Delifast API returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.debug(f"Delifast API response {response.status_code} on {path}: {_truncate(data)}")
        return data

    async def create_shipment(self, shop: str, payload: Dict[str, Any]) -> CreateShipmentResult:
        """
        Create a shipment.

        Args:
            shop: Shop domain
            payload: Payload built by the order mapper

        Returns:
            Result with the shipment ID, or needs_lookup when Delifast
            accepted the shipment without returning one
        """
        logger.info(f"Creating shipment for {shop} (ref={payload.get('billing_ref')})")
        result = await self.request(shop, "POST", CREATE_SHIPMENT, body=payload)

        shipment_id = extract_shipment_id(result)
        if shipment_id:
            logger.info(f"Shipment created successfully for {shop}: {shipment_id}")
            return CreateShipmentResult(
                success=True,
                shipment_id=shipment_id,
                is_temporary=is_temporary_id(shipment_id),
                raw=result if isinstance(result, dict) else None,
            )

        if isinstance(result, dict) and result.get("success") is True:
            logger.info(f"Shipment created for {shop}, awaiting real ID")
            return CreateShipmentResult(success=True, needs_lookup=True, raw=result)

        logger.error(f"Failed to create shipment for {shop}: {_truncate(result)}")
        message = result.get("message") if isinstance(result, dict) else None
        raise PartnerApiError(message or "Failed to create shipment", body=_truncate(result))

    def _status_result(self, result: Any) -> StatusResult:
        if (
            isinstance(result, dict)
            and result.get("success") is False
            and result.get("Status") == "Not found"
        ):
            return StatusResult(
                status=ShipmentStatus.NOT_FOUND,
                status_details=NOT_FOUND_DETAILS,
                success=False,
                raw=result,
            )

        return StatusResult(
            status=extract_status(result),
            status_details=extract_status_details(result),
            success=True,
            raw=result,
        )

    async def get_shipment_status(self, shop: str, shipment_id: str) -> StatusResult:
        """
        Get shipment status.

        Temporary IDs are answered locally without calling Delifast.
        """
        if is_temporary_id(shipment_id):
            logger.debug(f"Cannot check status for temporary ID {shipment_id}")
            return StatusResult(
                status=ShipmentStatus.NEW,
                status_details=AWAITING_ID_DETAILS,
                is_temporary=True,
            )

        logger.info(f"Checking shipment status for {shop}: {shipment_id}")
        body = {"ShNo": shipment_id}

        try:
            result = await self.request(
                shop, "POST", GET_STATUS, body=body, params={"shno": shipment_id}
            )
        except PartnerApiError as e:
            logger.debug(f"Retrying status check without query params ({e})")
            result = await self.request(shop, "POST", GET_STATUS, body=body)

        status = self._status_result(result)
        if status.status == ShipmentStatus.NOT_FOUND:
            logger.warning(f"Shipment {shipment_id} not found in Delifast for {shop}")
        return status

    async def lookup_by_order_number(self, shop: str, order_number: str) -> Optional[str]:
        """
        Look up the real shipment ID for an order.

        Tries the primary lookup endpoint, then the alternate one. Partner
        errors are logged and treated as "not found yet".
        """
        logger.info(f"Looking up shipment by order number for {shop}: {order_number}")
        body = {"OrderNumber": order_number}

        for path in (LOOKUP_BY_ORDER_NUMBER, LOOKUP_SHIPMENT):
            try:
                result = await self.request(shop, "POST", path, body=body)
            except PartnerApiError as e:
                logger.warning(f"Lookup via {path} failed for {order_number}: {e}")
                continue

            shipment_id = extract_shipment_id(result)
            if shipment_id:
                logger.info(f"Found shipment ID for {order_number} via {path}: {shipment_id}")
                return shipment_id

        logger.debug(f"No shipment found for order {order_number}")
        return None

    async def get_cities(self, shop: str) -> List[Any]:
        result = await self.request(shop, "GET", GET_CITIES)
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return result.get("cities") or []
        return []

    async def get_areas(self, shop: str, city_id: int) -> List[Any]:
        result = await self.request(shop, "GET", GET_AREAS, params={"cityId": city_id})
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return result.get("areas") or []
        return []

    async def get_payment_methods(self, shop: str) -> List[Any]:
        result = await self.request(shop, "GET", GET_PAYMENT_METHODS)
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return result.get("paymentMethods") or result.get("PaymentMethods") or []
        return []

    async def cancel_shipment(self, shop: str, shipment_id: str) -> Any:
        logger.info(f"Cancelling shipment for {shop}: {shipment_id}")
        return await self.request(
            shop, "POST", CANCEL_SHIPMENT, body={"ShipmentNo": shipment_id}
        )

    async def test_connection(self, shop: str) -> Dict[str, Any]:
        """Force a fresh login to verify the stored credentials."""
        logger.info(f"Testing connection for {shop}")
        token = await self.token_manager.login(shop)
        return {"success": True, "has_token": bool(token)}

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
