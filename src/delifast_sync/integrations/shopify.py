"""Shopify Admin API integration for annotating orders with shipment state."""

import json
from typing import Any, Dict, List, Optional

import httpx

from delifast_sync.config.settings import settings
from delifast_sync.core.encryption import decrypt
from delifast_sync.core.logger import setup_logger
from delifast_sync.db.repository import SettingsRepository
from delifast_sync.utils.status_mapping import get_all_delifast_tags, get_shopify_tag

logger = setup_logger(__name__)

METAFIELD_NAMESPACE = "delifast"
SENT_TAG = "delifast-sent"

UPDATE_METAFIELDS_MUTATION = """
mutation updateOrderMetafields($input: OrderInput!) {
  orderUpdate(input: $input) {
    order {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

ADD_TAGS_MUTATION = """
mutation addOrderTags($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""


REMOVE_TAGS_MUTATION = """
mutation removeOrderTags($id: ID!, $tags: [String!]!) {
  tagsRemove(id: $id, tags: $tags) {
    node {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

class ShopifyAPIError(Exception):
    """Shopify Admin API request failed."""


def order_gid(order_id: Any) -> str:
    return f"gid://shopify/Order/{order_id}"


class ShopifyAdminClient:
    """Minimal async GraphQL client for the Shopify Admin API."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        api_version: Optional[str] = None,
    ):
        self.client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self.api_version = api_version or settings.shopify_api_version

    def graphql_url(self, shop: str) -> str:
        return f"https://{shop}/admin/api/{self.api_version}/graphql.json"

    async def graphql(
        self,
        shop: str,
        access_token: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a GraphQL query against a shop.

        Raises:
            ShopifyAPIError: On HTTP errors or GraphQL-level errors
        """
        try:
            response = await self.client.post(
                self.graphql_url(shop),
                json={"query": query, "variables": variables or {}},
                headers={"X-Shopify-Access-Token": access_token},
            )
        except httpx.HTTPError as e:
            raise ShopifyAPIError(f"Shopify request failed: {e}") from e

        if not response.is_success:
            raise ShopifyAPIError(f"Shopify API error: {response.status_code}")

        data = response.json()
        if data.get("errors"):
            raise ShopifyAPIError(f"Shopify GraphQL error: {json.dumps(data['errors'])}")

        return data.get("data") or {}

    async def update_order_metafields(
        self,
        shop: str,
        access_token: str,
        order_id: Any,
        metafields: Dict[str, Any],
    ) -> Dict[str, Any]:
        metafields_input = [
            {
                "namespace": METAFIELD_NAMESPACE,
                "key": key,
                "value": value if isinstance(value, str) else json.dumps(value),
                "type": "single_line_text_field",
            }
            for key, value in metafields.items()
        ]
        variables = {"input": {"id": order_gid(order_id), "metafields": metafields_input}}
        return await self.graphql(shop, access_token, UPDATE_METAFIELDS_MUTATION, variables)

    async def add_order_tags(
        self,
        shop: str,
        access_token: str,
        order_id: Any,
        tags: List[str],
    ) -> Dict[str, Any]:
        variables = {"id": order_gid(order_id), "tags": tags}
        return await self.graphql(shop, access_token, ADD_TAGS_MUTATION, variables)

    async def remove_order_tags(
        self,
        shop: str,
        access_token: str,
        order_id: Any,
        tags: List[str],
    ) -> Dict[str, Any]:
        variables = {"id": order_gid(order_id), "tags": tags}
        return await self.graphql(shop, access_token, REMOVE_TAGS_MUTATION, variables)

    async def close(self) -> None:
        await self.client.aclose()


class OrderAnnotator:
    """
    Best-effort propagation of shipment state onto the Shopify order.

    Every method logs and swallows failures; the ledger stays the source of
    truth.
    """

    def __init__(self, settings_repo: SettingsRepository, shopify: ShopifyAdminClient):
        self.settings_repo = settings_repo
        self.shopify = shopify

    async def _access_token(self, shop: str) -> Optional[str]:
        tenant = await self.settings_repo.get(shop)
        if tenant is None or not tenant.shopify_access_token:
            return None
        return decrypt(tenant.shopify_access_token)

    async def annotate(
        self,
        shop: str,
        order_id: Any,
        metafields: Dict[str, Any],
        tags: Optional[List[str]] = None,
        remove_tags: Optional[List[str]] = None,
    ) -> bool:
        """
        Write metafields (and optionally tags) to an order.

        Tags in ``remove_tags`` are dropped before ``tags`` are added.

        Returns:
            True if Shopify accepted the update, False if skipped or failed
        """
        try:
            access_token = await self._access_token(shop)
            if not access_token:
                logger.debug(f"No Shopify access token for {shop}, skipping annotation")
                return False

            await self.shopify.update_order_metafields(shop, access_token, order_id, metafields)
            if remove_tags:
                await self.shopify.remove_order_tags(shop, access_token, order_id, remove_tags)
            if tags:
                await self.shopify.add_order_tags(shop, access_token, order_id, tags)

            logger.debug(f"Updated Shopify order {order_id} for {shop}")
            return True
        except Exception as e:
            logger.warning(f"Failed to update Shopify order {order_id} for {shop}: {e}")
            return False

    async def shipment_sent(
        self,
        shop: str,
        order_id: Any,
        shipment_id: str,
        is_temporary: bool,
        status_details: Optional[str] = None,
    ) -> bool:
        return await self.annotate(
            shop,
            order_id,
            {
                "shipment_id": shipment_id,
                "status": "new",
                "is_temporary": str(is_temporary).lower(),
                "status_details": status_details or "",
            },
            tags=[get_shopify_tag("new"), SENT_TAG],
        )

    async def status_changed(
        self,
        shop: str,
        order_id: Any,
        status: str,
        status_details: Optional[str] = None,
    ) -> bool:
        """Replace the order's Delifast status tag and update the metafields."""
        tag = get_shopify_tag(status)
        return await self.annotate(
            shop,
            order_id,
            {"status": status, "status_details": status_details or ""},
            tags=[tag],
            remove_tags=[t for t in get_all_delifast_tags() if t != tag],
        )

    async def shipment_id_changed(self, shop: str, order_id: Any, shipment_id: str) -> bool:
        return await self.annotate(
            shop,
            order_id,
            {"shipment_id": shipment_id, "is_temporary": "false"},
        )
