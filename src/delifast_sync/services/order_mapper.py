"""Order mapping: Shopify order -> Delifast create-shipment payload."""

import re
from typing import Any, Dict, List, Tuple, Union

from delifast_sync.core.exceptions import SettingsMissing
from delifast_sync.core.logger import setup_logger
from delifast_sync.db.models import TenantSettings
from delifast_sync.db.repository import SettingsRepository
from delifast_sync.models.order import LineItemSchema, ShopifyOrder
from delifast_sync.models.shipment import AutoSendTrigger, OperatingMode
from delifast_sync.utils.city_mapping import map_province_to_city

logger = setup_logger(__name__)

DEFAULT_COUNTRY = "AE"
DEFAULT_PRODUCT_NAME = "Product"

COLOR_KEYWORDS = ("color", "لون")
SIZE_KEYWORDS = ("size", "مقاس")
_COLOR_LABEL = re.compile(r"(color|لون)[:\s]*", re.IGNORECASE)
_SIZE_LABEL = re.compile(r"(size|مقاس)[:\s]*", re.IGNORECASE)

COD_GATEWAYS = ("cod", "cash_on_delivery")
PAID_STATUSES = ("paid", "partially_paid")


def ensure_order(order: Union[ShopifyOrder, Dict[str, Any]]) -> ShopifyOrder:
    if isinstance(order, ShopifyOrder):
        return order
    return ShopifyOrder.model_validate(order)


def split_variant(variant_title: str) -> Tuple[str, str]:
    """
    Split a variant title like ``"Red / XL"`` into (color, size).

    Labelled parts (``"Color: Red"``, ``"مقاس: L"``) win; otherwise one part
    is a size and two or more parts are color then size.
    """
    parts = variant_title.split(" / ") if variant_title else []
    color = ""
    size = ""

    for part in parts:
        part_lower = part.lower()
        if any(k in part_lower for k in COLOR_KEYWORDS):
            color = _COLOR_LABEL.sub("", part, count=1).strip()
        elif any(k in part_lower for k in SIZE_KEYWORDS):
            size = _SIZE_LABEL.sub("", part, count=1).strip()

    if not color and not size and parts:
        if len(parts) == 1:
            size = parts[0]
        else:
            color, size = parts[0], parts[1]

    return color, size


def map_line_item(item: LineItemSchema) -> Dict[str, str]:
    color, size = split_variant(item.variant_title or "")
    return {
        "ProductName": item.name or item.title or DEFAULT_PRODUCT_NAME,
        "Color": color,
        "Size": size,
        "Quantity": str(item.quantity or 1),
    }


def is_cod_gateway(gateway: str) -> bool:
    gateway = (gateway or "").lower()
    return gateway in COD_GATEWAYS or "cash" in gateway


def _parse_price(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def compute_payment(order: ShopifyOrder, tenant: TenantSettings) -> Dict[str, Any]:
    """
    Decide amounts, payment method and fee flags.

    Priority: COD gateway, then paid electronically, then unpaid (collected
    on delivery like COD).
    """
    total = _parse_price(order.total_price)
    is_cod = is_cod_gateway(order.payment_gateway)
    is_paid = (order.financial_status or "") in PAID_STATUSES

    if not is_cod and is_paid:
        return {
            "totalPrice": 0,
            "codAmount": 0,
            "paymentMethodId": 1,
            "shippingFeesOnSender": bool(tenant.fees_on_sender),
            "shippingFeesPaid": bool(tenant.fees_paid),
        }

    return {
        "totalPrice": total,
        "codAmount": total,
        "paymentMethodId": 0,
        "shippingFeesOnSender": False,
        "shippingFeesPaid": False,
    }


def extract_order_info(order: Union[ShopifyOrder, Dict[str, Any]]) -> Dict[str, Any]:
    """Summary of an order for display and storage."""
    order = ensure_order(order)
    address = order.address
    customer_name = f"{address.first_name or ''} {address.last_name or ''}".strip()
    return {
        "id": order.id,
        "order_number": order.order_number or order.name,
        "email": order.email,
        "customer_name": customer_name,
        "phone": address.phone or order.phone,
        "total_price": order.total_price,
        "financial_status": order.financial_status,
        "fulfillment_status": order.fulfillment_status,
        "gateway": order.payment_gateway,
        "created_at": order.created_at,
    }


class OrderMapper:
    """Builds Delifast payloads using each shop's settings."""

    def __init__(self, settings_repo: SettingsRepository):
        self.settings_repo = settings_repo

    async def prepare_shipment_payload(
        self,
        shop: str,
        order: Union[ShopifyOrder, Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Prepare the create-shipment payload for an order.

        Args:
            shop: Shop domain
            order: Shopify order (model or raw webhook dict)

        Returns:
            Payload in the Delifast create-shipment format

        Raises:
            SettingsMissing: If the shop has no settings row
        """
        tenant = await self.settings_repo.get(shop)
        if tenant is None:
            raise SettingsMissing(shop)

        order = ensure_order(order)
        address = order.address
        province = address.province_code or address.province or ""
        city_id = map_province_to_city(province, tenant.default_city_id)
        logger.debug(
            f"Mapped province {province!r} to city {city_id} for {shop} "
            f"(default={tenant.default_city_id})"
        )

        products: List[Dict[str, str]] = [map_line_item(item) for item in order.line_items]
        payment = compute_payment(order, tenant)

        payload = {
            "billing_first_name": address.first_name or "",
            "billing_last_name": address.last_name or "",
            "billing_company": address.company or "",
            "billing_country": address.country_code or address.country or DEFAULT_COUNTRY,
            "billing_address_1": address.address1 or "",
            "billing_address_2": address.address2 or "",
            "billing_city": city_id,
            "billing_state": province,
            "billing_phone": address.phone or order.phone or "",
            "billing_email": order.email or address.email or "",
            "billing_ref": order.display_number,
            **payment,
            "weight": tenant.default_weight,
            "dimensions": tenant.default_dimensions,
            "sender_no": tenant.sender_no or "",
            "sender_name": tenant.sender_name or "",
            "sender_address": tenant.sender_address or "",
            "sender_mobile": tenant.sender_mobile or "",
            "sender_city": tenant.sender_city_id,
            "sender_area": tenant.sender_area_id,
            "Products": products,
        }

        logger.info(
            f"Prepared order {payload['billing_ref']} for {shop}: city={city_id}, "
            f"products={len(products)}, total={payload['totalPrice']}, cod={payload['codAmount']}"
        )
        return payload

    async def should_auto_send(self, shop: str, trigger: Union[AutoSendTrigger, str]) -> bool:
        """Auto-send only when the shop is in auto mode and the trigger matches."""
        tenant = await self.settings_repo.get(shop)
        if tenant is None or tenant.mode != OperatingMode.AUTO.value:
            return False
        return tenant.auto_send_status == AutoSendTrigger(trigger).value
