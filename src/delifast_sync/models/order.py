"""Pydantic models for Shopify order webhook payloads."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class AddressSchema(BaseModel):
    """Billing or shipping address on a Shopify order."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    province_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    class Config:
        extra = "allow"


class LineItemSchema(BaseModel):
    """Line item on a Shopify order."""

    name: Optional[str] = None
    title: Optional[str] = None
    variant_title: Optional[str] = None
    quantity: Optional[int] = None

    class Config:
        extra = "allow"


class ShopifyOrder(BaseModel):
    """Shopify order as delivered by the orders/* webhooks."""

    id: Union[int, str]
    order_number: Optional[Union[int, str]] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    total_price: Optional[Union[str, float, int]] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    gateway: Optional[str] = None
    payment_gateway_names: List[str] = Field(default_factory=list)
    created_at: Optional[Any] = None
    billing_address: Optional[AddressSchema] = None
    shipping_address: Optional[AddressSchema] = None
    line_items: List[LineItemSchema] = Field(default_factory=list)

    class Config:
        extra = "allow"

    @property
    def display_number(self) -> str:
        """Order reference shown to the customer and sent to Delifast."""
        return str(self.order_number or self.name or self.id)

    @property
    def address(self) -> AddressSchema:
        return self.billing_address or self.shipping_address or AddressSchema()

    @property
    def payment_gateway(self) -> str:
        if self.gateway:
            return self.gateway
        return self.payment_gateway_names[0] if self.payment_gateway_names else ""
