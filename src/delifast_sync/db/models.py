"""SQLAlchemy models for tenant settings, the shipment ledger and the audit log."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TenantSettings(Base):
    """
    Per-shop Delifast configuration.

    Also owns the shop's cached Delifast bearer token. A shop without a
    username and password is inactive for every lifecycle operation.
    """

    __tablename__ = "tenant_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Credentials (password encrypted at rest)
    delifast_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delifast_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delifast_customer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Operating mode
    mode: Mapped[str] = mapped_column(String(20), default="manual", nullable=False)
    auto_send_status: Mapped[str] = mapped_column(String(20), default="paid", nullable=False)

    # Sender profile
    sender_no: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sender_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sender_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sender_mobile: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sender_city_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sender_area_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Shipping defaults
    default_weight: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    default_dimensions: Mapped[str] = mapped_column(String(50), default="10x10x10", nullable=False)
    default_city_id: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    payment_method_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    fees_on_sender: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    fees_paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Cached Delifast token
    api_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Shopify Admin API token for order annotation (encrypted at rest)
    shopify_access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.delifast_username and self.delifast_password)


class Shipment(Base):
    """
    Ledger entry tracking one Shopify order's Delifast shipment.

    One row per (shop, Shopify order).
    """

    __tablename__ = "shipments"
    __table_args__ = (
        UniqueConstraint("shop", "shopify_order_id", name="uq_shipments_shop_order"),
        Index("ix_shipments_shop_status", "shop", "status"),
        Index("ix_shipments_is_temporary_id", "is_temporary_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(255), nullable=False)
    shopify_order_id: Mapped[str] = mapped_column(String(50), nullable=False)
    shopify_order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    shipment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_temporary_id: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="new", nullable=False)
    status_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Temp-ID lookup schedule
    lookup_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_lookup_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_lookup_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    sent_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "shop": self.shop,
            "shopify_order_id": self.shopify_order_id,
            "shopify_order_number": self.shopify_order_number,
            "shipment_id": self.shipment_id,
            "is_temporary_id": self.is_temporary_id,
            "status": self.status,
            "status_details": self.status_details,
            "lookup_attempts": self.lookup_attempts,
            "last_lookup_at": self.last_lookup_at,
            "next_lookup_at": self.next_lookup_at,
            "sent_at": self.sent_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class LogEntry(Base):
    """Per-shop audit trail entry."""

    __tablename__ = "logs"
    __table_args__ = (
        Index("ix_logs_shop_level", "shop", "level"),
        Index("ix_logs_shop_created_at", "shop", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
