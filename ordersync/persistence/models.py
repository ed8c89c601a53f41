from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON, TypeDecorator

from ordersync.sync.line_item_math import format_decimal, parse_decimal


def _json_type():
    return JSON().with_variant(JSONB(astext_type=Text()), "postgresql")


class DecimalString(TypeDecorator):
    """Decimal stored as its plain string form, so SQLite keeps every digit."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format_decimal(parse_decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return parse_decimal(value)


class Base(DeclarativeBase):
    pass


class OrderModel(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("site_id", "order_id", name="uq_orders_site_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    order_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    parent_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    number: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="pending")
    currency: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    customer_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_created: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_modified: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    discount_total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    discount_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    shipping_total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    shipping_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    payment_method_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    payment_method_title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    # Orders only known through a search result, not (yet) part of a synced list.
    exclusive_for_search: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    items: Mapped[list[OrderItemModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItemModel.id"
    )
    coupons: Mapped[list[OrderCouponModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderCouponModel.id"
    )
    fees: Mapped[list[OrderFeeLineModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderFeeLineModel.id"
    )
    shipping_lines: Mapped[list[OrderShippingLineModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderShippingLineModel.id"
    )
    refunds: Mapped[list[OrderRefundCondensedModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderRefundCondensedModel.id"
    )
    taxes: Mapped[list[OrderTaxLineModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderTaxLineModel.id"
    )
    custom_fields: Mapped[list[OrderCustomFieldModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderCustomFieldModel.id"
    )
    gift_cards: Mapped[list[OrderGiftCardModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderGiftCardModel.id"
    )
    attribution_info: Mapped[Optional[OrderAttributionInfoModel]] = relationship(
        back_populates="order", cascade="all, delete-orphan", uselist=False
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_pk", "item_id", name="uq_order_items_order_item"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    variation_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    quantity: Mapped[Decimal] = mapped_column(DecimalString, nullable=False, default=Decimal("0"))
    price: Mapped[Decimal] = mapped_column(DecimalString, nullable=False, default=Decimal("0"))
    sku: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    subtotal: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    subtotal_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    tax_class: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    parent: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    bundle_configuration: Mapped[list] = mapped_column(_json_type(), nullable=False, default=list)

    order: Mapped[OrderModel] = relationship(back_populates="items")
    taxes: Mapped[list[OrderItemTaxModel]] = relationship(
        back_populates="item", cascade="all, delete-orphan", order_by="OrderItemTaxModel.id"
    )
    attributes: Mapped[list[OrderItemAttributeModel]] = relationship(
        back_populates="item", cascade="all, delete-orphan", order_by="OrderItemAttributeModel.id"
    )
    add_ons: Mapped[list[OrderItemProductAddOnModel]] = relationship(
        back_populates="item", cascade="all, delete-orphan", order_by="OrderItemProductAddOnModel.id"
    )


class OrderItemTaxModel(Base):
    __tablename__ = "order_item_taxes"
    __table_args__ = (
        UniqueConstraint("item_pk", "tax_id", name="uq_order_item_taxes_item_tax"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_pk: Mapped[int] = mapped_column(ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False)
    tax_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    subtotal: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    item: Mapped[OrderItemModel] = relationship(back_populates="taxes")


class OrderItemAttributeModel(Base):
    __tablename__ = "order_item_attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_pk: Mapped[int] = mapped_column(ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False)
    meta_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    item: Mapped[OrderItemModel] = relationship(back_populates="attributes")


class OrderItemProductAddOnModel(Base):
    __tablename__ = "order_item_add_ons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_pk: Mapped[int] = mapped_column(ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False)
    add_on_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    key: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    item: Mapped[OrderItemModel] = relationship(back_populates="add_ons")


class OrderCouponModel(Base):
    __tablename__ = "order_coupons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    coupon_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    code: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    discount: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    discount_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    order: Mapped[OrderModel] = relationship(back_populates="coupons")


class OrderFeeLineModel(Base):
    __tablename__ = "order_fee_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    fee_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    tax_class: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    tax_status: Mapped[str] = mapped_column(String(32), nullable=False, default="taxable")
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    order: Mapped[OrderModel] = relationship(back_populates="fees")


class OrderShippingLineModel(Base):
    __tablename__ = "order_shipping_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    shipping_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    method_title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    method_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    order: Mapped[OrderModel] = relationship(back_populates="shipping_lines")
    taxes: Mapped[list[ShippingLineTaxModel]] = relationship(
        back_populates="shipping_line", cascade="all, delete-orphan", order_by="ShippingLineTaxModel.id"
    )


class ShippingLineTaxModel(Base):
    __tablename__ = "shipping_line_taxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shipping_line_pk: Mapped[int] = mapped_column(
        ForeignKey("order_shipping_lines.id", ondelete="CASCADE"),
        nullable=False,
    )
    tax_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    subtotal: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    shipping_line: Mapped[OrderShippingLineModel] = relationship(back_populates="taxes")


class OrderRefundCondensedModel(Base):
    __tablename__ = "order_refunds_condensed"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    refund_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    order: Mapped[OrderModel] = relationship(back_populates="refunds")


class OrderTaxLineModel(Base):
    __tablename__ = "order_tax_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    tax_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rate_code: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    rate_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    label: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    is_compound_tax: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    total_shipping_tax: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    rate_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    order: Mapped[OrderModel] = relationship(back_populates="taxes")


class OrderCustomFieldModel(Base):
    __tablename__ = "order_custom_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    metadata_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    key: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")

    order: Mapped[OrderModel] = relationship(back_populates="custom_fields")


class OrderGiftCardModel(Base):
    __tablename__ = "order_gift_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    gift_card_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    code: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(DecimalString, nullable=False, default=Decimal("0"))

    order: Mapped[OrderModel] = relationship(back_populates="gift_cards")


class OrderAttributionInfoModel(Base):
    __tablename__ = "order_attribution_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_pk: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    source_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    campaign: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    medium: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    device_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    customer_origin: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    session_page_views: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    order: Mapped[OrderModel] = relationship(back_populates="attribution_info")


Index("ix_order_items_product_id", OrderItemModel.product_id)
Index("ix_order_coupons_coupon_id", OrderCouponModel.coupon_id)
Index("ix_order_shipping_lines_shipping_id", OrderShippingLineModel.shipping_id)
Index("ix_order_refunds_condensed_refund_id", OrderRefundCondensedModel.refund_id)
