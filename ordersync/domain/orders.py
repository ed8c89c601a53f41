from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from ordersync.sync import line_item_math


class OrderStatus(str, Enum):
    AUTO_DRAFT = "auto-draft"
    PENDING = "pending"
    PROCESSING = "processing"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"
    CHECKOUT_DRAFT = "checkout-draft"


def status_value(status: OrderStatus | str) -> str:
    return status.value if isinstance(status, OrderStatus) else status


class _ReadOnly(BaseModel):
    model_config = ConfigDict(frozen=True)


class OrderItemTax(_ReadOnly):
    tax_id: int
    subtotal: str = ""
    total: str = ""


class OrderItemAttribute(_ReadOnly):
    meta_id: int = 0
    name: str
    value: str


class OrderItemProductAddOn(_ReadOnly):
    """A product add-on chosen for an order item."""

    add_on_id: int | None = None
    key: str
    value: str = ""


class OrderItemBundleItem(_ReadOnly):
    """How one bundle slot was filled when the parent item was configured."""

    bundled_item_id: int
    product_id: int
    quantity: Decimal
    is_optional_and_selected: bool | None = None
    variation_id: int | None = None
    variation_attributes: tuple[OrderItemAttribute, ...] | None = None


class OrderItem(_ReadOnly):
    item_id: int = 0
    name: str = ""
    product_id: int
    variation_id: int = 0
    quantity: Decimal
    price: Decimal = Decimal("0")
    sku: str | None = None
    subtotal: str = ""
    subtotal_tax: str = ""
    tax_class: str = ""
    taxes: tuple[OrderItemTax, ...] = ()
    total: str = ""
    total_tax: str = ""
    attributes: tuple[OrderItemAttribute, ...] = ()
    parent: int | None = None
    add_ons: tuple[OrderItemProductAddOn, ...] = ()
    bundle_configuration: tuple[OrderItemBundleItem, ...] = ()

    @property
    def product_or_variation_id(self) -> int:
        return self.variation_id if self.variation_id != 0 else self.product_id

    @property
    def discount(self) -> Decimal:
        return line_item_math.parse_decimal(self.subtotal) - line_item_math.parse_decimal(self.total)

    @property
    def base_price(self) -> Decimal:
        return line_item_math.base_price(self)


class OrderCoupon(_ReadOnly):
    coupon_id: int
    code: str = ""
    discount: str = ""
    discount_tax: str = ""


class OrderFeeLine(_ReadOnly):
    fee_id: int
    name: str = ""
    tax_class: str = ""
    tax_status: str = "taxable"
    total: str = ""
    total_tax: str = ""


class ShippingLineTax(_ReadOnly):
    tax_id: int
    subtotal: str = ""
    total: str = ""


class OrderShippingLine(_ReadOnly):
    shipping_id: int
    method_title: str = ""
    method_id: str | None = None
    total: str = ""
    total_tax: str = ""
    taxes: tuple[ShippingLineTax, ...] = ()


class OrderRefundCondensed(_ReadOnly):
    refund_id: int
    reason: str | None = None
    total: str = ""


class OrderTaxLine(_ReadOnly):
    tax_id: int
    rate_code: str = ""
    rate_id: int = 0
    label: str = ""
    is_compound_tax: bool = False
    total_tax: str = ""
    total_shipping_tax: str = ""
    rate_percent: float = 0.0


class OrderGiftCard(_ReadOnly):
    gift_card_id: int
    code: str = ""
    amount: Decimal = Decimal("0")


class OrderAttributionInfo(_ReadOnly):
    """Where the order came from, as recorded by the store at checkout."""

    source_type: str | None = None
    campaign: str | None = None
    source: str | None = None
    medium: str | None = None
    device_type: str | None = None
    customer_origin: str | None = None
    session_page_views: str | None = None


class OrderCustomField(_ReadOnly):
    metadata_id: int
    key: str
    value: str = ""


class Order(_ReadOnly):
    site_id: int
    order_id: int
    parent_id: int = 0
    number: str = ""
    # Unknown statuses (plugins register their own) are kept as plain strings.
    status: Annotated[OrderStatus | str, Field(union_mode="left_to_right")] = OrderStatus.PENDING
    currency: str = ""
    customer_note: str | None = None
    date_created: datetime | None = None
    date_modified: datetime | None = None
    discount_total: str = ""
    discount_tax: str = ""
    shipping_total: str = ""
    shipping_tax: str = ""
    total: str = ""
    total_tax: str = ""
    payment_method_id: str = ""
    payment_method_title: str = ""
    items: tuple[OrderItem, ...] = ()
    coupons: tuple[OrderCoupon, ...] = ()
    fees: tuple[OrderFeeLine, ...] = ()
    shipping_lines: tuple[OrderShippingLine, ...] = ()
    refunds: tuple[OrderRefundCondensed, ...] = ()
    taxes: tuple[OrderTaxLine, ...] = ()
    custom_fields: tuple[OrderCustomField, ...] = ()
    gift_cards: tuple[OrderGiftCard, ...] = ()
    attribution_info: OrderAttributionInfo | None = None

    def with_items(self, items) -> Order:
        return self.model_copy(update={"items": tuple(items)})

    def child_items(self, parent_item_id: int) -> tuple[OrderItem, ...]:
        return tuple(item for item in self.items if item.parent == parent_item_id)

    def item(self, item_id: int) -> OrderItem | None:
        return next((item for item in self.items if item.item_id == item_id), None)
