"""Persist authoritative orders into local storage.

Keyed child collections are reconciled the same way: children whose natural key
matches a stored row update that row in place, unknown keys insert a new row,
and stored rows whose key is gone are deleted. Row identity is preserved for
everything that still exists.

Item attributes and add-ons have no such key and are replaced as a set when
they change. The attribution info is a single optional row per order.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ordersync.domain.orders import (
    Order,
    OrderAttributionInfo,
    OrderCoupon,
    OrderCustomField,
    OrderFeeLine,
    OrderGiftCard,
    OrderItem,
    OrderItemTax,
    OrderRefundCondensed,
    OrderShippingLine,
    OrderTaxLine,
    ShippingLineTax,
    status_value,
)
from ordersync.persistence.models import (
    Base,
    OrderAttributionInfoModel,
    OrderCouponModel,
    OrderCustomFieldModel,
    OrderFeeLineModel,
    OrderGiftCardModel,
    OrderItemAttributeModel,
    OrderItemModel,
    OrderItemProductAddOnModel,
    OrderItemTaxModel,
    OrderModel,
    OrderRefundCondensedModel,
    OrderShippingLineModel,
    OrderTaxLineModel,
    ShippingLineTaxModel,
)
from ordersync.persistence.storage import StorageType

logger = logging.getLogger(__name__)

ReadOnlyT = TypeVar("ReadOnlyT")
RowT = TypeVar("RowT", bound=Base)


def _reconcile(
    storage: StorageType,
    stored: list[RowT],
    incoming: Sequence[ReadOnlyT],
    model: type[RowT],
    key: Callable[[Any], Hashable],
    apply: Callable[[RowT, ReadOnlyT], None],
    children: Callable[[RowT, ReadOnlyT], None] | None = None,
) -> None:
    """Upsert `incoming` into the `stored` relationship collection and prune orphans.

    `key` reads the natural key from both read-only values and stored rows.
    """
    existing: dict[Hashable, RowT] = {key(row): row for row in stored}
    seen: set[Hashable] = set()

    for value in incoming:
        natural_key = key(value)
        row = existing.get(natural_key)
        if row is None:
            row = storage.insert_new_object(model)
            apply(row, value)
            stored.append(row)
            existing[natural_key] = row
        else:
            apply(row, value)
        seen.add(natural_key)
        if children is not None:
            children(row, value)

    for row in list(stored):
        if key(row) not in seen:
            stored.remove(row)
            storage.delete_object(row)


def _apply_order(row: OrderModel, order: Order) -> None:
    row.site_id = order.site_id
    row.order_id = order.order_id
    row.parent_id = order.parent_id
    row.number = order.number
    row.status = status_value(order.status)
    row.currency = order.currency
    row.customer_note = order.customer_note
    row.date_created = order.date_created
    row.date_modified = order.date_modified
    row.discount_total = order.discount_total
    row.discount_tax = order.discount_tax
    row.shipping_total = order.shipping_total
    row.shipping_tax = order.shipping_tax
    row.total = order.total
    row.total_tax = order.total_tax
    row.payment_method_id = order.payment_method_id
    row.payment_method_title = order.payment_method_title


def _apply_item(row: OrderItemModel, item: OrderItem) -> None:
    row.item_id = item.item_id
    row.name = item.name
    row.product_id = item.product_id
    row.variation_id = item.variation_id
    row.quantity = item.quantity
    row.price = item.price
    row.sku = item.sku
    row.subtotal = item.subtotal
    row.subtotal_tax = item.subtotal_tax
    row.tax_class = item.tax_class
    row.total = item.total
    row.total_tax = item.total_tax
    row.parent = item.parent
    row.bundle_configuration = [entry.model_dump(mode="json") for entry in item.bundle_configuration]


def _apply_item_tax(row: OrderItemTaxModel, tax: OrderItemTax) -> None:
    row.tax_id = tax.tax_id
    row.subtotal = tax.subtotal
    row.total = tax.total


def _apply_coupon(row: OrderCouponModel, coupon: OrderCoupon) -> None:
    row.coupon_id = coupon.coupon_id
    row.code = coupon.code
    row.discount = coupon.discount
    row.discount_tax = coupon.discount_tax


def _apply_fee(row: OrderFeeLineModel, fee: OrderFeeLine) -> None:
    row.fee_id = fee.fee_id
    row.name = fee.name
    row.tax_class = fee.tax_class
    row.tax_status = fee.tax_status
    row.total = fee.total
    row.total_tax = fee.total_tax


def _apply_shipping_line(row: OrderShippingLineModel, line: OrderShippingLine) -> None:
    row.shipping_id = line.shipping_id
    row.method_title = line.method_title
    row.method_id = line.method_id
    row.total = line.total
    row.total_tax = line.total_tax


def _apply_shipping_line_tax(row: ShippingLineTaxModel, tax: ShippingLineTax) -> None:
    row.tax_id = tax.tax_id
    row.subtotal = tax.subtotal
    row.total = tax.total


def _apply_refund(row: OrderRefundCondensedModel, refund: OrderRefundCondensed) -> None:
    row.refund_id = refund.refund_id
    row.reason = refund.reason
    row.total = refund.total


def _apply_tax_line(row: OrderTaxLineModel, tax: OrderTaxLine) -> None:
    row.tax_id = tax.tax_id
    row.rate_code = tax.rate_code
    row.rate_id = tax.rate_id
    row.label = tax.label
    row.is_compound_tax = tax.is_compound_tax
    row.total_tax = tax.total_tax
    row.total_shipping_tax = tax.total_shipping_tax
    row.rate_percent = tax.rate_percent


def _apply_custom_field(row: OrderCustomFieldModel, field: OrderCustomField) -> None:
    row.metadata_id = field.metadata_id
    row.key = field.key
    row.value = field.value


def _apply_gift_card(row: OrderGiftCardModel, gift_card: OrderGiftCard) -> None:
    row.gift_card_id = gift_card.gift_card_id
    row.code = gift_card.code
    row.amount = gift_card.amount


def _apply_attribution_info(row: OrderAttributionInfoModel, info: OrderAttributionInfo) -> None:
    row.source_type = info.source_type
    row.campaign = info.campaign
    row.source = info.source
    row.medium = info.medium
    row.device_type = info.device_type
    row.customer_origin = info.customer_origin
    row.session_page_views = info.session_page_views


_ATTRIBUTE_FIELDS = ("meta_id", "name", "value")
_ADD_ON_FIELDS = ("add_on_id", "key", "value")


def _replace_all(
    storage: StorageType,
    stored: list[RowT],
    incoming: Sequence[ReadOnlyT],
    model: type[RowT],
    fields: tuple[str, ...],
) -> None:
    """Replace a keyless collection wholesale, unless it is unchanged."""

    def values(entry: Any) -> tuple:
        return tuple(getattr(entry, field) for field in fields)

    if [values(row) for row in stored] == [values(value) for value in incoming]:
        return
    for existing in list(stored):
        stored.remove(existing)
        storage.delete_object(existing)
    for value in incoming:
        row = storage.insert_new_object(model)
        for field in fields:
            setattr(row, field, getattr(value, field))
        stored.append(row)


class OrderGraphReconciler:
    def __init__(self, storage: StorageType):
        self.storage = storage

    def upsert(self, orders: Sequence[Order], inserting_search_results: bool = False) -> list[OrderModel]:
        """Update or insert `orders` and their nested graphs.

        `inserting_search_results` marks newly inserted orders as known only
        through a search.
        """
        rows = [self._upsert_order(order, inserting_search_results) for order in orders]

        try:
            # Callers may reference the orders before the session is committed.
            self.storage.obtain_permanent_ids(rows)
        except SQLAlchemyError as exc:
            logger.error("failed to obtain permanent ids for %d orders: %s", len(rows), exc)

        return rows

    def _upsert_order(self, order: Order, inserting_search_results: bool) -> OrderModel:
        row = self.storage.load_order(order.site_id, order.order_id)
        inserted = row is None
        if row is None:
            row = self.storage.insert_new_object(OrderModel)
        _apply_order(row, order)

        # Keep the flag on orders that were only ever seen through search; clear it
        # once the order shows up in a regular sync.
        row.exclusive_for_search = inserting_search_results and (inserted or bool(row.exclusive_for_search))

        self._handle_items(order, row)
        _reconcile(self.storage, row.coupons, order.coupons, OrderCouponModel, _coupon_key, _apply_coupon)
        _reconcile(self.storage, row.fees, order.fees, OrderFeeLineModel, _fee_key, _apply_fee)
        _reconcile(
            self.storage,
            row.shipping_lines,
            order.shipping_lines,
            OrderShippingLineModel,
            _shipping_key,
            _apply_shipping_line,
            children=self._handle_shipping_line_taxes,
        )
        _reconcile(self.storage, row.refunds, order.refunds, OrderRefundCondensedModel, _refund_key, _apply_refund)
        _reconcile(self.storage, row.taxes, order.taxes, OrderTaxLineModel, _tax_key, _apply_tax_line)
        _reconcile(
            self.storage,
            row.custom_fields,
            order.custom_fields,
            OrderCustomFieldModel,
            _metadata_key,
            _apply_custom_field,
        )
        _reconcile(self.storage, row.gift_cards, order.gift_cards, OrderGiftCardModel, _gift_card_key, _apply_gift_card)
        self._handle_attribution_info(order, row)
        logger.debug("upserted order site_id=%s order_id=%s inserted=%s", order.site_id, order.order_id, inserted)
        return row

    def _handle_items(self, order: Order, row: OrderModel) -> None:
        _reconcile(
            self.storage,
            row.items,
            order.items,
            OrderItemModel,
            _item_key,
            _apply_item,
            children=self._handle_item_children,
        )

    def _handle_item_children(self, row: OrderItemModel, item: OrderItem) -> None:
        _reconcile(self.storage, row.taxes, item.taxes, OrderItemTaxModel, _tax_key, _apply_item_tax)
        # Attributes and add-ons carry no key that survives an edit on the store side.
        _replace_all(self.storage, row.attributes, item.attributes, OrderItemAttributeModel, _ATTRIBUTE_FIELDS)
        _replace_all(self.storage, row.add_ons, item.add_ons, OrderItemProductAddOnModel, _ADD_ON_FIELDS)

    def _handle_attribution_info(self, order: Order, row: OrderModel) -> None:
        existing = row.attribution_info
        if order.attribution_info is None:
            if existing is not None:
                row.attribution_info = None
                self.storage.delete_object(existing)
            return
        if existing is None:
            existing = self.storage.insert_new_object(OrderAttributionInfoModel)
            row.attribution_info = existing
        _apply_attribution_info(existing, order.attribution_info)

    def _handle_shipping_line_taxes(self, row: OrderShippingLineModel, line: OrderShippingLine) -> None:
        _reconcile(self.storage, row.taxes, line.taxes, ShippingLineTaxModel, _tax_key, _apply_shipping_line_tax)


def _item_key(value: Any) -> Hashable:
    return value.item_id


def _tax_key(value: Any) -> Hashable:
    return value.tax_id


def _coupon_key(value: Any) -> Hashable:
    return value.coupon_id


def _fee_key(value: Any) -> Hashable:
    return value.fee_id


def _shipping_key(value: Any) -> Hashable:
    return value.shipping_id


def _refund_key(value: Any) -> Hashable:
    return value.refund_id


def _metadata_key(value: Any) -> Hashable:
    return value.metadata_id


def _gift_card_key(value: Any) -> Hashable:
    return value.gift_card_id
