from __future__ import annotations

from typing import Iterable, Protocol, TypeVar

from sqlalchemy import Select, inspect, select
from sqlalchemy.orm import Session

from ordersync.domain.orders import (
    Order,
    OrderAttributionInfo,
    OrderCoupon,
    OrderCustomField,
    OrderFeeLine,
    OrderGiftCard,
    OrderItem,
    OrderItemAttribute,
    OrderItemBundleItem,
    OrderItemProductAddOn,
    OrderItemTax,
    OrderRefundCondensed,
    OrderShippingLine,
    OrderTaxLine,
    ShippingLineTax,
)
from ordersync.persistence.models import (
    Base,
    OrderAttributionInfoModel,
    OrderCouponModel,
    OrderItemModel,
    OrderItemTaxModel,
    OrderModel,
    OrderRefundCondensedModel,
    OrderShippingLineModel,
)

RowT = TypeVar("RowT", bound=Base)


class StorageType(Protocol):
    """Primitives the order reconciler drives. Any datastore offering these can host it.

    The reconciler itself only needs `load_order`, `insert_new_object`,
    `delete_object` and `obtain_permanent_ids`; it matches children through the
    loaded order graph. The other `load_*` lookups find a single child by its
    site-scoped natural key for callers outside a reconciliation pass.
    """

    def load_order(self, site_id: int, order_id: int) -> OrderModel | None: ...

    def load_order_item(self, site_id: int, order_id: int, item_id: int) -> OrderItemModel | None: ...

    def load_order_item_tax(self, site_id: int, item_id: int, tax_id: int) -> OrderItemTaxModel | None: ...

    def load_order_coupon(self, site_id: int, coupon_id: int) -> OrderCouponModel | None: ...

    def load_order_shipping_line(self, site_id: int, shipping_id: int) -> OrderShippingLineModel | None: ...

    def load_order_refund_condensed(self, site_id: int, refund_id: int) -> OrderRefundCondensedModel | None: ...

    def insert_new_object(self, model: type[RowT]) -> RowT: ...

    def delete_object(self, row: Base) -> None: ...

    def obtain_permanent_ids(self, rows: Iterable[Base]) -> None: ...


class SqlAlchemyStorage:
    def __init__(self, session: Session):
        self.session = session

    def _first(self, stmt: Select):
        # Autoflush is off; lookups must see rows inserted earlier in the same pass.
        self.session.flush()
        return self.session.scalars(stmt.limit(1)).first()

    def load_order(self, site_id: int, order_id: int) -> OrderModel | None:
        stmt = select(OrderModel).where(OrderModel.site_id == site_id, OrderModel.order_id == order_id)
        return self._first(stmt)

    def load_orders(self, site_id: int) -> list[OrderModel]:
        stmt = select(OrderModel).where(OrderModel.site_id == site_id).order_by(OrderModel.order_id.asc())
        return list(self.session.scalars(stmt).all())

    def load_order_item(self, site_id: int, order_id: int, item_id: int) -> OrderItemModel | None:
        stmt = (
            select(OrderItemModel)
            .join(OrderModel, OrderItemModel.order_pk == OrderModel.id)
            .where(
                OrderModel.site_id == site_id,
                OrderModel.order_id == order_id,
                OrderItemModel.item_id == item_id,
            )
        )
        return self._first(stmt)

    def load_order_item_tax(self, site_id: int, item_id: int, tax_id: int) -> OrderItemTaxModel | None:
        stmt = (
            select(OrderItemTaxModel)
            .join(OrderItemModel, OrderItemTaxModel.item_pk == OrderItemModel.id)
            .join(OrderModel, OrderItemModel.order_pk == OrderModel.id)
            .where(
                OrderModel.site_id == site_id,
                OrderItemModel.item_id == item_id,
                OrderItemTaxModel.tax_id == tax_id,
            )
        )
        return self._first(stmt)

    def load_order_coupon(self, site_id: int, coupon_id: int) -> OrderCouponModel | None:
        stmt = (
            select(OrderCouponModel)
            .join(OrderModel, OrderCouponModel.order_pk == OrderModel.id)
            .where(OrderModel.site_id == site_id, OrderCouponModel.coupon_id == coupon_id)
        )
        return self._first(stmt)

    def load_order_shipping_line(self, site_id: int, shipping_id: int) -> OrderShippingLineModel | None:
        stmt = (
            select(OrderShippingLineModel)
            .join(OrderModel, OrderShippingLineModel.order_pk == OrderModel.id)
            .where(OrderModel.site_id == site_id, OrderShippingLineModel.shipping_id == shipping_id)
        )
        return self._first(stmt)

    def load_order_refund_condensed(self, site_id: int, refund_id: int) -> OrderRefundCondensedModel | None:
        stmt = (
            select(OrderRefundCondensedModel)
            .join(OrderModel, OrderRefundCondensedModel.order_pk == OrderModel.id)
            .where(OrderModel.site_id == site_id, OrderRefundCondensedModel.refund_id == refund_id)
        )
        return self._first(stmt)

    def insert_new_object(self, model: type[RowT]) -> RowT:
        row = model()
        self.session.add(row)
        return row

    def delete_object(self, row: Base) -> None:
        if inspect(row).pending:
            self.session.expunge(row)
            return
        self.session.delete(row)

    def obtain_permanent_ids(self, rows: Iterable[Base]) -> None:
        # Flushing assigns primary keys to every pending row, `rows` included.
        self.session.flush()


def order_from_row(row: OrderModel) -> Order:
    """Read-only view of a persisted order graph."""
    return Order(
        site_id=row.site_id,
        order_id=row.order_id,
        parent_id=row.parent_id,
        number=row.number,
        status=row.status,
        currency=row.currency,
        customer_note=row.customer_note,
        date_created=row.date_created,
        date_modified=row.date_modified,
        discount_total=row.discount_total,
        discount_tax=row.discount_tax,
        shipping_total=row.shipping_total,
        shipping_tax=row.shipping_tax,
        total=row.total,
        total_tax=row.total_tax,
        payment_method_id=row.payment_method_id,
        payment_method_title=row.payment_method_title,
        items=tuple(_item_from_row(item) for item in row.items),
        coupons=tuple(
            OrderCoupon(
                coupon_id=coupon.coupon_id,
                code=coupon.code,
                discount=coupon.discount,
                discount_tax=coupon.discount_tax,
            )
            for coupon in row.coupons
        ),
        fees=tuple(
            OrderFeeLine(
                fee_id=fee.fee_id,
                name=fee.name,
                tax_class=fee.tax_class,
                tax_status=fee.tax_status,
                total=fee.total,
                total_tax=fee.total_tax,
            )
            for fee in row.fees
        ),
        shipping_lines=tuple(
            OrderShippingLine(
                shipping_id=line.shipping_id,
                method_title=line.method_title,
                method_id=line.method_id,
                total=line.total,
                total_tax=line.total_tax,
                taxes=tuple(
                    ShippingLineTax(tax_id=tax.tax_id, subtotal=tax.subtotal, total=tax.total) for tax in line.taxes
                ),
            )
            for line in row.shipping_lines
        ),
        refunds=tuple(
            OrderRefundCondensed(refund_id=refund.refund_id, reason=refund.reason, total=refund.total)
            for refund in row.refunds
        ),
        taxes=tuple(
            OrderTaxLine(
                tax_id=tax.tax_id,
                rate_code=tax.rate_code,
                rate_id=tax.rate_id,
                label=tax.label,
                is_compound_tax=tax.is_compound_tax,
                total_tax=tax.total_tax,
                total_shipping_tax=tax.total_shipping_tax,
                rate_percent=tax.rate_percent,
            )
            for tax in row.taxes
        ),
        custom_fields=tuple(
            OrderCustomField(metadata_id=field.metadata_id, key=field.key, value=field.value)
            for field in row.custom_fields
        ),
        gift_cards=tuple(
            OrderGiftCard(gift_card_id=card.gift_card_id, code=card.code, amount=card.amount) for card in row.gift_cards
        ),
        attribution_info=_attribution_from_row(row.attribution_info),
    )


def _item_from_row(row: OrderItemModel) -> OrderItem:
    return OrderItem(
        item_id=row.item_id,
        name=row.name,
        product_id=row.product_id,
        variation_id=row.variation_id,
        quantity=row.quantity,
        price=row.price,
        sku=row.sku,
        subtotal=row.subtotal,
        subtotal_tax=row.subtotal_tax,
        tax_class=row.tax_class,
        taxes=tuple(OrderItemTax(tax_id=tax.tax_id, subtotal=tax.subtotal, total=tax.total) for tax in row.taxes),
        total=row.total,
        total_tax=row.total_tax,
        attributes=tuple(
            OrderItemAttribute(meta_id=attribute.meta_id, name=attribute.name, value=attribute.value)
            for attribute in row.attributes
        ),
        parent=row.parent,
        add_ons=tuple(
            OrderItemProductAddOn(add_on_id=add_on.add_on_id, key=add_on.key, value=add_on.value)
            for add_on in row.add_ons
        ),
        bundle_configuration=tuple(OrderItemBundleItem.model_validate(entry) for entry in row.bundle_configuration or []),
    )


def _attribution_from_row(row: OrderAttributionInfoModel | None) -> OrderAttributionInfo | None:
    if row is None:
        return None
    return OrderAttributionInfo(
        source_type=row.source_type,
        campaign=row.campaign,
        source=row.source,
        medium=row.medium,
        device_type=row.device_type,
        customer_origin=row.customer_origin,
        session_page_views=row.session_page_views,
    )
