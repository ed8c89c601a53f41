from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ordersync.domain.orders import (
    Order,
    OrderAttributionInfo,
    OrderCoupon,
    OrderCustomField,
    OrderFeeLine,
    OrderGiftCard,
    OrderItem,
    OrderItemAttribute,
    OrderItemProductAddOn,
    OrderItemTax,
    OrderRefundCondensed,
    OrderShippingLine,
    OrderStatus,
    OrderTaxLine,
    ShippingLineTax,
)
from ordersync.persistence.models import (
    OrderAttributionInfoModel,
    OrderGiftCardModel,
    OrderItemAttributeModel,
    OrderItemProductAddOnModel,
    OrderItemTaxModel,
    OrderModel,
)
from ordersync.persistence.storage import SqlAlchemyStorage, order_from_row
from ordersync.reconciliation.orders_upsert import OrderGraphReconciler


class CountingStorage(SqlAlchemyStorage):
    def __init__(self, session):
        super().__init__(session)
        self.inserted: list[str] = []
        self.deleted: list[str] = []

    def insert_new_object(self, model):
        self.inserted.append(model.__name__)
        return super().insert_new_object(model)

    def delete_object(self, row):
        self.deleted.append(type(row).__name__)
        super().delete_object(row)


class FailingIdsStorage(SqlAlchemyStorage):
    def obtain_permanent_ids(self, rows):
        raise SQLAlchemyError("permanent ids unavailable")


def _item(item_id: int, *tax_ids: int, **overrides) -> OrderItem:
    values = {
        "item_id": item_id,
        "product_id": 10,
        "quantity": Decimal("1"),
        "price": Decimal("5"),
        "subtotal": "5",
        "total": "5",
        "taxes": tuple(OrderItemTax(tax_id=tax_id, subtotal="0.5", total="0.5") for tax_id in tax_ids),
    }
    values.update(overrides)
    return OrderItem(**values)


def _full_order(**overrides) -> Order:
    values = {
        "site_id": 1,
        "order_id": 100,
        "number": "100",
        "status": OrderStatus.PROCESSING,
        "currency": "USD",
        "date_created": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        "total": "16.5",
        "items": (
            _item(
                1,
                7,
                attributes=(OrderItemAttribute(meta_id=1, name="Size", value="L"),),
                add_ons=(OrderItemProductAddOn(add_on_id=11, key="Engraving", value="A.B."),),
            ),
            _item(2, product_id=11, parent=1),
        ),
        "coupons": (OrderCoupon(coupon_id=3, code="SPRING", discount="1"),),
        "fees": (OrderFeeLine(fee_id=4, name="Gift wrap", total="2"),),
        "shipping_lines": (
            OrderShippingLine(
                shipping_id=5,
                method_title="Flat rate",
                method_id="flat_rate",
                total="4",
                taxes=(ShippingLineTax(tax_id=7, subtotal="0.4", total="0.4"),),
            ),
        ),
        "refunds": (OrderRefundCondensed(refund_id=6, reason="damaged", total="-1"),),
        "taxes": (OrderTaxLine(tax_id=7, rate_code="US-TAX", rate_id=7, label="Tax", total_tax="0.9", rate_percent=10.0),),
        "custom_fields": (OrderCustomField(metadata_id=8, key="gift_message", value="Enjoy"),),
        "gift_cards": (OrderGiftCard(gift_card_id=12, code="GC-1234", amount=Decimal("10.00")),),
        "attribution_info": OrderAttributionInfo(source_type="utm", source="newsletter", medium="email"),
    }
    values.update(overrides)
    return Order(**values)


def test_upsert_inserts_full_graph(session, storage):
    [row] = OrderGraphReconciler(storage).upsert([_full_order()])

    assert row.id is not None
    stored = order_from_row(storage.load_order(1, 100))
    assert stored.status == OrderStatus.PROCESSING
    assert stored.currency == "USD"
    assert [item.item_id for item in stored.items] == [1, 2]
    assert stored.items[0].taxes == (OrderItemTax(tax_id=7, subtotal="0.5", total="0.5"),)
    assert stored.items[0].attributes == (OrderItemAttribute(meta_id=1, name="Size", value="L"),)
    assert stored.items[1].parent == 1
    assert stored.coupons[0].code == "SPRING"
    assert stored.fees[0].name == "Gift wrap"
    assert stored.shipping_lines[0].taxes[0].tax_id == 7
    assert stored.refunds[0].reason == "damaged"
    assert stored.taxes[0].rate_percent == 10.0
    assert stored.custom_fields[0].value == "Enjoy"
    assert stored.items[0].add_ons == (OrderItemProductAddOn(add_on_id=11, key="Engraving", value="A.B."),)
    assert stored.gift_cards == (OrderGiftCard(gift_card_id=12, code="GC-1234", amount=Decimal("10")),)
    assert stored.attribution_info.source == "newsletter"


def test_upsert_prunes_and_inserts_item_taxes(session, storage):
    reconciler = OrderGraphReconciler(storage)
    [row] = reconciler.upsert([_full_order(items=(_item(1, 100, 200),))])
    tax_b_pk = next(tax.id for tax in row.items[0].taxes if tax.tax_id == 200)

    updated_item = _item(1, 200, 300).model_copy(
        update={
            "taxes": (
                OrderItemTax(tax_id=200, subtotal="0.7", total="0.7"),
                OrderItemTax(tax_id=300, subtotal="0.1", total="0.1"),
            )
        }
    )
    reconciler.upsert([_full_order(items=(updated_item,))])

    taxes = session.scalars(select(OrderItemTaxModel).order_by(OrderItemTaxModel.tax_id)).all()
    assert [tax.tax_id for tax in taxes] == [200, 300]
    assert taxes[0].id == tax_b_pk
    assert taxes[0].total == "0.7"


def test_upsert_twice_is_idempotent(session):
    storage = CountingStorage(session)
    reconciler = OrderGraphReconciler(storage)
    order = _full_order()

    reconciler.upsert([order])
    first_inserts = len(storage.inserted)
    storage.inserted.clear()
    storage.deleted.clear()

    reconciler.upsert([order])

    assert first_inserts > 0
    assert storage.inserted == []
    assert storage.deleted == []


def test_upsert_preserves_row_identity_and_deletes_orphans(session, storage):
    reconciler = OrderGraphReconciler(storage)
    [row] = reconciler.upsert([_full_order()])
    order_pk = row.id
    item_pk = next(item.id for item in row.items if item.item_id == 1)

    [row] = reconciler.upsert(
        [
            _full_order(
                status="wc-custom",
                items=(_item(1, 7, quantity=Decimal("3"), subtotal="15", total="15"),),
                coupons=(),
                fees=(OrderFeeLine(fee_id=9, name="Rush"),),
                shipping_lines=(OrderShippingLine(shipping_id=5, method_title="Express", total="9"),),
                refunds=(),
                custom_fields=(),
            )
        ]
    )

    assert row.id == order_pk
    assert [(item.id, item.item_id, item.quantity) for item in row.items] == [(item_pk, 1, Decimal("3"))]
    assert row.coupons == []
    assert [fee.fee_id for fee in row.fees] == [9]
    assert row.shipping_lines[0].method_title == "Express"
    assert row.shipping_lines[0].taxes == []
    assert row.refunds == []
    assert row.custom_fields == []
    assert session.scalar(select(func.count()).select_from(OrderItemAttributeModel)) == 0
    assert order_from_row(row).status == "wc-custom"


def test_changed_attributes_are_replaced(session):
    storage = CountingStorage(session)
    reconciler = OrderGraphReconciler(storage)
    reconciler.upsert([_full_order()])
    storage.inserted.clear()

    reconciler.upsert(
        [
            _full_order(
                items=(
                    _item(
                        1,
                        7,
                        attributes=(OrderItemAttribute(meta_id=1, name="Size", value="XL"),),
                        add_ons=(OrderItemProductAddOn(add_on_id=11, key="Engraving", value="A.B."),),
                    ),
                    _item(2, product_id=11, parent=1),
                )
            )
        ]
    )

    assert storage.inserted == ["OrderItemAttributeModel"]
    assert storage.deleted == ["OrderItemAttributeModel"]
    values = session.scalars(select(OrderItemAttributeModel.value)).all()
    assert values == ["XL"]


def test_search_results_flag(session, storage):
    reconciler = OrderGraphReconciler(storage)

    [searched] = reconciler.upsert([_full_order(order_id=200)], inserting_search_results=True)
    assert searched.exclusive_for_search is True

    # a later search hit keeps the flag
    [searched] = reconciler.upsert([_full_order(order_id=200)], inserting_search_results=True)
    assert searched.exclusive_for_search is True

    # a regular sync clears it for good
    [synced] = reconciler.upsert([_full_order(order_id=200)])
    assert synced.exclusive_for_search is False
    [synced] = reconciler.upsert([_full_order(order_id=200)], inserting_search_results=True)
    assert synced.exclusive_for_search is False


def test_existing_order_is_not_flagged_by_search(session, storage):
    reconciler = OrderGraphReconciler(storage)
    reconciler.upsert([_full_order()])

    [row] = reconciler.upsert([_full_order()], inserting_search_results=True)

    assert row.exclusive_for_search is False


def test_multiple_orders_in_one_pass(session, storage):
    rows = OrderGraphReconciler(storage).upsert(
        [_full_order(order_id=1), _full_order(order_id=2, coupons=(OrderCoupon(coupon_id=33),))]
    )

    assert [row.order_id for row in rows] == [1, 2]
    assert session.scalar(select(func.count()).select_from(OrderModel)) == 2
    assert [order.order_id for order in map(order_from_row, storage.load_orders(1))] == [1, 2]


def test_permanent_id_failure_is_logged(session, caplog):
    reconciler = OrderGraphReconciler(FailingIdsStorage(session))

    with caplog.at_level(logging.ERROR, logger="ordersync.reconciliation.orders_upsert"):
        rows = reconciler.upsert([_full_order()])

    assert len(rows) == 1
    assert "permanent ids" in caplog.text


def test_gift_cards_are_matched_by_gift_card_id(session, storage):
    reconciler = OrderGraphReconciler(storage)
    [row] = reconciler.upsert(
        [_full_order(gift_cards=(OrderGiftCard(gift_card_id=12, amount=Decimal("10")), OrderGiftCard(gift_card_id=13)))]
    )
    kept_pk = next(card.id for card in row.gift_cards if card.gift_card_id == 12)

    [row] = reconciler.upsert([_full_order(gift_cards=(OrderGiftCard(gift_card_id=12, amount=Decimal("4.5")),))])

    cards = session.scalars(select(OrderGiftCardModel)).all()
    assert [(card.id, card.gift_card_id, card.amount) for card in cards] == [(kept_pk, 12, Decimal("4.5"))]


def test_attribution_info_is_updated_in_place_then_removed(session):
    storage = CountingStorage(session)
    reconciler = OrderGraphReconciler(storage)
    [row] = reconciler.upsert([_full_order()])
    info_pk = row.attribution_info.id
    storage.inserted.clear()

    [row] = reconciler.upsert([_full_order(attribution_info=OrderAttributionInfo(source_type="referral", source="blog"))])

    assert storage.inserted == []
    assert row.attribution_info.id == info_pk
    assert order_from_row(row).attribution_info == OrderAttributionInfo(source_type="referral", source="blog")

    [row] = reconciler.upsert([_full_order(attribution_info=None)])

    assert storage.deleted == ["OrderAttributionInfoModel"]
    assert row.attribution_info is None
    assert session.scalar(select(func.count()).select_from(OrderAttributionInfoModel)) == 0


def test_changed_add_ons_are_replaced(session):
    storage = CountingStorage(session)
    reconciler = OrderGraphReconciler(storage)
    reconciler.upsert([_full_order()])
    storage.inserted.clear()

    reconciler.upsert(
        [
            _full_order(
                items=(
                    _item(
                        1,
                        7,
                        attributes=(OrderItemAttribute(meta_id=1, name="Size", value="L"),),
                        add_ons=(
                            OrderItemProductAddOn(add_on_id=11, key="Engraving", value="C.D."),
                            OrderItemProductAddOn(key="Gift box"),
                        ),
                    ),
                    _item(2, product_id=11, parent=1),
                )
            )
        ]
    )

    assert storage.inserted == ["OrderItemProductAddOnModel"] * 2
    assert storage.deleted == ["OrderItemProductAddOnModel"]
    stored = order_from_row(storage.load_order(1, 100))
    assert [(add_on.key, add_on.value) for add_on in stored.items[0].add_ons] == [("Engraving", "C.D."), ("Gift box", "")]
