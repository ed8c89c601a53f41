from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Iterable, Sequence

from ordersync.domain.inputs import BundledProduct, BundledProductConfiguration, BundledVariation
from ordersync.domain.orders import OrderItem, OrderItemAttribute, OrderItemBundleItem
from ordersync.domain.products import Product, ProductVariationAttribute

BundleConfiguration = tuple[BundledProductConfiguration, ...]


class BundleConfigurationQueue:
    """Bundle configurations chosen in a product picker, waiting to be added to an order.

    The same bundle product can be added several times with different configurations,
    so configurations are kept FIFO per product id.
    """

    def __init__(self) -> None:
        self._by_product_id: dict[int, deque[BundleConfiguration]] = {}

    def enqueue(self, product_id: int, configuration: Iterable[BundledProductConfiguration]) -> None:
        self._by_product_id.setdefault(product_id, deque()).append(tuple(configuration))

    def has_pending(self, product_id: int) -> bool:
        return bool(self._by_product_id.get(product_id))

    def pop(self, product_id: int) -> BundleConfiguration | None:
        pending = self._by_product_id.get(product_id)
        if not pending:
            return None
        return pending.popleft()

    def clear(self) -> None:
        self._by_product_id.clear()

    def __len__(self) -> int:
        return sum(len(pending) for pending in self._by_product_id.values())


def _per_bundle_quantity(child_quantity: Decimal, bundle_quantity: Decimal) -> Decimal:
    # Child items were stored either per bundle or multiplied by the bundle quantity,
    # depending on the store version. Only divide when the child has at least as
    # many units as the bundle.
    if bundle_quantity > 0 and child_quantity >= bundle_quantity:
        return child_quantity / bundle_quantity
    return child_quantity


def resolve_bundle_configuration(
    bundle: Product,
    item: OrderItem,
    child_items: Sequence[OrderItem],
) -> BundleConfiguration:
    """Deduce the configuration of an already-configured bundle order item.

    Used when only the bundle's quantity changes, so the child order items can be
    scaled along with it.
    """
    configuration: list[BundledProductConfiguration] = []
    for bundle_item in bundle.bundled_items:
        existing = next((child for child in child_items if child.product_id == bundle_item.product_id), None)
        if existing is None:
            configuration.append(
                BundledProductConfiguration(
                    bundled_item_id=bundle_item.bundled_item_id,
                    product_or_variation=BundledProduct(product_id=bundle_item.product_id),
                    quantity=Decimal("0"),
                    is_optional_and_selected=False,
                )
            )
            continue

        if existing.variation_id == 0:
            product_or_variation = BundledProduct(product_id=existing.product_id)
        else:
            product_or_variation = BundledVariation(
                product_id=existing.product_id,
                variation_id=existing.variation_id,
                attributes=tuple(
                    ProductVariationAttribute(id=attribute.meta_id, name=attribute.name, option=attribute.value)
                    for attribute in existing.attributes
                ),
            )

        configuration.append(
            BundledProductConfiguration(
                bundled_item_id=bundle_item.bundled_item_id,
                product_or_variation=product_or_variation,
                quantity=_per_bundle_quantity(existing.quantity, item.quantity),
                is_optional_and_selected=True if bundle_item.is_optional else None,
            )
        )
    return tuple(configuration)


def order_item_bundle_items(configuration: Iterable[BundledProductConfiguration]) -> tuple[OrderItemBundleItem, ...]:
    items: list[OrderItemBundleItem] = []
    for entry in configuration:
        choice = entry.product_or_variation
        if isinstance(choice, BundledVariation):
            items.append(
                OrderItemBundleItem(
                    bundled_item_id=entry.bundled_item_id,
                    product_id=choice.product_id,
                    quantity=entry.quantity,
                    is_optional_and_selected=entry.is_optional_and_selected,
                    variation_id=choice.variation_id,
                    variation_attributes=tuple(
                        OrderItemAttribute(meta_id=attribute.id, name=attribute.name, value=attribute.option)
                        for attribute in choice.attributes
                    ),
                )
            )
        else:
            items.append(
                OrderItemBundleItem(
                    bundled_item_id=entry.bundled_item_id,
                    product_id=choice.product_id,
                    quantity=entry.quantity,
                    is_optional_and_selected=entry.is_optional_and_selected,
                )
            )
    return tuple(items)
