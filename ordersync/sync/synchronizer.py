from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from ordersync.domain.inputs import BundledProductConfiguration, OrderSyncProductInput, ZeroQuantityPolicy
from ordersync.domain.orders import Order, OrderItem
from ordersync.domain.products import Catalog, Product, ProductVariation
from ordersync.persistence.models import OrderModel
from ordersync.persistence.storage import StorageType
from ordersync.reconciliation.orders_upsert import OrderGraphReconciler
from ordersync.sync import product_input_transformer as transformer
from ordersync.sync.bundle_configuration import BundleConfigurationQueue

logger = logging.getLogger(__name__)


class OrderSynchronizer:
    """Holds the order being edited and routes user edits through the transformer.

    Not thread safe: one synchronizer per edited order.
    """

    def __init__(
        self,
        order: Order,
        catalog: Catalog | None = None,
        zero_quantity_policy: ZeroQuantityPolicy = ZeroQuantityPolicy.DELETE,
        default_discount: Decimal = Decimal("0"),
        storage: StorageType | None = None,
    ):
        self.order = order
        self.catalog = catalog or Catalog()
        self.zero_quantity_policy = zero_quantity_policy
        self.default_discount = default_discount
        self.storage = storage
        self.pending_bundle_configurations = BundleConfigurationQueue()

    def set_product(self, product_input: OrderSyncProductInput) -> Order:
        self.order = transformer.update(product_input, self.order, self.zero_quantity_policy)
        return self.order

    def set_products(self, inputs: Sequence[OrderSyncProductInput]) -> Order:
        if inputs:
            self.order = transformer.update_multiple_items(inputs, self.order, self.zero_quantity_policy)
        return self.order

    def _items_in_catalog(self) -> list[OrderItem]:
        items: list[OrderItem] = []
        for item in self.order.items:
            if item.variation_id != 0:
                if self.catalog.variation(item.variation_id) is not None:
                    items.append(item)
            elif self.catalog.product(item.product_id) is not None:
                items.append(item)
        return items

    def save_bundle_configuration(
        self,
        product: Product,
        configuration: Iterable[BundledProductConfiguration],
    ) -> None:
        self.catalog = self.catalog.with_product(product)
        self.pending_bundle_configurations.enqueue(product.product_id, configuration)

    def sync_order_items(self, products: Sequence[Product], variations: Sequence[ProductVariation]) -> Order:
        """Make the order's top-level items match a product picker selection.

        Additions and deletions are applied as one batch.
        """
        for product in products:
            self.catalog = self.catalog.with_product(product)
        for variation in variations:
            self.catalog = self.catalog.with_variation(variation)

        items_in_order = self._items_in_catalog()
        added = transformer.product_input_additions_to_sync(
            items_in_order,
            products,
            variations,
            self.pending_bundle_configurations,
        )
        removed = transformer.product_input_deletions_to_sync(
            items_in_order,
            products,
            variations,
            self.catalog,
            default_discount=self.default_discount,
        )
        logger.info("syncing order items: added=%d removed=%d", len(added), len(removed))
        return self.set_products(added + removed)

    def _update_item(self, item_id: int, **kwargs) -> bool:
        item = self.order.item(item_id)
        if item is None:
            logger.warning("order item %s not found in order %s", item_id, self.order.order_id)
            return False
        product_input = transformer.create_update_product_input(
            item=item,
            catalog=self.catalog,
            default_discount=self.default_discount,
            **kwargs,
        )
        if product_input is None:
            return False
        self.set_product(product_input)
        return True

    def remove_item(self, item_id: int) -> bool:
        return self._update_item(item_id, quantity=Decimal("0"))

    def update_item_quantity(self, item_id: int, quantity: Decimal, discount: Decimal | None = None) -> bool:
        return self._update_item(
            item_id,
            quantity=quantity,
            discount=discount,
            child_items=self.order.child_items(item_id),
        )

    def add_discount_to_item(self, item_id: int, discount: Decimal) -> bool:
        item = self.order.item(item_id)
        quantity = item.quantity if item is not None else Decimal("0")
        return self._update_item(item_id, quantity=quantity, discount=discount)

    def add_bundle_configuration_to_item(
        self,
        item_id: int,
        configuration: Iterable[BundledProductConfiguration],
    ) -> bool:
        item = self.order.item(item_id)
        quantity = item.quantity if item is not None else Decimal("0")
        return self._update_item(item_id, quantity=quantity, bundle_configuration=tuple(configuration))

    def apply_authoritative_order(self, order: Order, inserting_search_results: bool = False) -> OrderModel:
        """Adopt the order the store returned and persist its graph."""
        if self.storage is None:
            raise RuntimeError("synchronizer has no storage to persist orders into")
        self.order = order
        [row] = OrderGraphReconciler(self.storage).upsert([order], inserting_search_results=inserting_search_results)
        return row
