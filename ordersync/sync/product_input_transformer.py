from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from ordersync.domain.inputs import (
    BundledProductConfiguration,
    OrderSyncProductInput,
    ProductReference,
    VariationReference,
    ZeroQuantityPolicy,
)
from ordersync.domain.orders import Order, OrderItem
from ordersync.domain.products import Catalog, Product, ProductVariation
from ordersync.sync.bundle_configuration import (
    BundleConfigurationQueue,
    order_item_bundle_items,
    resolve_bundle_configuration,
)
from ordersync.sync.line_item_math import OrderItemParameters, parse_decimal

logger = logging.getLogger(__name__)


def _deletes(product_input: OrderSyncProductInput, policy: ZeroQuantityPolicy) -> bool:
    return product_input.quantity <= 0 and policy == ZeroQuantityPolicy.DELETE


def _order_item_parameters(product_input: OrderSyncProductInput) -> OrderItemParameters:
    reference = product_input.product
    if isinstance(reference, VariationReference):
        variation = reference.variation
        return OrderItemParameters(
            quantity=product_input.quantity,
            price=parse_decimal(variation.price),
            discount=product_input.discount,
            product_id=variation.product_id,
            variation_id=variation.product_variation_id,
            base_subtotal=product_input.base_subtotal,
        )
    product = reference.product
    return OrderItemParameters(
        quantity=product_input.quantity,
        price=parse_decimal(product.price),
        discount=product_input.discount,
        product_id=product.product_id,
        variation_id=None,
        base_subtotal=product_input.base_subtotal,
    )


def create_order_item(product_input: OrderSyncProductInput) -> OrderItem:
    """Build the order item an input describes, using the input id as the item id."""
    parameters = _order_item_parameters(product_input)
    return OrderItem(
        item_id=product_input.id,
        product_id=parameters.product_id,
        variation_id=parameters.variation_id or 0,
        quantity=parameters.quantity,
        price=parameters.price,
        subtotal=parameters.subtotal,
        total=parameters.total,
        bundle_configuration=order_item_bundle_items(product_input.bundle_configuration),
    )


def _apply(original: Order, product_input: OrderSyncProductInput, items: list[OrderItem]) -> None:
    # Positions come from the order the batch started from; the batch only appends,
    # so they stay valid in `items`.
    index = next((i for i, item in enumerate(original.items) if item.item_id == product_input.id), None)
    new_item = create_order_item(product_input)
    if index is None:
        items.append(new_item)
    else:
        items[index] = new_item


def _remove(product_input: OrderSyncProductInput, items: list[OrderItem]) -> list[OrderItem]:
    return [item for item in items if item.item_id != product_input.id]


def update(product_input: OrderSyncProductInput, order: Order, zero_quantity_policy: ZeroQuantityPolicy) -> Order:
    """Add, update or delete the order item referenced by `product_input.id`."""
    if _deletes(product_input, zero_quantity_policy):
        return order.with_items(_remove(product_input, list(order.items)))

    items = list(order.items)
    _apply(order, product_input, items)
    return order.with_items(items)


def update_multiple_items(
    inputs: Sequence[OrderSyncProductInput],
    order: Order,
    zero_quantity_policy: ZeroQuantityPolicy,
) -> Order:
    """Apply a batch of inputs: every update first, then every deletion."""
    items = list(order.items)
    for product_input in inputs:
        _apply(order, product_input, items)

    for product_input in inputs:
        if _deletes(product_input, zero_quantity_policy):
            items = _remove(product_input, items)

    return order.with_items(items)


def _resolve_product(item: OrderItem, catalog: Catalog) -> ProductReference | VariationReference | None:
    if item.variation_id != 0:
        variation = catalog.variation(item.variation_id)
        if variation is not None:
            return VariationReference(variation=variation)
    product = catalog.product(item.product_id)
    if product is not None:
        return ProductReference(product=product)
    return None


def create_update_product_input(
    item: OrderItem,
    quantity: Decimal,
    catalog: Catalog,
    child_items: Sequence[OrderItem] = (),
    discount: Decimal | None = None,
    bundle_configuration: Iterable[BundledProductConfiguration] = (),
    default_discount: Decimal = Decimal("0"),
) -> OrderSyncProductInput | None:
    """Build an input that updates `item` in place.

    Returns None when the item's product or variation is not in `catalog`.
    """
    reference = _resolve_product(item, catalog)
    if reference is None:
        logger.error("product with id %s not found in catalog, cannot update item %s", item.product_id, item.item_id)
        return None

    configuration = tuple(bundle_configuration)
    if (
        isinstance(reference, ProductReference)
        and reference.product.is_bundle
        and item.quantity != quantity
        and not configuration
        and child_items
    ):
        # Without a configuration the child items would keep their old quantities.
        configuration = resolve_bundle_configuration(reference.product, item, child_items)

    return OrderSyncProductInput(
        id=item.item_id,
        product=reference,
        quantity=quantity,
        discount=discount if discount is not None else default_discount,
        base_subtotal=item.base_price,
        bundle_configuration=configuration,
    )


def product_input_additions_to_sync(
    order_items: Sequence[OrderItem],
    products: Sequence[Product],
    variations: Sequence[ProductVariation],
    bundle_configurations: BundleConfigurationQueue,
) -> list[OrderSyncProductInput]:
    """Inputs that add the selected products and variations not yet in the order.

    Drains `bundle_configurations`.
    """
    product_inputs: list[OrderSyncProductInput] = []
    for product in products:
        in_order = any(item.product_id == product.product_id and item.parent is None for item in order_items)
        if in_order and not bundle_configurations.has_pending(product.product_id):
            continue
        configuration = bundle_configurations.pop(product.product_id) if product.is_bundle else None
        product_inputs.append(
            OrderSyncProductInput(
                product=ProductReference(product=product),
                quantity=Decimal("1"),
                bundle_configuration=configuration or (),
            )
        )
    bundle_configurations.clear()

    variation_inputs: list[OrderSyncProductInput] = []
    for variation in variations:
        in_order = any(
            item.product_or_variation_id == variation.product_variation_id and item.parent is None
            for item in order_items
        )
        if not in_order:
            variation_inputs.append(
                OrderSyncProductInput(product=VariationReference(variation=variation), quantity=Decimal("1"))
            )

    return product_inputs + variation_inputs


def product_input_deletions_to_sync(
    order_items: Sequence[OrderItem],
    products: Sequence[Product],
    variations: Sequence[ProductVariation],
    catalog: Catalog,
    default_discount: Decimal = Decimal("0"),
) -> list[OrderSyncProductInput]:
    """Zero-quantity inputs for order items that are no longer selected."""
    product_ids = {product.product_id for product in products}
    variation_ids = {variation.product_variation_id for variation in variations}

    removed_products = [
        item
        for item in order_items
        if item.variation_id == 0 and item.parent is None and item.product_id not in product_ids
    ]
    removed_variations = [
        item for item in order_items if item.variation_id != 0 and item.variation_id not in variation_ids
    ]

    inputs: list[OrderSyncProductInput] = []
    for item in removed_products + removed_variations:
        product_input = create_update_product_input(
            item=item,
            quantity=Decimal("0"),
            catalog=catalog,
            default_discount=default_discount,
        )
        if product_input is not None:
            inputs.append(product_input)
    return inputs
