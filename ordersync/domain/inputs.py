from __future__ import annotations

import uuid
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ordersync.domain.products import Product, ProductVariation, ProductVariationAttribute


class ZeroQuantityPolicy(str, Enum):
    """What an input with quantity <= 0 does to the matching order item."""

    UPDATE = "update"
    DELETE = "delete"


class ProductReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["product"] = "product"
    product: Product


class VariationReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["variation"] = "variation"
    variation: ProductVariation


ProductType = Annotated[Union[ProductReference, VariationReference], Field(discriminator="kind")]


class BundledProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["product"] = "product"
    product_id: int


class BundledVariation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["variation"] = "variation"
    product_id: int
    variation_id: int
    attributes: tuple[ProductVariationAttribute, ...] = ()


BundledProductOrVariation = Annotated[Union[BundledProduct, BundledVariation], Field(discriminator="kind")]


class BundledProductConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    bundled_item_id: int
    product_or_variation: BundledProductOrVariation
    quantity: Decimal
    # None for mandatory slots.
    is_optional_and_selected: bool | None = None


def new_local_item_id() -> int:
    """Non-zero id for an item that only exists locally until the store assigns one.

    Kept within 52 bits so JSON clients read it back unchanged.
    """
    return (uuid.uuid4().int >> 76) or 1


class OrderSyncProductInput(BaseModel):
    """One user change to an order's line items.

    `id` is the item id the change targets. Inputs that add an item get a fresh
    local id, which becomes the new item's `item_id`.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=new_local_item_id)
    product: ProductType
    quantity: Decimal
    discount: Decimal = Decimal("0")
    base_subtotal: Decimal | None = None
    bundle_configuration: tuple[BundledProductConfiguration, ...] = ()

    @classmethod
    def for_product(cls, product: Product, quantity: Decimal | int = 1, **kwargs) -> OrderSyncProductInput:
        return cls(product=ProductReference(product=product), quantity=Decimal(quantity), **kwargs)

    @classmethod
    def for_variation(cls, variation: ProductVariation, quantity: Decimal | int = 1, **kwargs) -> OrderSyncProductInput:
        return cls(product=VariationReference(variation=variation), quantity=Decimal(quantity), **kwargs)
