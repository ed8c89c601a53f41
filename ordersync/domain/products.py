from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ProductKind(str, Enum):
    SIMPLE = "simple"
    VARIABLE = "variable"
    GROUPED = "grouped"
    EXTERNAL = "external"
    BUNDLE = "bundle"
    SUBSCRIPTION = "subscription"
    OTHER = "other"


class ProductBundleItem(BaseModel):
    """One slot of a bundle product's definition."""

    model_config = ConfigDict(frozen=True)

    bundled_item_id: int
    product_id: int
    title: str = ""
    is_optional: bool = False


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    site_id: int = 0
    name: str = ""
    product_type: ProductKind = ProductKind.SIMPLE
    # Kept as the string the store API sends; parsed with a zero fallback when priced.
    price: str = ""
    bundled_items: tuple[ProductBundleItem, ...] = ()

    @property
    def is_bundle(self) -> bool:
        return self.product_type == ProductKind.BUNDLE


class ProductVariationAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = 0
    name: str
    option: str


class ProductVariation(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_variation_id: int
    product_id: int
    site_id: int = 0
    price: str = ""
    attributes: tuple[ProductVariationAttribute, ...] = ()


class Catalog(BaseModel):
    """Products and variations known to the caller, passed by value."""

    model_config = ConfigDict(frozen=True)

    products: tuple[Product, ...] = ()
    variations: tuple[ProductVariation, ...] = ()

    def product(self, product_id: int) -> Product | None:
        return next((p for p in self.products if p.product_id == product_id), None)

    def variation(self, variation_id: int) -> ProductVariation | None:
        return next((v for v in self.variations if v.product_variation_id == variation_id), None)

    def with_product(self, product: Product) -> Catalog:
        if self.product(product.product_id) is not None:
            return self
        return self.model_copy(update={"products": (*self.products, product)})

    def with_variation(self, variation: ProductVariation) -> Catalog:
        if self.variation(variation.product_variation_id) is not None:
            return self
        return self.model_copy(update={"variations": (*self.variations, variation)})

