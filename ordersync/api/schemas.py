from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from ordersync.domain.inputs import BundledProductConfiguration, OrderSyncProductInput, ZeroQuantityPolicy
from ordersync.domain.orders import Order
from ordersync.domain.products import Catalog


class ApplyInputsRequest(BaseModel):
    order: Order
    inputs: list[OrderSyncProductInput]
    zero_quantity_policy: ZeroQuantityPolicy | None = None


class PendingBundleConfiguration(BaseModel):
    product_id: int
    configuration: list[BundledProductConfiguration]


class SyncSelectionRequest(BaseModel):
    order: Order
    catalog: Catalog
    product_ids: list[int] = Field(default_factory=list)
    variation_ids: list[int] = Field(default_factory=list)
    bundle_configurations: list[PendingBundleConfiguration] = Field(
        default_factory=list,
        description="Queued in order; several entries for one bundle add it several times",
    )
    zero_quantity_policy: ZeroQuantityPolicy | None = None


class UpdateQuantityRequest(BaseModel):
    order: Order
    catalog: Catalog
    quantity: Decimal
    discount: Decimal | None = None
    zero_quantity_policy: ZeroQuantityPolicy | None = None


class UpsertOrdersRequest(BaseModel):
    orders: list[Order]
    inserting_search_results: bool = False


class UpsertedOrderSummary(BaseModel):
    site_id: int
    order_id: int
    item_count: int
    exclusive_for_search: bool


class UpsertOrdersResponse(BaseModel):
    count: int
    orders: list[UpsertedOrderSummary]
