from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ordersync.api.schemas import (
    ApplyInputsRequest,
    SyncSelectionRequest,
    UpdateQuantityRequest,
    UpsertedOrderSummary,
    UpsertOrdersRequest,
    UpsertOrdersResponse,
)
from ordersync.core.config import get_settings
from ordersync.domain.inputs import ZeroQuantityPolicy
from ordersync.domain.orders import Order
from ordersync.persistence.db import get_session
from ordersync.persistence.storage import SqlAlchemyStorage, order_from_row
from ordersync.reconciliation.orders_upsert import OrderGraphReconciler
from ordersync.sync import product_input_transformer as transformer
from ordersync.sync.synchronizer import OrderSynchronizer

router = APIRouter(prefix="/orders", tags=["orders"])


def _policy(requested: ZeroQuantityPolicy | None) -> ZeroQuantityPolicy:
    if requested is not None:
        return requested
    return ZeroQuantityPolicy(get_settings().zero_quantity_policy)


@router.post("/sync/items", response_model=Order)
def apply_inputs(request: ApplyInputsRequest) -> Order:
    return transformer.update_multiple_items(request.inputs, request.order, _policy(request.zero_quantity_policy))


@router.post("/sync/selection", response_model=Order)
def sync_selection(request: SyncSelectionRequest) -> Order:
    settings = get_settings()
    synchronizer = OrderSynchronizer(
        order=request.order,
        catalog=request.catalog,
        zero_quantity_policy=_policy(request.zero_quantity_policy),
        default_discount=settings.default_discount,
    )
    product_ids = set(request.product_ids)
    variation_ids = set(request.variation_ids)
    products = [p for p in request.catalog.products if p.product_id in product_ids]
    variations = [v for v in request.catalog.variations if v.product_variation_id in variation_ids]
    for pending in request.bundle_configurations:
        product = request.catalog.product(pending.product_id)
        if product is None:
            raise HTTPException(status_code=404, detail=f"product {pending.product_id} not in catalog")
        synchronizer.save_bundle_configuration(product, pending.configuration)
    return synchronizer.sync_order_items(products, variations)


@router.post("/sync/items/{item_id}/quantity", response_model=Order)
def update_item_quantity(item_id: int, request: UpdateQuantityRequest) -> Order:
    settings = get_settings()
    synchronizer = OrderSynchronizer(
        order=request.order,
        catalog=request.catalog,
        zero_quantity_policy=_policy(request.zero_quantity_policy),
        default_discount=settings.default_discount,
    )
    if request.order.item(item_id) is None:
        raise HTTPException(status_code=404, detail="order item not found")

    if not synchronizer.update_item_quantity(item_id, request.quantity, discount=request.discount):
        raise HTTPException(status_code=404, detail="product for order item not found in catalog")
    return synchronizer.order


@router.post("/upsert", response_model=UpsertOrdersResponse)
def upsert_orders(request: UpsertOrdersRequest, session: Session = Depends(get_session)) -> UpsertOrdersResponse:
    rows = OrderGraphReconciler(SqlAlchemyStorage(session)).upsert(
        request.orders,
        inserting_search_results=request.inserting_search_results,
    )
    return UpsertOrdersResponse(
        count=len(rows),
        orders=[
            UpsertedOrderSummary(
                site_id=row.site_id,
                order_id=row.order_id,
                item_count=len(row.items),
                exclusive_for_search=row.exclusive_for_search,
            )
            for row in rows
        ],
    )


@router.get("/{site_id}/{order_id}", response_model=Order)
def get_order(site_id: int, order_id: int, session: Session = Depends(get_session)) -> Order:
    row = SqlAlchemyStorage(session).load_order(site_id, order_id)
    if row is None:
        raise HTTPException(status_code=404, detail="order not found")
    return order_from_row(row)
