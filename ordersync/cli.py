from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from ordersync.core.config import get_settings
from ordersync.core.logging import configure_logging
from ordersync.domain.inputs import OrderSyncProductInput, ZeroQuantityPolicy
from ordersync.domain.orders import Order
from ordersync.persistence.db import init_db, session_scope
from ordersync.persistence.storage import SqlAlchemyStorage, order_from_row
from ordersync.reconciliation.orders_upsert import OrderGraphReconciler
from ordersync.sync import product_input_transformer as transformer

_orders_adapter = TypeAdapter(list[Order])
_inputs_adapter = TypeAdapter(list[OrderSyncProductInput])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Order line-item sync and persistence CLI")
    top = parser.add_subparsers(dest="command", required=True)

    upsert = top.add_parser("upsert", help="Reconcile orders from a JSON file into the local store")
    upsert.add_argument("file", help="JSON file holding an order object or a list of orders")
    upsert.add_argument("--search-results", action="store_true", help="Mark new orders as search results only")

    show = top.add_parser("show", help="Print a persisted order as JSON")
    show.add_argument("site_id", type=int)
    show.add_argument("order_id", type=int)

    apply = top.add_parser("apply", help="Apply product inputs to an order and print the result")
    apply.add_argument("order_file", help="JSON file holding one order")
    apply.add_argument("inputs_file", help="JSON file holding a list of product inputs")
    apply.add_argument(
        "--zero-quantity",
        choices=[policy.value for policy in ZeroQuantityPolicy],
        default=None,
        help="Policy for inputs with quantity <= 0 (default: settings.zero_quantity_policy)",
    )

    return parser


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _upsert(args: argparse.Namespace) -> int:
    raw = _read_json(args.file)
    orders = _orders_adapter.validate_python(raw if isinstance(raw, list) else [raw])

    init_db()
    with session_scope() as session:
        rows = OrderGraphReconciler(SqlAlchemyStorage(session)).upsert(
            orders,
            inserting_search_results=args.search_results,
        )
        summary = [
            {"site_id": row.site_id, "order_id": row.order_id, "items": len(row.items)}
            for row in rows
        ]
    print(json.dumps({"upserted": len(summary), "orders": summary}, indent=2))
    return 0


def _show(args: argparse.Namespace) -> int:
    init_db()
    with session_scope() as session:
        row = SqlAlchemyStorage(session).load_order(args.site_id, args.order_id)
        if row is None:
            print(f"order {args.order_id} not found for site {args.site_id}", file=sys.stderr)
            return 1
        order = order_from_row(row)
    print(order.model_dump_json(indent=2))
    return 0


def _apply(args: argparse.Namespace) -> int:
    order = Order.model_validate(_read_json(args.order_file))
    inputs = _inputs_adapter.validate_python(_read_json(args.inputs_file))
    policy = ZeroQuantityPolicy(args.zero_quantity or get_settings().zero_quantity_policy)
    updated = transformer.update_multiple_items(inputs, order, policy)
    print(updated.model_dump_json(indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)

    handlers = {"upsert": _upsert, "show": _show, "apply": _apply}
    try:
        return handlers[args.command](args)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
