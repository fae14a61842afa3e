from __future__ import annotations

import argparse
import json

from backoffice.core.config import get_settings
from backoffice.core.logging import configure_logging
from backoffice.demo import seed_default_catalog
from backoffice.domain.errors import FulfillmentError
from backoffice.domain.inventory.reservations import get_reserved_stock, reserved_quantity
from backoffice.domain.inventory.variants import VariantStore
from backoffice.domain.orders.projections import get_order
from backoffice.ledger.store import MovementLedger
from backoffice.persistence.pg import init_db, session_scope


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Back-office fulfillment CLI")
    parser.add_argument("--log-level", default=None)
    top = parser.add_subparsers(dest="command", required=True)

    db = top.add_parser("db", help="Database maintenance")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("init", help="Create all tables")

    serve = top.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    demo = top.add_parser("demo", help="Demo data")
    demo_sub = demo.add_subparsers(dest="demo_command", required=True)
    seed = demo_sub.add_parser("seed", help="Seed the demo organization and catalog")
    seed.add_argument("--organization", default=None)

    orders = top.add_parser("orders", help="Order inspection")
    orders_sub = orders.add_subparsers(dest="orders_command", required=True)
    show = orders_sub.add_parser("show", help="Print one order with its lines")
    show.add_argument("order_id")

    inventory = top.add_parser("inventory", help="Inventory inspection")
    inventory_sub = inventory.add_subparsers(dest="inventory_command", required=True)
    reserved = inventory_sub.add_parser("reserved", help="Reserved quantity per variant")
    reserved.add_argument("--organization", required=True)
    reserved.add_argument("--variant", default=None)

    ledger = top.add_parser("ledger", help="Movement ledger")
    ledger_sub = ledger.add_subparsers(dest="ledger_command", required=True)
    verify = ledger_sub.add_parser("verify", help="Replay movement chains against current stock")
    verify.add_argument("--organization", required=True)
    verify.add_argument("--variant", default=None)

    return parser


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run("backoffice.main:app", host=args.host or settings.api_host, port=args.port or settings.api_port)
    return 0


def _seed_demo(args: argparse.Namespace) -> int:
    init_db()
    with session_scope() as session:
        result = seed_default_catalog(session, organization_id=args.organization)
    _print(result)
    return 0


def _show_order(args: argparse.Namespace) -> int:
    with session_scope() as session:
        _print(get_order(session, args.order_id).model_dump(mode="json"))
    return 0


def _reserved(args: argparse.Namespace) -> int:
    with session_scope() as session:
        _print(
            {
                "organization_id": args.organization,
                "reserved": get_reserved_stock(session, args.organization, args.variant),
            }
        )
    return 0


def _verify_ledger(args: argparse.Namespace) -> int:
    failures = 0
    reports = []
    with session_scope() as session:
        variants = VariantStore(session)
        ledger = MovementLedger(session)
        if args.variant:
            targets = [variants.get(args.variant, organization_id=args.organization)]
        else:
            targets = variants.list_for_organization(args.organization)
        for variant in targets:
            result = ledger.verify_chain(variant.id, current_stock=int(variant.stock))
            ledger_reserved = ledger.sum_active_reservations(variant.id)
            order_reserved = reserved_quantity(session, variant.id)
            ok = result.ok and ledger_reserved == order_reserved
            if not ok:
                failures += 1
            reports.append(
                {
                    **result.model_dump(),
                    "ok": ok,
                    "ledger_reserved": ledger_reserved,
                    "order_reserved": order_reserved,
                }
            )
    _print({"organization_id": args.organization, "checked": len(reports), "failures": failures, "variants": reports})
    return 1 if failures else 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level)

    try:
        if args.command == "db" and args.db_command == "init":
            init_db()
            print("database initialized")
            return 0
        if args.command == "serve":
            return _serve(args)
        if args.command == "demo" and args.demo_command == "seed":
            return _seed_demo(args)
        if args.command == "orders" and args.orders_command == "show":
            return _show_order(args)
        if args.command == "inventory" and args.inventory_command == "reserved":
            return _reserved(args)
        if args.command == "ledger" and args.ledger_command == "verify":
            return _verify_ledger(args)
    except FulfillmentError as exc:
        _print({"error": exc.code, "detail": str(exc), **exc.details()})
        return 1

    parser.error("unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
