"""Command-line interface for orderdesk."""

import argparse
import json
import logging
import sys

from . import __version__
from .aggregator import build_order_detail, customer_stats, export_orders_csv, export_orders_json
from .checkout import CheckoutSession
from .errors import OrderdeskError
from .models import OrderStatus, PaymentStatus
from .money import format_price
from .order_store import OrderStore
from .settings_store import SettingsStore
from .status import allowed_transitions
from .utils import format_order, parse_item_spec


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize store settings with defaults."""
    try:
        store = SettingsStore()
        settings = store.init(force=args.force)
        if args.store_name:
            settings = store.update(store_name=args.store_name)
        if args.phone:
            settings = store.update(whatsapp_number=args.phone)

        print(f"Initialized orderdesk at {store.config_dir}")
        print(f"Store: {settings.store_name} ({settings.whatsapp_number})")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_settings(args: argparse.Namespace) -> int:
    """Show store settings."""
    try:
        settings = SettingsStore().load()
        if args.json:
            print(json.dumps(settings.to_dict(), indent=2))
            return 0

        currency = settings.currency
        print(f"Store: {settings.store_name}")
        print(f"WhatsApp: {settings.whatsapp_number}")
        print(f"Minimum order: {format_price(settings.minimum_order, currency)}")
        print(f"Free shipping from: {format_price(settings.free_shipping_threshold, currency)}")
        print("Shipping options:")
        for option in settings.shipping_options:
            print(
                f"  {option.name}: {format_price(option.price, currency)} "
                f"({option.duration_label})"
            )
        print(f"Payment methods: {', '.join(settings.payment_methods)}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_quote(args: argparse.Namespace) -> int:
    """Price a cart given on the command line."""
    try:
        settings = SettingsStore().load_or_default()
        session = CheckoutSession(settings)
        for spec in args.items:
            item = parse_item_spec(spec)
            session.cart.add_item(
                item.product_id,
                item.name,
                item.unit_price,
                quantity=item.quantity,
                variant=item.variant,
            )
        if args.shipping:
            session.select_shipping(args.shipping)
        if args.coupon:
            session.apply_coupon(args.coupon)

        pricing = session.pricing()
        if args.json:
            print(json.dumps(pricing.to_dict(), indent=2))
            return 0

        currency = settings.currency
        for notice in session.notices:
            print(f"Note: {notice}")
        print(f"Subtotal: {format_price(pricing.subtotal, currency)}")
        if pricing.discount:
            print(f"Discount ({session.coupon.code}): -{format_price(pricing.discount, currency)}")
        shipping = "FREE" if pricing.free_shipping else format_price(pricing.shipping_cost, currency)
        print(f"Shipping ({session.shipping_option.name}): {shipping}")
        if pricing.tax:
            print(f"Tax: {format_price(pricing.tax, currency)}")
        print(f"Total: {format_price(pricing.total, currency)}")

        if pricing.total < settings.minimum_order:
            shortfall = settings.minimum_order - pricing.total
            print(
                f"Below minimum order of {format_price(settings.minimum_order, currency)} "
                f"(short by {format_price(shortfall, currency)})"
            )
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders."""
    try:
        result = OrderStore().search(
            status=OrderStatus(args.status) if args.status else None,
            payment_status=PaymentStatus(args.payment) if args.payment else None,
            search=args.search,
            page=args.page,
            limit=args.limit,
        )

        if not result.orders:
            print("No orders found.")
            return 0

        if args.json:
            print(json.dumps([o.to_dict() for o in result.orders], indent=2))
        else:
            print(f"Orders (page {result.page}/{result.total_pages}, {result.total} total):")
            print()
            currency = SettingsStore().load_or_default().currency
            for order in result.orders:
                print(format_order(order, verbose=args.verbose, currency=currency))

        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order with recomputed totals."""
    try:
        order = OrderStore().get_order(args.order_id)
        detail = build_order_detail(order)

        if args.json:
            print(json.dumps(detail.to_dict(), indent=2))
            return 0

        currency = SettingsStore().load_or_default().currency
        print(format_order(order, verbose=True, currency=currency))
        b = detail.breakdown
        print(f"  Subtotal: {format_price(b.subtotal, currency)}")
        if b.discount:
            print(f"  Discount: -{format_price(b.discount, currency)}")
        print(f"  Shipping: {format_price(b.shipping_cost, currency)}")
        if b.tax:
            print(f"  Tax: {format_price(b.tax, currency)}")
        print(f"  Total: {format_price(b.total, currency)}")
        if detail.subtotal_mismatch:
            print(
                f"  Warning: stored subtotal was {format_price(detail.stored_subtotal, currency)}"
            )
        next_steps = ", ".join(s.value for s in allowed_transitions(order.status)) or "none"
        print(f"  Next status: {next_steps}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_status(args: argparse.Namespace) -> int:
    """Change an order's status."""
    try:
        order = OrderStore().update_status(
            args.order_id,
            OrderStatus(args.status),
            expected_version=args.expected_version,
            tracking_number=args.tracking,
            note=args.note,
        )
        print(f"Order {order.order_number} is now {order.status.value}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_pay(args: argparse.Namespace) -> int:
    """Change an order's payment status."""
    try:
        order = OrderStore().update_payment(
            args.order_id,
            PaymentStatus(args.status),
            expected_version=args.expected_version,
            transaction_id=args.transaction_id,
        )
        print(f"Order {order.order_number} payment is now {order.payment_status.value}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_export(args: argparse.Namespace) -> int:
    """Export orders to CSV or JSON."""
    try:
        orders = OrderStore().list_orders()
        content = export_orders_json(orders) if args.format == "json" else export_orders_csv(orders)

        if args.output:
            with open(args.output, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            print(f"Exported {len(orders)} order(s) to {args.output}")
        else:
            sys.stdout.write(content)
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_customers(args: argparse.Namespace) -> int:
    """Show per-customer aggregates."""
    try:
        stats = customer_stats(OrderStore().list_orders())
        if not stats:
            print("No customers found.")
            return 0
        if args.json:
            print(json.dumps([s.to_dict() for s in stats], indent=2))
            return 0
        currency = SettingsStore().load_or_default().currency
        for s in stats:
            print(
                f"{s.name}  orders={s.total_orders}  "
                f"spent={format_price(s.total_spent, currency)}  "
                f"avg={format_price(s.average_order_value, currency)}  last={s.last_order_date}"
            )
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    if not SettingsStore().exists():
        print("Warning: orderdesk not initialized. Run 'orderdesk init' first.", file=sys.stderr)
        print("Starting server with default settings...", file=sys.stderr)

    print("Starting orderdesk API server...")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    print()

    # When reload is enabled, uvicorn requires the app as an import string
    app_target = "orderdesk.api:app" if args.reload else None
    if app_target is None:
        from .api import app
        app_target = app

    uvicorn.run(app_target, host=args.host, port=args.port, reload=args.reload)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="orderdesk",
        description="Price carts, track order status and prepare WhatsApp order messages.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", dest="log_verbose", action="store_true", help="Log progress to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize store settings")
    init_parser.add_argument("--store-name", help="Store display name")
    init_parser.add_argument("--phone", help="Store WhatsApp number")
    init_parser.add_argument(
        "--force", "-f", action="store_true", help="Overwrite existing settings"
    )

    # settings
    settings_parser = subparsers.add_parser("settings", help="Show store settings")
    settings_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # quote
    quote_parser = subparsers.add_parser("quote", help="Price a cart")
    quote_parser.add_argument(
        "items", nargs="+", help="Items as 'product_id:name:price[:qty[:variant]]'"
    )
    quote_parser.add_argument("--shipping", "-s", help="Shipping option name")
    quote_parser.add_argument("--coupon", "-c", help="Coupon code")
    quote_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    # orders list
    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status", choices=[s.value for s in OrderStatus], help="Filter by status"
    )
    orders_list_parser.add_argument(
        "--payment", choices=[s.value for s in PaymentStatus], help="Filter by payment status"
    )
    orders_list_parser.add_argument("--search", help="Match order number, name, email or phone")
    orders_list_parser.add_argument("--page", type=int, default=1, help="Page number")
    orders_list_parser.add_argument("--limit", type=int, default=10, help="Page size")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    orders_list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show customer and item details"
    )

    # orders show
    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID (or prefix) or order number")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders status
    orders_status_parser = orders_subparsers.add_parser("status", help="Change order status")
    orders_status_parser.add_argument("order_id", help="Order ID (or prefix) or order number")
    orders_status_parser.add_argument("status", choices=[s.value for s in OrderStatus])
    orders_status_parser.add_argument("--tracking", "-t", help="Courier tracking number")
    orders_status_parser.add_argument("--note", "-n", help="Note recorded in the status history")
    orders_status_parser.add_argument(
        "--expected-version", type=int, help="Reject if the order has changed since this version"
    )

    # orders pay
    orders_pay_parser = orders_subparsers.add_parser("pay", help="Change payment status")
    orders_pay_parser.add_argument("order_id", help="Order ID (or prefix) or order number")
    orders_pay_parser.add_argument("status", choices=[s.value for s in PaymentStatus])
    orders_pay_parser.add_argument("--transaction-id", help="Payment provider reference")
    orders_pay_parser.add_argument(
        "--expected-version", type=int, help="Reject if the order has changed since this version"
    )

    # orders export
    orders_export_parser = orders_subparsers.add_parser("export", help="Export orders")
    orders_export_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="Output format (default: csv)"
    )
    orders_export_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    # customers
    customers_parser = subparsers.add_parser("customers", help="Show customer aggregates")
    customers_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.log_verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        orders_commands = {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "status": cmd_orders_status,
            "pay": cmd_orders_pay,
            "export": cmd_orders_export,
        }
        cmd_func = orders_commands.get(getattr(args, "orders_command", None))
        if cmd_func is None:
            parser.print_help()
            return 0
        return cmd_func(args)

    commands = {
        "init": cmd_init,
        "settings": cmd_settings,
        "quote": cmd_quote,
        "customers": cmd_customers,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
