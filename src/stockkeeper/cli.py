"""Command-line entry points for Stockkeeper.

The module is limited to argparse wiring, the interactive menus and
translating console text into store calls. Every rule lives in the stores;
the menus only parse input, call one operation and print the outcome. Console
I/O goes through :class:`Console` so tests can script a whole session.
"""

from __future__ import annotations

import argparse
import getpass
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from . import data_manager, log
from .auth import CredentialStore
from .errors import AuthError, DatabaseError, InvalidInputError, StoreError
from .inventory import InventoryStore
from .models import Product
from .workbook_export import export_workbook


@dataclass(frozen=True)
class Console:
    """Input and output callables used by the interactive menus."""

    prompt: Callable[[str], str] = input
    secret: Callable[[str], str] = getpass.getpass
    echo: Callable[[str], None] = print


@dataclass
class Runtime:
    """Settings plus the two stores a CLI run operates on."""

    settings: data_manager.Settings
    inventory: InventoryStore
    credentials: CredentialStore = field(repr=False)


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction], argparse.ArgumentParser]
    execute: Callable[[Runtime, argparse.Namespace, Console], int]


DEFAULT_COMMAND = "menu"


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="stockkeeper",
        description="Single-operator inventory manager backed by local JSON files.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the working directory when omitted).",
    )
    return parser


def configure_subcommands(parser: argparse.ArgumentParser) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", title="commands")
    specs = [register_menu_command(), register_export_command()]
    for spec in specs:
        spec.register(subparsers)
    return build_command_table(specs)


def register_menu_command() -> CommandSpec:
    """Describe the ``menu`` sub-command (the default)."""
    name = "menu"
    help_text = "Start the interactive menu (default)."

    def registrar(action: argparse._SubParsersAction) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_menu)


def register_export_command() -> CommandSpec:
    """Describe the ``export`` sub-command."""
    name = "export"
    help_text = "Write products and transactions to an Excel workbook."

    def registrar(action: argparse._SubParsersAction) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True, help="Destination .xlsx file.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def build_command_table(specs: Iterable[CommandSpec]) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def dispatch_command(
    runtime: Runtime,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
    console: Console,
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    name = getattr(args, "command", None) or DEFAULT_COMMAND
    spec = command_table.get(name)
    if spec is None:
        raise KeyError(f"Unknown command: {name}")
    return spec.execute(runtime, args, console)


def load_runtime(settings: data_manager.Settings, console: Optional[Console] = None) -> Runtime:
    """Open both stores at the locations named in ``settings``.

    A document that cannot be written at startup is reported on ``console``
    and the session starts anyway with whatever state is in memory.
    """
    inventory = InventoryStore()
    try:
        inventory.load_from_file(settings.store_file)
    except DatabaseError as error:
        log.error("Could not initialize store file '%s': %s", settings.store_file, error)
        if console is not None:
            console.echo(f"Error loading store: {error}")

    credentials = CredentialStore(settings.users_file, rounds=settings.bcrypt_rounds)
    credentials.load()
    try:
        credentials.ensure_default_user(settings.admin_username, settings.admin_password)
    except DatabaseError as error:
        log.error("Could not create default account '%s': %s", settings.admin_username, error)
        if console is not None:
            console.echo(f"Error saving users: {error}")
    return Runtime(settings=settings, inventory=inventory, credentials=credentials)


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------


def parse_quantity(text: str, *, allow_zero: bool = False) -> int:
    """Parse a whole number of units typed at the console.

    Raises:
        InvalidInputError: If ``text`` is not an integer, is negative, or is
            zero while ``allow_zero`` is false.
    """
    try:
        value = int(text.strip())
    except ValueError as exc:
        raise InvalidInputError(f"'{text.strip()}' is not a whole number") from exc
    minimum = 0 if allow_zero else 1
    if value < minimum:
        raise InvalidInputError(f"quantity must be at least {minimum}")
    return value


def parse_price(text: str) -> Decimal:
    """Parse a non-negative decimal amount typed at the console.

    Raises:
        InvalidInputError: If ``text`` is not a finite, non-negative number.
    """
    try:
        value = Decimal(text.strip())
    except InvalidOperation as exc:
        raise InvalidInputError(f"'{text.strip()}' is not a valid price") from exc
    if not value.is_finite() or value < 0:
        raise InvalidInputError("price must be a non-negative number")
    return value


def parse_product_id(text: str) -> UUID:
    """Parse a product identifier typed at the console.

    Raises:
        InvalidInputError: If ``text`` is not a UUID.
    """
    try:
        return UUID(text.strip())
    except ValueError as exc:
        raise InvalidInputError("invalid product ID") from exc


# ---------------------------------------------------------------------------
# Interactive menus
# ---------------------------------------------------------------------------


def show_inventory(runtime: Runtime, console: Console) -> None:
    console.echo("\n" + runtime.inventory.generate_inventory_report())


def add_product(runtime: Runtime, console: Console) -> None:
    """Prompt for a new product and add it. Manager-only."""
    if not runtime.credentials.is_manager():
        console.echo("Permission denied: Manager access required")
        return

    name = console.prompt("Enter product name: ").strip()
    description = console.prompt("Enter description: ").strip()
    price = parse_price(console.prompt("Enter price: "))
    quantity = parse_quantity(console.prompt("Enter quantity: "), allow_zero=True)

    product = Product(id=uuid4(), name=name, description=description, price=price, quantity=quantity)
    runtime.inventory.add_product(product)
    console.echo(f"Product added successfully (ID: {product.id})")


def record_sale(runtime: Runtime, console: Console) -> None:
    console.echo("\nAvailable Products:")
    console.echo(runtime.inventory.generate_inventory_report())
    product_id = parse_product_id(console.prompt("Enter product ID: "))
    quantity = parse_quantity(console.prompt("Enter quantity: "))
    runtime.inventory.record_sale(product_id, quantity)
    console.echo("Sale recorded successfully")


def record_purchase(runtime: Runtime, console: Console) -> None:
    console.echo("\nAvailable Products:")
    console.echo(runtime.inventory.generate_inventory_report())
    product_id = parse_product_id(console.prompt("Enter product ID: "))
    quantity = parse_quantity(console.prompt("Enter quantity: "))
    unit_price = parse_price(console.prompt("Enter purchase price per unit: "))
    runtime.inventory.record_purchase(product_id, quantity, unit_price)
    console.echo("Purchase recorded successfully")


REPORTS: Mapping[str, Tuple[str, Callable[[InventoryStore], str]]] = {
    "1": ("Inventory Report", InventoryStore.generate_inventory_report),
    "2": ("Sales Report", InventoryStore.generate_sales_report),
    "3": ("Purchase Report", InventoryStore.generate_purchase_report),
}


def show_reports(runtime: Runtime, console: Console) -> None:
    console.echo("\nReports Menu")
    for key, (label, _) in REPORTS.items():
        console.echo(f"{key}. {label}")
    choice = console.prompt("> ").strip()
    entry = REPORTS.get(choice)
    if entry is None:
        console.echo("Invalid choice")
        return
    console.echo("\n" + entry[1](runtime.inventory))


MenuAction = Callable[[Runtime, Console], None]

SESSION_MENU: Mapping[str, Tuple[str, Optional[MenuAction]]] = {
    "1": ("View Inventory", show_inventory),
    "2": ("Add Product", add_product),
    "3": ("Record Sale", record_sale),
    "4": ("Record Purchase", record_purchase),
    "5": ("View Reports", show_reports),
    "6": ("Logout", None),
}


def session_menu(runtime: Runtime, console: Console) -> None:
    """Run the authenticated menu until the operator logs out."""
    while True:
        console.echo("\nMain Menu")
        for key, (label, _) in SESSION_MENU.items():
            console.echo(f"{key}. {label}")
        choice = console.prompt("> ").strip()

        entry = SESSION_MENU.get(choice)
        if entry is None:
            console.echo("Invalid choice")
            continue
        action = entry[1]
        if action is None:
            return
        try:
            action(runtime, console)
        except StoreError as error:
            console.echo(f"Error: {error}")


def handle_login(runtime: Runtime, console: Console) -> None:
    """Authenticate, run the session menu, then save the store and log out."""
    username = console.prompt("Username: ").strip()
    password = console.secret("Password: ").strip()
    try:
        runtime.credentials.login(username, password)
    except AuthError:
        console.echo("Login failed! Invalid username or password")
        return

    console.echo("Login successful!")
    try:
        session_menu(runtime, console)
    finally:
        runtime.credentials.logout()
        try:
            runtime.inventory.save_to_file(runtime.settings.store_file)
        except DatabaseError as error:
            console.echo(f"Error saving store: {error}")


def top_menu(runtime: Runtime, console: Console) -> None:
    """Run the Login/Exit loop. End of input counts as Exit."""
    while True:
        console.echo("\nStockkeeper Inventory Management")
        console.echo("1. Login")
        console.echo("2. Exit")
        try:
            choice = console.prompt("> ").strip()
            if choice == "1":
                handle_login(runtime, console)
            elif choice == "2":
                return
            else:
                console.echo("Invalid choice")
        except EOFError:
            return


def run_menu(runtime: Runtime, args: argparse.Namespace, console: Console) -> int:
    """Execute the interactive session and persist the store on exit."""
    top_menu(runtime, console)
    try:
        runtime.inventory.save_to_file(runtime.settings.store_file)
    except DatabaseError as error:
        console.echo(f"Error saving store: {error}")
    return 0


def run_export(runtime: Runtime, args: argparse.Namespace, console: Console) -> int:
    """Export the current store to the requested workbook."""
    destination = export_workbook(runtime.inventory, args.output)
    console.echo(f"Exported workbook to {destination}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, StoreError):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None, console: Optional[Console] = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    console = console or Console()
    try:
        settings = data_manager.load_settings(args.config)
        runtime = load_runtime(settings, console)
        return dispatch_command(runtime, args, command_table, console)
    except (StoreError, OSError, ValueError, KeyError) as error:
        return handle_cli_error(error)


if __name__ == "__main__":
    raise SystemExit(main())
