"""CLI entry point for the restock engine."""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console

from .config import ConfigManager
from .engine import RestockEngine
from .errors import RestockError
from .log_config import configure_logging
from .models import ItemStatus, Priority, ReceiptSource
from .output_formatter import OutputFormatter

app = typer.Typer(
    name="restock",
    help="Household inventory depletion tracking and replenishment",
    no_args_is_help=True,
)

console = Console()

# Global state for formatter and engine (set by callback)
formatter: OutputFormatter = OutputFormatter()
config: ConfigManager | None = None
engine: RestockEngine | None = None


class ListFilter(str, Enum):
    """Which shopping list entries to show."""

    ALL = "all"
    ACTIVE = "active"
    PURCHASED = "purchased"


def get_config() -> ConfigManager:
    """Get or create ConfigManager instance."""
    global config
    if config is None:
        config = ConfigManager()
    return config


def get_engine() -> RestockEngine:
    """Get or create the engine using config values."""
    global engine
    if engine is None:
        engine = RestockEngine.from_config(get_config().config)
    return engine


def fail(error: Exception) -> NoReturn:
    """Report an error and exit with status 1."""
    if isinstance(error, RestockError):
        formatter.error(str(error), error_code=error.error_code)
    else:
        formatter.error(str(error))
    raise typer.Exit(code=1)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON for programmatic use")
    ] = False,
    data_dir: Annotated[Path | None, typer.Option("--data-dir", help="Data directory path")] = None,
    config_path: Annotated[
        Path | None, typer.Option("--config", help="Path to a config.toml file")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    ] = None,
) -> None:
    """Restock CLI - track how fast things run out and what to buy next."""
    global formatter, config, engine

    formatter = OutputFormatter(json_mode=json_output)

    try:
        config = ConfigManager(config_path)
        configure_logging(log_level or config.logging.level)

        # CLI --data-dir overrides config, which overrides default
        if data_dir:
            config.data.storage_dir = data_dir

        engine = RestockEngine.from_config(config.config)
    except (RestockError, ValueError) as e:
        fail(e)


# --- Inventory ---

inv_app = typer.Typer(help="Inventory management commands")
app.add_typer(inv_app, name="inventory")


@inv_app.command("add")
def inv_add(
    item: Annotated[str, typer.Argument(help="Item name")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Quantity")] = 1.0,
    unit: Annotated[str | None, typer.Option("--unit", "-u", help="Unit of measurement")] = None,
    category: Annotated[str | None, typer.Option("--category", "-c", help="Category")] = None,
    location: Annotated[
        str | None, typer.Option("--location", "-l", help="Storage location")
    ] = None,
    threshold: Annotated[
        float | None, typer.Option("--threshold", help="Low stock window in days")
    ] = None,
    auto_reorder: Annotated[
        bool, typer.Option("--auto-reorder", help="Enable automatic reordering")
    ] = False,
) -> None:
    """Add an item to household inventory."""
    try:
        snapshot = get_engine().add_item(
            item,
            quantity,
            unit=unit,
            category=category,
            location=location,
            reorder_threshold=threshold,
            auto_reorder_enabled=auto_reorder,
        )
        output_data = {
            "success": True,
            "message": f"Added {snapshot.item.name} to inventory ({snapshot.item.location})",
            "data": {"inventory_item": snapshot.to_dict()},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@inv_app.command("list")
def inv_list(
    location: Annotated[
        str | None, typer.Option("--location", "-l", help="Filter by location")
    ] = None,
    category: Annotated[
        str | None, typer.Option("--category", "-c", help="Filter by category")
    ] = None,
    status: Annotated[
        ItemStatus | None, typer.Option("--status", "-s", help="Filter by status")
    ] = None,
) -> None:
    """View household inventory."""
    try:
        snapshots = get_engine().list_items(location=location, category=category, status=status)

        output_data = {
            "success": True,
            "data": {
                "inventory": [s.to_dict() for s in snapshots],
                "count": len(snapshots),
            },
        }
        formatter.output(output_data, f"{len(snapshots)} items in inventory")
    except Exception as e:
        fail(e)


@inv_app.command("show")
def inv_show(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
) -> None:
    """Show one item with its projection."""
    try:
        snapshot = get_engine().get_item(item_id)
        formatter.output({"success": True, "data": {"inventory_item": snapshot.to_dict()}})
    except Exception as e:
        fail(e)


@inv_app.command("update")
def inv_update(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    category: Annotated[str | None, typer.Option("--category", "-c", help="New category")] = None,
    location: Annotated[
        str | None, typer.Option("--location", "-l", help="New storage location")
    ] = None,
    unit: Annotated[str | None, typer.Option("--unit", "-u", help="New unit")] = None,
    threshold: Annotated[
        float | None, typer.Option("--threshold", help="Low stock window in days")
    ] = None,
    clear_threshold: Annotated[
        bool, typer.Option("--clear-threshold", help="Use the default low stock window")
    ] = False,
    auto_reorder: Annotated[
        bool | None,
        typer.Option("--auto-reorder/--no-auto-reorder", help="Toggle automatic reordering"),
    ] = None,
) -> None:
    """Update item details."""
    changes: dict = {}
    if name is not None:
        changes["name"] = name
    if category is not None:
        changes["category"] = category
    if location is not None:
        changes["location"] = location
    if unit is not None:
        changes["unit"] = unit
    if threshold is not None:
        changes["reorder_threshold"] = threshold
    if clear_threshold:
        changes["reorder_threshold"] = None
    if auto_reorder is not None:
        changes["auto_reorder_enabled"] = auto_reorder

    if not changes:
        formatter.error("No updates specified", error_code="VALIDATION_ERROR")
        raise typer.Exit(code=1)

    try:
        snapshot = get_engine().update_item(item_id, **changes)
        output_data = {
            "success": True,
            "message": f"Updated {snapshot.item.name}",
            "data": {"inventory_item": snapshot.to_dict()},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@inv_app.command("remove")
def inv_remove(
    item_id: Annotated[str, typer.Argument(help="Item ID to remove")],
) -> None:
    """Remove an item from inventory."""
    try:
        removed = get_engine().remove_item(item_id)
        output_data = {
            "success": True,
            "message": f"Removed {removed.name} from inventory",
            "data": {"removed": removed.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@inv_app.command("use")
def inv_use(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Amount to use")] = 1.0,
) -> None:
    """Use/consume inventory (reduce quantity)."""
    try:
        snapshot = get_engine().adjust_quantity(item_id, -quantity)
        item = snapshot.item
        output_data = {
            "success": True,
            "message": f"Used {quantity:g} of {item.name} (remaining: {item.quantity:g})",
            "data": {"inventory_item": snapshot.to_dict()},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@inv_app.command("set")
def inv_set(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
    quantity: Annotated[float, typer.Argument(help="Quantity now on hand")],
) -> None:
    """Record the quantity currently on hand."""
    try:
        snapshot = get_engine().record_manual_quantity_change(item_id, quantity)
        output_data = {
            "success": True,
            "message": f"{snapshot.item.name} now at {snapshot.item.quantity:g}",
            "data": {"inventory_item": snapshot.to_dict()},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@inv_app.command("history")
def inv_history(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
) -> None:
    """Show an item's quantity history."""
    try:
        observations = get_engine().get_history(item_id)
        output_data = {
            "success": True,
            "data": {"history": [o.model_dump(mode="json") for o in observations]},
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)


@inv_app.command("stats")
def inv_stats(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
    days: Annotated[int, typer.Option("--days", "-d", help="Days to look back")] = 30,
) -> None:
    """Show consumption statistics for an item."""
    try:
        stats = get_engine().consumption_stats(item_id, days)
        formatter.output({"success": True, "data": {"stats": stats.model_dump(mode="json")}})
    except Exception as e:
        fail(e)


@inv_app.command("running-out")
def inv_running_out(
    days: Annotated[float, typer.Option("--days", "-d", help="Days to look ahead")] = 7,
) -> None:
    """View items projected to run out soon."""
    try:
        snapshots = get_engine().running_out_soon(days)
        output_data = {
            "success": True,
            "data": {
                "inventory": [s.to_dict() for s in snapshots],
                "count": len(snapshots),
                "days": days,
            },
        }
        formatter.output(output_data, f"{len(snapshots)} items running out within {days:g} days")
    except Exception as e:
        fail(e)


@inv_app.command("purchases")
def inv_purchases(
    item_id: Annotated[str, typer.Argument(help="Item ID")],
    limit: Annotated[int, typer.Option("--limit", help="Most purchases to show")] = 50,
) -> None:
    """Show an item's purchases from reconciled receipts."""
    try:
        records = get_engine().purchase_history(item_id, limit)
        output_data = {
            "success": True,
            "data": {
                "purchases": [r.model_dump(mode="json") for r in records],
                "count": len(records),
            },
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)


# --- Receipts ---

receipt_app = typer.Typer(help="Receipt processing commands")
app.add_typer(receipt_app, name="receipt")


@receipt_app.command("submit")
def receipt_submit(
    data: Annotated[str | None, typer.Option("--data", "-d", help="JSON receipt data")] = None,
    file: Annotated[Path | None, typer.Option("--file", "-f", help="Path to JSON file")] = None,
    source: Annotated[
        ReceiptSource | None, typer.Option("--source", help="Where the receipt came from")
    ] = None,
) -> None:
    """Submit parsed receipt items and reconcile them with inventory.

    The JSON holds "items" (each with name, quantity and optional unit,
    price, category) plus optional "source", "store_name", "purchased_at"
    and "total_amount".
    """
    if not data and not file:
        formatter.error("Must provide either --data or --file", error_code="VALIDATION_ERROR")
        raise typer.Exit(code=1)

    try:
        if data:
            receipt_dict = json.loads(data)
        else:
            with open(file) as f:  # type: ignore[arg-type]
                receipt_dict = json.load(f)
    except json.JSONDecodeError as e:
        formatter.error(f"Invalid JSON: {e}", error_code="VALIDATION_ERROR")
        raise typer.Exit(code=1)
    except OSError as e:
        fail(e)

    try:
        result = get_engine().submit_receipt(
            source=source.value if source else receipt_dict.get("source", "photo"),
            parsed_items=receipt_dict.get("items", []),
            store_name=receipt_dict.get("store_name"),
            purchased_at=receipt_dict.get("purchased_at"),
            total_amount=receipt_dict.get("total_amount"),
        )
        output_data = {
            "success": True,
            "data": {"reconciliation": result.model_dump(mode="json")},
        }
        formatter.output(
            output_data,
            f"Reconciled receipt: {result.matched_items} matched, {result.created_items} new",
        )
    except Exception as e:
        fail(e)


@receipt_app.command("reconcile")
def receipt_reconcile(
    receipt_id: Annotated[str, typer.Argument(help="Receipt ID")],
) -> None:
    """Retry reconciliation of a stored receipt."""
    try:
        result = get_engine().reconcile_receipt(receipt_id)
        output_data = {
            "success": True,
            "data": {"reconciliation": result.model_dump(mode="json")},
        }
        formatter.output(output_data, "Receipt reconciled")
    except Exception as e:
        fail(e)


@receipt_app.command("list")
def receipt_list() -> None:
    """List all receipts."""
    try:
        receipts = get_engine().list_receipts()

        if not receipts:
            formatter.warning("No receipts found")
            return

        output_data = {
            "success": True,
            "data": {
                "receipts": [
                    {
                        "id": str(r.id),
                        "store": r.store_name,
                        "source": r.source.value,
                        "items": len(r.items),
                        "total_amount": r.total_amount,
                        "processed": r.processed,
                        "created_at": r.created_at.isoformat(),
                    }
                    for r in receipts
                ]
            },
        }
        formatter.output(output_data, f"Found {len(receipts)} receipts")
    except Exception as e:
        fail(e)


@receipt_app.command("show")
def receipt_show(
    receipt_id: Annotated[str, typer.Argument(help="Receipt ID")],
) -> None:
    """Show a stored receipt."""
    try:
        receipt = get_engine().get_receipt(receipt_id)
        formatter.output({"success": True, "data": {"receipt": receipt.model_dump(mode="json")}})
    except Exception as e:
        fail(e)


# --- Shopping list ---

shopping_app = typer.Typer(help="Shopping list commands")
app.add_typer(shopping_app, name="shopping")


@shopping_app.command("list")
def shopping_list(
    show: Annotated[
        ListFilter, typer.Option("--show", help="all, active or purchased entries")
    ] = ListFilter.ALL,
) -> None:
    """View the shopping list."""
    purchased = {
        ListFilter.ALL: None,
        ListFilter.ACTIVE: False,
        ListFilter.PURCHASED: True,
    }[show]
    try:
        entries = get_engine().get_shopping_list(purchased)
        output_data = {
            "success": True,
            "data": {
                "shopping_list": [e.model_dump(mode="json") for e in entries],
                "count": len(entries),
            },
        }
        formatter.output(output_data)
    except Exception as e:
        fail(e)


@shopping_app.command("refresh")
def shopping_refresh() -> None:
    """Regenerate the shopping list from current inventory."""
    try:
        changes = get_engine().request_shopping_list_refresh()
        output_data = {
            "success": True,
            "data": {"changes": [c.model_dump(mode="json") for c in changes]},
        }
        formatter.output(output_data, f"{len(changes)} shopping list change(s)")
    except Exception as e:
        fail(e)


@shopping_app.command("add")
def shopping_add(
    item_id: Annotated[str, typer.Argument(help="Inventory item ID")],
    quantity: Annotated[
        float | None, typer.Option("--quantity", "-q", help="Quantity to buy")
    ] = None,
    priority: Annotated[
        Priority | None, typer.Option("--priority", "-p", help="critical, high or medium")
    ] = None,
    notes: Annotated[str | None, typer.Option("--notes", "-n", help="Note for this entry")] = None,
) -> None:
    """Put an item on the shopping list by hand."""
    try:
        entry = get_engine().add_shopping_entry(item_id, quantity, priority, notes)
        output_data = {
            "success": True,
            "message": f"Added {entry.item_name} to shopping list",
            "data": {"entry": entry.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@shopping_app.command("update")
def shopping_update(
    entry_id: Annotated[str, typer.Argument(help="Shopping list entry ID")],
    quantity: Annotated[
        float | None, typer.Option("--quantity", "-q", help="Quantity to buy")
    ] = None,
    priority: Annotated[
        Priority | None, typer.Option("--priority", "-p", help="critical, high or medium")
    ] = None,
    notes: Annotated[
        str | None, typer.Option("--notes", "-n", help="Note for this entry; empty clears it")
    ] = None,
) -> None:
    """Change a shopping list entry's quantity, priority or notes."""
    try:
        entry = get_engine().update_shopping_entry(entry_id, quantity, priority, notes)
        output_data = {
            "success": True,
            "message": f"Updated {entry.item_name}",
            "data": {"entry": entry.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@shopping_app.command("purchase")
def shopping_purchase(
    entry_id: Annotated[str, typer.Argument(help="Shopping list entry ID")],
    undo: Annotated[bool, typer.Option("--undo", help="Mark as not purchased")] = False,
) -> None:
    """Mark a shopping list entry as purchased."""
    try:
        entry = get_engine().mark_purchased(entry_id, purchased=not undo)
        state = "purchased" if entry.purchased else "not purchased"
        output_data = {
            "success": True,
            "message": f"{entry.item_name} marked {state}",
            "data": {"entry": entry.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@shopping_app.command("remove")
def shopping_remove(
    entry_id: Annotated[str, typer.Argument(help="Shopping list entry ID")],
) -> None:
    """Remove an entry from the shopping list."""
    try:
        entry = get_engine().remove_shopping_entry(entry_id)
        output_data = {
            "success": True,
            "message": f"Removed {entry.item_name} from shopping list",
            "data": {"entry": entry.model_dump(mode="json")},
        }
        formatter.output(output_data, output_data["message"])
    except Exception as e:
        fail(e)


@shopping_app.command("clear")
def shopping_clear() -> None:
    """Remove purchased entries from the shopping list."""
    try:
        count = get_engine().clear_purchased()
        formatter.success(f"Cleared {count} purchased entries", {"cleared": count})
    except Exception as e:
        fail(e)


# --- Summary ---


@app.command()
def summary() -> None:
    """Show the household inventory summary."""
    try:
        report = get_engine().request_summary()
        formatter.output(
            {"success": True, "data": {"summary": report.model_dump(mode="json")}},
            "Inventory summary",
        )
    except Exception as e:
        fail(e)


if __name__ == "__main__":
    app()
