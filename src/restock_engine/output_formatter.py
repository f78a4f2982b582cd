"""Output formatting for CLI and programmatic use."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .data_store import JSONEncoder

STATUS_STYLE = {
    "critical": "[bold red]critical[/bold red]",
    "low": "[yellow]low[/yellow]",
    "good": "[green]good[/green]",
}

PRIORITY_STYLE = {
    "critical": "[bold red]critical[/bold red]",
    "high": "[yellow]high[/yellow]",
    "medium": "[blue]medium[/blue]",
}


def format_days(days: float | None) -> str:
    """Days remaining for display; None means not depleting."""
    if days is None:
        return "∞"
    return f"{days:.1f}"


def format_rate(rate: float | None) -> str:
    if rate is None:
        return "unknown"
    return f"{rate:.2f}/day"


class OutputFormatter:
    """Formats output for both Rich terminal and JSON modes."""

    def __init__(self, json_mode: bool = False):
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode
        self.console = Console()

    def output(self, data: dict[str, Any], message: str = "") -> None:
        """Output data in appropriate format.

        Args:
            data: Data to output
            message: Optional message for Rich mode
        """
        if self.json_mode:
            self._output_json(data)
        else:
            self._output_rich(data, message)

    def _output_json(self, data: dict[str, Any]) -> None:
        """Output as JSON to stdout."""
        print(json.dumps(data, cls=JSONEncoder, indent=2))

    def _output_rich(self, data: dict[str, Any], message: str) -> None:
        """Output with Rich formatting."""
        if message:
            self.console.print(f"[green]✓[/green] {message}")

        payload = data.get("data", {})
        if "reconciliation" in payload:
            self._render_reconciliation(data)
        elif "receipt" in payload:
            self._render_receipt(data)
        elif "receipts" in payload:
            self._render_receipts(data)
        elif "inventory_item" in payload:
            self._render_inventory_item(data)
        elif "inventory" in payload:
            self._render_inventory(data)
        elif "history" in payload:
            self._render_history(data)
        elif "stats" in payload:
            self._render_stats(data)
        elif "purchases" in payload:
            self._render_purchases(data)
        elif "shopping_list" in payload:
            self._render_shopping_list(data)
        elif "changes" in payload:
            self._render_changes(data)
        elif "summary" in payload:
            self._render_summary(data)

    def _render_inventory_item(self, data: dict) -> None:
        """Render a single inventory item."""
        item = data["data"]["inventory_item"]

        panel_content = f"""[bold]{item["name"]}[/bold]

Quantity: {item["quantity"]} {item["unit"]}
Category: {item["category"]}
Location: {item["location"]}
Burn rate: {format_rate(item.get("burn_rate"))}
Days remaining: {format_days(item.get("days_remaining"))}
Status: {STATUS_STYLE.get(item.get("status", ""), item.get("status", "-"))}"""

        if item.get("reorder_threshold") is not None:
            panel_content += f"\nReorder threshold: {item['reorder_threshold']} days"

        panel = Panel(panel_content, title="Inventory Item", border_style="green")
        self.console.print(panel)

    def _render_inventory(self, data: dict) -> None:
        """Render inventory list."""
        items = data["data"]["inventory"]

        if not items:
            self.console.print("[dim]No items in inventory[/dim]")
            return

        table = Table(title="Household Inventory", show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Location", style="green")
        table.add_column("Category", style="yellow")
        table.add_column("Burn rate", justify="right")
        table.add_column("Days left", justify="right")
        table.add_column("Status")
        table.add_column("ID", style="dim")

        for item in items:
            table.add_row(
                item["name"],
                f"{item['quantity']:g} {item['unit']}",
                item["location"],
                item["category"],
                format_rate(item.get("burn_rate")),
                format_days(item.get("days_remaining")),
                STATUS_STYLE.get(item["status"], item["status"]),
                str(item["id"]),
            )

        self.console.print(table)

    def _render_history(self, data: dict) -> None:
        """Render an item's observation history."""
        observations = data["data"]["history"]

        if not observations:
            self.console.print("[dim]No observations recorded[/dim]")
            return

        table = Table(title="Quantity History", show_header=True, header_style="bold cyan")
        table.add_column("When")
        table.add_column("Quantity", justify="right")
        table.add_column("Kind", style="yellow")

        for observation in observations:
            table.add_row(
                str(observation["timestamp"]).replace("T", " ")[:19],
                f"{observation['quantity_after']:g}",
                observation["kind"],
            )

        self.console.print(table)

    def _render_stats(self, data: dict) -> None:
        """Render consumption statistics."""
        stats = data["data"]["stats"]

        self.console.print(f"\n[bold]Consumption over {stats['days']} days[/bold]")
        self.console.print(f"Events: {stats['total_events']}")
        self.console.print(f"Consumed: {stats['total_consumed']:g}")
        self.console.print(f"Restocked: {stats['total_restocked']:g}")
        self.console.print(
            f"Average per consumption event: {stats['avg_consumption_per_event']:.2f}"
        )

    def _render_purchases(self, data: dict) -> None:
        """Render an item's purchase history."""
        purchases = data["data"]["purchases"]

        if not purchases:
            self.console.print("[dim]No purchases recorded[/dim]")
            return

        table = Table(title="Purchase History", show_header=True, header_style="bold cyan")
        table.add_column("Date")
        table.add_column("Qty", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Store", style="green")

        for purchase in purchases:
            price = purchase.get("price")
            table.add_row(
                str(purchase["purchased_at"])[:10],
                f"{purchase['quantity']:g} {purchase.get('unit') or ''}".strip(),
                f"${price:.2f}" if price is not None else "-",
                purchase.get("store_name") or "-",
            )

        self.console.print(table)

    def _render_receipt(self, data: dict) -> None:
        """Render a stored receipt."""
        receipt = data["data"]["receipt"]

        state = "processed" if receipt["processed"] else "pending"
        panel = Panel(
            f"""[bold]{receipt.get("store_name") or "Unknown store"}[/bold]

Source: {receipt["source"]}
Items: {len(receipt["items"])}
Status: {state}""",
            title="Receipt",
            border_style="green",
        )
        self.console.print(panel)

        table = Table(show_header=True)
        table.add_column("Item")
        table.add_column("Qty", justify="right")
        table.add_column("Category")
        table.add_column("Price", justify="right")

        for item in receipt["items"]:
            price = item.get("price")
            table.add_row(
                item["name"],
                f"{item['quantity']:g}",
                item.get("category") or "-",
                f"${price:.2f}" if price is not None else "-",
            )

        self.console.print(table)

    def _render_receipts(self, data: dict) -> None:
        """Render receipt list."""
        receipts = data["data"]["receipts"]

        table = Table(title="Receipts", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Store")
        table.add_column("Source")
        table.add_column("Items", justify="right")
        table.add_column("Processed")

        for receipt in receipts:
            table.add_row(
                str(receipt["id"]),
                receipt.get("store") or "-",
                receipt["source"],
                str(receipt["items"]),
                "[green]✓[/green]" if receipt["processed"] else "-",
            )

        self.console.print(table)

    def _render_reconciliation(self, data: dict) -> None:
        """Render reconciliation results."""
        recon = data["data"]["reconciliation"]

        self.console.print("\n[bold]Reconciliation Summary[/bold]")
        self.console.print(f"Matched: {recon['matched_items']}")
        self.console.print(f"Created: {recon['created_items']}")

        for line in recon["lines"]:
            how = line["strategy"] or "new item"
            self.console.print(f"  [cyan]{line['name']}[/cyan] +{line['quantity_added']:g} ({how})")

        if recon["shopping_list_changes"]:
            self._render_changes({"data": {"changes": recon["shopping_list_changes"]}})

    def _render_shopping_list(self, data: dict) -> None:
        """Render shopping list."""
        entries = data["data"]["shopping_list"]

        if not entries:
            self.console.print("[dim]Shopping list is empty[/dim]")
            return

        table = Table(title="Shopping List", show_header=True, header_style="bold cyan")
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Category", style="yellow")
        table.add_column("Priority")
        table.add_column("Bought")
        table.add_column("Notes", style="dim")
        table.add_column("ID", style="dim")

        for entry in entries:
            table.add_row(
                entry["item_name"],
                f"{entry['suggested_quantity']:g} {entry['unit']}",
                entry["category"],
                PRIORITY_STYLE.get(entry["priority"], entry["priority"]),
                "[green]✓[/green]" if entry["purchased"] else "○",
                entry.get("notes") or "",
                str(entry["id"]),
            )

        self.console.print(table)
        self.console.print(f"\nTotal entries: {len(entries)}")

    def _render_changes(self, data: dict) -> None:
        """Render shopping list changes."""
        changes = data["data"]["changes"]

        if not changes:
            self.console.print("[dim]Shopping list already up to date[/dim]")
            return

        icons = {
            "created": "[green]+[/green]",
            "updated": "[yellow]~[/yellow]",
            "removed": "[red]-[/red]",
        }
        self.console.print("\n[bold]Shopping list changes[/bold]")
        for change in changes:
            entry = change["entry"]
            self.console.print(
                f"  {icons.get(change['action'], ' ')} {entry['item_name']} "
                f"({entry['suggested_quantity']:g} {entry['unit']}, {entry['priority']})"
            )

    def _render_summary(self, data: dict) -> None:
        """Render the household summary."""
        summary = data["data"]["summary"]

        self.console.print(
            Panel(
                "\n".join(summary["insights"]["daily"]),
                title=f"Today's Overview ({summary['date']})",
                border_style="blue",
            )
        )

        counts = Table(show_header=True, header_style="bold cyan")
        counts.add_column("Total", justify="right")
        counts.add_column("Critical", justify="right", style="red")
        counts.add_column("Low", justify="right", style="yellow")
        counts.add_column("Good", justify="right", style="green")
        counts.add_column("Unknown rate", justify="right", style="dim")
        counts.add_row(
            str(summary["total_items"]),
            str(summary["critical_items"]),
            str(summary["low_items"]),
            str(summary["good_items"]),
            str(summary["unknown_rate_items"]),
        )
        self.console.print(counts)

        if summary["high_consumption"]:
            table = Table(title="High Consumption Items", show_header=True)
            table.add_column("Item", style="cyan")
            table.add_column("Qty", justify="right")
            table.add_column("Burn rate", justify="right")
            table.add_column("Days left", justify="right")
            for item in summary["high_consumption"]:
                table.add_row(
                    item["name"],
                    f"{item['quantity']:g} {item['unit']}",
                    format_rate(item["burn_rate"]),
                    format_days(item["days_remaining"]),
                )
            self.console.print(table)

        self.console.print("\n[bold]7-Day Forecast[/bold]")
        for line in summary["insights"]["weekly"]:
            self.console.print(f"  {line}")

        self.console.print("\n[bold]Recommendations[/bold]")
        for line in summary["recommendations"]:
            self.console.print(f"  • {line}")

    def error(self, message: str, error_code: str | None = None) -> None:
        """Output error message.

        Args:
            message: Error message
            error_code: Optional error code
        """
        if self.json_mode:
            output = {"success": False, "error": message}
            if error_code:
                output["error_code"] = error_code
            print(json.dumps(output))
        else:
            self.console.print(f"[red]✗ Error:[/red] {message}")

    def success(self, message: str, data: dict | None = None) -> None:
        """Output success message.

        Args:
            message: Success message
            data: Optional data to include
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if data:
                output["data"] = data
            print(json.dumps(output, cls=JSONEncoder))
        else:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Output warning message.

        Args:
            message: Warning message
        """
        if self.json_mode:
            print(json.dumps({"warning": message}))
        else:
            self.console.print(f"[yellow]⚠[/yellow] {message}")
