"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ahoi.core.types import StructureInfo
from ahoi.exceptions import AhoiError

console = Console()


class OutputFormatter:
    """Formats output for the terminal or as JSON."""

    def __init__(self, json_mode: bool = False) -> None:
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print rows as a Rich table, or the raw rows as a JSON array."""
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
            return
        table = Table(title=title, show_header=True, header_style="bold magenta")
        for col in columns:
            table.add_column(col)
        for row in data:
            table.add_row(*[str(row.get(col, "")) for col in columns])
        console.print(table)

    def print_structure_info(self, structure: StructureInfo) -> None:
        """Print a structure with its fields."""
        if self.json_mode:
            print(json.dumps(structure.model_dump(mode="json"), indent=2))
            return

        console.print(f"\n[bold]Structure:[/bold] {structure.name} ({structure.slug})")
        console.print(f"Table: {structure.table_name}")
        if structure.record_count is not None:
            console.print(f"Records: {structure.record_count:,}")
        if structure.description:
            console.print(f"Description: {structure.description}")
        if structure.created_at:
            console.print(f"Created: {structure.created_at}")

        if structure.fields:
            console.print(f"\n[bold]Fields ({len(structure.fields)}):[/bold]")
            fields_table = Table(show_header=True, header_style="bold cyan")
            fields_table.add_column("Slug")
            fields_table.add_column("Name")
            fields_table.add_column("Type")
            fields_table.add_column("Required")
            fields_table.add_column("Default")
            for f in structure.fields:
                fields_table.add_row(
                    f.slug,
                    f.name,
                    str(f.type),
                    "✓" if f.is_required else "",
                    f.default_value or "",
                )
            console.print(fields_table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        if self.json_mode:
            if isinstance(error, AhoiError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
            return

        error_text = str(error)
        if isinstance(error, AhoiError) and error.context:
            context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
            error_text = f"{error_text}\n\n{context_str}"
        console.print(Panel(error_text, title="[red]Error[/red]", border_style="red"))

    def print_data(self, data: Any) -> None:
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            console.print_json(json.dumps(data, default=str))
