"""Output helpers for query answers and errors"""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape

ROW_SEPARATOR = "-" * 40


def format_value(value: Any) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value)
    return str(value)


def print_row(console: Console, row: dict[str, Any], is_first: bool):
    """Print one answer row, each column on its own line"""
    if is_first:
        console.print(ROW_SEPARATOR, markup=False, highlight=False)
    width = max((len(name) for name in row), default=0) + 1
    for name, value in row.items():
        label = f"${name}".ljust(width)
        console.print(f"{label} | {format_value(value)}", markup=False, highlight=False)
    console.print(ROW_SEPARATOR, markup=False, highlight=False)


def print_document(console: Console, document: Any):
    console.print(json.dumps(document, indent=2), markup=False, highlight=False)


def println_error(console: Console, message: str):
    console.print(f"[bold red]error:[/bold red] {escape(message)}")


def println_warning(console: Console, message: str):
    console.print(f"[yellow]warning:[/yellow] {escape(message)}")


def print_command_echo(console: Console, depth: int, text: str):
    console.print(f"[bold]{'+' * depth}[/bold] {escape(text)}")


def print_command_error(console: Console, command: str, error: Exception | str):
    console.print(f"[bold red]**Error executing command**[/bold red]\n{escape(command)}\n[red]--> Error[/red]")
    console.print(escape(str(error)), highlight=False)
