"""Central UI handler for the Graphform CLI.

Single source of truth for Rich console styling. Import `console` instead
of instantiating Console() in each command.

Usage:
    from graphform.ui import console, print_error, print_plan

    print_plan(render_plan(plan))
    print_error(payload)
"""

import sys
from typing import Any, Dict

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from graphform.core.errors import GraphformErrorPayload

GRAPHFORM_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "create": "green",
    "update": "yellow",
    "replace": "magenta",
    "destroy": "red",
    "dim": "dim white",
    "address": "bold cyan",
    "path": "bold cyan",
})

console = Console(theme=GRAPHFORM_THEME, force_terminal=sys.stdout.isatty(), soft_wrap=True)
err_console = Console(theme=GRAPHFORM_THEME, stderr=True, soft_wrap=True)

# Order matters: "-/+" must win over "-".
_LINE_STYLES = (
    ("-/+", "replace"),
    ("+", "create"),
    ("~", "update"),
    ("-", "destroy"),
)


def _style_for(line: str) -> str:
    stripped = line.lstrip()
    if stripped.startswith("#"):
        return "dim"
    if stripped.startswith(("Plan:", "Apply complete!")):
        return "success"
    for prefix, style in _LINE_STYLES:
        if stripped.startswith(prefix + " "):
            return style
    return ""


def print_plan(text: str) -> None:
    """Print rendered plan/apply text, coloring each line by its action symbol."""
    for line in text.splitlines():
        console.print(Text(line, style=_style_for(line)))


def print_error(error: GraphformErrorPayload) -> None:
    err_console.print(Text.assemble(("Error: ", "error"), (f"[{error.type}] ", "error"), error.message))
    if error.address:
        err_console.print(Text.assemble("  on ", (error.address, "address")))
    for key, value in sorted((error.details or {}).items()):
        if value is None:
            continue
        err_console.print(Text(f"  {key}: {value}", style="dim"))
    if error.hint:
        err_console.print(Text(f"  hint: {error.hint}"))


def print_warning(msg: str) -> None:
    err_console.print(Text.assemble(("Warning: ", "warning"), msg))


def print_success(msg: str) -> None:
    console.print(Text(msg, style="success"))


def state_table(rows: Dict[str, Dict[str, Any]]) -> Table:
    """Table of address -> {type, id, dependencies}."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Address", style="address")
    table.add_column("Type")
    table.add_column("ID", overflow="fold")
    table.add_column("Depends on", style="dim")
    for address in sorted(rows):
        row = rows[address]
        table.add_row(address, row["type"], row["id"], ", ".join(row.get("dependencies", [])))
    return table
