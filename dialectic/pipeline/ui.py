"""Shared Rich console for dialectic's human-readable output.

Commands print through this console only when ``--json`` is absent; JSON
results go to stdout through ``emit_json`` and logs go to stderr.

Usage:
    from dialectic.pipeline.ui import console, print_header, severity_label

    print_header("UPGRADE PLAN")
    table.add_row(severity_label(vuln.severity), vuln.package)
    print_outcome_panel(result.outcome, "lodash 4.17.19 -> 4.17.21", result.mutation.message)
"""

import sys

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

DIALECTIC_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    # vulnerability severities
    "critical": "bold red",
    "high": "bold yellow",
    "medium": "bold blue",
    "low": "cyan",
    # version distance
    "major": "bold red",
    "minor": "bold yellow",
    "patch": "green",
    "cmd": "bold magenta",
    "path": "bold cyan",
    "dim": "dim white",
})

# Border colour per upgrade outcome
OUTCOME_STYLES = {
    "upgraded": "green",
    "rolled_back": "blue",
    "rejected": "yellow",
    "failed": "red",
}

console = Console(
    theme=DIALECTIC_THEME,
    force_terminal=sys.stdout.isatty()
)


def print_header(title: str) -> None:
    console.rule(f"[bold]{escape(title)}[/bold]")


def print_error(msg: str) -> None:
    # Tool output often contains [brackets]; never treat it as markup
    console.print(f"[error]ERROR:[/error] {escape(msg)}")


def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {escape(msg)}")


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {escape(msg)}")


def severity_label(severity) -> str:
    """Markup for a Severity, e.g. '[high]HIGH[/high]'. INFO is left unstyled."""
    value = severity.value
    if value == "info":
        return value.upper()
    return f"[{value}]{value.upper()}[/{value}]"


def change_label(change_class) -> str:
    """Markup for a ChangeClass, e.g. '[major]major[/major]'."""
    value = change_class.value
    return f"[{value}]{value}[/{value}]"


def print_outcome_panel(outcome, target: str, detail: str) -> None:
    """Boxed summary of one guarded upgrade.

    Args:
        outcome: UpgradeOutcome of the pipeline run
        target: "<package> <from> -> <to>"
        detail: Mutation, test or recovery message explaining the outcome
    """
    border = OUTCOME_STYLES.get(outcome.value, "white")
    label = outcome.value.replace("_", " ").upper()
    panel = Panel(
        Text.assemble(
            (f"{label}\n", f"bold {border}"),
            (f"{target}\n", "bold"),
            (detail, border),
        ),
        border_style=border,
        expand=False,
    )
    console.print(panel)
