"""CLI commands for dialectic.

Every command emits its result as a single line of JSON with ``--json`` (for
a calling agent) or as a Rich summary otherwise. Logs always go to stderr.
"""

import inspect
from typing import Any

import click

from dialectic.pipeline.ui import console
from dialectic.utils.helpers import safe_stringify

# Shared option values
PACKAGE_MANAGER_CHOICES = ["auto", "npm", "pnpm", "yarn"]
STRATEGY_CHOICES = ["conservative", "balanced", "aggressive"]
RECOVERY_CHOICES = ["auto", "git", "backup"]


class RichCommand(click.Command):
    """Command whose help text is rendered through the shared Rich console."""

    def format_help(self, ctx, formatter):
        console.rule(f"[bold]{ctx.command_path}[/bold]")
        if self.help:
            console.print(inspect.cleandoc(self.help).replace("\b\n", ""), markup=False, highlight=False)
        console.print()
        self.format_usage(ctx, formatter)
        self.format_options(ctx, formatter)
        self.format_epilog(ctx, formatter)


def emit_json(result: Any) -> None:
    """Print a result as one line of control-character-free JSON on stdout."""
    click.echo(safe_stringify(result))


__all__ = [
    "PACKAGE_MANAGER_CHOICES",
    "RECOVERY_CHOICES",
    "STRATEGY_CHOICES",
    "RichCommand",
    "emit_json",
]
