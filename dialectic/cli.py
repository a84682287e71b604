"""dialectic CLI - Main entry point and command registration hub."""
# ruff: noqa: E402 - commands are imported after the group so they can register on it

import click
from rich.table import Table

from dialectic import __version__
from dialectic.pipeline.ui import console
from dialectic.utils.exit_codes import ExitCodes

# (heading, blurb, [(command, hint), ...]) in pipeline order
COMMAND_SECTIONS = [
    (
        "DISCOVERY",
        "Read-only: inventory the project and decide what to change",
        [
            ("audit", "first, and again after every applied upgrade"),
            ("plan", "turn an audit snapshot into version targets"),
            ("assess", "second opinion on one proposal before applying"),
        ],
    ),
    (
        "MUTATION",
        "Change the project; upgrade chains apply, test and rollback",
        [
            ("upgrade", "approved proposal, full safety net"),
            ("apply", "manifest edit and install only"),
            ("test", "validate the project after a change"),
            ("rollback", "after a failed apply or failing tests"),
        ],
    ),
]

EXIT_CODE_HELP = [
    (ExitCodes.SUCCESS, "success"),
    (ExitCodes.OPERATION_FAILED, "operation failed, or project left modified"),
    (ExitCodes.CRITICAL_SEVERITY, "audit found a critical vulnerability; also click usage errors"),
    (ExitCodes.TESTS_FAILED, "tests failed (upgrade: and recovery failed too)"),
    (ExitCodes.ROLLED_BACK, "upgrade rolled back"),
]


class VerboseGroup(click.Group):
    """Group whose --help lists commands by pipeline stage, for agents and humans."""

    def format_commands(self, ctx, formatter):
        # Listing is printed by format_help
        pass

    def format_help(self, ctx, formatter):
        super().format_help(ctx, formatter)

        visible = {name: cmd for name, cmd in self.commands.items() if not cmd.hidden}

        console.print()
        for heading, blurb, entries in COMMAND_SECTIONS:
            console.rule(f"[bold]{heading}[/bold]", align="left")
            console.print(f"[dim]{blurb}[/dim]")

            table = Table(show_header=False, box=None, padding=(0, 2, 0, 1))
            table.add_column(style="cmd", no_wrap=True)
            table.add_column()
            table.add_column(style="dim")
            for name, hint in entries:
                if name in visible:
                    table.add_row(name, visible[name].get_short_help_str(limit=45), hint)
            console.print(table)
            console.print()

        codes = Table(title="Exit codes", title_justify="left", show_header=False, box=None, padding=(0, 2, 0, 1))
        for code, meaning in EXIT_CODE_HELP:
            codes.add_row(str(code), meaning)
        console.print(codes)
        console.print("\nFor detailed options: [cmd]dialectic <command> --help[/cmd]")


@click.group(cls=VerboseGroup)
@click.version_option(version=__version__, prog_name="dialectic")
@click.help_option("-h", "--help")
def cli():
    """dialectic - Dependency upgrade planning with rollback

    \b
    QUICK START:
      dialectic audit --json > snapshot.json
      dialectic plan --snapshot snapshot.json --json > plan.json
      jq '.proposals[0]' plan.json | dialectic upgrade --proposal -

    \b
    For detailed options: dialectic <command> --help"""
    pass


from dialectic.commands.apply import apply
from dialectic.commands.assess import assess
from dialectic.commands.audit import audit
from dialectic.commands.plan import plan
from dialectic.commands.rollback import rollback
from dialectic.commands.run_tests import test_suite
from dialectic.commands.upgrade import upgrade

cli.add_command(audit)
cli.add_command(plan)
cli.add_command(assess)
cli.add_command(apply)
cli.add_command(test_suite, name="test")
cli.add_command(rollback)
cli.add_command(upgrade)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
