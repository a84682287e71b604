"""Generate an upgrade plan from an audit snapshot."""

import click
from rich.table import Table

from dialectic.commands import STRATEGY_CHOICES, RichCommand, emit_json
from dialectic.pipeline.ui import change_label, console, print_header, print_warning
from dialectic.utils.error_handler import handle_exceptions


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--snapshot", "snapshot_file", required=True, type=click.File("r", encoding="utf-8"), help="Audit snapshot JSON file, or - for stdin")
@click.option("--strategy", type=click.Choice(STRATEGY_CHOICES), default=None, help="Risk strategy (default: planner.default_strategy, balanced)")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
def plan(snapshot_file, strategy, as_json):
    """Turn an audit snapshot into ordered upgrade proposals.

    Security fixes come first and are always proposed; a fix that needs a
    larger jump than the strategy allows carries a caution. Stale packages
    are included only within the strategy's reach:

    \b
      conservative  patch upgrades only, to the in-range version
      balanced      patch and minor upgrades, to latest
      aggressive    any upgrade, to latest

    \b
    Examples:
      dialectic audit --json | dialectic plan --snapshot - --strategy conservative
      dialectic plan --snapshot snapshot.json --json"""
    from dialectic.config_runtime import load_runtime_config
    from dialectic.errors import SnapshotError
    from dialectic.planner import plan_from_json

    cfg = load_runtime_config()
    strategy = strategy or cfg["planner"]["default_strategy"]
    if strategy not in STRATEGY_CHOICES:
        raise click.BadParameter(f"Unknown strategy in config: {strategy}", param_hint="--strategy")

    try:
        upgrade_plan = plan_from_json(
            snapshot_file.read(), strategy, cfg["planner"]["minutes_per_upgrade"]
        )
    except SnapshotError as e:
        raise click.ClickException(f"Invalid audit snapshot: {e}") from e

    if as_json:
        emit_json(upgrade_plan)
        return

    print_header(f"UPGRADE PLAN ({upgrade_plan.strategy.value})")
    if not upgrade_plan.proposals:
        console.print("Nothing to upgrade.")
        return

    table = Table(show_lines=False)
    table.add_column("Package", style="cmd")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Type")
    table.add_column("Fixes")
    for proposal in upgrade_plan.proposals:
        table.add_row(
            proposal.package,
            proposal.from_version,
            proposal.to_version,
            change_label(proposal.change_class),
            ", ".join(proposal.security_fix_ids) or "-",
        )
    console.print(table)

    for proposal in upgrade_plan.proposals:
        if proposal.caution:
            print_warning(f"{proposal.package}: {proposal.caution}")

    console.print(
        f"\n{upgrade_plan.total_upgrades} upgrades, estimated {upgrade_plan.estimated_duration}"
    )
