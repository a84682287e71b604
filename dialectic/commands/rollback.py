"""Restore a project's manifest after a failed upgrade."""

import sys

import click

from dialectic.commands import RECOVERY_CHOICES, RichCommand, emit_json
from dialectic.pipeline.ui import console, print_error, print_success
from dialectic.utils.error_handler import handle_exceptions
from dialectic.utils.exit_codes import ExitCodes


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--project", default=".", type=click.Path(exists=True, file_okay=False), help="Project root containing package.json")
@click.option("--method", type=click.Choice(RECOVERY_CHOICES), default="auto", help="Recovery method (auto = git, then backup)")
@click.option("--upgrade-id", default=None, help="Id of the upgrade being undone")
@click.option("--json", "as_json", is_flag=True, help="Print the recovery result as JSON")
def rollback(project, method, upgrade_id, as_json):
    """Restore package.json from git or the newest backup.

    \b
    Methods:
      git     package.json and tracked lockfiles from the HEAD commit
      backup  newest .dialectic-backup/package.json.*.bak, then reinstall
      auto    git first, backup if git fails

    Rollback is project-wide: it restores the whole manifest, not one
    package.

    \b
    Examples:
      dialectic rollback --project ./app
      dialectic rollback --method backup --json

    \b
    Exit Codes:
      0 = Restored
      1 = Every method failed; restore manually"""
    from dialectic.config_runtime import load_runtime_config
    from dialectic.rollback import rollback_changes

    cfg = load_runtime_config(project)
    result = rollback_changes(
        project,
        method,
        upgrade_id,
        backup_dir_name=cfg["paths"]["backup_dir"],
        recovery_install_timeout=cfg["timeouts"]["recovery_install"],
    )

    if as_json:
        emit_json(result)
    elif result.success:
        print_success(result.message)
        if result.package != "unknown":
            console.print(f"  {result.package} restored to {result.restored_version}", markup=False)
    else:
        print_error(result.message)

    if not result.success:
        sys.exit(ExitCodes.OPERATION_FAILED)
