"""Apply one upgrade to a project."""

import sys

import click

from dialectic.commands import PACKAGE_MANAGER_CHOICES, RichCommand, emit_json
from dialectic.pipeline.ui import console, print_error, print_success
from dialectic.utils.error_handler import handle_exceptions
from dialectic.utils.exit_codes import ExitCodes


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--project", default=".", type=click.Path(exists=True, file_okay=False), help="Project root containing package.json")
@click.option("--package", "package_name", required=True, help="Package to upgrade")
@click.option("--version", "target_version", required=True, help="Version to write into package.json")
@click.option("--upgrade-id", default=None, help="Proposal id, recorded with the backup")
@click.option("--from-version", default=None, help="Version being replaced, recorded with the backup")
@click.option("--no-backup", is_flag=True, help="Do not back up package.json first")
@click.option("--skip-install", is_flag=True, help="Only rewrite package.json")
@click.option("--time-budget", type=float, default=None, help="Install timeout in seconds (default: timeouts.install, 15)")
@click.option("--package-manager", type=click.Choice(PACKAGE_MANAGER_CHOICES), default="auto", help="Package manager (default: detect from lockfile)")
@click.option("--json", "as_json", is_flag=True, help="Print the mutation result as JSON")
def apply(project, package_name, target_version, upgrade_id, from_version, no_backup,
          skip_install, time_budget, package_manager, as_json):
    """Rewrite one dependency version and reinstall.

    Backs up package.json into .dialectic-backup/, sets the version in
    dependencies (or devDependencies), then runs `<manager> install` within
    the time budget. A package that is not declared is never added.

    An install failure or timeout leaves the manifest edited; run
    `dialectic rollback` to restore it.

    \b
    Examples:
      dialectic apply --package lodash --version 4.17.21
      dialectic apply --package react --version 18.3.1 --skip-install --json

    \b
    Exit Codes:
      0 = Upgrade applied
      1 = Upgrade failed (see error_kind)"""
    from dialectic.config_runtime import load_runtime_config
    from dialectic.upgrader import apply_upgrade

    cfg = load_runtime_config(project)
    result = apply_upgrade(
        project,
        package_name,
        target_version,
        upgrade_id=upgrade_id,
        from_version=from_version,
        package_manager=package_manager,
        create_backup=not no_backup,
        skip_install=skip_install,
        time_budget=time_budget or cfg["timeouts"]["install"],
        backup_dir_name=cfg["paths"]["backup_dir"],
    )

    if as_json:
        emit_json(result)
    elif result.success:
        print_success(result.message)
        if result.backup_path:
            console.print(f"  Backup: [path]{result.backup_path}[/path]")
    else:
        print_error(result.message)
        if result.manifest_changed:
            console.print("  package.json was modified. Run [cmd]dialectic rollback[/cmd] to restore it.")

    if not result.success:
        sys.exit(ExitCodes.OPERATION_FAILED)
