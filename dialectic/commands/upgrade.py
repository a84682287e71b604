"""Apply, test and (if needed) roll back one upgrade proposal."""

import sys

import click

from dialectic.commands import PACKAGE_MANAGER_CHOICES, RECOVERY_CHOICES, RichCommand, emit_json
from dialectic.pipeline.ui import print_outcome_panel
from dialectic.utils.error_handler import handle_exceptions


@click.command(cls=RichCommand)
@handle_exceptions
@click.option("--project", default=".", type=click.Path(exists=True, file_okay=False), help="Project root containing package.json")
@click.option("--proposal", "proposal_file", required=True, type=click.File("r", encoding="utf-8"), help="Upgrade proposal JSON file, or - for stdin")
@click.option("--test-command", default=None, help="Explicit test command (default: scripts.test)")
@click.option("--skip-tests", is_flag=True, help="Apply without running the test suite")
@click.option("--method", type=click.Choice(RECOVERY_CHOICES), default="auto", help="Recovery method if the upgrade fails")
@click.option("--package-manager", type=click.Choice(PACKAGE_MANAGER_CHOICES), default="auto", help="Package manager (default: detect from lockfile)")
@click.option("--json", "as_json", is_flag=True, help="Print the pipeline result as JSON")
def upgrade(project, proposal_file, test_command, skip_tests, method, package_manager, as_json):
    """Guarded upgrade: apply a proposal, run tests, roll back on failure.

    \b
    Sequence:
      1. back up package.json, rewrite the version, install
      2. run the test suite (exit code decides)
      3. if install or tests failed, restore via git or the backup

    \b
    Examples:
      dialectic upgrade --project ./app --proposal proposal.json
      jq '.proposals[0]' plan.json | dialectic upgrade --proposal - --json

    \b
    Exit Codes:
      0 = Upgraded and tests passed
      1 = Upgrade rejected or recovery failed
      3 = Tests failed and recovery failed
      4 = Upgrade failed and the project was rolled back"""
    from dialectic.config_runtime import load_runtime_config
    from dialectic.errors import ProposalError
    from dialectic.models import UpgradeProposal
    from dialectic.pipeline.guarded import guarded_upgrade

    try:
        proposal = UpgradeProposal.from_json(proposal_file.read())
    except ProposalError as e:
        raise click.ClickException(f"Invalid upgrade proposal: {e}") from e

    cfg = load_runtime_config(project)
    result = guarded_upgrade(
        project,
        proposal,
        package_manager=package_manager,
        test_command=test_command,
        run_test_suite=not skip_tests,
        recovery_method=method,
        install_timeout=cfg["timeouts"]["install"],
        test_timeout=cfg["timeouts"]["test_run"],
        recovery_install_timeout=cfg["timeouts"]["recovery_install"],
        backup_dir_name=cfg["paths"]["backup_dir"],
    )

    if as_json:
        emit_json(result)
    else:
        target = f"{proposal.package} {proposal.from_version} -> {proposal.to_version}"
        print_outcome_panel(result.outcome, target, _outcome_detail(result))

    if result.exit_code:
        sys.exit(result.exit_code)


def _outcome_detail(result) -> str:
    """One-line explanation of a GuardedUpgradeResult for the summary panel."""
    if result.success:
        tests = result.tests
        return f"tests passed ({tests.command})" if tests else "tests skipped"
    if result.recovery is None:
        return result.mutation.message
    if not result.mutation.success:
        cause = result.mutation.message
    elif result.tests.timed_out:
        cause = "tests timed out"
    else:
        cause = f"tests exited {result.tests.exit_code}"
    return f"{cause}; {result.recovery.message}"
