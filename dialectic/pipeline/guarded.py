"""Guarded upgrade - apply one proposal, validate with tests, roll back on failure.

    apply_upgrade --ok--> run_tests --pass--> UPGRADED
         |                    |
         | manifest changed   | fail / timeout
         v                    v
    rollback_changes <--------+  --ok--> ROLLED_BACK
                                 --fail-> FAILED

A mutation that failed before touching the manifest (bad input, backup
failure) is REJECTED without a rollback. The test exit code is the pass
signal; parsed counts are carried along as detail.
"""

from __future__ import annotations

from pathlib import Path

from dialectic.models import RecoveryMethod, UpgradeProposal
from dialectic.pipeline.structures import GuardedUpgradeResult, UpgradeOutcome
from dialectic.rollback import DEFAULT_RECOVERY_INSTALL_TIMEOUT, rollback_changes
from dialectic.test_runner import DEFAULT_TEST_TIMEOUT, run_tests
from dialectic.upgrader import DEFAULT_INSTALL_TIMEOUT, apply_upgrade
from dialectic.utils.constants import BACKUP_DIR_NAME
from dialectic.utils.logging import logger, upgrade_context


def guarded_upgrade(
    project_path: str | Path,
    proposal: UpgradeProposal,
    *,
    package_manager: str | None = "auto",
    test_command: str | None = None,
    run_test_suite: bool = True,
    recovery_method: RecoveryMethod | str = RecoveryMethod.AUTO,
    install_timeout: float = DEFAULT_INSTALL_TIMEOUT,
    test_timeout: float = DEFAULT_TEST_TIMEOUT,
    recovery_install_timeout: float = DEFAULT_RECOVERY_INSTALL_TIMEOUT,
    backup_dir_name: str = BACKUP_DIR_NAME,
) -> GuardedUpgradeResult:
    """Run the apply, test and rollback sequence for one proposal. Never raises."""
    with upgrade_context(proposal.id, proposal.package):
        logger.info(
            f"Guarded upgrade {proposal.id}: {proposal.package} "
            f"{proposal.from_version} -> {proposal.to_version}"
        )

        mutation = apply_upgrade(
            project_path,
            proposal.package,
            proposal.to_version,
            upgrade_id=proposal.id,
            from_version=proposal.from_version,
            package_manager=package_manager,
            create_backup=True,
            time_budget=install_timeout,
            backup_dir_name=backup_dir_name,
        )

        def recover(tests=None) -> GuardedUpgradeResult:
            recovery = rollback_changes(
                project_path,
                recovery_method,
                upgrade_id=proposal.id,
                backup_dir_name=backup_dir_name,
                recovery_install_timeout=recovery_install_timeout,
                package_manager=package_manager,
            )
            outcome = UpgradeOutcome.ROLLED_BACK if recovery.success else UpgradeOutcome.FAILED
            if not recovery.success:
                logger.error(f"Project left modified after failed upgrade {proposal.id}: {recovery.message}")
            return GuardedUpgradeResult(proposal, outcome, mutation, tests, recovery)

        if not mutation.success:
            if mutation.manifest_changed:
                logger.warning(f"Install failed after manifest edit ({mutation.error_kind}), rolling back")
                return recover()
            return GuardedUpgradeResult(proposal, UpgradeOutcome.REJECTED, mutation)

        if not run_test_suite:
            logger.info("Test suite skipped")
            return GuardedUpgradeResult(proposal, UpgradeOutcome.UPGRADED, mutation)

        tests = run_tests(project_path, test_command, timeout=test_timeout)
        if not tests.success:
            reason = "timed out" if tests.timed_out else f"exited {tests.exit_code}"
            logger.warning(f"Tests {reason} after upgrading {proposal.package}, rolling back")
            return recover(tests)

        logger.success(f"{proposal.package} upgraded to {proposal.to_version}; tests passed")
        return GuardedUpgradeResult(proposal, UpgradeOutcome.UPGRADED, mutation, tests)
