"""Tests for the guarded upgrade pipeline (apply, test, roll back)."""

import subprocess

from conftest import read_manifest

from dialectic.models import ChangeClass, UpgradeProposal
from dialectic.pipeline import GuardedUpgradeResult, UpgradeOutcome
from dialectic.pipeline.guarded import guarded_upgrade
from dialectic.utils.exit_codes import ExitCodes

PROPOSAL = UpgradeProposal(
    id="upgrade-lodash-1a2b3c",
    package="lodash",
    from_version="4.17.19",
    to_version="4.17.21",
    change_class=ChangeClass.PATCH,
    security_fix_ids=("1523",),
)


class TestGuardedUpgrade:
    def test_upgraded_when_tests_pass(self, node_project, fake_run):
        fake_run.add(["npx", "jest"], stdout="Tests:       4 passed, 4 total\n")

        result = guarded_upgrade(node_project, PROPOSAL)

        assert isinstance(result, GuardedUpgradeResult)
        assert result.outcome is UpgradeOutcome.UPGRADED
        assert result.exit_code == ExitCodes.SUCCESS
        assert result.recovery is None
        assert result.tests.counts.passed == 4
        assert read_manifest(node_project)["dependencies"]["lodash"] == "4.17.21"
        assert fake_run.calls == [["npm", "install"], ["npx", "jest"]]

    def test_failing_tests_roll_back_via_git(self, git_project, fake_run):
        fake_run.add(["npx", "jest"], stdout="Tests:       1 failed, 3 passed, 4 total\n", returncode=1)

        result = guarded_upgrade(git_project, PROPOSAL)

        assert result.outcome is UpgradeOutcome.ROLLED_BACK
        assert result.exit_code == ExitCodes.ROLLED_BACK
        assert result.recovery.attempts == ("git",)
        assert result.recovery.upgrade_id == PROPOSAL.id
        assert result.recovery.package == "lodash"
        assert read_manifest(git_project)["dependencies"]["lodash"] == "^4.17.19"

    def test_unusable_test_command_rolls_back(self, git_project, fake_run):
        result = guarded_upgrade(git_project, PROPOSAL, test_command='npm test -- "unterminated')

        assert result.outcome is UpgradeOutcome.ROLLED_BACK
        assert result.tests.exit_code == 2
        assert read_manifest(git_project)["dependencies"]["lodash"] == "^4.17.19"
        assert fake_run.calls == [["npm", "install"]]

    def test_manifest_not_utf8_rejected(self, node_project, fake_run):
        (node_project / "package.json").write_bytes(b'{"dependencies": {"lodash": "4.17.19"}, "x": "\xff"}\n')

        result = guarded_upgrade(node_project, PROPOSAL)

        assert result.outcome is UpgradeOutcome.REJECTED
        assert result.mutation.error_kind == "input"
        assert result.recovery is None
        assert fake_run.calls == []

    def test_install_timeout_rolls_back_from_backup(self, node_project, fake_run):
        fake_run.add(["npm", "install"], exc=subprocess.TimeoutExpired(["npm", "install"], 15))

        result = guarded_upgrade(node_project, PROPOSAL)

        assert result.mutation.error_kind == "install_timeout"
        assert result.tests is None
        # git is unavailable and the backup reinstall hits the same stub
        assert result.recovery.attempts == ("git", "backup")
        assert result.outcome is UpgradeOutcome.FAILED
        assert result.exit_code == ExitCodes.OPERATION_FAILED
        assert read_manifest(node_project)["dependencies"]["lodash"] == "^4.17.19"

    def test_failing_tests_with_failed_recovery(self, node_project, fake_run):
        fake_run.add(["npx", "jest"], returncode=1)

        result = guarded_upgrade(node_project, PROPOSAL, recovery_method="git")

        assert result.outcome is UpgradeOutcome.FAILED
        assert result.exit_code == ExitCodes.TESTS_FAILED
        assert read_manifest(node_project)["dependencies"]["lodash"] == "4.17.21"

    def test_undeclared_package_rejected(self, node_project, fake_run):
        proposal = UpgradeProposal(
            id="upgrade-left-pad-1",
            package="left-pad",
            from_version="1.1.0",
            to_version="1.3.0",
            change_class=ChangeClass.MINOR,
        )

        result = guarded_upgrade(node_project, proposal)

        assert result.outcome is UpgradeOutcome.REJECTED
        assert result.recovery is None
        assert result.exit_code == ExitCodes.OPERATION_FAILED
        assert fake_run.calls == []

    def test_skip_tests(self, node_project, fake_run):
        result = guarded_upgrade(node_project, PROPOSAL, run_test_suite=False)

        assert result.success
        assert result.tests is None
        assert ["npx", "jest"] not in fake_run.calls

    def test_result_dict(self, node_project, fake_run):
        data = guarded_upgrade(node_project, PROPOSAL, run_test_suite=False).to_dict()
        assert data["outcome"] == "upgraded"
        assert data["proposal"]["id"] == PROPOSAL.id
        assert data["mutation"]["upgrade_id"] == PROPOSAL.id
