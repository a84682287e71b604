"""Tests for the transactional mutator."""

import json
import re
import subprocess

import pytest

from conftest import read_manifest

from dialectic.upgrader import apply_upgrade, backup_file_name
from dialectic.rollback import list_backups, read_backup_record


class TestManifestRewrite:
    """Manifest edits and backups."""

    def test_updates_dependency_and_backs_up(self, node_project, fake_run):
        result = apply_upgrade(node_project, "lodash", "4.17.21", upgrade_id="upgrade-lodash-1")

        assert result.success
        assert result.package_manager == "npm"
        assert read_manifest(node_project)["dependencies"]["lodash"] == "4.17.21"
        assert fake_run.calls == [["npm", "install"]]

        backups = list_backups(node_project)
        assert len(backups) == 1
        assert str(backups[0]) == result.backup_path
        assert json.loads(backups[0].read_text())["dependencies"]["lodash"] == "^4.17.19"

    def test_backup_sidecar_records_active_proposal(self, node_project, fake_run):
        apply_upgrade(node_project, "lodash", "4.17.21", upgrade_id="upgrade-lodash-1")

        record = read_backup_record(list_backups(node_project)[0])
        assert record.upgrade_id == "upgrade-lodash-1"
        assert record.package == "lodash"
        assert record.from_version == "^4.17.19"
        assert record.to_version == "4.17.21"

    def test_dev_dependency_updated(self, node_project, fake_run):
        result = apply_upgrade(node_project, "jest", "29.7.0", skip_install=True)

        assert result.success
        manifest = read_manifest(node_project)
        assert manifest["devDependencies"]["jest"] == "29.7.0"
        assert "jest" not in manifest["dependencies"]
        assert fake_run.calls == []

    def test_formatting_preserved(self, node_project, fake_run):
        apply_upgrade(node_project, "express", "4.21.0", skip_install=True)

        text = (node_project / "package.json").read_text()
        assert text.endswith("}\n")
        assert '\n  "dependencies": {\n    "lodash"' in text

    def test_no_backup_when_disabled(self, node_project, fake_run):
        result = apply_upgrade(node_project, "lodash", "4.17.21", create_backup=False)

        assert result.success
        assert result.backup_path is None
        assert not (node_project / ".dialectic-backup").exists()

    def test_backup_names_unique_and_sortable(self):
        first, second = backup_file_name(), backup_file_name()
        assert first != second
        assert re.fullmatch(r"package\.json\.\d{8}T\d{12}Z-[0-9a-f]{8}\.bak", first)


class TestMutationFailures:
    """Every failure is a structured result, never an exception."""

    def test_missing_package_fails_without_adding(self, node_project, fake_run):
        before = read_manifest(node_project)
        result = apply_upgrade(node_project, "left-pad", "1.3.0", create_backup=True)

        assert not result.success
        assert result.error_kind == "input"
        assert "Package left-pad not found in package.json" in result.message
        assert read_manifest(node_project) == before
        assert fake_run.calls == []

    def test_missing_manifest(self, tmp_path, fake_run):
        result = apply_upgrade(tmp_path, "lodash", "4.17.21")
        assert not result.success
        assert result.error_kind == "input"

    @pytest.mark.parametrize("create_backup", [True, False])
    def test_manifest_not_utf8(self, node_project, fake_run, create_backup):
        raw = b'{"dependencies": {"lodash": "4.17.19"}, "x": "\xff"}\n'
        (node_project / "package.json").write_bytes(raw)

        result = apply_upgrade(node_project, "lodash", "4.17.21", create_backup=create_backup, skip_install=True)

        assert not result.success
        assert result.error_kind == "input"
        assert "package.json" in result.message
        assert not result.manifest_changed
        assert (node_project / "package.json").read_bytes() == raw
        assert fake_run.calls == []

    def test_invalid_package_name(self, node_project, fake_run):
        result = apply_upgrade(node_project, "lodash; rm -rf /", "4.17.21")
        assert not result.success
        assert result.error_kind == "input"

    def test_install_timeout_is_distinct(self, node_project, fake_run):
        fake_run.add(["npm", "install"], exc=subprocess.TimeoutExpired(["npm", "install"], 15))
        result = apply_upgrade(node_project, "lodash", "4.17.21", time_budget=15)

        assert not result.success
        assert result.error_kind == "install_timeout"
        assert "timed out" in result.message
        assert "npm install" in result.message
        # the edit stays; recovery is a separate step
        assert read_manifest(node_project)["dependencies"]["lodash"] == "4.17.21"
        assert result.manifest_changed

    def test_install_failure_is_generic(self, node_project, fake_run):
        fake_run.add(["npm", "install"], stderr="ERESOLVE unable to resolve dependency tree", returncode=1)
        result = apply_upgrade(node_project, "lodash", "4.17.21")

        assert not result.success
        assert result.error_kind == "install"
        assert "timed out" not in result.message
        assert "ERESOLVE" in result.message

    def test_install_timeout_passed_to_subprocess(self, node_project, fake_run):
        apply_upgrade(node_project, "lodash", "4.17.21", time_budget=7)
        assert fake_run.kwargs[0]["timeout"] == 7

    def test_missing_executable(self, node_project, fake_run):
        fake_run.add(["npm", "install"], exc=FileNotFoundError("npm"))
        result = apply_upgrade(node_project, "lodash", "4.17.21")
        assert result.error_kind == "install"
        assert "not found" in result.message

    def test_backup_failure_aborts_before_edit(self, node_project, fake_run):
        (node_project / ".dialectic-backup").write_text("not a directory")
        result = apply_upgrade(node_project, "lodash", "4.17.21")

        assert not result.success
        assert result.error_kind == "backup"
        assert read_manifest(node_project)["dependencies"]["lodash"] == "^4.17.19"


class TestPackageManagerDetection:
    def test_pnpm_lockfile_wins(self, node_project, fake_run):
        (node_project / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n")
        (node_project / "package-lock.json").write_text("{}")

        result = apply_upgrade(node_project, "lodash", "4.17.21", create_backup=False)
        assert result.package_manager == "pnpm"
        assert fake_run.calls == [["pnpm", "install"]]

    def test_yarn_lockfile(self, node_project, fake_run):
        (node_project / "yarn.lock").write_text("")
        result = apply_upgrade(node_project, "lodash", "4.17.21", create_backup=False)
        assert fake_run.calls == [["yarn", "install"]]
        assert result.package_manager == "yarn"

    def test_override(self, node_project, fake_run):
        (node_project / "yarn.lock").write_text("")
        apply_upgrade(node_project, "lodash", "4.17.21", create_backup=False, package_manager="npm")
        assert fake_run.calls == [["npm", "install"]]
