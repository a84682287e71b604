"""Recovery coordinator - restores a project's manifest after a failed upgrade.

Recovery strategies are tried in order until one succeeds:

    git     restore package.json (and any tracked lockfiles) from HEAD via pygit2
    backup  copy the newest .dialectic-backup/package.json.*.bak back, then reinstall

Rollback is project-wide: it restores the last committed or backed-up
manifest, not a single package. When a backup sidecar belongs to the upgrade
being undone (same upgrade id, or with no id, taken after the restored
commit), the result reports the package it touched and the version the
restored manifest now declares for it.

rollback_changes() never raises; failures are reported in RecoveryResult.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import pygit2

from dialectic.errors import InstallError, RecoveryError
from dialectic.models import BackupRecord, RecoveryMethod, RecoveryResult
from dialectic.package_managers import resolve_package_manager
from dialectic.upgrader import declared_version, install_dependencies, meta_path_for
from dialectic.utils.constants import (
    BACKUP_DIR_NAME,
    BACKUP_SUFFIX,
    LOCKFILES,
    MANIFEST_FILE,
)
from dialectic.utils.helpers import load_json_file
from dialectic.utils.logging import logger

DEFAULT_RECOVERY_INSTALL_TIMEOUT = 300.0


@dataclass(frozen=True)
class RecoveryOutcome:
    success: bool
    message: str
    # Epoch seconds of the state restored (HEAD commit time); None for a backup copy
    baseline_time: float | None = None


# =============================================================================
# BACKUP DISCOVERY
# =============================================================================


def list_backups(project_path: str | Path, backup_dir_name: str = BACKUP_DIR_NAME) -> list[Path]:
    """Manifest backups in the project, oldest first.

    Backup names embed a UTC timestamp, so name order is chronological.
    """
    backup_dir = Path(project_path) / backup_dir_name
    if not backup_dir.is_dir():
        return []
    return sorted(backup_dir.glob(f"{MANIFEST_FILE}.*{BACKUP_SUFFIX}"), key=lambda p: p.name)


def read_backup_record(backup_path: Path) -> BackupRecord:
    """Metadata for a backup; a bare record when the sidecar is missing or unreadable."""
    meta = meta_path_for(backup_path)
    try:
        raw = load_json_file(meta)
    except (OSError, ValueError):
        raw = None
    if not isinstance(raw, dict):
        return BackupRecord(path=str(backup_path), created_at="")
    return BackupRecord(
        path=str(backup_path),
        created_at=str(raw.get("created_at") or ""),
        upgrade_id=raw.get("upgrade_id"),
        package=raw.get("package"),
        from_version=raw.get("from_version"),
        to_version=raw.get("to_version"),
    )


# =============================================================================
# STRATEGIES
# =============================================================================


class GitRecovery:
    """Restore the manifest and lockfiles from the HEAD commit."""

    name = RecoveryMethod.GIT

    def __init__(self, project_path: str | Path):
        self.project_path = Path(project_path).resolve()

    def _open_repository(self) -> pygit2.Repository:
        discovered = pygit2.discover_repository(str(self.project_path))
        if discovered is None:
            raise RecoveryError(f"{self.project_path} is not inside a git repository")
        repo = pygit2.Repository(discovered)
        if repo.is_bare or repo.workdir is None:
            raise RecoveryError("Repository has no working tree")
        if repo.head_is_unborn:
            raise RecoveryError("Repository has no commit at HEAD")
        return repo

    def _restore(self, repo: pygit2.Repository, tree: pygit2.Tree, file_name: str) -> bool:
        """Write ``file_name`` from ``tree`` into the working tree. False if untracked."""
        target = self.project_path / file_name
        workdir = Path(repo.workdir).resolve()
        rel_path = target.relative_to(workdir).as_posix()
        try:
            entry = tree[rel_path]
        except KeyError:
            return False
        target.write_bytes(repo.get(entry.id).data)
        return True

    def attempt(self) -> RecoveryOutcome:
        logger.info("Attempting git rollback...")
        try:
            repo = self._open_repository()
            head = repo.head.peel(pygit2.Commit)
            tree = head.tree

            if not self._restore(repo, tree, MANIFEST_FILE):
                raise RecoveryError(f"{MANIFEST_FILE} is not tracked at HEAD")

            restored = [MANIFEST_FILE]
            for lockfile in LOCKFILES:
                try:
                    if self._restore(repo, tree, lockfile):
                        restored.append(lockfile)
                except OSError as e:
                    logger.warning(f"Could not restore {lockfile}: {e}")

        except (RecoveryError, pygit2.GitError, OSError, ValueError) as e:
            logger.warning(f"Git rollback failed: {e}")
            return RecoveryOutcome(False, f"Git rollback failed: {e}")

        logger.success(f"Git rollback restored {', '.join(restored)}")
        return RecoveryOutcome(
            True,
            f"Rolled back using Git ({', '.join(restored)} restored from HEAD)",
            baseline_time=head.commit_time,
        )


class BackupRecovery:
    """Restore the newest manifest backup and reinstall dependencies."""

    name = RecoveryMethod.BACKUP

    def __init__(
        self,
        project_path: str | Path,
        *,
        backup_dir_name: str = BACKUP_DIR_NAME,
        install_timeout: float = DEFAULT_RECOVERY_INSTALL_TIMEOUT,
        package_manager: str | None = "auto",
        reinstall: bool = True,
    ):
        self.project_path = Path(project_path)
        self.backup_dir_name = backup_dir_name
        self.install_timeout = install_timeout
        self.package_manager = package_manager
        self.reinstall = reinstall

    def attempt(self) -> RecoveryOutcome:
        logger.info("Attempting backup file rollback...")
        backups = list_backups(self.project_path, self.backup_dir_name)
        if not backups:
            return RecoveryOutcome(False, "Backup rollback failed: No backup files found")

        latest = backups[-1]
        try:
            shutil.copyfile(latest, self.project_path / MANIFEST_FILE)
            logger.info(f"Restored from backup: {latest.name}")

            if self.reinstall:
                manager = resolve_package_manager(self.project_path, self.package_manager)
                logger.info(f"Reinstalling dependencies with {manager.manager_name}...")
                install_dependencies(self.project_path, manager, self.install_timeout)
        except (OSError, InstallError) as e:
            logger.warning(f"Backup rollback failed: {e}")
            return RecoveryOutcome(False, f"Backup rollback failed: {e}")

        return RecoveryOutcome(True, f"Rolled back using backup file: {latest.name}")


# =============================================================================
# COORDINATOR
# =============================================================================


def _created_epoch(record: BackupRecord) -> float | None:
    try:
        return datetime.fromisoformat(record.created_at).timestamp()
    except ValueError:
        return None


def describing_record(
    project_path: str | Path,
    outcome: RecoveryOutcome,
    upgrade_id: str | None = None,
    backup_dir_name: str = BACKUP_DIR_NAME,
) -> BackupRecord | None:
    """Backup sidecar that describes the change a successful recovery undid.

    With an upgrade id, only a sidecar recorded for that id qualifies. Without
    one, the newest sidecar qualifies unless the restored state is a commit
    made after that backup was taken.
    """
    records = [read_backup_record(p) for p in reversed(list_backups(project_path, backup_dir_name))]
    if upgrade_id:
        return next((r for r in records if r.upgrade_id == upgrade_id), None)
    if not records:
        return None
    newest = records[0]
    if outcome.baseline_time is not None:
        created = _created_epoch(newest)
        # commit_time is whole seconds
        if created is None or created < int(outcome.baseline_time):
            return None
    return newest


def _restored_details(
    project_path: Path, record: BackupRecord | None
) -> tuple[str, str, str | None]:
    """(package, restored_version, upgrade_id) for the report."""
    if record is None or not record.package:
        return "unknown", "previous", None

    version = None
    try:
        manifest = load_json_file(project_path / MANIFEST_FILE)
        if isinstance(manifest, dict):
            version = declared_version(manifest, record.package)
    except (OSError, ValueError):
        pass
    return record.package, version or record.from_version or "previous", record.upgrade_id


def build_strategies(
    project_path: str | Path,
    method: RecoveryMethod,
    *,
    backup_dir_name: str = BACKUP_DIR_NAME,
    recovery_install_timeout: float = DEFAULT_RECOVERY_INSTALL_TIMEOUT,
    package_manager: str | None = "auto",
) -> list:
    git = GitRecovery(project_path)
    backup = BackupRecovery(
        project_path,
        backup_dir_name=backup_dir_name,
        install_timeout=recovery_install_timeout,
        package_manager=package_manager,
    )
    if method is RecoveryMethod.GIT:
        return [git]
    if method is RecoveryMethod.BACKUP:
        return [backup]
    if method is RecoveryMethod.AUTO:
        return [git, backup]
    return []


def rollback_changes(
    project_path: str | Path,
    method: RecoveryMethod | str = RecoveryMethod.AUTO,
    upgrade_id: str | None = None,
    *,
    backup_dir_name: str = BACKUP_DIR_NAME,
    recovery_install_timeout: float = DEFAULT_RECOVERY_INSTALL_TIMEOUT,
    package_manager: str | None = "auto",
    strategies: list | None = None,
) -> RecoveryResult:
    """Restore the project's manifest, trying each recovery strategy in order.

    Args:
        project_path: Project root containing package.json
        method: 'auto' (git, then backup), 'git' or 'backup'
        upgrade_id: Id of the upgrade being undone, echoed in the result
        strategies: Explicit strategy objects; overrides ``method``

    Returns:
        RecoveryResult for the first successful strategy, or the last failure.
        An unrecognized method yields a 'manual' result with instructions.
    """
    project = Path(project_path)
    logger.info(f"Rolling back upgrade {upgrade_id or '(unspecified)'}...")

    if strategies is None:
        try:
            requested = RecoveryMethod(method) if isinstance(method, str) else method
        except ValueError:
            requested = RecoveryMethod.MANUAL
        strategies = build_strategies(
            project,
            requested,
            backup_dir_name=backup_dir_name,
            recovery_install_timeout=recovery_install_timeout,
            package_manager=package_manager,
        )

    if not strategies:
        message = (
            f"No automatic recovery method available for '{method}'. Restore {MANIFEST_FILE} "
            f"manually (git checkout HEAD {MANIFEST_FILE}, or copy the newest file from "
            f"{backup_dir_name}/) and reinstall dependencies."
        )
        logger.error(message)
        return RecoveryResult(
            success=False,
            method=RecoveryMethod.MANUAL,
            message=message,
            upgrade_id=upgrade_id,
        )

    attempts: list[str] = []
    outcome = RecoveryOutcome(False, "No recovery strategy was attempted")
    used = strategies[-1].name
    for strategy in strategies:
        used = strategy.name
        attempts.append(used.value)
        outcome = strategy.attempt()
        if outcome.success:
            break

    if outcome.success:
        record = describing_record(project, outcome, upgrade_id, backup_dir_name)
        package, restored_version, recorded_id = _restored_details(project, record)
        logger.success(f"Rollback successful via {used.value}")
    else:
        package, restored_version, recorded_id = "unknown", "previous", None
        logger.error(f"Rollback failed: {outcome.message}")

    return RecoveryResult(
        success=outcome.success,
        method=used,
        message=outcome.message,
        upgrade_id=upgrade_id or recorded_id,
        package=package,
        restored_version=restored_version,
        attempts=tuple(attempts),
    )
