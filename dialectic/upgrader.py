"""Transactional mutator - applies one upgrade to a project's manifest.

The sequence is strictly ordered:

    1. resolve the package manager (lockfile detection unless overridden)
    2. back up package.json into .dialectic-backup/ (optional)
    3. rewrite the declared version in dependencies, else devDependencies
    4. run `<manager> install` within a time budget (optional)

apply_upgrade() never raises. Every failure becomes a MutationResult with an
``error_kind`` the caller can branch on:

    input            bad arguments, missing manifest, package not declared
    backup           the requested backup could not be written; nothing changed
    install          install exited non-zero; the manifest edit stays in place
    install_timeout  install exceeded its budget; the manifest edit stays in place

The manifest edit is not undone on install failure - that is the Recovery
Coordinator's job (see rollback.py).
"""

from __future__ import annotations

import secrets
import shutil
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dialectic.errors import (
    BackupError,
    InputError,
    InstallError,
    InstallTimeoutError,
    PackageNotFoundError,
)
from dialectic.models import BackupRecord, MutationResult
from dialectic.package_managers import resolve_package_manager
from dialectic.package_managers.base import BasePackageManager
from dialectic.security import validate_package_name, validate_version_spec
from dialectic.utils.constants import (
    BACKUP_DIR_NAME,
    BACKUP_META_SUFFIX,
    BACKUP_SUFFIX,
    MANIFEST_FILE,
    MANIFEST_SECTIONS,
)
from dialectic.utils.helpers import load_json_file, save_json_file, utc_now_iso
from dialectic.utils.logging import get_subprocess_env, logger

DEFAULT_INSTALL_TIMEOUT = 15.0

# Keep the tail of install output in failure messages
_OUTPUT_TAIL = 500


def backup_file_name(now: datetime | None = None) -> str:
    """Collision-resistant backup name that sorts chronologically.

    package.json.20250114T093015123456Z-3f9a2c1d.bak
    """
    now = now or datetime.now(UTC)
    stamp = now.strftime("%Y%m%dT%H%M%S%fZ")
    return f"{MANIFEST_FILE}.{stamp}-{secrets.token_hex(4)}{BACKUP_SUFFIX}"


def meta_path_for(backup_path: Path) -> Path:
    return backup_path.with_name(backup_path.name + BACKUP_META_SUFFIX)


def declared_version(manifest: dict[str, Any], package: str) -> str | None:
    """Declared spec for ``package``, searching dependencies then devDependencies."""
    for section in MANIFEST_SECTIONS:
        deps = manifest.get(section)
        if isinstance(deps, dict) and package in deps:
            return str(deps[package])
    return None


def backup_manifest(
    project_path: Path,
    *,
    backup_dir_name: str = BACKUP_DIR_NAME,
    upgrade_id: str | None = None,
    package: str | None = None,
    from_version: str | None = None,
    to_version: str | None = None,
) -> BackupRecord:
    """Copy package.json into the backup directory with a metadata sidecar.

    The sidecar records which proposal was active when the copy was taken so
    a later rollback can report what it undid.

    Raises:
        BackupError: if the copy or its sidecar cannot be written
    """
    manifest = project_path / MANIFEST_FILE
    backup_dir = project_path / backup_dir_name
    created_at = utc_now_iso()

    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = backup_dir / backup_file_name()
        shutil.copy2(manifest, backup_path)
        record = BackupRecord(
            path=str(backup_path),
            created_at=created_at,
            upgrade_id=upgrade_id,
            package=package,
            from_version=from_version,
            to_version=to_version,
        )
        save_json_file(record.to_dict(), meta_path_for(backup_path))
    except OSError as e:
        raise BackupError(f"Failed to back up {manifest}: {e}") from e

    logger.info(f"Created backup: {backup_path}")
    return record


def update_manifest(manifest_path: Path, package: str, version: str) -> str:
    """Set ``package`` to ``version`` in the first section that declares it.

    The manifest is rewritten with 2-space indentation and a trailing newline.
    Packages that are not declared are never added.

    Returns:
        The section that was updated

    Raises:
        PackageNotFoundError: if neither dependencies nor devDependencies has the package
        InputError: if the manifest is not a JSON object
    """
    try:
        data = load_json_file(manifest_path)
    except ValueError as e:
        # JSONDecodeError or UnicodeDecodeError
        raise InputError(f"{manifest_path.name} is not valid UTF-8 JSON: {e}") from e
    if not isinstance(data, dict):
        raise InputError(f"{manifest_path.name} must contain a JSON object")

    for section in MANIFEST_SECTIONS:
        deps = data.get(section)
        if isinstance(deps, dict) and package in deps:
            deps[package] = version
            save_json_file(data, manifest_path, indent=2)
            logger.debug(f"Set {section}.{package} = {version}")
            return section

    raise PackageNotFoundError(package, manifest_path.name)


def install_dependencies(
    project_path: Path, manager: BasePackageManager, timeout: float = DEFAULT_INSTALL_TIMEOUT
) -> None:
    """Run the manager's install command, bounded by ``timeout`` seconds.

    Raises:
        InstallTimeoutError: if the install does not finish in time
        InstallError: if the executable is missing or exits non-zero
    """
    cmd = manager.install_command()
    logger.info(f"Running {' '.join(cmd)} (timeout {timeout:g}s)")
    try:
        result = subprocess.run(
            cmd,
            cwd=project_path,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=get_subprocess_env(),
        )
    except subprocess.TimeoutExpired as e:
        raise InstallTimeoutError(manager.manager_name, timeout) from e
    except FileNotFoundError as e:
        raise InstallError(manager.manager_name, f"{cmd[0]} not found on PATH") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()[-_OUTPUT_TAIL:]
        raise InstallError(manager.manager_name, detail or f"exit code {result.returncode}")


def apply_upgrade(
    project_path: str | Path,
    package: str,
    version: str,
    *,
    upgrade_id: str | None = None,
    from_version: str | None = None,
    package_manager: str | None = "auto",
    create_backup: bool = True,
    skip_install: bool = False,
    time_budget: float = DEFAULT_INSTALL_TIMEOUT,
    backup_dir_name: str = BACKUP_DIR_NAME,
) -> MutationResult:
    """Apply one upgrade to the project at ``project_path``. Never raises."""
    project = Path(project_path)
    manager_name: str | None = None
    backup_path: str | None = None

    def failure(message: str, kind: str) -> MutationResult:
        logger.error(f"Upgrade of {package} to {version} failed: {message}")
        return MutationResult(
            success=False,
            package=package,
            version=version,
            message=message,
            upgrade_id=upgrade_id,
            package_manager=manager_name,
            backup_path=backup_path,
            error_kind=kind,
        )

    if not validate_package_name(package):
        return failure(f"Invalid package name: {package!r}", "input")
    if not validate_version_spec(version):
        return failure(f"Invalid version: {version!r}", "input")

    manifest = project / MANIFEST_FILE
    if not manifest.is_file():
        return failure(f"No {MANIFEST_FILE} found in {project}", "input")

    manager = resolve_package_manager(project, package_manager)
    manager_name = manager.manager_name
    logger.info(f"Upgrading {package} to {version} with {manager_name}")

    try:
        if create_backup:
            if from_version is None:
                try:
                    from_version = declared_version(load_json_file(manifest), package)
                except (ValueError, AttributeError):
                    from_version = None
            record = backup_manifest(
                project,
                backup_dir_name=backup_dir_name,
                upgrade_id=upgrade_id,
                package=package,
                from_version=from_version,
                to_version=version,
            )
            backup_path = record.path

        section = update_manifest(manifest, package, version)

        if skip_install:
            return MutationResult(
                success=True,
                package=package,
                version=version,
                message=f"Updated {package} to {version} in {section} (install skipped)",
                upgrade_id=upgrade_id,
                package_manager=manager_name,
                backup_path=backup_path,
            )

        install_dependencies(project, manager, time_budget)

    except BackupError as e:
        return failure(str(e), "backup")
    except InputError as e:
        return failure(str(e), "input")
    except InstallTimeoutError as e:
        return failure(str(e), "install_timeout")
    except InstallError as e:
        return failure(str(e), "install")
    except OSError as e:
        return failure(f"Failed to update {MANIFEST_FILE}: {e}", "input")

    logger.success(f"Upgraded {package} to {version}")
    return MutationResult(
        success=True,
        package=package,
        version=version,
        message=f"Successfully upgraded {package} to {version}",
        upgrade_id=upgrade_id,
        package_manager=manager_name,
        backup_path=backup_path,
    )
