"""Dependency auditor - builds an AuditSnapshot from the package manager's own tools.

Three facets are collected:

    vulnerabilities  `<manager> audit --json`
    outdated         `<manager> outdated --json`
    deprecated       `npm view <pkg> --json` for every declared dependency

A facet whose tool is missing, times out or emits unparseable output is
empty; the warning is logged and the audit continues. Audit tools exit
non-zero whenever they find something, so exit codes are not checked.
"""

from __future__ import annotations

import dataclasses
import json
import re
import subprocess
from pathlib import Path
from typing import Any

from dialectic.errors import SnapshotError
from dialectic.models import (
    AuditSnapshot,
    DeprecatedPackage,
    OutdatedPackage,
    Severity,
    Vulnerability,
)
from dialectic.package_managers import resolve_package_manager
from dialectic.package_managers.base import BasePackageManager
from dialectic.security import validate_package_name
from dialectic.utils.constants import MANIFEST_FILE, MANIFEST_SECTIONS
from dialectic.utils.helpers import load_json_file, sanitize_string
from dialectic.utils.logging import get_subprocess_env, logger
from dialectic.versions import clean_version, parse_version

DEFAULT_AUDIT_TIMEOUT = 120.0
DEFAULT_NPM_VIEW_TIMEOUT = 5.0

_REPLACEMENT_PATTERNS = [
    re.compile(r"use (.+?) instead", re.IGNORECASE),
    re.compile(r"replaced by (.+?)[.,]", re.IGNORECASE),
    re.compile(r"migrate to (.+?)[.,]", re.IGNORECASE),
    re.compile(r"superseded by (.+?)[.,]", re.IGNORECASE),
]


def _run_json(cmd: list[str], cwd: Path, timeout: float) -> Any | None:
    """Run a tool that prints JSON on stdout. None on any failure."""
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            env=get_subprocess_env(),
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"{' '.join(cmd)} timed out after {timeout:g}s")
        return None
    except FileNotFoundError:
        logger.warning(f"{cmd[0]} not found, skipping {' '.join(cmd[1:])}")
        return None

    if not result.stdout.strip():
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse output of {' '.join(cmd)}: {e}")
        return None


def _declared_dependencies(project_path: Path) -> dict[str, str]:
    try:
        manifest = load_json_file(project_path / MANIFEST_FILE)
    except (OSError, ValueError):
        return {}
    if not isinstance(manifest, dict):
        return {}
    declared: dict[str, str] = {}
    for section in MANIFEST_SECTIONS:
        deps = manifest.get(section)
        if isinstance(deps, dict):
            for name, spec in deps.items():
                declared.setdefault(name, str(spec))
    return declared


def installed_version(project_path: Path, package: str) -> str | None:
    """Version recorded in node_modules/<package>/package.json, if installed."""
    try:
        data = load_json_file(project_path / "node_modules" / package / MANIFEST_FILE)
    except (OSError, ValueError):
        return None
    if isinstance(data, dict) and data.get("version"):
        return sanitize_string(data["version"])
    return None


def run_audit(
    project_path: Path, manager: BasePackageManager, timeout: float = DEFAULT_AUDIT_TIMEOUT
) -> tuple[list[Vulnerability], int]:
    data = _run_json(manager.audit_command(), project_path, timeout)
    if not isinstance(data, dict):
        return [], 0
    try:
        return manager.parse_audit_report(data)
    except SnapshotError as e:
        logger.warning(f"{manager.manager_name} audit report rejected: {e}")
        return [], 0


def find_outdated_packages(
    project_path: Path, manager: BasePackageManager, timeout: float = DEFAULT_AUDIT_TIMEOUT
) -> list[OutdatedPackage]:
    data = _run_json(manager.outdated_command(), project_path, timeout)
    outdated = []
    for entry in manager.parse_outdated_report(data):
        try:
            outdated.append(OutdatedPackage.from_dict(entry))
        except SnapshotError as e:
            logger.debug(f"Skipping outdated entry: {e}")
    return outdated


def extract_replacement(message: str) -> str | None:
    """Pull a suggested replacement out of a deprecation message.

    Examples:
        "Use node-fetch instead" -> "node-fetch"
        "This package has been replaced by @scope/pkg." -> "@scope/pkg"
    """
    for pattern in _REPLACEMENT_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1).strip() or None
    return None


def find_deprecated_packages(
    project_path: Path, timeout: float = DEFAULT_NPM_VIEW_TIMEOUT
) -> list[DeprecatedPackage]:
    """Ask the registry about every declared dependency; one bounded call each."""
    deprecated = []
    for name, spec in _declared_dependencies(project_path).items():
        if not validate_package_name(name):
            logger.debug(f"Skipping deprecation check for invalid name {name!r}")
            continue
        info = _run_json(["npm", "view", name, "--json"], project_path, timeout)
        if not isinstance(info, dict):
            continue
        reason = info.get("deprecated")
        if not reason:
            continue
        reason = sanitize_string(reason)
        deprecated.append(DeprecatedPackage(
            name=name,
            version=sanitize_string(clean_version(spec), default="unknown"),
            reason=reason,
            replacement=extract_replacement(reason),
        ))
    return deprecated


def _with_installed_versions(
    project_path: Path, vulnerabilities: list[Vulnerability], outdated: list[OutdatedPackage]
) -> list[Vulnerability]:
    """Replace range-valued current versions with what is actually installed.

    npm audit reports the vulnerable range, not the installed version. The
    outdated report or node_modules usually knows the real one.
    """
    current_by_name = {o.name: o.current for o in outdated if parse_version(o.current)}
    resolved = []
    for vuln in vulnerabilities:
        if parse_version(vuln.current_version) is None:
            version = current_by_name.get(vuln.package) or installed_version(project_path, vuln.package)
            if version:
                vuln = dataclasses.replace(vuln, current_version=version)
        resolved.append(vuln)
    return resolved


def generate_summary(
    vulnerabilities: list[Vulnerability],
    deprecated: list[DeprecatedPackage],
    outdated: list[OutdatedPackage],
    total_packages: int,
) -> str:
    """Human-readable audit summary (plain ASCII)."""
    lines = [f"Scanned {total_packages} packages.", ""]

    if not vulnerabilities and not deprecated and not outdated:
        lines.append("No issues found. All dependencies are secure and up-to-date.")
        return "\n".join(lines)

    if vulnerabilities:
        lines.append(f"Found {len(vulnerabilities)} vulnerabilities:")
        for severity in Severity:
            count = sum(1 for v in vulnerabilities if v.severity is severity)
            if count:
                lines.append(f"  - {count} {severity.value}")
        lines.append("")

    if deprecated:
        lines.append(f"{len(deprecated)} deprecated packages found.")
        lines.append("")

    if outdated:
        lines.append(f"{len(outdated)} packages are outdated.")
        lines.append("")

    lines.append("Run `dialectic plan` to get an upgrade plan.")
    return "\n".join(lines)


def audit_dependencies(
    project_path: str | Path,
    package_manager: str | None = "auto",
    check_deprecated: bool = True,
    audit_timeout: float = DEFAULT_AUDIT_TIMEOUT,
    npm_view_timeout: float = DEFAULT_NPM_VIEW_TIMEOUT,
) -> AuditSnapshot:
    """Audit the project and return an immutable snapshot."""
    project = Path(project_path)
    manager = resolve_package_manager(project, package_manager)
    logger.info(f"Auditing dependencies in {project} using {manager.manager_name}...")

    vulnerabilities, total_packages = run_audit(project, manager, audit_timeout)
    outdated = find_outdated_packages(project, manager, audit_timeout)
    deprecated = find_deprecated_packages(project, npm_view_timeout) if check_deprecated else []
    vulnerabilities = _with_installed_versions(project, vulnerabilities, outdated)

    logger.info(
        f"Audit complete: {len(vulnerabilities)} vulnerabilities, "
        f"{len(outdated)} outdated, {len(deprecated)} deprecated"
    )

    return AuditSnapshot(
        vulnerabilities=tuple(vulnerabilities),
        outdated=tuple(outdated),
        deprecated=tuple(deprecated),
        total_packages=total_packages,
        summary=generate_summary(vulnerabilities, deprecated, outdated, total_packages),
        package_manager=manager.manager_name,
    )
