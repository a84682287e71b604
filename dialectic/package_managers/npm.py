"""npm runtime (package-lock.json).

Handles `npm audit --json` report version 2 (npm 7+), where vulnerabilities
are keyed by package name and advisories hang off ``via``:

    {"vulnerabilities": {"lodash": {"severity": "high", "range": "<=4.17.20",
        "via": [{"source": 1523, "title": "...", "url": "..."}],
        "fixAvailable": {"name": "lodash", "version": "4.17.21"}}},
     "metadata": {"dependencies": {"total": 120}}}

String entries in ``via`` point at another vulnerable package and are
skipped; that package has its own entry.
"""

from __future__ import annotations

from typing import Any

from dialectic.models import Vulnerability

from .base import BasePackageManager


def _count_dependencies(metadata: Any) -> int:
    if not isinstance(metadata, dict):
        return 0
    deps = metadata.get("dependencies")
    if isinstance(deps, dict):
        deps = deps.get("total", 0)
    try:
        return int(deps or 0)
    except (TypeError, ValueError):
        return 0


def parse_npm_audit(data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
    """Normalize an npm audit v2 report."""
    vulnerabilities = []

    for pkg_name, vuln in (data.get("vulnerabilities") or {}).items():
        if not isinstance(vuln, dict):
            continue

        fix = vuln.get("fixAvailable")
        patched = "unknown"
        if isinstance(fix, dict) and fix.get("version"):
            # fixAvailable can name a parent package; its version is not ours
            if fix.get("name") in (None, pkg_name):
                patched = str(fix["version"])

        for via in vuln.get("via") or []:
            if not isinstance(via, dict) or not via.get("source"):
                continue
            vulnerabilities.append(Vulnerability.from_dict({
                "id": via.get("source"),
                "severity": via.get("severity") or vuln.get("severity"),
                "title": via.get("title") or f"Vulnerability in {pkg_name}",
                "description": via.get("url"),
                "package": pkg_name,
                "currentVersion": vuln.get("range"),
                "patchedVersions": patched,
                "vulnerableVersions": via.get("range") or vuln.get("range"),
                "url": via.get("url"),
            }))

    return vulnerabilities, _count_dependencies(data.get("metadata"))


class NpmPackageManager(BasePackageManager):
    """npm - the default when no lockfile is present."""

    @property
    def manager_name(self) -> str:
        return "npm"

    @property
    def lock_file(self) -> str:
        return "package-lock.json"

    def parse_audit_report(self, data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
        return parse_npm_audit(data)


__all__ = ["NpmPackageManager", "parse_npm_audit"]
