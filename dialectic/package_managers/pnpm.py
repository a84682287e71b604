"""pnpm runtime (pnpm-lock.yaml).

`pnpm audit --json` keeps the legacy advisory layout:

    {"advisories": {"1523": {"module_name": "lodash", "severity": "high",
        "title": "...", "overview": "...", "url": "...",
        "vulnerable_versions": "<4.17.21", "patched_versions": ">=4.17.21",
        "findings": [{"version": "4.17.19", "paths": ["lodash"]}]}},
     "metadata": {"totalDependencies": 120}}
"""

from __future__ import annotations

from typing import Any

from dialectic.models import Vulnerability

from .base import BasePackageManager


def parse_pnpm_audit(data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
    """Normalize a pnpm (legacy advisory format) audit report."""
    vulnerabilities = []

    for advisory_id, advisory in (data.get("advisories") or {}).items():
        if not isinstance(advisory, dict):
            continue

        current = advisory.get("vulnerable_versions")
        findings = advisory.get("findings") or []
        if findings and isinstance(findings[0], dict) and findings[0].get("version"):
            current = findings[0]["version"]

        vulnerabilities.append(Vulnerability.from_dict({
            "id": advisory.get("github_advisory_id") or advisory.get("id") or advisory_id,
            "severity": advisory.get("severity"),
            "title": advisory.get("title") or "Vulnerability",
            "description": advisory.get("overview"),
            "package": advisory.get("module_name") or "unknown",
            "currentVersion": current,
            "patchedVersions": advisory.get("patched_versions"),
            "vulnerableVersions": advisory.get("vulnerable_versions"),
            "url": advisory.get("url"),
        }))

    metadata = data.get("metadata") or {}
    try:
        total = int(metadata.get("totalDependencies") or 0)
    except (TypeError, ValueError):
        total = 0
    return vulnerabilities, total


class PnpmPackageManager(BasePackageManager):
    @property
    def manager_name(self) -> str:
        return "pnpm"

    @property
    def lock_file(self) -> str:
        return "pnpm-lock.yaml"

    def parse_audit_report(self, data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
        return parse_pnpm_audit(data)
