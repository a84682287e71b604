"""Data contracts for the upgrade pipeline.

Every record is a frozen dataclass: snapshots, proposals and results are
never mutated after creation, a re-plan produces new objects. ``to_dict()``
returns JSON-serializable data for the calling agent.

The ``from_dict`` constructors are the validated input boundary for loosely
shaped JSON (scanner output, agent round-trips). They accept both the
camelCase keys emitted by npm tooling and the snake_case keys emitted by
``to_dict``. Unknown enum values degrade to documented defaults:

    severity        -> "medium"
    dependency_type -> "dependencies"
    versions        -> "unknown"

Structural problems (not an object, lists of the wrong type, entries without
a package name) raise SnapshotError / ProposalError.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from dialectic.errors import ProposalError, SnapshotError
from dialectic.utils.helpers import sanitize_string, utc_now_iso


class Severity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @classmethod
    def parse(cls, value: Any) -> Severity:
        """Map loose severity strings onto the enum, defaulting to MEDIUM."""
        text = sanitize_string(value).lower()
        if text == "moderate":
            return cls.MEDIUM
        for member in cls:
            if member.value == text:
                return member
        return cls.MEDIUM


class DependencyType(Enum):
    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    PEER_DEPENDENCIES = "peerDependencies"

    @classmethod
    def parse(cls, value: Any) -> DependencyType:
        text = sanitize_string(value)
        for member in cls:
            if member.value == text:
                return member
        return cls.DEPENDENCIES


class ChangeClass(Enum):
    """Semantic-version distance of an upgrade."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class RiskStrategy(Enum):
    """Which version distances an upgrade plan may include for stale packages."""

    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"

    def admits(self, change_class: ChangeClass) -> bool:
        if self is RiskStrategy.CONSERVATIVE:
            return change_class is ChangeClass.PATCH
        if self is RiskStrategy.BALANCED:
            return change_class in (ChangeClass.PATCH, ChangeClass.MINOR)
        return True


class RecoveryMethod(Enum):
    GIT = "git"
    BACKUP = "backup"
    MANUAL = "manual"
    AUTO = "auto"


def _pick(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-None value among ``keys``."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _require_object(raw: Any, what: str, error: type[Exception]) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise error(f"{what} must be a JSON object, got {type(raw).__name__}")
    return raw


def _require_list(raw: dict[str, Any], key: str, error: type[Exception]) -> list[Any]:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise error(f"'{key}' must be a list, got {type(value).__name__}")
    return value


# =============================================================================
# AUDIT SNAPSHOT
# =============================================================================


@dataclass(frozen=True)
class Vulnerability:
    id: str
    severity: Severity
    package: str
    current_version: str
    patched_versions: str
    vulnerable_versions: str
    title: str = ""
    description: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> Vulnerability:
        raw = _require_object(raw, "vulnerability", SnapshotError)
        package = sanitize_string(_pick(raw, "package", "name"))
        if not package:
            raise SnapshotError("vulnerability entry has no package name")
        return cls(
            id=sanitize_string(_pick(raw, "id", "source"), default="unknown"),
            severity=Severity.parse(raw.get("severity")),
            package=package,
            current_version=sanitize_string(
                _pick(raw, "currentVersion", "current_version"), default="unknown"
            ),
            patched_versions=sanitize_string(
                _pick(raw, "patchedVersions", "patchedVersionsRange", "patched_versions"),
                default="unknown",
            ),
            vulnerable_versions=sanitize_string(
                _pick(raw, "vulnerableVersions", "vulnerableVersionsRange", "vulnerable_versions"),
                default="unknown",
            ),
            title=sanitize_string(raw.get("title")),
            description=sanitize_string(raw.get("description")),
            url=sanitize_string(raw.get("url")),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["severity"] = self.severity.value
        return d


@dataclass(frozen=True)
class OutdatedPackage:
    name: str
    current: str
    wanted: str
    latest: str
    dependency_type: DependencyType = DependencyType.DEPENDENCIES

    @classmethod
    def from_dict(cls, raw: Any) -> OutdatedPackage:
        raw = _require_object(raw, "outdated package", SnapshotError)
        name = sanitize_string(_pick(raw, "name", "package"))
        if not name:
            raise SnapshotError("outdated entry has no package name")
        current = sanitize_string(raw.get("current"), default="unknown")
        return cls(
            name=name,
            current=current,
            wanted=sanitize_string(raw.get("wanted"), default=current),
            latest=sanitize_string(raw.get("latest"), default="unknown"),
            dependency_type=DependencyType.parse(
                _pick(raw, "type", "dependencyType", "dependency_type")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["dependency_type"] = self.dependency_type.value
        return d


@dataclass(frozen=True)
class DeprecatedPackage:
    name: str
    version: str
    reason: str = ""
    replacement: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> DeprecatedPackage:
        raw = _require_object(raw, "deprecated package", SnapshotError)
        name = sanitize_string(raw.get("name"))
        if not name:
            raise SnapshotError("deprecated entry has no package name")
        return cls(
            name=name,
            version=sanitize_string(raw.get("version"), default="unknown"),
            reason=sanitize_string(raw.get("reason")),
            replacement=sanitize_string(raw.get("replacement")) or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AuditSnapshot:
    """Immutable result of one audit invocation."""

    vulnerabilities: tuple[Vulnerability, ...] = ()
    outdated: tuple[OutdatedPackage, ...] = ()
    deprecated: tuple[DeprecatedPackage, ...] = ()
    total_packages: int = 0
    summary: str = ""
    scanned_at: str = field(default_factory=utc_now_iso)
    package_manager: str = "npm"

    @classmethod
    def from_dict(cls, raw: Any) -> AuditSnapshot:
        raw = _require_object(raw, "audit snapshot", SnapshotError)
        total = _pick(raw, "totalPackages", "total_packages", default=0)
        try:
            total = int(total)
        except (TypeError, ValueError):
            total = 0
        return cls(
            vulnerabilities=tuple(
                Vulnerability.from_dict(v) for v in _require_list(raw, "vulnerabilities", SnapshotError)
            ),
            outdated=tuple(
                OutdatedPackage.from_dict(o) for o in _require_list(raw, "outdated", SnapshotError)
            ),
            deprecated=tuple(
                DeprecatedPackage.from_dict(d) for d in _require_list(raw, "deprecated", SnapshotError)
            ),
            total_packages=total,
            summary=str(raw.get("summary") or ""),
            scanned_at=sanitize_string(_pick(raw, "scannedAt", "scanned_at"), default=utc_now_iso()),
            package_manager=sanitize_string(
                _pick(raw, "packageManager", "package_manager"), default="npm"
            ),
        )

    @classmethod
    def from_json(cls, text: str) -> AuditSnapshot:
        """Parse a serialized snapshot. Malformed input is a SnapshotError, never empty."""
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise SnapshotError(f"Audit snapshot is not valid JSON: {e}") from e
        return cls.from_dict(raw)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "outdated": [o.to_dict() for o in self.outdated],
            "deprecated": [d.to_dict() for d in self.deprecated],
            "total_packages": self.total_packages,
            "summary": self.summary,
            "scanned_at": self.scanned_at,
            "package_manager": self.package_manager,
        }


# =============================================================================
# PLANNING
# =============================================================================


def new_proposal_id(package: str) -> str:
    """Collision-resistant proposal id, unique across planning calls."""
    return f"upgrade-{package}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class UpgradeProposal:
    id: str
    package: str
    from_version: str
    to_version: str
    change_class: ChangeClass
    security_fix_ids: tuple[str, ...] = ()
    dependents: tuple[str, ...] = ()
    changelog_url: str | None = None
    release_notes_url: str | None = None
    caution: str | None = None

    @property
    def is_security_fix(self) -> bool:
        return bool(self.security_fix_ids)

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Identity of the change, ignoring the generated id."""
        return (self.package, self.from_version, self.to_version, self.change_class.value)

    @classmethod
    def from_dict(cls, raw: Any) -> UpgradeProposal:
        from dialectic.versions import classify_distance

        raw = _require_object(raw, "upgrade proposal", ProposalError)
        package = sanitize_string(raw.get("package"))
        from_version = sanitize_string(_pick(raw, "from_version", "fromVersion", "from"))
        to_version = sanitize_string(_pick(raw, "to_version", "toVersion", "to"))
        if not package or not to_version:
            raise ProposalError("upgrade proposal requires 'package' and a target version")
        from_version = from_version or "unknown"

        change_raw = _pick(raw, "change_class", "changeClass", "type")
        try:
            change_class = ChangeClass(sanitize_string(change_raw).lower())
        except ValueError:
            change_class = classify_distance(from_version, to_version)

        fixes = _pick(raw, "security_fix_ids", "securityFixIds", "fixes", default=[])
        if not isinstance(fixes, list):
            raise ProposalError("'security_fix_ids' must be a list")
        dependents = raw.get("dependents") or []
        if not isinstance(dependents, list):
            dependents = []

        return cls(
            id=sanitize_string(raw.get("id")) or new_proposal_id(package),
            package=package,
            from_version=from_version,
            to_version=to_version,
            change_class=change_class,
            security_fix_ids=tuple(sanitize_string(f) for f in fixes if sanitize_string(f)),
            dependents=tuple(sanitize_string(d) for d in dependents),
            changelog_url=sanitize_string(_pick(raw, "changelog_url", "changelogUrl")) or None,
            release_notes_url=sanitize_string(
                _pick(raw, "release_notes_url", "releaseNotesUrl")
            ) or None,
            caution=sanitize_string(raw.get("caution")) or None,
        )

    @classmethod
    def from_json(cls, text: str) -> UpgradeProposal:
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise ProposalError(f"Upgrade proposal is not valid JSON: {e}") from e
        return cls.from_dict(raw)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["change_class"] = self.change_class.value
        d["security_fix_ids"] = list(self.security_fix_ids)
        d["dependents"] = list(self.dependents)
        return d


@dataclass(frozen=True)
class UpgradePlan:
    proposals: tuple[UpgradeProposal, ...]
    strategy: RiskStrategy
    estimated_duration: str
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def total_upgrades(self) -> int:
        return len(self.proposals)

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposals": [p.to_dict() for p in self.proposals],
            "total_upgrades": self.total_upgrades,
            "strategy": self.strategy.value,
            "estimated_duration": self.estimated_duration,
            "created_at": self.created_at,
        }


# =============================================================================
# MUTATION AND RECOVERY
# =============================================================================


@dataclass(frozen=True)
class BackupRecord:
    """A timestamped manifest copy and the proposal that was active when it was taken."""

    path: str
    created_at: str
    upgrade_id: str | None = None
    package: str | None = None
    from_version: str | None = None
    to_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MutationResult:
    success: bool
    package: str
    version: str
    message: str
    upgrade_id: str | None = None
    package_manager: str | None = None
    backup_path: str | None = None
    error_kind: str | None = None
    applied_at: str = field(default_factory=utc_now_iso)

    @property
    def manifest_changed(self) -> bool:
        """True when the manifest was rewritten, whether or not install succeeded."""
        return self.success or self.error_kind in ("install", "install_timeout")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecoveryResult:
    success: bool
    method: RecoveryMethod
    message: str
    upgrade_id: str | None = None
    package: str = "unknown"
    restored_version: str = "previous"
    attempts: tuple[str, ...] = ()
    restored_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["method"] = self.method.value
        d["attempts"] = list(self.attempts)
        return d


# =============================================================================
# TEST EXECUTION
# =============================================================================


@dataclass(frozen=True)
class TestCounts:
    """Pass/fail counts parsed from runner output. All-zero means unparseable."""

    __test__ = False  # not a pytest test class

    passed: int = 0
    failed: int = 0
    total: int = 0
    skipped: int | None = None  # None when the output format has no skip count

    @property
    def unparseable(self) -> bool:
        return self.total == 0 and self.passed == 0 and self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TestRunResult:
    __test__ = False

    counts: TestCounts
    duration_ms: int
    exit_code: int
    command: str = ""
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Exit code is authoritative; parsed counts are supplementary detail."""
        return self.exit_code == 0 and not self.timed_out

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.counts.passed,
            "failed": self.counts.failed,
            "skipped": self.counts.skipped,
            "total": self.counts.total,
            "parsed": not self.counts.unparseable,
            "duration_ms": self.duration_ms,
            "exit_code": self.exit_code,
            "success": self.success,
            "timed_out": self.timed_out,
            "command": self.command,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


# =============================================================================
# RISK NARRATION
# =============================================================================


@dataclass(frozen=True)
class RiskFactor:
    factor: str
    score: float
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AgentAssessment:
    overall_score: float
    confidence: float
    factors: tuple[RiskFactor, ...]
    summary: str
    recommendation: str
    reasoning: str
    agent: str = "pessimist"
    provider: str = "llm"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["factors"] = [f.to_dict() for f in self.factors]
        return d


@dataclass(frozen=True)
class RiskAssessment:
    upgrade_id: str
    package: str
    from_version: str
    to_version: str
    upgrade_type: ChangeClass
    security_fixes: tuple[str, ...]
    note: str
    pessimist_view: AgentAssessment | None = None
    caution: str | None = None
    assessed_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "upgrade_id": self.upgrade_id,
            "package": self.package,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "upgrade_type": self.upgrade_type.value,
            "security_fixes": list(self.security_fixes),
            "pessimist_view": self.pessimist_view.to_dict() if self.pessimist_view else None,
            "caution": self.caution,
            "note": self.note,
            "assessed_at": self.assessed_at,
        }
