"""Tests for the data model's validated input boundary."""

import json

import pytest

from dialectic.errors import ProposalError, SnapshotError
from dialectic.models import (
    AuditSnapshot,
    ChangeClass,
    DependencyType,
    MutationResult,
    Severity,
    TestCounts,
    TestRunResult,
    UpgradeProposal,
)


class TestSnapshotNormalization:
    """Loose scanner JSON is normalized with documented defaults."""

    def test_unknown_severity_defaults_to_medium(self):
        assert Severity.parse("moderate") is Severity.MEDIUM
        assert Severity.parse("bogus") is Severity.MEDIUM
        assert Severity.parse("CRITICAL") is Severity.CRITICAL

    def test_missing_versions_default_to_unknown(self):
        snap = AuditSnapshot.from_dict({"vulnerabilities": [{"package": "lodash"}]})
        vuln = snap.vulnerabilities[0]
        assert vuln.current_version == "unknown"
        assert vuln.patched_versions == "unknown"
        assert vuln.id == "unknown"

    def test_outdated_defaults(self):
        snap = AuditSnapshot.from_dict({"outdated": [{"name": "react", "current": "17.0.2", "type": "weird"}]})
        pkg = snap.outdated[0]
        assert pkg.wanted == "17.0.2"
        assert pkg.latest == "unknown"
        assert pkg.dependency_type is DependencyType.DEPENDENCIES

    def test_control_characters_removed(self):
        snap = AuditSnapshot.from_dict({"vulnerabilities": [{"package": "lo\x00dash\n", "title": "a\tb"}]})
        assert snap.vulnerabilities[0].package == "lo dash"
        assert snap.vulnerabilities[0].title == "a b"

    def test_entry_without_package_rejected(self):
        with pytest.raises(SnapshotError):
            AuditSnapshot.from_dict({"vulnerabilities": [{"severity": "high"}]})

    def test_non_object_rejected(self):
        with pytest.raises(SnapshotError):
            AuditSnapshot.from_dict(["not", "an", "object"])

    def test_to_dict_is_json_serializable(self):
        snap = AuditSnapshot.from_dict({
            "vulnerabilities": [{"package": "lodash", "severity": "high"}],
            "outdated": [{"name": "react", "current": "17.0.2", "latest": "18.3.1"}],
            "deprecated": [{"name": "request", "version": "2.88.2", "reason": "deprecated"}],
            "totalPackages": "12",
        })
        data = json.loads(json.dumps(snap.to_dict()))
        assert data["vulnerabilities"][0]["severity"] == "high"
        assert data["total_packages"] == 12


class TestProposalBoundary:
    """UpgradeProposal.from_dict accepts both serialized shapes."""

    def test_accepts_short_keys(self):
        proposal = UpgradeProposal.from_dict({
            "id": "upgrade-lodash-1",
            "package": "lodash",
            "from": "4.17.19",
            "to": "4.17.21",
            "type": "patch",
            "fixes": ["1523"],
        })
        assert proposal.change_class is ChangeClass.PATCH
        assert proposal.security_fix_ids == ("1523",)
        assert proposal.is_security_fix

    def test_round_trip_through_to_dict(self):
        original = UpgradeProposal(
            id="upgrade-react-abc",
            package="react",
            from_version="17.0.2",
            to_version="18.3.1",
            change_class=ChangeClass.MAJOR,
        )
        restored = UpgradeProposal.from_json(json.dumps(original.to_dict()))
        assert restored == original

    def test_missing_change_class_is_classified(self):
        proposal = UpgradeProposal.from_dict({"package": "react", "from": "17.0.2", "to": "18.3.1"})
        assert proposal.change_class is ChangeClass.MAJOR
        assert proposal.id.startswith("upgrade-react-")

    def test_missing_target_rejected(self):
        with pytest.raises(ProposalError):
            UpgradeProposal.from_dict({"package": "react"})

    def test_invalid_json_rejected(self):
        with pytest.raises(ProposalError):
            UpgradeProposal.from_json("nope")


class TestResults:
    def test_manifest_changed_only_after_rewrite(self):
        base = {"success": False, "package": "lodash", "version": "4.17.21", "message": "x"}
        assert MutationResult(**base, error_kind="install_timeout").manifest_changed
        assert MutationResult(**base, error_kind="install").manifest_changed
        assert not MutationResult(**base, error_kind="input").manifest_changed
        assert not MutationResult(**base, error_kind="backup").manifest_changed

    def test_exit_code_is_authoritative(self):
        """Zero parsed failures do not make a non-zero exit a success."""
        result = TestRunResult(counts=TestCounts(passed=3, failed=0, total=3), duration_ms=5, exit_code=1)
        assert not result.success

    def test_unparseable_counts_flagged(self):
        data = TestRunResult(counts=TestCounts(), duration_ms=5, exit_code=0).to_dict()
        assert data["parsed"] is False
        assert data["success"] is True
