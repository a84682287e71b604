"""Upgrade planner - turns an audit snapshot into ordered upgrade proposals.

Security-driven proposals always come first and are never suppressed by the
chosen strategy; staleness-driven proposals are filtered by it:

    conservative  patch only, target = wanted
    balanced      patch + minor, target = latest
    aggressive    anything, target = latest

At most one proposal is produced per package. Planning is pure: the same
snapshot and strategy always yield the same (package, from, to, class)
tuples, only the generated ids differ.
"""

from __future__ import annotations

import math

from dialectic.models import (
    AuditSnapshot,
    ChangeClass,
    OutdatedPackage,
    RiskStrategy,
    UpgradePlan,
    UpgradeProposal,
    Vulnerability,
    new_proposal_id,
)
from dialectic.utils.logging import logger
from dialectic.versions import classify_distance, compare_versions, resolve_target

MINUTES_PER_UPGRADE = 2.5


def _changelog_url(package: str) -> str:
    return f"https://github.com/{package}/blob/main/CHANGELOG.md"


def _release_notes_url(package: str, version: str | None = None) -> str:
    if version:
        return f"https://github.com/{package}/releases/tag/v{version}"
    return f"https://github.com/{package}/releases"


def _strategy_caution(strategy: RiskStrategy, change_class: ChangeClass, vuln: Vulnerability) -> str | None:
    """Flag a security fix that the strategy would not admit on its own."""
    if strategy.admits(change_class):
        return None
    return (
        f"{change_class.value} upgrade required to fix {vuln.severity.value} "
        f"vulnerability {vuln.id}; exceeds the {strategy.value} strategy - review before applying"
    )


def _security_proposals(
    vulnerabilities: tuple[Vulnerability, ...], strategy: RiskStrategy
) -> dict[str, UpgradeProposal]:
    """One proposal per vulnerable package, merging advisories for the same package."""
    proposals: dict[str, UpgradeProposal] = {}
    drivers: dict[str, Vulnerability] = {}

    for vuln in vulnerabilities:
        target = resolve_target(vuln.patched_versions, vuln.current_version)
        if not target or target == vuln.current_version:
            logger.debug(f"No usable target for {vuln.package} ({vuln.id}): {vuln.patched_versions!r}")
            continue

        existing = proposals.get(vuln.package)
        fix_ids: tuple[str, ...] = (vuln.id,)
        if existing is not None:
            fix_ids = existing.security_fix_ids + tuple(
                i for i in fix_ids if i not in existing.security_fix_ids
            )
            if compare_versions(target, existing.to_version) != 1:
                target = existing.to_version
            else:
                drivers[vuln.package] = vuln
        else:
            drivers[vuln.package] = vuln

        change_class = classify_distance(vuln.current_version, target)
        proposals[vuln.package] = UpgradeProposal(
            id=existing.id if existing else new_proposal_id(vuln.package),
            package=vuln.package,
            from_version=vuln.current_version,
            to_version=target,
            change_class=change_class,
            security_fix_ids=fix_ids,
            changelog_url=_changelog_url(vuln.package),
            release_notes_url=_release_notes_url(vuln.package, target),
            caution=_strategy_caution(strategy, change_class, drivers[vuln.package]),
        )

    return proposals


def _staleness_proposal(pkg: OutdatedPackage, strategy: RiskStrategy) -> UpgradeProposal | None:
    distance = classify_distance(pkg.current, pkg.latest)
    if not strategy.admits(distance):
        return None

    target = pkg.wanted if strategy is RiskStrategy.CONSERVATIVE else pkg.latest
    if not target or target == pkg.current or target == "unknown":
        return None

    return UpgradeProposal(
        id=new_proposal_id(pkg.name),
        package=pkg.name,
        from_version=pkg.current,
        to_version=target,
        change_class=classify_distance(pkg.current, target),
        changelog_url=_changelog_url(pkg.name),
        release_notes_url=_release_notes_url(pkg.name),
    )


def estimate_duration(upgrade_count: int, minutes_per_upgrade: float = MINUTES_PER_UPGRADE) -> str:
    """Rough wall-clock estimate for applying and testing ``upgrade_count`` upgrades."""
    minutes = math.ceil(upgrade_count * minutes_per_upgrade)
    if minutes < 60:
        return f"~{minutes} minutes"
    hours, remaining = divmod(minutes, 60)
    return f"~{hours}h {remaining}m"


def plan(
    snapshot: AuditSnapshot,
    strategy: RiskStrategy | str = RiskStrategy.BALANCED,
    minutes_per_upgrade: float = MINUTES_PER_UPGRADE,
) -> UpgradePlan:
    """Build an upgrade plan from an audit snapshot."""
    strategy = RiskStrategy(strategy) if isinstance(strategy, str) else strategy
    logger.info(f"Generating upgrade plan with strategy: {strategy.value}")

    security = _security_proposals(snapshot.vulnerabilities, strategy)
    proposals: list[UpgradeProposal] = list(security.values())
    seen = set(security)

    for pkg in snapshot.outdated:
        if pkg.name in seen:
            continue
        proposal = _staleness_proposal(pkg, strategy)
        if proposal is None:
            continue
        seen.add(pkg.name)
        proposals.append(proposal)

    # stable sort, ties keep discovery order
    proposals.sort(key=lambda p: 0 if p.is_security_fix else 1)

    for proposal in proposals:
        if proposal.caution:
            logger.warning(f"{proposal.package}: {proposal.caution}")

    logger.info(f"Generated {len(proposals)} upgrade proposals")
    return UpgradePlan(
        proposals=tuple(proposals),
        strategy=strategy,
        estimated_duration=estimate_duration(len(proposals), minutes_per_upgrade),
    )


def plan_from_json(
    snapshot_json: str,
    strategy: RiskStrategy | str = RiskStrategy.BALANCED,
    minutes_per_upgrade: float = MINUTES_PER_UPGRADE,
) -> UpgradePlan:
    """Plan from a serialized snapshot. Raises SnapshotError on malformed input."""
    return plan(AuditSnapshot.from_json(snapshot_json), strategy, minutes_per_upgrade)
