"""Semantic-version classification and upgrade-target resolution.

Two operations drive the planner:

- classify_distance(): how far apart two versions are (major/minor/patch).
  Pre-release distances fold into their stable counterpart and anything that
  fails to parse is classified as ``patch``, the least disruptive answer.
- resolve_target(): turn a free-form "patched versions" string from an audit
  report into a concrete version that is strictly newer than what is
  installed.

Version parsing follows SemVer 2.0 ordering (pre-release < release,
numeric identifiers < alphanumeric identifiers). Leading ``v``, ``=``, ``^``
and ``~`` are tolerated so declared manifest ranges can be classified too.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from dialectic.models import ChangeClass

_SEMVER = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Three-part dotted numbers embedded in range expressions (">=4.17.21 <5.0.0")
_VERSION_IN_TEXT = re.compile(r"\d+\.\d+\.\d+")


class SemVer(NamedTuple):
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    @property
    def main(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{base}-{'.'.join(self.prerelease)}"
        return base


def clean_version(version: str) -> str:
    """Strip whitespace and a leading ``v``/``=``/``^``/``~`` from a version string.

    Examples:
        ^1.2.3 -> 1.2.3
        v2.0.0 -> 2.0.0
        =1.0.0 -> 1.0.0
    """
    return re.sub(r"^[=v^~\s]+", "", version.strip())


def parse_version(version: str | None) -> SemVer | None:
    """Parse a version string, returning None when it is not valid SemVer."""
    if not version or not isinstance(version, str):
        return None
    match = _SEMVER.match(clean_version(version))
    if not match:
        return None
    pre = match.group("pre")
    return SemVer(
        int(match.group("major")),
        int(match.group("minor")),
        int(match.group("patch")),
        tuple(pre.split(".")) if pre else (),
    )


def _compare_identifiers(a: str, b: str) -> int:
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num:
        return -1
    if b_num:
        return 1
    return (a > b) - (a < b)


def _compare_prerelease(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    # A release sorts after any of its pre-releases
    if not a and not b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    for left, right in zip(a, b):
        result = _compare_identifiers(left, right)
        if result:
            return result
    return (len(a) > len(b)) - (len(a) < len(b))


def compare_semver(a: SemVer, b: SemVer) -> int:
    """Return -1, 0 or 1 following SemVer precedence."""
    if a.main != b.main:
        return -1 if a.main < b.main else 1
    return _compare_prerelease(a.prerelease, b.prerelease)


def compare_versions(a: str, b: str) -> int | None:
    """Compare two version strings; None when either is unparseable."""
    left, right = parse_version(a), parse_version(b)
    if left is None or right is None:
        return None
    return compare_semver(left, right)


def increment_patch(version: str) -> str | None:
    """Next patch release. A pre-release resolves to its own release.

    Examples:
        1.2.3 -> 1.2.4
        1.2.3-beta.1 -> 1.2.3
        garbage -> None
    """
    parsed = parse_version(version)
    if parsed is None:
        return None
    if parsed.prerelease:
        return f"{parsed.major}.{parsed.minor}.{parsed.patch}"
    return f"{parsed.major}.{parsed.minor}.{parsed.patch + 1}"


def classify_distance(from_version: str, to_version: str) -> ChangeClass:
    """Semantic distance between two versions.

    premajor/preminor/prepatch fold into major/minor/patch and a bare
    pre-release bump counts as a patch. Unparseable or identical inputs are
    classified as PATCH.
    """
    v1, v2 = parse_version(from_version), parse_version(to_version)
    if v1 is None or v2 is None:
        return ChangeClass.PATCH

    comparison = compare_semver(v1, v2)
    if comparison == 0:
        return ChangeClass.PATCH

    high, low = (v1, v2) if comparison > 0 else (v2, v1)

    if low.prerelease and not high.prerelease:
        # Leaving a pre-release: 2.0.0-rc.1 -> 2.0.0 is the major release itself
        if not low.patch and not low.minor:
            return ChangeClass.MAJOR
        if low.main == high.main:
            if low.minor and not low.patch:
                return ChangeClass.MINOR
            return ChangeClass.PATCH

    if v1.major != v2.major:
        return ChangeClass.MAJOR
    if v1.minor != v2.minor:
        return ChangeClass.MINOR
    return ChangeClass.PATCH


def extract_versions(text: str | None) -> list[str]:
    """All three-part dotted numbers appearing in ``text``, in order."""
    if not text:
        return []
    return _VERSION_IN_TEXT.findall(text)


def resolve_target(patched_range: str | None, current_version: str) -> str | None:
    """Pick a concrete upgrade target from a loosely formatted patched range.

    The highest version mentioned in ``patched_range`` wins. When the range
    names no version, or its highest version is not strictly newer than
    ``current_version``, the current version's next patch is proposed
    instead. Returns None when no target can be derived.

    If ``current_version`` itself is unparseable the highest mentioned
    version is returned as-is, since it cannot be compared.
    """
    candidates = [parse_version(v) for v in extract_versions(patched_range)]
    candidates = [c for c in candidates if c is not None]

    if not candidates:
        return increment_patch(current_version)

    best = candidates[0]
    for candidate in candidates[1:]:
        if compare_semver(candidate, best) > 0:
            best = candidate

    current = parse_version(current_version)
    if current is None:
        return str(best)

    if compare_semver(best, current) <= 0:
        return increment_patch(current_version)

    return str(best)
