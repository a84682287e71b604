"""Input validation for values that reach subprocess arguments."""

import re

# npm: optional @scope/, max 214 characters; legacy names may be mixed case
_NPM_NAME = re.compile(r"^(@[a-z0-9][\w.-]*\/)?[a-z0-9][\w.-]*$", re.IGNORECASE)

# Exact versions, dist-tags and npm range prefixes; no whitespace or shell syntax
_VERSION_SPEC = re.compile(r"^[\w.^~<>=+*-]+$")


def validate_package_name(name: str) -> bool:
    """Validate that a package name follows npm naming rules."""
    if not name or len(name) > 214:
        return False
    return bool(_NPM_NAME.fullmatch(name))


def validate_version_spec(version: str) -> bool:
    """Validate a version string destined for the manifest."""
    if not version or len(version) > 256:
        return False
    return bool(_VERSION_SPEC.fullmatch(version))
