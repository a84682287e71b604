"""Abstract base class for Node package manager runtimes.

Each runtime knows the commands it uses for install, test, audit and
outdated checks, and how to normalize its audit report into Vulnerability
records. Subprocess execution itself lives in the callers so that every
invocation carries its own timeout.
"""

from abc import ABC, abstractmethod
from typing import Any

from dialectic.models import Vulnerability
from dialectic.utils.helpers import sanitize_string


class BasePackageManager(ABC):
    """Abstract base class for all package manager implementations.

    Implementations must provide:
    - manager_name: Identifier for this manager (e.g., 'npm', 'pnpm')
    - lock_file: Lockfile whose presence selects this manager
    - parse_audit_report(): Normalize `<manager> audit --json` output
    """

    @property
    @abstractmethod
    def manager_name(self) -> str:
        """Return manager identifier (e.g., 'npm', 'pnpm', 'yarn')."""
        ...

    @property
    @abstractmethod
    def lock_file(self) -> str:
        """Return the lockfile name this manager writes (e.g., 'package-lock.json')."""
        ...

    @property
    def executable(self) -> str:
        return self.manager_name

    def install_command(self) -> list[str]:
        return [self.executable, "install"]

    def test_command(self) -> list[str]:
        return [self.executable, "test"]

    def audit_command(self) -> list[str]:
        return [self.executable, "audit", "--json"]

    def outdated_command(self) -> list[str]:
        return [self.executable, "outdated", "--json"]

    @abstractmethod
    def parse_audit_report(self, data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
        """Normalize a decoded audit report.

        Returns:
            (vulnerabilities, total_packages)
        """
        ...

    def parse_outdated_report(self, data: Any) -> list[dict[str, Any]]:
        """Flatten `outdated --json` output into raw OutdatedPackage dicts.

        npm and pnpm both emit ``{name: {current, wanted, latest, type}}``;
        npm workspaces may emit a list per package, the first entry is used.
        """
        if not isinstance(data, dict):
            return []
        entries = []
        for name, info in data.items():
            if isinstance(info, list):
                info = info[0] if info else {}
            if not isinstance(info, dict):
                continue
            current = info.get("current") or "unknown"
            entries.append({
                "name": sanitize_string(name),
                "current": current,
                "wanted": info.get("wanted") or current,
                "latest": info.get("latest") or "unknown",
                "type": info.get("dependencyType") or info.get("type") or "dependencies",
            })
        return entries

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} manager_name={self.manager_name!r}>"
