"""Node package managers behind one interface, and lockfile-based selection.

- npm (package-lock.json) - default when no lockfile is present
- pnpm (pnpm-lock.yaml)
- yarn (yarn.lock)

Usage:
    from dialectic.package_managers import resolve_package_manager

    manager = resolve_package_manager(Path("my-app"))       # from the lockfile
    yarn = resolve_package_manager(Path("my-app"), "yarn")  # forced
    subprocess.run(manager.install_command(), cwd="my-app", timeout=15)
"""

from __future__ import annotations

from pathlib import Path

from dialectic.utils.constants import LOCKFILES
from dialectic.utils.logging import logger

from .base import BasePackageManager
from .npm import NpmPackageManager
from .pnpm import PnpmPackageManager
from .yarn import YarnPackageManager

MANAGERS: dict[str, type[BasePackageManager]] = {
    "npm": NpmPackageManager,
    "pnpm": PnpmPackageManager,
    "yarn": YarnPackageManager,
}

DEFAULT_MANAGER = "npm"


def get_manager(manager_name: str) -> BasePackageManager | None:
    """Instance for 'npm', 'pnpm' or 'yarn' (any case); None for anything else."""
    cls = MANAGERS.get(manager_name.lower())
    return cls() if cls else None


def get_all_managers() -> list[BasePackageManager]:
    return [cls() for cls in MANAGERS.values()]


def detect_package_manager(project_path: str | Path) -> str:
    """Name of the manager whose lockfile is present, by priority.

    pnpm-lock.yaml wins over package-lock.json, which wins over yarn.lock.
    With no lockfile the project is treated as npm.
    """
    project = Path(project_path)
    lock_owner = {cls().lock_file: name for name, cls in MANAGERS.items()}
    for lockfile in LOCKFILES:
        if (project / lockfile).exists():
            return lock_owner[lockfile]
    return DEFAULT_MANAGER


def resolve_package_manager(
    project_path: str | Path, requested: str | None = "auto"
) -> BasePackageManager:
    """Return the requested manager, or the detected one for 'auto'/None.

    An unknown name falls back to detection with a warning.
    """
    if requested and requested.lower() != "auto":
        manager = get_manager(requested)
        if manager is not None:
            return manager
        logger.warning(f"Unknown package manager '{requested}', detecting from lockfile")

    name = detect_package_manager(project_path)
    logger.debug(f"Using package manager: {name}")
    return get_manager(name)


__all__ = [
    "BasePackageManager",
    "DEFAULT_MANAGER",
    "MANAGERS",
    "detect_package_manager",
    "get_all_managers",
    "get_manager",
    "resolve_package_manager",
]
