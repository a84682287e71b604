"""Exception taxonomy for dialectic.

Public pipeline operations convert these into structured results at their
boundary; deserialization helpers let input errors propagate to the caller.
"""


class DialecticError(Exception):
    """Base class for all dialectic errors."""

    pass


class InputError(DialecticError):
    """Malformed caller-supplied data. Never retried."""

    pass


class SnapshotError(InputError):
    """An audit snapshot could not be parsed or validated."""

    pass


class ProposalError(InputError):
    """An upgrade proposal could not be parsed or validated."""

    pass


class PackageNotFoundError(InputError):
    """The package to upgrade is not declared in the manifest."""

    def __init__(self, package: str, manifest: str = "package.json"):
        self.package = package
        self.manifest = manifest
        super().__init__(f"Package {package} not found in {manifest}")


class ExternalToolError(DialecticError):
    """A package manager, scanner or VCS operation failed."""

    pass


class BackupError(ExternalToolError):
    """A requested manifest backup could not be created."""

    pass


class InstallError(ExternalToolError):
    """The package manager install step failed."""

    def __init__(self, manager: str, detail: str = ""):
        self.manager = manager
        message = f"Dependency installation failed ({manager} install)"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class InstallTimeoutError(InstallError):
    """The install step exceeded its time budget."""

    def __init__(self, manager: str, timeout: float):
        self.timeout = timeout
        ExternalToolError.__init__(
            self,
            f"Install timed out after {timeout:g}s. Please run manually: {manager} install",
        )
        self.manager = manager


class RecoveryError(ExternalToolError):
    """A single recovery method could not restore the manifest."""

    pass


class RiskServiceError(ExternalToolError):
    """The risk narration service could not produce a usable assessment."""

    pass
