"""Centralized exit codes for the dialectic CLI."""


class ExitCodes:
    """Standard exit codes for dialectic CLI commands."""

    SUCCESS = 0

    # Operation failed; the message carries remediation
    OPERATION_FAILED = 1
    # audit found at least one critical vulnerability
    CRITICAL_SEVERITY = 2

    TESTS_FAILED = 3
    # Upgrade failed and the project was restored
    ROLLED_BACK = 4
