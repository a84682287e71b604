"""Guarded upgrade pipeline and the shared console."""
from .structures import GuardedUpgradeResult, UpgradeOutcome
from .ui import (
    change_label,
    console,
    print_error,
    print_header,
    print_outcome_panel,
    print_success,
    print_warning,
    severity_label,
)

__all__ = [
    "GuardedUpgradeResult", "UpgradeOutcome",
    "change_label", "console", "print_error", "print_header", "print_outcome_panel",
    "print_success", "print_warning", "severity_label",
]
