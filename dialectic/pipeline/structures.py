"""Data contracts for the guarded upgrade pipeline."""
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dialectic.models import MutationResult, RecoveryResult, TestRunResult, UpgradeProposal
from dialectic.utils.exit_codes import ExitCodes


class UpgradeOutcome(Enum):
    """Final state of one guarded upgrade."""
    UPGRADED = "upgraded"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class GuardedUpgradeResult:
    """Everything that happened to one proposal: mutation, tests and recovery.

    ``tests`` is None when the mutation failed or tests were skipped;
    ``recovery`` is None when no rollback was needed.
    """
    proposal: UpgradeProposal
    outcome: UpgradeOutcome
    mutation: MutationResult
    tests: TestRunResult | None = None
    recovery: RecoveryResult | None = None

    @property
    def success(self) -> bool:
        return self.outcome is UpgradeOutcome.UPGRADED

    @property
    def exit_code(self) -> int:
        if self.outcome is UpgradeOutcome.UPGRADED:
            return ExitCodes.SUCCESS
        if self.outcome is UpgradeOutcome.ROLLED_BACK:
            return ExitCodes.ROLLED_BACK
        if self.tests is not None and not self.tests.success:
            return ExitCodes.TESTS_FAILED
        return ExitCodes.OPERATION_FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "proposal": self.proposal.to_dict(),
            "outcome": self.outcome.value,
            "success": self.success,
            "mutation": self.mutation.to_dict(),
            "tests": self.tests.to_dict() if self.tests else None,
            "recovery": self.recovery.to_dict() if self.recovery else None,
        }
