"""
Execution policy selection.

Decides, for each cell of a job, which phases run and in which execution
mode. Phase skips are expressed as named rules so an operational
workaround can be listed, disabled or replaced without touching the
planner.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from cimatrix.logging import logger
from cimatrix.model import ExecutionCell, OSName, Phase


@dataclass(frozen=True)
class ExecutionMode:
    """Concurrency contract handed to the command runner for one phase.

    Attributes:
        kind: "parallel" or "sequential".
        threads: Worker thread count; None lets the test harness decide.
    """
    kind: str
    threads: Optional[int] = None

    @property
    def threads_label(self) -> str:
        return "auto" if self.threads is None else str(self.threads)

    def thread_args(self) -> List[str]:
        """Test harness arguments pinning the thread count, if any."""
        if self.threads is None:
            return []
        return [f"--test-threads={self.threads}"]

    def __str__(self) -> str:
        return f"{self.kind}(threads={self.threads_label})"


PARALLEL = ExecutionMode("parallel")
# The concurrent suite checks concurrency correctness itself and needs
# non-interleaved execution: always one thread, never "auto".
SEQUENTIAL = ExecutionMode("sequential", threads=1)

PHASE_MODES: Dict[Phase, ExecutionMode] = {
    Phase.LINT: PARALLEL,
    Phase.BASIC: PARALLEL,
    Phase.CONCURRENT: SEQUENTIAL,
}


class PolicyRule(ABC):
    """A named rule that can drop a phase for some cells."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def skips(self, cell: ExecutionCell, phase: Phase) -> bool:
        """Return True if the phase must not run for this cell."""


class SkipPhaseOnOS(PolicyRule):
    """Skip one phase on the given operating systems."""

    def __init__(self, name: str, phase: Phase, os_names: Iterable[OSName]):
        super().__init__(name)
        self.phase = phase
        self.os_names = frozenset(os_names)

    def skips(self, cell: ExecutionCell, phase: Phase) -> bool:
        return phase is self.phase and cell.os in self.os_names

    def __repr__(self) -> str:
        names = ",".join(sorted(o.value for o in self.os_names))
        return f"SkipPhaseOnOS({self.name!r}, {self.phase.value}, {names})"


# Shared macOS runners are too loaded for reliable concurrent test results
CONCURRENT_PHASE_EXCLUSION = "concurrent-phase-exclusion"


class ExecutionPolicy:
    """Ordered set of phase skip rules plus the per-phase execution modes."""

    def __init__(self, rules: Optional[Iterable[PolicyRule]] = None):
        self.rules: List[PolicyRule] = list(rules or [])

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def without_rule(self, name: str) -> "ExecutionPolicy":
        """Return a copy of this policy with the named rule removed."""
        return ExecutionPolicy(rule for rule in self.rules if rule.name != name)

    def skipping_rule(self, cell: ExecutionCell, phase: Phase) -> Optional[PolicyRule]:
        for rule in self.rules:
            if rule.skips(cell, phase):
                return rule
        return None

    def select_modes(
        self,
        cell: ExecutionCell,
        phases: Iterable[Phase],
    ) -> List[Tuple[Phase, ExecutionMode]]:
        """Return the (phase, mode) pairs that run for a cell, in phase order."""
        selected = []
        for phase in phases:
            rule = self.skipping_rule(cell, phase)
            if rule is not None:
                logger.debug("Skipping phase", fields={
                    "cell": cell.label, "phase": phase.value, "rule": rule.name,
                })
                continue
            selected.append((phase, PHASE_MODES[phase]))
        return selected


def default_policy(skip_concurrent_on: Iterable[OSName] = (OSName.MACOS,)) -> ExecutionPolicy:
    """Build the standard policy.

    Args:
        skip_concurrent_on: Operating systems the concurrent phase is skipped
            on. An empty iterable disables the rule.
    """
    os_names = list(skip_concurrent_on)
    if not os_names:
        return ExecutionPolicy()
    return ExecutionPolicy([
        SkipPhaseOnOS(CONCURRENT_PHASE_EXCLUSION, Phase.CONCURRENT, os_names),
    ])
