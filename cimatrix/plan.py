"""
Plan assembly.

Folds eligibility, matrix expansion and execution policy into a single
ordered ExecutionPlan: job declaration order, then cell order, then phase
order. Each (job, cell, phase) is emitted at most once; a repeat is a
PlanError.
The plan is a pure function of the trigger context and the job
declarations, so re-evaluating the same inputs serializes byte-for-byte
identically.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from cimatrix.commands import CommandSet
from cimatrix.errors import PlanError
from cimatrix.logging import logger
from cimatrix.matrix import expand_matrix
from cimatrix.model import ExecutionCell, JobSpec, Phase
from cimatrix.policy import ExecutionMode, ExecutionPolicy, default_policy
from cimatrix.trigger import TriggerContext


@dataclass(frozen=True)
class PlanEntry:
    """One unit of work for the command runner: a phase of a job's cell."""
    job: JobSpec
    cell: ExecutionCell
    phase: Phase
    mode: ExecutionMode
    commands: Tuple[str, ...] = ()
    env: Tuple[Tuple[str, str], ...] = ()

    @property
    def id(self) -> str:
        return f"{self.job.name}/{self.cell.label}/{self.phase.value}"

    @property
    def cell_key(self) -> Tuple[str, ExecutionCell]:
        """Key grouping the phases that share a job's cell."""
        return (self.job.name, self.cell)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job": self.job.name,
            "runner": self.cell.runner,
            "os": self.cell.os.value,
            "toolchain": self.cell.toolchain.name,
            "components": list(self.job.components),
            "phase": self.phase.value,
            "mode": self.mode.kind,
            "threads": self.mode.threads_label,
            "commands": list(self.commands),
            "env": dict(self.env),
        }


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered, immutable result of one trigger evaluation."""
    context: TriggerContext
    entries: Tuple[PlanEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def job_names(self) -> List[str]:
        """Names of the jobs present in the plan, in plan order."""
        names: List[str] = []
        for entry in self.entries:
            if entry.job.name not in names:
                names.append(entry.job.name)
        return names

    def entries_for(self, job_name: str) -> List[PlanEntry]:
        return [entry for entry in self.entries if entry.job.name == job_name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "execution_plan",
            "trigger": self.context.to_dict(),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


def build_plan(
    context: TriggerContext,
    jobs: Iterable[JobSpec],
    policy: Optional[ExecutionPolicy] = None,
    command_set: Optional[CommandSet] = None,
) -> ExecutionPlan:
    """Evaluate the declared jobs against a trigger and assemble the plan.

    Ineligible jobs contribute nothing, not even an empty entry.

    Args:
        context: Classified trigger context.
        jobs: Job declarations, in declaration order.
        policy: Phase skip rules; defaults to the standard policy.
        command_set: Command templates; defaults to the built-in commands.

    Returns:
        The ExecutionPlan for this trigger.

    Raises:
        EmptyAxisError: If an eligible job declares an empty axis. Raised
            before any entry is handed out, so nothing is partially started.
        PlanError: If two entries would share a job, cell and phase.
    """
    policy = policy if policy is not None else default_policy()
    command_set = command_set if command_set is not None else CommandSet()
    env = tuple(sorted(command_set.env.items()))

    entries: List[PlanEntry] = []
    seen: Set[str] = set()
    for job in jobs:
        if not job.is_eligible(context):
            logger.debug("Job not eligible", fields={"job": job.name, "condition": job.condition_name})
            continue

        for cell in expand_matrix(job, context):
            for phase, mode in policy.select_modes(cell, job.phases):
                entry = PlanEntry(
                    job=job,
                    cell=cell,
                    phase=phase,
                    mode=mode,
                    commands=tuple(command_set.commands_for(phase, mode)),
                    env=env,
                )
                if entry.id in seen:
                    raise PlanError(f"Duplicate plan entry '{entry.id}'")
                seen.add(entry.id)
                entries.append(entry)

    plan = ExecutionPlan(context=context, entries=tuple(entries))
    logger.debug("Assembled execution plan", fields={
        "event": context.event_kind.value,
        "jobs": len(plan.job_names()),
        "entries": len(plan),
    })
    return plan


def format_plan(plan: ExecutionPlan) -> List[str]:
    """Human-readable plan summary, one line per entry."""
    if plan.is_empty:
        return [f"No jobs eligible for {plan.context.event_kind.value} event"]

    lines = [f"Execution plan for {plan.context.event_kind.value} event ({len(plan)} entries):"]
    for entry in plan.entries:
        lines.append(f"  {entry.id} [{entry.cell.runner}] {entry.mode}")
        for command in entry.commands:
            lines.append(f"    $ {command}")
    return lines


def write_plan(plan: ExecutionPlan, plan_file: Path) -> Path:
    """Write the plan as JSON for the command runner to pick up."""
    plan_file = Path(plan_file)
    plan_file.parent.mkdir(parents=True, exist_ok=True)
    with open(plan_file, "w") as f:
        f.write(plan.to_json())
        f.write("\n")
    logger.info("Wrote execution plan", fields={"path": str(plan_file), "entries": len(plan)})
    return plan_file
