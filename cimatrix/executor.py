"""
Plan execution and result reporting.

The planner only decides what runs; the command runner is an external
collaborator. LocalCommandRunner is a reference runner that executes an
entry's commands on the host. execute_plan() drives any runner over a plan:

- entries of different cells are independent and run concurrently
- phases of one cell run in plan order, and a failed phase skips the
  later phases of that cell
- a failure never cancels other cells; it is recorded in the report
"""

import os
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from cimatrix.errors import CommandFailure
from cimatrix.logging import log_stdout, log_stderr, logger
from cimatrix.plan import ExecutionPlan, PlanEntry


SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"


class CommandRunner(Protocol):
    """Runs every command of a plan entry, raising CommandFailure on error."""

    def run(self, entry: PlanEntry) -> None:
        ...


class LocalCommandRunner:
    """Executes entry commands on the local host through the shell."""

    def __init__(self, cwd: Optional[str] = None, dry_run: bool = False):
        self.cwd = cwd
        self.dry_run = dry_run

    def run(self, entry: PlanEntry) -> None:
        env = os.environ.copy()
        env.update(dict(entry.env))

        for command in entry.commands:
            log_stdout(f"[{entry.id}] $ {command}")
            if self.dry_run:
                continue

            try:
                process = subprocess.Popen(
                    command,
                    shell=True,
                    cwd=self.cwd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    env=env,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except OSError as e:
                log_stderr(f"[{entry.id}] Could not start command: {e}")
                raise CommandFailure(entry.id, command, 127)

            # Non-UTF-8 output bytes are replaced
            with process:
                for line in iter(process.stdout.readline, ''):
                    if line:
                        log_stdout(f"[{entry.id}] {line.rstrip()}")
                exit_code = process.wait()
            if exit_code != 0:
                raise CommandFailure(entry.id, command, exit_code)


@dataclass
class EntryResult:
    """Outcome of one plan entry."""
    entry: PlanEntry
    status: str
    exit_code: Optional[int] = None
    message: str = ""
    duration: float = 0.0

    @property
    def entry_id(self) -> str:
        return self.entry.id


@dataclass
class PlanReport:
    """Outcome of every entry of a plan, in plan order."""
    results: List[EntryResult]

    def with_status(self, status: str) -> List[EntryResult]:
        return [r for r in self.results if r.status == status]

    @property
    def failed(self) -> List[EntryResult]:
        return self.with_status(FAILED)

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1


def _run_cell(runner: CommandRunner, entries: List[PlanEntry]) -> List[EntryResult]:
    """Run the phases of one cell in order; stop at the first failure."""
    results = []
    failure: Optional[EntryResult] = None

    for entry in entries:
        if failure is not None:
            results.append(EntryResult(
                entry=entry,
                status=SKIPPED,
                message=f"skipped after {failure.entry_id} failed",
            ))
            continue

        started = time.monotonic()
        try:
            runner.run(entry)
        except CommandFailure as e:
            failure = EntryResult(
                entry=entry,
                status=FAILED,
                exit_code=e.exit_code,
                message=str(e),
                duration=time.monotonic() - started,
            )
            logger.error("Plan entry failed", error=e, fields={"entry": entry.id})
            results.append(failure)
            continue
        except Exception as e:
            failure = EntryResult(
                entry=entry,
                status=FAILED,
                message=f"{type(e).__name__}: {e}",
                duration=time.monotonic() - started,
            )
            logger.error("Plan entry raised an unexpected error", error=e, fields={"entry": entry.id})
            results.append(failure)
            continue

        results.append(EntryResult(entry=entry, status=SUCCESS, exit_code=0, duration=time.monotonic() - started))

    return results


def execute_plan(plan: ExecutionPlan, runner: CommandRunner, max_workers: int = 4) -> PlanReport:
    """Execute a plan with the given runner and aggregate the results.

    Args:
        plan: The plan to execute
        runner: Command runner for individual entries
        max_workers: Maximum number of cells executed at the same time

    Returns:
        PlanReport with one result per plan entry, in plan order
    """
    cells: Dict[tuple, List[PlanEntry]] = {}
    for entry in plan.entries:
        cells.setdefault(entry.cell_key, []).append(entry)

    by_id: Dict[str, EntryResult] = {}
    if cells:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_run_cell, runner, entries) for entries in cells.values()]
            for future in as_completed(futures):
                for result in future.result():
                    by_id[result.entry_id] = result

    report = PlanReport(results=[by_id[entry.id] for entry in plan.entries])
    logger.info("Plan execution finished", fields={
        "entries": len(report.results),
        "failed": len(report.failed),
        "skipped": len(report.with_status(SKIPPED)),
    })
    return report


def format_report(report: PlanReport) -> List[str]:
    """Per-entry summary lines followed by an overall verdict."""
    marks = {SUCCESS: "✓", FAILED: "✗", SKIPPED: "-"}
    lines = []
    for result in report.results:
        line = f"  {marks[result.status]} {result.entry_id}: {result.status}"
        if result.message:
            line += f" ({result.message})"
        lines.append(line)

    if report.succeeded:
        lines.append(f"All {len(report.results)} plan entries succeeded")
    else:
        lines.append(f"{len(report.failed)} of {len(report.results)} plan entries failed")
    return lines
