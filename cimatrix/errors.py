"""Error taxonomy for plan evaluation and execution."""

from typing import Optional


class PlanError(Exception):
    """Base class for all cimatrix errors."""


class UnrecognizedEventKind(PlanError):
    """The trigger event matches none of push, pull request or schedule.

    Fatal: no plan can be produced for an event we cannot classify.
    """

    def __init__(self, event_name: Optional[str]):
        self.event_name = event_name
        super().__init__(f"Unrecognized event kind: {event_name!r}")


class EmptyAxisError(PlanError):
    """An eligible job declares an empty matrix axis (configuration defect)."""

    def __init__(self, job_name: str, axis: str):
        self.job_name = job_name
        self.axis = axis
        super().__init__(f"Job '{job_name}' has an empty '{axis}' axis")


class CommandFailure(PlanError):
    """A command of a single plan entry exited non-zero.

    Isolated to its entry: the executor records it and carries on with
    the other cells.
    """

    def __init__(self, entry_id: str, command: str, exit_code: int):
        self.entry_id = entry_id
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"{entry_id}: '{command}' exited with code {exit_code}")
