"""
Data model for CI job planning.

Defines the static declarations a plan is computed from (JobSpec and its
matrix axes) and the concrete units a plan is made of (ExecutionCell,
Phase). All of these are immutable; a plan evaluation never mutates them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from cimatrix.trigger import TriggerContext


class OSName(Enum):
    """Operating systems a job can be run on."""
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"

    @property
    def runner(self) -> str:
        """Runner image label used to select a machine for this OS."""
        return RUNNER_IMAGES[self]

    @classmethod
    def parse(cls, value: str) -> "OSName":
        """Parse an OS name or runner label (e.g. "macos", "ubuntu-latest").

        Raises:
            ValueError: If the value names no known operating system.
        """
        token = str(value).strip().lower()
        for os_name, runner in RUNNER_IMAGES.items():
            if token in (os_name.value, runner):
                return os_name
        if token in OS_ALIASES:
            return OS_ALIASES[token]
        raise ValueError(f"Unknown operating system: {value!r}")


RUNNER_IMAGES = {
    OSName.LINUX: "ubuntu-latest",
    OSName.WINDOWS: "windows-latest",
    OSName.MACOS: "macos-latest",
}

OS_ALIASES = {
    "ubuntu": OSName.LINUX,
    "win": OSName.WINDOWS,
    "osx": OSName.MACOS,
    "darwin": OSName.MACOS,
}


STABLE = "stable"
BETA = "beta"
NIGHTLY = "nightly"
MINIMUM_SUPPORTED = "msrv"


@dataclass(frozen=True)
class ToolchainRef:
    """A toolchain release channel, or a pinned minimum supported version.

    Attributes:
        channel: One of "stable", "beta", "nightly" or "msrv".
        version: The pinned version, only set for the "msrv" channel.
    """
    channel: str
    version: Optional[str] = None

    def __post_init__(self):
        if self.channel not in (STABLE, BETA, NIGHTLY, MINIMUM_SUPPORTED):
            raise ValueError(f"Unknown toolchain channel: {self.channel!r}")
        if self.channel == MINIMUM_SUPPORTED and not self.version:
            raise ValueError("Minimum supported toolchain requires a version")
        if self.channel != MINIMUM_SUPPORTED and self.version is not None:
            raise ValueError(f"Toolchain channel {self.channel!r} does not take a version")

    @classmethod
    def stable(cls) -> "ToolchainRef":
        return cls(STABLE)

    @classmethod
    def beta(cls) -> "ToolchainRef":
        return cls(BETA)

    @classmethod
    def nightly(cls) -> "ToolchainRef":
        return cls(NIGHTLY)

    @classmethod
    def minimum_supported(cls, version: str) -> "ToolchainRef":
        return cls(MINIMUM_SUPPORTED, version)

    @property
    def is_minimum_supported(self) -> bool:
        return self.channel == MINIMUM_SUPPORTED

    @property
    def name(self) -> str:
        """Name handed to the toolchain installer ("stable", "1.70.0", ...)."""
        return self.version if self.is_minimum_supported else self.channel

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class MatrixAxes:
    """Declared matrix axes of a job, in declaration order."""
    os: Tuple[OSName, ...] = ()
    toolchain: Tuple[ToolchainRef, ...] = ()


@dataclass(frozen=True)
class ExecutionCell:
    """One concrete (OS, toolchain) point of a job's matrix."""
    os: OSName
    toolchain: ToolchainRef

    @property
    def runner(self) -> str:
        return self.os.runner

    @property
    def label(self) -> str:
        return f"{self.os.value}/{self.toolchain.name}"


class JobKind(Enum):
    """Job recipes: a platform-independent lint run or a test run."""
    LINT = "lint"
    TEST = "test"


class Phase(Enum):
    """Sub-steps of a job for one cell, in execution order."""
    LINT = "lint"
    BASIC = "basic"
    CONCURRENT = "concurrent"


JOB_PHASES = {
    JobKind.LINT: (Phase.LINT,),
    JobKind.TEST: (Phase.BASIC, Phase.CONCURRENT),
}


Predicate = Callable[[TriggerContext], bool]


@dataclass(frozen=True)
class JobSpec:
    """A declared CI job.

    Attributes:
        name: Unique job name; also the first segment of plan entry ids.
        kind: Recipe the job follows, which fixes its phases.
        run_condition: Eligibility predicate over the trigger context.
        axes: Declared OS and toolchain axes.
        condition_name: Registry name of run_condition, for display.
        scheduled_toolchain: Toolchain axis replacing axes.toolchain on
            scheduled runs (empty means no replacement).
        components: Extra toolchain components the job needs installed.
    """
    name: str
    kind: JobKind
    run_condition: Predicate
    axes: MatrixAxes
    condition_name: str = ""
    scheduled_toolchain: Tuple[ToolchainRef, ...] = ()
    components: Tuple[str, ...] = ()

    @property
    def phases(self) -> Tuple[Phase, ...]:
        return JOB_PHASES[self.kind]

    def is_eligible(self, context: TriggerContext) -> bool:
        return bool(self.run_condition(context))
