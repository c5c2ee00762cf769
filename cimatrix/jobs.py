"""
Job declarations for CI planning.

This module provides:
- Builders for the two job recipes (lint and test)
- The built-in job set: lints, main tests and scheduled compatibility tests
- Loading job declarations from a YAML jobs file

Main and scheduled test jobs share one recipe and differ only in their
toolchain axis and run condition, so both come from make_test_job().
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

import yaml

from cimatrix.commands import CommandSet, LINT_COMPONENTS, parse_command_set
from cimatrix.conditions import get_condition
from cimatrix.logging import logger
from cimatrix.model import (
    BETA,
    JobKind,
    JobSpec,
    MatrixAxes,
    MINIMUM_SUPPORTED,
    NIGHTLY,
    OSName,
    STABLE,
    ToolchainRef,
)


DEFAULT_MSRV = "1.70.0"

ALL_OS = (OSName.LINUX, OSName.WINDOWS, OSName.MACOS)


@dataclass
class JobsConfig:
    """Job declarations plus the commands and environment they run with.

    Attributes:
        jobs: Job declarations in declaration order.
        command_set: Per-phase commands and global environment.
        source_file: Jobs file the declarations came from, None for built-ins.
    """
    jobs: List[JobSpec]
    command_set: CommandSet = field(default_factory=CommandSet)
    source_file: Optional[str] = None


def make_lint_job(
    name: str = "lints",
    condition: str = "push_schedule_or_external_pr",
    toolchain: Sequence[ToolchainRef] = (ToolchainRef.stable(),),
    scheduled_toolchain: Sequence[ToolchainRef] = (ToolchainRef.nightly(),),
    os_names: Sequence[OSName] = (OSName.LINUX,),
) -> JobSpec:
    """Build a lint job. Lints do not depend on the OS, so one runner is enough."""
    return JobSpec(
        name=name,
        kind=JobKind.LINT,
        run_condition=get_condition(condition),
        condition_name=condition,
        axes=MatrixAxes(os=tuple(os_names), toolchain=tuple(toolchain)),
        scheduled_toolchain=tuple(scheduled_toolchain),
        components=LINT_COMPONENTS,
    )


def make_test_job(
    name: str,
    condition: str,
    toolchains: Sequence[ToolchainRef],
    os_names: Sequence[OSName] = ALL_OS,
) -> JobSpec:
    """Build a test job running basic and concurrent phases on every cell."""
    return JobSpec(
        name=name,
        kind=JobKind.TEST,
        run_condition=get_condition(condition),
        condition_name=condition,
        axes=MatrixAxes(os=tuple(os_names), toolchain=tuple(toolchains)),
    )


def default_job_specs(msrv: str = DEFAULT_MSRV) -> List[JobSpec]:
    """The built-in job set, in declaration order.

    The scheduled job also covers the minimum supported version, which new
    dependency releases can break between regular runs.
    """
    minimum = ToolchainRef.minimum_supported(msrv)
    return [
        make_lint_job(),
        make_test_job("test-contrib", "push_or_external_pr", [ToolchainRef.stable(), minimum]),
        make_test_job("test-scheduled", "scheduled_only", [ToolchainRef.beta(), ToolchainRef.nightly(), minimum]),
    ]


def parse_toolchain(token: Any, msrv: str) -> ToolchainRef:
    """Parse a toolchain token: stable, beta, nightly, msrv or msrv:<version>.

    Raises:
        ValueError: If the token names no known toolchain.
    """
    text = str(token).strip().lower()
    if text in (STABLE, BETA, NIGHTLY):
        return ToolchainRef(text)
    if text == MINIMUM_SUPPORTED:
        return ToolchainRef.minimum_supported(msrv)
    if text.startswith(f"{MINIMUM_SUPPORTED}:"):
        version = text.split(":", 1)[1].strip()
        if not version:
            raise ValueError(f"Toolchain '{token}' is missing its version")
        return ToolchainRef.minimum_supported(version)
    raise ValueError(f"Unknown toolchain '{token}'")


def _parse_list(data: Any, key: str, where: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list{where}")
    return value


def _require_unique(axis: str, values: List[str]) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise ValueError(f"'{value}' is listed more than once in the '{axis}' axis")
        seen.add(value)


def parse_job_spec(data: Any, msrv: str = DEFAULT_MSRV, source_file: Optional[str] = None) -> JobSpec:
    """Parse a single job declaration from a YAML mapping.

    Empty axes are accepted here; they only fail when the job is expanded.
    Axis values must be distinct, so aliases of one OS cannot repeat a cell.

    Args:
        data: Parsed YAML mapping for one job.
        msrv: Version the ``msrv`` toolchain token resolves to.
        source_file: Optional path of the jobs file, used in error messages.

    Returns:
        A JobSpec instance.

    Raises:
        ValueError: If a field is missing or holds an unknown value.
    """
    where = f" in {source_file}" if source_file else ""
    if not isinstance(data, dict):
        raise ValueError(f"Job declaration must be a mapping{where}")

    name = data.get("name")
    if not name:
        raise ValueError(f"Job declaration missing required 'name' field{where}")
    name = str(name)

    try:
        kind = JobKind(str(data.get("kind", "test")))
    except ValueError:
        raise ValueError(f"Job '{name}' has unknown kind '{data.get('kind')}'{where}")

    condition = data.get("condition")
    if not condition:
        raise ValueError(f"Job '{name}' missing required 'condition' field{where}")

    try:
        run_condition = get_condition(str(condition))
        os_names = tuple(OSName.parse(v) for v in _parse_list(data, "os", ""))
        toolchain = tuple(parse_toolchain(v, msrv) for v in _parse_list(data, "toolchain", ""))
        scheduled = tuple(parse_toolchain(v, msrv) for v in _parse_list(data, "scheduled_toolchain", ""))
        _require_unique("os", [o.value for o in os_names])
        _require_unique("toolchain", [str(t) for t in toolchain])
        _require_unique("scheduled_toolchain", [str(t) for t in scheduled])
    except ValueError as e:
        raise ValueError(f"Job '{name}': {e}{where}")

    components = _parse_list(data, "components", where)
    if not components and kind is JobKind.LINT:
        components = list(LINT_COMPONENTS)

    return JobSpec(
        name=name,
        kind=kind,
        run_condition=run_condition,
        condition_name=str(condition),
        axes=MatrixAxes(os=os_names, toolchain=toolchain),
        scheduled_toolchain=scheduled,
        components=tuple(str(c) for c in components),
    )


def parse_jobs_config(data: Any, msrv: str = DEFAULT_MSRV, source_file: Optional[str] = None) -> JobsConfig:
    """Parse a whole jobs file mapping (``jobs``, ``commands``, ``env``)."""
    where = f" in {source_file}" if source_file else ""
    if not isinstance(data, dict):
        raise ValueError(f"Jobs file must contain a YAML mapping{where}")

    raw_jobs = data.get("jobs")
    if not isinstance(raw_jobs, list):
        raise ValueError(f"Jobs file missing required 'jobs' list{where}")

    jobs = [parse_job_spec(item, msrv=msrv, source_file=source_file) for item in raw_jobs]
    names = [job.name for job in jobs]
    for name in names:
        if names.count(name) > 1:
            raise ValueError(f"Job '{name}' is declared more than once{where}")
    return JobsConfig(
        jobs=jobs,
        command_set=parse_command_set(data, source_file or ""),
        source_file=source_file,
    )


def load_jobs_config(jobs_file: Optional[Path], msrv: str = DEFAULT_MSRV, required: bool = False) -> JobsConfig:
    """Load job declarations from a YAML file, or the built-ins if it is absent.

    Args:
        jobs_file: Path to the jobs file; None or a missing file selects
            the built-in job set.
        msrv: Version the ``msrv`` toolchain token resolves to.
        required: Treat a missing file as an error instead of falling back.

    Returns:
        The loaded JobsConfig.

    Raises:
        ValueError: If the file is not valid YAML or holds an invalid declaration.
        FileNotFoundError: If the file is required but does not exist.
    """
    if jobs_file is not None and required and not Path(jobs_file).is_file():
        raise FileNotFoundError(f"Jobs file not found: {jobs_file}")
    if jobs_file is None or not Path(jobs_file).is_file():
        if jobs_file is not None:
            logger.debug("No jobs file found, using built-in jobs", fields={"path": str(jobs_file)})
        return JobsConfig(jobs=default_job_specs(msrv))

    with open(jobs_file, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing {jobs_file}: {e}")

    config = parse_jobs_config(data, msrv=msrv, source_file=str(jobs_file))
    logger.debug("Loaded jobs file", fields={"path": str(jobs_file), "jobs": len(config.jobs)})
    return config
