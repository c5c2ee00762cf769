"""Matrix expansion: job axes to an ordered list of execution cells."""

from itertools import product
from typing import List

from cimatrix.errors import EmptyAxisError
from cimatrix.logging import logger
from cimatrix.model import ExecutionCell, JobSpec, MatrixAxes
from cimatrix.trigger import TriggerContext


def select_axes(job: JobSpec, context: TriggerContext) -> MatrixAxes:
    """Return the axes a job uses for this trigger.

    On scheduled runs a job with a scheduled toolchain axis swaps it in for
    its regular one (the lint job moves from stable to nightly).
    """
    if context.is_scheduled and job.scheduled_toolchain:
        return MatrixAxes(os=job.axes.os, toolchain=job.scheduled_toolchain)
    return job.axes


def expand_axes(job_name: str, axes: MatrixAxes) -> List[ExecutionCell]:
    """Cartesian product of os x toolchain, os as the outer loop.

    Raises:
        EmptyAxisError: If either axis is empty.
    """
    if not axes.os:
        raise EmptyAxisError(job_name, "os")
    if not axes.toolchain:
        raise EmptyAxisError(job_name, "toolchain")

    return [ExecutionCell(os=os_name, toolchain=toolchain) for os_name, toolchain in product(axes.os, axes.toolchain)]


def expand_matrix(job: JobSpec, context: TriggerContext) -> List[ExecutionCell]:
    """Expand an eligible job into its execution cells for this trigger."""
    cells = expand_axes(job.name, select_axes(job, context))
    logger.debug("Expanded job matrix", fields={"job": job.name, "cells": len(cells)})
    return cells
