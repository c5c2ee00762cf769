"""
Job eligibility predicates.

Each run condition is a pure function of the TriggerContext. Pull requests
opened from a branch of the repository itself are already covered by the
push event for that branch, so only pull requests from other repositories
(forks) are built on their own.
"""

from typing import Dict, List

from cimatrix.model import Predicate
from cimatrix.trigger import TriggerContext


def is_external_pull_request(context: TriggerContext) -> bool:
    """True for a pull request whose head is not the base repository."""
    return context.is_pull_request and not context.same_repository


def push_schedule_or_external_pr(context: TriggerContext) -> bool:
    """Lint condition: every push and scheduled run, plus external pull requests."""
    return context.is_push or context.is_scheduled or is_external_pull_request(context)


def push_or_external_pr(context: TriggerContext) -> bool:
    """Main test condition: pushes and external pull requests, never schedules."""
    return context.is_push or is_external_pull_request(context)


def scheduled_only(context: TriggerContext) -> bool:
    """Compatibility test condition: scheduled runs only."""
    return context.is_scheduled


CONDITIONS: Dict[str, Predicate] = {
    "push_schedule_or_external_pr": push_schedule_or_external_pr,
    "push_or_external_pr": push_or_external_pr,
    "scheduled_only": scheduled_only,
}


def get_condition(name: str) -> Predicate:
    """Look up a run condition by its registry name.

    Raises:
        ValueError: If no condition is registered under that name.
    """
    try:
        return CONDITIONS[name]
    except KeyError:
        known = ", ".join(sorted(CONDITIONS))
        raise ValueError(f"Unknown run condition '{name}' (known: {known})")


def list_conditions() -> List[str]:
    return sorted(CONDITIONS)
