"""
Trigger classification for CI plan evaluation.

This module provides:
- The normalized TriggerContext every eligibility predicate works on
- Classification of raw event descriptors (push, pull request, schedule)
- Reading GitHub Actions event payloads into event descriptors

A TriggerContext is built once at the start of an evaluation and is never
mutated afterwards.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from cimatrix.errors import UnrecognizedEventKind
from cimatrix.logging import logger


class EventKind(Enum):
    """The three mutually exclusive kinds of trigger event."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    SCHEDULED = "schedule"


# Accepted event names, GitHub Actions names first
EVENT_NAMES = {
    "push": EventKind.PUSH,
    "pull_request": EventKind.PULL_REQUEST,
    "pull-request": EventKind.PULL_REQUEST,
    "schedule": EventKind.SCHEDULED,
    "scheduled": EventKind.SCHEDULED,
    "cron": EventKind.SCHEDULED,
}


@dataclass(frozen=True)
class EventDescriptor:
    """Raw trigger event metadata, as received from the CI platform.

    Attributes:
        event_name: Event name (e.g. "push", "pull_request", "schedule").
        head_repo: Full name of the repository the change comes from.
        base_repo: Full name of the repository the change targets.
        schedule: Cron expression of the schedule that fired, if any.
    """
    event_name: Optional[str] = None
    head_repo: Optional[str] = None
    base_repo: Optional[str] = None
    schedule: Optional[str] = None


@dataclass(frozen=True)
class TriggerContext:
    """Normalized, immutable view of the event being evaluated."""
    event_kind: EventKind
    head_repo_full_name: Optional[str] = None
    base_repo_full_name: Optional[str] = None

    @property
    def is_push(self) -> bool:
        return self.event_kind is EventKind.PUSH

    @property
    def is_pull_request(self) -> bool:
        return self.event_kind is EventKind.PULL_REQUEST

    @property
    def is_scheduled(self) -> bool:
        return self.event_kind is EventKind.SCHEDULED

    @property
    def same_repository(self) -> bool:
        """True only when both repository names are known and equal.

        An absent name never compares equal, so such an event is never
        treated as an internal pull request.
        """
        if not self.head_repo_full_name or not self.base_repo_full_name:
            return False
        return self.head_repo_full_name == self.base_repo_full_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_kind.value,
            "head_repo": self.head_repo_full_name,
            "base_repo": self.base_repo_full_name,
        }


def classify_event(descriptor: EventDescriptor) -> TriggerContext:
    """Classify a raw event descriptor into a TriggerContext.

    The event name decides the kind. A descriptor without an event name
    but with a cron schedule marker is a scheduled run.

    Args:
        descriptor: Raw event metadata.

    Returns:
        The normalized TriggerContext.

    Raises:
        UnrecognizedEventKind: If the event matches none of the known kinds.
    """
    name = (descriptor.event_name or "").strip().lower()

    if name:
        kind = EVENT_NAMES.get(name)
    elif descriptor.schedule:
        kind = EventKind.SCHEDULED
    else:
        kind = None

    if kind is None:
        raise UnrecognizedEventKind(descriptor.event_name)

    # Repository names only carry meaning for pull requests
    if kind is EventKind.PULL_REQUEST:
        context = TriggerContext(
            event_kind=kind,
            head_repo_full_name=descriptor.head_repo or None,
            base_repo_full_name=descriptor.base_repo or None,
        )
    else:
        context = TriggerContext(event_kind=kind)

    logger.debug("Classified trigger event", fields={
        "event": kind.value,
        "head_repo": context.head_repo_full_name,
        "base_repo": context.base_repo_full_name,
    })
    return context


def _nested(data: Any, *keys: str) -> Optional[Any]:
    """Walk nested mappings, returning None as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def read_event_payload(
    event_path: Path,
    event_name: Optional[str] = None,
    repository: Optional[str] = None,
) -> EventDescriptor:
    """Build an event descriptor from a GitHub Actions event payload file.

    The head repository is ``pull_request.head.repo.full_name``; it is null
    when the fork behind a pull request was deleted. The base repository is
    ``repository.full_name``, falling back to the given repository name.

    Args:
        event_path: Path to the JSON payload (GITHUB_EVENT_PATH).
        event_name: Event name (GITHUB_EVENT_NAME).
        repository: Repository full name (GITHUB_REPOSITORY).

    Returns:
        An EventDescriptor for classify_event.

    Raises:
        ValueError: If the payload is not a JSON object.
        FileNotFoundError: If the payload file does not exist.
    """
    with open(event_path, "r") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid event payload in {event_path}: {e}")

    if not isinstance(payload, dict):
        raise ValueError(f"Event payload in {event_path} is not a JSON object")

    head_repo = _nested(payload, "pull_request", "head", "repo", "full_name")
    base_repo = _nested(payload, "repository", "full_name") or repository
    schedule = payload.get("schedule")

    return EventDescriptor(
        event_name=event_name,
        head_repo=head_repo,
        base_repo=base_repo,
        schedule=schedule if isinstance(schedule, str) else None,
    )
