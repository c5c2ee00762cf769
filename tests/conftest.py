"""
Global pytest configuration for cimatrix tests.

Tests often run inside GitHub Actions, where GITHUB_EVENT_NAME,
GITHUB_EVENT_PATH and GITHUB_REPOSITORY describe the real event. Clearing
them (and any CIMATRIX_* overrides) keeps configuration resolution
deterministic.
"""

import os

import pytest

from cimatrix.jobs import default_job_specs
from cimatrix.trigger import EventKind, TriggerContext


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Remove CI platform and cimatrix variables from the test environment."""
    for name in list(os.environ):
        if name.startswith(("GITHUB_", "CIMATRIX_")) or name in ("LOG_FORMAT", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def default_jobs():
    """The built-in job set with the default minimum supported version."""
    return default_job_specs()


@pytest.fixture
def push_context():
    return TriggerContext(event_kind=EventKind.PUSH)


@pytest.fixture
def schedule_context():
    return TriggerContext(event_kind=EventKind.SCHEDULED)


@pytest.fixture
def external_pr_context():
    return TriggerContext(
        event_kind=EventKind.PULL_REQUEST,
        head_repo_full_name="forker/repo",
        base_repo_full_name="owner/repo",
    )


@pytest.fixture
def internal_pr_context():
    return TriggerContext(
        event_kind=EventKind.PULL_REQUEST,
        head_repo_full_name="owner/repo",
        base_repo_full_name="owner/repo",
    )
