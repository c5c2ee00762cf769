"""
Tests for job eligibility predicates.
"""

import pytest

from cimatrix.conditions import (
    CONDITIONS,
    get_condition,
    is_external_pull_request,
    list_conditions,
    push_or_external_pr,
    push_schedule_or_external_pr,
    scheduled_only,
)
from cimatrix.trigger import EventKind, TriggerContext


class TestPredicates:
    """Truth table of the three run conditions."""

    def test_push(self, push_context):
        """Test that lint and main tests run on push, scheduled tests do not."""
        assert push_schedule_or_external_pr(push_context)
        assert push_or_external_pr(push_context)
        assert not scheduled_only(push_context)

    def test_internal_pull_request(self, internal_pr_context):
        """Test that internal pull requests are fully suppressed."""
        assert not push_schedule_or_external_pr(internal_pr_context)
        assert not push_or_external_pr(internal_pr_context)
        assert not scheduled_only(internal_pr_context)

    def test_external_pull_request(self, external_pr_context):
        """Test that pull requests from forks run lint and main tests."""
        assert push_schedule_or_external_pr(external_pr_context)
        assert push_or_external_pr(external_pr_context)
        assert not scheduled_only(external_pr_context)

    def test_scheduled(self, schedule_context):
        """Test that scheduled runs lint but never run the main tests."""
        assert push_schedule_or_external_pr(schedule_context)
        assert not push_or_external_pr(schedule_context)
        assert scheduled_only(schedule_context)

    def test_pull_request_without_head_repo_is_external(self):
        """Test that an unknown head repository is never treated as internal."""
        context = TriggerContext(EventKind.PULL_REQUEST, None, "owner/repo")
        assert is_external_pull_request(context)
        assert push_or_external_pr(context)

    def test_push_is_not_a_pull_request(self, push_context):
        """Test that absent repository names do not make a push external."""
        assert not is_external_pull_request(push_context)


class TestRegistry:
    """Tests for the condition registry."""

    def test_get_condition(self):
        """Test lookup by name."""
        assert get_condition("scheduled_only") is scheduled_only

    def test_unknown_condition(self):
        """Test that an unknown name raises ValueError listing known names."""
        with pytest.raises(ValueError, match="Unknown run condition 'nope'.*scheduled_only"):
            get_condition("nope")

    def test_list_conditions(self):
        """Test that every registered condition is listed."""
        assert list_conditions() == sorted(CONDITIONS)
        assert len(list_conditions()) == 3
