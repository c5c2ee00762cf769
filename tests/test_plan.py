"""
Tests for plan assembly: the end-to-end decision scenarios.
"""

import json

import pytest

from cimatrix.commands import CommandSet
from cimatrix.errors import EmptyAxisError, PlanError
from cimatrix.jobs import default_job_specs, make_test_job
from cimatrix.model import OSName, Phase, ToolchainRef
from cimatrix.plan import ExecutionPlan, build_plan, format_plan, write_plan
from cimatrix.policy import SEQUENTIAL, default_policy
from cimatrix.trigger import EventDescriptor, EventKind, TriggerContext, classify_event


def _ids(plan):
    return [entry.id for entry in plan.entries]


class TestPushScenario:
    """Push event: lints and main tests, no scheduled tests."""

    def test_jobs_present(self, push_context, default_jobs):
        """Test that only lint and main test jobs are planned."""
        plan = build_plan(push_context, default_jobs)
        assert plan.job_names() == ["lints", "test-contrib"]

    def test_entry_counts(self, push_context, default_jobs):
        """Test 1 lint entry plus 6 basic and 4 concurrent test entries."""
        plan = build_plan(push_context, default_jobs)
        tests = plan.entries_for("test-contrib")

        assert len(plan.entries_for("lints")) == 1
        assert len([e for e in tests if e.phase is Phase.BASIC]) == 6
        assert len([e for e in tests if e.phase is Phase.CONCURRENT]) == 4
        assert len(plan) == 11
        assert plan.entries_for("test-scheduled") == []

    def test_lint_on_stable(self, push_context, default_jobs):
        """Test that the lint entry uses stable on the Linux runner."""
        lint = build_plan(push_context, default_jobs).entries_for("lints")[0]
        assert lint.cell.toolchain == ToolchainRef.stable()
        assert lint.cell.runner == "ubuntu-latest"
        assert lint.job.components == ("rustfmt", "clippy")

    def test_ordering(self, push_context, default_jobs):
        """Test ordering by job, then cell, then phase."""
        plan = build_plan(push_context, default_jobs)
        assert _ids(plan) == [
            "lints/linux/stable/lint",
            "test-contrib/linux/stable/basic",
            "test-contrib/linux/stable/concurrent",
            "test-contrib/linux/1.70.0/basic",
            "test-contrib/linux/1.70.0/concurrent",
            "test-contrib/windows/stable/basic",
            "test-contrib/windows/stable/concurrent",
            "test-contrib/windows/1.70.0/basic",
            "test-contrib/windows/1.70.0/concurrent",
            "test-contrib/macos/stable/basic",
            "test-contrib/macos/1.70.0/basic",
        ]


class TestPullRequestScenarios:
    """Pull requests from forks and from internal branches."""

    def test_external_matches_push(self, push_context, external_pr_context, default_jobs):
        """Test that a fork pull request plans exactly what a push plans."""
        push_plan = build_plan(push_context, default_jobs)
        pr_plan = build_plan(external_pr_context, default_jobs)
        assert _ids(pr_plan) == _ids(push_plan)

    def test_internal_is_suppressed(self, internal_pr_context, default_jobs):
        """Test that an internal pull request produces an empty plan."""
        plan = build_plan(internal_pr_context, default_jobs)
        assert plan.is_empty
        assert len(plan) == 0


class TestScheduledScenario:
    """Scheduled event: nightly lints and compatibility tests."""

    def test_jobs_present(self, schedule_context, default_jobs):
        """Test that lints and scheduled tests run, main tests do not."""
        plan = build_plan(schedule_context, default_jobs)
        assert plan.job_names() == ["lints", "test-scheduled"]

    def test_lint_on_nightly(self, schedule_context, default_jobs):
        """Test that the lint entry switches to nightly."""
        lints = build_plan(schedule_context, default_jobs).entries_for("lints")
        assert len(lints) == 1
        assert lints[0].cell.toolchain == ToolchainRef.nightly()

    def test_entry_counts(self, schedule_context, default_jobs):
        """Test 9 basic and 6 concurrent entries for the scheduled job."""
        tests = build_plan(schedule_context, default_jobs).entries_for("test-scheduled")
        cells = {entry.cell for entry in tests}

        assert len(cells) == 9
        assert len([e for e in tests if e.phase is Phase.BASIC]) == 9
        assert len([e for e in tests if e.phase is Phase.CONCURRENT]) == 6


class TestPlanInvariants:
    """Properties that hold for every trigger."""

    @pytest.fixture(params=["push", "schedule", "external", "internal"])
    def context(self, request, push_context, schedule_context, external_pr_context, internal_pr_context):
        return {
            "push": push_context,
            "schedule": schedule_context,
            "external": external_pr_context,
            "internal": internal_pr_context,
        }[request.param]

    def test_macos_cells_have_one_entry(self, context, default_jobs):
        """Test that every macOS test cell only has its basic phase."""
        plan = build_plan(context, default_jobs)
        for entry in plan.entries:
            if entry.cell.os is OSName.MACOS:
                cell_entries = [e for e in plan.entries if e.cell_key == entry.cell_key]
                assert [e.phase for e in cell_entries] == [Phase.BASIC]

    def test_other_cells_have_sequential_second_entry(self, context, default_jobs):
        """Test that non-macOS test cells have basic then single-thread concurrent."""
        plan = build_plan(context, default_jobs)
        for entry in plan.entries:
            if entry.job.name == "lints" or entry.cell.os is OSName.MACOS:
                continue
            cell_entries = [e for e in plan.entries if e.cell_key == entry.cell_key]
            assert [e.phase for e in cell_entries] == [Phase.BASIC, Phase.CONCURRENT]
            assert cell_entries[1].mode == SEQUENTIAL
            assert cell_entries[1].mode.threads == 1

    def test_entries_unique(self, context, default_jobs):
        """Test that no (job, cell, phase) appears twice."""
        ids = _ids(build_plan(context, default_jobs))
        assert len(ids) == len(set(ids))

    def test_cells_belong_to_their_job(self, context, default_jobs):
        """Test that every cell comes from its own job's axes."""
        for entry in build_plan(context, default_jobs).entries:
            assert entry.cell.os in entry.job.axes.os
            assert entry.cell.toolchain in entry.job.axes.toolchain + entry.job.scheduled_toolchain

    def test_idempotent(self, context):
        """Test that re-evaluation yields byte-identical JSON."""
        first = build_plan(context, default_job_specs()).to_json()
        second = build_plan(context, default_job_specs()).to_json()
        assert first == second


class TestBuildPlanOptions:
    """Tests for policy, commands and failure behaviour."""

    def test_empty_axis_on_eligible_job(self, push_context):
        """Test that an eligible job with an empty axis aborts planning."""
        job = make_test_job("broken", "push_or_external_pr", [])
        with pytest.raises(EmptyAxisError):
            build_plan(push_context, [job])

    def test_empty_axis_on_ineligible_job_ignored(self, push_context):
        """Test that an ineligible job is never expanded."""
        job = make_test_job("broken", "scheduled_only", [])
        assert build_plan(push_context, [job]).is_empty

    def test_repeated_cell_rejected(self, push_context):
        """Test that a job repeating an axis value cannot emit one entry twice."""
        job = make_test_job("t", "push_or_external_pr", [ToolchainRef.stable()], os_names=[OSName.LINUX, OSName.LINUX])
        with pytest.raises(PlanError, match="Duplicate plan entry 't/linux/stable/basic'"):
            build_plan(push_context, [job])

    def test_policy_override(self, push_context, default_jobs):
        """Test that disabling the macOS rule adds the macOS concurrent entries."""
        plan = build_plan(push_context, default_jobs, policy=default_policy([]))
        assert len(plan.entries_for("test-contrib")) == 12

    def test_commands_and_env_attached(self, push_context, default_jobs):
        """Test that entries carry rendered commands and environment."""
        command_set = CommandSet(env={"RUSTFLAGS": "-D warnings", "CI": "true"})
        plan = build_plan(push_context, default_jobs, command_set=command_set)
        concurrent = [e for e in plan.entries if e.phase is Phase.CONCURRENT][0]

        assert concurrent.commands == ("cargo test --release -- --ignored --nocapture --test-threads=1",)
        assert dict(concurrent.env) == {"CI": "true", "RUSTFLAGS": "-D warnings"}

    def test_plan_from_classified_event(self, default_jobs):
        """Test the pipeline from a raw descriptor."""
        context = classify_event(EventDescriptor(event_name="pull_request", head_repo="x/repo", base_repo="x/repo"))
        assert build_plan(context, default_jobs).is_empty


class TestSerialization:
    """Tests for plan JSON output."""

    def test_to_dict(self, push_context, default_jobs):
        """Test the serialized shape of a plan entry."""
        data = build_plan(push_context, default_jobs).to_dict()

        assert data["type"] == "execution_plan"
        assert data["trigger"] == {"event": "push", "head_repo": None, "base_repo": None}
        assert data["entries"][2] == {
            "id": "test-contrib/linux/stable/concurrent",
            "job": "test-contrib",
            "runner": "ubuntu-latest",
            "os": "linux",
            "toolchain": "stable",
            "components": [],
            "phase": "concurrent",
            "mode": "sequential",
            "threads": "1",
            "commands": ["cargo test --release -- --ignored --nocapture --test-threads=1"],
            "env": {"RUSTFLAGS": "-D warnings"},
        }

    def test_write_plan(self, tmp_path, push_context, default_jobs):
        """Test that the plan is written as JSON, creating directories."""
        plan = build_plan(push_context, default_jobs)
        path = write_plan(plan, tmp_path / "out" / "plan.json")

        with open(path) as f:
            data = json.load(f)
        assert len(data["entries"]) == 11

    def test_format_plan(self, push_context, default_jobs):
        """Test the text rendering of a plan."""
        lines = format_plan(build_plan(push_context, default_jobs))
        assert lines[0] == "Execution plan for push event (11 entries):"
        assert "  lints/linux/stable/lint [ubuntu-latest] parallel(threads=auto)" in lines
        assert "    $ cargo clippy -- -D warnings" in lines

    def test_format_empty_plan(self):
        """Test the text rendering of an empty plan."""
        plan = ExecutionPlan(context=TriggerContext(EventKind.PULL_REQUEST, "a/b", "a/b"))
        assert format_plan(plan) == ["No jobs eligible for pull_request event"]
