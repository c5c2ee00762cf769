"""CLI interface for cimatrix."""

from pathlib import Path
from typing import Optional

import typer

from cimatrix.config import PlannerConfig, get_config
from cimatrix.errors import PlanError
from cimatrix.executor import LocalCommandRunner, execute_plan, format_report
from cimatrix.jobs import load_jobs_config
from cimatrix.logging import log_stderr, log_stdout
from cimatrix.plan import ExecutionPlan, build_plan, format_plan, write_plan
from cimatrix.policy import default_policy
from cimatrix.trigger import EventDescriptor, classify_event, read_event_payload
from cimatrix.validation import format_validation_result, validate_jobs

app = typer.Typer(help="Plan CI jobs for a trigger event.")


def _describe_event(
    config: PlannerConfig,
    head_repo: Optional[str],
    base_repo: Optional[str],
    schedule: Optional[str],
) -> EventDescriptor:
    """Build the raw event descriptor from the payload file and CLI options.

    Explicit --head-repo/--base-repo/--schedule values win over the payload.
    """
    if config.event_path:
        payload = read_event_payload(Path(config.event_path), config.event_name, config.repository)
    else:
        payload = EventDescriptor(event_name=config.event_name, base_repo=config.repository)

    return EventDescriptor(
        event_name=payload.event_name,
        head_repo=head_repo or payload.head_repo,
        base_repo=base_repo or payload.base_repo,
        schedule=schedule or payload.schedule,
    )


def _evaluate(
    config: PlannerConfig,
    head_repo: Optional[str],
    base_repo: Optional[str],
    schedule: Optional[str],
) -> ExecutionPlan:
    """Classify the trigger and build the plan; any error aborts before execution."""
    descriptor = _describe_event(config, head_repo, base_repo, schedule)
    context = classify_event(descriptor)
    jobs_config = load_jobs_config(
        Path(config.jobs_file),
        msrv=config.minimum_supported_version,
        required=config.jobs_file_required,
    )
    policy = default_policy(config.skip_concurrent_os)
    return build_plan(context, jobs_config.jobs, policy=policy, command_set=jobs_config.command_set)


EVENT_HELP = "Event name: push, pull_request or schedule (default: $GITHUB_EVENT_NAME)"


@app.command()
def plan(
    event: Optional[str] = typer.Option(None, "--event", help=EVENT_HELP),
    head_repo: Optional[str] = typer.Option(None, "--head-repo", help="Full name of the pull request head repository"),
    base_repo: Optional[str] = typer.Option(None, "--base-repo", help="Full name of the target repository (default: $GITHUB_REPOSITORY)"),
    schedule: Optional[str] = typer.Option(None, "--schedule", help="Cron expression of the schedule that fired"),
    event_path: Optional[str] = typer.Option(None, "--event-path", help="GitHub event payload JSON (default: $GITHUB_EVENT_PATH)"),
    jobs_file: Optional[str] = typer.Option(None, "--jobs-file", help="Jobs file (default: .cimatrix/jobs.yaml, built-in jobs if absent)"),
    msrv: Optional[str] = typer.Option(None, "--msrv", help="Minimum supported toolchain version (default: 1.70.0)"),
    skip_concurrent_on: Optional[str] = typer.Option(None, "--skip-concurrent-on", help="Comma-separated OS names without a concurrent phase (default: macos)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Plan file to write (default: plan.json); implies --write"),
    write: bool = typer.Option(False, "--write", help="Write the plan JSON to the plan file"),
    output_format: str = typer.Option("text", "--format", help="Output format: text or json"),
):
    """Evaluate a trigger event and print the execution plan."""
    if output_format not in ("text", "json"):
        log_stderr(f"Unknown output format: {output_format}")
        raise typer.Exit(1)

    try:
        config = get_config(
            event_name=event,
            event_path=event_path,
            jobs_file=jobs_file,
            minimum_supported_version=msrv,
            skip_concurrent_on=skip_concurrent_on,
            plan_file=output,
        )
        execution_plan = _evaluate(config, head_repo, base_repo, schedule)
        if write or output:
            write_plan(execution_plan, Path(config.plan_file))
    except (PlanError, ValueError, FileNotFoundError) as e:
        log_stderr(f"Planning failed: {e}")
        raise typer.Exit(1)

    if output_format == "json":
        print(execution_plan.to_json())  # Use print for clean output that can be piped
    else:
        for line in format_plan(execution_plan):
            log_stdout(line)


@app.command()
def run(
    event: Optional[str] = typer.Option(None, "--event", help=EVENT_HELP),
    head_repo: Optional[str] = typer.Option(None, "--head-repo", help="Full name of the pull request head repository"),
    base_repo: Optional[str] = typer.Option(None, "--base-repo", help="Full name of the target repository (default: $GITHUB_REPOSITORY)"),
    schedule: Optional[str] = typer.Option(None, "--schedule", help="Cron expression of the schedule that fired"),
    event_path: Optional[str] = typer.Option(None, "--event-path", help="GitHub event payload JSON (default: $GITHUB_EVENT_PATH)"),
    jobs_file: Optional[str] = typer.Option(None, "--jobs-file", help="Jobs file (default: .cimatrix/jobs.yaml, built-in jobs if absent)"),
    msrv: Optional[str] = typer.Option(None, "--msrv", help="Minimum supported toolchain version (default: 1.70.0)"),
    skip_concurrent_on: Optional[str] = typer.Option(None, "--skip-concurrent-on", help="Comma-separated OS names without a concurrent phase (default: macos)"),
    max_workers: Optional[int] = typer.Option(None, "--max-workers", help="Cells executed at the same time (default: 4)"),
    work_dir: Optional[str] = typer.Option(None, "--work-dir", help="Working directory for commands (default: current directory)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without executing them"),
):
    """Evaluate a trigger event and execute the resulting plan locally."""
    try:
        config = get_config(
            event_name=event,
            event_path=event_path,
            jobs_file=jobs_file,
            minimum_supported_version=msrv,
            skip_concurrent_on=skip_concurrent_on,
            max_workers=max_workers,
        )
        execution_plan = _evaluate(config, head_repo, base_repo, schedule)
    except (PlanError, ValueError, FileNotFoundError) as e:
        log_stderr(f"Planning failed: {e}")
        raise typer.Exit(1)

    for line in format_plan(execution_plan):
        log_stdout(line)

    runner = LocalCommandRunner(cwd=work_dir, dry_run=dry_run)
    report = execute_plan(execution_plan, runner, max_workers=config.max_workers)

    for line in format_report(report):
        log_stdout(line)
    raise typer.Exit(report.exit_code)


@app.command()
def config(
    jobs_file: Optional[str] = typer.Option(None, "--jobs-file", help="Jobs file (default: .cimatrix/jobs.yaml)"),
    msrv: Optional[str] = typer.Option(None, "--msrv", help="Minimum supported toolchain version"),
    skip_concurrent_on: Optional[str] = typer.Option(None, "--skip-concurrent-on", help="Comma-separated OS names without a concurrent phase"),
):
    """Display the resolved configuration."""
    try:
        resolved = get_config(jobs_file=jobs_file, minimum_supported_version=msrv, skip_concurrent_on=skip_concurrent_on)
        policy = default_policy(resolved.skip_concurrent_os)
    except ValueError as e:
        log_stderr(f"Configuration error: {e}")
        raise typer.Exit(1)

    jobs_source = resolved.jobs_file
    if not Path(resolved.jobs_file).is_file():
        jobs_source += " (not found)" if resolved.jobs_file_required else " (not found, built-in jobs)"
    log_stdout("Resolved Configuration:")
    log_stdout(f"  Jobs File: {jobs_source}")
    log_stdout(f"  Minimum Supported Version: {resolved.minimum_supported_version}")
    log_stdout(f"  Skip Concurrent Phase On: {resolved.skip_concurrent_on or 'None'}")
    log_stdout(f"  Policy Rules: {', '.join(policy.rule_names()) or 'None'}")
    log_stdout(f"  Plan File: {resolved.plan_file}")
    log_stdout(f"  Max Workers: {resolved.max_workers}")
    log_stdout(f"  Repository: {resolved.repository or 'None'}")
    log_stdout(f"  Event Name: {resolved.event_name or 'None'}")
    log_stdout(f"  Event Payload: {resolved.event_path or 'None'}")


@app.command()
def validate(
    jobs_file: Optional[str] = typer.Option(None, "--jobs-file", help="Jobs file (default: .cimatrix/jobs.yaml)"),
    msrv: Optional[str] = typer.Option(None, "--msrv", help="Minimum supported toolchain version"),
):
    """Validate job declarations without evaluating any event."""
    try:
        resolved = get_config(jobs_file=jobs_file, minimum_supported_version=msrv)
        jobs_config = load_jobs_config(
            Path(resolved.jobs_file),
            msrv=resolved.minimum_supported_version,
            required=resolved.jobs_file_required,
        )
    except (ValueError, FileNotFoundError) as e:
        log_stderr(f"Configuration error: {e}")
        raise typer.Exit(1)

    result = validate_jobs(jobs_config.jobs)
    result_text = format_validation_result(result)
    if result.is_valid:
        log_stdout(result_text)
    else:
        log_stderr(result_text)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
