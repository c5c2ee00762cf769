"""Static validation of job declarations."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from cimatrix.model import JobKind, JobSpec


@dataclass
class ValidationError:
    """Represents a job declaration problem."""
    field: str
    message: str
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of job declaration validation."""
    is_valid: bool
    errors: List[ValidationError]
    warnings: List[ValidationError]

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0


def _duplicates(values: Sequence) -> List:
    seen = []
    repeated = []
    for value in values:
        if value in seen and value not in repeated:
            repeated.append(value)
        seen.append(value)
    return repeated


class JobsValidator:
    """Checks job declarations before any plan is built from them."""

    def validate_jobs(self, jobs: Sequence[JobSpec]) -> ValidationResult:
        """Validate a list of job declarations.

        Args:
            jobs: Job declarations in declaration order

        Returns:
            ValidationResult with errors and warnings
        """
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []

        if not jobs:
            warnings.append(ValidationError(
                field="jobs",
                message="No jobs declared, every plan will be empty",
            ))

        for name in _duplicates([job.name for job in jobs]):
            errors.append(ValidationError(
                field=f"jobs.{name}",
                message="Job name is declared more than once",
                suggestion="Give every job a unique name",
            ))

        for job in jobs:
            job_errors, job_warnings = self._validate_job(job)
            errors.extend(job_errors)
            warnings.extend(job_warnings)

        return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)

    def _validate_job(self, job: JobSpec) -> Tuple[List[ValidationError], List[ValidationError]]:
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []
        prefix = f"jobs.{job.name}"

        if not job.axes.os:
            errors.append(ValidationError(
                field=f"{prefix}.os",
                message="Operating system axis is empty",
                suggestion="List at least one of linux, windows, macos",
            ))
        if not job.axes.toolchain:
            errors.append(ValidationError(
                field=f"{prefix}.toolchain",
                message="Toolchain axis is empty",
                suggestion="List at least one of stable, beta, nightly, msrv",
            ))

        for axis, values in (
            ("os", job.axes.os),
            ("toolchain", job.axes.toolchain),
            ("scheduled_toolchain", job.scheduled_toolchain),
        ):
            for value in _duplicates(list(values)):
                label = value.value if axis == "os" else value.name
                errors.append(ValidationError(
                    field=f"{prefix}.{axis}",
                    message=f"'{label}' is listed more than once",
                    suggestion="Each matrix value must be unique so every cell runs once",
                ))

        if job.kind is JobKind.LINT and len(job.axes.os) > 1:
            warnings.append(ValidationError(
                field=f"{prefix}.os",
                message="Lint job lists several operating systems; lints are platform independent",
                suggestion="Use a single runner for lints",
            ))

        if job.condition_name == "scheduled_only" and any(t.is_minimum_supported for t in job.axes.toolchain):
            warnings.append(ValidationError(
                field=f"{prefix}.toolchain",
                message="Scheduled job also tests the minimum supported version",
                suggestion="Intentional if dependency releases can break the minimum supported version",
            ))

        return errors, warnings


validator = JobsValidator()


def validate_jobs(jobs: Sequence[JobSpec]) -> ValidationResult:
    """Convenience function to validate job declarations."""
    return validator.validate_jobs(jobs)


def format_validation_result(result: ValidationResult) -> str:
    """Format validation result for display to user."""
    if result.is_valid and not result.has_warnings:
        return "✅ Job declarations are valid"

    lines = []
    if result.has_errors:
        lines.append("❌ Job declarations have errors:")
        for error in result.errors:
            lines.append(f"  • {error.field}: {error.message}")
            if error.suggestion:
                lines.append(f"    💡 {error.suggestion}")
        lines.append("")

    if result.has_warnings:
        lines.append("⚠️  Job declaration warnings:")
        for warning in result.warnings:
            lines.append(f"  • {warning.field}: {warning.message}")
            if warning.suggestion:
                lines.append(f"    💡 {warning.suggestion}")
        lines.append("")

    if result.is_valid:
        lines.append("✅ Job declarations are valid (with warnings)")
    else:
        lines.append(f"❌ Validation failed with {len(result.errors)} error(s)")

    return "\n".join(lines)
