"""Configuration management for cimatrix with environment variable hierarchy."""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cimatrix.model import OSName


DEFAULT_JOBS_FILE = ".cimatrix/jobs.yaml"


@dataclass
class PlannerConfig:
    """Configuration for plan evaluation and execution."""
    jobs_file: str
    minimum_supported_version: str
    skip_concurrent_on: str  # Comma-separated OS names, empty disables the rule
    plan_file: str
    max_workers: int

    # Event information, normally provided by the CI platform
    repository: Optional[str] = None
    event_name: Optional[str] = None
    event_path: Optional[str] = None

    @property
    def jobs_file_required(self) -> bool:
        """True when the jobs file was named explicitly rather than defaulted.

        Only the default location may be absent; the built-in jobs apply then.
        """
        return self.jobs_file != DEFAULT_JOBS_FILE

    @property
    def skip_concurrent_os(self) -> List[OSName]:
        """Parsed skip_concurrent_on list.

        Raises:
            ValueError: If an entry names no known operating system.
        """
        return [OSName.parse(v) for v in self.skip_concurrent_on.split(",") if v.strip()]


class ConfigManager:
    """Manages configuration with hierarchy: defaults < env vars < CLI args."""

    DEFAULTS = {
        'jobs_file': DEFAULT_JOBS_FILE,
        'minimum_supported_version': '1.70.0',
        'skip_concurrent_on': 'macos',
        'plan_file': 'plan.json',
        'max_workers': '4',
    }

    ENV_VARS = {
        'jobs_file': 'CIMATRIX_JOBS_FILE',
        'minimum_supported_version': 'CIMATRIX_MSRV',
        'skip_concurrent_on': 'CIMATRIX_SKIP_CONCURRENT_ON',
        'plan_file': 'CIMATRIX_PLAN_FILE',
        'max_workers': 'CIMATRIX_MAX_WORKERS',
        'repository': 'GITHUB_REPOSITORY',
        'event_name': 'GITHUB_EVENT_NAME',
        'event_path': 'GITHUB_EVENT_PATH',
    }

    def get_config(self, **cli_overrides: Any) -> PlannerConfig:
        """Get the resolved configuration using hierarchy: defaults < env vars < CLI args.

        Args:
            **cli_overrides: CLI argument overrides; None values are ignored

        Returns:
            PlannerConfig with resolved values

        Raises:
            ValueError: If a value is invalid
        """
        config: Dict[str, Any] = dict(self.DEFAULTS)

        for key, env_var in self.ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                config[key] = env_value

        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

        return PlannerConfig(
            jobs_file=str(config['jobs_file']),
            minimum_supported_version=str(config['minimum_supported_version']),
            skip_concurrent_on=str(config['skip_concurrent_on']),
            plan_file=str(config['plan_file']),
            max_workers=self._parse_positive_int('max_workers', config['max_workers']),
            repository=config.get('repository') or None,
            event_name=config.get('event_name') or None,
            event_path=config.get('event_path') or None,
        )

    def _parse_positive_int(self, key: str, value: Any) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid integer for {key}: {value!r}")
        if number < 1:
            raise ValueError(f"{key} must be at least 1, got {number}")
        return number


config_manager = ConfigManager()


def get_config(**cli_overrides: Any) -> PlannerConfig:
    """Convenience function to get configuration."""
    return config_manager.get_config(**cli_overrides)
