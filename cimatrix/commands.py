"""Command sequences the external runner executes for each phase."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from cimatrix.model import Phase
from cimatrix.policy import ExecutionMode


DEFAULT_COMMANDS: Dict[Phase, Tuple[str, ...]] = {
    Phase.LINT: (
        "cargo fmt --all -- --check",
        "cargo check",
        "cargo clippy -- -D warnings",
    ),
    Phase.BASIC: ("cargo test",),
    # Thread pinning is appended from the execution mode
    Phase.CONCURRENT: ("cargo test --release -- --ignored --nocapture",),
}

DEFAULT_ENV: Dict[str, str] = {"RUSTFLAGS": "-D warnings"}

LINT_COMPONENTS: Tuple[str, ...] = ("rustfmt", "clippy")


@dataclass(frozen=True)
class CommandSet:
    """Per-phase command templates and the environment they run with."""
    commands: Dict[Phase, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_COMMANDS))
    env: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV))

    def commands_for(self, phase: Phase, mode: ExecutionMode) -> List[str]:
        """Render the ordered command list for one phase.

        Test phases get the mode's thread arguments appended to each
        command; lint commands are left as declared. Thread arguments belong
        to the test harness, so a command without a ``--`` separator gets one.
        """
        templates = self.commands.get(phase, ())
        if phase is Phase.LINT:
            return list(templates)
        extra = mode.thread_args()
        if not extra:
            return list(templates)
        rendered = []
        for command in templates:
            separator = [] if "--" in command.split() else ["--"]
            rendered.append(" ".join([command] + separator + extra))
        return rendered


def parse_command_set(data: Any, source: str = "") -> CommandSet:
    """Parse ``commands`` and ``env`` overrides from a jobs file mapping.

    Phases not mentioned keep their default commands.

    Raises:
        ValueError: If a phase name is unknown or its commands are not a list.
    """
    where = f" in {source}" if source else ""
    if not isinstance(data, dict):
        return CommandSet()

    commands = dict(DEFAULT_COMMANDS)
    raw_commands = data.get("commands") or {}
    if not isinstance(raw_commands, dict):
        raise ValueError(f"'commands' must be a mapping of phase to command list{where}")
    for phase_name, value in raw_commands.items():
        try:
            phase = Phase(str(phase_name))
        except ValueError:
            raise ValueError(f"Unknown phase '{phase_name}' in commands{where}")
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError(f"Commands for phase '{phase_name}' must be a list{where}")
        commands[phase] = tuple(str(v) for v in value)

    env = dict(DEFAULT_ENV)
    raw_env = data.get("env")
    if isinstance(raw_env, dict):
        env.update({str(k): str(v) for k, v in raw_env.items()})

    return CommandSet(commands=commands, env=env)
