"""PRE/POST hook command lists stored as one command per line."""

from __future__ import annotations

from pathlib import Path

import structlog

from graduate.constants import HOOKS_DIRNAME
from graduate.coordinator.models import HookPhase
from graduate.infra.errors import ConfigError

logger = structlog.get_logger()

# "&" also matches "&&"
_JOINERS = (";", "&", "||")


def terminate(command: str) -> str:
    """Ensure ``command`` ends in a statement terminator or joiner."""
    stripped = command.strip()
    if stripped.endswith(_JOINERS):
        return stripped
    return f"{stripped};"


class HookStore:
    def __init__(self, state_dir: Path) -> None:
        self._dir = state_dir / HOOKS_DIRNAME

    def path(self, phase: HookPhase) -> Path:
        return self._dir / phase.value.lower()

    def entries(self, phase: HookPhase) -> list[str]:
        path = self.path(phase)
        if not path.exists():
            return []
        return [line for line in path.read_text("utf-8").splitlines() if line.strip()]

    def add(self, phase: HookPhase, command: str) -> int:
        """Append a command; returns its 1-based index."""
        if not command.strip():
            raise ConfigError("hook command must not be empty")
        if "\n" in command.strip():
            raise ConfigError("hook command must be a single line")
        path = self.path(phase)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(terminate(command) + "\n")
        index = len(self.entries(phase))
        logger.info("hook_added", phase=phase.value, index=index)
        return index

    def remove(self, phase: HookPhase, index: int) -> str:
        """Delete the command at 1-based ``index``; later entries renumber down."""
        commands = self.entries(phase)
        if not 1 <= index <= len(commands):
            raise ConfigError(
                f"no {phase.value} hook at index {index} "
                f"(have {len(commands)})"
            )
        removed = commands.pop(index - 1)
        body = "".join(f"{command}\n" for command in commands)
        self.path(phase).write_text(body, "utf-8")
        logger.info("hook_removed", phase=phase.value, index=index)
        return removed

    def script(self, phase: HookPhase) -> str | None:
        """The stored commands joined into one shell script, or None when there are none."""
        commands = self.entries(phase)
        if not commands:
            return None
        # One command per line so a "#" comment ends at its own line
        script = "\n".join(commands).rstrip()
        for joiner in ("&&", "||"):
            if script.endswith(joiner):
                script = script[: -len(joiner)].rstrip()
        return script
