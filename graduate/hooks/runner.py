"""Run a hook phase as a single shell invocation."""

from __future__ import annotations

from pathlib import Path

import structlog

from graduate.coordinator.models import HookPhase
from graduate.hooks.store import HookStore
from graduate.infra.process import run_shell

logger = structlog.get_logger()


class HookRunner:
    def __init__(self, store: HookStore, cwd: Path) -> None:
        self._store = store
        self._cwd = cwd
        self.last_returncode: int | None = None

    async def run_phase(self, phase: HookPhase) -> bool:
        """True when the phase succeeded. No stored hooks counts as success."""
        script = self._store.script(phase)
        if script is None:
            logger.debug("hooks_skipped", phase=phase.value)
            self.last_returncode = 0
            return True
        logger.info("hooks_running", phase=phase.value)
        self.last_returncode = await run_shell(script, cwd=self._cwd)
        if self.last_returncode != 0:
            logger.error("hooks_failed", phase=phase.value, returncode=self.last_returncode)
            return False
        logger.info("hooks_passed", phase=phase.value)
        return True
