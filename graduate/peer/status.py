"""Remote peer state: the single status token and per-unit barrier markers.

Runs on the deployment host. Every directive overwrites the status token;
there is no history. A unit blocked at its barrier owns a marker file under
``waiting/`` until it consumes the directive addressed to it, which lets the
directive sender hold its session open until the waiter has seen the token.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Callable
from pathlib import Path

import structlog

from graduate.config.settings import RemoteSettings
from graduate.coordinator.models import Decision, Directive

logger = structlog.get_logger()

STATUS_CLEANING = "cleaning"
STATUS_DEPLOYING = "deploying"
STATUS_FINISHED = "finished"


def unit_token(unit: str, directive: Directive) -> str:
    return f"{unit}:{directive.value}"


class RemoteStatusStore:
    def __init__(self, settings: RemoteSettings) -> None:
        self._settings = settings
        self._dir = settings.resolved_state_dir

    @property
    def status_path(self) -> Path:
        return self._dir / "status"

    @property
    def waiting_dir(self) -> Path:
        return self._dir / "waiting"

    def read(self) -> str | None:
        if not self.status_path.exists():
            return None
        return self.status_path.read_text("utf-8").strip() or None

    def write(self, token: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = self.status_path.with_suffix(".tmp")
        tmp.write_text(token + "\n", "utf-8")
        os.replace(tmp, self.status_path)
        logger.debug("status_written", status=token)

    def is_waiting(self, unit: str) -> bool:
        return (self.waiting_dir / unit).exists()

    def clean(self) -> None:
        self.write(STATUS_CLEANING)
        if self.waiting_dir.is_dir():
            for marker in self.waiting_dir.iterdir():
                marker.unlink(missing_ok=True)

    def start(self) -> None:
        self.write(STATUS_DEPLOYING)

    def finish(self) -> None:
        self.write(STATUS_FINISHED)

    async def release(self, unit: str, directive: Directive) -> bool:
        """Write ``<unit>:<directive>``; if the unit is waiting, wait for it to acknowledge.

        Returns False when a waiting unit did not acknowledge within ``ack_timeout_s``.
        Units with no barrier (already up to date) acknowledge trivially.
        """
        if directive not in (Directive.continue_, Directive.abort):
            raise ValueError(f"{directive} does not release a unit")
        self.write(unit_token(unit, directive))
        deadline = time.monotonic() + self._settings.ack_timeout_s
        while self.is_waiting(unit):
            if time.monotonic() >= deadline:
                logger.warning("release_unacknowledged", unit=unit, directive=directive.value)
                return False
            await asyncio.sleep(self._settings.poll_interval_s)
        return True

    async def wait_for_decision(
        self,
        unit: str,
        *,
        on_waiting: Callable[[], None] | None = None,
    ) -> Decision | None:
        """Block at the barrier until this unit is told to continue or abort.

        ``on_waiting`` is called once the barrier marker exists, so a directive
        sent after it fires is always acknowledged. Returns None if
        ``await_timeout_s`` elapses or the run was cleaned or finished
        underneath the waiter.
        """
        self.waiting_dir.mkdir(parents=True, exist_ok=True)
        marker = self.waiting_dir / unit
        marker.write_text(str(os.getpid()), "utf-8")
        timeout = self._settings.await_timeout_s
        deadline = time.monotonic() + timeout if timeout else None
        tokens = {
            unit_token(unit, Directive.continue_): Decision.commit,
            unit_token(unit, Directive.abort): Decision.abort,
        }
        try:
            if on_waiting is not None:
                on_waiting()
            while True:
                status = self.read()
                if status in tokens:
                    return tokens[status]
                if status in (STATUS_CLEANING, STATUS_FINISHED) or not marker.exists():
                    logger.warning("barrier_abandoned", unit=unit, status=status)
                    return None
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("barrier_timeout", unit=unit)
                    return None
                await asyncio.sleep(self._settings.poll_interval_s)
        finally:
            marker.unlink(missing_ok=True)
