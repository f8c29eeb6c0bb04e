"""Push channel: transfer one unit's code and watch for its barrier sentinel."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from graduate.config.settings import TransportSettings
from graduate.constants import UP_TO_DATE_MARKER
from graduate.coordinator.models import Environment, PushOutcome, PushResult, Unit
from graduate.infra.errors import PushFailure
from graduate.infra.process import MISSING_BINARY_EXIT, run_command
from graduate.transport.stream import SentinelStream

logger = structlog.get_logger()


class PushChannel:
    """Push units from the store with git.

    Each unit is a subtree of the store; its ref is the result of
    ``git subtree split`` and it is pushed to ``<env url>:<unit name>``.
    A dry-run probe detects units that already match the remote.
    """

    def __init__(self, store_root: Path, settings: TransportSettings) -> None:
        self._root = store_root
        self._settings = settings

    @property
    def _target_ref(self) -> str:
        return f"refs/heads/{self._settings.branch}"

    async def split(self, unit: Unit) -> str | None:
        result = await run_command(
            [self._settings.git_bin, "subtree", "split", f"--prefix={unit.source}", "HEAD"],
            cwd=self._root,
            merge_stderr=False,
        )
        lines = [line.strip() for line in result.output.splitlines() if line.strip()]
        if not result.ok or not lines:
            logger.error("subtree_split_failed", unit=unit.name, output=result.output.strip())
            return None
        return lines[-1]

    async def is_up_to_date(self, unit: Unit, environment: Environment, sha: str) -> bool | None:
        """Dry-run probe. None means the probe itself failed."""
        result = await run_command(
            [
                self._settings.git_bin,
                "push",
                "--dry-run",
                environment.push_url(unit),
                f"{sha}:{self._target_ref}",
            ],
            cwd=self._root,
        )
        if not result.ok:
            logger.error("push_probe_failed", unit=unit.name, output=result.output.strip())
            return None
        return UP_TO_DATE_MARKER in result.output

    async def push(self, unit: Unit, environment: Environment) -> PushResult:
        log = logger.bind(unit=unit.name, environment=environment.name)
        sha = await self.split(unit)
        if sha is None:
            return PushResult(unit, PushOutcome.failed)
        up_to_date = await self.is_up_to_date(unit, environment, sha)
        if up_to_date is None:
            return PushResult(unit, PushOutcome.failed)
        if up_to_date:
            log.info("unit_up_to_date")
            return PushResult(unit, PushOutcome.up_to_date, returncode=0)

        command = [
            self._settings.git_bin,
            "push",
            environment.push_url(unit),
            f"{sha}:{self._target_ref}",
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=self._root,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as exc:
            log.error("binary_missing", command=command[0], error=str(exc))
            return PushResult(unit, PushOutcome.failed, returncode=MISSING_BINARY_EXIT)

        assert proc.stdout is not None
        stream = SentinelStream(
            proc.stdout,
            self._settings.sentinel,
            on_line=lambda line: log.info("push_output", line=line),
        )

        async def transfer() -> int:
            await stream.drain()
            return await proc.wait()

        task = asyncio.create_task(transfer(), name=f"push:{unit.name}")
        if await stream.wait():
            log.info("unit_waiting")
            return PushResult(unit, PushOutcome.streamed_until_sentinel, transfer=task)

        returncode = await task
        failure = PushFailure(unit.name, returncode)
        log.error("push_failed", error=str(failure), error_code=failure.code)
        return PushResult(unit, PushOutcome.failed, returncode=returncode)
