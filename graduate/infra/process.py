"""Async subprocess helpers shared by hooks, directives and pushes."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger()

# Shell convention for "command not found".
MISSING_BINARY_EXIT = 127


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    merge_stderr: bool = True,
) -> ProcessResult:
    """Run ``command`` to completion, folding stderr into the output by default."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        logger.error("binary_missing", command=command[0], error=str(exc))
        return ProcessResult(MISSING_BINARY_EXIT, str(exc))
    stdout, _ = await proc.communicate()
    return ProcessResult(proc.returncode or 0, stdout.decode("utf-8", errors="replace"))


async def run_shell(script: str, *, cwd: Path | None = None) -> int:
    """Run ``script`` through ``/bin/sh``; output is inherited from the caller."""
    proc = await asyncio.create_subprocess_exec(
        "/bin/sh",
        "-c",
        script,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
    )
    return await proc.wait()
