"""Value types shared by the coordinator and its collaborators."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePosixPath


class Directive(StrEnum):
    """Remote control verbs understood by the remote peer."""

    clean = "clean"
    start = "start"
    continue_ = "continue"
    abort = "abort"
    finish = "finish"

    @property
    def is_lifecycle(self) -> bool:
        return self in (Directive.clean, Directive.start, Directive.finish)


class PushOutcome(StrEnum):
    up_to_date = "up_to_date"
    streamed_until_sentinel = "streamed_until_sentinel"
    failed = "failed"


class HookPhase(StrEnum):
    pre = "PRE"
    post = "POST"

    @classmethod
    def parse(cls, value: str) -> HookPhase:
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"hook phase must be PRE or POST (got {value!r})") from None


class Decision(StrEnum):
    commit = "commit"
    abort = "abort"


@dataclass(frozen=True)
class Environment:
    """A named deployment target addressed as ``user@host``."""

    name: str
    url: str

    def push_url(self, unit: Unit) -> str:
        return f"{self.url}:{unit.name}"


@dataclass(frozen=True)
class Unit:
    """One application: identifier plus its location inside the store."""

    name: str
    source: PurePosixPath


@dataclass
class PushResult:
    unit: Unit
    outcome: PushOutcome
    returncode: int | None = None
    # Still-draining transfer; resolves to the push process exit code.
    transfer: asyncio.Task[int] | None = None


@dataclass
class GraduationRun:
    """In-memory state of one graduation. Never persisted.

    ``cursor`` stays within ``[-1, len(units)]``: -1 is before the first unit,
    ``len(units)`` means every unit has been traversed.
    """

    environment: Environment
    units: tuple[Unit, ...]
    cursor: int = -1
    aborting: bool = False
    deployed: list[PushResult] = field(default_factory=list)
    failed_unit: Unit | None = None

    def __post_init__(self) -> None:
        self.units = tuple(self.units)

    @property
    def traversed(self) -> bool:
        return self.cursor >= len(self.units)

    def advance(self) -> Unit | None:
        """Move the cursor forward; return the unit now under it, or None at the end."""
        if self.aborting:
            raise RuntimeError("cannot advance an aborting graduation")
        if self.traversed:
            raise RuntimeError("graduation already traversed every unit")
        self.cursor += 1
        if self.traversed:
            return None
        return self.units[self.cursor]

    def pending_transfers(self) -> list[asyncio.Task[int]]:
        return [r.transfer for r in self.deployed if r.transfer is not None]


@dataclass(frozen=True)
class GraduationOutcome:
    decision: Decision
    environment: Environment
    # Directives sent during the chain unwind, in send order.
    released: tuple[str, ...] = ()
    failed_unit: str | None = None
    hook_failed: bool = False
    undelivered: tuple[str, ...] = ()

    @property
    def committed(self) -> bool:
        return self.decision is Decision.commit

    @property
    def exit_code(self) -> int:
        return 0 if self.committed else 1

    def summary(self) -> str:
        if self.committed:
            return (
                f"graduated {len(self.released)} unit(s) to {self.environment.name}"
            )
        if self.failed_unit:
            reason = f"push of {self.failed_unit} failed"
        elif self.hook_failed:
            reason = "POST hooks failed"
        else:
            reason = "aborted"
        return (
            f"graduation to {self.environment.name} aborted: {reason}; "
            f"{len(self.released)} unit(s) rolled back"
        )
