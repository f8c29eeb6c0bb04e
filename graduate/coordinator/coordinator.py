"""Graduation coordinator: the all-or-nothing barrier protocol.

Flow for one run:

    PRE hooks -> clean -> start -> push unit 0..N-1 -> POST hooks
        -> continue (or abort) unit k..0 -> finish

Each push either reports the unit already up to date, or streams until the
remote announces it is waiting at its barrier. The next unit is pushed as
soon as that happens, while the earlier transfer is still alive. Once every
unit is waiting (or a push fails, or the POST hooks fail) one decision is
delivered to every waiting unit in strictly decreasing index order.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from graduate.coordinator.models import (
    Decision,
    Directive,
    Environment,
    GraduationOutcome,
    GraduationRun,
    HookPhase,
    PushOutcome,
    PushResult,
    Unit,
)
from graduate.infra.errors import ConfigError, HookFailure

logger = structlog.get_logger()


class HookPhaseRunner(Protocol):
    last_returncode: int | None

    async def run_phase(self, phase: HookPhase) -> bool: ...


class DirectiveSender(Protocol):
    async def send(
        self,
        environment: Environment,
        directive: Directive,
        unit: Unit | None = None,
    ) -> int: ...


class UnitPusher(Protocol):
    async def push(self, unit: Unit, environment: Environment) -> PushResult: ...


class GraduationCoordinator:
    def __init__(
        self,
        *,
        hooks: HookPhaseRunner,
        remote: DirectiveSender,
        pusher: UnitPusher,
        transfer_timeout_s: float | None = None,
    ) -> None:
        self._hooks = hooks
        self._remote = remote
        self._pusher = pusher
        self._transfer_timeout_s = transfer_timeout_s

    async def run(
        self,
        environment: Environment,
        units: list[Unit] | tuple[Unit, ...],
    ) -> GraduationOutcome:
        """Graduate ``units`` to ``environment``.

        Raises HookFailure if the PRE hooks fail; nothing is sent to the remote
        in that case. Every other failure is folded into an abort outcome.
        """
        run = GraduationRun(environment=environment, units=tuple(units))
        if not run.units:
            raise ConfigError("no units to graduate", code="NO_UNITS")
        log = logger.bind(environment=environment.name)

        if not await self._hooks.run_phase(HookPhase.pre):
            raise HookFailure(HookPhase.pre.value, self._hooks.last_returncode)

        await self._remote.send(environment, Directive.clean)
        await self._remote.send(environment, Directive.start)
        log.info("graduation_started", units=[unit.name for unit in run.units])

        last_ready = await self._deploy(run)
        hook_failed = False
        if not run.aborting:
            if not await self._hooks.run_phase(HookPhase.post):
                hook_failed = True
                run.aborting = True

        directive = Directive.abort if run.aborting else Directive.continue_
        released, undelivered = await self._unwind(run, last_ready, directive)

        await self._remote.send(environment, Directive.finish)
        await self._settle_transfers(run)

        outcome = GraduationOutcome(
            decision=Decision.abort if run.aborting else Decision.commit,
            environment=environment,
            released=tuple(released),
            failed_unit=run.failed_unit.name if run.failed_unit else None,
            hook_failed=hook_failed,
            undelivered=tuple(undelivered),
        )
        log.info(
            "graduation_finished",
            decision=outcome.decision.value,
            released=list(outcome.released),
        )
        return outcome

    async def _deploy(self, run: GraduationRun) -> int:
        """Push units in order; returns the index of the last unit at its barrier."""
        while (unit := run.advance()) is not None:
            index = run.cursor
            logger.info("unit_pushing", unit=unit.name, index=index, total=len(run.units))
            try:
                result = await self._pusher.push(unit, run.environment)
            except Exception:
                logger.exception("unit_push_crashed", unit=unit.name)
                result = PushResult(unit, PushOutcome.failed)
            if result.outcome is PushOutcome.failed:
                run.failed_unit = unit
                run.aborting = True
                logger.error("unit_not_deployed", unit=unit.name, returncode=result.returncode)
                return index - 1
            run.deployed.append(result)
            logger.info("unit_ready", unit=unit.name, outcome=result.outcome.value)
        return len(run.units) - 1

    async def _unwind(
        self,
        run: GraduationRun,
        last: int,
        directive: Directive,
    ) -> tuple[list[str], list[str]]:
        if directive is Directive.abort:
            run.aborting = True
        released: list[str] = []
        undelivered: list[str] = []
        for index in range(last, -1, -1):
            unit = run.units[index]
            status = await self._remote.send(run.environment, directive, unit)
            released.append(unit.name)
            if status != 0:
                undelivered.append(unit.name)
        if directive is Directive.continue_:
            logger.info("all_units_committed", count=len(released))
        else:
            logger.warning("all_units_aborted", count=len(released))
        return released, undelivered

    async def _settle_transfers(self, run: GraduationRun) -> None:
        """Wait for released transfers to exit and report their exit codes."""
        transfers = run.pending_transfers()
        if not transfers:
            return
        done, pending = await asyncio.wait(transfers, timeout=self._transfer_timeout_s)
        for task in pending:
            logger.warning("transfer_still_running", task=task.get_name())
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                logger.error("transfer_errored", task=task.get_name(), error=str(exc))
                continue
            returncode = task.result()
            log = logger.info if returncode == 0 else logger.warning
            log("transfer_exited", task=task.get_name(), returncode=returncode)
