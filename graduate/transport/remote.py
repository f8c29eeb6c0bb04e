"""Remote peer controller: one directive per ssh session."""

from __future__ import annotations

import shlex
from collections.abc import Sequence

import structlog

from graduate.config.settings import TransportSettings
from graduate.coordinator.models import Directive, Environment, Unit
from graduate.infra.errors import DirectiveFailure
from graduate.infra.process import run_command

logger = structlog.get_logger()


class RemotePeerController:
    """Issue named control directives to a single environment endpoint.

    Each ``send`` opens one session, runs exactly one directive and returns
    its exit status. There are no retries and no read-back of remote state.
    Lifecycle directives (clean/start/finish) are best-effort: failures are
    logged as warnings. Per-unit directives log failures as errors; callers
    still carry on with the chain so local and remote state do not drift
    further apart.
    """

    def __init__(self, settings: TransportSettings) -> None:
        self._settings = settings

    def build_command(
        self,
        environment: Environment,
        directive: Directive,
        unit: Unit | None = None,
    ) -> list[str]:
        remote = [*shlex.split(self._settings.remote_command), directive.value]
        if unit is not None:
            remote.append(unit.name)
        return [
            self._settings.ssh_bin,
            *shlex.split(self._settings.ssh_options),
            environment.url,
            shlex.join(remote),
        ]

    async def send(
        self,
        environment: Environment,
        directive: Directive,
        unit: Unit | None = None,
    ) -> int:
        if directive.is_lifecycle and unit is not None:
            raise ValueError(f"{directive} does not target a unit")
        if not directive.is_lifecycle and unit is None:
            raise ValueError(f"{directive} requires a unit")

        command = self.build_command(environment, directive, unit)
        result = await run_command(command)
        if result.ok:
            logger.info(
                "directive_sent",
                environment=environment.name,
                directive=directive.value,
                unit=unit.name if unit else None,
            )
            return 0

        failure = DirectiveFailure(
            directive.value, result.returncode, unit=unit.name if unit else None
        )
        log = logger.warning if directive.is_lifecycle else logger.error
        log(
            "directive_failed",
            environment=environment.name,
            error=str(failure),
            error_code=failure.code,
            output=_tail(result.output.splitlines()),
        )
        return result.returncode


def _tail(lines: Sequence[str], limit: int = 5) -> str:
    return "\n".join(lines[-limit:])
