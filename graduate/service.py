from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from graduate.config.settings import Settings
from graduate.coordinator.coordinator import (
    DirectiveSender,
    GraduationCoordinator,
    HookPhaseRunner,
    UnitPusher,
)
from graduate.coordinator.models import Environment, GraduationOutcome
from graduate.hooks.runner import HookRunner
from graduate.hooks.store import HookStore
from graduate.infra.errors import ConfigError, StoreError
from graduate.store.environments import EnvironmentRegistry
from graduate.store.repository import LocalStore
from graduate.transport.push import PushChannel
from graduate.transport.remote import RemotePeerController

logger = structlog.get_logger()


@dataclass(frozen=True)
class GraduationReport:
    environment: Environment
    changes: tuple[str, ...] = ()
    outcome: GraduationOutcome | None = None
    tag: str | None = None

    @property
    def exit_code(self) -> int:
        if self.outcome is None:
            return 0
        return self.outcome.exit_code

    def summary(self) -> str:
        if self.outcome is None:
            return f"nothing to graduate to {self.environment.name}"
        line = self.outcome.summary()
        if self.tag:
            line = f"{line} (tagged {self.tag})"
        return line


@dataclass
class GraduationService:
    settings: Settings
    store: LocalStore
    environments: EnvironmentRegistry
    hooks: HookStore
    remote: DirectiveSender
    pusher: UnitPusher
    hook_runner: HookPhaseRunner
    coordinator: GraduationCoordinator = field(init=False)

    def __post_init__(self) -> None:
        self.coordinator = GraduationCoordinator(
            hooks=self.hook_runner,
            remote=self.remote,
            pusher=self.pusher,
            transfer_timeout_s=self.settings.transport.transfer_timeout_s,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> GraduationService:
        root = settings.store.root.resolve()
        state_dir = root / settings.store.state_dirname
        hooks = HookStore(state_dir)
        return cls(
            settings=settings,
            store=LocalStore(
                root,
                apps_dir=settings.store.apps_dir,
                git_bin=settings.transport.git_bin,
            ),
            environments=EnvironmentRegistry(state_dir),
            hooks=hooks,
            remote=RemotePeerController(settings.transport),
            pusher=PushChannel(root, settings.transport),
            hook_runner=HookRunner(hooks, root),
        )

    async def graduate(self, name: str) -> GraduationReport:
        """Promote every unit to environment ``name`` as one all-or-nothing step.

        Fails before contacting the remote on an unknown environment, a dirty
        working tree, no units, or failing PRE hooks. Returns without remote
        contact when nothing changed since the last graduation to ``name``.
        """
        environment = self.environments.resolve(name)
        self.store.ensure_clean()

        last_tag = self.store.last_tag(environment)
        changes = tuple(self.store.changes_since(last_tag))
        if last_tag is not None and not changes:
            logger.info("nothing_to_graduate", environment=environment.name, since=last_tag)
            return GraduationReport(environment=environment)
        for change in changes:
            logger.info("pending_change", environment=environment.name, change=change)

        units = self.store.units()
        if not units:
            raise ConfigError(
                f"no units found under {self.store.apps_dir}/", code="NO_UNITS"
            )

        outcome = await self.coordinator.run(environment, units)
        tag = self.store.tag(environment) if outcome.committed else None
        return GraduationReport(
            environment=environment,
            changes=changes,
            outcome=outcome,
            tag=tag,
        )


def read_public_key(paths: tuple[Path, ...]) -> str:
    for path in paths:
        candidate = path.expanduser()
        if candidate.is_file():
            return candidate.read_text("utf-8").strip()
    searched = ", ".join(str(path) for path in paths)
    raise StoreError(f"no SSH public key found (searched {searched})", code="NO_PUBLIC_KEY")
