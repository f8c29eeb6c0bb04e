"""Environment registry: ``name=url`` records, one per line."""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from graduate.constants import ENVIRONMENTS_FILENAME
from graduate.coordinator.models import Environment
from graduate.infra.errors import ConfigError

logger = structlog.get_logger()

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_URL_RE = re.compile(r"^[^@\s:=]+@[^@\s:=]+$")


class EnvironmentRegistry:
    def __init__(self, state_dir: Path) -> None:
        self._path = state_dir / ENVIRONMENTS_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Environment]:
        if not self._path.exists():
            return []
        environments: list[Environment] = []
        for lineno, line in enumerate(self._path.read_text("utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            name, sep, url = line.partition("=")
            if not sep:
                raise ConfigError(f"{self._path}:{lineno}: expected name=url, got {line!r}")
            environments.append(Environment(name=name.strip(), url=url.strip()))
        return environments

    def resolve(self, name: str) -> Environment:
        for environment in self.load():
            if environment.name == name:
                return environment
        raise ConfigError(f"unknown environment: {name}", code="UNKNOWN_ENVIRONMENT")

    def add(self, name: str, url: str) -> Environment:
        name = name.strip()
        url = url.strip()
        if not _NAME_RE.match(name):
            raise ConfigError(f"invalid environment name: {name!r}")
        if not _URL_RE.match(url):
            raise ConfigError(f"environment url must look like user@host (got {url!r})")
        if any(environment.name == name for environment in self.load()):
            raise ConfigError(f"environment already registered: {name}")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}={url}\n")
        logger.info("environment_added", environment=name, url=url)
        return Environment(name=name, url=url)

    def remove(self, name: str) -> Environment:
        environments = self.load()
        kept = [environment for environment in environments if environment.name != name]
        if len(kept) == len(environments):
            raise ConfigError(f"unknown environment: {name}", code="UNKNOWN_ENVIRONMENT")
        body = "".join(f"{environment.name}={environment.url}\n" for environment in kept)
        self._path.write_text(body, "utf-8")
        logger.info("environment_removed", environment=name)
        return next(environment for environment in environments if environment.name == name)
