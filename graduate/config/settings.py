from __future__ import annotations

import re
from pathlib import Path
from typing import Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from graduate.constants import DEFAULT_SENTINEL, LOG_LEVELS, STATE_DIRNAME

# Load .env once at import so every settings group sees the same environment
load_dotenv()

_BRANCH_RE = re.compile(r"^[A-Za-z0-9._/-]+$")


class StoreSettings(BaseSettings):
    """Local staging store layout. Env vars prefixed with GRADUATE_STORE_."""

    model_config = SettingsConfigDict(env_prefix="GRADUATE_STORE_")

    root: Path = Path(".")
    apps_dir: str = "apps"
    state_dirname: str = STATE_DIRNAME

    @field_validator("apps_dir")
    @classmethod
    def _validate_apps_dir(cls, v: str) -> str:
        stripped = v.strip().strip("/")
        if not stripped or ".." in Path(stripped).parts:
            raise ValueError(
                f"GRADUATE_STORE_APPS_DIR must be a relative path inside the store (got '{v}')"
            )
        return stripped

    @property
    def state_dir(self) -> Path:
        return self.root / self.state_dirname


class TransportSettings(BaseSettings):
    """Binaries and wire conventions for pushes and directives."""

    model_config = SettingsConfigDict(env_prefix="GRADUATE_TRANSPORT_")

    git_bin: str = "git"
    ssh_bin: str = "ssh"
    ssh_options: str = "-o BatchMode=yes"
    remote_command: str = "graduate remote"
    branch: str = "master"
    sentinel: str = DEFAULT_SENTINEL
    # How long to wait for released pushes to exit after the decision is sent.
    transfer_timeout_s: float = Field(300.0, gt=0)

    @field_validator("branch")
    @classmethod
    def _validate_branch(cls, v: str) -> str:
        if not _BRANCH_RE.match(v):
            raise ValueError(f"GRADUATE_TRANSPORT_BRANCH is not a valid ref name (got '{v}')")
        return v

    @field_validator("sentinel", "remote_command")
    @classmethod
    def _validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sentinel and remote_command must not be blank")
        return v


class RemoteSettings(BaseSettings):
    """Remote peer settings, read on the deployment host. Prefix GRADUATE_REMOTE_."""

    model_config = SettingsConfigDict(env_prefix="GRADUATE_REMOTE_")

    state_dir: Path = Path("~/.graduate")
    poll_interval_s: float = Field(0.5, gt=0)
    ack_timeout_s: float = Field(30.0, gt=0)
    # 0 = wait forever for a directive
    await_timeout_s: float = Field(0.0, ge=0)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.poll_interval_s > self.ack_timeout_s:
            raise ValueError(
                f"poll_interval_s ({self.poll_interval_s}) must not exceed "
                f"ack_timeout_s ({self.ack_timeout_s})"
            )
        return self

    @property
    def resolved_state_dir(self) -> Path:
        return self.state_dir.expanduser()


class LogSettings(BaseSettings):
    """Logging settings. Env vars prefixed with GRADUATE_LOG_."""

    model_config = SettingsConfigDict(env_prefix="GRADUATE_LOG_")

    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        allowed = set(LOG_LEVELS)
        normalized = v.strip().upper()
        if normalized not in allowed:
            raise ValueError(f"GRADUATE_LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')")
        return normalized


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    store: StoreSettings = Field(default_factory=StoreSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    public_key_paths: tuple[Path, ...] = (
        Path("~/.ssh/id_ed25519.pub"),
        Path("~/.ssh/id_rsa.pub"),
    )


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
