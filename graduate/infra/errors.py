"""Custom exception hierarchy for graduate.

All application-specific exceptions inherit from GraduateError,
which carries an error code for CLI reporting.
"""

from __future__ import annotations


class GraduateError(Exception):
    """Base exception for all graduate errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ConfigError(GraduateError):
    """Unknown or invalid environment, hook index or setting."""

    def __init__(self, message: str, *, code: str = "CONFIG_ERROR") -> None:
        super().__init__(message, code=code)


class StoreError(GraduateError):
    """Errors reading or writing the local staging store."""

    def __init__(self, message: str, *, code: str = "STORE_ERROR") -> None:
        super().__init__(message, code=code)


class HookFailure(GraduateError):
    """A PRE or POST hook script exited nonzero."""

    def __init__(self, phase: str, returncode: int | None = None) -> None:
        message = f"{phase} hooks failed"
        if returncode is not None:
            message = f"{message} (exit {returncode})"
        super().__init__(message, code="HOOK_FAILED")
        self.phase = phase
        self.returncode = returncode


class PushFailure(GraduateError):
    """A transfer exited without reaching its remote barrier."""

    def __init__(self, unit: str, returncode: int | None = None) -> None:
        super().__init__(f"push of {unit} failed (exit {returncode})", code="PUSH_FAILED")
        self.unit = unit
        self.returncode = returncode


class DirectiveFailure(GraduateError):
    """A remote directive could not be delivered or exited nonzero."""

    def __init__(self, directive: str, returncode: int, *, unit: str | None = None) -> None:
        target = f"{directive} {unit}" if unit else directive
        super().__init__(f"directive {target} failed (exit {returncode})", code="DIRECTIVE_FAILED")
        self.directive = directive
        self.returncode = returncode
        self.unit = unit
