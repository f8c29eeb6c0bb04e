"""Coordinator module: the graduation barrier protocol and its value types."""

from graduate.coordinator.coordinator import GraduationCoordinator
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

__all__ = [
    "Decision",
    "Directive",
    "Environment",
    "GraduationCoordinator",
    "GraduationOutcome",
    "GraduationRun",
    "HookPhase",
    "PushOutcome",
    "PushResult",
    "Unit",
]
