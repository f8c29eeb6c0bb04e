from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from pydantic import ValidationError

from graduate.config.settings import Settings, get_settings
from graduate.constants import LOG_LEVELS
from graduate.coordinator.models import Decision, Directive, HookPhase
from graduate.infra.errors import GraduateError
from graduate.infra.logging import setup_logging
from graduate.peer.status import RemoteStatusStore
from graduate.service import GraduationService, read_public_key

logger = structlog.get_logger()

REMOTE_VERBS = ("clean", "start", "finish", "continue", "abort", "await", "status")
_UNIT_VERBS = {"continue", "abort", "await"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="graduate",
        description="Promote every application to an environment, all or nothing",
    )
    parser.add_argument(
        "--store",
        default=None,
        help="Path to the local staging store. Defaults to GRADUATE_STORE_ROOT or the cwd",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=LOG_LEVELS,
        help="Minimum log level (default: GRADUATE_LOG_LEVEL or INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Graduate all units to an environment")
    start_parser.add_argument("environment")

    add_env_parser = subparsers.add_parser("add-env", help="Register an environment")
    add_env_parser.add_argument("name")
    add_env_parser.add_argument("url", help="user@host of the deployment endpoint")

    rm_env_parser = subparsers.add_parser("rm-env", help="Remove an environment")
    rm_env_parser.add_argument("name")

    subparsers.add_parser("envs", help="List registered environments")

    add_hook_parser = subparsers.add_parser("add-hook", help="Append a PRE or POST hook command")
    add_hook_parser.add_argument("phase", type=_phase)
    add_hook_parser.add_argument("hook_command", metavar="command")

    rm_hook_parser = subparsers.add_parser("rm-hook", help="Remove a hook by its 1-based index")
    rm_hook_parser.add_argument("phase", type=_phase)
    rm_hook_parser.add_argument("index", type=int)

    hooks_parser = subparsers.add_parser("hooks", help="List PRE or POST hooks")
    hooks_parser.add_argument("phase", type=_phase)

    subparsers.add_parser("key", help="Show the SSH public key to authorize on remotes")

    remote_parser = subparsers.add_parser(
        "remote",
        help="Remote peer verbs; run on the deployment host",
    )
    remote_parser.add_argument("verb", choices=REMOTE_VERBS)
    remote_parser.add_argument("unit", nargs="?")
    return parser


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    settings: Settings | None = None,
    service: GraduationService | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        resolved_settings = settings or get_settings()
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 1
    if args.store:
        resolved_settings.store.root = Path(args.store)
    setup_logging(
        json_output=args.json_logs or resolved_settings.log.json_output,
        log_level=args.log_level or resolved_settings.log.level,
    )

    if args.command == "remote":
        if args.verb in _UNIT_VERBS and not args.unit:
            parser.error(f"remote {args.verb} requires a unit name")
        return asyncio.run(_remote(resolved_settings, args.verb, args.unit))

    resolved_service = service or GraduationService.from_settings(resolved_settings)
    try:
        if args.command == "start":
            report = asyncio.run(resolved_service.graduate(args.environment))
            for change in report.changes:
                print(f"  {change}")
            print(report.summary())
            return report.exit_code
        if args.command == "add-env":
            resolved_service.environments.add(args.name, args.url)
        elif args.command == "rm-env":
            resolved_service.environments.remove(args.name)
        elif args.command == "envs":
            for environment in resolved_service.environments.load():
                print(f"{environment.name}\t{environment.url}")
        elif args.command == "add-hook":
            index = resolved_service.hooks.add(args.phase, args.hook_command)
            print(f"{args.phase.value} hook {index} added")
        elif args.command == "rm-hook":
            resolved_service.hooks.remove(args.phase, args.index)
        elif args.command == "hooks":
            for index, command in enumerate(resolved_service.hooks.entries(args.phase), start=1):
                print(f"{index}\t{command}")
        elif args.command == "key":
            print(read_public_key(resolved_settings.public_key_paths))
        else:
            parser.error(f"unknown command: {args.command}")
    except GraduateError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


async def _remote(settings: Settings, verb: str, unit: str | None) -> int:
    status = RemoteStatusStore(settings.remote)
    if verb == "clean":
        status.clean()
    elif verb == "start":
        status.start()
    elif verb == "finish":
        status.finish()
    elif verb == "status":
        print(status.read() or "-")
    elif verb in ("continue", "abort"):
        assert unit is not None
        directive = Directive.continue_ if verb == "continue" else Directive.abort
        if not await status.release(unit, directive):
            return 1
    elif verb == "await":
        assert unit is not None
        decision = await status.wait_for_decision(
            unit,
            on_waiting=lambda: print(settings.transport.sentinel, flush=True),
        )
        logger.info("barrier_released", unit=unit, decision=decision.value if decision else None)
        return 0 if decision is Decision.commit else 1
    return 0


def _phase(value: str) -> HookPhase:
    try:
        return HookPhase.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    raise SystemExit(main())
