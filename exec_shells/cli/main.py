import argparse
import asyncio
import logging
import shlex
import sys
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from ..config import load_config
from ..errors import ExecConfigError
from ..hooks import ExecLifecycleHooks
from ..manager import ExecManager
from ..record import BufferRoute, ColorPolicy, DisplayRoute, EventRoute, PipeRoute
from ..surfaces import ConsoleSurface, SurfaceDirectory

console = Console(highlight=False)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))],
    )

def _parse_env_kv(pairs: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in pairs or []:
        if "=" not in item:
            raise ValueError(f"Invalid --env value {item!r} (expected KEY=VALUE)")
        k, v = item.split("=", 1)
        k = k.strip()
        if not k:
            raise ValueError(f"Invalid --env value {item!r} (empty KEY)")
        out[k] = v
    return out

def _route_from_args(args):
    if args.hsignal:
        return EventRoute(args.hsignal)
    if args.pipe:
        return PipeRoute(args.pipe)
    if args.output_to_buffer:
        return BufferRoute()
    return DisplayRoute()

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="exec-shells", description="Run external commands through the exec pipeline")
    parser.add_argument("--config", default=None, help="Path to exec.yaml (default: $EXEC_SHELLS_CONFIG or ~/.config/exec_shells/exec.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # exec-shells run -- <command...>
    run_parser = subparsers.add_parser("run", help="Run a command and display its output")
    run_parser.add_argument("--name", default=None, help="Name for the command")
    route = run_parser.add_mutually_exclusive_group()
    route.add_argument("--pipe", default=None, metavar="TEMPLATE", help="Send each output line as a command ($line is replaced by the line)")
    route.add_argument("--hsignal", default=None, metavar="NAME", help="Publish output as an event instead of displaying it")
    route.add_argument("-o", "--output-to-buffer", action="store_true", help="Send output as text to the surface")
    run_parser.add_argument("-n", "--line-numbers", action="store_true", help="Number output lines")
    run_parser.add_argument("--color", choices=[p.value for p in ColorPolicy], default=None, help="Color handling (default from config)")
    run_parser.add_argument("--no-rc", action="store_true", help="Do not display the return code")
    run_parser.add_argument("--no-shell", action="store_true", help="Split the command instead of running it through the shell")
    run_parser.add_argument("--timeout", type=float, default=None, help="Kill the command after this many seconds")
    run_parser.add_argument("--cwd", default=None, help="Working directory")
    run_parser.add_argument("--env", action="append", default=None, help="Environment override KEY=VALUE (repeatable)")
    run_parser.add_argument("cmd", nargs=argparse.REMAINDER, help="Command to run (prefix with --)")
    return parser

def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.verbose)

    try:
        code = asyncio.run(run_async(args))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)

async def run_async(args) -> int:
    try:
        config = load_config(args.config)
    except ExecConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        return 2

    cmd = list(args.cmd or [])
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]
    if not cmd:
        raise SystemExit("exec-shells run requires a command. Example: exec-shells run -n -- ls -l")
    env = _parse_env_kv(args.env)

    finished = asyncio.Event()
    hooks = ExecLifecycleHooks(on_command_finished=lambda record: finished.set())
    surfaces = SurfaceDirectory(ConsoleSurface(console=console))
    manager = ExecManager(config=config, surfaces=surfaces, hooks=hooks, debug=2 if args.verbose else 0)

    if args.hsignal:
        events = manager.events.subscribe()

    record = await manager.run(
        shlex.join(cmd),
        name=args.name,
        route=_route_from_args(args),
        buffer_full_name=surfaces.core.full_name,
        line_numbers=args.line_numbers,
        display_rc=False if args.no_rc else None,
        color=ColorPolicy.search(args.color),
        use_shell=not args.no_shell,
        timeout=args.timeout,
        cwd=args.cwd,
        env=env,
    )
    try:
        await finished.wait()
        if args.hsignal:
            while not events.empty():
                event = events.get_nowait()
                if event.channel == args.hsignal:
                    console.print_json(data=event.to_dict())
        return record.return_code if record.return_code >= 0 else 1
    finally:
        manager.shutdown()

if __name__ == "__main__":
    main()
