"""
Command-line front-end for a contract directory.

Usage:
    cmdc run 'train("corpus.txt", markov)' [--root path]
    cmdc repl                       # Interactive session with persistent state
    cmdc commands                   # List directly addressable commands
    cmdc manifest                   # Dump the merged manifest as JSON
    cmdc help [command]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable, List, Optional

from .config import EngineConfig
from .kernel.engine import ContractEngine
from .kernel.errors import ContractError
from .kernel.schema import Result

logger = logging.getLogger(__name__)


# =============================================================================
# Output
# =============================================================================

def format_output(output: Any) -> Optional[str]:
    if output is None:
        return None
    if isinstance(output, str):
        return output
    return json.dumps(output, indent=2, default=str)


def report(result: Result, emit: Callable[[str], None] = print) -> int:
    """Print a result; returns the process exit code."""
    if not result.ok:
        print(f"✗ {result.error_kind}: {result.error}", file=sys.stderr)
        return 1

    text = format_output(result.output)
    if text is not None:
        emit(text)
    return 0


# =============================================================================
# Commands
# =============================================================================

def build_engine(config: EngineConfig) -> ContractEngine:
    return ContractEngine.from_directory(config.root, max_chain_depth=config.max_chain_depth)


def cmd_run(engine: ContractEngine, args: argparse.Namespace) -> int:
    line = " ".join(args.line)
    return report(engine.execute(line, engine.new_state(), output_sink=print))


def cmd_repl(engine: ContractEngine, args: argparse.Namespace) -> int:
    """Read-eval-print loop; state persists across lines until exit or EOF."""
    state = engine.new_state()
    prompt = engine.manifest.prompt or "> "

    while True:
        try:
            line = input(prompt)
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line.strip():
            continue

        result = engine.execute(line, state, output_sink=print)
        report(result)
        if result.exit:
            break

    return 0


def cmd_commands(engine: ContractEngine, args: argparse.Namespace) -> int:
    specs = engine.list_commands(include_namespaced=args.all)
    print()
    print(f"  Commands ({len(specs)}):")
    for spec in specs:
        description = (spec.description or "")[:50]
        print(f"    {spec.name:30} {description}")
    print()
    return 0


def cmd_manifest(engine: ContractEngine, args: argparse.Namespace) -> int:
    print(engine.manifest.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    return 0


def cmd_help(engine: ContractEngine, args: argparse.Namespace) -> int:
    if args.name and engine.describe(args.name) is None:
        print(f"✗ unknown_command: Unknown command: {args.name}", file=sys.stderr)
        return 1
    print(engine.help(args.name))
    return 0


COMMANDS = {
    "run": cmd_run,
    "repl": cmd_repl,
    "commands": cmd_commands,
    "manifest": cmd_manifest,
    "help": cmd_help,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cmdc",
        description="Command contract engine - run declarative commands",
    )
    parser.add_argument("--root", help="Contract root directory (default: $CMDC_ROOT or cwd)")
    parser.add_argument("--log-level", help="Logging level (default: $CMDC_LOG_LEVEL or WARNING)")
    parser.add_argument("--max-chain-depth", type=int, help="Maximum number of chained commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute one command line")
    run_parser.add_argument("line", nargs="+", help="Command line, e.g. 'train(\"c.txt\")'")

    subparsers.add_parser("repl", help="Start an interactive session")

    commands_parser = subparsers.add_parser("commands", help="List available commands")
    commands_parser.add_argument(
        "--all", action="store_true", help="Include namespaced (target) commands"
    )

    subparsers.add_parser("manifest", help="Print the merged manifest")

    help_parser = subparsers.add_parser("help", help="Show help for all or one command")
    help_parser.add_argument("name", nargs="?", help="Command name")

    args = parser.parse_args(argv)

    try:
        config = EngineConfig.resolve(args.root, args.log_level, args.max_chain_depth)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        engine = build_engine(config)
    except ContractError as e:
        print(f"✗ {e.kind}: {e}", file=sys.stderr)
        return 1

    logger.debug("Loaded %d commands from %s", len(engine.manifest.commands), config.root)
    return COMMANDS[args.command](engine, args)


if __name__ == "__main__":
    sys.exit(main())
