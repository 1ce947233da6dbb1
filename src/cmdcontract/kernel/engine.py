"""
ContractEngine: the single entry point shared by every front-end.

Architecture:
    REPL ───┐
    CLI  ───┼──> ContractEngine.execute(line, state) ──> parse ──> Router.run
    HTTP ───┘

The engine owns the frozen Manifest and the HandlerRegistry and is built
once per process. SessionState is not owned: each caller passes the state
of its own session, so one engine can serve many sessions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .help import format_command_help, format_help
from .merger import load_manifest
from .parser import CommandParser
from .registry import HandlerFn, HandlerRegistry, hydrate_handlers
from .router import DEFAULT_MAX_CHAIN_DEPTH, Router
from .schema import CommandSpec, Manifest, ParsedCommand, ParseResult, Result
from .state import SessionState


class ContractEngine:
    """
    Example:
        engine = ContractEngine.from_directory("path/to/contract")
        state = engine.new_state()
        result = engine.execute('train("corpus.txt", markov)', state)
    """

    def __init__(
        self,
        manifest: Manifest,
        handlers: Optional[Mapping[str, HandlerFn]] = None,
        max_chain_depth: int = DEFAULT_MAX_CHAIN_DEPTH,
        allow_namespaced: bool = False,
    ) -> None:
        self.manifest = manifest
        self.registry = HandlerRegistry()
        for name, handler in (handlers or {}).items():
            self.registry.register(name, handler)
        hydrate_handlers(manifest, self.registry)

        self.parser = CommandParser(manifest, allow_namespaced=allow_namespaced)
        self.router = Router(manifest, self.registry, max_chain_depth=max_chain_depth)

    @classmethod
    def from_directory(cls, root: Union[str, Path], **kwargs: Any) -> "ContractEngine":
        """Load and merge the descriptor tree at `root`. Descriptor errors propagate."""
        return cls(load_manifest(root), **kwargs)

    @property
    def max_chain_depth(self) -> int:
        return self.router.max_chain_depth

    def register(self, name: str, handler: HandlerFn) -> None:
        """Bind (or rebind) a handler explicitly."""
        self.registry.register(name, handler)

    def new_state(self, overrides: Optional[Mapping[str, Any]] = None) -> SessionState:
        return SessionState.from_manifest(self.manifest, overrides)

    def parse(self, line: str, state: Optional[SessionState] = None) -> ParseResult:
        return self.parser.parse(line, state)

    def run(
        self,
        command: ParsedCommand,
        state: SessionState,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> Result:
        return self.router.run(command, state, output_sink)

    def execute(
        self,
        line: str,
        state: Optional[SessionState] = None,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> Result:
        """
        Parse and run one input line.

        Without a state a throwaway session seeded from the defaults is used.
        Every failure is returned as a Result, never raised.
        """
        if state is None:
            state = self.new_state()

        parsed = self.parse(line, state)
        if not parsed.ok:
            return Result.failure(parsed.error, parsed.error_kind)
        return self.run(parsed.command, state, output_sink)

    def list_commands(self, include_namespaced: bool = False) -> List[CommandSpec]:
        """Commands sorted by name; target commands only on request."""
        return [
            spec
            for name, spec in sorted(self.manifest.commands.items())
            if include_namespaced or not spec.namespaced
        ]

    def describe(self, name: str) -> Optional[CommandSpec]:
        return self.manifest.find_command(name)

    def help(self, name: Optional[str] = None) -> str:
        if name is None:
            return format_help(self.manifest)
        spec = self.describe(name)
        if spec is None:
            return f"Unknown command: {name}"
        return format_command_help(spec)

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.manifest.name,
            "version": self.manifest.version,
            "description": self.manifest.description,
            "root": self.manifest.root,
            "commands": sorted(self.manifest.commands),
            "stateDefaults": self.manifest.state_defaults,
        }
