"""
Execution Router: Validate -> Execute -> ApplySideEffects -> MaybeChain.

A command's `next` map names follow-up commands. The first entry whose
`when` holds (or that has no `when`) is built by resolving its parameter
templates against the contexts of the link that just ran:

    "next": {
        "generate": {
            "when": "{{output.status}} == trained",
            "parameters": {"model": {"resolve": "{{input.file | basename}}"}}
        }
    }

The chain runs until a link selects no successor; the caller receives the
last link's result. Chains longer than `max_chain_depth` are stopped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .errors import (
    ChainDepthExceeded,
    ChainError,
    ContractError,
    ExecutionError,
    HandlerNotFoundError,
    UnknownCommandError,
)
from .registry import HandlerRegistry
from .schema import (
    CommandSpec,
    Contexts,
    ExecutionContext,
    Manifest,
    NextRule,
    ParsedCommand,
    Result,
)
from .state import SessionState
from .template import TemplateError, coerce_resolved, evaluate_condition, render
from .validator import resolve

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHAIN_DEPTH = 16


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _in_chain(message: str, chain_origin: Optional[str]) -> str:
    if chain_origin:
        return f"{message} (in chain started by '{chain_origin}')"
    return message


class Router:
    def __init__(
        self,
        manifest: Manifest,
        registry: HandlerRegistry,
        max_chain_depth: int = DEFAULT_MAX_CHAIN_DEPTH,
    ) -> None:
        self.manifest = manifest
        self.registry = registry
        self.max_chain_depth = max_chain_depth

    def run(
        self,
        command: ParsedCommand,
        state: SessionState,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> Result:
        """Run a command and its chain. Never raises ContractError."""
        try:
            return self._run_chain(command, state, output_sink)
        except ContractError as exc:
            logger.debug("Command '%s' failed: %s", command.name, exc)
            return Result.failure(str(exc), exc.kind)

    def _run_chain(
        self,
        command: ParsedCommand,
        state: SessionState,
        output_sink: Optional[Callable[[str], None]],
    ) -> Result:
        spec = self.manifest.find_command(command.name)
        if spec is None:
            raise UnknownCommandError(command.name)

        original_name = spec.name
        original_args: Dict[str, Any] = {}
        exit_requested = False
        depth = 0

        while True:
            args = resolve(command.args, spec.parameters, state)
            if depth == 0:
                original_args = args

            chain_origin = original_name if depth else None
            result = self._execute(spec, args, state, output_sink, chain_origin)
            if not result.ok:
                return result

            contexts = Contexts(
                input=args,
                output=result.output,
                state=state.snapshot(),
                original=original_args,
                previous=args,
                original_command=original_name,
                previous_command=spec.name,
            )
            if state.apply_side_effects(spec, args, contexts) or result.exit:
                exit_requested = True
            contexts.state = state.snapshot()

            next_command = self.next_command(spec, contexts)
            if next_command is None:
                output = result.output
                if spec.success_output:
                    output = self._render_output(spec, contexts)
                return Result(ok=True, output=output, exit=exit_requested)

            depth += 1
            if depth > self.max_chain_depth:
                raise ChainDepthExceeded(self.max_chain_depth, next_command.name)

            logger.debug("Chaining %s -> %s (depth %d)", spec.name, next_command.name, depth)
            spec = self._chain_target(next_command.name)
            command = next_command

    # --- Execute ---

    def _execute(
        self,
        spec: CommandSpec,
        args: Dict[str, Any],
        state: SessionState,
        output_sink: Optional[Callable[[str], None]],
        chain_origin: Optional[str],
    ) -> Result:
        try:
            handler = self.registry.resolve(spec.name)
        except HandlerNotFoundError as exc:
            raise HandlerNotFoundError(_in_chain(str(exc), chain_origin)) from exc

        ctx = ExecutionContext(
            command=spec.name, manifest=self.manifest, state=state, output_sink=output_sink
        )

        try:
            value = self._call(handler, spec, args, ctx)
        except Exception as exc:
            message = _in_chain(f"Command '{spec.name}' failed: {exc}", chain_origin)
            logger.debug("%s", message, exc_info=True)
            return Result.failure(message, ExecutionError.kind)

        return self._normalize(value)

    @staticmethod
    def _call(
        handler: Callable[..., Any], spec: CommandSpec, args: Dict[str, Any], ctx: ExecutionContext
    ) -> Any:
        try:
            wants_ctx = "ctx" in inspect.signature(handler).parameters
        except (TypeError, ValueError):
            wants_ctx = False

        extra = {"ctx": ctx} if wants_ctx else {}
        if spec.combine_arguments:
            value = handler(dict(args), **extra)
        else:
            value = handler(**extra, **args)

        if inspect.isawaitable(value):
            value = asyncio.run(_await(value))
        return value

    @staticmethod
    def _normalize(value: Any) -> Result:
        """A dict carrying `error`/`output` is a result; anything else is output."""
        if isinstance(value, Result):
            return value
        if isinstance(value, dict) and ("error" in value or "output" in value):
            if value.get("error"):
                return Result.failure(str(value["error"]), ExecutionError.kind)
            return Result(ok=True, output=value.get("output"), exit=bool(value.get("exit")))
        return Result(ok=True, output=value)

    @staticmethod
    def _render_output(spec: CommandSpec, contexts: Contexts) -> Any:
        try:
            return render(spec.success_output, contexts.as_mapping())
        except TemplateError as exc:
            raise ExecutionError(f"Invalid successOutput for '{spec.name}': {exc}") from exc

    # --- Chain ---

    def next_command(self, spec: CommandSpec, contexts: Contexts) -> Optional[ParsedCommand]:
        """Select and build the follow-up command, or None to end the chain."""
        if not spec.next:
            return None
        if not isinstance(spec.next, Mapping):
            raise ChainError(
                f"Failed to construct next command: 'next' of '{spec.name}' must be an object"
            )

        scope = contexts.as_mapping()
        try:
            for target, raw_rule in spec.next.items():
                rule = NextRule.model_validate(raw_rule)
                if rule.when and not evaluate_condition(rule.when, scope):
                    continue
                args = {
                    name: coerce_resolved(render(param.resolve, scope))
                    for name, param in rule.parameters.items()
                }
                return ParsedCommand(name=target, args=args)
        except (ValidationError, TemplateError) as exc:
            raise ChainError(f"Failed to construct next command: {exc}") from exc
        return None

    def _chain_target(self, name: str) -> CommandSpec:
        spec = self.manifest.commands.get(name) or self.manifest.find_command(name)
        if spec is None:
            raise ChainError(f"Unknown next command: {name}")
        return spec
