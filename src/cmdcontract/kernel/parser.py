"""
Command Parser: one input line -> ParsedCommand with normalized args.

Grammars, tried in order:

    {"name": "train", "args": {"file": "c.txt"}}    JSON command object
    train({file: "c.txt", modelType: "markov"})     object style
    train("c.txt", markov, order=3)                 function style
    help                                            simple style
    train c.txt markov order=3                      CLI style

Positional tokens fill required parameters in declaration order. Whatever
the grammar, the extracted args then pass through runtime fallbacks, the
missing-required check and the validator.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    ContractError,
    ParameterError,
    ParseError,
    UnknownCommandError,
    UnknownParameterError,
)
from .literal import (
    UNDEFINED,
    LiteralSyntaxError,
    normalize_scalar,
    parse_literal,
    partition_assignment,
    split_top_level,
)
from .schema import CommandSpec, Manifest, ParamSpec, ParsedCommand, ParseResult
from .template import render_structure
from .validator import canonical_name, resolve

logger = logging.getLogger(__name__)

_NAME = r"[A-Za-z_][\w/-]*"
_CALL = re.compile(rf"^({_NAME})\s*\((.*)\)$", re.DOTALL)
_SIMPLE = re.compile(rf"^({_NAME})$")
_CLI = re.compile(rf"^({_NAME})\s+(.+)$", re.DOTALL)


class CommandParser:
    def __init__(self, manifest: Manifest, allow_namespaced: bool = False) -> None:
        self.manifest = manifest
        self.allow_namespaced = allow_namespaced

    def parse(self, line: str, state: Any = None) -> ParseResult:
        """Parse a line; failures come back as ParseResult.error."""
        try:
            return ParseResult(command=self.parse_command(line, state))
        except ContractError as exc:
            logger.debug("Parse failed for %r: %s", line, exc)
            return ParseResult(error=str(exc), error_kind=exc.kind)

    def parse_command(self, line: str, state: Any = None) -> ParsedCommand:
        """Parse a line, raising ContractError subclasses on failure."""
        spec, raw_args = self.extract(line)
        args = resolve(raw_args, spec.parameters, state)
        return ParsedCommand(name=spec.name, args=args)

    # --- Grammar dispatch ---

    def extract(self, line: str) -> Tuple[CommandSpec, Dict[str, Any]]:
        """Recognize the grammar and return the command with its raw args."""
        if not isinstance(line, str) or not line.strip():
            raise ParseError("Invalid input: must be a non-empty string")
        text = line.strip()

        command_object = self._json_command(text)
        if command_object is not None:
            return command_object

        match = _CALL.match(text)
        if match:
            spec = self.find(match.group(1))
            body = match.group(2).strip()
            if body.startswith("{"):
                return spec, self._object_args(body)
            scalar = self._transform_args(spec, body)
            if scalar is not None:
                return spec, scalar
            return spec, self._positional_args(spec, split_top_level(body))

        match = _SIMPLE.match(text)
        if match:
            return self.find(match.group(1)), {}

        match = _CLI.match(text)
        if match:
            spec = self.find(match.group(1))
            return spec, self._positional_args(spec, split_top_level(match.group(2), " "))

        raise ParseError(f"Could not parse command: {line}")

    def find(self, name: str) -> CommandSpec:
        spec = self.manifest.find_command(name)
        if spec is None or (spec.namespaced and not self.allow_namespaced):
            raise UnknownCommandError(name)
        return spec

    # --- Grammars ---

    def _json_command(self, text: str) -> Optional[Tuple[CommandSpec, Dict[str, Any]]]:
        if not text.startswith("{"):
            return None
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            return None
        args = data.get("args") or {}
        if not isinstance(args, dict):
            raise ParseError(f"Expected an object for args of {data['name']}")
        return self.find(data["name"]), args

    @staticmethod
    def _object_args(body: str) -> Dict[str, Any]:
        try:
            args = json.loads(body)
        except ValueError:
            try:
                args = parse_literal(body)
            except LiteralSyntaxError as exc:
                raise ParseError(f"Invalid object syntax: {body} ({exc})") from exc
        if not isinstance(args, dict):
            raise ParseError(f"Invalid object syntax: {body}")
        return args

    @staticmethod
    def _transform_args(spec: CommandSpec, body: str) -> Optional[Dict[str, Any]]:
        """`name(42)` for a command with exactly one required transform parameter."""
        targets = [
            (name, param)
            for name, param in spec.parameters.items()
            if param.required and param.transform is not None
        ]
        if len(targets) != 1 or not body:
            return None
        if len(split_top_level(body)) != 1 or partition_assignment(body)[0]:
            return None

        name, param = targets[0]
        value = _transform_scalar(name, normalize_scalar(body), param)
        rule = param.transform
        template = rule.then if isinstance(value, int) else rule.else_
        if template is None:
            return {name: value}
        if isinstance(template, str):
            return {template: value}
        args = render_structure(template, {"value": value})
        if not isinstance(args, dict):
            raise ParseError(f"Transform for {name} must produce an object")
        return args

    @staticmethod
    def _positional_args(spec: CommandSpec, tokens: List[str]) -> Dict[str, Any]:
        required = spec.required_parameters()
        args: Dict[str, Any] = {}
        position = 0

        for token in tokens:
            key, raw = partition_assignment(token)
            if key:
                if not raw:
                    raise ParseError(f"Invalid named parameter: {token}")
                name = canonical_name(key, spec.parameters)
                if name is None:
                    raise UnknownParameterError(key)
                value = _token_value(raw)
                if value is not UNDEFINED:
                    args[name] = value
                continue

            if position >= len(required):
                raise ParseError(
                    f"Unexpected positional parameter: {token}. "
                    "All required parameters already provided."
                )
            value = _token_value(token)
            if value is not UNDEFINED:
                args[required[position]] = value
            position += 1

        return args


def _token_value(token: str) -> Any:
    """Bracketed tokens are literals; everything else is a scalar."""
    if token[:1] in ("{", "["):
        try:
            return parse_literal(token)
        except LiteralSyntaxError as exc:
            raise ParseError(f"Invalid literal: {token} ({exc})") from exc
    return normalize_scalar(token)


def _transform_scalar(name: str, value: Any, param: ParamSpec) -> Any:
    types = param.type_names
    if "integer" in types and isinstance(value, int) and not isinstance(value, bool):
        return value
    if "integer" in types and isinstance(value, str) and re.fullmatch(r"[+-]?\d+", value):
        return int(value)
    if "string" in types and value is not UNDEFINED and value is not None:
        return value if isinstance(value, str) else json.dumps(value)
    raise ParameterError(f"Parameter {name} must be of type: {param.type}")
