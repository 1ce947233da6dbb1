"""
Kernel: the machinery of the contract engine.

- store: read-only access to descriptor files
- merger: sources/targets inheritance into one Manifest
- template: {{expr|filter}} substitution and conditions
- literal / parser: input line -> ParsedCommand
- types / validator: parameter normalization
- state: session key/value map and side effects
- registry: command name -> handler binding
- router: execution, side effects, chaining
- help: help text rendered from the manifest
- engine: the entry point front-ends share
"""
from .errors import (
    ChainDepthExceeded,
    ChainError,
    ContractError,
    DescriptorError,
    ExecutionError,
    HandlerNotFoundError,
    MissingDescriptorError,
    MissingParametersError,
    ParameterError,
    ParseError,
    PathEscapeError,
    UnknownCommandError,
    UnknownParameterError,
)
from .schema import (
    CommandSpec,
    CommandType,
    Contexts,
    ExecutionContext,
    Manifest,
    NextRule,
    ParamSpec,
    ParsedCommand,
    ParseResult,
    Result,
    ValidationResult,
)
from .store import DescriptorStore
from .merger import deep_merge, load_manifest
from .parser import CommandParser
from .validator import resolve_arguments, validate
from .state import SessionState
from .registry import HandlerRegistry, hydrate_handlers
from .router import DEFAULT_MAX_CHAIN_DEPTH, Router
from .engine import ContractEngine

__all__ = [
    # Errors
    "ContractError",
    "DescriptorError",
    "MissingDescriptorError",
    "PathEscapeError",
    "ParseError",
    "UnknownCommandError",
    "UnknownParameterError",
    "ParameterError",
    "MissingParametersError",
    "ExecutionError",
    "HandlerNotFoundError",
    "ChainError",
    "ChainDepthExceeded",
    # Schema
    "CommandSpec",
    "CommandType",
    "Contexts",
    "ExecutionContext",
    "Manifest",
    "NextRule",
    "ParamSpec",
    "ParsedCommand",
    "ParseResult",
    "Result",
    "ValidationResult",
    # Loading
    "DescriptorStore",
    "deep_merge",
    "load_manifest",
    # Processing
    "CommandParser",
    "validate",
    "resolve_arguments",
    "SessionState",
    "HandlerRegistry",
    "hydrate_handlers",
    "Router",
    "DEFAULT_MAX_CHAIN_DEPTH",
    # Engine
    "ContractEngine",
]
