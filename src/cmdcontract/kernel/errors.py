"""
Error taxonomy for the contract engine.

Every error carries a `kind` string. The public entry points (parse, validate,
run, execute) catch these and surface them as result objects with
`error_kind` set to that string; only manifest loading lets them escape.
"""

from __future__ import annotations

from typing import List


class ContractError(Exception):
    kind = "contract_error"


# --- Descriptor errors ---


class DescriptorError(ContractError):
    """A descriptor file could not be read or is malformed."""

    kind = "descriptor_error"


class MissingDescriptorError(DescriptorError):
    """The primary descriptor of the tree root is absent."""

    kind = "missing_descriptor"


class PathEscapeError(DescriptorError):
    """A declared path resolves outside the directory that declared it."""

    kind = "path_escape"


# --- Parse errors ---


class ParseError(ContractError):
    kind = "parse_error"


class UnknownCommandError(ParseError):
    kind = "unknown_command"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name}")
        self.name = name


class UnknownParameterError(ParseError):
    kind = "unknown_parameter"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown parameter: {name}")
        self.name = name


# --- Validation errors ---


class ParameterError(ContractError):
    """A value failed type, enum, range or blob constraint validation."""

    kind = "validation_error"


class MissingParametersError(ParameterError):
    kind = "missing_parameters"

    def __init__(self, names: List[str]) -> None:
        super().__init__(f"Missing required parameters: {', '.join(names)}")
        self.names = names


# --- Execution errors ---


class ExecutionError(ContractError):
    kind = "execution_error"


class HandlerNotFoundError(ExecutionError):
    kind = "handler_not_found"


# --- Chain errors ---


class ChainError(ContractError):
    kind = "chain_error"


class ChainDepthExceeded(ChainError):
    kind = "chain_depth_exceeded"

    def __init__(self, depth: int, command: str) -> None:
        super().__init__(
            f"Chain depth exceeded ({depth}) while resolving next command '{command}'"
        )
        self.depth = depth
        self.command = command
