"""
cmdcontract: declarative command contracts.

Public API re-exports from kernel/ (the machinery).
"""
from .kernel.errors import ContractError
from .kernel.schema import (
    CommandSpec,
    ExecutionContext,
    Manifest,
    ParamSpec,
    ParsedCommand,
    Result,
)
from .kernel.merger import load_manifest
from .kernel.parser import CommandParser
from .kernel.validator import validate
from .kernel.state import SessionState
from .kernel.registry import HandlerRegistry
from .kernel.router import Router
from .kernel.engine import ContractEngine

__all__ = [
    # Errors
    "ContractError",
    # Schema
    "CommandSpec",
    "ExecutionContext",
    "Manifest",
    "ParamSpec",
    "ParsedCommand",
    "Result",
    # Loading
    "load_manifest",
    # Processing
    "CommandParser",
    "validate",
    "SessionState",
    "HandlerRegistry",
    "Router",
    # Engine
    "ContractEngine",
]
