"""
Runtime configuration for the front-ends.

Every setting resolves the same way:
1. Explicit value (CLI flag, function argument)
2. Environment variable
3. Default
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .kernel.router import DEFAULT_MAX_CHAIN_DEPTH

ROOT_ENV = "CMDC_ROOT"
LOG_LEVEL_ENV = "CMDC_LOG_LEVEL"
MAX_CHAIN_DEPTH_ENV = "CMDC_MAX_CHAIN_DEPTH"

DEFAULT_LOG_LEVEL = "WARNING"


def resolve_root(explicit: Optional[Union[str, Path]] = None) -> Path:
    """Descriptor root: flag, then CMDC_ROOT, then the current directory."""
    if explicit:
        return Path(explicit)

    env_root = os.environ.get(ROOT_ENV)
    if env_root:
        return Path(env_root)

    return Path.cwd()


def resolve_log_level(explicit: Optional[str] = None) -> int:
    name = (explicit or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def resolve_max_chain_depth(explicit: Optional[int] = None) -> int:
    if explicit is not None:
        depth = explicit
    else:
        env_depth = os.environ.get(MAX_CHAIN_DEPTH_ENV)
        if not env_depth:
            return DEFAULT_MAX_CHAIN_DEPTH
        try:
            depth = int(env_depth)
        except ValueError as exc:
            raise ValueError(f"{MAX_CHAIN_DEPTH_ENV} must be an integer, got: {env_depth}") from exc

    if depth < 0:
        raise ValueError(f"Maximum chain depth cannot be negative: {depth}")
    return depth


@dataclass
class EngineConfig:
    root: Path
    log_level: int = logging.WARNING
    max_chain_depth: int = DEFAULT_MAX_CHAIN_DEPTH

    @classmethod
    def resolve(
        cls,
        root: Optional[Union[str, Path]] = None,
        log_level: Optional[str] = None,
        max_chain_depth: Optional[int] = None,
    ) -> "EngineConfig":
        return cls(
            root=resolve_root(root),
            log_level=resolve_log_level(log_level),
            max_chain_depth=resolve_max_chain_depth(max_chain_depth),
        )
