"""Help text rendered from the manifest."""

from __future__ import annotations

import json
from typing import Any, List

from .schema import CommandSpec, Manifest, ParamSpec

SYNTAX_SUMMARY = """Command Syntax:
  - Function style: command(param1, param2, key=value)
  - Object style: command({param1: value, key: value})
  - CLI style: command param1 param2 key=value
  - Simple style: command"""


def _value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def signature(spec: CommandSpec) -> str:
    """`train(file, modelType, [order])`"""
    required = spec.required_parameters()
    optional = [f"[{name}]" for name in spec.optional_parameters()]
    return f"{spec.name}({', '.join(required + optional)})"


def constraints(param: ParamSpec) -> str:
    parts: List[str] = []
    if param.enum:
        parts.append(f"one of: {', '.join(_value(option) for option in param.enum)}")
    if param.min is not None:
        parts.append(f"min: {param.min}")
    if param.max is not None:
        parts.append(f"max: {param.max}")
    if param.runtime_fallback:
        parts.append(f"falls back to state '{param.runtime_fallback}'")
    return f"[{'; '.join(parts)}]" if parts else ""


def _param_line(name: str, param: ParamSpec, optional: bool) -> str:
    head = f"{name}={param.type}" if optional else f"{name} ({param.type})"
    if optional and param.has_default:
        head += f" (default: {_value(param.default)})"
    extra = constraints(param)
    if extra:
        head += f" {extra}"
    if param.description:
        head += f" - {param.description}"
    return f"    {head}"


def format_command_help(spec: CommandSpec) -> str:
    lines = [f"{signature(spec)} - {spec.description or 'No description'}"]
    if spec.syntax:
        lines.append(f"  Syntax: {spec.syntax}")

    required = [(n, p) for n, p in spec.parameters.items() if p.required]
    optional = [(n, p) for n, p in spec.parameters.items() if not p.required]
    if required:
        lines.append("  Required:")
        lines.extend(_param_line(name, param, optional=False) for name, param in required)
    if optional:
        lines.append("  Options (key=value):")
        lines.extend(_param_line(name, param, optional=True) for name, param in optional)
    if spec.examples:
        lines.append("  Examples:")
        lines.extend(f"    {example}" for example in spec.examples)
    return "\n".join(lines)


def format_help(manifest: Manifest) -> str:
    """Overview of every directly addressable command."""
    title = manifest.name or "Application"
    if manifest.description:
        title += f" - {manifest.description}"

    lines = [title, "=" * len(title), "", "Available commands:"]
    for name in sorted(manifest.commands):
        spec = manifest.commands[name]
        if spec.namespaced:
            continue
        lines.append(f"  {signature(spec)} - {spec.description or 'No description'}")
    lines.extend(["", SYNTAX_SUMMARY])
    return "\n".join(lines)
