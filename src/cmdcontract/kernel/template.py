"""
Template and condition evaluation for side effects, chaining and transforms.

Templates substitute `{{expression}}` or `{{expression | filter}}`:

    {{output}}              a whole context
    {{input.file}}          dotted path into a context
    {{file}}                bare key, looked up in input, output, state,
                            original, previous (first hit wins)
    {{file | basename}}     "corpus.txt" -> "corpus"

A template consisting of exactly one expression yields the raw value
(numbers stay numbers, objects stay objects); otherwise values are
interpolated as text.

Conditions resolve their templates first and then apply one comparison
(==, !=, >=, <=, >, <), a `!` negation, or a plain truthiness check.
Anything that cannot be evaluated is false.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Mapping

from .errors import ContractError
from .literal import UNDEFINED, normalize_scalar

_EXPRESSION = re.compile(r"\{\{([^{}]+)\}\}")
_SINGLE_EXPRESSION = re.compile(r"^\s*\{\{([^{}]+)\}\}\s*$")

_BARE_KEY_CONTEXTS = ("input", "output", "state", "original", "previous")
_OPERATORS = ("==", "!=", ">=", "<=", ">", "<")


class TemplateError(ContractError):
    kind = "template_error"


def _basename(value: Any) -> str:
    return re.sub(r"\.[^/.]+$", "", str(value))


FILTERS: Dict[str, Callable[[Any], Any]] = {
    "basename": _basename,
    "json": lambda value: json.dumps(value),
    "lower": lambda value: str(value).lower(),
    "upper": lambda value: str(value).upper(),
}


def lookup(expression: str, contexts: Mapping[str, Any]) -> Any:
    """Resolve a dotted path against the contexts; None when absent."""
    segments = [segment.strip() for segment in expression.split(".")]
    head, rest = segments[0], segments[1:]

    if head in contexts:
        value = contexts[head]
    else:
        for name in _BARE_KEY_CONTEXTS:
            context = contexts.get(name)
            if isinstance(context, Mapping) and head in context:
                value = context[head]
                break
        else:
            return None

    for segment in rest:
        if isinstance(value, Mapping):
            value = value.get(segment)
        elif isinstance(value, list) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else None
        else:
            return None
    return value


def _evaluate(expression: str, contexts: Mapping[str, Any]) -> Any:
    path, *filters = [part.strip() for part in expression.split("|")]
    value = lookup(path, contexts)
    for name in filters:
        func = FILTERS.get(name)
        if func is None:
            raise TemplateError(f"Unknown template filter: {name}")
        if value is not None:
            value = func(value)
    return value


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def render(template: str, contexts: Mapping[str, Any]) -> Any:
    """Evaluate a template; a lone expression returns its raw value."""
    single = _SINGLE_EXPRESSION.match(template)
    if single:
        return _evaluate(single.group(1), contexts)
    return render_text(template, contexts)


def render_text(template: str, contexts: Mapping[str, Any]) -> str:
    """Evaluate a template, always producing text."""
    return _EXPRESSION.sub(lambda m: _as_text(_evaluate(m.group(1), contexts)), template)


def render_structure(value: Any, contexts: Mapping[str, Any]) -> Any:
    """Render every string inside nested dicts/lists."""
    if isinstance(value, dict):
        return {key: render_structure(item, contexts) for key, item in value.items()}
    if isinstance(value, list):
        return [render_structure(item, contexts) for item in value]
    if isinstance(value, str):
        return render(value, contexts)
    return value


def coerce_resolved(value: Any) -> Any:
    """Strings that parse as JSON become structured values."""
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def _operand(text: str) -> Any:
    value = normalize_scalar(text)
    return None if value is UNDEFINED else value


def _truthy(text: str) -> bool:
    return bool(_operand(text)) if text else False


def evaluate_condition(expression: str, contexts: Mapping[str, Any]) -> bool:
    """Evaluate a `when`/`clearStateIf` predicate. Errors count as false."""
    try:
        resolved = render_text(expression, contexts).strip()
    except TemplateError:
        return False

    operator = next((op for op in _OPERATORS if op in resolved), None)
    if operator is None:
        if resolved.startswith("!"):
            return not _truthy(resolved[1:].strip())
        return _truthy(resolved)

    left_text, right_text = (part.strip() for part in resolved.split(operator, 1))
    if not left_text or not right_text:
        return False

    left, right = _operand(left_text), _operand(right_text)
    try:
        if operator == "==":
            return left == right
        if operator == "!=":
            return left != right
        if operator == ">=":
            return left >= right
        if operator == "<=":
            return left <= right
        if operator == ">":
            return left > right
        return left < right
    except TypeError:
        return False

