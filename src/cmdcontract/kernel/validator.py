"""
Parameter Validator: turns raw arguments into normalized ones.

The raising functions (`normalize`, `resolve`) are what the parser and the
router build on; `validate` and `resolve_arguments` wrap them into
ValidationResult for callers that want a value instead of an exception.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .errors import (
    ContractError,
    MissingParametersError,
    ParameterError,
    UnknownParameterError,
)
from .schema import ParamSpec, ValidationResult
from .types import coerce


def canonical_name(key: str, parameters: Mapping[str, ParamSpec]) -> Optional[str]:
    """Declared parameter name for `key` (exact, then case-insensitive)."""
    if key in parameters:
        return key
    lowered = key.lower()
    for name in parameters:
        if name.lower() == lowered:
            return name
    return None


def check_value(name: str, value: Any, spec: ParamSpec) -> Any:
    """Coerce one present value and check its enum."""
    value = coerce(name, value, spec)
    if spec.enum is not None and value not in spec.enum:
        allowed = ", ".join(str(option) for option in spec.enum)
        raise ParameterError(f"Parameter {name} must be one of: {allowed}")
    return value


def normalize(args: Mapping[str, Any], parameters: Mapping[str, ParamSpec]) -> Dict[str, Any]:
    """
    Validate and normalize `args` against declared `parameters`.

    Raises UnknownParameterError, MissingParametersError or ParameterError.
    Optional parameters that are absent and have no default are left out.
    """
    provided: Dict[str, Any] = {}
    for key, value in args.items():
        name = canonical_name(key, parameters)
        if name is None:
            raise UnknownParameterError(key)
        provided[name] = value

    missing = [
        name for name, spec in parameters.items() if spec.required and name not in provided
    ]
    if missing:
        raise MissingParametersError(missing)

    result: Dict[str, Any] = {}
    for name, spec in parameters.items():
        if name in provided:
            value = provided[name]
            if value is None:
                if spec.required:
                    raise ParameterError(f"Parameter {name} must be of type: {spec.type}")
                result[name] = None
            else:
                result[name] = check_value(name, value, spec)
        elif spec.has_default:
            result[name] = None if spec.default is None else check_value(name, spec.default, spec)
    return result


def apply_fallbacks(
    args: Mapping[str, Any], parameters: Mapping[str, ParamSpec], state: Any
) -> Dict[str, Any]:
    """Fill absent parameters that declare `runtimeFallback` from session state."""
    filled = dict(args)
    present = {canonical_name(key, parameters) or key for key in filled}
    if state is None:
        return filled
    for name, spec in parameters.items():
        if name in present or not spec.runtime_fallback:
            continue
        value = state.get(spec.runtime_fallback)
        if value is not None:
            filled[name] = value
    return filled


def resolve(
    args: Mapping[str, Any], parameters: Mapping[str, ParamSpec], state: Any = None
) -> Dict[str, Any]:
    """Runtime fallbacks, then the aggregated missing check, then normalization."""
    return normalize(apply_fallbacks(args, parameters, state), parameters)


def _as_result(func, *call_args: Any) -> ValidationResult:
    try:
        return ValidationResult(args=func(*call_args))
    except ContractError as exc:
        return ValidationResult(error=str(exc), error_kind=exc.kind)


def validate(args: Mapping[str, Any], parameters: Mapping[str, ParamSpec]) -> ValidationResult:
    return _as_result(normalize, args, parameters)


def resolve_arguments(
    args: Mapping[str, Any], parameters: Mapping[str, ParamSpec], state: Any = None
) -> ValidationResult:
    return _as_result(resolve, args, parameters, state)


