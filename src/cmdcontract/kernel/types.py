"""
Parameter type handlers.

Each handler answers two questions about a raw value: does this type claim
it (`accepts`), and what is its normalized form (`validate`). Unions are
resolved by asking the declared members in TYPE_PRECEDENCE order, so a
token like "42" reaches `integer` before `string` can claim it.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ParameterError
from .schema import TYPE_PRECEDENCE, ParamSpec

_INTEGER = re.compile(r"[+-]?\d+")
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_BASE64 = re.compile(r"[A-Za-z0-9+/]+={0,2}")
_HEX = re.compile(r"(?:[0-9A-Fa-f]{2})+")
_DATA_URL = re.compile(r"data:([^;,]+);base64,(.*)", re.DOTALL)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _decode_base64(text: str) -> Optional[bytes]:
    if not text or len(text) % 4 or not _BASE64.fullmatch(text):
        return None
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error:
        return None


def _json_value(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _check_range(name: str, value: Any, spec: ParamSpec) -> Any:
    if spec.min is not None and value < spec.min:
        raise ParameterError(f"Parameter {name} must be at least {spec.min}, got: {value}")
    if spec.max is not None and value > spec.max:
        raise ParameterError(f"Parameter {name} must be at most {spec.max}, got: {value}")
    return value


class TypeHandler:
    name = ""

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        raise NotImplementedError

    def validate(self, name: str, value: Any, spec: ParamSpec) -> Any:
        raise NotImplementedError


class BlobType(TypeHandler):
    """Binary or file-like input: data URL, bare base64, or a filesystem path."""

    name = "blob"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        return isinstance(value, (str, bytes, bytearray, list, dict))

    def validate(self, name: str, value: Any, spec: ParamSpec) -> Dict[str, Any]:
        blob = self.normalize(name, value)
        constraints = spec.constraints
        if constraints is None:
            return blob

        size = blob.get("size")
        if constraints.max_size is not None and size is not None and size > constraints.max_size:
            raise ParameterError(
                f"Parameter {name} exceeds maximum size: {size} > {constraints.max_size}"
            )

        mime_type = blob.get("mimeType")
        if constraints.allowed_types and mime_type and mime_type not in constraints.allowed_types:
            raise ParameterError(
                f"Parameter {name} type '{mime_type}' not allowed. "
                f"Allowed: {', '.join(constraints.allowed_types)}"
            )

        filename = blob.get("name")
        if constraints.allowed_extensions and filename:
            allowed = [ext.lstrip(".").lower() for ext in constraints.allowed_extensions]
            ext = Path(filename).suffix.lstrip(".").lower()
            if ext not in allowed:
                raise ParameterError(
                    f"Parameter {name} extension '.{ext}' not allowed. "
                    f"Allowed: {', '.join('.' + e for e in allowed)}"
                )

        return blob

    def normalize(self, name: str, value: Any) -> Dict[str, Any]:
        if isinstance(value, str):
            match = _DATA_URL.fullmatch(value)
            if match:
                data = _decode_base64(match.group(2))
                if data is None:
                    raise ParameterError(f"Parameter {name} has invalid base64 data in data URL")
                return {
                    "type": "blob",
                    "mimeType": match.group(1),
                    "data": data,
                    "encoding": "base64",
                    "size": len(data),
                }

            data = _decode_base64(value)
            if data is not None:
                return {"type": "blob", "data": data, "encoding": "base64", "size": len(data)}

            record: Dict[str, Any] = {"type": "filepath", "path": value, "name": Path(value).name}
            try:
                if Path(value).is_file():
                    record["size"] = Path(value).stat().st_size
            except OSError:
                # Text too long to be a path: no size.
                pass
            return record

        if isinstance(value, (bytes, bytearray, list)):
            data = _to_bytes(name, value)
            return {"type": "blob", "data": data, "encoding": "binary", "size": len(data)}

        normalized = dict(value)
        raw = normalized.get("data")
        if isinstance(raw, str):
            encoding = normalized.get("encoding") or "utf8"
            if encoding == "base64":
                data = _decode_base64(raw) if raw else b""
                if data is None:
                    raise ParameterError(f"Parameter {name} has invalid base64 data")
                normalized["data"] = data
            else:
                normalized["data"] = raw.encode("utf-8")
        elif raw is not None:
            normalized["data"] = _to_bytes(name, raw)
        if normalized.get("data") is not None and normalized.get("size") is None:
            normalized["size"] = len(normalized["data"])
        if not normalized.get("name") and normalized.get("path"):
            normalized["name"] = Path(str(normalized["path"])).name
        normalized.setdefault("type", "blob")
        return normalized


def _to_bytes(name: str, value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, dict) and value.get("type") == "Buffer":
        value = value.get("data")
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as exc:
            raise ParameterError(f"Parameter {name} is not a byte sequence: {exc}") from exc
    raise ParameterError(f"Parameter {name} cannot be converted to bytes")


class BufferType(TypeHandler):
    name = "buffer"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, (bytes, bytearray, str)):
            return True
        if isinstance(value, list):
            return all(isinstance(item, int) and not isinstance(item, bool) for item in value)
        return isinstance(value, dict) and value.get("type") == "Buffer"

    def validate(self, name: str, value: Any, spec: ParamSpec) -> bytes:
        if isinstance(value, str):
            data = _decode_base64(value)
            if data is None:
                data = bytes.fromhex(value) if _HEX.fullmatch(value) else value.encode("utf-8")
        else:
            data = _to_bytes(name, value)

        if spec.max_size is not None and len(data) > spec.max_size:
            raise ParameterError(
                f"Parameter {name} exceeds maximum size: {len(data)} > {spec.max_size}"
            )
        if spec.min_size is not None and len(data) < spec.min_size:
            raise ParameterError(
                f"Parameter {name} is below minimum size: {len(data)} < {spec.min_size}"
            )
        return data


class IntegerType(TypeHandler):
    name = "integer"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        if isinstance(value, float):
            return value.is_integer()
        return isinstance(value, str) and bool(_INTEGER.fullmatch(value.strip()))

    def validate(self, name: str, value: Any, spec: ParamSpec) -> int:
        return _check_range(name, int(value.strip() if isinstance(value, str) else value), spec)


class NumberType(TypeHandler):
    name = "number"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if _is_number(value):
            return True
        return isinstance(value, str) and bool(_NUMBER.fullmatch(value.strip()))

    def validate(self, name: str, value: Any, spec: ParamSpec) -> Any:
        if isinstance(value, str):
            text = value.strip()
            value = int(text) if _INTEGER.fullmatch(text) else float(text)
        return _check_range(name, value, spec)


class BooleanType(TypeHandler):
    name = "boolean"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, bool):
            return True
        return isinstance(value, str) and value.strip().lower() in ("true", "false")

    def validate(self, name: str, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, bool):
            return value
        return value.strip().lower() == "true"


class ArrayType(TypeHandler):
    name = "array"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, (list, tuple)):
            return True
        if not isinstance(value, str):
            return False
        if isinstance(_json_value(value), list):
            return True
        # Comma lists only when nothing else in the union could want the text.
        return spec.type_names == ["array"]

    def validate(self, name: str, value: Any, spec: ParamSpec) -> List[Any]:
        if isinstance(value, (list, tuple)):
            return list(value)
        parsed = _json_value(value)
        if isinstance(parsed, list):
            return parsed
        return [item.strip() for item in value.split(",") if item.strip()]


class ObjectType(TypeHandler):
    name = "object"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        if isinstance(value, dict):
            return True
        return isinstance(value, str) and isinstance(_json_value(value), dict)

    def validate(self, name: str, value: Any, spec: ParamSpec) -> Dict[str, Any]:
        return dict(value) if isinstance(value, dict) else _json_value(value)


class StringType(TypeHandler):
    name = "string"

    def accepts(self, value: Any, spec: ParamSpec) -> bool:
        return isinstance(value, (str, int, float, bool))

    def validate(self, name: str, value: Any, spec: ParamSpec) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


_HANDLERS_BY_NAME: Dict[str, TypeHandler] = {
    handler.name: handler
    for handler in (
        BlobType(),
        BufferType(),
        IntegerType(),
        NumberType(),
        BooleanType(),
        ArrayType(),
        ObjectType(),
        StringType(),
    )
}

# Ordered by precedence; a type without a handler fails at import.
TYPE_HANDLERS: Dict[str, TypeHandler] = {
    type_name: _HANDLERS_BY_NAME[type_name] for type_name in TYPE_PRECEDENCE
}


def coerce(name: str, value: Any, spec: ParamSpec) -> Any:
    """
    Normalize `value` against the (possibly union) type of `spec`.

    The first declared member, in precedence order, that claims the value
    wins. Range and size failures of that member are final.
    """
    declared = spec.type_names
    unknown = [type_name for type_name in declared if type_name not in TYPE_HANDLERS]
    if unknown:
        raise ParameterError(f"Parameter {name} declares unknown type: {', '.join(unknown)}")

    for type_name in TYPE_PRECEDENCE:
        if type_name not in declared:
            continue
        handler = TYPE_HANDLERS[type_name]
        if handler.accepts(value, spec):
            return handler.validate(name, value, spec)

    raise ParameterError(f"Parameter {name} must be of type: {spec.type}")
