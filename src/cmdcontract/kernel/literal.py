"""
Lenient object-literal reader for `name({...})` command bodies.

Accepts what a person types at a prompt rather than strict JSON:

    {file: 'c.txt', order: 3, tags: ["a", "b",], nested: {ok: true}}

- keys may be bare identifiers or single/double quoted
- strings may be single or double quoted (JSON escapes apply)
- trailing commas are allowed
- `undefined` is accepted as a value and drops the key

Strict JSON is always tried first by the parser; this reader only runs
when that fails.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Tuple

from .errors import ParseError

# Marks a value written as `undefined`: the key counts as not provided.
UNDEFINED = object()

_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": UNDEFINED}


class LiteralSyntaxError(ParseError):
    pass


class _Reader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    # --- Cursor helpers ---

    def error(self, message: str) -> LiteralSyntaxError:
        return LiteralSyntaxError(f"{message} at position {self.pos}")

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise self.error(f"Expected '{char}'")
        self.pos += 1

    # --- Grammar ---

    def value(self) -> Any:
        char = self.peek()
        if char == "{":
            return self.obj()
        if char == "[":
            return self.array()
        if char in ("'", '"'):
            return self.string()
        match = _NUMBER.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            token = match.group(0)
            if re.fullmatch(r"[+-]?\d+", token):
                return int(token)
            return float(token)
        match = _IDENTIFIER.match(self.text, self.pos)
        if match and match.group(0) in _KEYWORDS:
            self.pos = match.end()
            return _KEYWORDS[match.group(0)]
        if not char:
            raise self.error("Unexpected end of input")
        raise self.error(f"Unexpected token '{char}'")

    def obj(self) -> Dict[str, Any]:
        self.expect("{")
        result: Dict[str, Any] = {}
        while self.peek() != "}":
            key = self.key()
            self.expect(":")
            item = self.value()
            if item is not UNDEFINED:
                result[key] = item
            if not self.separator("}"):
                break
        self.expect("}")
        return result

    def array(self) -> List[Any]:
        self.expect("[")
        items: List[Any] = []
        while self.peek() != "]":
            item = self.value()
            items.append(None if item is UNDEFINED else item)
            if not self.separator("]"):
                break
        self.expect("]")
        return items

    def separator(self, closing: str) -> bool:
        """Consume a comma; False when the container ends here instead."""
        char = self.peek()
        if char == ",":
            self.pos += 1
            return True
        if char == closing:
            return False
        raise self.error(f"Expected ',' or '{closing}'")

    def key(self) -> str:
        char = self.peek()
        if char in ("'", '"'):
            return self.string()
        match = _IDENTIFIER.match(self.text, self.pos)
        if not match:
            raise self.error("Expected a property name")
        self.pos = match.end()
        return match.group(0)

    def string(self) -> str:
        quote = self.text[self.pos]
        start = self.pos + 1
        end = start
        while end < len(self.text) and self.text[end] != quote:
            end += 2 if self.text[end] == "\\" else 1
        if end >= len(self.text):
            self.pos = start
            raise self.error("Unterminated string")
        raw = self.text[start:end]
        self.pos = end + 1
        if quote == "'":
            raw = raw.replace("\\'", "'").replace('\\"', '"').replace('"', '\\"')
        try:
            return json.loads(f'"{raw}"')
        except json.JSONDecodeError as exc:
            raise self.error(f"Invalid string escape ({exc.msg})") from exc


def parse_literal(text: str) -> Any:
    """Parse one literal value occupying the whole of `text`."""
    reader = _Reader(text)
    result = reader.value()
    if reader.peek():
        raise reader.error("Unexpected trailing input")
    return None if result is UNDEFINED else result


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """
    Split on `separator` where it is not inside quotes or brackets.

    Empty pieces are dropped, pieces are stripped.
    """
    pieces: List[str] = []
    depth = 0
    quote = ""
    current: List[str] = []
    escaped = False

    for char in text:
        if quote:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            continue
        if char in ("'", '"'):
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == separator and depth == 0:
            pieces.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    if quote:
        raise LiteralSyntaxError(f"Unterminated string in: {text}")
    if depth != 0:
        raise LiteralSyntaxError(f"Unbalanced brackets in: {text}")

    pieces.append("".join(current).strip())
    return [piece for piece in pieces if piece]


def partition_assignment(token: str) -> Tuple[str, str]:
    """
    Split `key=value` at the first top-level `=`.

    Returns ("", token) when the token is not an assignment.
    """
    quote = ""
    for index, char in enumerate(token):
        if quote:
            if char == quote:
                quote = ""
            continue
        if char in ("'", '"'):
            quote = char
        elif char in "([{":
            return "", token
        elif char == "=":
            key = token[:index].strip()
            if _IDENTIFIER.fullmatch(key):
                return key, token[index + 1 :].strip()
            return "", token
    return "", token


def normalize_scalar(token: str) -> Any:
    """
    Interpret a bare token typed by a person.

    Quoted tokens are unquoted and stay strings. Bare tokens become int,
    float, bool or None where they look like one; `undefined` becomes the
    UNDEFINED marker so callers can treat it as "not provided".
    """
    text = token.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    if re.fullmatch(r"-?\d+", text):
        return int(text)
    if re.fullmatch(r"-?\d+\.\d+", text):
        return float(text)
    lowered = text.lower()
    if lowered in _KEYWORDS:
        return _KEYWORDS[lowered]
    return text
