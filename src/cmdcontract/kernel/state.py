"""
Session State: the in-memory key/value map of one session.

Seeded from the manifest's stateDefaults and written only by side effects
of successful commands. Runtime fallbacks read from it.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .schema import CommandSpec, Contexts, Manifest, SetStateRule
from .template import TemplateError, evaluate_condition, render

logger = logging.getLogger(__name__)


class SessionState:
    def __init__(self, defaults: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = copy.deepcopy(dict(defaults or {}))

    @classmethod
    def from_manifest(
        cls, manifest: Manifest, overrides: Optional[Mapping[str, Any]] = None
    ) -> "SessionState":
        state = cls(manifest.state_defaults)
        for key, value in (overrides or {}).items():
            state.set(key, copy.deepcopy(value))
        return state

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def has(self, key: str) -> bool:
        return key in self._values

    def delete(self, key: str) -> bool:
        """Remove a key; False when it was not set."""
        return self._values.pop(key, _MISSING) is not _MISSING

    def keys(self) -> List[str]:
        return list(self._values)

    def snapshot(self) -> Dict[str, Any]:
        """A deep copy, safe to hand to templates and callers."""
        return copy.deepcopy(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SessionState({self._values!r})"

    # --- Side effects ---

    def apply_side_effects(
        self, spec: CommandSpec, args: Mapping[str, Any], contexts: Contexts
    ) -> bool:
        """
        Apply `spec.side_effects` for a successful invocation.

        Order: setState, clearState, clearStateIf. Returns True when the
        command asks the transport to exit.
        """
        effects = spec.side_effects
        if effects is None:
            return False

        scope = contexts.as_mapping()
        scope["state"] = self.snapshot()

        for key, rule in effects.set_state.items():
            value = self._state_value(rule, args, scope)
            if value is not None:
                self.set(key, value)

        for key in effects.clear_state:
            self.delete(key)

        for key, rule in effects.clear_state_if.items():
            if isinstance(rule, str):
                should_clear = evaluate_condition(rule, scope)
            else:
                should_clear = (
                    rule.from_param is not None
                    and key in self
                    and args.get(rule.from_param) == self.get(key)
                )
            if should_clear:
                self.delete(key)

        return effects.builtin == "exit"

    @staticmethod
    def _state_value(rule: Any, args: Mapping[str, Any], scope: Dict[str, Any]) -> Any:
        if isinstance(rule, SetStateRule):
            if rule.from_param and args.get(rule.from_param) is not None:
                return copy.deepcopy(args[rule.from_param])
            template = rule.template
        else:
            template = rule
        if not template:
            return None
        try:
            return render(template, scope)
        except TemplateError as exc:
            logger.warning("setState template %r failed: %s", template, exc)
            return None


_MISSING = object()
