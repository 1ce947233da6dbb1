from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import HandlerNotFoundError
from .help import format_command_help, format_help
from .schema import CommandSpec, CommandType, ExecutionContext, Manifest

logger = logging.getLogger(__name__)

HandlerFn = Callable[..., Any]

# A directory-bound command loads its functions from this file.
HANDLER_FILENAME = "handler.py"


@dataclass
class HandlerRecord:
    name: str
    handler: Optional[HandlerFn]
    origin: str
    error: Optional[str] = None


def builtin_help(ctx: ExecutionContext, command: Optional[str] = None, **_: Any) -> str:
    if command:
        spec = ctx.manifest.find_command(command)
        if spec is None:
            return f"Unknown command: {command}"
        return format_command_help(spec)
    return format_help(ctx.manifest)


def builtin_exit(**_: Any) -> Dict[str, Any]:
    return {"output": None, "error": None, "exit": True}


def side_effects_only(**_: Any) -> None:
    """Internal commands without an implementation act through side effects."""
    return None


BUILTIN_HANDLERS: Dict[str, HandlerFn] = {
    "help": builtin_help,
    "exit": builtin_exit,
}


class HandlerRegistry:
    def __init__(self) -> None:
        self._registry: Dict[str, HandlerRecord] = {}
        self._modules: Dict[Path, ModuleType] = {}

    def register(self, name: str, handler: HandlerFn, origin: str = "explicit") -> None:
        self._registry[name] = HandlerRecord(name=name, handler=handler, origin=origin)

    def register_from_spec(self, spec: CommandSpec) -> None:
        """Bind the handler a command declares; failures leave it unbound."""
        try:
            handler, origin = self._load(spec)
        except Exception as exc:
            logger.warning("Could not load handler for '%s': %s", spec.name, exc)
            self._registry[spec.name] = HandlerRecord(
                name=spec.name, handler=None, origin="unbound", error=str(exc)
            )
            return

        if handler is None:
            logger.debug("No handler declared for '%s'", spec.name)
        self._registry[spec.name] = HandlerRecord(name=spec.name, handler=handler, origin=origin)

    def get(self, name: str) -> HandlerRecord:
        return self._registry[name]

    def resolve(self, name: str) -> HandlerFn:
        """The callable bound to `name`; raises HandlerNotFoundError otherwise."""
        record = self._registry.get(name)
        if record is None:
            raise HandlerNotFoundError(f"No handler registered for command: {name}")
        if record.handler is None:
            detail = f" ({record.error})" if record.error else ""
            raise HandlerNotFoundError(f"Handler could not be loaded for command: {name}{detail}")
        return record.handler

    def names(self) -> List[str]:
        return list(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    # --- Loading ---

    def _load(self, spec: CommandSpec) -> Tuple[Optional[HandlerFn], str]:
        if spec.handler:
            module_name, func_name = spec.handler.rsplit(".", 1)
            return getattr(import_module(module_name), func_name), "python"

        if spec.resolved_absolute_path and spec.method_name:
            path = Path(spec.resolved_absolute_path)
            if path.is_dir():
                path = path / HANDLER_FILENAME
            return getattr(self.load_module(path), spec.method_name), "file"

        if spec.command_type == CommandType.INTERNAL:
            builtin = BUILTIN_HANDLERS.get(spec.name.rsplit("/", 1)[-1])
            if builtin is not None:
                return builtin, "builtin"
            return side_effects_only, "builtin"

        return None, "unbound"

    def load_module(self, path: Path) -> ModuleType:
        """Import a handler file once; later calls reuse the module."""
        path = Path(path).resolve()
        if path in self._modules:
            return self._modules[path]

        if not path.is_file():
            raise FileNotFoundError(f"Handler file not found: {path}")
        module_name = f"cmdcontract_handler_{path.parent.name}_{abs(hash(path)):x}"
        module_spec = importlib.util.spec_from_file_location(module_name, path)
        if module_spec is None or module_spec.loader is None:
            raise ImportError(f"Cannot import handler file: {path}")
        module = importlib.util.module_from_spec(module_spec)
        module_spec.loader.exec_module(module)

        self._modules[path] = module
        return module


def hydrate_handlers(manifest: Manifest, registry: HandlerRegistry) -> None:
    """Bind every manifest command not already registered explicitly."""
    for name, spec in manifest.commands.items():
        if name in registry:
            continue
        registry.register_from_spec(spec)
