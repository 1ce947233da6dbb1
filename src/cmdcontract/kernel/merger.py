"""
Manifest Merger: composes a descriptor tree into one Manifest.

Two inheritance graphs hang off every `contract.json`:

    sources: {label: path}      flat merge, ancestor wins, names stay global
    targets: {namespace: path}  namespaced merge, descendant wins

    root/contract.json ──sources──> lib/       (lib's `train` -> `train`)
                       ──targets──> kernel/    (kernel's `exit` -> `kernel/exit`)

Within one directory the four property files are routed onto the same
command entry: commands.json (definition), runtime.json (behavior),
help.json (description), routes.json (chaining).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from .errors import DescriptorError
from .schema import CommandSpec, CommandType, Manifest
from .store import (
    COMMANDS_DESCRIPTOR,
    PRIMARY_DESCRIPTOR,
    PROPERTY_DESCRIPTORS,
    DescriptorStore,
)

logger = logging.getLogger(__name__)

# Contract keys that describe the tree rather than the manifest.
_LINK_KEYS = ("sources", "targets", "stateDefaults")

# Command types whose implementation path is resolved at load time.
_PATH_BOUND_TYPES = (CommandType.EXTERNAL_METHOD.value, CommandType.NATIVE_METHOD.value)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two mappings; `override` wins on conflicting leaves.

    Nested mappings are merged key by key, anything else (lists included)
    is replaced wholesale. Neither input is modified.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


@dataclass
class TreeSlice:
    """The merged, not yet validated, view of one descriptor subtree."""

    directory: Path
    contract: Dict[str, Any] = field(default_factory=dict)
    state_defaults: Dict[str, Any] = field(default_factory=dict)
    commands: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    # Names declared in some commands.json; other entries only decorate.
    defined: List[str] = field(default_factory=list)


class ManifestMerger:
    def __init__(self, store: DescriptorStore) -> None:
        self.store = store

    def load(self) -> Manifest:
        """Load the whole tree. Any descriptor error at the root is fatal."""
        tree = self._load_tree(self.store.root, is_root=True)
        return self._build_manifest(tree)

    # --- Tree walking ---

    def _load_tree(self, directory: Path, is_root: bool = False) -> TreeSlice:
        slices = self.store.read_slices(directory, required=is_root)
        contract = slices[PRIMARY_DESCRIPTOR]

        tree = TreeSlice(
            directory=directory,
            contract={k: v for k, v in contract.items() if k not in _LINK_KEYS},
            state_defaults=self._mapping(contract, "stateDefaults", directory),
        )
        tree.commands, tree.defined = self._compose_commands(slices, directory)

        for label, link in self._mapping(contract, "sources", directory).items():
            child = self._follow(link, directory, f"source '{label}'")
            if child is not None:
                tree = merge_source(tree, child)

        for namespace, link in self._mapping(contract, "targets", directory).items():
            child = self._follow(link, directory, f"target '{namespace}'")
            if child is not None:
                tree = merge_target(tree, child, namespace)

        return tree

    def _follow(self, link: Any, directory: Path, label: str) -> Optional[TreeSlice]:
        """Load a linked subtree; a broken link is logged and skipped."""
        try:
            child_dir = self.store.resolve_link(link, directory)
            if not child_dir.is_dir():
                raise DescriptorError(f"Linked path is not a directory: {link}")
            return self._load_tree(child_dir)
        except DescriptorError as exc:
            logger.warning("Skipping %s declared in %s: %s", label, directory, exc)
            return None

    @staticmethod
    def _mapping(contract: Dict[str, Any], key: str, directory: Path) -> Dict[str, Any]:
        value = contract.get(key) or {}
        if not isinstance(value, dict):
            raise DescriptorError(f"'{key}' in {directory / PRIMARY_DESCRIPTOR} must be an object")
        return value

    def _compose_commands(
        self, slices: Dict[str, Dict[str, Any]], directory: Path
    ) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
        """Route the property files of one directory onto per-command entries."""
        composed: Dict[str, Dict[str, Any]] = {}
        defined: List[str] = []

        for filename in PROPERTY_DESCRIPTORS:
            for name, entry in slices[filename].items():
                if not isinstance(entry, dict):
                    raise DescriptorError(
                        f"Entry '{name}' in {directory / filename} must be an object"
                    )
                if filename == COMMANDS_DESCRIPTOR:
                    entry = self._bind_source(entry, directory)
                    defined.append(name)
                composed[name] = deep_merge(composed.get(name, {}), entry)

        return composed, defined

    def _bind_source(self, entry: Dict[str, Any], directory: Path) -> Dict[str, Any]:
        """Resolve the implementation path of path-bound command types once."""
        if entry.get("commandType") not in _PATH_BOUND_TYPES:
            return entry
        resolved = self.store.resolve_command_source(entry.get("source"), directory)
        bound = dict(entry)
        bound["source"] = self.store.relative(resolved)
        bound["resolvedAbsolutePath"] = str(resolved)
        return bound

    # --- Validation ---

    def _build_manifest(self, tree: TreeSlice) -> Manifest:
        commands: Dict[str, CommandSpec] = {}
        for name, raw in tree.commands.items():
            if name not in tree.defined:
                logger.debug("Ignoring '%s': no definition in any %s", name, COMMANDS_DESCRIPTOR)
                continue
            try:
                commands[name] = CommandSpec.model_validate({**raw, "name": name})
            except ValidationError as exc:
                logger.warning("Dropping command '%s': invalid definition: %s", name, exc)

        try:
            return Manifest.model_validate(
                {
                    **tree.contract,
                    "stateDefaults": tree.state_defaults,
                    "root": str(self.store.root),
                    "commands": commands,
                }
            )
        except ValidationError as exc:
            raise DescriptorError(f"Invalid {PRIMARY_DESCRIPTOR} at {tree.directory}: {exc}") from exc


def merge_source(parent: TreeSlice, child: TreeSlice) -> TreeSlice:
    """
    Merge an included subtree under its includer: the parent's leaves win.

    For a command present in both, the result is deep_merge(child, parent).
    """
    commands = copy.deepcopy(child.commands)
    for name, command in parent.commands.items():
        commands[name] = deep_merge(child.commands.get(name, {}), command)

    return TreeSlice(
        directory=parent.directory,
        contract=deep_merge(child.contract, parent.contract),
        state_defaults=deep_merge(child.state_defaults, parent.state_defaults),
        commands=commands,
        defined=_union(parent.defined, child.defined),
    )


def merge_target(parent: TreeSlice, child: TreeSlice, namespace: str) -> TreeSlice:
    """
    Mount a subtree under `namespace/`: the child's leaves win.

    Entries the parent declares for `namespace/x` keep any property the
    child's copy lacks. Contract metadata of the child is not inherited.
    """
    child_names = set(child.commands)
    commands = copy.deepcopy(parent.commands)
    for name, command in child.commands.items():
        full_name = f"{namespace}/{name}"
        mounted = _namespace_command(command, namespace, child_names)
        commands[full_name] = deep_merge(parent.commands.get(full_name, {}), mounted)

    return TreeSlice(
        directory=parent.directory,
        contract=parent.contract,
        state_defaults=deep_merge(child.state_defaults, parent.state_defaults),
        commands=commands,
        defined=_union(parent.defined, [f"{namespace}/{name}" for name in child.defined]),
    )


def _namespace_command(command: Dict[str, Any], namespace: str, siblings: Set[str]) -> Dict[str, Any]:
    """Prefix `next` references that point at commands of the same subtree."""
    mounted = copy.deepcopy(command)
    mounted.pop("name", None)
    next_rules = mounted.get("next")
    if isinstance(next_rules, dict):
        mounted["next"] = {
            (f"{namespace}/{target}" if target in siblings else target): rule
            for target, rule in next_rules.items()
        }
    return mounted


def _union(first: List[str], second: List[str]) -> List[str]:
    seen = dict.fromkeys(first)
    seen.update(dict.fromkeys(second))
    return list(seen)


def load_manifest(root: Union[str, Path]) -> Manifest:
    """Load and merge the descriptor tree rooted at `root`."""
    return ManifestMerger(DescriptorStore(root)).load()
