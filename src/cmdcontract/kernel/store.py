"""
Descriptor Store: read-only access to the per-directory descriptor files.

A descriptor directory holds up to five JSON files. Only the primary
descriptor of the tree root is mandatory; every other missing file reads
as an empty mapping.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from .errors import DescriptorError, MissingDescriptorError, PathEscapeError

PRIMARY_DESCRIPTOR = "contract.json"
COMMANDS_DESCRIPTOR = "commands.json"
RUNTIME_DESCRIPTOR = "runtime.json"
HELP_DESCRIPTOR = "help.json"
ROUTES_DESCRIPTOR = "routes.json"

DESCRIPTOR_FILES = (
    PRIMARY_DESCRIPTOR,
    COMMANDS_DESCRIPTOR,
    RUNTIME_DESCRIPTOR,
    HELP_DESCRIPTOR,
    ROUTES_DESCRIPTOR,
)

# Files whose entries are per-command property slices, in merge order.
PROPERTY_DESCRIPTORS = (
    COMMANDS_DESCRIPTOR,
    RUNTIME_DESCRIPTOR,
    HELP_DESCRIPTOR,
    ROUTES_DESCRIPTOR,
)


class DescriptorStore:
    """Reads descriptor files below a fixed project root."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).resolve()

    def read_json(self, directory: Path, filename: str, required: bool = False) -> Dict[str, Any]:
        """
        Read one descriptor file.

        Returns an empty mapping when the file is absent and not required.
        Raises MissingDescriptorError for an absent required file and
        DescriptorError when the content is not a JSON object.
        """
        path = Path(directory) / filename
        if not path.exists():
            if required:
                raise MissingDescriptorError(f"Required file not found: {path}")
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DescriptorError(f"Failed to parse {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise DescriptorError(f"Expected a JSON object in {path}, got {type(data).__name__}")
        return data

    def read_slices(self, directory: Path, required: bool = False) -> Dict[str, Dict[str, Any]]:
        """Read all five descriptor files of a directory, keyed by filename."""
        return {
            filename: self.read_json(
                directory, filename, required=required and filename == PRIMARY_DESCRIPTOR
            )
            for filename in DESCRIPTOR_FILES
        }

    def resolve_link(self, link: Any, current: Path) -> Path:
        """
        Resolve a `sources`/`targets` entry declared in `current`.

        The result must be a directory strictly inside `current`; `..`
        escapes, absolute paths, symlinks pointing elsewhere and
        self-references are rejected.
        """
        if not isinstance(link, str) or not link.strip():
            raise PathEscapeError(f"Invalid source path: {link!r}")

        current = Path(current).resolve()
        resolved = (current / link).resolve()
        if resolved == current or not resolved.is_relative_to(current):
            raise PathEscapeError(f"Source path cannot escape root: {link}")
        return resolved

    def resolve_command_source(self, source: Any, declaring_dir: Path) -> Path:
        """
        Resolve a command's implementation `source` to an absolute path.

        `./` and `../` sources are relative to the declaring directory,
        any other source to the project root, and a missing source names the
        declaring directory itself. The result must stay inside the root.
        """
        declaring_dir = Path(declaring_dir).resolve()
        if not source:
            resolved = declaring_dir
        elif not isinstance(source, str):
            raise DescriptorError(f"Invalid command source: {source!r}")
        elif source.startswith("./") or source.startswith("../"):
            resolved = (declaring_dir / source).resolve()
        else:
            resolved = (self.root / source).resolve()

        if not resolved.is_relative_to(self.root):
            raise PathEscapeError(f"Command source escapes project root: {source}")
        return resolved

    def relative(self, path: Path) -> str:
        return Path(path).relative_to(self.root).as_posix()
