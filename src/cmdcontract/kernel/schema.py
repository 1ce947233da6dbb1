from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Union members are tried in this order regardless of declaration order.
TYPE_PRECEDENCE = (
    "blob",
    "buffer",
    "integer",
    "number",
    "boolean",
    "array",
    "object",
    "string",
)


class DescriptorModel(BaseModel):
    """Base for records read from descriptor JSON (camelCase aliases, extras kept)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CommandType(str, Enum):
    NATIVE_METHOD = "native-method"
    KERNEL_PLUGIN = "kernel-plugin"
    INTERNAL = "internal"
    EXTERNAL_METHOD = "external-method"
    CUSTOM = "custom"


class BlobConstraints(DescriptorModel):
    max_size: Optional[int] = Field(default=None, alias="maxSize")
    allowed_types: Optional[List[str]] = Field(default=None, alias="allowedTypes")
    allowed_extensions: Optional[List[str]] = Field(default=None, alias="allowedExtensions")


class TransformRule(DescriptorModel):
    """Wraps a scalar shorthand argument into a full argument object."""

    then: Any = None
    else_: Any = Field(default=None, alias="else")


class ParamSpec(DescriptorModel):
    type: str = "string"
    required: bool = False
    default: Any = None
    enum: Optional[List[Any]] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    min_size: Optional[int] = Field(default=None, alias="minSize")
    max_size: Optional[int] = Field(default=None, alias="maxSize")
    runtime_fallback: Optional[str] = Field(default=None, alias="runtimeFallback")
    transform: Optional[TransformRule] = None
    constraints: Optional[BlobConstraints] = None
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        """True when a default was declared (a declared `null` counts)."""
        return not self.required and "default" in self.model_fields_set

    @property
    def type_names(self) -> List[str]:
        return [t.strip() for t in self.type.split("|") if t.strip()]


class SetStateRule(DescriptorModel):
    from_param: Optional[str] = Field(default=None, alias="fromParam")
    template: Optional[str] = None


class ClearStateRule(DescriptorModel):
    from_param: Optional[str] = Field(default=None, alias="fromParam")


class SideEffects(DescriptorModel):
    set_state: Dict[str, Union[SetStateRule, str]] = Field(default_factory=dict, alias="setState")
    clear_state: List[str] = Field(default_factory=list, alias="clearState")
    clear_state_if: Dict[str, Union[ClearStateRule, str]] = Field(
        default_factory=dict, alias="clearStateIf"
    )
    builtin: Optional[str] = None


class ResolveRule(BaseModel):
    resolve: str


class NextRule(BaseModel):
    """One entry of a command's `next` map. Parsed lazily at chain time."""

    when: Optional[str] = None
    parameters: Dict[str, ResolveRule] = Field(default_factory=dict)


class CommandSpec(DescriptorModel):
    name: str
    command_type: CommandType = Field(default=CommandType.CUSTOM, alias="commandType")
    parameters: Dict[str, ParamSpec] = Field(default_factory=dict)
    side_effects: Optional[SideEffects] = Field(default=None, alias="sideEffects")
    # Checked when a chain is built, not at load time.
    next: Any = None
    success_output: Optional[str] = Field(default=None, alias="successOutput")
    description: Optional[str] = None
    examples: List[str] = Field(default_factory=list)
    syntax: Optional[str] = None
    source: Optional[str] = None
    method_name: Optional[str] = Field(default=None, alias="methodName")
    handler: Optional[str] = None
    combine_arguments: bool = Field(default=False, alias="combineArguments")
    resolved_absolute_path: Optional[str] = Field(default=None, alias="resolvedAbsolutePath")

    @property
    def namespaced(self) -> bool:
        return "/" in self.name

    def required_parameters(self) -> List[str]:
        return [name for name, spec in self.parameters.items() if spec.required]

    def optional_parameters(self) -> List[str]:
        return [name for name, spec in self.parameters.items() if not spec.required]


class Manifest(DescriptorModel):
    """The fully merged command set. Frozen once built."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    name: str = ""
    version: Optional[str] = None
    description: Optional[str] = None
    prompt: Optional[str] = None
    state_defaults: Dict[str, Any] = Field(default_factory=dict, alias="stateDefaults")
    root: Optional[str] = None
    commands: Dict[str, CommandSpec] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        return None if value is None else str(value)

    def find_command(self, name: str) -> Optional[CommandSpec]:
        """Exact lookup first, then case-insensitive."""
        spec = self.commands.get(name)
        if spec is not None:
            return spec
        lowered = name.lower()
        for candidate_name, candidate in self.commands.items():
            if candidate_name.lower() == lowered:
                return candidate
        return None


class ParsedCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Contexts(BaseModel):
    """
    Values visible to templates and conditions while a command runs.

    `previous` and `previousCommand` name the link that just ran, seen from
    the command being built; `original` is the first link of the chain.
    """

    input: Dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    state: Dict[str, Any] = Field(default_factory=dict)
    original: Dict[str, Any] = Field(default_factory=dict)
    previous: Dict[str, Any] = Field(default_factory=dict)
    original_command: Optional[str] = None
    previous_command: Optional[str] = None

    def as_mapping(self) -> Dict[str, Any]:
        """Names as written inside `{{...}}` expressions."""
        return {
            "input": self.input,
            "output": self.output,
            "state": self.state,
            "original": self.original,
            "previous": self.previous,
            "originalCommand": self.original_command,
            "previousCommand": self.previous_command,
        }


class ParseResult(BaseModel):
    command: Optional[ParsedCommand] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ValidationResult(BaseModel):
    args: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Result(BaseModel):
    """Outcome of running a command (and its chain)."""

    ok: bool = True
    output: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    exit: bool = False

    @classmethod
    def failure(cls, message: str, kind: str = "execution_error") -> "Result":
        return cls(ok=False, output=None, error=message, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: Dict[str, Any] = {"ok": self.ok, "output": self.output, "error": self.error}
        if not self.ok:
            result["error_kind"] = self.error_kind
        if self.exit:
            result["exit"] = True
        return result


class ExecutionContext(BaseModel):
    """Context passed to handlers that declare a `ctx` parameter.

    output_sink decouples handlers from the transport: the CLI passes print,
    the HTTP API passes a buffer collector.
    """

    command: str
    manifest: Manifest
    state: Any = None  # SessionState (avoid circular import)
    output_sink: Optional[Callable[[str], None]] = Field(default=None, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def emit(self, content: str) -> None:
        """Send output to the configured sink, or stdout as fallback."""
        if self.output_sink:
            self.output_sink(content)
        else:
            print(content)
