"""
Schema definitions for Warden.

This module defines the Pydantic models used throughout Warden:
- LiteralCheck/NamedCheck/ArgCheck: The atomic checks of a rule
- NamedHook/ModuleHook/ModuleArgsHook: References to pre-hook functions
- Rule: One authorization rule for an object/action pair
- PolicyConfig: Per-policy settings (check module, error reason/message)
- Decision/AuthorizationResult: The outcome of an authorization request
- PolicyDocument: Declarative YAML representation of a whole policy

Design Decisions:
    - All models are immutable (frozen=True) and reject unknown fields
    - Authoring shorthand ("own_resource", ("role", "editor"), True) is
      normalized into check models by "before" validators, so a Rule built
      from shorthand and one built from models compare equal
    - allow/deny are stored as tuples of tuples: the outer level is OR,
      the inner level is AND

Check shorthand:
    True / False            -> LiteralCheck
    "own_resource"          -> NamedCheck, called as f(subject, object)
    ("role", "editor")      -> ArgCheck, called as f(subject, object, "editor")
    {"role": "editor"}      -> ArgCheck (the YAML spelling)
"""

from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from warden.errors import InvalidHookArgsError


# =============================================================================
# Enums
# =============================================================================


class Decision(str, Enum):
    """
    Outcome of evaluating a rule.

    RULE_NOT_FOUND is kept apart from DENIED so callers can tell a typo in
    a rule name from a regular denial. The boolean and result APIs treat
    both as "not allowed".
    """

    ALLOWED = "allowed"
    DENIED = "denied"
    RULE_NOT_FOUND = "rule_not_found"


# =============================================================================
# Check Models
# =============================================================================


class LiteralCheck(BaseModel):
    """A constant check. Evaluated without calling anything."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: bool

    def __str__(self) -> str:
        return str(self.value).lower()


class NamedCheck(BaseModel):
    """A check function called as f(subject, object)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return self.name


class ArgCheck(BaseModel):
    """A check function called as f(subject, object, arg)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    arg: Any = None

    def __str__(self) -> str:
        return f"{self.name}({self.arg})"


Check = Union[LiteralCheck, NamedCheck, ArgCheck]
ConditionGroup = tuple[Check, ...]

CHECK_TYPES = (LiteralCheck, NamedCheck, ArgCheck)


# =============================================================================
# Hook Models
# =============================================================================


def module_label(module: Any) -> str:
    """Return a printable name for a check module reference."""
    if module is None:
        return "<none>"
    if isinstance(module, str):
        return module
    if isinstance(module, ModuleType):
        return module.__name__
    name = getattr(module, "name", None)
    if isinstance(name, str):
        return name
    return getattr(module, "__name__", type(module).__name__)


class NamedHook(BaseModel):
    """A pre-hook looked up by name in the policy's check module."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return self.name


class ModuleHook(BaseModel):
    """
    A pre-hook looked up in an explicit module.

    The module may be an imported module, a CheckRegistry, a mapping of
    names to functions, or a dotted import path. None means the policy's
    check module.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    module: Any
    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return f"{module_label(self.module)}.{self.name}"


class ModuleArgsHook(BaseModel):
    """A pre-hook in an explicit module that receives static arguments."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    module: Any
    name: str = Field(..., min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{module_label(self.module)}.{self.name}({self.args})"


Hook = Union[NamedHook, ModuleHook, ModuleArgsHook]

HOOK_TYPES = (NamedHook, ModuleHook, ModuleArgsHook)


# =============================================================================
# Shorthand Parsing
# =============================================================================


def _is_arg_pair(raw: Any) -> bool:
    return isinstance(raw, tuple) and len(raw) == 2 and isinstance(raw[0], str)


def parse_check(raw: Any) -> Check:
    """
    Convert check shorthand into a check model.

    Raises:
        ValueError: If the value is not a recognized check
    """
    if isinstance(raw, CHECK_TYPES):
        return raw
    if isinstance(raw, bool):
        return LiteralCheck(value=raw)
    if isinstance(raw, str):
        return NamedCheck(name=raw)
    if _is_arg_pair(raw):
        return ArgCheck(name=raw[0], arg=raw[1])
    if isinstance(raw, Mapping) and len(raw) == 1:
        ((name, arg),) = raw.items()
        return ArgCheck(name=name, arg=arg)
    msg = f"Invalid check: {raw!r}"
    raise ValueError(msg)


def parse_group(raw: Any) -> ConditionGroup:
    """
    Convert one allow/deny entry into an AND-group of checks.

    A list is a group. A mapping with several keys is a group of argument
    checks. Anything else is a single check.
    """
    if _is_arg_pair(raw):
        return (parse_check(raw),)
    if isinstance(raw, (list, tuple)):
        return tuple(parse_check(item) for item in raw)
    if isinstance(raw, Mapping) and len(raw) > 1:
        return tuple(ArgCheck(name=name, arg=arg) for name, arg in raw.items())
    return (parse_check(raw),)


def parse_conditions(raw: Any) -> tuple[ConditionGroup, ...]:
    """
    Convert an allow/deny value into a tuple of groups (OR of ANDs).

    A list (or a tuple that is not an argument pair) holds one entry per
    group; any other value is a single group.
    """
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)) and not _is_arg_pair(raw):
        return tuple(parse_group(item) for item in raw)
    return (parse_group(raw),)


def parse_hook(raw: Any) -> Hook:
    """
    Convert pre-hook shorthand into a hook model.

    Accepted forms:
        "preload_groups"                       -> NamedHook
        (module, "preload_groups")             -> ModuleHook
        (module, "preload_groups", {"a": 1})   -> ModuleArgsHook
        {"function": ..., "module": ..., "args": {...}}

    Raises:
        InvalidHookArgsError: If static arguments are not a mapping
        ValueError: If the value is not a recognized hook
    """
    if isinstance(raw, HOOK_TYPES):
        return raw
    if isinstance(raw, str):
        return NamedHook(name=raw)
    if isinstance(raw, Mapping):
        unknown = set(raw) - {"function", "module", "args"}
        if "function" not in raw or unknown:
            msg = f"Invalid pre-hook: {dict(raw)!r}"
            raise ValueError(msg)
        raw = (raw.get("module"), raw["function"], raw.get("args"))
        if raw[2] is None:
            raw = raw[:2]
        if raw[0] is None and len(raw) == 2:
            return NamedHook(name=raw[1])
    if isinstance(raw, (list, tuple)):
        if len(raw) == 2:
            return ModuleHook(module=raw[0], name=raw[1])
        if len(raw) == 3:
            module, name, args = raw
            if not isinstance(args, Mapping):
                raise InvalidHookArgsError(hook=f"{module_label(module)}.{name}", args=args)
            return ModuleArgsHook(module=module, name=name, args=dict(args))
    msg = f"Invalid pre-hook: {raw!r}"
    raise ValueError(msg)


def parse_hooks(raw: Any) -> tuple[Hook, ...]:
    """Convert a pre-hook value (one hook or a list of hooks) into a tuple."""
    if raw is None:
        return ()
    if isinstance(raw, list):
        return tuple(parse_hook(item) for item in raw)
    if isinstance(raw, tuple) and all(isinstance(item, HOOK_TYPES) for item in raw):
        return raw
    return (parse_hook(raw),)


def parse_metadata(raw: Any) -> tuple[tuple[str, Any], ...]:
    """
    Convert metadata into an ordered tuple of (key, value) pairs.

    Keys may repeat. A mapping is accepted for convenience, but only a
    list of pairs can express a repeated key.
    """
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        return tuple((str(key), value) for key, value in raw.items())

    pairs = []
    for entry in raw:
        if isinstance(entry, Mapping) and len(entry) == 1:
            pairs.append(next(iter(entry.items())))
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            pairs.append((entry[0], entry[1]))
        else:
            msg = f"Invalid metadata entry: {entry!r}"
            raise ValueError(msg)
    return tuple(pairs)


# =============================================================================
# Rule Model
# =============================================================================


class Rule(BaseModel):
    """
    A single authorization rule.

    Attributes:
        object: The object the action is performed on (e.g., "article")
        action: The action (e.g., "update")
        name: Unique rule name, "{object}_{action}" unless given
        allow: Groups of checks; the rule allows if any group passes
        deny: Groups of checks; if any group passes the rule denies,
            whatever allow says
        pre_hooks: Hooks run in order before the checks
        metadata: Ordered (key, value) pairs, keys may repeat
        description: Human-readable description, not used for evaluation
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    object: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    allow: tuple[ConditionGroup, ...] = ()
    deny: tuple[ConditionGroup, ...] = ()
    pre_hooks: tuple[Hook, ...] = ()
    metadata: tuple[tuple[str, Any], ...] = ()
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        """Derive the rule name from object and action."""
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": f"{data.get('object')}_{data.get('action')}"}
        return data

    @field_validator("allow", "deny", mode="before")
    @classmethod
    def normalize_conditions(cls, v: Any) -> tuple[ConditionGroup, ...]:
        """Accept check shorthand for allow/deny."""
        return parse_conditions(v)

    @field_validator("pre_hooks", mode="before")
    @classmethod
    def normalize_hooks(cls, v: Any) -> tuple[Hook, ...]:
        """Accept hook shorthand."""
        return parse_hooks(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def normalize_metadata(cls, v: Any) -> tuple[tuple[str, Any], ...]:
        """Accept a mapping or a list of pairs."""
        return parse_metadata(v)


# =============================================================================
# Configuration
# =============================================================================


class PolicyConfig(BaseModel):
    """
    Settings of one policy. Fixed when the policy is built.

    Attributes:
        name: Policy name, used in log records and errors
        check_module: Where NamedCheck and NamedHook names are looked up
            (module, CheckRegistry, mapping or dotted import path)
        error_reason: Returned by Policy.authorize on denial
        error_message: Message of the UnauthorizedError raised by Policy.enforce
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    name: str = Field(default="policy", min_length=1)
    check_module: Any = None
    error_reason: Any = "unauthorized"
    error_message: str = "unauthorized"


# =============================================================================
# Runtime Models
# =============================================================================


class AuthorizationResult(BaseModel):
    """
    Result form of an authorization request.

    Attributes:
        allowed: Whether the request is allowed
        reason: The policy's error reason when not allowed, else None
        rule: Name of the rule that was checked
        decision: The underlying decision (allowed, denied, rule_not_found)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reason: Any = None
    rule: str
    decision: Decision

    @classmethod
    def ok(cls, rule: str) -> "AuthorizationResult":
        """Create an allowed result."""
        return cls(allowed=True, rule=rule, decision=Decision.ALLOWED)

    @classmethod
    def error(
        cls,
        reason: Any,
        rule: str,
        decision: Decision = Decision.DENIED,
    ) -> "AuthorizationResult":
        """Create a not-allowed result carrying the error reason."""
        return cls(allowed=False, reason=reason, rule=rule, decision=decision)


# =============================================================================
# Policy Document (YAML)
# =============================================================================


class ActionDefinition(BaseModel):
    """
    One action of an object in a policy document.

    allow/deny/pre_hooks/metadata hold shorthand and are converted when
    the Rule is created.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str | None = None
    allow: Any = Field(default_factory=list)
    deny: Any = Field(default_factory=list)
    pre_hooks: Any = Field(default_factory=list)
    metadata: Any = Field(default_factory=list)


class ObjectDefinition(BaseModel):
    """
    One object in a policy document.

    Attributes:
        schema_path: Optional dotted path of the class representing the object
        actions: Actions by name
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    schema_path: str | None = Field(default=None, alias="schema")
    actions: dict[str, ActionDefinition] = Field(default_factory=dict)


class PolicyDocument(BaseModel):
    """
    Declarative policy definition, usually loaded from YAML.

    Example:
        name: blog
        check_module: myapp.checks
        error_reason: forbidden
        objects:
          article:
            schema: myapp.blog.Article
            actions:
              update:
                pre_hooks: [preload_groups]
                allow:
                  - own_resource
                  - {role: editor}
                metadata:
                  - [gql_exclude, true]
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="policy", min_length=1)
    check_module: str | None = None
    error_reason: Any = "unauthorized"
    error_message: str = "unauthorized"
    objects: dict[str, ObjectDefinition] = Field(default_factory=dict)

    def to_rules(self) -> list[Rule]:
        """Create the rules of this document in definition order."""
        return [
            Rule(
                object=object_name,
                action=action_name,
                allow=action.allow,
                deny=action.deny,
                pre_hooks=action.pre_hooks,
                metadata=action.metadata,
                description=action.description,
            )
            for object_name, definition in self.objects.items()
            for action_name, action in definition.actions.items()
        ]


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_policy_document(path: Path | str) -> PolicyDocument:
    """
    Load a policy document from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated PolicyDocument

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return PolicyDocument.model_validate(data or {})


def load_policy_document_from_string(content: str) -> PolicyDocument:
    """Load a policy document from a YAML string."""
    data = yaml.safe_load(content)
    return PolicyDocument.model_validate(data or {})
