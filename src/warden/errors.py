"""
Exception hierarchy for Warden.

All Warden exceptions inherit from WardenError, allowing callers to catch
all Warden-specific exceptions with a single except clause.

Exception Categories:
    - UnauthorizedError: Raised by Policy.enforce when a request is denied
    - RuleNotFoundError: A rule lookup that must succeed did not
    - PolicyDefinitionError: Invalid rules, caught while the policy is built
    - InvalidFilterError: Unknown introspection filter
    - RedactionError: An object cannot be redacted

Errors raised by check functions and hooks are never wrapped. They reach
the caller exactly as the hook raised them.

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (rule, object, action where applicable)
    - Definition errors are raised before any request is evaluated
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Authorization errors: 1xxx
ERROR_UNAUTHORIZED = 1001
ERROR_RULE_NOT_FOUND = 1002

# Definition errors: 2xxx
ERROR_DEFINITION_INVALID = 2001
ERROR_DUPLICATE_RULE = 2002
ERROR_DUPLICATE_CHECK = 2003
ERROR_UNKNOWN_CHECK = 2004
ERROR_UNKNOWN_HOOK = 2005
ERROR_INVALID_HOOK_ARGS = 2006
ERROR_INVALID_HOOK_RESULT = 2007
ERROR_POLICY_FROZEN = 2008

# Introspection errors: 3xxx
ERROR_INVALID_FILTER = 3001

# Redaction errors: 4xxx
ERROR_NOT_REDACTABLE = 4001
ERROR_REDACTION_TYPE_MISMATCH = 4002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class WardenError(Exception):
    """
    Base exception for all Warden errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Authorization Errors
# =============================================================================


@dataclass
class UnauthorizedError(WardenError):
    """
    Raised by Policy.enforce when a request is not allowed.

    The message is the policy's configured error message, which defaults
    to "unauthorized". Unlike the other errors, str() returns the bare
    message so it can be shown to end users as is.

    Attributes:
        rule: Name of the rule that was checked
        reason: The policy's configured error reason
    """

    rule: str = ""
    reason: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "unauthorized"
        if self.code == 0:
            self.code = ERROR_UNAUTHORIZED
        self.context.update({
            "rule": self.rule,
            "reason": self.reason,
        })

    def __str__(self) -> str:
        return self.message


@dataclass
class RuleNotFoundError(WardenError):
    """Raised when a rule is fetched by name and does not exist."""

    rule: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Rule not found: {self.rule}"
        if self.code == 0:
            self.code = ERROR_RULE_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Rule names have the form {object}_{action}"
        self.context["rule"] = self.rule


# =============================================================================
# Definition Errors
# =============================================================================


@dataclass
class PolicyDefinitionError(WardenError):
    """
    Base class for errors in rule definitions.

    These errors occur while a policy is built, before it is frozen.
    No request can be evaluated against a policy that failed to build.

    Attributes:
        policy: Name of the policy being built
    """

    policy: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_DEFINITION_INVALID
        self.context["policy"] = self.policy


@dataclass
class DuplicateRuleError(PolicyDefinitionError):
    """Raised when the same object/action pair is defined more than once."""

    duplicates: list[tuple[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            pairs = ", ".join(
                f"object: {obj}, action: {action}" for obj, action in self.duplicates
            )
            self.message = f"Duplicate authorization rules in {self.policy or 'policy'}: {pairs}"
        if self.code == 0:
            self.code = ERROR_DUPLICATE_RULE
        if not self.suggestion:
            self.suggestion = "Look out for actions that are defined twice for the same object"
        super().__post_init__()
        self.context["duplicates"] = [list(pair) for pair in self.duplicates]


@dataclass
class DuplicateCheckError(PolicyDefinitionError):
    """Raised when a single allow/deny group repeats a check."""

    object: str = ""
    action: str = ""
    field_name: str = ""
    checks: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Duplicate authorization checks in {self.field_name} of "
                f"{self.object}_{self.action}: {', '.join(self.checks)}"
            )
        if self.code == 0:
            self.code = ERROR_DUPLICATE_CHECK
        super().__post_init__()
        self.context.update({
            "object": self.object,
            "action": self.action,
            "field": self.field_name,
            "checks": self.checks,
        })


@dataclass
class UnknownCheckError(PolicyDefinitionError):
    """Raised when a check name does not resolve to a callable."""

    check: str = ""
    rule: str = ""
    module: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown check {self.check!r} in rule {self.rule} (module: {self.module})"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_CHECK
        if not self.suggestion:
            self.suggestion = "Define the check function in the check module or register it"
        super().__post_init__()
        self.context.update({
            "check": self.check,
            "rule": self.rule,
            "module": self.module,
        })


@dataclass
class UnknownHookError(PolicyDefinitionError):
    """Raised when a pre-hook reference does not resolve to a callable."""

    hook: str = ""
    rule: str = ""
    module: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown pre-hook {self.hook!r} in rule {self.rule} (module: {self.module})"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_HOOK
        super().__post_init__()
        self.context.update({
            "hook": self.hook,
            "rule": self.rule,
            "module": self.module,
        })


@dataclass
class InvalidHookArgsError(PolicyDefinitionError):
    """Raised when static pre-hook arguments are not a mapping."""

    hook: str = ""
    args: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Invalid pre-hook options for {self.hook}: expected a mapping, "
                f"got {self.args!r}"
            )
        if self.code == 0:
            self.code = ERROR_INVALID_HOOK_ARGS
        super().__post_init__()
        self.context.update({
            "hook": self.hook,
            "args": repr(self.args),
        })


@dataclass
class InvalidHookResultError(WardenError):
    """Raised when a pre-hook does not return a (subject, object) pair."""

    hook: str = ""
    result_type: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Pre-hook {self.hook} must return a (subject, object) tuple, "
                f"got {self.result_type}"
            )
        if self.code == 0:
            self.code = ERROR_INVALID_HOOK_RESULT
        self.context.update({
            "hook": self.hook,
            "result_type": self.result_type,
        })


@dataclass
class PolicyFrozenError(PolicyDefinitionError):
    """Raised when a builder is modified after build() was called."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Policy {self.policy!r} is already built and cannot be changed"
        if self.code == 0:
            self.code = ERROR_POLICY_FROZEN
        super().__post_init__()


# =============================================================================
# Introspection Errors
# =============================================================================


@dataclass
class InvalidFilterError(WardenError):
    """Raised when list_rules receives an unknown filter option."""

    option: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown rule filter: {self.option}"
        if self.code == 0:
            self.code = ERROR_INVALID_FILTER
        if not self.suggestion:
            self.suggestion = "Valid filters are object, action, allow, deny and metadata"
        self.context["option"] = self.option


# =============================================================================
# Redaction Errors
# =============================================================================


@dataclass
class RedactionError(WardenError):
    """
    Base class for redaction errors.

    Attributes:
        type_name: Name of the type being redacted
    """

    type_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["type_name"] = self.type_name


@dataclass
class NotRedactableError(RedactionError):
    """Raised when no redaction callback exists for an object's type."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No redacted_fields callback for type {self.type_name}"
        if self.code == 0:
            self.code = ERROR_NOT_REDACTABLE
        if not self.suggestion:
            self.suggestion = "Subclass Redactable or register the type in a RedactionRegistry"
        super().__post_init__()


@dataclass
class RedactionTypeMismatchError(RedactionError):
    """Raised when a delegated field holds a value of an unexpected type."""

    field_name: str = ""
    expected: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Field {self.field_name} was declared as {self.expected}, "
                f"got {self.type_name}"
            )
        if self.code == 0:
            self.code = ERROR_REDACTION_TYPE_MISMATCH
        super().__post_init__()
        self.context.update({
            "field": self.field_name,
            "expected": self.expected,
        })
