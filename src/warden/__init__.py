"""
Warden - Authorization rules and field redaction for Python applications.

Warden decides whether a subject (usually the current user) may perform an
action on an object. It provides:
- Named rules with allow/deny groups of checks (deny always wins)
- Pre-hooks that hydrate subject and object before checks run
- Introspection over rules (by object, action, check or metadata)
- Redaction of fields depending on who is looking

Example usage:
    policy = builder.build()
    policy.is_authorized("article_update", user, article)
    policy.enforce("article_delete", user, article)
    redact(articles, user)
"""

__version__ = "0.1.0"
__author__ = "Warden Contributors"

from warden.errors import RuleNotFoundError, UnauthorizedError, WardenError
from warden.policy import CheckRegistry, Policy, PolicyBuilder
from warden.redaction import (
    NOT_LOADED,
    REDACTED,
    NotLoaded,
    Redactable,
    RedactionRegistry,
    redact,
    unredacted_fields,
)
from warden.schema import AuthorizationResult, Decision, PolicyConfig, Rule

__all__ = [
    "__version__",
    "__author__",
    "AuthorizationResult",
    "CheckRegistry",
    "Decision",
    "NOT_LOADED",
    "NotLoaded",
    "Policy",
    "PolicyBuilder",
    "PolicyConfig",
    "REDACTED",
    "Redactable",
    "RedactionRegistry",
    "Rule",
    "RuleNotFoundError",
    "UnauthorizedError",
    "WardenError",
    "redact",
    "unredacted_fields",
]
