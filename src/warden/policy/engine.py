"""
Policy: the decision engine of Warden.

A Policy holds a frozen RuleRegistry and a PolicyConfig. It answers
authorization requests of the form (rule name, subject, object, options).

How a request is decided:
    1. Look up the rule; unknown names yield Decision.RULE_NOT_FOUND
    2. Run the rule's pre-hooks to hydrate subject and object
    3. Evaluate deny; if any deny group passes, the request is denied
       and allow is not evaluated
    4. Evaluate allow; the request is allowed if any allow group passes

Three call shapes are built on decide():
    is_authorized  -> bool
    authorize      -> AuthorizationResult (reason = config.error_reason)
    enforce        -> None, or raises UnauthorizedError(config.error_message)

A Policy keeps no per-request state. It can be shared between threads as
long as the check and hook functions can.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from warden.errors import RuleNotFoundError, UnauthorizedError
from warden.policy.evaluator import evaluate
from warden.policy.filters import filter_allowed, filter_rules
from warden.policy.hooks import hydrate
from warden.policy.registry import RuleRegistry
from warden.schema import AuthorizationResult, Decision, PolicyConfig, PolicyDocument, Rule

logger = logging.getLogger(__name__)


class Policy:
    """
    Evaluates authorization requests against a frozen set of rules.

    Usage:
        policy = Policy.from_rules(rules, PolicyConfig(check_module=checks))
        if policy.is_authorized("article_update", user, article):
            ...
        policy.enforce("article_delete", user, article)

    Attributes:
        registry: The compiled rules
        config: Policy settings
    """

    def __init__(
        self,
        registry: RuleRegistry,
        config: PolicyConfig | None = None,
        schemas: Mapping[str, type] | None = None,
    ) -> None:
        """
        Initialize the policy.

        Args:
            registry: Compiled rules
            config: Policy settings; defaults to PolicyConfig()
            schemas: Classes registered for object names
        """
        self.registry = registry
        self.config = config or PolicyConfig()
        self._schemas: dict[str, type] = dict(schemas or {})

    @classmethod
    def from_rules(
        cls,
        rules: Iterable[Rule],
        config: PolicyConfig | None = None,
        schemas: Mapping[str, type] | None = None,
    ) -> "Policy":
        """
        Build a policy from finished rules.

        Raises:
            PolicyDefinitionError: If the rules are invalid
        """
        config = config or PolicyConfig()
        registry = RuleRegistry.from_rules(rules, config.check_module, config.name)
        return cls(registry, config, schemas)

    @classmethod
    def from_document(cls, document: PolicyDocument, check_module: Any = None) -> "Policy":
        """
        Build a policy from a PolicyDocument.

        Args:
            document: The declarative policy
            check_module: Overrides the document's check_module
        """
        from warden.policy.builder import PolicyBuilder

        return PolicyBuilder.from_document(document, check_module=check_module).build()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def rule_names(self) -> list[str]:
        """Rule names in definition order."""
        return list(self.registry)

    # =========================================================================
    # Decisions
    # =========================================================================

    def decide(
        self,
        rule_name: str,
        subject: Any,
        obj: Any = None,
        opts: Mapping[str, Any] | None = None,
    ) -> Decision:
        """
        Decide a request.

        Args:
            rule_name: Rule name, "{object}_{action}"
            subject: Who is acting (usually the current user)
            obj: What is acted on; may be omitted for object-less checks
            opts: Call-time options, passed to every pre-hook

        Returns:
            Decision.ALLOWED, Decision.DENIED or Decision.RULE_NOT_FOUND
        """
        compiled = self.registry.get(rule_name)
        if compiled is None:
            return Decision.RULE_NOT_FOUND

        subject, obj = hydrate(compiled.pre_hooks, subject, obj, opts)

        if evaluate(compiled.deny, subject, obj):
            decision = Decision.DENIED
        elif evaluate(compiled.allow, subject, obj):
            decision = Decision.ALLOWED
        else:
            decision = Decision.DENIED

        logger.debug(
            "Rule %s decided: %s",
            rule_name,
            decision.value,
            extra={"rule": rule_name, "policy": self.name, "decision": decision.value},
        )
        return decision

    def is_authorized(
        self,
        rule_name: str,
        subject: Any,
        obj: Any = None,
        opts: Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Return True if the request is allowed.

        Unknown rules return False and log a warning.
        """
        decision = self.decide(rule_name, subject, obj, opts)
        if decision is Decision.RULE_NOT_FOUND:
            logger.warning(
                "Permission checked for rule that does not exist: %s",
                rule_name,
                extra={"rule": rule_name, "policy": self.name},
            )
        return decision is Decision.ALLOWED

    def authorize(
        self,
        rule_name: str,
        subject: Any,
        obj: Any = None,
        opts: Mapping[str, Any] | None = None,
    ) -> AuthorizationResult:
        """
        Return an AuthorizationResult for the request.

        When not allowed, the result carries config.error_reason. The
        decision field tells denials and unknown rules apart.
        """
        decision = self.decide(rule_name, subject, obj, opts)
        if decision is Decision.ALLOWED:
            return AuthorizationResult.ok(rule_name)
        if decision is Decision.RULE_NOT_FOUND:
            logger.warning(
                "Permission checked for rule that does not exist: %s",
                rule_name,
                extra={"rule": rule_name, "policy": self.name},
            )
        return AuthorizationResult.error(self.config.error_reason, rule_name, decision)

    def enforce(
        self,
        rule_name: str,
        subject: Any,
        obj: Any = None,
        opts: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Return None if the request is allowed.

        Raises:
            UnauthorizedError: With config.error_message if not allowed
        """
        result = self.authorize(rule_name, subject, obj, opts)
        if not result.allowed:
            raise UnauthorizedError(
                message=self.config.error_message,
                rule=rule_name,
                reason=result.reason,
            )

    # =========================================================================
    # Introspection
    # =========================================================================

    def list_rules(self, **filters: Any) -> list[Rule]:
        """
        Return all rules, optionally filtered.

        See warden.policy.filters.filter_rules for the filter options.
        """
        rules = self.registry.rules()
        if not filters:
            return rules
        return filter_rules(rules, **filters)

    def get_rule(self, name: str) -> Rule | None:
        """Return the rule with the given name, or None."""
        compiled = self.registry.get(name)
        return compiled.rule if compiled is not None else None

    def fetch_rule(self, name: str) -> Rule:
        """
        Return the rule with the given name.

        Raises:
            RuleNotFoundError: If there is no such rule
        """
        rule = self.get_rule(name)
        if rule is None:
            raise RuleNotFoundError(rule=name)
        return rule

    def filter_allowed(
        self,
        rules: Iterable[Rule],
        subject: Any,
        object_ref: Any,
        opts: Mapping[str, Any] | None = None,
    ) -> list[Rule]:
        """
        Keep the rules the subject is allowed to perform on the object.

        object_ref is an (object_name, obj) tuple, or an instance of a class
        registered for an object name.
        """
        return filter_allowed(rules, subject, object_ref, self, opts)

    def get_schema(self, object_name: str) -> type | None:
        """Return the class registered for an object name, or None."""
        return self._schemas.get(object_name)

    def get_object_name(self, schema: Any) -> str | None:
        """
        Return the object name registered for a class or an instance of it.
        """
        cls = schema if isinstance(schema, type) else type(schema)
        for object_name, registered in self._schemas.items():
            if registered is cls:
                return object_name
        return None

    def __repr__(self) -> str:
        return f"<Policy {self.name}: {len(self.registry)} rules>"
