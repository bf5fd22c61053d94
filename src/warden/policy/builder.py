"""
Policy builder for Warden.

Rules are collected during a definition phase and frozen into a Policy by
build(). After build() the builder refuses further changes.

Example:
    builder = PolicyBuilder("blog", check_module=checks, error_reason="forbidden")

    with builder.object("article", Article) as article:
        article.action("create", allow=[("role", "admin"), ("role", "writer")])
        article.action("update", pre_hooks="preload_groups", allow="own_resource")
        article.action(["view", "list"], allow=True)

    with builder.object("user") as user:
        user.action("delete", allow=("role", "admin"), deny="same_user")

    policy = builder.build()

allow and deny take a list of groups (OR); each group is one check or a
list of checks (AND). A single non-list value is one group.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from warden.errors import PolicyFrozenError
from warden.policy.checks import import_path
from warden.policy.engine import Policy
from warden.schema import PolicyConfig, PolicyDocument, Rule


class ObjectBuilder:
    """
    Defines the actions of one object.

    Created by PolicyBuilder.object(); not meant to be created directly.
    """

    def __init__(self, builder: "PolicyBuilder", name: str) -> None:
        self._builder = builder
        self.name = name

    def action(
        self,
        names: str | list[str],
        *,
        allow: Any = None,
        deny: Any = None,
        pre_hooks: Any = None,
        metadata: Any = None,
        description: str | None = None,
    ) -> list[Rule]:
        """
        Define one action, or several actions sharing the same checks.

        Returns:
            The created rules, one per action name
        """
        if isinstance(names, str):
            names = [names]

        rules = [
            Rule(
                object=self.name,
                action=action_name,
                allow=allow,
                deny=deny,
                pre_hooks=pre_hooks,
                metadata=metadata,
                description=description,
            )
            for action_name in names
        ]
        for rule in rules:
            self._builder.add_rule(rule)
        return rules


class PolicyBuilder:
    """
    Collects rules and object schemas, then builds a frozen Policy.

    Attributes:
        config: Settings of the policy being built
    """

    def __init__(
        self,
        name: str = "policy",
        check_module: Any = None,
        error_reason: Any = "unauthorized",
        error_message: str = "unauthorized",
    ) -> None:
        self.config = PolicyConfig(
            name=name,
            check_module=check_module,
            error_reason=error_reason,
            error_message=error_message,
        )
        self._rules: list[Rule] = []
        self._schemas: dict[str, type] = {}
        self._built = False

    @classmethod
    def from_document(cls, document: PolicyDocument, check_module: Any = None) -> "PolicyBuilder":
        """
        Create a builder holding the rules of a PolicyDocument.

        Schema paths in the document are imported.

        Args:
            document: The declarative policy
            check_module: Overrides the document's check_module
        """
        builder = cls(
            name=document.name,
            check_module=check_module if check_module is not None else document.check_module,
            error_reason=document.error_reason,
            error_message=document.error_message,
        )
        for object_name, definition in document.objects.items():
            if definition.schema_path:
                builder.add_schema(object_name, import_path(definition.schema_path))
        for rule in document.to_rules():
            builder.add_rule(rule)
        return builder

    @contextmanager
    def object(self, name: str, schema: type | None = None) -> Iterator[ObjectBuilder]:
        """
        Define the actions of an object inside a with block.

        Args:
            name: Object name; rules are named "{name}_{action}"
            schema: Optional class representing the object
        """
        self._ensure_open()
        if schema is not None:
            self.add_schema(name, schema)
        yield ObjectBuilder(self, name)

    def add_rule(self, rule: Rule) -> None:
        """Add a finished rule."""
        self._ensure_open()
        self._rules.append(rule)

    def add_schema(self, object_name: str, schema: type) -> None:
        """Register the class representing an object. The first one wins."""
        self._ensure_open()
        self._schemas.setdefault(object_name, schema)

    @property
    def rules(self) -> list[Rule]:
        """Rules collected so far, in definition order."""
        return list(self._rules)

    def build(self) -> Policy:
        """
        Validate the collected rules and freeze them into a Policy.

        Raises:
            PolicyDefinitionError: If the rules are invalid
            PolicyFrozenError: If build() was already called
        """
        self._ensure_open()
        policy = Policy.from_rules(self._rules, self.config, self._schemas)
        self._built = True
        return policy

    def _ensure_open(self) -> None:
        if self._built:
            raise PolicyFrozenError(policy=self.config.name)
