"""
Rule registry for Warden.

The registry maps rule names to compiled rules. It is built once, from a
finished list of rules, and is read-only afterwards.

Building a registry validates the rules:
    1. No (object, action) pair and no rule name is defined twice
    2. No allow/deny group repeats a check
    3. Every named check and pre-hook resolves to a function

Any failure raises a PolicyDefinitionError subclass and no registry is
created.
"""

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from warden.errors import DuplicateCheckError, DuplicateRuleError
from warden.policy.evaluator import BoundGroup, bind_groups
from warden.policy.hooks import BoundHook, bind_hooks
from warden.schema import Rule


@dataclass(frozen=True)
class CompiledRule:
    """
    A rule with its checks and hooks resolved to functions.

    Attributes:
        rule: The rule definition
        allow: Bound allow groups
        deny: Bound deny groups
        pre_hooks: Bound pre-hooks
    """

    rule: Rule
    allow: tuple[BoundGroup, ...]
    deny: tuple[BoundGroup, ...]
    pre_hooks: tuple[BoundHook, ...]

    @property
    def name(self) -> str:
        return self.rule.name


class RuleRegistry(Mapping[str, CompiledRule]):
    """
    Immutable mapping from rule name to CompiledRule.

    Iteration follows the order in which rules were defined.

    Usage:
        registry = RuleRegistry.from_rules(rules, check_module=checks)
        compiled = registry.get("article_update")
    """

    def __init__(self, rules: Mapping[str, CompiledRule]) -> None:
        self._rules = MappingProxyType(dict(rules))

    @classmethod
    def from_rules(
        cls,
        rules: Iterable[Rule],
        check_module: Any = None,
        policy_name: str = "",
    ) -> "RuleRegistry":
        """
        Validate and compile a list of rules.

        Args:
            rules: Rule definitions in definition order
            check_module: Where check and hook names are looked up
            policy_name: Policy name used in error messages

        Raises:
            DuplicateRuleError: If an object/action pair or name repeats
            DuplicateCheckError: If a group contains the same check twice
            UnknownCheckError: If a check name does not resolve
            UnknownHookError: If a pre-hook does not resolve
        """
        rules = list(rules)
        validate_no_duplicate_rules(rules, policy_name)
        for rule in rules:
            validate_no_duplicate_checks(rule, policy_name)

        compiled = {}
        for rule in rules:
            compiled[rule.name] = CompiledRule(
                rule=rule,
                allow=bind_groups(rule.allow, check_module, rule.name, policy_name),
                deny=bind_groups(rule.deny, check_module, rule.name, policy_name),
                pre_hooks=bind_hooks(rule.pre_hooks, check_module, rule.name, policy_name),
            )
        return cls(compiled)

    def rules(self) -> list[Rule]:
        """Return the rule definitions in definition order."""
        return [compiled.rule for compiled in self._rules.values()]

    def __getitem__(self, name: str) -> CompiledRule:
        return self._rules[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"<RuleRegistry: [{', '.join(self._rules)}]>"


def validate_no_duplicate_rules(rules: list[Rule], policy_name: str = "") -> None:
    """
    Reject rules that share an (object, action) pair or a name.

    Raises:
        DuplicateRuleError: Listing every duplicated pair
    """
    pair_counts = Counter((rule.object, rule.action) for rule in rules)
    duplicates = [pair for pair, count in pair_counts.items() if count > 1]

    name_counts = Counter(rule.name for rule in rules)
    for rule in rules:
        pair = (rule.object, rule.action)
        if name_counts[rule.name] > 1 and pair not in duplicates:
            duplicates.append(pair)

    if duplicates:
        raise DuplicateRuleError(duplicates=duplicates, policy=policy_name)


def validate_no_duplicate_checks(rule: Rule, policy_name: str = "") -> None:
    """
    Reject allow/deny groups that contain the same check twice.

    Raises:
        DuplicateCheckError: For the first offending group
    """
    for field_name in ("allow", "deny"):
        for group in getattr(rule, field_name):
            seen = []
            duplicates = []
            for check in group:
                if check in seen and check not in duplicates:
                    duplicates.append(check)
                seen.append(check)

            if duplicates:
                raise DuplicateCheckError(
                    object=rule.object,
                    action=rule.action,
                    field_name=field_name,
                    checks=[str(check) for check in duplicates],
                    policy=policy_name,
                )
