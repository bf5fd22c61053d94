"""
Check evaluation for Warden rules.

A rule's allow and deny fields are tuples of groups. Groups are combined
with OR, the checks inside a group with AND:

    allow = ((own_resource,), (role(writer), same_company))
    -> own_resource OR (role(writer) AND same_company)

Evaluation is lazy and strictly ordered. Groups are tried in order and the
first passing group wins; inside a group the first failing check ends the
group. Later checks are never called. An empty tuple of groups and an
empty group both evaluate to False.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from warden.errors import UnknownCheckError
from warden.policy.checks import resolve_function
from warden.schema import ArgCheck, Check, ConditionGroup, LiteralCheck, module_label


@dataclass(frozen=True)
class BoundCheck:
    """
    A check together with the function it resolved to.

    Attributes:
        check: The check model from the rule
        function: The check function; None for literal checks
    """

    check: Check
    function: Callable[..., Any] | None = None

    def __call__(self, subject: Any, obj: Any) -> bool:
        """Run the check against a subject and an object."""
        if isinstance(self.check, LiteralCheck):
            return self.check.value
        if isinstance(self.check, ArgCheck):
            return bool(self.function(subject, obj, self.check.arg))
        return bool(self.function(subject, obj))


BoundGroup = tuple[BoundCheck, ...]


def bind_groups(
    groups: Sequence[ConditionGroup],
    check_module: Any,
    rule_name: str,
    policy_name: str = "",
) -> tuple[BoundGroup, ...]:
    """
    Resolve every named check in a tuple of groups.

    Raises:
        UnknownCheckError: If a check name has no function in check_module
    """
    bound = []
    for group in groups:
        bound_group = []
        for check in group:
            if isinstance(check, LiteralCheck):
                bound_group.append(BoundCheck(check))
                continue
            function = resolve_function(check_module, check.name)
            if function is None:
                raise UnknownCheckError(
                    check=check.name,
                    rule=rule_name,
                    module=module_label(check_module),
                    policy=policy_name,
                )
            bound_group.append(BoundCheck(check, function))
        bound.append(tuple(bound_group))
    return tuple(bound)


def evaluate(groups: Sequence[BoundGroup], subject: Any, obj: Any) -> bool:
    """
    Evaluate groups of bound checks.

    Returns:
        True if any non-empty group has only passing checks
    """
    for group in groups:
        if group and all(check(subject, obj) for check in group):
            return True
    return False
