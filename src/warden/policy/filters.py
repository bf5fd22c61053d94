"""
Rule introspection for Warden.

filter_rules narrows a list of rules with any combination of filters
(combined with AND):

    object    exact object name
    action    exact action name
    allow     a check name, or a (name, arg) pair
    deny      a check name, or a (name, arg) pair
    metadata  a metadata key, or a (key, value) pair

A bare check name matches a rule that uses the check anywhere in the
given field, with or without an argument. A (name, arg) pair only matches
the same pair. Rules with more checks than the one asked for still match.

filter_allowed keeps the rules of one object that the subject is allowed
to perform on it.
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from warden.errors import InvalidFilterError
from warden.schema import ArgCheck, Check, ConditionGroup, Decision, NamedCheck, Rule, parse_check

if TYPE_CHECKING:
    from warden.policy.engine import Policy

FILTER_OPTIONS = ("object", "action", "allow", "deny", "metadata")


def filter_rules(rules: Iterable[Rule], **filters: Any) -> list[Rule]:
    """
    Return the rules matching every given filter, in their original order.

    Filters set to None are ignored.

    Raises:
        InvalidFilterError: If an unknown filter is passed
    """
    for option in filters:
        if option not in FILTER_OPTIONS:
            raise InvalidFilterError(option=option)

    active = {option: value for option, value in filters.items() if value is not None}
    return [rule for rule in rules if _matches(rule, active)]


def _matches(rule: Rule, filters: Mapping[str, Any]) -> bool:
    for option, value in filters.items():
        if option == "object" and rule.object != value:
            return False
        if option == "action" and rule.action != value:
            return False
        if option == "allow" and not matches_check(rule.allow, value):
            return False
        if option == "deny" and not matches_check(rule.deny, value):
            return False
        if option == "metadata" and not matches_metadata(rule.metadata, value):
            return False
    return True


def matches_check(groups: Iterable[ConditionGroup], check_filter: Any) -> bool:
    """Check whether any group contains a check matching check_filter."""
    wanted = parse_check(check_filter)
    return any(_check_matches(check, wanted) for group in groups for check in group)


def _check_matches(check: Check, wanted: Check) -> bool:
    if isinstance(wanted, NamedCheck):
        return isinstance(check, (NamedCheck, ArgCheck)) and check.name == wanted.name
    return check == wanted


def matches_metadata(metadata: Iterable[tuple[str, Any]], metadata_filter: Any) -> bool:
    """Check whether metadata has the key (bare filter) or the exact pair."""
    if isinstance(metadata_filter, tuple):
        return any(pair == metadata_filter for pair in metadata)
    return any(key == metadata_filter for key, _ in metadata)


def filter_allowed(
    rules: Iterable[Rule],
    subject: Any,
    object_ref: Any,
    policy: "Policy",
    opts: Mapping[str, Any] | None = None,
) -> list[Rule]:
    """
    Keep the rules for an object that the subject is allowed to perform.

    Args:
        rules: Candidate rules, usually policy.list_rules()
        subject: The subject (usually the current user)
        object_ref: Either an (object_name, obj) tuple, or an instance of a
            class registered for an object name
        policy: Policy used to evaluate each rule
        opts: Call-time options passed to every decision

    Returns:
        Allowed rules in their original order

    Raises:
        InvalidFilterError: If the object name cannot be determined
    """
    if isinstance(object_ref, tuple) and len(object_ref) == 2 and isinstance(object_ref[0], str):
        object_name, obj = object_ref
    else:
        obj = object_ref
        object_name = policy.get_object_name(obj)
        if object_name is None:
            raise InvalidFilterError(
                option="object",
                message=f"No object registered for type {type(obj).__name__}",
                suggestion="Pass an (object_name, object) tuple or register the class with the object",
            )

    return [
        rule
        for rule in filter_rules(rules, object=object_name)
        if policy.decide(rule.name, subject, obj, opts) is Decision.ALLOWED
    ]
