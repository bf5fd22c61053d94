"""
Pre-hook hydration for Warden rules.

Pre-hooks run before a rule's checks to enrich the subject and/or object,
for example by preloading associations. They run in declaration order and
each hook receives the pair returned by the previous one.

Hook arguments:
    Static arguments from the rule (ModuleArgsHook) are merged with the
    call-time options; call-time options win on key collisions. If the
    merged mapping is empty the hook is called as hook(subject, object),
    otherwise as hook(subject, object, args).

Errors raised by a hook are not caught. They abort the request.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from warden.errors import InvalidHookResultError, UnknownHookError
from warden.policy.checks import resolve_function
from warden.schema import Hook, ModuleArgsHook, NamedHook, module_label


@dataclass(frozen=True)
class BoundHook:
    """
    A pre-hook together with the function it resolved to.

    Attributes:
        hook: The hook model from the rule
        function: The hook function
    """

    hook: Hook
    function: Callable[..., Any]

    @property
    def static_args(self) -> dict[str, Any]:
        if isinstance(self.hook, ModuleArgsHook):
            return self.hook.args
        return {}

    def __call__(
        self,
        subject: Any,
        obj: Any,
        opts: Mapping[str, Any],
    ) -> tuple[Any, Any]:
        """Run the hook and return the new (subject, object) pair."""
        args = {**self.static_args, **opts}
        if args:
            result = self.function(subject, obj, args)
        else:
            result = self.function(subject, obj)

        if not isinstance(result, tuple) or len(result) != 2:
            raise InvalidHookResultError(hook=str(self.hook), result_type=type(result).__name__)
        return result


def bind_hooks(
    hooks: Sequence[Hook],
    check_module: Any,
    rule_name: str,
    policy_name: str = "",
) -> tuple[BoundHook, ...]:
    """
    Resolve every pre-hook of a rule.

    NamedHook names, and hooks whose module is None, are looked up in the
    policy's check module.

    Raises:
        UnknownHookError: If a hook has no function
    """
    bound = []
    for hook in hooks:
        if isinstance(hook, NamedHook) or hook.module is None:
            module = check_module
        else:
            module = hook.module

        function = resolve_function(module, hook.name)
        if function is None:
            raise UnknownHookError(
                hook=hook.name,
                rule=rule_name,
                module=module_label(module),
                policy=policy_name,
            )
        bound.append(BoundHook(hook, function))
    return tuple(bound)


def hydrate(
    hooks: Sequence[BoundHook],
    subject: Any,
    obj: Any,
    opts: Mapping[str, Any] | None = None,
) -> tuple[Any, Any]:
    """
    Run pre-hooks in order, threading the (subject, object) pair through.

    Returns:
        The pair returned by the last hook, or the inputs if there are no hooks
    """
    if not hooks:
        return subject, obj

    opts = opts or {}
    for hook in hooks:
        subject, obj = hook(subject, obj, opts)
    return subject, obj
