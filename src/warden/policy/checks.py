"""
Check and hook function lookup for Warden.

Checks and hooks are referenced by name in rules. A name is looked up in a
"check module", which can be:

    - an imported Python module (functions are module attributes)
    - a CheckRegistry (functions registered by name)
    - a plain mapping of names to functions
    - a dotted import path, imported with importlib
    - any other object, functions being its attributes (e.g. a class)

Lookups happen once, when a policy is built, never while a request is
evaluated. A name that does not resolve to a callable is a build error.

Usage:
    from warden.policy.checks import CheckRegistry

    checks = CheckRegistry("blog")

    @checks.register
    def own_resource(user, article):
        return user.id == article.user_id

    @checks.register(name="role")
    def has_role(user, _article, role):
        return user.role == role
"""

import importlib
from collections.abc import Callable, Iterator, Mapping
from typing import Any, overload


class CheckRegistry:
    """
    Registry for looking up check and hook functions by name.

    Attributes:
        name: Label used in error messages
        _functions: Internal mapping of names to functions
    """

    def __init__(self, name: str = "checks") -> None:
        """Initialize an empty registry."""
        self.name = name
        self._functions: dict[str, Callable[..., Any]] = {}

    @overload
    def register(self, func: Callable[..., Any]) -> Callable[..., Any]: ...

    @overload
    def register(
        self, func: None = None, *, name: str | None = None
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]: ...

    def register(self, func=None, *, name=None):
        """
        Register a function, usable as a plain call or as a decorator.

        Re-registering a name replaces the previous function.

        Args:
            func: The function to register
            name: Name to register under; defaults to func.__name__

        Raises:
            ValueError: If func is not callable or the name is empty
        """

        def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
            if not callable(f):
                msg = f"Cannot register non-callable {f!r}"
                raise ValueError(msg)
            key = name or getattr(f, "__name__", "")
            if not key:
                msg = "Check function must have a non-empty name"
                raise ValueError(msg)
            self._functions[key] = f
            return f

        if func is not None:
            return decorator(func)
        return decorator

    def get(self, name: str) -> Callable[..., Any] | None:
        """Look up a function by name, returning None if not found."""
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        """Check if a function is registered."""
        return name in self._functions

    def list_functions(self) -> list[str]:
        """List all registered names in sorted order."""
        return sorted(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __repr__(self) -> str:
        return f"<CheckRegistry {self.name}: [{', '.join(self.list_functions())}]>"


def import_path(path: str) -> Any:
    """
    Import a module or a module attribute from a dotted path.

    "myapp.checks" returns the module, "myapp.blog.Article" returns the
    Article attribute of myapp.blog when myapp.blog.Article is not itself
    a module.

    Raises:
        ImportError: If neither the module nor the attribute exists
    """
    try:
        return importlib.import_module(path)
    except ModuleNotFoundError:
        module_path, _, attribute = path.rpartition(".")
        if not module_path:
            raise
        module = importlib.import_module(module_path)
        try:
            return getattr(module, attribute)
        except AttributeError as e:
            msg = f"Module {module_path} has no attribute {attribute}"
            raise ImportError(msg) from e


def resolve_function(module: Any, name: str) -> Callable[..., Any] | None:
    """
    Find the function called `name` in a check module.

    Args:
        module: Check module reference (see module docstring)
        name: Function name

    Returns:
        The callable, or None if it does not exist or is not callable

    Raises:
        ImportError: If module is a dotted path that cannot be imported
    """
    if module is None:
        return None
    if isinstance(module, str):
        module = import_path(module)

    if isinstance(module, CheckRegistry):
        function = module.get(name)
    elif isinstance(module, Mapping):
        function = module.get(name)
    else:
        function = getattr(module, name, None)

    return function if callable(function) else None
