"""
Field redaction for Warden.

Redaction hides fields of an object depending on who is looking at it.
Each type describes its own redaction through a callback returning a
redaction spec for an (object, subject, opts) triple.

Redaction spec entries:
    "view_count"                  replace the field with the redact value
    ("author", ["email", ...])    apply the nested spec to the sub-object
    ("author", User)              redact the sub-object with User's callback

Nested entries skip fields that are missing, None or NotLoaded. A list or
tuple sub-value is redacted element by element.

Types provide the callback by subclassing Redactable, or by registering it
in a RedactionRegistry (useful for dicts and classes you don't own).

Objects are never modified. Redaction returns new objects:
    - mappings are copied into a new mapping of the same type (mutable
      mappings with copy.copy, read-only ones through their constructor)
    - pydantic models are copied with model_copy(update=...)
    - dataclasses are copied with dataclasses.replace()
    - other objects are shallow-copied and their attributes set

Example:
    class Article(Redactable, BaseModel):
        user_id: int
        view_count: int

        def redacted_fields(self, subject, opts):
            if subject.role == "admin":
                return []
            if subject.id == self.user_id:
                return ["view_count"]
            return ["view_count", "like_count"]

    redact(articles, current_user)
"""

import copy
import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, MutableMapping
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel

from warden.errors import NotRedactableError, RedactionTypeMismatchError


class RedactedValue(str, Enum):
    """Marker put in place of redacted fields unless another value is given."""

    REDACTED = "redacted"


REDACTED = RedactedValue.REDACTED


@dataclasses.dataclass(frozen=True)
class NotLoaded:
    """
    Placeholder for a relation that was not loaded.

    Fields holding a NotLoaded instance are skipped by nested redaction.
    Data layers can subclass it for their own lazy-loading markers.
    """

    field: str | None = None


NOT_LOADED = NotLoaded()

RedactionEntry = Union[str, tuple[str, Any]]
RedactionSpec = list[RedactionEntry]
RedactionCallback = Callable[[Any, Any, dict[str, Any]], RedactionSpec]

_MISSING = object()


class Redactable(ABC):
    """
    Interface for types that know which of their fields to redact.

    Subclasses implement redacted_fields(). It may return different specs
    depending on the object, the subject, and any extra options.
    """

    @abstractmethod
    def redacted_fields(self, subject: Any, opts: dict[str, Any]) -> RedactionSpec:
        """
        Return the redaction spec of this object for the given subject.

        Args:
            subject: Who is looking (usually the current user)
            opts: Extra options passed to redact()
        """


class RedactionRegistry:
    """
    Redaction callbacks for types that don't subclass Redactable.

    Lookup walks the type's MRO, so a callback registered for a base class
    applies to its subclasses.

    Usage:
        registry = RedactionRegistry()

        @registry.register(dict)
        def redact_dicts(obj, subject, opts):
            return ["password"]
    """

    def __init__(self) -> None:
        self._callbacks: dict[type, RedactionCallback] = {}

    def register(self, cls: type, callback: RedactionCallback | None = None):
        """Register a callback for a type, directly or as a decorator."""

        def decorator(f: RedactionCallback) -> RedactionCallback:
            self._callbacks[cls] = f
            return f

        if callback is not None:
            return decorator(callback)
        return decorator

    def lookup(self, cls: type) -> RedactionCallback | None:
        """Return the callback for a type or its closest registered base."""
        for base in cls.__mro__:
            callback = self._callbacks.get(base)
            if callback is not None:
                return callback
        return None

    def __contains__(self, cls: type) -> bool:
        return self.lookup(cls) is not None

    def __len__(self) -> int:
        return len(self._callbacks)


# =============================================================================
# Public API
# =============================================================================


def redact(
    value: Any,
    subject: Any,
    opts: Mapping[str, Any] | None = None,
    *,
    redact_value: Any = REDACTED,
    registry: RedactionRegistry | None = None,
) -> Any:
    """
    Redact an object, a list of objects, or None.

    Args:
        value: Object, list/tuple of objects, or None
        subject: Who is looking (usually the current user)
        opts: Extra options passed to every redaction callback
        redact_value: Value put in place of redacted fields
        registry: Callbacks for types that don't subclass Redactable

    Returns:
        A new object (or list/tuple of objects); None for None

    Raises:
        NotRedactableError: If an object's type has no redaction callback
        RedactionTypeMismatchError: If a delegated field holds another type
    """
    if value is None:
        return None

    redactor = _Redactor(subject, dict(opts or {}), redact_value, registry)
    if isinstance(value, list):
        return [redactor.redact_object(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redactor.redact_object(item) for item in value)
    return redactor.redact_object(value)


def redacted_fields_for(
    obj: Any,
    subject: Any,
    opts: Mapping[str, Any] | None = None,
    *,
    registry: RedactionRegistry | None = None,
) -> RedactionSpec:
    """
    Return the redaction spec of an object.

    Raises:
        NotRedactableError: If the object's type has no redaction callback
    """
    opts = dict(opts or {})
    if isinstance(obj, Redactable):
        return list(obj.redacted_fields(subject, opts))

    callback = registry.lookup(type(obj)) if registry is not None else None
    if callback is None:
        raise NotRedactableError(type_name=type(obj).__name__)
    return list(callback(obj, subject, opts))


def unredacted_fields(
    fields: Iterable[str],
    obj: Any,
    subject: Any,
    opts: Mapping[str, Any] | None = None,
    *,
    registry: RedactionRegistry | None = None,
) -> list[str]:
    """
    Remove the fields the subject may not see from a list of field names.

    Only plain entries of the object's redaction spec are removed; nested
    entries are ignored. Useful to keep hidden fields out of update forms.

    Returns:
        The remaining field names in their original order, without repeats
    """
    spec = redacted_fields_for(obj, subject, opts, registry=registry)
    hidden = {entry for entry in spec if isinstance(entry, str)}
    return [field for field in dict.fromkeys(fields) if field not in hidden]


# =============================================================================
# Implementation
# =============================================================================


class _Redactor:
    """Applies redaction specs for one redact() call."""

    def __init__(
        self,
        subject: Any,
        opts: dict[str, Any],
        redact_value: Any,
        registry: RedactionRegistry | None,
    ) -> None:
        self.subject = subject
        self.opts = opts
        self.redact_value = redact_value
        self.registry = registry

    def redact_object(self, obj: Any) -> Any:
        spec = redacted_fields_for(obj, self.subject, self.opts, registry=self.registry)
        return self.apply(spec, obj)

    def apply(self, spec: Iterable[RedactionEntry], obj: Any) -> Any:
        updates: dict[str, Any] = {}

        for entry in spec:
            if isinstance(entry, str):
                if _get_field(obj, entry) is not _MISSING:
                    updates[entry] = self.redact_value
                continue

            key, target = entry
            current = updates[key] if key in updates else _get_field(obj, key)
            if current is _MISSING or current is None or isinstance(current, NotLoaded):
                continue

            if isinstance(target, type):
                updates[key] = _map_items(current, lambda item: self._delegate(key, target, item))
            else:
                updates[key] = _map_items(current, lambda item: self.apply(target, item))

        if not updates:
            return obj
        return _replace_fields(obj, updates)

    def _delegate(self, key: str, target: type, item: Any) -> Any:
        if item is None or isinstance(item, NotLoaded):
            return item
        if not isinstance(item, target):
            raise RedactionTypeMismatchError(
                type_name=type(item).__name__,
                field_name=key,
                expected=target.__name__,
            )
        return self.redact_object(item)


def _map_items(value: Any, func: Callable[[Any], Any]) -> Any:
    if isinstance(value, list):
        return [func(item) for item in value]
    if isinstance(value, tuple):
        return tuple(func(item) for item in value)
    return func(value)


def _get_field(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key, _MISSING)
    return getattr(obj, key, _MISSING)


def _replace_fields(obj: Any, updates: dict[str, Any]) -> Any:
    if type(obj) is dict:
        return {**obj, **updates}
    if isinstance(obj, MutableMapping):
        new = copy.copy(obj)
        new.update(updates)
        return new
    if isinstance(obj, Mapping):
        return type(obj)({**obj, **updates})
    if isinstance(obj, BaseModel):
        return obj.model_copy(update=updates)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.replace(obj, **updates)

    new = copy.copy(obj)
    for key, value in updates.items():
        setattr(new, key, value)
    return new
