"""Name resolution policies for the declarator composer.

A policy decides which identifier is printed for a named node. The
composer asks it about every named node it meets; returning ``None``
keeps the node's recorded name.

The main use is assembler-name substitution: a function such as
``basename`` may be bound to the link-time symbol ``__xpg_basename``.
Composing it with :class:`SubjectNameResolver` prints the documented name,
and the composer pins the real symbol with an ``__asm__`` label.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "CallableNameResolver",
    "DefaultNameResolver",
    "MappingNameResolver",
    "NameResolver",
    "SubjectNameResolver",
    "as_resolver",
]


@runtime_checkable
class NameResolver(Protocol):
    """Protocol for name policies."""

    def resolve(self, node: Any) -> str | None:
        """Return the display name for ``node``, or None to keep its own."""
        ...


class DefaultNameResolver:
    """Never overrides a name."""

    def resolve(self, node: Any) -> str | None:
        return None


class SubjectNameResolver:
    """Rename only the top-level subject of a composition.

    :param subject: The node being composed. Matched by identity.
    :param name: Display name for it.
    """

    def __init__(self, subject: Any, name: str) -> None:
        self._subject = subject
        self._name = name

    def resolve(self, node: Any) -> str | None:
        if node is self._subject:
            return self._name
        return None


class MappingNameResolver:
    """Rename nodes by their recorded name.

    ::

        resolver = MappingNameResolver({"__time_t": "time_t"})
    """

    def __init__(self, mapping: Mapping[str, str]) -> None:
        self._mapping = dict(mapping)

    def resolve(self, node: Any) -> str | None:
        name = getattr(node, "name", None)
        if name is None:
            return None
        return self._mapping.get(name)


class CallableNameResolver:
    """Adapt a plain ``func(node) -> str | None`` hook to the protocol."""

    def __init__(self, func: Callable[[Any], str | None]) -> None:
        self._func = func

    def resolve(self, node: Any) -> str | None:
        return self._func(node)


def as_resolver(policy: NameResolver | Callable[[Any], str | None] | None) -> NameResolver:
    """Normalise ``policy`` into a :class:`NameResolver`.

    :raises TypeError: If ``policy`` is neither a resolver nor callable.
    """
    if policy is None:
        return DefaultNameResolver()
    if isinstance(policy, NameResolver):
        return policy
    if callable(policy):
        return CallableNameResolver(policy)
    raise TypeError(f"Expected a NameResolver or callable, got {type(policy).__name__}")
