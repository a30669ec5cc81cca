"""Compose C declaration text from Type Model nodes.

C declarators are built inside-out: the name sits in the middle, pointers
are prefixed to it, arrays and parameter lists are appended, and the base
type keyword comes last. Because ``[]`` and ``()`` bind tighter than
``*``, a pointer whose pointee is an array or function has to be
parenthesised::

    Array(Pointer(char), 10)      ->  char *name[10]
    Pointer(Array(char, 10))      ->  char (*name)[10]
    FunctionType(Pointer(int))    ->  int *name(void)
    Pointer(FunctionType(int))    ->  int (*name)(void)

The entry point is :func:`compose`. Each call is independent; pass the
same ``already_defined`` set to several calls to emit each named aggregate
definition only once across an output unit.
"""

from __future__ import annotations

from collections.abc import Callable, MutableSet
from typing import Any, NamedTuple

from ffi_cdecl.errors import AmbiguousNameError, UnresolvedTypeError, UnsupportedTypeError
from ffi_cdecl.ir import (
    AGGREGATE_KINDS,
    Aggregate,
    Array,
    DeclNode,
    Enumerator,
    FunctionType,
    Member,
    Pointer,
    Qualified,
    Scalar,
    ScalarKind,
    Storage,
    Typedef,
    TypeNode,
    Unsupported,
)
from ffi_cdecl.policy import NameResolver, as_resolver

__all__ = ["DeclaratorComposer", "compose"]

AggregateIdentity = tuple[str, str]
TypedefPredicate = Callable[[Typedef], bool]


class _Qualifiers(NamedTuple):
    const: bool = False
    volatile: bool = False
    restrict: bool = False

    def merge(self, q: Qualified) -> _Qualifiers:
        return _Qualifiers(self.const or q.const, self.volatile or q.volatile, self.restrict or q.restrict)

    @property
    def words(self) -> list[str]:
        return [w for w, on in (("const", self.const), ("volatile", self.volatile), ("restrict", self.restrict)) if on]


def compose(
    node: TypeNode | DeclNode,
    name_policy: NameResolver | Callable[[Any], str | None] | None = None,
    already_defined: MutableSet[AggregateIdentity] | None = None,
    *,
    expand_typedef: TypedefPredicate | None = None,
) -> str:
    """Render ``node`` as a C declaration, without the trailing ``;``.

    :param node: The subject. A :class:`DeclNode` yields a declaration, a
        :class:`Typedef` declares the alias, an :class:`Aggregate` yields
        its definition, and any other type yields an abstract type name.
    :param name_policy: Resolver (or plain function) consulted for every
        named node; returning None keeps the recorded name.
    :param already_defined: Aggregate identities already emitted. Updated
        with the aggregates defined by this call, only if it succeeds.
    :param expand_typedef: Predicate selecting typedef references to
        replace with their underlying type.
    :returns: The declaration text.
    :raises UnresolvedTypeError: If the graph is incomplete.
    :raises UnsupportedTypeError: If the graph cannot be printed as valid C.
    :raises AmbiguousNameError: If the policy is inconsistent for one node.

    A variadic function without fixed parameters renders as ``int f(...)``.
    That form is C23; a front end only produces such a type when parsing
    C23, so the output matches its input dialect.

    Example
    -------
    ::

        compose(DeclNode("x", Pointer(Array(Scalar(ScalarKind.CHAR), 10))))
        # -> 'char (*x)[10]'
    """
    return DeclaratorComposer(node, name_policy, already_defined, expand_typedef=expand_typedef).compose()


class DeclaratorComposer:
    """One composition call.

    Holds the per-call state: the set of aggregates defined so far and the
    names the policy has returned, which must stay consistent per node.
    """

    def __init__(
        self,
        subject: TypeNode | DeclNode,
        name_policy: NameResolver | Callable[[Any], str | None] | None = None,
        already_defined: MutableSet[AggregateIdentity] | None = None,
        *,
        expand_typedef: TypedefPredicate | None = None,
    ) -> None:
        self._subject = subject
        self._resolver = as_resolver(name_policy)
        self._caller_defined = already_defined
        self._defined: set[AggregateIdentity] = set(already_defined) if already_defined is not None else set()
        self._expand_typedef = expand_typedef
        self._names: dict[object, str | None] = {}

    def compose(self) -> str:
        text = self._compose_subject(self._subject)
        if self._caller_defined is not None:
            for identity in self._defined:
                self._caller_defined.add(identity)
        return text

    # -------------------------------------------------------------------------
    # Subjects
    # -------------------------------------------------------------------------

    def _compose_subject(self, node: TypeNode | DeclNode | None) -> str:
        if node is None:
            raise UnresolvedTypeError("Nothing to compose")
        if isinstance(node, DeclNode):
            return self._compose_decl(node)
        if isinstance(node, Typedef):
            if node.underlying is None:
                raise UnresolvedTypeError(f"typedef {node.name!r} has no underlying type")
            return f"typedef {self._declare(node.underlying, self._name_of(node, node.name))}"
        if isinstance(node, Aggregate):
            return self._aggregate(node, subject=True)
        return self._declare(node, "")

    def _compose_decl(self, decl: DeclNode) -> str:
        if decl.type is None:
            raise UnresolvedTypeError(f"Declaration {decl.name!r} has no type")
        display = self._name_of(decl, decl.name)
        if not display:
            raise UnresolvedTypeError("Declaration has no name")

        text = self._declare(decl.type, display)
        if decl.storage is Storage.EXTERN:
            text = f"extern {text}"
        elif decl.storage is Storage.STATIC:
            text = f"static {text}"
        if decl.assembler_name and decl.assembler_name != display:
            text = f'{text} __asm__("{decl.assembler_name}")'
        return text

    # -------------------------------------------------------------------------
    # Declarators
    # -------------------------------------------------------------------------

    def _declare(self, t: TypeNode | None, declarator: str) -> str:
        """Wrap ``declarator`` in the modifiers of ``t`` and prefix its base type."""
        base, quals = self._unwrap(t)

        if isinstance(base, Pointer):
            return self._declare_pointer(base, declarator, quals)

        if isinstance(base, Array):
            if base.element is None:
                raise UnresolvedTypeError("Array has no element type")
            if base.length is not None and base.length < 0:
                raise UnresolvedTypeError(f"Array length must be non-negative, got {base.length}")
            if isinstance(self._unwrap(base.element)[0], FunctionType):
                raise UnsupportedTypeError("Array of functions is not a valid C type")
            element: TypeNode = base.element
            if quals.words:
                # Qualifying an array type qualifies its elements.
                element = Qualified(element, quals.const, quals.volatile, quals.restrict)
            size = "" if base.length is None else str(base.length)
            return self._declare(element, f"{declarator}[{size}]")

        if isinstance(base, FunctionType):
            if quals.words:
                raise UnsupportedTypeError("Function types cannot be qualified")
            if base.return_type is None:
                raise UnresolvedTypeError("Function type has no return type")
            if isinstance(self._unwrap(base.return_type)[0], (Array, FunctionType)):
                raise UnsupportedTypeError("Functions cannot return arrays or functions")
            return self._declare(base.return_type, f"{declarator}({self._parameter_list(base)})")

        if quals.restrict:
            raise UnsupportedTypeError(f"restrict applied to non-pointer type {base}")
        specifier = " ".join(quals.words + [self._specifier(base)])
        return _join(specifier, declarator)

    def _declare_pointer(self, p: Pointer, declarator: str, quals: _Qualifiers) -> str:
        if p.pointee is None:
            raise UnresolvedTypeError("Pointer has no pointee type")
        star = "*" + " ".join(quals.words)
        if quals.words and declarator:
            star += " "
        d = star + declarator
        if isinstance(self._unwrap(p.pointee)[0], (Array, FunctionType)):
            d = f"({d})"
        return self._declare(p.pointee, d)

    def _parameter_list(self, fn: FunctionType) -> str:
        if not fn.prototyped:
            return ""
        parts = []
        for p in fn.parameters:
            if p is None or p.type is None:
                raise UnresolvedTypeError("Function parameter has no type")
            name = self._name_of(p, p.name) if p.name else ""
            parts.append(self._declare(p.type, name or ""))
        if fn.variadic:
            parts.append("...")
        if not parts:
            return "void"
        return ", ".join(parts)

    def _unwrap(self, t: TypeNode | None) -> tuple[TypeNode, _Qualifiers]:
        """Strip qualifier layers and expandable typedefs off ``t``."""
        quals = _Qualifiers()
        while True:
            if t is None:
                raise UnresolvedTypeError("Missing type")
            if isinstance(t, Qualified):
                quals = quals.merge(t)
                t = t.base
            elif isinstance(t, Typedef) and self._expand_typedef is not None and self._expand_typedef(t):
                if t.underlying is None:
                    raise UnresolvedTypeError(f"typedef {t.name!r} has no underlying type")
                t = t.underlying
            else:
                return t, quals

    # -------------------------------------------------------------------------
    # Base types
    # -------------------------------------------------------------------------

    def _specifier(self, t: TypeNode) -> str:
        if isinstance(t, Scalar):
            if not isinstance(t.kind, ScalarKind):
                raise UnresolvedTypeError(f"Scalar has no kind: {t.kind!r}")
            return t.kind.value
        if isinstance(t, Typedef):
            if not t.name:
                raise UnresolvedTypeError("typedef reference has no name")
            return self._name_of(t, t.name)
        if isinstance(t, Aggregate):
            return self._aggregate(t, subject=False)
        if isinstance(t, Unsupported):
            reason = f": {t.reason}" if t.reason else ""
            raise UnsupportedTypeError(f"Cannot represent {t.spelling!r}{reason}")
        raise UnresolvedTypeError(f"Unknown type node {type(t).__name__}")

    def _aggregate(self, agg: Aggregate, subject: bool) -> str:
        if agg.kind not in AGGREGATE_KINDS:
            raise UnresolvedTypeError(f"Unknown aggregate kind {agg.kind!r}")

        identity = agg.identity
        if identity is None:
            if agg.members is None:
                raise UnresolvedTypeError(f"Anonymous {agg.kind} has no members")
            return f"{agg.kind} {self._body(agg)}"

        head = f"{agg.kind} {self._name_of(agg, agg.name)}"
        if not subject or identity in self._defined or agg.members is None:
            return head
        # Mark before descending so self-references print as a reference.
        self._defined.add(identity)
        return f"{head} {self._body(agg)}"

    def _body(self, agg: Aggregate) -> str:
        members = agg.members or []
        if agg.kind == "enum":
            items = []
            for e in members:
                if not isinstance(e, Enumerator):
                    raise UnresolvedTypeError(f"enum member must be an Enumerator, got {type(e).__name__}")
                items.append(f"{self._name_of(e, e.name)} = {e.value}")
            return "{ " + ", ".join(items) + " }" if items else "{}"

        fields = []
        for m in members:
            if not isinstance(m, Member):
                raise UnresolvedTypeError(f"{agg.kind} member must be a Member, got {type(m).__name__}")
            fields.append(self._member(m) + ";")
        return "{ " + " ".join(fields) + " }" if fields else "{}"

    def _member(self, m: Member) -> str:
        name = self._name_of(m, m.name) if m.name else ""
        text = self._declare(m.type, name or "")
        if m.bit_width is not None:
            if m.bit_width < 0:
                raise UnresolvedTypeError(f"Bit-field width must be non-negative, got {m.bit_width}")
            text = f"{text} : {m.bit_width}"
        return text

    # -------------------------------------------------------------------------
    # Names
    # -------------------------------------------------------------------------

    def _name_of(self, node: Any, recorded: str | None) -> str:
        override = self._resolver.resolve(node)
        key = _identity_key(node)
        if key in self._names:
            if self._names[key] != override:
                raise AmbiguousNameError(
                    f"Name policy returned {self._names[key]!r} and then {override!r} for {recorded!r}"
                )
        else:
            self._names[key] = override
        if override is None:
            return recorded or ""
        return override


def _identity_key(node: Any) -> object:
    if isinstance(node, Aggregate) and node.identity is not None:
        return ("aggregate",) + node.identity
    return id(node)


def _join(specifier: str, declarator: str) -> str:
    if declarator:
        return f"{specifier} {declarator}"
    return specifier
