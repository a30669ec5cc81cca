"""Select tagged symbols from a translation unit and compose their declarations.

Symbols of interest are tagged in the source with the macros from
``ffi-cdecl.h``::

    #include <time.h>
    #include "ffi-cdecl.h"

    cdecl_type(clockid_t)
    cdecl_struct(timespec)
    cdecl_func(clock_gettime)
    cdecl_const(CLOCK_MONOTONIC)

Each macro leaves a top-level marker named ``cdecl_<kind>__<id>``. After
the front end has resolved the unit, :func:`extract` finds the markers,
looks up what each one refers to, and composes one declaration per marker.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator, MutableSet
from dataclasses import dataclass, field

from ffi_cdecl.composer import AggregateIdentity, compose
from ffi_cdecl.errors import ExtractionError
from ffi_cdecl.ir import (
    Aggregate,
    Declaration,
    DeclNode,
    Qualified,
    Storage,
    TranslationUnit,
    Typedef,
    TypeNode,
)
from ffi_cdecl.policy import SubjectNameResolver

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "cdecl_"

MARKER_KINDS = ("type", "struct", "union", "enum", "func", "var", "const")


@dataclass
class TaggedSymbol:
    """A marker found in a translation unit.

    :param kind: Marker kind (``"func"``, ``"struct"``, ...).
    :param name: The tagged identifier.
    :param marker: The marker declaration itself.
    """

    kind: str
    name: str
    marker: Declaration


@dataclass
class ExtractedDecl:
    """One extracted declaration.

    :param kind: Marker kind it came from.
    :param name: The tagged identifier.
    :param text: Declaration text without the trailing ``;``.
    :param node: The composed node, or None for constants.
    :param value: Integer value for constants.
    """

    kind: str
    name: str
    text: str
    node: TypeNode | DeclNode | None = None
    value: int | None = None


@dataclass
class Extraction:
    """Everything extracted from one translation unit."""

    path: str
    items: list[ExtractedDecl] = field(default_factory=list)

    @property
    def declarations(self) -> list[ExtractedDecl]:
        return [item for item in self.items if item.kind != "const"]

    @property
    def constants(self) -> list[ExtractedDecl]:
        return [item for item in self.items if item.kind == "const"]


def parse_marker(name: str, prefix: str = DEFAULT_PREFIX) -> tuple[str, str] | None:
    """Split a marker name into ``(kind, identifier)``.

    Returns None if ``name`` is not a marker.

    :raises ExtractionError: If the name has the prefix but an unknown kind.
    """
    if not name.startswith(prefix):
        return None
    kind, sep, ident = name[len(prefix) :].partition("__")
    if not sep or not ident:
        return None
    if kind not in MARKER_KINDS:
        raise ExtractionError(f"Unknown marker kind {kind!r} in {name!r}")
    return kind, ident


def find_tagged(unit: TranslationUnit, prefix: str = DEFAULT_PREFIX) -> Iterator[TaggedSymbol]:
    """Yield the markers of ``unit`` in declaration order."""
    for decl in unit.declarations:
        name = getattr(decl, "name", None)
        if not name:
            continue
        parsed = parse_marker(name, prefix)
        if parsed is None:
            continue
        kind, ident = parsed
        yield TaggedSymbol(kind=kind, name=ident, marker=decl)


def format_constant(name: str, value: int) -> str:
    """Format an integer constant as an assignment."""
    return f"{name} = {value}"


def is_reserved_typedef(td: Typedef) -> bool:
    """True for implementation-reserved typedef names (``__time_t``, ``_G_fpos_t``).

    Compiler builtins such as ``__builtin_va_list`` have no underlying type
    and are never expanded; they print by name.
    """
    if td.underlying is None:
        return False
    return td.name.startswith("__") or (len(td.name) > 1 and td.name[0] == "_" and td.name[1].isupper())


def extract(
    unit: TranslationUnit,
    prefix: str = DEFAULT_PREFIX,
    already_defined: MutableSet[AggregateIdentity] | None = None,
    resolve_reserved: bool = True,
) -> Extraction:
    """Compose a declaration for every marker in ``unit``.

    :param unit: Resolved translation unit from a parser backend.
    :param prefix: Marker prefix.
    :param already_defined: Aggregate identities emitted earlier in the same
        output; shared by every composition of this extraction.
    :param resolve_reserved: Replace references to reserved typedefs with
        their underlying types, so the output does not depend on
        implementation-internal names.
    :returns: The extracted declarations in marker order.
    :raises ExtractionError: If a marker's target cannot be found.
    """
    defined: MutableSet[AggregateIdentity] = set() if already_defined is None else already_defined
    expand = is_reserved_typedef if resolve_reserved else None
    extraction = Extraction(path=unit.path)

    for tagged in find_tagged(unit, prefix):
        logger.debug("Extracting %s %s", tagged.kind, tagged.name)
        if tagged.kind == "const":
            extraction.items.append(_extract_constant(tagged))
            continue

        subject, policy = _subject(unit, tagged)
        text = compose(subject, policy, defined, expand_typedef=expand)
        extraction.items.append(ExtractedDecl(tagged.kind, tagged.name, text, node=subject))

    logger.debug("Extracted %d declarations from %s", len(extraction.items), unit.path)
    return extraction


def _subject(unit: TranslationUnit, tagged: TaggedSymbol) -> tuple[TypeNode | DeclNode, SubjectNameResolver | None]:
    if tagged.kind in ("func", "var"):
        decl = _marker_target(unit, tagged)
        changes: dict[str, object] = {}
        if decl.is_function and decl.storage is Storage.EXTERN:
            # extern is implied for function declarations
            changes["storage"] = Storage.NONE
        if decl.name != tagged.name and decl.assembler_name is None:
            # Renamed by a macro: print the public name, link the real symbol.
            changes["assembler_name"] = decl.name
        if changes:
            decl = dataclasses.replace(decl, **changes)
        return decl, SubjectNameResolver(decl, tagged.name)

    marker = tagged.marker
    if not isinstance(marker, Typedef) or marker.underlying is None:
        raise ExtractionError(f"Marker for {tagged.kind} {tagged.name!r} is not a typedef")
    target = _strip_qualifiers(marker.underlying)

    if tagged.kind == "type":
        if isinstance(target, Typedef):
            return target, None
        # Builtin type names (cdecl_type(int)) have no alias to declare.
        raise ExtractionError(f"{tagged.name!r} is not a typedef name")

    if not isinstance(target, Aggregate) or target.kind != tagged.kind:
        raise ExtractionError(f"{tagged.name!r} is not a {tagged.kind} tag")
    return target, None


def _marker_target(unit: TranslationUnit, tagged: TaggedSymbol) -> DeclNode:
    """The declaration a func/var marker points at.

    Markers built by ``ffi-cdecl.h`` record their target directly; otherwise
    the unit is searched by the tagged name.
    """
    marker = tagged.marker
    target = marker.referenced if isinstance(marker, DeclNode) else None
    if target is None:
        found = unit.find(tagged.name)
        target = found if isinstance(found, DeclNode) else None
    if target is None:
        raise ExtractionError(f"No declaration found for {tagged.kind} {tagged.name!r}")
    if tagged.kind == "func" and not target.is_function:
        raise ExtractionError(f"{tagged.name!r} is not a function")
    if tagged.kind == "var" and target.is_function:
        raise ExtractionError(f"{tagged.name!r} is a function, not a variable")
    return target


def _extract_constant(tagged: TaggedSymbol) -> ExtractedDecl:
    marker = tagged.marker
    if not isinstance(marker, DeclNode) or marker.value is None:
        raise ExtractionError(f"Constant {tagged.name!r} has no integer value")
    return ExtractedDecl(
        kind="const",
        name=tagged.name,
        text=format_constant(tagged.name, marker.value),
        value=marker.value,
    )


def _strip_qualifiers(t: TypeNode) -> TypeNode:
    while isinstance(t, Qualified):
        t = t.base
    return t
