"""Type Model for C declarations.

This module defines the resolved, read-only description of C types and
declarations that parser backends produce and that the declarator composer
consumes. Nothing here knows how to print C; see :mod:`ffi_cdecl.composer`.

Type Hierarchy
--------------
Type nodes form a recursive structure:

* :class:`Scalar` - builtin arithmetic type or ``void``
* :class:`Qualified` - ``const`` / ``volatile`` / ``restrict`` wrapper
* :class:`Pointer` - pointer to another type
* :class:`Array` - fixed or incomplete array
* :class:`FunctionType` - function signature
* :class:`Aggregate` - struct, union or enum
* :class:`Typedef` - named alias
* :class:`Unsupported` - a construct the model cannot express

Declarations
------------
* :class:`DeclNode` - a named function or variable
* :class:`TranslationUnit` - all top-level declarations of one parse

Example
-------
``char (*name)[10]`` is modelled as::

    Pointer(Array(Scalar(ScalarKind.CHAR), 10))
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, Union

# =============================================================================
# Source Location
# =============================================================================


@dataclass
class SourceLocation:
    """Location in a source file, kept for diagnostics.

    :param file: Path to the source file.
    :param line: Line number (1-indexed).
    :param column: Column number (1-indexed), or None if unknown.
    """

    file: str
    line: int
    column: int | None = None

    def __str__(self) -> str:
        if self.column is not None:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


# =============================================================================
# Type Nodes
# =============================================================================


class ScalarKind(enum.Enum):
    """Builtin C types, valued by their canonical spelling."""

    VOID = "void"
    BOOL = "_Bool"
    CHAR = "char"
    SCHAR = "signed char"
    UCHAR = "unsigned char"
    SHORT = "short"
    USHORT = "unsigned short"
    INT = "int"
    UINT = "unsigned int"
    LONG = "long"
    ULONG = "unsigned long"
    LONGLONG = "long long"
    ULONGLONG = "unsigned long long"
    INT128 = "__int128"
    UINT128 = "unsigned __int128"
    FLOAT = "float"
    DOUBLE = "double"
    LONGDOUBLE = "long double"

    @property
    def is_integer(self) -> bool:
        return self not in (ScalarKind.VOID, ScalarKind.FLOAT, ScalarKind.DOUBLE, ScalarKind.LONGDOUBLE)

    @property
    def is_floating(self) -> bool:
        return self in (ScalarKind.FLOAT, ScalarKind.DOUBLE, ScalarKind.LONGDOUBLE)

    @property
    def is_signed(self) -> bool:
        """Whether values of this kind are signed.

        Plain ``char`` is reported as signed, which matches every ABI
        the libclang backend targets except ARM and PowerPC Linux.
        """
        return self in _SIGNED_KINDS


_SIGNED_KINDS = frozenset(
    {
        ScalarKind.CHAR,
        ScalarKind.SCHAR,
        ScalarKind.SHORT,
        ScalarKind.INT,
        ScalarKind.LONG,
        ScalarKind.LONGLONG,
        ScalarKind.INT128,
        ScalarKind.FLOAT,
        ScalarKind.DOUBLE,
        ScalarKind.LONGDOUBLE,
    }
)


@dataclass
class Scalar:
    """A builtin type such as ``int`` or ``unsigned long``.

    :param kind: The builtin kind.
    """

    kind: ScalarKind

    def __str__(self) -> str:
        return self.kind.value


@dataclass
class Qualified:
    """A qualified view of another type.

    Qualifiers on a :class:`Pointer` base qualify the pointer itself
    (``int *const``); on any other base they qualify the base type
    (``const int``).

    :param base: The type being qualified.
    :param const: ``const`` qualifier.
    :param volatile: ``volatile`` qualifier.
    :param restrict: ``restrict`` qualifier (pointers only in valid C).
    """

    base: TypeNode
    const: bool = False
    volatile: bool = False
    restrict: bool = False

    @property
    def qualifiers(self) -> list[str]:
        quals = []
        if self.const:
            quals.append("const")
        if self.volatile:
            quals.append("volatile")
        if self.restrict:
            quals.append("restrict")
        return quals


@dataclass
class Pointer:
    """Pointer to another type.

    :param pointee: The type pointed to.
    """

    pointee: TypeNode


@dataclass
class Array:
    """Fixed-size or incomplete array.

    :param element: Element type.
    :param length: Number of elements, or None for an incomplete array
        (``char name[]``).
    """

    element: TypeNode
    length: int | None = None


@dataclass
class Parameter:
    """Function parameter.

    :param name: Parameter name, or None for an unnamed parameter.
    :param type: Parameter type.
    """

    name: str | None
    type: TypeNode


@dataclass
class FunctionType:
    """Function signature.

    :param return_type: Return type.
    :param parameters: Ordered parameters.
    :param variadic: True if the parameter list ends with ``...``.
    :param prototyped: False for K&R declarations (``int f()``), which
        print an empty parameter list instead of ``(void)``.
    """

    return_type: TypeNode
    parameters: list[Parameter] = field(default_factory=list)
    variadic: bool = False
    prototyped: bool = True


@dataclass
class Member:
    """Struct or union member.

    :param name: Member name, or None for anonymous struct/union members
        and unnamed bit-fields.
    :param type: Member type.
    :param bit_width: Bit-field width, or None for an ordinary member.
    """

    name: str | None
    type: TypeNode
    bit_width: int | None = None


@dataclass
class Enumerator:
    """Enumeration constant with its resolved value."""

    name: str
    value: int


AGGREGATE_KINDS = ("struct", "union", "enum")


@dataclass(eq=False)
class Aggregate:
    """Struct, union or enum type.

    Aggregates compare by identity so that self-referential graphs
    (``struct node { struct node *next; }``) can be built and walked.
    Two aggregate nodes denote the same C type when their :attr:`identity`
    matches.

    :param kind: ``"struct"``, ``"union"`` or ``"enum"``.
    :param name: Tag name, or None when anonymous.
    :param members: :class:`Member` list for struct/union,
        :class:`Enumerator` list for enum, or None if the type is
        incomplete (only forward-declared).
    :param anonymous: True if the aggregate has no tag and must be
        expanded at every point of use.
    """

    kind: str
    name: str | None
    members: list[Member] | list[Enumerator] | None = None
    anonymous: bool = False

    @property
    def identity(self) -> tuple[str, str] | None:
        """Key used to track definitions; None for anonymous aggregates."""
        if self.anonymous or not self.name:
            return None
        return (self.kind, self.name)

    @property
    def is_complete(self) -> bool:
        return self.members is not None

    def __str__(self) -> str:
        return f"{self.kind} {self.name or '(anonymous)'}"


@dataclass(eq=False)
class Typedef:
    """Named type alias.

    Used as a composition subject it declares the alias; referenced from
    another type it prints as its name only.

    :param name: Alias name.
    :param underlying: Aliased type. None for compiler builtins such as
        ``__builtin_va_list``, which can only be referenced by name.
    :param location: Where the alias was declared.
    """

    name: str
    underlying: TypeNode | None = None
    location: SourceLocation | None = None

    def __str__(self) -> str:
        return self.name


@dataclass
class Unsupported:
    """A type the model cannot represent faithfully.

    The composer refuses to print these rather than guess.

    :param spelling: The front end's spelling of the type.
    :param reason: Why it is unsupported (e.g. ``"variable length array"``).
    """

    spelling: str
    reason: str = ""


TypeNode = Union[Scalar, Qualified, Pointer, Array, FunctionType, Aggregate, Typedef, Unsupported]


# =============================================================================
# Declarations
# =============================================================================


class Storage(enum.Enum):
    """Storage class of a declaration."""

    NONE = "none"
    EXTERN = "extern"
    STATIC = "static"


@dataclass(eq=False)
class DeclNode:
    """A named function or variable declaration.

    :param name: Declared (source) name.
    :param type: Declared type.
    :param assembler_name: Link-time symbol, if it was set with an
        assembler label (``__asm__("...")``).
    :param storage: Storage class.
    :param value: Folded integer initializer, for constant variables.
    :param referenced: Function or variable the initializer takes the
        address of (``= &(id)``), as recorded for marker variables.
    :param location: Where the declaration appears.

    Example
    -------
    ::

        DeclNode(
            "basename",
            FunctionType(Pointer(Scalar(ScalarKind.CHAR)), [Parameter(None, Pointer(Scalar(ScalarKind.CHAR)))]),
            assembler_name="__xpg_basename",
        )
    """

    name: str
    type: TypeNode
    assembler_name: str | None = None
    storage: Storage = Storage.NONE
    value: int | None = None
    referenced: DeclNode | None = None
    location: SourceLocation | None = None

    @property
    def is_function(self) -> bool:
        return isinstance(self.type, FunctionType)


Declaration = Union[DeclNode, Typedef, Aggregate]


@dataclass
class TranslationUnit:
    """All top-level declarations of one parsed source file.

    :param path: Path of the parsed file.
    :param declarations: Declarations in source order.
    """

    path: str
    declarations: list[Declaration] = field(default_factory=list)

    def find(self, name: str) -> Declaration | None:
        """Return the last top-level declaration called ``name``."""
        for decl in reversed(self.declarations):
            if getattr(decl, "name", None) == name:
                return decl
        return None

    def __str__(self) -> str:
        return f"TranslationUnit({self.path}, {len(self.declarations)} declarations)"


# =============================================================================
# Parser Backend Protocol
# =============================================================================


class ParserBackend(Protocol):  # pylint: disable=too-few-public-methods
    """Protocol for front ends that build the Type Model from C source.

    Example
    -------
    ::

        from ffi_cdecl.backends import get_backend

        backend = get_backend()
        unit = backend.parse('#include "ffi-cdecl.h"\\ncdecl_type(size_t)', "unit.c")
    """

    def parse(
        self,
        code: str,
        filename: str,
        include_dirs: list[str] | None = None,
        extra_args: list[str] | None = None,
    ) -> TranslationUnit:
        """Parse C source and return its resolved declarations.

        :param code: Source code to parse.
        :param filename: Name used for diagnostics; need not exist on disk.
        :param include_dirs: Directories searched for ``#include`` files.
        :param extra_args: Additional compiler arguments.
        :returns: The translation unit's top-level declarations.
        :raises ffi_cdecl.errors.ParseError: If the source does not compile.
        """
        ...

    @property
    def name(self) -> str:
        """Human-readable name of this backend (e.g., ``"libclang"``)."""
        ...

    @property
    def supports_constants(self) -> bool:
        """Whether this backend folds integer initializers into ``DeclNode.value``."""
        ...
