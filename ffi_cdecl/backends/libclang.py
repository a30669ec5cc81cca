# pylint: disable=cyclic-import
# Cyclic import is intentional - backends register themselves when loaded
"""libclang-based parser backend.

This backend runs LLVM's C front end over the source, lets it perform all
semantic resolution (preprocessing, typedef resolution, layout, constant
folding), and converts the result into the :mod:`ffi_cdecl.ir` Type Model.

Requirements
------------
* The ``libclang`` Python distribution, which provides ``clang.cindex`` and
  bundles a matching shared library. ``FFI_CDECL_LIBCLANG`` may point at a
  different ``libclang.so``/``.dylib``/``.dll``.
* A ``clang`` executable on ``PATH`` (or ``FFI_CDECL_CLANG``) is used to find
  the compiler's builtin include directories, so ``<stddef.h>`` resolves.

Example
-------
::

    from ffi_cdecl.backends.libclang import LibclangBackend

    backend = LibclangBackend()
    unit = backend.parse(code, "C.c", extra_args=["-D_XOPEN_SOURCE=700"])
"""

from __future__ import annotations

import ctypes
import glob
import logging
import os
import subprocess
import sys
from importlib import resources

import clang.cindex
from clang.cindex import CursorKind, StorageClass, TypeKind

from ffi_cdecl.backends import register_backend
from ffi_cdecl.errors import ParseError
from ffi_cdecl.ir import (
    Aggregate,
    Array,
    Declaration,
    DeclNode,
    Enumerator,
    FunctionType,
    Member,
    Parameter,
    Pointer,
    Qualified,
    Scalar,
    ScalarKind,
    SourceLocation,
    Storage,
    TranslationUnit,
    Typedef,
    TypeNode,
    Unsupported,
)

logger = logging.getLogger(__name__)

LIBCLANG_ENV = "FFI_CDECL_LIBCLANG"
CLANG_ENV = "FFI_CDECL_CLANG"

_SCALAR_KINDS: dict[TypeKind, ScalarKind] = {
    TypeKind.VOID: ScalarKind.VOID,
    TypeKind.BOOL: ScalarKind.BOOL,
    TypeKind.CHAR_S: ScalarKind.CHAR,
    TypeKind.CHAR_U: ScalarKind.CHAR,
    TypeKind.SCHAR: ScalarKind.SCHAR,
    TypeKind.UCHAR: ScalarKind.UCHAR,
    TypeKind.SHORT: ScalarKind.SHORT,
    TypeKind.USHORT: ScalarKind.USHORT,
    TypeKind.INT: ScalarKind.INT,
    TypeKind.UINT: ScalarKind.UINT,
    TypeKind.LONG: ScalarKind.LONG,
    TypeKind.ULONG: ScalarKind.ULONG,
    TypeKind.LONGLONG: ScalarKind.LONGLONG,
    TypeKind.ULONGLONG: ScalarKind.ULONGLONG,
    TypeKind.INT128: ScalarKind.INT128,
    TypeKind.UINT128: ScalarKind.UINT128,
    TypeKind.FLOAT: ScalarKind.FLOAT,
    TypeKind.DOUBLE: ScalarKind.DOUBLE,
    TypeKind.LONGDOUBLE: ScalarKind.LONGDOUBLE,
}

_UNSUPPORTED_KINDS: dict[TypeKind, str] = {
    TypeKind.VARIABLEARRAY: "variable length array",
    TypeKind.DEPENDENTSIZEDARRAY: "dependent sized array",
    TypeKind.COMPLEX: "complex type",
    TypeKind.VECTOR: "vector type",
    TypeKind.BLOCKPOINTER: "block pointer",
}

_RECORD_KINDS = {
    CursorKind.STRUCT_DECL: "struct",
    CursorKind.UNION_DECL: "union",
}

# CXEvalResultKind
_CXEVAL_INT = 1


def _get_libclang_search_paths() -> list[str]:
    """Get platform-specific paths to search for libclang.

    Only consulted when the library bundled with the ``libclang`` package
    (or found through the dynamic loader) cannot be loaded.
    """
    paths: list[str] = []

    if sys.platform == "darwin":
        paths.append("/opt/homebrew/opt/llvm/lib/libclang.dylib")
        paths.extend(sorted(glob.glob("/opt/homebrew/Cellar/llvm/*/lib/libclang.dylib"), reverse=True))
        paths.append("/usr/local/opt/llvm/lib/libclang.dylib")
        paths.append("/Library/Developer/CommandLineTools/usr/lib/libclang.dylib")
    elif sys.platform == "linux":
        paths.extend(sorted(glob.glob("/usr/lib/llvm-*/lib/libclang.so*"), reverse=True))
        paths.append("/usr/lib64/libclang.so")
        paths.append("/usr/lib/libclang.so")
        paths.append("/usr/local/lib/libclang.so")
    elif sys.platform == "win32":
        program_files = os.environ.get("PROGRAMFILES", r"C:\Program Files")
        paths.append(os.path.join(program_files, "LLVM", "bin", "libclang.dll"))

    return paths


def _find_libclang_path() -> str | None:
    for path in _get_libclang_search_paths():
        if os.path.isfile(path):
            return path
    return None


_libclang_configured: bool = False


def _configure_libclang() -> bool:
    """Configure clang.cindex to find libclang.

    Order: ``FFI_CDECL_LIBCLANG``, the default loader, then the platform
    search paths.

    :returns: True if libclang is available and configured.
    """
    global _libclang_configured  # pylint: disable=global-statement

    if not _libclang_configured:
        _libclang_configured = True
        explicit = os.environ.get(LIBCLANG_ENV)
        if explicit:
            logger.debug("Using libclang from %s=%s", LIBCLANG_ENV, explicit)
            clang.cindex.Config.set_library_file(explicit)
        elif not _can_load_libclang():
            path = _find_libclang_path()
            if path is None:
                return False
            logger.debug("Default libclang not loadable, using %s", path)
            clang.cindex.Config.set_library_file(path)

    return _can_load_libclang()


def _can_load_libclang() -> bool:
    try:
        clang.cindex.Config().get_cindex_library()
    except clang.cindex.LibclangError:
        return False
    return True


def is_system_libclang_available() -> bool:
    """Check if a libclang shared library can be loaded."""
    return _configure_libclang()


_system_include_cache: list[str] | None = None


def get_system_include_dirs() -> list[str]:
    """Get the compiler's include directories as ``-isystem`` arguments.

    Runs ``clang -v -x c -E /dev/null`` and parses the search list. The
    result is cached for the process.

    :returns: ``-isystem<path>`` arguments, or an empty list if clang is
        not available.
    """
    global _system_include_cache  # pylint: disable=global-statement

    if _system_include_cache is not None:
        return _system_include_cache

    dirs: list[str] = []
    clang_exe = os.environ.get(CLANG_ENV, "clang")
    null_file = "NUL" if sys.platform == "win32" else "/dev/null"
    try:
        result = subprocess.run(
            [clang_exe, "-v", "-x", "c", "-E", null_file],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Could not query %s for include directories: %s", clang_exe, e)
    else:
        in_includes = False
        for line in result.stderr.splitlines():
            if "#include <...> search starts here:" in line:
                in_includes = True
                continue
            if in_includes:
                if line.startswith("End of search list"):
                    break
                path = line.strip()
                if path and not path.endswith("(framework directory)"):
                    dirs.append(f"-isystem{path}")

    _system_include_cache = dirs
    return dirs


def get_marker_include_dir() -> str:
    """Directory holding ``ffi-cdecl.h``."""
    return str(resources.files("ffi_cdecl") / "include")


def _is_anonymous_name(name: str | None) -> bool:
    """Check if a name is empty or a synthesized anonymous name from libclang."""
    if not name:
        return True
    return "(unnamed" in name or "(anonymous" in name


def _evaluate_integer(cursor: clang.cindex.Cursor) -> int | None:
    """Fold a variable's initializer to an integer.

    Signedness follows the initializer's resolved type, so an unsigned
    ``-1`` comes back as its unsigned value.
    """
    lib = clang.cindex.conf.lib
    _declare_eval_prototypes(lib)
    result = lib.clang_Cursor_Evaluate(cursor)
    if not result:
        return None
    try:
        if lib.clang_EvalResult_getKind(result) != _CXEVAL_INT:
            return None
        if lib.clang_EvalResult_isUnsignedInt(result):
            return int(lib.clang_EvalResult_getAsUnsigned(result))
        return int(lib.clang_EvalResult_getAsLongLong(result))
    finally:
        lib.clang_EvalResult_dispose(result)


def _declare_eval_prototypes(lib: ctypes.CDLL) -> None:
    # The evaluation API is not wrapped by every clang.cindex release.
    lib.clang_Cursor_Evaluate.restype = ctypes.c_void_p
    lib.clang_Cursor_Evaluate.argtypes = [clang.cindex.Cursor]
    lib.clang_EvalResult_getKind.restype = ctypes.c_int
    lib.clang_EvalResult_getKind.argtypes = [ctypes.c_void_p]
    lib.clang_EvalResult_isUnsignedInt.restype = ctypes.c_uint
    lib.clang_EvalResult_isUnsignedInt.argtypes = [ctypes.c_void_p]
    lib.clang_EvalResult_getAsUnsigned.restype = ctypes.c_ulonglong
    lib.clang_EvalResult_getAsUnsigned.argtypes = [ctypes.c_void_p]
    lib.clang_EvalResult_getAsLongLong.restype = ctypes.c_longlong
    lib.clang_EvalResult_getAsLongLong.argtypes = [ctypes.c_void_p]
    lib.clang_EvalResult_dispose.restype = None
    lib.clang_EvalResult_dispose.argtypes = [ctypes.c_void_p]


class ClangTypeConverter:
    """Convert a libclang translation unit into the Type Model.

    Aggregates and typedefs are memoised per declaration and registered
    before their contents are converted, so a struct that points at itself
    becomes a cyclic graph instead of an infinite recursion.

    :param keep_parameter_names: Record parameter names of function
        declarations. Off by default; names in system headers are
        implementation details.
    """

    def __init__(self, keep_parameter_names: bool = False) -> None:
        self.keep_parameter_names = keep_parameter_names
        self._aggregates: dict[str, Aggregate] = {}
        self._typedefs: dict[str, Typedef] = {}
        self._decls: dict[str, DeclNode] = {}

    def convert(self, tu: clang.cindex.TranslationUnit) -> TranslationUnit:
        declarations: list[Declaration] = []
        emitted: set[int] = set()

        for cursor in tu.cursor.get_children():
            decl: Declaration | None = None
            kind = cursor.kind
            if kind in (CursorKind.FUNCTION_DECL, CursorKind.VAR_DECL):
                decl = self._convert_decl(cursor)
            elif kind == CursorKind.TYPEDEF_DECL:
                decl = self._typedef(cursor)
            elif kind in _RECORD_KINDS or kind == CursorKind.ENUM_DECL:
                agg = self._aggregate(cursor)
                decl = None if agg.anonymous else agg

            if decl is None:
                continue
            if isinstance(decl, DeclNode):
                declarations.append(decl)
            elif id(decl) not in emitted:
                emitted.add(id(decl))
                declarations.append(decl)

        logger.debug("Converted %d top-level declarations from %s", len(declarations), tu.spelling)
        return TranslationUnit(path=tu.spelling, declarations=declarations)

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def _convert_decl(self, cursor: clang.cindex.Cursor) -> DeclNode:
        name = cursor.spelling
        if cursor.kind == CursorKind.FUNCTION_DECL:
            decl_type = self._function_decl_type(cursor)
        else:
            decl_type = self.convert_type(cursor.type)

        value = None
        referenced = None
        if cursor.kind == CursorKind.VAR_DECL and cursor.type.is_const_qualified():
            value = _evaluate_integer(cursor)
            referenced = self._referenced_decl(cursor)

        decl = DeclNode(
            name=name,
            type=decl_type,
            assembler_name=self._assembler_name(cursor),
            storage=self._storage(cursor),
            value=value,
            referenced=referenced,
            location=self._get_location(cursor),
        )

        previous = self._decls.get(name)
        if previous is not None and decl.assembler_name is None:
            decl.assembler_name = previous.assembler_name
        self._decls[name] = decl
        return decl

    def _referenced_decl(self, cursor: clang.cindex.Cursor) -> DeclNode | None:
        """The function or variable whose address initializes ``cursor``."""
        for child in cursor.walk_preorder():
            if child.kind != CursorKind.DECL_REF_EXPR or child.referenced is None:
                continue
            target = child.referenced
            if target.kind not in (CursorKind.FUNCTION_DECL, CursorKind.VAR_DECL):
                continue
            if target.canonical == cursor.canonical:
                continue
            if target.spelling in self._decls:
                return self._decls[target.spelling]
            return self._convert_decl(target)
        return None

    def _function_decl_type(self, cursor: clang.cindex.Cursor) -> TypeNode:
        """Build a function type from the declaration's own result and parameters.

        Attributes on the declaration (``__attribute_malloc__``, ``__THROW``)
        wrap ``cursor.type`` in sugar that only resolves through the
        canonical type, which has lost its typedef names. The result type
        and parameter cursors still carry them.
        """
        canonical = cursor.type.get_canonical()
        if canonical.kind not in (TypeKind.FUNCTIONPROTO, TypeKind.FUNCTIONNOPROTO):
            return self.convert_type(cursor.type)

        return_type = self.convert_type(cursor.result_type)
        if canonical.kind == TypeKind.FUNCTIONNOPROTO:
            return FunctionType(return_type=return_type, prototyped=False)

        args = list(cursor.get_arguments())
        if len(args) == len(list(canonical.argument_types())):
            parameters = [
                Parameter((arg.spelling or None) if self.keep_parameter_names else None, self.convert_type(arg.type))
                for arg in args
            ]
        else:
            parameters = [Parameter(None, self.convert_type(a)) for a in canonical.argument_types()]
        return FunctionType(return_type=return_type, parameters=parameters, variadic=canonical.is_function_variadic())

    @staticmethod
    def _assembler_name(cursor: clang.cindex.Cursor) -> str | None:
        for child in cursor.get_children():
            if child.kind == CursorKind.ASM_LABEL_ATTR:
                # Labels that bypass the platform prefix start with \x01.
                return child.spelling.lstrip("\x01") or None
        return None

    @staticmethod
    def _storage(cursor: clang.cindex.Cursor) -> Storage:
        storage = cursor.storage_class
        if storage == StorageClass.EXTERN:
            return Storage.EXTERN
        if storage == StorageClass.STATIC:
            return Storage.STATIC
        return Storage.NONE

    def _typedef(self, cursor: clang.cindex.Cursor) -> Typedef:
        name = cursor.spelling
        td = self._typedefs.get(name)
        if td is not None:
            return td
        td = Typedef(name=name, location=self._get_location(cursor))
        self._typedefs[name] = td
        if td.location is None:
            # Predefined by the compiler (__builtin_va_list): its target
            # layout is not C the user can write, so keep it by name only.
            logger.debug("Keeping compiler builtin typedef %s opaque", name)
            return td
        td.underlying = self.convert_type(cursor.underlying_typedef_type)
        return td

    def _aggregate(self, cursor: clang.cindex.Cursor) -> Aggregate:
        canonical = cursor.canonical
        key = canonical.get_usr() or f"{canonical.kind.name}:{canonical.hash}"
        agg = self._aggregates.get(key)
        if agg is None:
            kind = "enum" if cursor.kind == CursorKind.ENUM_DECL else _RECORD_KINDS.get(cursor.kind, "struct")
            anonymous = _is_anonymous_name(cursor.spelling) or cursor.is_anonymous()
            agg = Aggregate(kind=kind, name=None if anonymous else cursor.spelling, anonymous=anonymous)
            self._aggregates[key] = agg

        if agg.members is None:
            definition = cursor.get_definition()
            if definition is not None:
                if agg.kind == "enum":
                    agg.members = [
                        Enumerator(child.spelling, child.enum_value)
                        for child in definition.get_children()
                        if child.kind == CursorKind.ENUM_CONSTANT_DECL
                    ]
                else:
                    # Placeholder first: members may point back at this aggregate.
                    agg.members = []
                    agg.members = [self._member(f) for f in definition.type.get_fields()]
        return agg

    def _member(self, cursor: clang.cindex.Cursor) -> Member:
        name = None if _is_anonymous_name(cursor.spelling) else cursor.spelling
        bit_width = cursor.get_bitfield_width() if cursor.is_bitfield() else None
        return Member(name=name, type=self.convert_type(cursor.type), bit_width=bit_width)

    # -------------------------------------------------------------------------
    # Types
    # -------------------------------------------------------------------------

    def convert_type(self, clang_type: clang.cindex.Type) -> TypeNode:
        """Convert a libclang type, keeping its local qualifiers."""
        base = self._convert_unqualified(clang_type)
        const = clang_type.is_const_qualified()
        volatile = clang_type.is_volatile_qualified()
        restrict = clang_type.is_restrict_qualified()
        if const or volatile or restrict:
            return Qualified(base, const=const, volatile=volatile, restrict=restrict)
        return base

    # pylint: disable=too-many-return-statements
    def _convert_unqualified(self, clang_type: clang.cindex.Type) -> TypeNode:
        kind = clang_type.kind

        if kind in _SCALAR_KINDS:
            return Scalar(_SCALAR_KINDS[kind])

        if kind == TypeKind.POINTER:
            return Pointer(self.convert_type(clang_type.get_pointee()))

        if kind == TypeKind.CONSTANTARRAY:
            return Array(self.convert_type(clang_type.element_type), clang_type.element_count)

        if kind == TypeKind.INCOMPLETEARRAY:
            return Array(self.convert_type(clang_type.element_type), None)

        if kind == TypeKind.FUNCTIONPROTO:
            return FunctionType(
                return_type=self.convert_type(clang_type.get_result()),
                parameters=[Parameter(None, self.convert_type(a)) for a in clang_type.argument_types()],
                variadic=clang_type.is_function_variadic(),
            )

        if kind == TypeKind.FUNCTIONNOPROTO:
            return FunctionType(return_type=self.convert_type(clang_type.get_result()), prototyped=False)

        if kind == TypeKind.TYPEDEF:
            return self._typedef(clang_type.get_declaration())

        if kind == TypeKind.ELABORATED:
            return self.convert_type(clang_type.get_named_type())

        if kind in (TypeKind.RECORD, TypeKind.ENUM):
            return self._aggregate(clang_type.get_declaration())

        if kind in _UNSUPPORTED_KINDS:
            return Unsupported(clang_type.spelling, _UNSUPPORTED_KINDS[kind])

        # Remaining sugar (typeof, attributed, parenthesised types) resolves
        # through the canonical type.
        canonical = clang_type.get_canonical()
        if canonical.kind != kind:
            return self.convert_type(canonical)

        return Unsupported(clang_type.spelling, f"unhandled type kind {kind.name}")

    @staticmethod
    def _get_location(cursor: clang.cindex.Cursor) -> SourceLocation | None:
        loc = cursor.location
        if loc.file:
            return SourceLocation(file=loc.file.name, line=loc.line, column=loc.column)
        return None


class LibclangBackend:
    """Parser backend using libclang.

    :param keep_parameter_names: Record parameter names of function declarations.
    :param use_default_includes: Add the compiler's builtin include directories.
    """

    def __init__(self, keep_parameter_names: bool = False, use_default_includes: bool = True) -> None:
        self.keep_parameter_names = keep_parameter_names
        self.use_default_includes = use_default_includes
        self._index: clang.cindex.Index | None = None

    @property
    def name(self) -> str:
        return "libclang"

    @property
    def supports_constants(self) -> bool:
        return True

    def _get_index(self) -> clang.cindex.Index:
        if self._index is None:
            self._index = clang.cindex.Index.create()
        return self._index

    def build_args(self, include_dirs: list[str] | None = None, extra_args: list[str] | None = None) -> list[str]:
        """Compiler arguments for a parse: language, includes, then user flags."""
        args = ["-x", "c"]
        for inc_dir in include_dirs or []:
            args.append(f"-I{inc_dir}")
        args.append(f"-I{get_marker_include_dir()}")
        if self.use_default_includes:
            args.extend(get_system_include_dirs())
        args.extend(extra_args or [])
        return args

    def parse(
        self,
        code: str,
        filename: str,
        include_dirs: list[str] | None = None,
        extra_args: list[str] | None = None,
    ) -> TranslationUnit:
        """Parse C source with libclang.

        :param code: Source to parse (not preprocessed).
        :param filename: File name for diagnostics and relative includes.
        :param include_dirs: Additional include directories.
        :param extra_args: Additional compiler arguments (``-D``, ``-std=``...).
        :returns: The converted translation unit.
        :raises ParseError: If clang reports errors.
        """
        args = self.build_args(include_dirs, extra_args)
        logger.debug("Parsing %s with args %s", filename, args)

        tu = self._get_index().parse(filename, args=args, unsaved_files=[(filename, code)])

        errors = []
        for diag in tu.diagnostics:
            if diag.severity >= clang.cindex.Diagnostic.Error:
                errors.append(f"{diag.location.file}:{diag.location.line}: {diag.spelling}")
            elif diag.severity >= clang.cindex.Diagnostic.Warning:
                logger.warning("%s:%s: %s", diag.location.file, diag.location.line, diag.spelling)
        if errors:
            raise ParseError("Parse error: " + "; ".join(errors))

        converter = ClangTypeConverter(keep_parameter_names=self.keep_parameter_names)
        return converter.convert(tu)


if is_system_libclang_available():
    register_backend("libclang", LibclangBackend)
