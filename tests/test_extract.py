"""Tests for marker selection and extraction."""

from __future__ import annotations

import pytest

from ffi_cdecl.errors import ExtractionError, UnsupportedTypeError
from ffi_cdecl.extract import (
    DEFAULT_PREFIX,
    Extraction,
    extract,
    find_tagged,
    format_constant,
    is_reserved_typedef,
    parse_marker,
)
from ffi_cdecl.ir import (
    Aggregate,
    DeclNode,
    FunctionType,
    Member,
    Parameter,
    Pointer,
    Qualified,
    Scalar,
    ScalarKind,
    Storage,
    TranslationUnit,
    Typedef,
    Unsupported,
)

INT = Scalar(ScalarKind.INT)


class TestParseMarker:
    def test_function_marker(self) -> None:
        assert parse_marker("cdecl_func__basename") == ("func", "basename")

    def test_identifier_with_double_underscore(self) -> None:
        assert parse_marker("cdecl_type____time_t") == ("type", "__time_t")

    def test_not_a_marker(self) -> None:
        assert parse_marker("clock_gettime") is None
        assert parse_marker("cdecl_func") is None
        assert parse_marker("cdecl_func__") is None

    def test_unknown_kind(self) -> None:
        with pytest.raises(ExtractionError, match="Unknown marker kind"):
            parse_marker("cdecl_macro__FOO")

    def test_custom_prefix(self) -> None:
        assert parse_marker("ffi_var__errno", prefix="ffi_") == ("var", "errno")
        assert parse_marker("cdecl_var__errno", prefix="ffi_") is None

    def test_default_prefix(self) -> None:
        assert DEFAULT_PREFIX == "cdecl_"


class TestHelpers:
    def test_format_constant(self) -> None:
        assert format_constant("RLIMIT_CORE", 4) == "RLIMIT_CORE = 4"
        assert format_constant("NEG", -1) == "NEG = -1"

    @pytest.mark.parametrize("name", ["__time_t", "__u8", "_G_fpos_t", "_IO_FILE"])
    def test_reserved_typedef(self, name: str) -> None:
        assert is_reserved_typedef(Typedef(name, INT))

    @pytest.mark.parametrize("name", ["time_t", "_", "_foo", "size_t", "clockid_t"])
    def test_public_typedef(self, name: str) -> None:
        assert not is_reserved_typedef(Typedef(name, INT))

    def test_compiler_builtin_not_expanded(self) -> None:
        assert not is_reserved_typedef(Typedef("__builtin_va_list"))

    def test_find_tagged_in_order(self, posix_unit: TranslationUnit) -> None:
        tagged = [(t.kind, t.name) for t in find_tagged(posix_unit)]
        assert tagged == [
            ("type", "clockid_t"),
            ("type", "time_t"),
            ("struct", "timespec"),
            ("var", "optarg"),
            ("var", "optind"),
            ("func", "basename"),
            ("func", "clock_gettime"),
            ("const", "RLIMIT_CORE"),
            ("const", "RLIM_INFINITY"),
        ]


class TestExtract:
    def test_posix_declarations(self, posix_extraction: Extraction) -> None:
        texts = [item.text for item in posix_extraction.items]
        assert texts == [
            "typedef int clockid_t",
            "typedef long time_t",
            "struct timespec { long tv_sec; long tv_nsec; }",
            "extern char *optarg",
            "extern int optind",
            'char *basename(char *) __asm__("__xpg_basename")',
            "int clock_gettime(int, struct timespec *)",
            "RLIMIT_CORE = 4",
            "RLIM_INFINITY = 18446744073709551615",
        ]

    def test_constants_and_declarations(self, posix_extraction: Extraction) -> None:
        assert [c.name for c in posix_extraction.constants] == ["RLIMIT_CORE", "RLIM_INFINITY"]
        assert posix_extraction.constants[0].value == 4
        assert posix_extraction.constants[0].node is None
        assert len(posix_extraction.declarations) == 7

    def test_path(self, posix_extraction: Extraction) -> None:
        assert posix_extraction.path == "C.c"

    def test_extern_dropped_from_function_only(self, posix_unit: TranslationUnit) -> None:
        extraction = extract(posix_unit)
        func = next(item for item in extraction.items if item.name == "basename")
        assert isinstance(func.node, DeclNode)
        assert func.node.storage is Storage.NONE
        # the unit itself is not modified
        assert posix_unit.find("__xpg_basename").storage is Storage.EXTERN
        assert posix_unit.find("__xpg_basename").assembler_name is None

    def test_macro_renamed_function_links_real_symbol(self, posix_extraction: Extraction) -> None:
        func = next(item for item in posix_extraction.items if item.name == "basename")
        assert func.node.name == "__xpg_basename"
        assert func.node.assembler_name == "__xpg_basename"
        assert func.text == 'char *basename(char *) __asm__("__xpg_basename")'

    def test_existing_assembler_label_kept(self) -> None:
        target = DeclNode("stat", FunctionType(INT), assembler_name="stat64", storage=Storage.EXTERN)
        unit = TranslationUnit("t.c", [target, DeclNode("cdecl_func__stat", Pointer(target.type), referenced=target)])
        assert extract(unit).items[0].text == 'int stat(void) __asm__("stat64")'

    def test_lookup_by_name_without_reference(self) -> None:
        target = DeclNode("getpid", FunctionType(INT), storage=Storage.EXTERN)
        unit = TranslationUnit("t.c", [target, DeclNode("cdecl_func__getpid", Pointer(target.type))])
        assert extract(unit).items[0].text == "int getpid(void)"

    def test_keep_reserved_typedefs(self, posix_unit: TranslationUnit) -> None:
        extraction = extract(posix_unit, resolve_reserved=False)
        texts = [item.text for item in extraction.items]
        assert texts[0] == "typedef __clockid_t clockid_t"
        assert texts[2] == "struct timespec { __time_t tv_sec; __syscall_slong_t tv_nsec; }"

    def test_shared_defined_set(self, posix_unit: TranslationUnit) -> None:
        defined = {("struct", "timespec")}
        extraction = extract(posix_unit, already_defined=defined)
        assert extraction.items[2].text == "struct timespec"

    def test_defined_set_updated(self, posix_unit: TranslationUnit) -> None:
        defined: set[tuple[str, str]] = set()
        extract(posix_unit, already_defined=defined)
        assert defined == {("struct", "timespec")}

    def test_struct_marked_twice_defined_once(self) -> None:
        timespec = Aggregate("struct", "timespec", [Member("tv_sec", Scalar(ScalarKind.LONG))])
        unit = TranslationUnit(
            "t.c",
            [
                timespec,
                Typedef("cdecl_struct__timespec", timespec),
                Typedef("cdecl_struct__timespec", timespec),
            ],
        )
        texts = [item.text for item in extract(unit).items]
        assert texts == ["struct timespec { long tv_sec; }", "struct timespec"]

    def test_anonymous_typedef_struct(self) -> None:
        anon = Aggregate("struct", None, [Member("quot", INT), Member("rem", INT)], anonymous=True)
        div_t = Typedef("div_t", anon)
        unit = TranslationUnit("t.c", [div_t, Typedef("cdecl_type__div_t", div_t)])
        assert extract(unit).items[0].text == "typedef struct { int quot; int rem; } div_t"

    def test_custom_prefix(self) -> None:
        unit = TranslationUnit(
            "t.c",
            [
                DeclNode("errno_value", INT, storage=Storage.EXTERN),
                DeclNode("ffi_var__errno_value", Pointer(INT)),
                DeclNode("cdecl_var__errno_value", Pointer(INT)),
            ],
        )
        items = extract(unit, prefix="ffi_").items
        assert [item.text for item in items] == ["extern int errno_value"]

    def test_va_list_stops_at_compiler_builtin(self) -> None:
        builtin = Typedef("__builtin_va_list")
        gnuc = Typedef("__gnuc_va_list", builtin)
        fmt = Pointer(Qualified(Scalar(ScalarKind.CHAR), const=True))
        vprintf = DeclNode(
            "vprintf",
            FunctionType(INT, [Parameter(None, fmt), Parameter(None, gnuc)]),
            storage=Storage.EXTERN,
        )
        marker = DeclNode("cdecl_func__vprintf", Pointer(vprintf.type), referenced=vprintf)
        unit = TranslationUnit("t.c", [vprintf, marker])
        assert extract(unit).items[0].text == "int vprintf(const char *, __builtin_va_list)"

    def test_unit_without_markers(self) -> None:
        assert extract(TranslationUnit("t.c", [Typedef("x", INT)])).items == []


class TestExtractErrors:
    def test_missing_function(self) -> None:
        unit = TranslationUnit("t.c", [DeclNode("cdecl_func__nowhere", Pointer(INT))])
        with pytest.raises(ExtractionError, match="nowhere"):
            extract(unit)

    def test_func_marker_on_variable(self) -> None:
        target = DeclNode("optind", INT, storage=Storage.EXTERN)
        unit = TranslationUnit("t.c", [target, DeclNode("cdecl_func__optind", Pointer(INT), referenced=target)])
        with pytest.raises(ExtractionError, match="not a function"):
            extract(unit)

    def test_var_marker_on_function(self) -> None:
        target = DeclNode("getpid", FunctionType(INT))
        unit = TranslationUnit("t.c", [target, DeclNode("cdecl_var__getpid", Pointer(target.type), referenced=target)])
        with pytest.raises(ExtractionError, match="is a function"):
            extract(unit)

    def test_builtin_type_marker(self) -> None:
        unit = TranslationUnit("t.c", [Typedef("cdecl_type__int", INT)])
        with pytest.raises(ExtractionError, match="not a typedef name"):
            extract(unit)

    def test_kind_mismatch(self) -> None:
        agg = Aggregate("struct", "s", [])
        unit = TranslationUnit("t.c", [agg, Typedef("cdecl_union__s", agg)])
        with pytest.raises(ExtractionError, match="not a union tag"):
            extract(unit)

    def test_marker_must_be_typedef(self) -> None:
        unit = TranslationUnit("t.c", [DeclNode("cdecl_struct__s", INT)])
        with pytest.raises(ExtractionError):
            extract(unit)

    def test_constant_without_value(self) -> None:
        unit = TranslationUnit("t.c", [DeclNode("cdecl_const__X", INT, storage=Storage.STATIC)])
        with pytest.raises(ExtractionError, match="no integer value"):
            extract(unit)

    def test_composer_errors_propagate(self) -> None:
        bad = DeclNode("v", Unsupported("int[n]", "variable length array"), storage=Storage.EXTERN)
        unit = TranslationUnit("t.c", [bad, DeclNode("cdecl_var__v", Pointer(INT))])
        with pytest.raises(UnsupportedTypeError):
            extract(unit)
