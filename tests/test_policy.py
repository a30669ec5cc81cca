"""Tests for name resolution policies."""

from __future__ import annotations

import pytest

from ffi_cdecl.ir import DeclNode, Scalar, ScalarKind, Typedef
from ffi_cdecl.policy import (
    CallableNameResolver,
    DefaultNameResolver,
    MappingNameResolver,
    NameResolver,
    SubjectNameResolver,
    as_resolver,
)

INT = Scalar(ScalarKind.INT)


class TestResolvers:
    def test_default_never_renames(self) -> None:
        assert DefaultNameResolver().resolve(DeclNode("x", INT)) is None

    def test_subject_matches_by_identity(self) -> None:
        decl = DeclNode("basename", INT)
        twin = DeclNode("basename", INT)
        resolver = SubjectNameResolver(decl, "basename_public")
        assert resolver.resolve(decl) == "basename_public"
        assert resolver.resolve(twin) is None

    def test_mapping_by_name(self) -> None:
        resolver = MappingNameResolver({"__time_t": "time_t"})
        assert resolver.resolve(Typedef("__time_t", INT)) == "time_t"
        assert resolver.resolve(Typedef("size_t", INT)) is None

    def test_mapping_ignores_nameless_nodes(self) -> None:
        assert MappingNameResolver({"int": "x"}).resolve(INT) is None

    def test_mapping_copies_input(self) -> None:
        mapping = {"a": "b"}
        resolver = MappingNameResolver(mapping)
        mapping["a"] = "c"
        assert resolver.resolve(Typedef("a", INT)) == "b"

    def test_callable(self) -> None:
        resolver = CallableNameResolver(lambda node: node.name.upper())
        assert resolver.resolve(Typedef("abc", INT)) == "ABC"

    @pytest.mark.parametrize(
        "resolver",
        [DefaultNameResolver(), SubjectNameResolver(None, "x"), MappingNameResolver({}), CallableNameResolver(str)],
    )
    def test_all_satisfy_protocol(self, resolver: object) -> None:
        assert isinstance(resolver, NameResolver)


class TestAsResolver:
    def test_none_gives_default(self) -> None:
        assert isinstance(as_resolver(None), DefaultNameResolver)

    def test_resolver_passes_through(self) -> None:
        resolver = MappingNameResolver({})
        assert as_resolver(resolver) is resolver

    def test_function_is_wrapped(self) -> None:
        resolver = as_resolver(lambda node: "n")
        assert isinstance(resolver, CallableNameResolver)
        assert resolver.resolve(INT) == "n"

    def test_rejects_non_callable(self) -> None:
        with pytest.raises(TypeError, match="NameResolver or callable"):
            as_resolver("basename")  # type: ignore[arg-type]
