"""Generate a LuaJIT FFI module from extracted declarations.

Declarations go inside ``ffi.cdef[[ ... ]]``. Constants are not C
declarations, so they are assigned on a module table whose missing keys
fall through to ``ffi.C``::

    local C = setmetatable({}, {__index = ffi.C})
    C.RLIMIT_CORE = 4

    return C

Lua numbers are doubles. Integers that a double cannot hold exactly are
written as ``LL``/``ULL`` cdata literals so LuaJIT keeps all 64 bits.
"""

from __future__ import annotations

from ffi_cdecl.extract import ExtractedDecl, Extraction

# Largest magnitude a double represents exactly
_MAX_EXACT = 2**53
_INT64_MAX = 2**63 - 1


def lua_integer(value: int) -> str:
    """Format an integer as a Lua literal without losing precision."""
    if -_MAX_EXACT <= value <= _MAX_EXACT:
        return str(value)
    if value > _INT64_MAX:
        return f"{value}ULL"
    return f"{value}LL"


def _constant_to_lua(item: ExtractedDecl, table: str) -> str:
    value = item.value if item.value is not None else 0
    return f"{table}.{item.name} = {lua_integer(value)}"


def extraction_to_lua(extraction: Extraction, table_name: str = "C") -> str:
    """Convert an extraction to a LuaJIT FFI module.

    :param extraction: Extracted declarations.
    :param table_name: Name of the module table holding the constants.
    :returns: A complete Lua file returning the module table.
    """
    output_lines: list[str] = []
    output_lines.append("-- Auto-generated LuaJIT FFI bindings")
    output_lines.append(f"-- Source: {extraction.path}")
    output_lines.append("-- Generated by ffi-cdecl")
    output_lines.append("")
    output_lines.append('local ffi = require("ffi")')
    output_lines.append("")

    output_lines.append("ffi.cdef[[")
    for item in extraction.declarations:
        output_lines.append(f"{item.text};")
    output_lines.append("]]")
    output_lines.append("")

    output_lines.append(f"local {table_name} = setmetatable({{}}, {{__index = ffi.C}})")
    constants = extraction.constants
    if constants:
        output_lines.append("")
        for item in constants:
            output_lines.append(_constant_to_lua(item, table_name))
    output_lines.append("")
    output_lines.append(f"return {table_name}")
    output_lines.append("")

    return "\n".join(output_lines)


class LuaWriter:
    """Writer that generates LuaJIT FFI modules.

    Options
    -------
    table_name : str
        Name of the returned module table. Defaults to ``"C"``.

    Example
    -------
    ::

        from ffi_cdecl.writers import get_writer

        writer = get_writer("lua")
        lua_source = writer.write(extraction)
    """

    def __init__(self, table_name: str = "C") -> None:
        if not table_name.isidentifier():
            raise ValueError(f"Invalid Lua table name: {table_name!r}")
        self._table_name = table_name

    def write(self, extraction: Extraction) -> str:
        """Convert an extraction to a LuaJIT FFI module."""
        return extraction_to_lua(extraction, table_name=self._table_name)

    @property
    def name(self) -> str:
        return "lua"

    @property
    def format_description(self) -> str:
        return "LuaJIT FFI bindings"


# Bottom-of-module self-registration. See ffi_cdecl/writers/cdecl.py
from ffi_cdecl.writers import register_writer  # noqa: E402

register_writer("lua", LuaWriter, description="LuaJIT FFI bindings")
