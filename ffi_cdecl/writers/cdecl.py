"""Write extracted declarations as plain C.

Declarations are emitted one per line with a terminating ``;``. Constants
are emitted as ``static const`` definitions, typed by their signedness so
that values like ``RLIM_INFINITY`` keep their full range.
"""

from __future__ import annotations

from ffi_cdecl.extract import ExtractedDecl, Extraction


def constant_to_c(item: ExtractedDecl) -> str:
    """Render a constant as a C definition."""
    value = item.value if item.value is not None else 0
    if value > 0x7FFFFFFFFFFFFFFF:
        return f"static const unsigned long long {item.name} = {value}ULL;"
    if -0x80000000 <= value <= 0x7FFFFFFF:
        return f"static const int {item.text};"
    if value == -0x8000000000000000:
        # 9223372036854775808 has no signed literal type
        return f"static const long long {item.name} = (-9223372036854775807LL - 1);"
    return f"static const long long {item.text};"


def extraction_to_c(extraction: Extraction, header_comment: bool = True) -> str:
    """Render every extracted item as C, in extraction order."""
    lines: list[str] = []
    if header_comment:
        lines.append(f"/* Generated by ffi-cdecl from {extraction.path} */")
    for item in extraction.items:
        if item.kind == "const":
            lines.append(constant_to_c(item))
        else:
            lines.append(f"{item.text};")
    return "\n".join(lines) + "\n"


class CdeclWriter:
    """Writer that emits plain C declarations.

    Options
    -------
    header_comment : bool
        Emit a leading comment naming the source file. Defaults to True.
    """

    def __init__(self, header_comment: bool = True) -> None:
        self._header_comment = header_comment

    def write(self, extraction: Extraction) -> str:
        """Convert an extraction to C source."""
        return extraction_to_c(extraction, header_comment=self._header_comment)

    @property
    def name(self) -> str:
        return "cdecl"

    @property
    def format_description(self) -> str:
        return "Plain C declarations"


# Bottom-of-module self-registration; writers have no external dependencies.
from ffi_cdecl.writers import register_writer  # noqa: E402

register_writer("cdecl", CdeclWriter, is_default=True, description="Plain C declarations")
