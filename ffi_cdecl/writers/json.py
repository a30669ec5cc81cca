"""Serialize an extraction to JSON.

Each extracted item carries its composed text plus a structural dump of
the node it was composed from, for inspection, debugging or as input to
custom code generators.
"""

from __future__ import annotations

import json
from typing import Any

from ffi_cdecl.extract import ExtractedDecl, Extraction
from ffi_cdecl.ir import (
    Aggregate,
    Array,
    DeclNode,
    Enumerator,
    FunctionType,
    Member,
    Pointer,
    Qualified,
    Scalar,
    SourceLocation,
    Storage,
    Typedef,
    TypeNode,
    Unsupported,
)


def _type_to_dict(t: TypeNode | None, seen: set[int]) -> dict[str, Any]:
    """Convert a type node to a JSON-serializable dict.

    Aggregates already being dumped further up are emitted as references
    only, so self-referential types terminate.
    """
    if t is None:
        return {"kind": "missing"}
    if isinstance(t, Scalar):
        return {"kind": "scalar", "name": t.kind.value}
    elif isinstance(t, Qualified):
        return {"kind": "qualified", "qualifiers": t.qualifiers, "base": _type_to_dict(t.base, seen)}
    elif isinstance(t, Pointer):
        return {"kind": "pointer", "pointee": _type_to_dict(t.pointee, seen)}
    elif isinstance(t, Array):
        d: dict[str, Any] = {"kind": "array", "element": _type_to_dict(t.element, seen)}
        if t.length is not None:
            d["length"] = t.length
        return d
    elif isinstance(t, FunctionType):
        d = {
            "kind": "function",
            "return_type": _type_to_dict(t.return_type, seen),
            "parameters": [_param_to_dict(p.name, p.type, seen) for p in t.parameters],
            "variadic": t.variadic,
        }
        if not t.prototyped:
            d["prototyped"] = False
        return d
    elif isinstance(t, Typedef):
        return {"kind": "typedef", "name": t.name}
    elif isinstance(t, Aggregate):
        return _aggregate_to_dict(t, seen)
    elif isinstance(t, Unsupported):
        d = {"kind": "unsupported", "spelling": t.spelling}
        if t.reason:
            d["reason"] = t.reason
        return d
    else:
        return {"kind": "unknown", "repr": repr(t)}


def _param_to_dict(name: str | None, t: TypeNode, seen: set[int]) -> dict[str, Any]:
    d: dict[str, Any] = {"type": _type_to_dict(t, seen)}
    if name:
        d["name"] = name
    return d


def _aggregate_to_dict(agg: Aggregate, seen: set[int]) -> dict[str, Any]:
    d: dict[str, Any] = {"kind": agg.kind}
    if agg.name and not agg.anonymous:
        d["name"] = agg.name
    if id(agg) in seen or agg.members is None:
        return d

    seen.add(id(agg))
    try:
        if agg.kind == "enum":
            d["enumerators"] = [{"name": e.name, "value": e.value} for e in agg.members if isinstance(e, Enumerator)]
        else:
            d["members"] = [_member_to_dict(m, seen) for m in agg.members if isinstance(m, Member)]
    finally:
        seen.discard(id(agg))
    return d


def _member_to_dict(m: Member, seen: set[int]) -> dict[str, Any]:
    d = _param_to_dict(m.name, m.type, seen)
    if m.bit_width is not None:
        d["bit_width"] = m.bit_width
    return d


def _location_to_dict(loc: SourceLocation) -> dict[str, Any]:
    """Convert a SourceLocation to a JSON-serializable dict."""
    d: dict[str, Any] = {"file": loc.file, "line": loc.line}
    if loc.column is not None:
        d["column"] = loc.column
    return d


def _node_to_dict(node: TypeNode | DeclNode) -> dict[str, Any]:
    if isinstance(node, DeclNode):
        d: dict[str, Any] = {"name": node.name, "type": _type_to_dict(node.type, set())}
        if node.assembler_name:
            d["assembler_name"] = node.assembler_name
        if node.storage is not Storage.NONE:
            d["storage"] = node.storage.value
        if node.location is not None:
            d["location"] = _location_to_dict(node.location)
        return d
    if isinstance(node, Typedef):
        d = {"kind": "typedef", "name": node.name, "underlying": _type_to_dict(node.underlying, set())}
        if node.location is not None:
            d["location"] = _location_to_dict(node.location)
        return d
    return _type_to_dict(node, set())


def _item_to_dict(item: ExtractedDecl) -> dict[str, Any]:
    d: dict[str, Any] = {"kind": item.kind, "name": item.name, "text": item.text}
    if item.value is not None:
        d["value"] = item.value
    if item.node is not None:
        d["node"] = _node_to_dict(item.node)
    return d


def extraction_to_json_dict(extraction: Extraction) -> dict[str, Any]:
    """Convert an extraction to a JSON-serializable dict (no string encoding).

    :param extraction: Extracted declarations.
    :returns: Dict suitable for ``json.dumps()``.
    """
    return {
        "path": extraction.path,
        "items": [_item_to_dict(item) for item in extraction.items],
    }


def extraction_to_json(extraction: Extraction, indent: int | None = 2) -> str:
    """Convert an extraction to a JSON string.

    :param extraction: Extracted declarations.
    :param indent: JSON indentation level. None for compact output.
    """
    return json.dumps(extraction_to_json_dict(extraction), indent=indent)


class JsonWriter:
    """Writer that serializes extractions to JSON.

    Options
    -------
    indent : int | None
        JSON indentation level. Defaults to 2. None for compact output.

    Example
    -------
    ::

        from ffi_cdecl.writers import get_writer

        writer = get_writer("json", indent=4)
        json_string = writer.write(extraction)
    """

    def __init__(self, indent: int | None = 2) -> None:
        self._indent = indent

    def write(self, extraction: Extraction) -> str:
        """Convert an extraction to a JSON string."""
        return extraction_to_json(extraction, indent=self._indent)

    @property
    def name(self) -> str:
        """Human-readable name of this writer."""
        return "json"

    @property
    def format_description(self) -> str:
        """Short description of the output format."""
        return "JSON dump of extracted declarations and their types"


# Bottom-of-module self-registration. See ffi_cdecl/writers/cdecl.py
from ffi_cdecl.writers import register_writer  # noqa: E402

register_writer(
    "json",
    JsonWriter,
    description="JSON dump of extracted declarations and their types",
)
