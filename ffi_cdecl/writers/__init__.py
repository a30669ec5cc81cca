"""Writers that turn an extraction into an output file.

Available Writers
-----------------
cdecl
    Plain C declarations, one per line.
lua
    LuaJIT module wrapping the declarations in ``ffi.cdef``.
json
    JSON dump of the extracted declarations and their types.

Example
-------
::

    from ffi_cdecl.writers import get_writer, render

    lua_source = render(extraction, "lua", table_name="posix")
    c_source = get_writer().write(extraction)    # default writer (cdecl)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ffi_cdecl.extract import Extraction

__all__ = [
    "WriterBackend",
    "get_default_writer",
    "get_writer",
    "get_writer_info",
    "is_writer_available",
    "list_writers",
    "register_writer",
    "render",
]


@runtime_checkable
class WriterBackend(Protocol):
    """Interface for output writers.

    Options such as a Lua table name or a JSON indent are constructor
    parameters of the concrete class; :meth:`write` only takes the
    extraction.
    """

    def write(self, extraction: Extraction) -> str:
        """Render ``extraction`` as the contents of one output file."""
        ...

    @property
    def name(self) -> str:
        """Registry name of this writer (e.g. ``"lua"``)."""
        ...

    @property
    def format_description(self) -> str:
        """Short description of the output format."""
        ...


@dataclass(frozen=True)
class _WriterEntry:
    writer_class: type[WriterBackend]
    description: str


_writers: dict[str, _WriterEntry] = {}
_default_writer: str | None = None
_writers_loaded = False


def _first_doc_line(cls: type) -> str:
    doc = (cls.__doc__ or "").strip()
    return doc.splitlines()[0] if doc else ""


def register_writer(
    name: str,
    writer_class: type[WriterBackend],
    is_default: bool = False,
    description: str | None = None,
) -> None:
    """Add a writer to the registry.

    Writer modules call this at the bottom of the module. The first writer
    registered is the default until one registers with ``is_default``.

    :param description: Shown by :func:`get_writer_info`. Defaults to the
        first line of the class docstring.
    :raises ValueError: If ``name`` is taken.
    """
    global _default_writer  # pylint: disable=global-statement
    if name in _writers:
        raise ValueError(f"Writer already registered: {name!r}")
    if description is None:
        description = _first_doc_line(writer_class)
    _writers[name] = _WriterEntry(writer_class, description)
    if is_default or _default_writer is None:
        _default_writer = name


def list_writers() -> list[str]:
    """Names of the registered writers, in registration order."""
    _ensure_writers_loaded()
    return list(_writers)


def is_writer_available(name: str) -> bool:
    _ensure_writers_loaded()
    return name in _writers


def get_writer_info() -> list[dict[str, str | bool]]:
    """Describe every registered writer without instantiating it.

    :returns: One dict per writer with keys ``name``, ``description`` and
        ``is_default``.
    """
    _ensure_writers_loaded()
    return [
        {"name": name, "description": entry.description, "is_default": name == _default_writer}
        for name, entry in _writers.items()
    ]


def get_default_writer() -> str:
    """Name of the writer used when none is requested.

    :raises ValueError: If no writers are registered.
    """
    _ensure_writers_loaded()
    if _default_writer is None:
        raise ValueError("No writers available")
    return _default_writer


def get_writer(name: str | None = None, **options: object) -> WriterBackend:
    """Instantiate a writer, forwarding ``options`` to its constructor.

    :param name: Registry name, or None for the default writer.
    :raises ValueError: If the writer is unknown or rejects an option value.
    """
    if name is None:
        name = get_default_writer()
    else:
        _ensure_writers_loaded()
    entry = _writers.get(name)
    if entry is None:
        available = ", ".join(_writers) or "(none)"
        raise ValueError(f"Unknown writer: {name!r}. Available: {available}")
    return entry.writer_class(**options)


def render(extraction: Extraction, name: str | None = None, **options: object) -> str:
    """Render ``extraction`` with the named writer in one call."""
    return get_writer(name, **options).write(extraction)


def _ensure_writers_loaded() -> None:
    """Import the bundled writer modules so they register themselves.

    The writer modules import :func:`register_writer` from this package,
    so they are only imported on first use of the registry.
    """
    global _writers_loaded  # pylint: disable=global-statement
    if _writers_loaded:
        return
    _writers_loaded = True

    # cdecl registers first and is the default
    import ffi_cdecl.writers.cdecl  # noqa: F401
    import ffi_cdecl.writers.json  # noqa: F401
    import ffi_cdecl.writers.lua  # noqa: F401
