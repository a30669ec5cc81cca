"""Parser backends for ffi_cdecl.

A backend runs a real C front end over the source and converts its
resolved declarations into the :mod:`ffi_cdecl.ir` Type Model.

Available Backends
------------------
libclang
    LLVM clang front end. Requires a loadable libclang shared library
    (bundled with the ``libclang`` distribution).

Example
-------
::

    from ffi_cdecl.backends import get_backend

    backend = get_backend(keep_parameter_names=True)
    unit = backend.parse(code, "C.c", extra_args=["-D_GNU_SOURCE"])
"""

from __future__ import annotations

import logging

from ffi_cdecl.ir import ParserBackend

__all__ = [
    "get_backend",
    "get_backend_info",
    "get_default_backend",
    "is_backend_available",
    "list_backends",
    "register_backend",
]

logger = logging.getLogger(__name__)

# Backends shipped with the package, whether or not they loaded
KNOWN_BACKENDS = {
    "libclang": "C front end via LLVM libclang",
}

_backends: dict[str, type[ParserBackend]] = {}
_default_backend: str | None = None
_backends_loaded = False


def register_backend(name: str, backend_class: type[ParserBackend], is_default: bool = False) -> None:
    """Make a backend available to :func:`get_backend`.

    Backend modules call this on import, once they know their front end
    can be loaded. The first backend registered is the default until one
    registers with ``is_default``.
    """
    global _default_backend  # pylint: disable=global-statement
    _backends[name] = backend_class
    if is_default or _default_backend is None:
        _default_backend = name


def list_backends() -> list[str]:
    """Names of the backends that loaded."""
    _ensure_backends_loaded()
    return list(_backends)


def is_backend_available(name: str) -> bool:
    _ensure_backends_loaded()
    return name in _backends


def get_backend_info() -> list[dict[str, str | bool]]:
    """Describe the bundled backends, including ones that failed to load.

    :returns: One dict per backend with keys ``name``, ``available``,
        ``default`` and ``description``.
    """
    _ensure_backends_loaded()
    return [
        {
            "name": name,
            "available": name in _backends,
            "default": name == _default_backend,
            "description": description,
        }
        for name, description in KNOWN_BACKENDS.items()
    ]


def get_default_backend() -> str:
    """Name of the backend used when none is requested.

    :raises ValueError: If no backend could be loaded.
    """
    _ensure_backends_loaded()
    if _default_backend is None:
        raise ValueError("No backends available")
    return _default_backend


def get_backend(name: str | None = None, **options: object) -> ParserBackend:
    """Instantiate a parser backend, forwarding ``options`` to its constructor.

    :param name: Backend name, or None for the default backend.
    :raises ValueError: If the backend is unknown or could not be loaded.
    """
    if name is None:
        name = get_default_backend()
    else:
        _ensure_backends_loaded()
    backend_class = _backends.get(name)
    if backend_class is None:
        available = ", ".join(_backends) or "(none)"
        raise ValueError(f"Unknown backend: {name!r}. Available: {available}")
    return backend_class(**options)


def _ensure_backends_loaded() -> None:
    """Import the bundled backend modules so they register themselves.

    ffi_cdecl.backends.libclang imports :func:`register_backend` from this
    package, so it is only imported on first use of the registry. It
    registers only if its shared library loads.
    """
    global _backends_loaded  # pylint: disable=global-statement
    if _backends_loaded:
        return
    _backends_loaded = True

    try:
        import ffi_cdecl.backends.libclang  # noqa: F401
    except ImportError as e:
        logger.debug("libclang backend unavailable: %s", e)

    if not _backends:
        import warnings

        warnings.warn(
            "No parser backends available. Install the 'libclang' package "
            "or set FFI_CDECL_LIBCLANG to a libclang shared library.",
            stacklevel=2,
        )
