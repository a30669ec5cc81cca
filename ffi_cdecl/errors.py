"""Exceptions raised by ffi_cdecl."""

from __future__ import annotations


class CdeclError(Exception):
    """Base class for all ffi_cdecl errors."""


class UnresolvedTypeError(CdeclError):
    """A type node is structurally incomplete (e.g. a function without return type)."""


class UnsupportedTypeError(CdeclError):
    """A type cannot be printed as valid C (VLA, ``_Atomic``, function returning array, ...)."""


class AmbiguousNameError(CdeclError):
    """A name policy gave two different names for the same node in one composition."""


class ExtractionError(CdeclError):
    """A tagged symbol could not be turned into a declaration."""


class ParseError(CdeclError, RuntimeError):
    """The front end rejected the source."""
