"""ffi_cdecl - C declaration extraction for FFI bindings."""

from ffi_cdecl.ir import (
    # Type nodes
    Scalar,
    ScalarKind,
    Qualified,
    Pointer,
    Array,
    Parameter,
    FunctionType,
    Member,
    Enumerator,
    Aggregate,
    Typedef,
    Unsupported,
    TypeNode,
    # Declarations
    Storage,
    DeclNode,
    Declaration,
    # Container
    TranslationUnit,
    SourceLocation,
    # Protocol
    ParserBackend,
)
from ffi_cdecl.errors import (
    CdeclError,
    UnresolvedTypeError,
    UnsupportedTypeError,
    AmbiguousNameError,
    ExtractionError,
    ParseError,
)
from ffi_cdecl.policy import (
    NameResolver,
    DefaultNameResolver,
    SubjectNameResolver,
    MappingNameResolver,
    CallableNameResolver,
)
from ffi_cdecl.composer import compose
from ffi_cdecl.extract import Extraction, ExtractedDecl, extract
from ffi_cdecl.backends import get_backend, list_backends, is_backend_available
from ffi_cdecl.writers import get_writer, list_writers, is_writer_available

__all__ = [
    # Types
    "Scalar", "ScalarKind", "Qualified", "Pointer", "Array", "Parameter",
    "FunctionType", "Member", "Enumerator", "Aggregate", "Typedef",
    "Unsupported", "TypeNode",
    # Declarations
    "Storage", "DeclNode", "Declaration",
    # Container
    "TranslationUnit", "SourceLocation",
    # Protocol
    "ParserBackend",
    # Errors
    "CdeclError", "UnresolvedTypeError", "UnsupportedTypeError",
    "AmbiguousNameError", "ExtractionError", "ParseError",
    # Name policies
    "NameResolver", "DefaultNameResolver", "SubjectNameResolver",
    "MappingNameResolver", "CallableNameResolver",
    # Composition and extraction
    "compose", "extract", "Extraction", "ExtractedDecl",
    # Backend API
    "get_backend", "list_backends", "is_backend_available",
    # Writer API
    "get_writer", "list_writers", "is_writer_available",
]
