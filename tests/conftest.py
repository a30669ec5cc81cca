"""Shared fixtures: a hand-built unit shaped like a parsed POSIX binding source."""

from __future__ import annotations

import pytest

from ffi_cdecl.extract import Extraction, extract
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
)

INT = Scalar(ScalarKind.INT)
LONG = Scalar(ScalarKind.LONG)
CHAR = Scalar(ScalarKind.CHAR)


def build_posix_unit() -> TranslationUnit:
    """What the libclang backend produces for::

    #include <getopt.h>
    #include <libgen.h>
    #include <sys/resource.h>
    #include <time.h>
    #include "ffi-cdecl.h"

    cdecl_type(clockid_t)
    cdecl_type(time_t)
    cdecl_struct(timespec)
    cdecl_var(optarg)
    cdecl_var(optind)
    cdecl_func(basename)
    cdecl_func(clock_gettime)
    cdecl_const(RLIMIT_CORE)
    cdecl_const(RLIM_INFINITY)
    """
    clockid_t_ = Typedef("__clockid_t", INT)
    clockid_t = Typedef("clockid_t", clockid_t_)
    time_t_ = Typedef("__time_t", LONG)
    time_t = Typedef("time_t", time_t_)
    slong = Typedef("__syscall_slong_t", LONG)
    timespec = Aggregate("struct", "timespec", [Member("tv_sec", time_t_), Member("tv_nsec", slong)])

    optarg = DeclNode("optarg", Pointer(CHAR), storage=Storage.EXTERN)
    optind = DeclNode("optind", INT, storage=Storage.EXTERN)
    # <libgen.h> has "#define basename __xpg_basename"
    basename = DeclNode(
        "__xpg_basename",
        FunctionType(Pointer(CHAR), [Parameter(None, Pointer(CHAR))]),
        storage=Storage.EXTERN,
    )
    clock_gettime = DeclNode(
        "clock_gettime",
        FunctionType(INT, [Parameter(None, clockid_t_), Parameter(None, Pointer(timespec))]),
        storage=Storage.EXTERN,
    )

    return TranslationUnit(
        "C.c",
        [
            clockid_t_,
            clockid_t,
            time_t_,
            time_t,
            slong,
            timespec,
            optarg,
            optind,
            basename,
            clock_gettime,
            Typedef("cdecl_type__clockid_t", clockid_t),
            Typedef("cdecl_type__time_t", time_t),
            Typedef("cdecl_struct__timespec", timespec),
            DeclNode("cdecl_var__optarg", Pointer(Pointer(CHAR)), referenced=optarg),
            DeclNode("cdecl_var__optind", Pointer(INT)),
            DeclNode("cdecl_func__basename", Pointer(basename.type), referenced=basename),
            DeclNode("cdecl_func__clock_gettime", Pointer(clock_gettime.type), referenced=clock_gettime),
            DeclNode(
                "cdecl_const__RLIMIT_CORE",
                Qualified(INT, const=True),
                storage=Storage.STATIC,
                value=4,
            ),
            DeclNode(
                "cdecl_const__RLIM_INFINITY",
                Qualified(Scalar(ScalarKind.ULONG), const=True),
                storage=Storage.STATIC,
                value=18446744073709551615,
            ),
        ],
    )


@pytest.fixture
def posix_unit() -> TranslationUnit:
    return build_posix_unit()


@pytest.fixture
def posix_extraction(posix_unit: TranslationUnit) -> Extraction:
    return extract(posix_unit)
