"""Command-line entry point.

::

    ffi-cdecl -D_XOPEN_SOURCE=700 --writer lua -o posix_h.lua posix.c

The source file includes ``ffi-cdecl.h`` and tags the symbols to extract;
the selected writer's output goes to ``-o`` or standard output.
"""

from __future__ import annotations

import argparse
import logging
import sys

from ffi_cdecl.backends import get_backend
from ffi_cdecl.errors import CdeclError
from ffi_cdecl.extract import DEFAULT_PREFIX, extract
from ffi_cdecl.writers import get_default_writer, list_writers, render

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffi-cdecl",
        description="Extract C declarations of tagged symbols for FFI bindings.",
    )
    parser.add_argument("source", help="C source file tagging the symbols to extract")
    parser.add_argument(
        "-I",
        dest="include_dirs",
        action="append",
        default=[],
        metavar="DIR",
        help="Add DIR to the include search path",
    )
    parser.add_argument(
        "-D",
        dest="defines",
        action="append",
        default=[],
        metavar="NAME[=VALUE]",
        help="Define a preprocessor macro",
    )
    parser.add_argument("--std", help="C language standard passed to the front end (e.g. c11, gnu99)")
    parser.add_argument(
        "--prefix",
        default=DEFAULT_PREFIX,
        help=f"Marker prefix (default: {DEFAULT_PREFIX})",
    )
    parser.add_argument(
        "--writer",
        default=get_default_writer(),
        choices=list_writers(),
        help="Output format (default: %(default)s)",
    )
    parser.add_argument("-o", "--output", help="Write output to this file instead of stdout")
    parser.add_argument(
        "--keep-parameter-names",
        action="store_true",
        help="Keep parameter names from the header in function declarations",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def compiler_args(args: argparse.Namespace) -> list[str]:
    """Front-end arguments for the -D and --std options."""
    extra = [f"-D{define}" for define in args.defines]
    if args.std:
        extra.append(f"-std={args.std}")
    return extra


def run(args: argparse.Namespace) -> str:
    """Parse, extract and render ``args.source``; return the output text."""
    with open(args.source, encoding="utf-8") as f:
        code = f.read()

    backend = get_backend(keep_parameter_names=args.keep_parameter_names)
    unit = backend.parse(code, args.source, include_dirs=args.include_dirs, extra_args=compiler_args(args))
    extraction = extract(unit, prefix=args.prefix)
    return render(extraction, args.writer)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    try:
        output = run(args)
    except CdeclError as e:
        logger.error("%s: %s", args.source, e)
        return 1
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
    else:
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
