import sys

from ffi_cdecl.cli import main

sys.exit(main())
