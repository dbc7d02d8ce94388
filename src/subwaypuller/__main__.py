"""Allows running a cycle via ``python -m subwaypuller``."""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
