"""Entry point for ``python -m swaptx``."""

import sys

from swaptx.cli import main

if __name__ == "__main__":
    sys.exit(main())
