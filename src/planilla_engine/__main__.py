"""Entry point for ``python -m planilla_engine``."""

import sys

from planilla_engine.cli import main

if __name__ == "__main__":
    sys.exit(main())
