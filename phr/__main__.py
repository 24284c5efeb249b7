"""Entry point for python -m phr."""

import sys

from phr.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
