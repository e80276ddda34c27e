"""Package entry point for ``python -m loom_editor``."""

import sys

from loom_editor.cli import main

if __name__ == "__main__":
    sys.exit(main())
