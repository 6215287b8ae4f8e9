"""Allow ``python -m unitorrent``."""

from __future__ import annotations

import sys

from unitorrent.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
