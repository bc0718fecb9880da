"""Allow ``python -m kvscan``."""

import sys

from .cli import main

sys.exit(main())
