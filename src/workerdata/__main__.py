"""Allow running as ``python -m workerdata``."""

import sys

from workerdata.cli import main

sys.exit(main())
