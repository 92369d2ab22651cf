"""Entry point: one polling cycle — fetch, reconcile, notify.

Exit codes:
  0 — cycle completed (individual axis failures are logged, not fatal)
  1 — configuration, database or notifier could not be set up
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from flexassistant.cli import main

if __name__ == "__main__":
    sys.exit(main())
