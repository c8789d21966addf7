#!/usr/bin/env python3
"""
Secure submission launcher

Runs the Cypress suite from the current directory and writes
submission/submission.enc plus its checksum. All options of `cysubmit`
are accepted.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from cysubmit_unix.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
