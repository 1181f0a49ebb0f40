#!/usr/bin/env python3
"""Maxwell session notifier, entry point for a source checkout."""

import sys
import os

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from maxwell.cli import main


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
