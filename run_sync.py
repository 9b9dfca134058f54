#!/usr/bin/env python

import sys
import os

# Make the aptsync package importable when run from a source checkout
project_root = os.path.dirname(os.path.abspath(__file__))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

try:
    from aptsync.main import main as run_main_process
except ImportError as e:
    print(f"Error: Could not import the aptsync package. Is the 'aptsync' directory available?", file=sys.stderr)
    print(f"Details: {e}", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    sys.exit(run_main_process())
