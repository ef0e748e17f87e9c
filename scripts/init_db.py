#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for gin-admin.

Creates the application principal, the base collections and their indexes,
and seeds the built-in roles. Safe to run on every environment bring-up.

Usage:
    python init_db.py [options]

See ``python init_db.py --help`` or provisioner/cli.py for options and
environment variables.
"""

import sys
from pathlib import Path


# Allow running from a source checkout without installing the package
BACKEND_DIR = Path(__file__).resolve().parent.parent / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from provisioner.cli import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
