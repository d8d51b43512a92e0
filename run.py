#!/usr/bin/env python3
"""Run the gedcom-import CLI from a source checkout without installing it."""
import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
SRC = os.path.join(ROOT, "src")
sys.path.insert(0, SRC)

from gedcom_import.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
