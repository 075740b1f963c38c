#!/usr/bin/env python3
"""
laborer Main Entry Point

Allows the laborer package to be run with `python -m laborer`
"""

import sys

from laborer.interfaces.cli import main

if __name__ == "__main__":
    sys.exit(main())
