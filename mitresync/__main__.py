#!/usr/bin/env python3
"""Entry point for the mitresync CLI."""

import sys
from mitresync.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
