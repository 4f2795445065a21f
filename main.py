#!/usr/bin/env python3
"""Runs ``autologin`` from a source checkout, e.g. ``python main.py -u URL``."""

from __future__ import annotations

import sys
from pathlib import Path

CHECKOUT_SRC = Path(__file__).resolve().parent / "src"


def main() -> int:
    if CHECKOUT_SRC.is_dir() and str(CHECKOUT_SRC) not in sys.path:
        sys.path.insert(0, str(CHECKOUT_SRC))
    from autologin.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
