"""Checks that the Playwright driver and its Chromium build are installed."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

DRIVER_COMMAND = [sys.executable, "-m", "playwright", "--version"]


def driver_available(command: list[str] = DRIVER_COMMAND) -> bool:
    """Returns ``True`` if the Playwright driver answers ``--version``."""

    try:
        subprocess.run(command, capture_output=True, text=True, check=True, timeout=30)
        return True
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return False


def chromium_installed() -> bool:
    """``playwright install chromium`` must have been run at least once."""

    try:
        with sync_playwright() as playwright:
            return Path(playwright.chromium.executable_path).exists()
    except PlaywrightError:
        return False


def verify_dependencies() -> dict[str, bool]:
    results = {"playwright": driver_available()}
    results["chromium"] = results["playwright"] and chromium_installed()
    return results
