# Copyright (c) 2023-2024 Datalayer, Inc.
#
# BSD 3-Clause License

"""
Global configuration variables for the Jupyter UI regression harness.
"""

import os

###############################################################################
# Server Configuration
###############################################################################

JUPYTER_URL: str = os.getenv("JUPYTER_URL", "http://localhost:8888")
JUPYTER_TOKEN: str | None = os.getenv("JUPYTER_TOKEN")

###############################################################################
# Browser Configuration
###############################################################################

BROWSER: str = os.getenv("HARNESS_BROWSER", "chromium")
HEADLESS: bool = os.getenv("HARNESS_HEADLESS", "true").lower() == "true"
VIEWPORT: str = os.getenv("HARNESS_VIEWPORT", "1024x768")
ACTION_TIMEOUT_MS: int = int(os.getenv("HARNESS_ACTION_TIMEOUT_MS", "30000"))

###############################################################################
# Suite Configuration
###############################################################################

TEST_TIMEOUT: int = int(os.getenv("HARNESS_TEST_TIMEOUT", "300"))
RESTART_REPEATS: int = int(os.getenv("HARNESS_RESTART_REPEATS", "100"))
E2E_ENABLED: bool = os.getenv("HARNESS_E2E", "0") == "1"

###############################################################################
# Snapshot Configuration
###############################################################################

PIXEL_THRESHOLD: float = float(os.getenv("HARNESS_PIXEL_THRESHOLD", "0.2"))
MAX_DIFF_PIXEL_RATIO: float = float(os.getenv("HARNESS_MAX_DIFF_PIXEL_RATIO", "0.0"))
MAX_DIFF_PIXELS: int = int(os.getenv("HARNESS_MAX_DIFF_PIXELS", "0"))
UPDATE_SNAPSHOTS: bool = os.getenv("HARNESS_UPDATE_SNAPSHOTS", "false").lower() == "true"
RESULTS_DIR: str = os.getenv("HARNESS_RESULTS_DIR", "test-results")

###############################################################################
# Logging
###############################################################################

LOG_LEVEL: str = os.getenv("HARNESS_LOG_LEVEL", "INFO")


def parse_viewport(value: str) -> dict[str, int]:
    """Turn a ``WIDTHxHEIGHT`` string into a Playwright viewport dict."""
    try:
        width, height = value.lower().split("x", 1)
        return {"width": int(width), "height": int(height)}
    except ValueError:
        raise ValueError(f"Invalid viewport '{value}', expected WIDTHxHEIGHT")
