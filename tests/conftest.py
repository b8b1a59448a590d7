"""Root conftest — shared pytest markers and global settings.

Markers
-------
unit        fast, no I/O, pure logic
integration talks to live Gemini / Sheets (set SCOUT_TEST_INTEGRATION=1)
"""

from __future__ import annotations

import os
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, no I/O tests")
    config.addinivalue_line("markers", "integration: requires live Gemini / Sheets credentials")


# ── Skip guards ───────────────────────────────────────────────────────────────

requires_integration = pytest.mark.skipif(
    not os.getenv("SCOUT_TEST_INTEGRATION"),
    reason="Set SCOUT_TEST_INTEGRATION=1 to run integration tests",
)
