"""
Pytest Configuration

Adds ``src`` to ``sys.path`` so the suite runs from a checkout without an
editable install, and exposes the shared HTTP mocking fixtures.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tests.fixtures.http_mocking import reflecting_server  # noqa: E402,F401

from HttpGet.settings import ClientSettings  # noqa: E402


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> ClientSettings:
    """Client settings isolated from ``HTTPGET_*`` variables in the caller's shell."""
    for name in list(os.environ):
        if name.upper().startswith("HTTPGET_"):
            monkeypatch.delenv(name, raising=False)
    return ClientSettings()
