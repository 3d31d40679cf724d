"""Pytest configuration ensuring local packages and test helpers are importable."""

from __future__ import annotations

import sys
from pathlib import Path

_TESTS = Path(__file__).resolve().parent
_ROOT = _TESTS.parent
for path in (_ROOT, _TESTS):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
