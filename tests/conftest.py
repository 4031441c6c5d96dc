from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root (which contains `cpxsim/`) is importable even when pytest
# is invoked with a specific test file path.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


@pytest.fixture
def small_grain() -> dict[str, float]:
    """Cooling path and a 31-node core + rim grid that keeps solves fast."""
    return {
        "T_start": 1033.0,
        "T_end": 950.0,
        "r_core": 10.0,
        "r_rim": 30.0,
        "dr": 1.0,
        "C_core0": 0.8,
        "C_rim0": 0.3,
    }
