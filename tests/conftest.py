"""Pytest configuration and shared fixtures.

The sys.path manipulation below lets the suite run from a plain checkout
without `pip install -e .`.
"""
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

FIXTURES = Path(__file__).parent / "fixtures"
TOLERANCE_CSV = FIXTURES / "tolerance_pp_wide.csv"


@pytest.fixture
def tolerance_csv() -> Path:
    """Path to the 16-person tolerance table (person-level layout)."""
    return TOLERANCE_CSV


@pytest.fixture
def tolerance_wide() -> pd.DataFrame:
    """The tolerance table as loaded from CSV."""
    return pd.read_csv(TOLERANCE_CSV)


@pytest.fixture
def linear_long() -> pd.DataFrame:
    """Three entities, five times each, exactly linear in time.

    Entity slopes are 0.1, 0.3 and 0.5 with intercepts 1, 2 and 3.
    """
    rows = []
    for eid, (intercept, slope) in {1: (1.0, 0.1), 2: (2.0, 0.3), 3: (3.0, 0.5)}.items():
        for t in range(5):
            rows.append({"id": eid, "time": t, "y": intercept + slope * t})
    return pd.DataFrame(rows)


@pytest.fixture
def noisy_long() -> pd.DataFrame:
    """Three entities, eight times each, linear in time plus small noise."""
    rng = np.random.default_rng(42)
    rows = []
    for eid, slope in {10: 0.2, 20: -0.1, 30: 0.4}.items():
        for t in range(8):
            rows.append({"id": eid, "time": t, "y": 1.5 + slope * t + rng.normal(0, 0.05)})
    return pd.DataFrame(rows)
