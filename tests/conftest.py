"""
🧪 Pytest Configuration for the Summary Table Test Suite

This conftest.py sets up fixtures for the entire test suite:
- Makes the project root importable
- Restores the global CONFIG after every test
- Provides deterministic example datasets
"""

import copy
import os
import sys

import numpy as np
import pandas as pd
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import CONFIG  # noqa: E402

# ============================================================================
# ⚙️ Config isolation
# ============================================================================


@pytest.fixture(autouse=True)
def restore_config():
    """Tests may tweak CONFIG at runtime; put the original values back afterwards."""
    snapshot = copy.deepcopy(CONFIG._config)
    yield
    CONFIG._config = snapshot


# ============================================================================
# 📊 Datasets
# ============================================================================


@pytest.fixture
def ab_data():
    """Two groups of five rows with one continuous measurement."""
    return pd.DataFrame(
        {
            "group": ["A"] * 5 + ["B"] * 5,
            "value": [1.0, 2.0, 3.0, 4.0, 5.0, 10.0, 20.0, 30.0, 40.0, 50.0],
        }
    )


@pytest.fixture
def trial_data():
    """
    Realistic two-arm trial: continuous, categorical (with missing) and
    dichotomous variables.
    """
    rng = np.random.default_rng(101)
    n = 200
    arm = np.array(["Drug A", "Drug B"] * (n // 2))

    age = rng.normal(50, 10, n).round(1)
    age[arm == "Drug B"] += 8

    grade = rng.choice(["I", "II", "III"], n).astype(object)
    grade[rng.choice(n, 12, replace=False)] = None

    marker = rng.gamma(2.0, 0.5, n)
    marker[rng.choice(n, 9, replace=False)] = np.nan

    return pd.DataFrame(
        {
            "trt": arm,
            "age": age,
            "grade": grade,
            "response": rng.choice([0, 1], n),
            "marker": marker,
        }
    )


@pytest.fixture
def three_arm_data():
    """Three groups with a clear location shift on `score`."""
    rng = np.random.default_rng(7)
    groups = np.repeat(["low", "mid", "high"], 30)
    shift = np.repeat([0.0, 2.0, 4.0], 30)
    return pd.DataFrame(
        {
            "dose": groups,
            "score": rng.normal(10, 1, 90) + shift,
            "smoker": rng.choice(["yes", "no"], 90),
        }
    )


# ============================================================================
# 🎨 Pytest Configuration & Markers
# ============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
