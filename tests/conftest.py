"""Pytest fixtures for edflow tests."""

from typing import Dict, List

import numpy as np
import pytest

from helpers import visit_row


@pytest.fixture
def default_seed() -> int:
    """Default random seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(default_seed):
    return np.random.default_rng(default_seed)


@pytest.fixture
def scenario_rows() -> List[Dict]:
    """One valid visit and one with a 3 s triage duration."""
    return [
        visit_row("V1", [0, 5, 20, 25, 9000]),
        visit_row("V2", [0, 30, 33, 60, 600], start=100),
    ]


@pytest.fixture
def valid_rows() -> List[Dict]:
    """Visits spread across the built-in cohorts, all within bounds."""
    rows = []
    layout = [
        ("ADULT", "SHORT_STAY"),
        ("ADULT", "TRAUMA"),
        ("ADULT", "CONSULT_1"),
        ("ADULT", "CONSULT_2"),
        ("PAEDIATRIC", "RESPIRATORY"),
        ("PAEDIATRIC", "CONSULT"),
    ]
    for i in range(60):
        service, sub = layout[i % len(layout)]
        rows.append(
            visit_row(
                f"V{i:03d}",
                [0, 60 + i, 300 + 2 * i, 900 + 3 * i, 2400 + 17 * i],
                service=service,
                sub_service=sub,
                start=i * 450,
            )
        )
    return rows
