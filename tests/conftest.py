"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from dealcalc.logging import set_log_dir


@pytest.fixture(autouse=True)
def _no_event_sink():
    """Keep the module-level event sink off unless a test turns it on."""
    set_log_dir(None)
    yield
    set_log_dir(None)


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """Route emitted events to a temporary directory."""
    path = tmp_path / "logs"
    set_log_dir(path)
    return path


@pytest.fixture
def deal_inputs() -> dict[str, float]:
    """Underwriting figures for a typical flip."""
    return {
        "arv": 200000,
        "repairCosts": 30000,
        "holdingMonths": 6,
        "monthlyHoldingCost": 1500,
        "buyingClosingCosts": 5000,
        "sellingClosingCosts": 16000,
        "targetProfitPercent": 20,
        "buyBoxPercent": 70,
        "askingPrice": 180000,
    }
