"""Offer and profit figures shown on the underwriting screen."""

from __future__ import annotations

import math
from typing import Any, Mapping

from pydantic import BaseModel

from dealcalc.formulas.context import UnderwritingInputs, build_formula_context, coerce_inputs
from dealcalc.formulas.evaluator import evaluate_formula
from dealcalc.formulas.settings import FormulaSettings

CUSTOM_KEY = "custom"

# Rehab cost per square foot by scope of work.
REPAIR_COST_GUIDES: dict[str, dict[str, Any]] = {
    "cosmetic": {
        "per_sqft": (10, 25),
        "description": "Paint, flooring, fixtures, minor updates",
    },
    "moderate": {
        "per_sqft": (25, 50),
        "description": "Kitchen/bath refresh, some systems updates",
    },
    "extensive": {
        "per_sqft": (50, 100),
        "description": "Full kitchen/bath remodel, major repairs",
    },
    "gut": {
        "per_sqft": (100, 200),
        "description": "Complete renovation, structural work",
    },
}

DEFAULT_SQFT = 1500


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like a spreadsheet: halves go up, not to even."""
    scale = 10 ** ndigits
    return math.floor(value * scale + 0.5) / scale


def display_offer(value: float) -> float:
    """Whole-unit, non-negative offer for display."""
    return max(0.0, round_half_up(value))


def compute_offers(
    settings: FormulaSettings,
    inputs: UnderwritingInputs | Mapping[str, Any],
    *,
    round_offers: bool = True,
    calculator_values: Mapping[str, float] | None = None,
) -> dict[str, float]:
    """Evaluate every slot and the custom calculator for one deal.

    Args:
        settings: The user's formulas.
        inputs: Current underwriting figures.
        round_offers: Apply :func:`display_offer` to each figure.
        calculator_values: Values entered in the custom calculator's own
            inputs.  Without them the calculator shares the deal context.

    Returns:
        Mapping of slot id (and ``"custom"`` when a calculator exists) to
        the offer.
    """
    model = coerce_inputs(inputs)
    context = build_formula_context(model)
    offers = settings.evaluate_slots(context)

    calc = settings.custom_calculator
    if calc is not None:
        if calculator_values:
            offers[CUSTOM_KEY] = calc.evaluate(calculator_values, model)
        else:
            offers[CUSTOM_KEY] = evaluate_formula(calc.formula, context)

    if round_offers:
        offers = {k: display_offer(v) for k, v in offers.items()}
    return offers


class ProfitSummary(BaseModel):
    profit: float
    profit_percent: float
    roi: float


def calculate_profit(
    inputs: UnderwritingInputs | Mapping[str, Any],
    purchase_price: float,
) -> ProfitSummary:
    """Projected profit on a flip bought at *purchase_price*.

    Total investment is the purchase price plus repairs, holding and
    closing costs.  ``profit_percent`` is relative to ARV and ``roi`` to
    total investment; both are 0 when their base is not positive.
    """
    model = coerce_inputs(inputs)
    total_investment = (
        purchase_price
        + model.repair_costs
        + model.total_holding_costs
        + model.total_closing_costs
    )
    profit = model.arv - total_investment
    profit_percent = profit / model.arv * 100 if model.arv > 0 else 0.0
    roi = profit / total_investment * 100 if total_investment > 0 else 0.0
    return ProfitSummary(
        profit=round_half_up(profit),
        profit_percent=round_half_up(profit_percent, 1),
        roi=round_half_up(roi, 1),
    )


def estimate_repairs(scope: str, sqft: float | None = None) -> float:
    """Midpoint repair estimate for a scope of work.

    Raises:
        KeyError: If *scope* is not in :data:`REPAIR_COST_GUIDES`.
    """
    if scope not in REPAIR_COST_GUIDES:
        raise KeyError(f"Unknown repair scope: {scope!r}")
    low, high = REPAIR_COST_GUIDES[scope]["per_sqft"]
    return round_half_up((sqft or DEFAULT_SQFT) * (low + high) / 2)
