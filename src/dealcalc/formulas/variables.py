"""The closed catalogue of variables usable inside formulas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FormulaVariable(BaseModel):
    """A named input that formulas may reference.

    ``name`` is the token written inside expressions (``ARV``); ``id`` is the
    key used by underwriting forms and custom calculator inputs
    (``arv``).  Names are matched case-sensitively as whole tokens.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    label: str
    description: str = ""
    default_value: float = Field(default=0.0, alias="defaultValue")


FORMULA_VARIABLES: tuple[FormulaVariable, ...] = (
    FormulaVariable(id="arv", name="ARV", label="After Repair Value",
                    description="Expected value after repairs", default_value=0),
    FormulaVariable(id="repairCosts", name="Repairs", label="Repair Costs",
                    description="Total estimated repair costs", default_value=0),
    FormulaVariable(id="holdingMonths", name="Months", label="Holding Months",
                    description="Number of months holding property", default_value=6),
    FormulaVariable(id="monthlyHoldingCost", name="Monthly", label="Monthly Holding Cost",
                    description="Monthly expenses while holding", default_value=1500),
    FormulaVariable(id="totalHoldingCosts", name="Holding", label="Total Holding Costs",
                    description="Months x Monthly cost", default_value=9000),
    FormulaVariable(id="buyingClosingCosts", name="BuyClose", label="Buying Closing Costs",
                    description="Costs when purchasing", default_value=5000),
    FormulaVariable(id="sellingClosingCosts", name="SellClose", label="Selling Closing Costs",
                    description="Costs when selling (~8% of ARV)", default_value=0),
    FormulaVariable(id="totalClosingCosts", name="TotalClose", label="Total Closing Costs",
                    description="Buy + Sell closing costs", default_value=0),
    FormulaVariable(id="targetProfitPercent", name="ProfitPct", label="Target Profit %",
                    description="Desired profit percentage", default_value=20),
    FormulaVariable(id="buyBoxPercent", name="BuyBoxPct", label="Buy Box %",
                    description="Hedge fund buy box percentage", default_value=70),
    FormulaVariable(id="askingPrice", name="Asking", label="Asking Price",
                    description="Seller's asking price", default_value=0),
)

_BY_ID: dict[str, FormulaVariable] = {v.id: v for v in FORMULA_VARIABLES}
_BY_NAME: dict[str, FormulaVariable] = {v.name: v for v in FORMULA_VARIABLES}

if len(_BY_ID) != len(FORMULA_VARIABLES) or len(_BY_NAME) != len(FORMULA_VARIABLES):
    raise ValueError("FORMULA_VARIABLES has a duplicate id or name")


def variable_names() -> list[str]:
    """Return registry token names in declaration order."""
    return [v.name for v in FORMULA_VARIABLES]


def get_variable(variable_id: str) -> FormulaVariable:
    """Look up a variable by its id.

    Raises:
        KeyError: If no variable has this id.
    """
    if variable_id not in _BY_ID:
        raise KeyError(f"Unknown variable id: {variable_id!r}")
    return _BY_ID[variable_id]


def get_variable_by_name(name: str) -> FormulaVariable:
    """Look up a variable by the token used in expressions.

    Raises:
        KeyError: If no variable has this name.
    """
    if name not in _BY_NAME:
        raise KeyError(f"Unknown variable name: {name!r}")
    return _BY_NAME[name]


def default_context() -> dict[str, float]:
    """Map every registry name to its default value."""
    return {v.name: float(v.default_value) for v in FORMULA_VARIABLES}


def registry_payload() -> list[dict[str, Any]]:
    """Serialize the registry for "insert variable" pickers (camel-case keys)."""
    return [v.model_dump(by_alias=True) for v in FORMULA_VARIABLES]
