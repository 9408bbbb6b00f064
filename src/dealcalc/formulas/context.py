"""Map underwriting inputs onto the formula variable vocabulary."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from dealcalc.formulas.variables import FORMULA_VARIABLES, get_variable

FormulaContext = dict[str, float]


def _default(variable_id: str) -> float:
    return float(get_variable(variable_id).default_value)


class UnderwritingInputs(BaseModel):
    """The live underwriting figures a deal is evaluated against.

    Accepts snake_case field names or the camelCase keys used by the
    underwriting form; unrelated form keys are ignored.  Cleared or
    unparseable fields take the registry default.
    """

    model_config = ConfigDict(populate_by_name=True)

    arv: float = Field(default_factory=lambda: _default("arv"))
    repair_costs: float = Field(
        default_factory=lambda: _default("repairCosts"), alias="repairCosts"
    )
    holding_months: float = Field(
        default_factory=lambda: _default("holdingMonths"), alias="holdingMonths"
    )
    monthly_holding_cost: float = Field(
        default_factory=lambda: _default("monthlyHoldingCost"), alias="monthlyHoldingCost"
    )
    buying_closing_costs: float = Field(
        default_factory=lambda: _default("buyingClosingCosts"), alias="buyingClosingCosts"
    )
    selling_closing_costs: float = Field(
        default_factory=lambda: _default("sellingClosingCosts"), alias="sellingClosingCosts"
    )
    target_profit_percent: float = Field(
        default_factory=lambda: _default("targetProfitPercent"), alias="targetProfitPercent"
    )
    buy_box_percent: float = Field(
        default_factory=lambda: _default("buyBoxPercent"), alias="buyBoxPercent"
    )
    asking_price: float = Field(
        default_factory=lambda: _default("askingPrice"), alias="askingPrice"
    )

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        """Cleared or unparseable form fields fall back to the registry default."""
        field = cls.model_fields[info.field_name]
        if isinstance(value, str):
            value = value.strip()
        if value is None or value == "":
            return _default(field.alias or info.field_name)
        try:
            return float(value)
        except (TypeError, ValueError, OverflowError):
            return _default(field.alias or info.field_name)

    @property
    def total_holding_costs(self) -> float:
        return self.holding_months * self.monthly_holding_cost

    @property
    def total_closing_costs(self) -> float:
        return self.buying_closing_costs + self.selling_closing_costs


# One rule per registry variable id.  Adding a variable to the registry
# without a rule here makes build_formula_context() raise KeyError.
CONTEXT_RULES: dict[str, Callable[[UnderwritingInputs], float]] = {
    "arv": lambda i: i.arv,
    "repairCosts": lambda i: i.repair_costs,
    "holdingMonths": lambda i: i.holding_months,
    "monthlyHoldingCost": lambda i: i.monthly_holding_cost,
    "totalHoldingCosts": lambda i: i.total_holding_costs,
    "buyingClosingCosts": lambda i: i.buying_closing_costs,
    "sellingClosingCosts": lambda i: i.selling_closing_costs,
    "totalClosingCosts": lambda i: i.total_closing_costs,
    "targetProfitPercent": lambda i: i.target_profit_percent,
    "buyBoxPercent": lambda i: i.buy_box_percent,
    "askingPrice": lambda i: i.asking_price,
}


def coerce_inputs(inputs: UnderwritingInputs | Mapping[str, Any]) -> UnderwritingInputs:
    """Return *inputs* as an :class:`UnderwritingInputs` instance."""
    if isinstance(inputs, UnderwritingInputs):
        return inputs
    return UnderwritingInputs.model_validate(dict(inputs))


def build_formula_context(
    inputs: UnderwritingInputs | Mapping[str, Any],
) -> FormulaContext:
    """Build the variable-name -> value lookup for one recompute.

    Direct inputs are copied across; ``Holding`` (months x monthly cost) and
    ``TotalClose`` (buying + selling closing costs) are derived.

    Args:
        inputs: Underwriting figures, as a model or a plain mapping.

    Returns:
        A fresh dict with an entry for every registry variable name.
    """
    model = coerce_inputs(inputs)
    return {v.name: float(CONTEXT_RULES[v.id](model)) for v in FORMULA_VARIABLES}
