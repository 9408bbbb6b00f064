"""Per-user formula settings: the three named slots and the custom calculator.

The three slots (``mao``, ``rule70``, ``buyBox``) always hold a formula; each
starts as its canonical default and tracks whether it still equals it.  The
optional custom calculator lives next to them with its own lifecycle:
resetting the slots never touches it.
"""

from __future__ import annotations

import re
import time
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dealcalc.formulas.context import (
    FormulaContext,
    UnderwritingInputs,
    build_formula_context,
    coerce_inputs,
)
from dealcalc.formulas.errors import FormulaRefError, FormulaValidationError
from dealcalc.formulas.evaluator import evaluate_formula
from dealcalc.formulas.validator import ValidationResult, validate_formula
from dealcalc.formulas.variables import FORMULA_VARIABLES, get_variable
from dealcalc.logging.events import (
    CALCULATOR_INVALID,
    FORMULA_INVALID,
    EventLevel,
    EventType,
    emit,
    emit_info,
    make_calculator_event,
    make_formula_event,
)


class FormulaSlot(str, Enum):
    mao = "mao"
    rule70 = "rule70"
    buyBox = "buyBox"


class CustomFormula(BaseModel):
    """Formula text stored in one named slot."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    expression: str
    description: str = ""
    is_default: bool = Field(default=False, alias="isDefault")


DEFAULT_FORMULAS: Mapping[str, CustomFormula] = MappingProxyType({
    FormulaSlot.mao.value: CustomFormula(
        id="mao",
        name="Maximum Allowable Offer",
        expression="ARV * (1 - ProfitPct / 100) - Repairs - Holding - TotalClose",
        description="MAO = ARV x (1 - profit%) - repairs - holding - closing",
        is_default=True,
    ),
    FormulaSlot.rule70.value: CustomFormula(
        id="rule70",
        name="70% Rule Offer",
        expression="ARV * 0.70 - Repairs",
        description="ARV x 70% - repairs",
        is_default=True,
    ),
    FormulaSlot.buyBox.value: CustomFormula(
        id="buyBox",
        name="Hedge Fund Buy Box Offer",
        expression="(ARV * BuyBoxPct / 100) - Repairs",
        description="(ARV x Buy Box %) - Rehab",
        is_default=True,
    ),
})

_WS_RE = re.compile(r"\s+")


def _slot(slot: FormulaSlot | str) -> FormulaSlot:
    try:
        return FormulaSlot(slot)
    except ValueError:
        raise KeyError(f"Unknown formula slot: {slot!r}") from None


def is_default_expression(
    slot: FormulaSlot | str,
    expression: str,
    *,
    normalize_whitespace: bool = False,
) -> bool:
    """Return True if *expression* equals the canonical text for *slot*.

    Comparison is exact by default, so ``"ARV*0.70 - Repairs"`` is not the
    default ``"ARV * 0.70 - Repairs"``.  With *normalize_whitespace* all
    whitespace is removed from both sides first.
    """
    canonical = DEFAULT_FORMULAS[_slot(slot).value].expression
    if normalize_whitespace:
        return _WS_RE.sub("", expression) == _WS_RE.sub("", canonical)
    return expression == canonical


# ---------------------------------------------------------------------------
# Custom calculator
# ---------------------------------------------------------------------------


class CustomCalculatorInput(BaseModel):
    """A registry variable exposed as an adjustable calculator field."""

    model_config = ConfigDict(populate_by_name=True)

    variable_id: str = Field(alias="variableId")
    label: str
    default_value: float = Field(default=0.0, alias="defaultValue")


_INPUT_FIELDS = {
    (info.alias or name) for name, info in UnderwritingInputs.model_fields.items()
}


class CustomCalculator(BaseModel):
    """A user-defined formula with its own subset of adjustable inputs."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    formula: str
    inputs: list[CustomCalculatorInput] = Field(default_factory=list)
    description: str = ""

    @field_validator("inputs")
    @classmethod
    def _unique_inputs(cls, value: list[CustomCalculatorInput]) -> list[CustomCalculatorInput]:
        seen: set[str] = set()
        for item in value:
            if item.variable_id in seen:
                raise ValueError(f"Duplicate calculator input: {item.variable_id!r}")
            seen.add(item.variable_id)
        return value

    @classmethod
    def create(
        cls,
        name: str,
        formula: str,
        inputs: Iterable[str] = (),
        description: str = "",
    ) -> CustomCalculator:
        """Build a new calculator after validating its formula.

        Args:
            name: Display name.
            formula: Formula text; must pass :func:`validate_formula`.
            inputs: Registry variable ids to expose as inputs, in order.
                Repeated ids are bound once.
            description: Optional text; falls back to the formula.

        Raises:
            FormulaValidationError: If the formula is invalid.
            FormulaRefError: If an input id is not in the registry.
        """
        result = validate_formula(formula)
        if not result.valid:
            raise FormulaValidationError(result.error or "Invalid formula", formula)
        calc = cls(
            id=f"custom-{int(time.time() * 1000)}",
            name=name.strip() or "My Custom Calculator",
            formula=formula,
            description=description.strip() or formula,
        )
        for variable_id in inputs:
            calc.add_input(variable_id)
        return calc

    def check_formula(self) -> ValidationResult:
        return validate_formula(self.formula)

    def add_input(self, variable_id: str) -> CustomCalculatorInput:
        """Bind a registry variable as an input; existing bindings are kept.

        Returns:
            The (new or existing) input for *variable_id*.

        Raises:
            FormulaRefError: If *variable_id* is not in the registry.
        """
        for existing in self.inputs:
            if existing.variable_id == variable_id:
                return existing
        try:
            variable = get_variable(variable_id)
        except KeyError:
            raise FormulaRefError(
                variable_id, available=[v.id for v in FORMULA_VARIABLES]
            ) from None
        item = CustomCalculatorInput(
            variable_id=variable.id,
            label=variable.label,
            default_value=variable.default_value,
        )
        self.inputs.append(item)
        return item

    def remove_input(self, variable_id: str) -> bool:
        """Unbind an input.  Returns False if it was not bound."""
        before = len(self.inputs)
        self.inputs = [i for i in self.inputs if i.variable_id != variable_id]
        return len(self.inputs) != before

    def input_context(
        self,
        values: Mapping[str, float] | None = None,
        inputs: UnderwritingInputs | Mapping[str, Any] | None = None,
    ) -> FormulaContext:
        """Build a context with this calculator's inputs applied.

        Every bound input takes the value entered for it in *values*
        (keyed by variable id) or else its own default.  Inputs that map to
        underwriting fields go through :func:`build_formula_context`, so
        derived totals follow them; derived variables bound directly
        override the computed total.

        Args:
            values: User-entered input values keyed by variable id.
            inputs: Base underwriting figures; registry defaults if omitted.
        """
        values = values or {}
        base = coerce_inputs(inputs) if inputs is not None else UnderwritingInputs()
        field_updates: dict[str, float] = {}
        direct: dict[str, float] = {}
        for item in self.inputs:
            value = float(values.get(item.variable_id, item.default_value))
            if item.variable_id in _INPUT_FIELDS:
                field_updates[item.variable_id] = value
                continue
            try:
                direct[get_variable(item.variable_id).name] = value
            except KeyError:
                # stale binding from stored settings
                continue
        if field_updates:
            base = UnderwritingInputs.model_validate(
                {**base.model_dump(by_alias=True), **field_updates}
            )
        ctx = build_formula_context(base)
        ctx.update(direct)
        return ctx

    def evaluate(
        self,
        values: Mapping[str, float] | None = None,
        inputs: UnderwritingInputs | Mapping[str, Any] | None = None,
    ) -> float:
        """Evaluate the formula against :meth:`input_context`."""
        return evaluate_formula(self.formula, self.input_context(values, inputs))


# ---------------------------------------------------------------------------
# Settings aggregate
# ---------------------------------------------------------------------------


def _default(slot: FormulaSlot) -> CustomFormula:
    return DEFAULT_FORMULAS[slot.value]


class FormulaSettings(BaseModel):
    """The formulas one user works with.

    Loading and storing instances is left to the host application; the
    camelCase aliases match the keys the settings record is stored under.
    """

    model_config = ConfigDict(populate_by_name=True)

    mao: CustomFormula = Field(default_factory=lambda: _default(FormulaSlot.mao))
    rule70: CustomFormula = Field(default_factory=lambda: _default(FormulaSlot.rule70))
    buy_box: CustomFormula = Field(
        default_factory=lambda: _default(FormulaSlot.buyBox), alias="buyBox"
    )
    custom_calculator: CustomCalculator | None = Field(default=None, alias="customCalculator")

    @model_validator(mode="after")
    def _derive_is_default(self) -> FormulaSettings:
        """Recompute each slot's ``is_default`` from its text; stored flags are ignored."""
        for key in FormulaSlot:
            current = self.formula(key)
            derived = is_default_expression(key, current.expression)
            if current.is_default != derived:
                setattr(self, _attr(key), current.model_copy(update={"is_default": derived}))
        return self

    @classmethod
    def defaults(cls) -> FormulaSettings:
        return cls()

    def formula(self, slot: FormulaSlot | str) -> CustomFormula:
        return getattr(self, _attr(_slot(slot)))

    def save_formula(
        self,
        slot: FormulaSlot | str,
        expression: str,
        *,
        normalize_whitespace: bool = False,
    ) -> CustomFormula:
        """Store new formula text in a slot.

        The text must pass :func:`validate_formula`; on failure nothing is
        changed.  The slot keeps its name and description and gets
        ``is_default`` recomputed against the canonical text.

        Raises:
            FormulaValidationError: If the text is not a valid formula.
            KeyError: If *slot* is not one of the named slots.
        """
        key = _slot(slot)
        result = validate_formula(expression)
        if not result.valid:
            emit(make_formula_event(
                EventType.formula_rejected,
                EventLevel.warning,
                result.error or "Invalid formula",
                slot=key.value,
                expression=expression,
                error_code=FORMULA_INVALID,
            ))
            raise FormulaValidationError(result.error or "Invalid formula", expression)

        current = self.formula(key)
        saved = current.model_copy(update={
            "expression": expression,
            "is_default": is_default_expression(
                key, expression, normalize_whitespace=normalize_whitespace
            ),
        })
        setattr(self, _attr(key), saved)
        emit(make_formula_event(
            EventType.formula_saved,
            EventLevel.info,
            f"Saved {key.value} formula",
            slot=key.value,
            expression=expression,
            is_default=saved.is_default,
        ))
        return saved

    def reset_to_defaults(self) -> None:
        """Restore the three named slots; the custom calculator is kept."""
        for key in FormulaSlot:
            setattr(self, _attr(key), _default(key))
        emit_info(
            EventType.formulas_reset,
            "Formulas restored to defaults",
            {"kept_custom_calculator": self.custom_calculator is not None},
        )

    def save_custom_calculator(self, calculator: CustomCalculator) -> CustomCalculator:
        """Replace the custom calculator after validating its formula.

        Raises:
            FormulaValidationError: If the calculator formula is invalid.
        """
        result = calculator.check_formula()
        if not result.valid:
            emit(make_calculator_event(
                EventType.calculator_rejected,
                EventLevel.warning,
                result.error or "Invalid formula",
                calculator_id=calculator.id,
                formula=calculator.formula,
                error_code=CALCULATOR_INVALID,
            ))
            raise FormulaValidationError(result.error or "Invalid formula", calculator.formula)
        self.custom_calculator = calculator
        emit(make_calculator_event(
            EventType.calculator_saved,
            EventLevel.info,
            f"Saved custom calculator {calculator.name!r}",
            calculator_id=calculator.id,
            formula=calculator.formula,
            extra={"inputs": [i.variable_id for i in calculator.inputs]},
        ))
        return calculator

    def delete_custom_calculator(self) -> None:
        """Remove the custom calculator entirely (it becomes ``None``)."""
        if self.custom_calculator is None:
            return
        calc_id = self.custom_calculator.id
        self.custom_calculator = None
        emit(make_calculator_event(
            EventType.calculator_deleted,
            EventLevel.info,
            "Deleted custom calculator",
            calculator_id=calc_id,
        ))

    def evaluate_slots(self, context: Mapping[str, float]) -> dict[str, float]:
        """Evaluate every named slot against *context*, keyed by slot id."""
        return {
            key.value: evaluate_formula(self.formula(key).expression, context)
            for key in FormulaSlot
        }


def _attr(slot: FormulaSlot) -> str:
    return "buy_box" if slot is FormulaSlot.buyBox else slot.value
