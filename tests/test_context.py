"""Tests for the variable registry and context builder."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dealcalc.formulas import (
    FORMULA_VARIABLES,
    UnderwritingInputs,
    build_formula_context,
    default_context,
    get_variable,
    get_variable_by_name,
    registry_payload,
    variable_names,
)
from dealcalc.formulas.context import CONTEXT_RULES


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_names_and_ids_unique(self) -> None:
        assert len({v.name for v in FORMULA_VARIABLES}) == len(FORMULA_VARIABLES)
        assert len({v.id for v in FORMULA_VARIABLES}) == len(FORMULA_VARIABLES)

    def test_order_is_stable(self) -> None:
        assert variable_names()[:3] == ["ARV", "Repairs", "Months"]

    def test_lookup(self) -> None:
        assert get_variable("repairCosts").name == "Repairs"
        assert get_variable_by_name("Holding").id == "totalHoldingCosts"

    def test_lookup_unknown(self) -> None:
        with pytest.raises(KeyError):
            get_variable("nope")
        with pytest.raises(KeyError):
            get_variable_by_name("arv")

    def test_variables_are_immutable(self) -> None:
        with pytest.raises(ValidationError):
            FORMULA_VARIABLES[0].name = "X"

    def test_default_context(self) -> None:
        ctx = default_context()
        assert list(ctx) == variable_names()
        assert ctx["Months"] == 6
        assert ctx["Monthly"] == 1500
        assert ctx["BuyBoxPct"] == 70

    def test_payload_uses_camel_case(self) -> None:
        payload = registry_payload()
        assert payload[0] == {
            "id": "arv",
            "name": "ARV",
            "label": "After Repair Value",
            "description": "Expected value after repairs",
            "defaultValue": 0.0,
        }


# ---------------------------------------------------------------------------
# Context builder
# ---------------------------------------------------------------------------


class TestBuildContext:
    def test_every_registry_variable_has_a_rule(self) -> None:
        assert set(CONTEXT_RULES) == {v.id for v in FORMULA_VARIABLES}

    def test_covers_every_registry_name(self, deal_inputs: dict[str, float]) -> None:
        assert list(build_formula_context(deal_inputs)) == variable_names()

    def test_direct_and_derived_values(self, deal_inputs: dict[str, float]) -> None:
        ctx = build_formula_context(deal_inputs)
        assert ctx["ARV"] == 200000
        assert ctx["Repairs"] == 30000
        assert ctx["Months"] == 6
        assert ctx["Monthly"] == 1500
        assert ctx["Holding"] == 9000
        assert ctx["BuyClose"] == 5000
        assert ctx["SellClose"] == 16000
        assert ctx["TotalClose"] == 21000
        assert ctx["ProfitPct"] == 20
        assert ctx["BuyBoxPct"] == 70
        assert ctx["Asking"] == 180000

    def test_accepts_model_and_snake_case(self) -> None:
        model = UnderwritingInputs(arv=100, repair_costs=10)
        assert build_formula_context(model)["Repairs"] == 10
        assert build_formula_context({"arv": 100, "repair_costs": 10})["Repairs"] == 10

    def test_missing_fields_use_registry_defaults(self) -> None:
        ctx = build_formula_context({})
        assert ctx["Months"] == 6
        assert ctx["Holding"] == 9000
        assert ctx["BuyClose"] == 5000
        assert ctx["TotalClose"] == 5000

    def test_numeric_strings_are_coerced(self) -> None:
        assert build_formula_context({"arv": "250000"})["ARV"] == 250000

    def test_cleared_fields_use_registry_defaults(self) -> None:
        ctx = build_formula_context({"arv": 200000, "repairCosts": None, "holdingMonths": ""})
        assert ctx["ARV"] == 200000
        assert ctx["Repairs"] == 0
        assert ctx["Months"] == 6
        assert ctx["Holding"] == 9000

    def test_unparseable_fields_use_registry_defaults(self) -> None:
        ctx = build_formula_context({
            "arv": "n/a",
            "monthlyHoldingCost": "  ",
            "buyBoxPercent": [70],
            "askingPrice": 10**400,
        })
        assert ctx["ARV"] == 0
        assert ctx["Monthly"] == 1500
        assert ctx["BuyBoxPct"] == 70
        assert ctx["Asking"] == 0

    def test_unrelated_form_keys_are_ignored(self) -> None:
        ctx = build_formula_context({"arv": 1, "arvSource": "comps", "repairScope": "gut"})
        assert ctx["ARV"] == 1

    def test_returns_fresh_dict(self) -> None:
        inputs = UnderwritingInputs()
        first = build_formula_context(inputs)
        first["ARV"] = 99
        assert build_formula_context(inputs)["ARV"] == 0

    def test_missing_rule_is_a_programming_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delitem(CONTEXT_RULES, "askingPrice")
        with pytest.raises(KeyError):
            build_formula_context({})
