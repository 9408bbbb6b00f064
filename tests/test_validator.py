"""Tests for save-time formula validation."""

from __future__ import annotations

import pytest

from dealcalc.formulas import DEFAULT_FORMULAS, FormulaVariable, validate_formula
from dealcalc.formulas.validator import MAX_FORMULA_LENGTH


class TestValid:
    @pytest.mark.parametrize("slot", ["mao", "rule70", "buyBox"])
    def test_default_formulas_are_valid(self, slot: str) -> None:
        result = validate_formula(DEFAULT_FORMULAS[slot].expression)
        assert result.valid is True
        assert result.error is None

    def test_to_dict_has_no_error_key(self) -> None:
        assert validate_formula("ARV * 0.65 - Repairs").to_dict() == {"valid": True}

    def test_constant_formula(self) -> None:
        assert validate_formula("42").valid

    def test_every_registry_name_is_accepted(self) -> None:
        source = " + ".join(
            ["ARV", "Repairs", "Months", "Monthly", "Holding", "BuyClose",
             "SellClose", "TotalClose", "ProfitPct", "BuyBoxPct", "Asking"]
        )
        assert validate_formula(source).valid


class TestInvalid:
    @pytest.mark.parametrize("source", ["", "   ", "\n\t"])
    def test_empty(self, source: str) -> None:
        result = validate_formula(source)
        assert result.valid is False
        assert result.error == "Formula cannot be empty"

    def test_unknown_variable(self) -> None:
        result = validate_formula("ARV * Foo")
        assert result.valid is False
        assert result.error == "Unknown variable: Foo"

    def test_leftmost_unknown_variable_is_reported(self) -> None:
        assert validate_formula("Zed + ARV * Foo").error == "Unknown variable: Zed"

    def test_names_are_case_sensitive(self) -> None:
        assert validate_formula("arv * 0.7").error == "Unknown variable: arv"

    def test_no_partial_token_match(self) -> None:
        assert validate_formula("ARV2 - Repairs").error == "Unknown variable: ARV2"

    def test_missing_closing_paren(self) -> None:
        result = validate_formula("(ARV * 2")
        assert result.valid is False
        assert "Missing closing ')'" in result.error

    def test_extra_closing_paren(self) -> None:
        result = validate_formula("ARV * 2)")
        assert result.valid is False
        assert "Unmatched ')'" in result.error

    def test_lex_error_message(self) -> None:
        result = validate_formula("ARV * 70%")
        assert result.valid is False
        assert result.error == "Unexpected character '%' at position 8"

    def test_malformed_number(self) -> None:
        assert "Malformed number" in validate_formula("ARV * 0.7.0").error

    def test_message_has_no_internal_prefix(self) -> None:
        error = validate_formula("ARV *").error
        assert not error.startswith("Formula parse error")

    def test_syntax_error_wins_over_unknown_variable(self) -> None:
        assert "Unknown variable" not in validate_formula("Foo *").error

    def test_too_long(self) -> None:
        source = "1+" * (MAX_FORMULA_LENGTH // 2) + "1"
        result = validate_formula(source)
        assert result.valid is False
        assert "too long" in result.error

    def test_to_dict_includes_error(self) -> None:
        assert validate_formula("").to_dict() == {
            "valid": False,
            "error": "Formula cannot be empty",
        }


class TestCustomVocabulary:
    def test_alternate_variables(self) -> None:
        vocab = [FormulaVariable(id="rent", name="Rent", label="Monthly Rent")]
        assert validate_formula("Rent * 12", vocab).valid
        assert validate_formula("ARV", vocab).error == "Unknown variable: ARV"
