"""Arithmetic formulas over the underwriting variable registry.

Public API::

    from dealcalc.formulas import (
        validate_formula, evaluate_formula, build_formula_context,
        FORMULA_VARIABLES, DEFAULT_FORMULAS,
    )
"""

from dealcalc.formulas.ast import BinaryOp, BinaryOperator, Expr, Literal, UnaryMinus, Variable
from dealcalc.formulas.context import (
    FormulaContext,
    UnderwritingInputs,
    build_formula_context,
)
from dealcalc.formulas.errors import (
    FormulaError,
    FormulaLexError,
    FormulaParseError,
    FormulaRefError,
    FormulaValidationError,
)
from dealcalc.formulas.evaluator import (
    Evaluation,
    evaluate_expr,
    evaluate_formula,
    evaluate_with_diagnostics,
)
from dealcalc.formulas.lexer import Token, TokenKind, tokenize
from dealcalc.formulas.parser import extract_refs, parse, parse_formula
from dealcalc.formulas.settings import (
    DEFAULT_FORMULAS,
    CustomCalculator,
    CustomCalculatorInput,
    CustomFormula,
    FormulaSettings,
    FormulaSlot,
    is_default_expression,
)
from dealcalc.formulas.validator import ValidationResult, validate_formula
from dealcalc.formulas.variables import (
    FORMULA_VARIABLES,
    FormulaVariable,
    default_context,
    get_variable,
    get_variable_by_name,
    registry_payload,
    variable_names,
)

__all__ = [
    "BinaryOp",
    "BinaryOperator",
    "CustomCalculator",
    "CustomCalculatorInput",
    "CustomFormula",
    "DEFAULT_FORMULAS",
    "Evaluation",
    "Expr",
    "FORMULA_VARIABLES",
    "FormulaContext",
    "FormulaError",
    "FormulaLexError",
    "FormulaParseError",
    "FormulaRefError",
    "FormulaSettings",
    "FormulaSlot",
    "FormulaValidationError",
    "FormulaVariable",
    "Literal",
    "Token",
    "TokenKind",
    "UnaryMinus",
    "UnderwritingInputs",
    "ValidationResult",
    "Variable",
    "build_formula_context",
    "default_context",
    "evaluate_expr",
    "evaluate_formula",
    "evaluate_with_diagnostics",
    "extract_refs",
    "get_variable",
    "get_variable_by_name",
    "is_default_expression",
    "parse",
    "parse_formula",
    "registry_payload",
    "tokenize",
    "validate_formula",
    "variable_names",
]
