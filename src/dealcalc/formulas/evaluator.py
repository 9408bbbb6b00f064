"""Tree-walking evaluator for parsed formula expressions.

Evaluation is total: it runs on every keystroke of the underwriting form,
so runtime anomalies degrade to ``0`` instead of raising.

- division by zero evaluates to ``0``
- a variable missing from the context evaluates to ``0``
- text that does not lex or parse evaluates to ``0``
- a non-finite final result (overflow) evaluates to ``0``
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from dealcalc.formulas.ast import BinaryOp, BinaryOperator, Expr, Literal, UnaryMinus, Variable
from dealcalc.formulas.errors import FormulaError
from dealcalc.formulas.parser import parse_formula

FALLBACK_INVALID = "invalid formula"
FALLBACK_MISSING = "missing variable"
FALLBACK_DIV_ZERO = "division by zero"
FALLBACK_NON_FINITE = "non-finite result"


@dataclass
class Evaluation:
    """A result plus the fallbacks that shaped it.

    Attributes:
        value: The numeric result (always finite).
        fallbacks: Human-readable notes, one per fallback applied.
    """

    value: float
    fallbacks: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallbacks)


def evaluate_formula(source: str, context: Mapping[str, Any]) -> float:
    """Evaluate formula text against a variable context.

    Args:
        source: Formula text, e.g. ``"(ARV * 0.70) - Repairs"``.
        context: Mapping of variable names to values, usually from
            ``build_formula_context()``.

    Returns:
        The computed value, or ``0`` when the formula cannot be evaluated.
    """
    return evaluate_with_diagnostics(source, context).value


def evaluate_with_diagnostics(source: str, context: Mapping[str, Any]) -> Evaluation:
    """Like :func:`evaluate_formula` but also report which fallbacks fired."""
    if not isinstance(source, str) or not source.strip():
        return Evaluation(0.0, [f"{FALLBACK_INVALID}: empty formula"])
    try:
        expr = parse_formula(source)
    except FormulaError as exc:
        return Evaluation(0.0, [f"{FALLBACK_INVALID}: {exc.message}"])
    return evaluate_expr_with_diagnostics(expr, context)


def evaluate_expr(expr: Expr, context: Mapping[str, Any]) -> float:
    """Evaluate an already parsed tree; see :func:`evaluate_formula`."""
    return evaluate_expr_with_diagnostics(expr, context).value


def evaluate_expr_with_diagnostics(expr: Expr, context: Mapping[str, Any]) -> Evaluation:
    notes: list[str] = []
    try:
        value = _eval(expr, context, notes)
    except RecursionError:
        return Evaluation(0.0, [f"{FALLBACK_INVALID}: formula is too long"])
    if not math.isfinite(value):
        notes.append(FALLBACK_NON_FINITE)
        value = 0.0
    return Evaluation(value, notes)


def _eval(node: Expr, ctx: Mapping[str, Any], notes: list[str]) -> float:
    """Recursively evaluate a tree node, recording fallbacks in *notes*."""
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, Variable):
        return _lookup(node.name, ctx, notes)

    if isinstance(node, UnaryMinus):
        return -_eval(node.operand, ctx, notes)

    if isinstance(node, BinaryOp):
        left = _eval(node.left, ctx, notes)
        right = _eval(node.right, ctx, notes)
        if node.op is BinaryOperator.ADD:
            return left + right
        if node.op is BinaryOperator.SUB:
            return left - right
        if node.op is BinaryOperator.MUL:
            return left * right
        if node.op is BinaryOperator.DIV:
            if right == 0:
                notes.append(FALLBACK_DIV_ZERO)
                return 0.0
            return left / right

    raise TypeError(f"Unknown node type: {type(node).__name__}")


def _lookup(name: str, ctx: Mapping[str, Any], notes: list[str]) -> float:
    raw = ctx.get(name)
    if raw is None:
        notes.append(f"{FALLBACK_MISSING}: {name}")
        return 0.0
    try:
        return float(raw)
    except (TypeError, ValueError, OverflowError):
        notes.append(f"{FALLBACK_MISSING}: {name} is not numeric")
        return 0.0
