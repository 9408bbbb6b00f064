"""Save-time validation of formula text."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel

from dealcalc.formulas.errors import FormulaLexError, FormulaParseError
from dealcalc.formulas.parser import extract_refs, parse_formula
from dealcalc.formulas.variables import FORMULA_VARIABLES, FormulaVariable

MAX_FORMULA_LENGTH = 1000


class ValidationResult(BaseModel):
    """Verdict returned by :func:`validate_formula`."""

    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize as ``{"valid": ...}`` plus ``"error"`` when invalid."""
        return self.model_dump(exclude_none=True)


def validate_formula(
    source: str,
    variables: Iterable[FormulaVariable] = FORMULA_VARIABLES,
) -> ValidationResult:
    """Check that *source* is a well-formed formula over known variables.

    This is the gate every save path goes through.  It never raises: lexer
    and parser errors are turned into a user-facing message, and the first
    (leftmost) unknown variable is reported by name.

    Args:
        source: Formula text as typed by the user.
        variables: Vocabulary to check identifiers against.

    Returns:
        ``ValidationResult(valid=True)`` or ``valid=False`` with ``error``.
    """
    if not isinstance(source, str) or not source.strip():
        return ValidationResult(valid=False, error="Formula cannot be empty")
    if len(source) > MAX_FORMULA_LENGTH:
        return ValidationResult(
            valid=False,
            error=f"Formula is too long (maximum {MAX_FORMULA_LENGTH} characters)",
        )

    try:
        expr = parse_formula(source)
    except (FormulaLexError, FormulaParseError) as exc:
        return ValidationResult(valid=False, error=exc.message)

    known = {v.name for v in variables}
    for name in extract_refs(expr):
        if name not in known:
            return ValidationResult(valid=False, error=f"Unknown variable: {name}")

    return ValidationResult(valid=True)
