"""Expression tree produced by the parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union


class BinaryOperator(str, Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"


@dataclass(frozen=True)
class Literal:
    value: float


@dataclass(frozen=True)
class Variable:
    name: str
    position: int = 0


@dataclass(frozen=True)
class BinaryOp:
    op: BinaryOperator
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class UnaryMinus:
    operand: "Expr"


Expr = Union[Literal, Variable, BinaryOp, UnaryMinus]


def iter_variables(expr: Expr) -> Iterator[Variable]:
    """Yield every Variable node, leftmost first."""
    if isinstance(expr, Variable):
        yield expr
    elif isinstance(expr, BinaryOp):
        yield from iter_variables(expr.left)
        yield from iter_variables(expr.right)
    elif isinstance(expr, UnaryMinus):
        yield from iter_variables(expr.operand)


def to_source(expr: Expr) -> str:
    """Render a tree as fully parenthesized text, for display and debugging."""
    if isinstance(expr, Literal):
        return f"{expr.value:g}"
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, UnaryMinus):
        return f"-{to_source(expr.operand)}"
    return f"({to_source(expr.left)} {expr.op.value} {to_source(expr.right)})"
