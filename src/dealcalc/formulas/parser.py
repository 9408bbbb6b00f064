"""Recursive-descent parser for underwriting formulas.

Grammar (lowest to highest precedence)::

    expr     := term (("+" | "-") term)*
    term     := factor (("*" | "/") factor)*
    factor   := "-" factor | primary
    primary  := NUMBER | IDENTIFIER | "(" expr ")"

Binary operators are left-associative.  Unary minus binds tighter than
``*`` and ``/``, so ``-ARV * 2`` is ``(-ARV) * 2``.  Identifiers are not
resolved here; unknown names are reported by the validator.
"""

from __future__ import annotations

from dealcalc.formulas.ast import (
    BinaryOp,
    BinaryOperator,
    Expr,
    Literal,
    UnaryMinus,
    Variable,
    iter_variables,
)
from dealcalc.formulas.errors import FormulaParseError
from dealcalc.formulas.lexer import Token, TokenKind, tokenize

# Parentheses plus unary minus signs; keeps recursion well inside Python's limit.
MAX_NESTING = 100

_ADDITIVE = {TokenKind.PLUS: BinaryOperator.ADD, TokenKind.MINUS: BinaryOperator.SUB}
_MULTIPLICATIVE = {TokenKind.STAR: BinaryOperator.MUL, TokenKind.SLASH: BinaryOperator.DIV}


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        if not tokens or tokens[-1].kind is not TokenKind.EOF:
            end = tokens[-1].position + 1 if tokens else 0
            tokens = [*tokens, Token(TokenKind.EOF, "", end)]
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind is not TokenKind.EOF:
            self.pos += 1
        return token

    def _enter(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FormulaParseError(
                f"Formula is nested too deeply at position {token.position}",
                position=token.position,
            )

    def parse(self) -> Expr:
        expr = self._expr()
        trailing = self._peek()
        if trailing.kind is TokenKind.RPAREN:
            raise FormulaParseError(
                f"Unmatched ')' at position {trailing.position}",
                position=trailing.position,
            )
        if trailing.kind is not TokenKind.EOF:
            raise FormulaParseError(
                f"Unexpected {trailing.describe()} at position {trailing.position}",
                position=trailing.position,
            )
        return expr

    def _expr(self) -> Expr:
        left = self._term()
        while self._peek().kind in _ADDITIVE:
            op = _ADDITIVE[self._advance().kind]
            left = BinaryOp(op, left, self._term())
        return left

    def _term(self) -> Expr:
        left = self._factor()
        while self._peek().kind in _MULTIPLICATIVE:
            op = _MULTIPLICATIVE[self._advance().kind]
            left = BinaryOp(op, left, self._factor())
        return left

    def _factor(self) -> Expr:
        token = self._peek()
        if token.kind is TokenKind.MINUS:
            self._advance()
            self._enter(token)
            operand = self._factor()
            self.depth -= 1
            return UnaryMinus(operand)
        return self._primary()

    def _primary(self) -> Expr:
        token = self._advance()
        if token.kind is TokenKind.NUMBER:
            return Literal(float(token.value))
        if token.kind is TokenKind.IDENTIFIER:
            return Variable(str(token.value), token.position)
        if token.kind is TokenKind.LPAREN:
            self._enter(token)
            inner = self._expr()
            closing = self._advance()
            if closing.kind is TokenKind.EOF:
                raise FormulaParseError(
                    f"Missing closing ')' for '(' at position {token.position}",
                    position=token.position,
                )
            if closing.kind is not TokenKind.RPAREN:
                raise FormulaParseError(
                    f"Expected ')' but found {closing.describe()} "
                    f"at position {closing.position}",
                    position=closing.position,
                )
            self.depth -= 1
            return inner
        raise FormulaParseError(
            f"Expected number, variable, or '(' but found {token.describe()} "
            f"at position {token.position}",
            position=token.position,
        )


def parse(tokens: list[Token]) -> Expr:
    """Build an expression tree from a token list.

    Args:
        tokens: Output of :func:`tokenize`.  A missing trailing EOF is
            tolerated.

    Returns:
        The root expression node.

    Raises:
        FormulaParseError: If the tokens do not form exactly one expression.
    """
    return _Parser(tokens).parse()


def parse_formula(source: str) -> Expr:
    """Tokenize and parse formula text.

    Raises:
        FormulaLexError: On characters outside the formula alphabet.
        FormulaParseError: On syntax errors.
    """
    return parse(tokenize(source))


def extract_refs(expr: Expr) -> list[str]:
    """Return referenced variable names, leftmost first, without repeats."""
    seen: dict[str, None] = {}
    for node in iter_variables(expr):
        seen.setdefault(node.name, None)
    return list(seen)
