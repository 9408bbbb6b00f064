"""Tokenizer for underwriting formulas.

The terminal set is declared as a small lark grammar and scanned with lark's
basic lexer.  Lark's tokens are translated into :class:`Token` so the parser
never depends on lark types, and lark's errors into :class:`FormulaLexError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lark import Lark
from lark.exceptions import UnexpectedCharacters

from dealcalc.formulas.errors import FormulaLexError


class TokenKind(str, Enum):
    NUMBER = "NUMBER"
    IDENTIFIER = "IDENTIFIER"
    PLUS = "PLUS"
    MINUS = "MINUS"
    STAR = "STAR"
    SLASH = "SLASH"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """A single lexeme.

    ``value`` is a float for NUMBER, the identifier text for IDENTIFIER,
    the operator character for punctuation and ``""`` for EOF.
    """

    kind: TokenKind
    value: float | str
    position: int

    def describe(self) -> str:
        """Render the token for error messages."""
        if self.kind is TokenKind.EOF:
            return "end of formula"
        if self.kind is TokenKind.NUMBER:
            return f"number {self.value:g}"
        return f"'{self.value}'"


# NUMBER takes every dot in a digit run; tokenize() rejects more than one.
TERMINALS = r"""
start: (NUMBER | IDENTIFIER | PLUS | MINUS | STAR | SLASH | LPAREN | RPAREN)*

NUMBER: /[0-9][0-9.]*|\.[0-9][0-9.]*/
IDENTIFIER: /[A-Za-z][A-Za-z0-9_]*/
PLUS: "+"
MINUS: "-"
STAR: "*"
SLASH: "/"
LPAREN: "("
RPAREN: ")"

%import common.WS
%ignore WS
"""

_lexer = Lark(TERMINALS, parser="lalr", lexer="basic", start="start")


def tokenize(source: str) -> list[Token]:
    """Split *source* into tokens, always ending with an EOF token.

    Args:
        source: Raw formula text, e.g. ``"ARV * 0.70 - Repairs"``.

    Returns:
        Tokens in source order.

    Raises:
        FormulaLexError: On an unexpected character or a malformed number.
    """
    tokens: list[Token] = []
    try:
        for raw in _lexer.lex(source):
            kind = TokenKind(raw.type)
            text = str(raw)
            pos = raw.start_pos or 0
            if kind is TokenKind.NUMBER:
                if text.count(".") > 1:
                    raise FormulaLexError(
                        f"Malformed number '{text}' at position {pos}", position=pos
                    )
                tokens.append(Token(kind, float(text), pos))
            else:
                tokens.append(Token(kind, text, pos))
    except UnexpectedCharacters as exc:
        char = source[exc.pos_in_stream] if exc.pos_in_stream < len(source) else ""
        raise FormulaLexError(
            f"Unexpected character '{char}' at position {exc.pos_in_stream}",
            position=exc.pos_in_stream,
            char=char,
        ) from exc
    tokens.append(Token(TokenKind.EOF, "", len(source)))
    return tokens
