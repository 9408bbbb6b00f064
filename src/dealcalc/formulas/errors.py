"""Error types for formula lexing, parsing and saving."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors.

    Attributes:
        message: Human-readable description without position suffix.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class FormulaLexError(FormulaError):
    """A character sequence that cannot be turned into a token.

    Attributes:
        position: 0-based offset of the offending text.
        char: The offending character, if a single one is to blame.
    """

    def __init__(self, message: str, position: int, char: str | None = None) -> None:
        self.position = position
        self.char = char
        super().__init__(message)

    def __str__(self) -> str:
        return f"Formula lex error: {self.message} (at position {self.position})"


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)

    def __str__(self) -> str:
        full = f"Formula parse error: {self.message}"
        if self.position is not None:
            full += f" (at position {self.position})"
        return full


class FormulaRefError(FormulaError):
    """Reference to a name outside the variable registry.

    Attributes:
        ref_name: The unresolved reference.
        available: Names that are currently available.
    """

    def __init__(self, ref_name: str, available: list[str] | None = None) -> None:
        self.ref_name = ref_name
        self.available = available or []
        super().__init__(f"Unknown variable: {ref_name}")

    def __str__(self) -> str:
        msg = self.message
        if self.available:
            msg += f". Available: {self.available}"
        return msg


class FormulaValidationError(FormulaError):
    """Raised by save paths when a formula fails validation.

    Attributes:
        expression: The rejected formula text.
    """

    def __init__(self, message: str, expression: str) -> None:
        self.expression = expression
        super().__init__(message)
