from __future__ import annotations
from typing import Optional


class ExpressionError(ValueError):
    """Base class for everything the expression pipeline raises."""

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        self.message = message
        self.position = position
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} at position {self.position}"


class LexError(ExpressionError):
    pass


class ParseError(ExpressionError):
    pass


class EvaluationError(ExpressionError):
    pass
