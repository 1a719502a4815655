"""
Exception types raised by the Mote lexer, parser and interpreter.
"""
from typing import Any, Optional


class MoteError(Exception):
    """Base class for every error the engine raises. Carries a source location."""

    kind = "Error"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col

    def __str__(self):
        if self.line is not None:
            return f"{self.message} (line {self.line}, col {self.col})"
        return self.message


class LexError(MoteError):
    kind = "LexError"


class ParseError(MoteError):
    """Raised on an unexpected or missing token. Keeps the offending token."""
    kind = "ParseError"

    def __init__(self, message: str, token: Any = None):
        line = getattr(token, 'line', None)
        col = getattr(token, 'col', None)
        super().__init__(message, line, col)
        self.token = token


class MoteRuntimeError(MoteError):
    kind = "RuntimeError"

    def __init__(self, message: str, node: Any = None):
        super().__init__(message, getattr(node, 'line', None), getattr(node, 'col', None))
        self.node = node
