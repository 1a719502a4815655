"""
The Mote tokenizer.

Turns canonical-dialect source text into a flat list of tokens, synthesizing
INDENT/DEDENT tokens from leading whitespace with an explicit indent stack.
The alternate dialects have their own tokenizers in mote_frontends; the
`tokenize` entry point here dispatches to them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List

from mote.mote_errors import LexError


class TokenKind(Enum):
    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    IDENT = "IDENT"
    OP = "OP"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    COMMA = "COMMA"
    COLON = "COLON"
    DOT = "DOT"
    NEWLINE = "NEWLINE"
    INDENT = "INDENT"
    DEDENT = "DEDENT"
    EOF = "EOF"


@dataclass
class Token:
    kind: TokenKind
    lexeme: str
    line: int
    col: int

    def __repr__(self):
        return f"{self.kind.value}({self.lexeme!r}) at {self.line}:{self.col}"


TAB_WIDTH = 4

PUNCTUATION = {
    '(': TokenKind.LPAREN,
    ')': TokenKind.RPAREN,
    '[': TokenKind.LBRACKET,
    ']': TokenKind.RBRACKET,
    '{': TokenKind.LBRACE,
    '}': TokenKind.RBRACE,
    ',': TokenKind.COMMA,
    ':': TokenKind.COLON,
    '.': TokenKind.DOT,
}

TWO_CHAR_OPS = {"==", "!=", "<=", ">=", "+=", "-=", "*=", "/=", "%="}
SINGLE_CHAR_OPS = set("+-*/%=<>&$@!")

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    '\\': '\\',
    '"': '"',
    "'": "'",
    '`': '`',
}


def is_ident_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == '_')


def is_ident_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == '_')


def read_escape(src: str, i: int, line: int, col: int):
    """Decode the escape sequence whose backslash is at src[i]. Returns (text, consumed)."""
    if i + 1 >= len(src):
        raise LexError("Unterminated string", line, col)
    nxt = src[i + 1]
    if nxt == 'x':
        digits = src[i + 2:i + 4]
        if len(digits) == 2 and all(ch in "0123456789abcdefABCDEF" for ch in digits):
            return chr(int(digits, 16)), 4
        raise LexError(f"Invalid \\x escape '{digits}'", line, col)
    return ESCAPES.get(nxt, nxt), 2


class Lexer:
    """Tokenizer for the canonical dialect."""

    def __init__(self, source: str):
        self.src = source
        self.i = 0
        self.line = 1
        self.col = 1
        self.indent_stack = [0]
        self.at_line_start = True
        self.depth = 0
        self.tokens: List[Token] = []

    def _add(self, kind: TokenKind, lexeme: str, line: int, col: int):
        self.tokens.append(Token(kind, lexeme, line, col))

    def _peek(self, offset: int = 0) -> str:
        j = self.i + offset
        return self.src[j] if j < len(self.src) else ''

    def _advance(self, n: int = 1):
        self.i += n
        self.col += n

    def tokenize(self) -> List[Token]:
        src = self.src
        while self.i < len(src):
            c = src[self.i]

            if c == '\n':
                # Line breaks inside brackets carry no layout
                if self.depth > 0:
                    self.i += 1
                    self.line += 1
                    self.col = 1
                    continue
                self._add(TokenKind.NEWLINE, "\n", self.line, self.col)
                self.i += 1
                self.line += 1
                self.col = 1
                self.at_line_start = True
                continue

            if self.at_line_start:
                self._handle_indentation()
                continue

            if c in ' \t\r':
                self.i += 1
                self.col += TAB_WIDTH if c == '\t' else 1
                continue

            if c == '#':
                while self.i < len(src) and src[self.i] != '\n':
                    self.i += 1
                continue

            if c in ('"', "'", '`'):
                self._read_string(c)
                continue

            if c.isdigit():
                self._read_number()
                continue

            if is_ident_start(c):
                self._read_ident()
                continue

            if self._read_operator():
                continue

            if c in PUNCTUATION:
                if c in "([{":
                    self.depth += 1
                elif c in ")]}" and self.depth > 0:
                    self.depth -= 1
                self._add(PUNCTUATION[c], c, self.line, self.col)
                self._advance()
                continue

            raise LexError(f"Unexpected character '{c}'", self.line, self.col)

        while len(self.indent_stack) > 1:
            self.indent_stack.pop()
            self._add(TokenKind.DEDENT, "", self.line, self.col)
        self._add(TokenKind.EOF, "", self.line, self.col)
        return self.tokens

    def _handle_indentation(self):
        src = self.src
        j = self.i
        width = 0
        while j < len(src) and src[j] in ' \t':
            width += TAB_WIDTH if src[j] == '\t' else 1
            j += 1
        self.i = j
        self.col = width + 1
        self.at_line_start = False

        # Blank and comment-only lines carry no indentation information
        rest = src[j] if j < len(src) else '\n'
        if rest in '\n#' or (rest == '\r' and src[j + 1:j + 2] in ('\n', '')):
            return

        current = self.indent_stack[-1]
        if width > current:
            self.indent_stack.append(width)
            self._add(TokenKind.INDENT, "", self.line, 1)
        elif width < current:
            while self.indent_stack[-1] > width:
                self.indent_stack.pop()
                self._add(TokenKind.DEDENT, "", self.line, 1)
            if self.indent_stack[-1] != width:
                raise LexError("Dedent does not match any outer indentation level", self.line, self.col)

    def _read_string(self, quote: str):
        src = self.src
        line, start_col = self.line, self.col
        self._advance()
        chars = []
        while True:
            if self.i >= len(src) or src[self.i] == '\n':
                raise LexError("Unterminated string", line, start_col)
            ch = src[self.i]
            if ch == quote:
                self._advance()
                break
            if ch == '\\':
                text, consumed = read_escape(src, self.i, line, self.col)
                chars.append(text)
                self._advance(consumed)
                continue
            chars.append(ch)
            self._advance()
        self._add(TokenKind.STRING, "".join(chars), line, start_col)

    def _read_number(self):
        src = self.src
        start, start_col = self.i, self.col
        saw_dot = False
        self._advance()
        while self.i < len(src):
            ch = src[self.i]
            if ch.isdigit() or ch == '_':
                self._advance()
            elif ch == '.' and not saw_dot and self._peek(1).isdigit():
                saw_dot = True
                self._advance()
            else:
                break
        lexeme = src[start:self.i].replace('_', '')
        if self._peek() == "'" and is_ident_start(self._peek(1)):
            self._advance()
            suffix_start = self.i
            while self.i < len(src) and is_ident_char(src[self.i]):
                self._advance()
            lexeme = f"{lexeme}'{src[suffix_start:self.i]}"
        kind = TokenKind.FLOAT if saw_dot else TokenKind.INT
        self._add(kind, lexeme, self.line, start_col)

    def _read_ident(self):
        src = self.src
        start, start_col = self.i, self.col
        while self.i < len(src) and is_ident_char(src[self.i]):
            self._advance()
        self._add(TokenKind.IDENT, src[start:self.i], self.line, start_col)

    def _read_operator(self) -> bool:
        c = self._peek()
        two = c + self._peek(1)
        if two == "..":
            if self._peek(2) == '<':
                self._add(TokenKind.OP, "..<", self.line, self.col)
                self._advance(3)
            else:
                self._add(TokenKind.OP, "..", self.line, self.col)
                self._advance(2)
            return True
        if two in TWO_CHAR_OPS:
            self._add(TokenKind.OP, two, self.line, self.col)
            self._advance(2)
            return True
        if c in SINGLE_CHAR_OPS:
            self._add(TokenKind.OP, c, self.line, self.col)
            self._advance()
            return True
        return False


def tokenize(source: str, dialect: str = "mote") -> List[Token]:
    """Tokenize `source` in the given dialect ('auto' detects it from the text)."""
    if dialect in ("mote", "nim", None):
        return Lexer(source).tokenize()
    from mote.mote_frontends import registry
    if dialect == "auto":
        frontend = registry.detect_by_content(source)
    else:
        frontend = registry.get(dialect)
    return frontend.tokenize(source)
