"""
Surface-syntax frontends.

Every dialect ends up as canonical Mote tokens so the single parser in
mote_parser serves all of them. The Python and JavaScript frontends lex
their own syntax and then rewrite the token stream: keyword spellings,
operators, condition parentheses, and (for JavaScript) braces become the
canonical colon/NEWLINE/INDENT/DEDENT shape.
"""
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from mote.mote_ast import Program
from mote.mote_errors import LexError, MoteError, ParseError
from mote.mote_lexer import (
    PUNCTUATION, TWO_CHAR_OPS, Lexer, Token, TokenKind, is_ident_char, is_ident_start,
)
from mote.mote_parser import parse


def _like(tok: Token, kind: TokenKind, lexeme: str) -> Token:
    return Token(kind, lexeme, tok.line, tok.col)


class Frontend(ABC):
    """One accepted surface syntax."""

    name: str = ""
    file_extensions: Tuple[str, ...] = ()
    supports_type_annotations = False

    @abstractmethod
    def tokenize(self, source: str) -> List[Token]:
        """Canonical tokens for `source`."""

    def parse(self, tokens: List[Token]) -> Program:
        return parse(tokens)

    def compile(self, source: str) -> Program:
        return self.parse(self.tokenize(source))

    def supports_extension(self, ext: str) -> bool:
        return ext.lower() in self.file_extensions

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class MoteFrontend(Frontend):
    name = "mote"
    file_extensions = (".mote", ".nim", ".nims", ".nimini")
    supports_type_annotations = True

    def tokenize(self, source: str) -> List[Token]:
        return Lexer(source).tokenize()


# --- Python ---

PY_TWO_CHAR_OPS = TWO_CHAR_OPS | {"//", "**", "->"}

PY_KEYWORDS = {
    "def": "proc",
    "True": "true",
    "False": "false",
    "None": "nil",
    "pass": "discard",
    "print": "echo",
}

PY_METHODS = {
    "upper": "toUpper",
    "lower": "toLower",
    "startswith": "startsWith",
    "endswith": "endsWith",
    "append": "add",
}


class PythonLexer(Lexer):
    """The canonical tokenizer with Python's operator set."""

    def _read_operator(self) -> bool:
        two = self._peek() + self._peek(1)
        if two in PY_TWO_CHAR_OPS:
            self._add(TokenKind.OP, two, self.line, self.col)
            self._advance(2)
            return True
        return super()._read_operator()


def _matching_paren(tokens: List[Token], open_index: int) -> int:
    depth = 0
    for j in range(open_index, len(tokens)):
        kind = tokens[j].kind
        if kind in (TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.LBRACE):
            depth += 1
        elif kind in (TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE):
            depth -= 1
            if depth == 0:
                return j
    raise ParseError("Unclosed '('", tokens[open_index])


def _split_arguments(tokens: List[Token]) -> List[List[Token]]:
    args: List[List[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.kind in (TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.LBRACE):
            depth += 1
        elif tok.kind in (TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE):
            depth -= 1
        elif tok.kind == TokenKind.COMMA and depth == 0:
            args.append([])
            continue
        args[-1].append(tok)
    return [a for a in args if a]


def _range_tokens(call: Token, args: List[List[Token]]) -> Optional[List[Token]]:
    """`range(n)` / `range(a, b)` as the canonical `a ..< b`. None when it has a step."""
    def grouped(arg: List[Token]) -> List[Token]:
        return [_like(arg[0], TokenKind.LPAREN, "(")] + arg + [_like(arg[-1], TokenKind.RPAREN, ")")]

    if len(args) == 1:
        start = [_like(call, TokenKind.INT, "0")]
        stop = args[0]
    elif len(args) == 2:
        start, stop = grouped(args[0]), args[1]
    else:
        return None
    return start + [_like(call, TokenKind.OP, "..<")] + grouped(stop)


def translate_python(tokens: List[Token]) -> List[Token]:
    """Rewrite Python-dialect tokens into canonical ones."""
    tokens = list(tokens)
    out: List[Token] = []
    in_def = False
    depth = 0
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        prev = out[-1] if out else None
        if tok.kind == TokenKind.IDENT:
            if tok.lexeme == "range" and i + 1 < len(tokens) and tokens[i + 1].kind == TokenKind.LPAREN \
                    and not (prev and prev.kind == TokenKind.DOT):
                close = _matching_paren(tokens, i + 1)
                rewritten = _range_tokens(tok, _split_arguments(tokens[i + 2:close]))
                if rewritten is not None:
                    tokens[i:close + 1] = rewritten
                    continue
            if prev and prev.kind == TokenKind.DOT and tok.lexeme in PY_METHODS:
                out.append(_like(tok, TokenKind.IDENT, PY_METHODS[tok.lexeme]))
            elif tok.lexeme in PY_KEYWORDS:
                if tok.lexeme == "def":
                    in_def, depth = True, 0
                out.append(_like(tok, TokenKind.IDENT, PY_KEYWORDS[tok.lexeme]))
            else:
                out.append(tok)
        elif tok.kind == TokenKind.OP and tok.lexeme == "//":
            out.append(_like(tok, TokenKind.IDENT, "div"))
        elif tok.kind == TokenKind.OP and tok.lexeme == "->":
            out.append(_like(tok, TokenKind.COLON, ":"))
        elif tok.kind == TokenKind.COLON and in_def and depth == 0:
            # The colon closing a def signature opens the body like canonical '='
            out.append(_like(tok, TokenKind.OP, "="))
            in_def = False
        else:
            if tok.kind in (TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.LBRACE):
                depth += 1
            elif tok.kind in (TokenKind.RPAREN, TokenKind.RBRACKET, TokenKind.RBRACE):
                depth -= 1
            out.append(tok)
        i += 1
    return out


class PythonFrontend(Frontend):
    name = "python"
    file_extensions = (".py",)
    supports_type_annotations = True

    def lex(self, source: str) -> List[Token]:
        return PythonLexer(source).tokenize()

    def tokenize(self, source: str) -> List[Token]:
        return translate_python(self.lex(source))


# --- JavaScript ---

JS_THREE_CHAR_OPS = {"===", "!=="}
JS_TWO_CHAR_OPS = TWO_CHAR_OPS | {"&&", "||", "=>", "++", "--", "**"}
JS_SINGLE_CHAR_OPS = set("+-*/%=<>!&|;?")

JS_KEYWORDS = {
    "function": "proc",
    "let": "var",
    "const": "let",
    "null": "nil",
    "undefined": "nil",
    "of": "in",
}

JS_METHODS = {
    "length": "len",
    "toUpperCase": "toUpper",
    "toLowerCase": "toLower",
    "push": "add",
    "includes": "contains",
}

JS_OPERATORS = {
    "&&": (TokenKind.IDENT, "and"),
    "||": (TokenKind.IDENT, "or"),
    "!": (TokenKind.IDENT, "not"),
    "===": (TokenKind.OP, "=="),
    "!==": (TokenKind.OP, "!="),
}


class JavaScriptLexer(Lexer):
    """Brace-delimited tokenizer. Newlines are kept as raw NEWLINE tokens; no INDENT/DEDENT."""

    def tokenize(self) -> List[Token]:
        src = self.src
        while self.i < len(src):
            c = src[self.i]
            if c == '\n':
                self._add(TokenKind.NEWLINE, "\n", self.line, self.col)
                self.i += 1
                self.line += 1
                self.col = 1
                continue
            if c in ' \t\r':
                self._advance()
                continue
            if src.startswith("//", self.i):
                while self.i < len(src) and src[self.i] != '\n':
                    self.i += 1
                continue
            if src.startswith("/*", self.i):
                self._skip_block_comment()
                continue
            if c in ('"', "'", '`'):
                self._read_string(c)
                continue
            if c.isdigit():
                self._read_number()
                continue
            if is_ident_start(c) or c == '$':
                start, start_col = self.i, self.col
                self._advance()
                while self.i < len(src) and (is_ident_char(src[self.i]) or src[self.i] == '$'):
                    self._advance()
                self._add(TokenKind.IDENT, src[start:self.i], self.line, start_col)
                continue
            if self._read_operator():
                continue
            if c in PUNCTUATION:
                self._add(PUNCTUATION[c], c, self.line, self.col)
                self._advance()
                continue
            raise LexError(f"Unexpected character '{c}'", self.line, self.col)
        self._add(TokenKind.EOF, "", self.line, self.col)
        return self.tokens

    def _skip_block_comment(self):
        end = self.src.find("*/", self.i + 2)
        if end < 0:
            raise LexError("Unterminated comment", self.line, self.col)
        for ch in self.src[self.i:end + 2]:
            if ch == '\n':
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.i = end + 2

    def _read_operator(self) -> bool:
        for size, ops in ((3, JS_THREE_CHAR_OPS), (2, JS_TWO_CHAR_OPS)):
            text = self.src[self.i:self.i + size]
            if text in ops:
                self._add(TokenKind.OP, text, self.line, self.col)
                self._advance(size)
                return True
        c = self._peek()
        if c in JS_SINGLE_CHAR_OPS:
            self._add(TokenKind.OP, c, self.line, self.col)
            self._advance()
            return True
        return False


_OBJECT_CONTEXT = (TokenKind.OP, TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.COMMA, TokenKind.COLON)


class _JavaScriptTranslator:
    """Single pass from raw JavaScript tokens to canonical tokens."""

    def __init__(self, tokens: List[Token]):
        self.raw = tokens
        self.out: List[Token] = []
        # Open delimiters: 'paren', 'strip' (a condition paren that is dropped), 'bracket', 'object', 'block'
        self.stack: List[str] = []

    def emit(self, tok: Token, kind: TokenKind = None, lexeme: str = None):
        if kind is None:
            self.out.append(tok)
        else:
            self.out.append(_like(tok, kind, lexeme))

    def newline(self, tok: Token):
        if self.out and self.out[-1].kind not in (TokenKind.NEWLINE, TokenKind.INDENT):
            self.emit(tok, TokenKind.NEWLINE, "\n")

    def at(self, i: int) -> Optional[Token]:
        return self.raw[i] if i < len(self.raw) else None

    def is_ident(self, i: int, lexeme: str) -> bool:
        tok = self.at(i)
        return tok is not None and tok.kind == TokenKind.IDENT and tok.lexeme == lexeme

    def open_condition(self, i: int) -> int:
        """If raw[i] is '(', mark it to be dropped with its partner. Returns the next raw index."""
        tok = self.at(i)
        if tok is not None and tok.kind == TokenKind.LPAREN:
            self.stack.append('strip')
            return i + 1
        return i

    def run(self) -> List[Token]:
        i = 0
        raw = self.raw
        while i < len(raw):
            tok = raw[i]
            prev_raw = raw[i - 1] if i > 0 else None
            match tok.kind:
                case TokenKind.IDENT:
                    i = self.ident(i)
                    continue
                case TokenKind.OP:
                    self.operator(tok)
                case TokenKind.LPAREN:
                    self.stack.append('paren')
                    self.emit(tok)
                case TokenKind.LBRACKET:
                    self.stack.append('bracket')
                    self.emit(tok)
                case TokenKind.RPAREN | TokenKind.RBRACKET:
                    if not self.stack:
                        raise ParseError(f"Unbalanced '{tok.lexeme}'", tok)
                    if self.stack.pop() != 'strip':
                        self.emit(tok)
                case TokenKind.LBRACE:
                    self.open_brace(tok, prev_raw)
                case TokenKind.RBRACE:
                    self.close_brace(tok)
                case TokenKind.NEWLINE:
                    if not self.stack or self.stack[-1] == 'block':
                        self.newline(tok)
                case TokenKind.EOF:
                    if self.stack:
                        raise ParseError("Unclosed block at end of input", tok)
                    self.newline(tok)
                    self.emit(tok)
                case _:
                    self.emit(tok)
            i += 1
        return self.out

    def ident(self, i: int) -> int:
        tok = self.raw[i]
        prev = self.out[-1] if self.out else None
        word = tok.lexeme
        if word == "console" and self.at(i + 1) is not None and self.at(i + 1).kind == TokenKind.DOT \
                and self.is_ident(i + 2, "log"):
            self.emit(tok, TokenKind.IDENT, "echo")
            return i + 3
        if word == "else" and self.is_ident(i + 1, "if"):
            self.emit(tok, TokenKind.IDENT, "elif")
            return self.open_condition(i + 2)
        if word in ("if", "while", "for"):
            self.emit(tok)
            nxt = self.open_condition(i + 1)
            if word == "for" and nxt != i + 1:
                if self.at(nxt) is not None and self.at(nxt).lexeme in ("let", "const", "var"):
                    nxt += 1
                self._reject_c_style_for(nxt)
            return nxt
        if prev is not None and prev.kind == TokenKind.DOT and word in JS_METHODS:
            self.emit(tok, TokenKind.IDENT, JS_METHODS[word])
        elif word in JS_KEYWORDS:
            self.emit(tok, TokenKind.IDENT, JS_KEYWORDS[word])
        else:
            self.emit(tok)
        return i + 1

    def _reject_c_style_for(self, i: int):
        depth = 1
        while i < len(self.raw) and depth > 0:
            tok = self.raw[i]
            if tok.kind in (TokenKind.LPAREN, TokenKind.LBRACKET):
                depth += 1
            elif tok.kind in (TokenKind.RPAREN, TokenKind.RBRACKET):
                depth -= 1
            elif tok.kind == TokenKind.OP and tok.lexeme == ";":
                raise ParseError("C-style for loops are not supported; use for...of", tok)
            i += 1

    def operator(self, tok: Token):
        op = tok.lexeme
        if op in JS_OPERATORS:
            kind, lexeme = JS_OPERATORS[op]
            self.emit(tok, kind, lexeme)
        elif op == ";":
            self.newline(tok)
        elif op in ("++", "--"):
            prev = self.out[-1] if self.out else None
            if prev is None or prev.kind not in (TokenKind.IDENT, TokenKind.RBRACKET, TokenKind.RPAREN):
                raise ParseError(f"Prefix '{op}' is not supported", tok)
            self.emit(tok, TokenKind.OP, "+=" if op == "++" else "-=")
            self.emit(tok, TokenKind.INT, "1")
        elif op == "=>":
            raise ParseError("Arrow functions are not supported; use function", tok)
        else:
            self.emit(tok)

    def open_brace(self, tok: Token, prev_raw: Optional[Token]):
        is_object = prev_raw is not None and (
            (prev_raw.kind in _OBJECT_CONTEXT and prev_raw.lexeme != ";")
            or (prev_raw.kind == TokenKind.IDENT and prev_raw.lexeme == "return")
        )
        if is_object:
            self.stack.append('object')
            self.emit(tok)
            return
        self.stack.append('block')
        if not self.out or self.out[-1].kind != TokenKind.COLON:
            self.emit(tok, TokenKind.COLON, ":")
        self.emit(tok, TokenKind.NEWLINE, "\n")
        self.emit(tok, TokenKind.INDENT, "")

    def close_brace(self, tok: Token):
        if not self.stack:
            raise ParseError("Unbalanced '}'", tok)
        kind = self.stack.pop()
        if kind == 'object':
            self.emit(tok)
            return
        if kind != 'block':
            raise ParseError("Mismatched '}'", tok)
        if self.out and self.out[-1].kind == TokenKind.INDENT:
            self.emit(tok, TokenKind.IDENT, "discard")
        self.newline(tok)
        self.emit(tok, TokenKind.DEDENT, "")


def translate_javascript(tokens: List[Token]) -> List[Token]:
    """Rewrite raw JavaScript-dialect tokens into canonical ones."""
    return _JavaScriptTranslator(tokens).run()


class JavaScriptFrontend(Frontend):
    name = "javascript"
    file_extensions = (".js", ".mjs")

    def lex(self, source: str) -> List[Token]:
        return JavaScriptLexer(source).tokenize()

    def tokenize(self, source: str) -> List[Token]:
        return translate_javascript(self.lex(source))


# --- registry and detection ---

_CANONICAL_MARKERS = re.compile(r"^\s*proc\s+\w+|\bdiscard\b|^\s*echo\s", re.MULTILINE)
_JS_MARKERS = re.compile(r"\bfunction\s|\bconsole\.log\b|=>|===|!==|^\s*(const|let)\s+\w+\s*=.*;\s*$", re.MULTILINE)
_PY_MARKERS = re.compile(r"^\s*def\s+\w+\s*\(|\bTrue\b|\bFalse\b|\bNone\b|^\s*import\s|^\s*print\(", re.MULTILINE)


class FrontendRegistry:
    """Frontends by name and alias."""

    def __init__(self):
        self.frontends: Dict[str, Frontend] = {}
        self.aliases: Dict[str, str] = {}
        self.default = "mote"

    def register(self, frontend: Frontend, aliases: Tuple[str, ...] = ()):
        self.frontends[frontend.name] = frontend
        for alias in aliases:
            self.aliases[alias] = frontend.name

    def get(self, name: str) -> Frontend:
        key = name.lower()
        key = self.aliases.get(key, key)
        if key not in self.frontends:
            raise MoteError(f"Unknown dialect '{name}' (known: {', '.join(sorted(self.frontends))})")
        return self.frontends[key]

    def names(self) -> List[str]:
        return list(self.frontends)

    def detect_by_extension(self, filename: str) -> Optional[Frontend]:
        ext = os.path.splitext(filename)[1]
        if not ext:
            return None
        for frontend in self.frontends.values():
            if frontend.supports_extension(ext):
                return frontend
        return None

    def detect_by_content(self, source: str) -> Frontend:
        if _CANONICAL_MARKERS.search(source):
            return self.frontends[self.default]
        if _JS_MARKERS.search(source) or ("var " in source and "{" in source and ";" in source):
            return self.frontends["javascript"]
        if _PY_MARKERS.search(source):
            return self.frontends["python"]
        return self.frontends[self.default]

    def auto_detect(self, source: str, filename: Optional[str] = None) -> Frontend:
        """Pick a frontend by file extension first, then by content."""
        if filename:
            frontend = self.detect_by_extension(filename)
            if frontend is not None:
                return frontend
        return self.detect_by_content(source)


registry = FrontendRegistry()
registry.register(MoteFrontend(), ("nim", "nimini", "canonical"))
registry.register(PythonFrontend(), ("py",))
registry.register(JavaScriptFrontend(), ("js",))


def detect_dialect(source: str, filename: Optional[str] = None) -> str:
    return registry.auto_detect(source, filename).name


def compile_source(source: str, dialect: Optional[str] = None, filename: Optional[str] = None) -> Program:
    """Tokenize and parse `source`. Without a dialect it is detected from the filename, then the text."""
    if dialect and dialect != "auto":
        frontend = registry.get(dialect)
    else:
        frontend = registry.auto_detect(source, filename)
    return frontend.compile(source)
