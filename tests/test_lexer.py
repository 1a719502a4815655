import pytest

from mote.mote_errors import LexError
from mote.mote_lexer import TokenKind, tokenize


def kinds(src, skip_newlines=True):
    toks = tokenize(src)
    return [t.kind for t in toks if not (skip_newlines and t.kind == TokenKind.NEWLINE)]


def lexemes(src):
    return [t.lexeme for t in tokenize(src) if t.kind not in (TokenKind.NEWLINE, TokenKind.EOF)]


def test_simple_assignment_tokens():
    toks = tokenize("x = 1")
    assert [t.kind for t in toks] == [TokenKind.IDENT, TokenKind.OP, TokenKind.INT, TokenKind.EOF]
    assert [t.lexeme for t in toks[:3]] == ["x", "=", "1"]
    assert (toks[2].line, toks[2].col) == (1, 5)


def test_indent_and_dedent_are_synthesized():
    assert kinds("if x:\n  y\nz") == [
        TokenKind.IDENT, TokenKind.IDENT, TokenKind.COLON,
        TokenKind.INDENT, TokenKind.IDENT,
        TokenKind.DEDENT, TokenKind.IDENT, TokenKind.EOF,
    ]


def test_blank_and_comment_lines_do_not_change_indentation():
    src = "if x:\n  y\n\n# note\n      # deeper note\n  z\n"
    assert kinds(src) == [
        TokenKind.IDENT, TokenKind.IDENT, TokenKind.COLON,
        TokenKind.INDENT, TokenKind.IDENT, TokenKind.IDENT,
        TokenKind.DEDENT, TokenKind.EOF,
    ]


def test_tab_counts_as_four_columns():
    src = "if x:\n\ty\n    z\n"
    assert kinds(src).count(TokenKind.INDENT) == 1
    assert kinds(src).count(TokenKind.DEDENT) == 1


def test_pending_dedents_flushed_at_eof():
    src = "if a:\n  if b:\n    c"
    toks = kinds(src)
    assert toks[-3:] == [TokenKind.DEDENT, TokenKind.DEDENT, TokenKind.EOF]


def test_inconsistent_dedent_is_an_error():
    with pytest.raises(LexError) as exc:
        tokenize("if a:\n    b\n  c\n")
    assert exc.value.line == 3


@pytest.mark.parametrize("src, expected", [
    ("0..3", ["0", "..", "3"]),
    ("0..<3", ["0", "..<", "3"]),
    ("1.5", ["1.5"]),
    ("123'i32", ["123'i32"]),
    ("2.5'f32", ["2.5'f32"]),
    ("1_000", ["1000"]),
    ("a != b", ["a", "!=", "b"]),
    ("x += 1", ["x", "+=", "1"]),
    ("a and not b", ["a", "and", "not", "b"]),
    ("$x & @[1]", ["$", "x", "&", "@", "[", "1", "]"]),
])
def test_token_lexemes(src, expected):
    assert lexemes(src) == expected


def test_number_kinds():
    toks = tokenize("1 2.0 3'u8")
    assert [t.kind for t in toks[:3]] == [TokenKind.INT, TokenKind.FLOAT, TokenKind.INT]


def test_keyword_operators_lex_as_identifiers():
    toks = tokenize("a mod b")
    assert toks[1].kind == TokenKind.IDENT
    assert toks[1].lexeme == "mod"


@pytest.mark.parametrize("src, expected", [
    (r'"a\nb"', "a\nb"),
    (r"'it\'s'", "it's"),
    ("`raw`", "raw"),
    (r'"\x41\x42"', "AB"),
    (r'"tab\tend"', "tab\tend"),
    (r'"\q"', "q"),
])
def test_string_escapes(src, expected):
    tok = tokenize(src)[0]
    assert tok.kind == TokenKind.STRING
    assert tok.lexeme == expected


def test_unterminated_string_reports_opening_quote():
    with pytest.raises(LexError) as exc:
        tokenize('x = 1\ny = "abc')
    assert "Unterminated string" in str(exc.value)
    assert (exc.value.line, exc.value.col) == (2, 5)


def test_unexpected_character():
    with pytest.raises(LexError) as exc:
        tokenize("x = 1 ? 2")
    assert "Unexpected character '?'" in exc.value.message


def test_comment_runs_to_end_of_line():
    assert lexemes("x = 1 # trailing = comment") == ["x", "=", "1"]


def test_dialect_dispatch_python():
    words = lexemes_for("def f(): pass", "python")
    assert words[:2] == ["proc", "f"]
    assert "=" in words
    assert words[-1] == "discard"


def test_dialect_dispatch_auto_detects_javascript():
    words = lexemes_for("console.log(1);", "auto")
    assert words[0] == "echo"


def lexemes_for(src, dialect):
    return [t.lexeme for t in tokenize(src, dialect)
            if t.kind not in (TokenKind.NEWLINE, TokenKind.EOF, TokenKind.INDENT, TokenKind.DEDENT)]


def test_line_breaks_inside_brackets_carry_no_layout():
    src = "x = max(1,\n      2)\ny = [1,\n  2]\n"
    layout = (TokenKind.NEWLINE, TokenKind.INDENT, TokenKind.DEDENT)
    toks = tokenize(src)
    assert [t.kind for t in toks if t.kind in layout] == [TokenKind.NEWLINE, TokenKind.NEWLINE]
    assert [t.lexeme for t in toks if t.kind == TokenKind.INT] == ["1", "2", "1", "2"]
    assert (toks[6].lexeme, toks[6].line, toks[6].col) == ("2", 2, 7)
