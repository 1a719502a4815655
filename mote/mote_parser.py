"""
Recursive-descent parser for Mote, with precedence climbing for expressions.

Consumes the canonical token stream produced by mote_lexer (the alternate
dialect frontends remap their tokens onto the same vocabulary) and builds
the dataclass AST from mote_ast.
"""
from typing import List, Optional

from mote.mote_ast import (
    Addr, ArrayLit, Assign, BinOp, Block, BoolLit, Break, Call, Case, Cast, CondBranch,
    Continue, Defer, Deref, Discard, Dot, EnumType, Expr, ExprStmt, FloatLit, For,
    GenericType, Ident, If, Index, IntLit, Lambda, MapLit, NamedTupleLit, NilLit,
    ObjConstr, ObjectType, OfBranch, Param, PointerType, ProcDecl, ProcType, Program,
    Return, SimpleType, Stmt, StringLit, TupleLit, TypeDecl, TypeNode, UnaryOp,
    UnpackDecl, VarDecl, While,
)
from mote.mote_errors import ParseError
from mote.mote_lexer import Token, TokenKind

BINARY_PRECEDENCE = {
    "or": 1,
    "and": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3, "..": 3, "..<": 3,
    "+": 4, "-": 4, "&": 4,
    "*": 5, "/": 5, "%": 5, "mod": 5, "div": 5, "shl": 5, "shr": 5,
}
KEYWORD_OPERATORS = {"and", "or", "mod", "div", "shl", "shr"}
UNARY_PRECEDENCE = 100
ASSIGNMENT_OPS = {"=", "+=", "-=", "*=", "/=", "%="}

# Identifiers after a lambda/proc colon that start a body rather than a return type
STATEMENT_KEYWORDS = {
    "defer", "if", "for", "while", "return", "var", "let", "const", "block", "case",
    "break", "continue", "discard", "echo",
}
EXPRESSION_KEYWORDS = {"not", "true", "false", "nil", "cast", "addr", "proc"}
LAYOUT = (TokenKind.NEWLINE, TokenKind.INDENT, TokenKind.DEDENT)


class Parser:
    def __init__(self, tokens: List[Token]):
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            last = tokens[-1] if tokens else None
            tokens = list(tokens) + [Token(TokenKind.EOF, "", getattr(last, 'line', 1), getattr(last, 'col', 1))]
        self.tokens = tokens
        self.pos = 0

    # --- token helpers ---

    def cur(self) -> Token:
        return self.tokens[min(self.pos, len(self.tokens) - 1)]

    def peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def at_end(self) -> bool:
        return self.cur().kind == TokenKind.EOF

    def advance(self) -> Token:
        tok = self.cur()
        if not self.at_end():
            self.pos += 1
        return tok

    def check(self, kind: TokenKind, lexeme: Optional[str] = None) -> bool:
        tok = self.cur()
        return tok.kind == kind and (lexeme is None or tok.lexeme == lexeme)

    def check_keyword(self, word: str) -> bool:
        return self.check(TokenKind.IDENT, word)

    def check_op(self, op: str) -> bool:
        return self.check(TokenKind.OP, op)

    def match(self, kind: TokenKind, lexeme: Optional[str] = None) -> bool:
        if self.check(kind, lexeme):
            self.advance()
            return True
        return False

    def expect(self, kind: TokenKind, what: str, lexeme: Optional[str] = None) -> Token:
        if not self.check(kind, lexeme):
            tok = self.cur()
            raise ParseError(f"Expected {what}, got {tok.kind.value} '{tok.lexeme}'", tok)
        return self.advance()

    def error(self, message: str, tok: Optional[Token] = None) -> ParseError:
        tok = tok or self.cur()
        return ParseError(f"{message}, got {tok.kind.value} '{tok.lexeme}'", tok)

    def skip_newlines(self):
        while self.check(TokenKind.NEWLINE):
            self.advance()

    def prev(self) -> Token:
        return self.tokens[self.pos - 1] if self.pos > 0 else self.cur()

    def end_statement(self):
        """Consume the newline after a statement, or accept an end it already reached."""
        if self.match(TokenKind.NEWLINE):
            return
        if self.cur().kind in (TokenKind.DEDENT, TokenKind.EOF):
            return
        if self.pos > 0 and self.prev().kind in (TokenKind.NEWLINE, TokenKind.DEDENT):
            return
        raise self.error("Expected end of statement")

    def skip_layout(self):
        while self.cur().kind in LAYOUT:
            self.advance()

    # --- program and blocks ---

    def parse_program(self) -> Program:
        stmts: List[Stmt] = []
        while not self.at_end():
            if self.match(TokenKind.NEWLINE):
                continue
            stmts.extend(self.parse_statement_group())
            self.end_statement()
        return Program(stmts, line=1, col=1)

    def parse_block(self) -> List[Stmt]:
        if not self.match(TokenKind.INDENT):
            raise self.error("Expected indented block")
        body: List[Stmt] = []
        while not self.at_end():
            if self.match(TokenKind.DEDENT):
                break
            if self.match(TokenKind.NEWLINE):
                continue
            body.extend(self.parse_statement_group())
            self.end_statement()
        return body

    def parse_body_after_colon(self) -> List[Stmt]:
        """Body after a ':' or '=': an indented block or a single inline statement."""
        if self.match(TokenKind.NEWLINE):
            self.skip_newlines()
            return self.parse_block()
        return [self.parse_statement()]

    def parse_statement_group(self) -> List[Stmt]:
        """A statement, or the several declarations of a multi-line var/let/const/type block."""
        tok = self.cur()
        if tok.kind == TokenKind.IDENT and tok.lexeme in ("var", "let", "const", "type"):
            if self.peek().kind == TokenKind.NEWLINE:
                self.advance()
                return self.parse_declaration_block(tok)
        return [self.parse_statement()]

    def parse_declaration_block(self, kw: Token) -> List[Stmt]:
        self.expect(TokenKind.NEWLINE, f"newline after '{kw.lexeme}'")
        self.skip_newlines()
        if not self.match(TokenKind.INDENT):
            raise self.error(f"Expected indentation after '{kw.lexeme}'")
        decls: List[Stmt] = []
        while not self.at_end():
            if self.match(TokenKind.DEDENT):
                break
            if self.match(TokenKind.NEWLINE):
                continue
            if kw.lexeme == "type":
                decls.append(self.parse_type_decl(kw))
            else:
                decls.append(self.parse_single_decl(kw))
            self.end_statement()
        return decls

    # --- statements ---

    def parse_statement(self) -> Stmt:
        if self.cur().kind in (TokenKind.INDENT, TokenKind.DEDENT):
            raise self.error("Unexpected indentation")
        if self.at_end():
            raise self.error("Unexpected end of input")
        tok = self.cur()
        if tok.kind == TokenKind.IDENT:
            match tok.lexeme:
                case "var" | "let" | "const":
                    self.advance()
                    return self.parse_single_decl(tok)
                case "type":
                    self.advance()
                    return self.parse_type_decl(tok)
                case "if":
                    return self.parse_if()
                case "case":
                    return self.parse_case()
                case "for":
                    return self.parse_for()
                case "while":
                    return self.parse_while()
                case "proc" if self.peek().kind == TokenKind.IDENT:
                    return self.parse_proc()
                case "return":
                    self.advance()
                    value = None if self.at_statement_end() else self.parse_expr()
                    return Return(value, line=tok.line, col=tok.col)
                case "defer":
                    self.advance()
                    self.expect(TokenKind.COLON, "':' after defer")
                    if self.check(TokenKind.NEWLINE):
                        body = self.parse_body_after_colon()
                        inner = body[0] if len(body) == 1 else Block(body, line=tok.line, col=tok.col)
                    else:
                        inner = self.parse_statement()
                    return Defer(inner, line=tok.line, col=tok.col)
                case "block":
                    return self.parse_block_stmt()
                case "break" | "continue":
                    self.advance()
                    label = ""
                    if self.check(TokenKind.IDENT):
                        label = self.advance().lexeme
                    node_cls = Break if tok.lexeme == "break" else Continue
                    return node_cls(label, line=tok.line, col=tok.col)
                case "discard":
                    self.advance()
                    value = None if self.at_statement_end() else self.parse_expr()
                    return Discard(value, line=tok.line, col=tok.col)
            if self.starts_command_call():
                return self.parse_command_call()
        expr = self.parse_expr()
        if self.cur().kind == TokenKind.OP and self.cur().lexeme in ASSIGNMENT_OPS:
            return self.parse_assign(expr, tok)
        return ExprStmt(expr, line=tok.line, col=tok.col)

    def starts_command_call(self) -> bool:
        """`name arg, ...` without parentheses, e.g. `echo "x = ", x`."""
        if self.cur().lexeme in EXPRESSION_KEYWORDS:
            return False
        nxt = self.peek()
        match nxt.kind:
            case TokenKind.STRING | TokenKind.INT | TokenKind.FLOAT | TokenKind.LBRACE:
                return True
            case TokenKind.IDENT:
                return nxt.lexeme not in KEYWORD_OPERATORS and nxt.lexeme not in ("in", "of")
            case TokenKind.OP:
                return nxt.lexeme in ("$", "@")
        return False

    def parse_command_call(self) -> Stmt:
        tok = self.advance()
        args = [self.parse_expr()]
        while self.match(TokenKind.COMMA):
            args.append(self.parse_expr())
        call = Call(tok.lexeme, args, line=tok.line, col=tok.col)
        return ExprStmt(call, line=tok.line, col=tok.col)

    def at_statement_end(self) -> bool:
        return self.cur().kind in (TokenKind.NEWLINE, TokenKind.DEDENT, TokenKind.EOF)

    def parse_assign(self, target: Expr, tok: Token) -> Stmt:
        if not isinstance(target, (Ident, Index, Dot, Deref)):
            raise ParseError("Invalid assignment target", tok)
        op = self.advance().lexeme
        value = self.parse_expr()
        if op != "=":
            value = BinOp(op[0], target, value, line=tok.line, col=tok.col)
        return Assign(target, value, line=tok.line, col=tok.col)

    def parse_single_decl(self, kw: Token) -> Stmt:
        kind = kw.lexeme
        if self.check(TokenKind.LPAREN):
            if kind == "const":
                raise ParseError("Tuple unpacking is not supported for const", kw)
            self.advance()
            names = [self.expect(TokenKind.IDENT, "identifier").lexeme]
            while self.match(TokenKind.COMMA):
                names.append(self.expect(TokenKind.IDENT, "identifier").lexeme)
            self.expect(TokenKind.RPAREN, "')'")
            type_ = self.parse_optional_annotation()
            self.expect(TokenKind.OP, "'='", "=")
            value = self.parse_expr()
            return UnpackDecl(kind, names, value, type_, line=kw.line, col=kw.col)

        name = self.expect(TokenKind.IDENT, "identifier").lexeme
        type_ = self.parse_optional_annotation()
        value = None
        if self.match(TokenKind.OP, "="):
            value = self.parse_expr()
        elif kind != "var" or type_ is None:
            raise self.error("Expected '='")
        return VarDecl(kind, name, value, type_, line=kw.line, col=kw.col)

    def parse_optional_annotation(self) -> Optional[TypeNode]:
        if self.match(TokenKind.COLON):
            return self.parse_type()
        return None

    def parse_type_decl(self, kw: Token) -> Stmt:
        name = self.expect(TokenKind.IDENT, "type name").lexeme
        self.expect(TokenKind.OP, "'='", "=")
        if self.check_keyword("object"):
            type_ = self.parse_object_type()
        elif self.check_keyword("enum"):
            type_ = self.parse_enum_type()
        else:
            type_ = self.parse_type()
        return TypeDecl(name, type_, line=kw.line, col=kw.col)

    def parse_if(self) -> Stmt:
        tok = self.advance()
        branches = [self.parse_cond_branch()]
        else_body: List[Stmt] = []
        while True:
            save = self.pos
            self.skip_newlines()
            if self.check_keyword("elif"):
                self.advance()
                branches.append(self.parse_cond_branch())
            elif self.check_keyword("else"):
                self.advance()
                self.expect(TokenKind.COLON, "':' after else")
                else_body = self.parse_body_after_colon()
                break
            else:
                self.pos = save
                break
        return If(branches, else_body, line=tok.line, col=tok.col)

    def parse_cond_branch(self) -> CondBranch:
        cond = self.parse_expr(allow_trailing_block=False)
        self.expect(TokenKind.COLON, "':' after condition")
        return CondBranch(cond, self.parse_body_after_colon())

    def parse_case(self) -> Stmt:
        tok = self.advance()
        subject = self.parse_expr(allow_trailing_block=False)
        self.match(TokenKind.COLON)
        self.expect(TokenKind.NEWLINE, "newline after case expression")
        self.skip_newlines()
        # Branches may be indented under the case line
        indented = self.match(TokenKind.INDENT)
        of_branches: List[OfBranch] = []
        elif_branches: List[CondBranch] = []
        else_body = None
        self.skip_newlines()
        while self.check_keyword("of"):
            self.advance()
            values = [self.parse_expr(allow_trailing_block=False)]
            while self.match(TokenKind.COMMA):
                values.append(self.parse_expr(allow_trailing_block=False))
            self.expect(TokenKind.COLON, "':' after of values")
            of_branches.append(OfBranch(values, self.parse_body_after_colon()))
            self.skip_newlines()
        while self.check_keyword("elif"):
            self.advance()
            elif_branches.append(self.parse_cond_branch())
            self.skip_newlines()
        if self.check_keyword("else"):
            self.advance()
            self.expect(TokenKind.COLON, "':' after else")
            else_body = self.parse_body_after_colon()
        if indented:
            self.skip_newlines()
            self.expect(TokenKind.DEDENT, "end of case branches")
        if not of_branches:
            raise ParseError("case statement needs at least one 'of' branch", tok)
        return Case(subject, of_branches, elif_branches, else_body, line=tok.line, col=tok.col)

    def parse_for(self, label: str = "") -> Stmt:
        tok = self.advance()
        names = [self.expect(TokenKind.IDENT, "loop variable name").lexeme]
        while self.match(TokenKind.COMMA):
            names.append(self.expect(TokenKind.IDENT, "loop variable name").lexeme)
        self.expect(TokenKind.IDENT, "'in' after for variables", "in")
        iterable = self.parse_expr(allow_trailing_block=False)
        self.expect(TokenKind.COLON, "':' after for iterable")
        body = self.parse_body_after_colon()
        return For(names, iterable, body, label, line=tok.line, col=tok.col)

    def parse_while(self, label: str = "") -> Stmt:
        tok = self.advance()
        cond = self.parse_expr(allow_trailing_block=False)
        self.expect(TokenKind.COLON, "':' after while condition")
        body = self.parse_body_after_colon()
        return While(cond, body, label, line=tok.line, col=tok.col)

    def parse_block_stmt(self) -> Stmt:
        tok = self.advance()
        label = ""
        if self.check(TokenKind.IDENT):
            label = self.advance().lexeme
        self.expect(TokenKind.COLON, "':' after block")
        body = self.parse_body_after_colon()
        # A labeled block holding nothing but a loop labels that loop
        if label and len(body) == 1 and isinstance(body[0], (For, While)) and not body[0].label:
            body[0].label = label
            return body[0]
        return Block(body, label, line=tok.line, col=tok.col)

    def parse_params(self) -> List[Param]:
        """Parameter list after '(' up to and including ')'."""
        params: List[Param] = []
        pending: List[str] = []
        self.skip_layout()
        while not self.check(TokenKind.RPAREN):
            pending.append(self.expect(TokenKind.IDENT, "parameter name").lexeme)
            if self.match(TokenKind.COLON):
                is_var = False
                if self.check_keyword("var"):
                    self.advance()
                    is_var = True
                type_ = self.parse_type()
                params.extend(Param(n, type_, is_var) for n in pending)
                pending = []
                if self.match(TokenKind.OP, "="):
                    raise self.error("Default parameter values are not supported")
            self.skip_layout()
            if not (self.match(TokenKind.COMMA)):
                break
            self.skip_layout()
        params.extend(Param(n) for n in pending)
        self.expect(TokenKind.RPAREN, "')' after parameters")
        return params

    def parse_return_type(self) -> Optional[TypeNode]:
        """Return type after ':' when the next identifier is not a statement keyword."""
        if self.check(TokenKind.COLON):
            nxt = self.peek()
            if nxt.kind == TokenKind.IDENT and nxt.lexeme not in STATEMENT_KEYWORDS:
                after = self.peek(2)
                # `proc f(): echo x` has an inline body, not a return type named echo
                if not (after.kind == TokenKind.LPAREN and nxt.lexeme not in ("proc", "ptr")):
                    self.advance()
                    return self.parse_type()
        return None

    def parse_pragmas(self) -> List[str]:
        pragmas: List[str] = []
        if self.check(TokenKind.LBRACE) and self.peek().kind == TokenKind.DOT:
            self.advance()
            self.advance()
            while self.check(TokenKind.IDENT):
                pragmas.append(self.advance().lexeme)
                if not self.match(TokenKind.COMMA):
                    break
            self.expect(TokenKind.DOT, "'.' closing pragma")
            self.expect(TokenKind.RBRACE, "'}' closing pragma")
        return pragmas

    def parse_proc_body(self) -> List[Stmt]:
        if not (self.match(TokenKind.OP, "=") or self.match(TokenKind.COLON)):
            raise self.error("Expected '=' or ':' before proc body")
        return self.parse_body_after_colon()

    def parse_proc(self) -> Stmt:
        tok = self.advance()
        name = self.expect(TokenKind.IDENT, "proc name").lexeme
        params: List[Param] = []
        if self.match(TokenKind.LPAREN):
            params = self.parse_params()
        return_type = self.parse_return_type()
        pragmas = self.parse_pragmas()
        body = self.parse_proc_body()
        return ProcDecl(name, params, body, return_type, pragmas, line=tok.line, col=tok.col)

    # --- types ---

    def parse_type(self) -> TypeNode:
        tok = self.expect(TokenKind.IDENT, "type name")
        if tok.lexeme == "ptr":
            return PointerType(self.parse_type(), line=tok.line, col=tok.col)
        if tok.lexeme == "proc" and self.check(TokenKind.LPAREN):
            self.advance()
            params: List[TypeNode] = []
            while not self.check(TokenKind.RPAREN):
                # Accept both `proc(int, float)` and `proc(a: int, b: float)`
                if self.check(TokenKind.IDENT) and self.peek().kind == TokenKind.COLON:
                    self.advance()
                    self.advance()
                params.append(self.parse_type())
                if not self.match(TokenKind.COMMA):
                    break
            self.expect(TokenKind.RPAREN, "')' after proc type parameters")
            ret = None
            if self.match(TokenKind.COLON):
                ret = self.parse_type()
            return ProcType(params, ret, line=tok.line, col=tok.col)
        if tok.lexeme == "object":
            return ObjectType([], line=tok.line, col=tok.col)
        if tok.lexeme == "enum":
            return EnumType([], line=tok.line, col=tok.col)
        if self.match(TokenKind.LBRACKET):
            params = [self.parse_type()]
            while self.match(TokenKind.COMMA):
                params.append(self.parse_type())
            self.expect(TokenKind.RBRACKET, "']' after generic parameters")
            return GenericType(tok.lexeme, params, line=tok.line, col=tok.col)
        return SimpleType(tok.lexeme, line=tok.line, col=tok.col)

    def parse_object_type(self) -> TypeNode:
        tok = self.advance()
        fields = []
        if not self.match(TokenKind.NEWLINE):
            return ObjectType(fields, line=tok.line, col=tok.col)
        self.skip_newlines()
        if not self.match(TokenKind.INDENT):
            return ObjectType(fields, line=tok.line, col=tok.col)
        while not self.at_end():
            if self.match(TokenKind.DEDENT):
                break
            if self.match(TokenKind.NEWLINE):
                continue
            names = [self.expect(TokenKind.IDENT, "field name").lexeme]
            while self.match(TokenKind.COMMA):
                names.append(self.expect(TokenKind.IDENT, "field name").lexeme)
            self.expect(TokenKind.COLON, "':' after field name")
            field_type = self.parse_type()
            fields.extend((n, field_type) for n in names)
            self.end_statement()
        return ObjectType(fields, line=tok.line, col=tok.col)

    def parse_enum_type(self) -> TypeNode:
        tok = self.advance()
        members = []
        next_ordinal = 0
        if not self.match(TokenKind.NEWLINE):
            return EnumType(members, line=tok.line, col=tok.col)
        self.skip_newlines()
        if not self.match(TokenKind.INDENT):
            return EnumType(members, line=tok.line, col=tok.col)
        while not self.at_end():
            if self.match(TokenKind.DEDENT):
                break
            if self.match(TokenKind.NEWLINE) or self.match(TokenKind.COMMA):
                continue
            name = self.expect(TokenKind.IDENT, "enum value name").lexeme
            ordinal = next_ordinal
            if self.match(TokenKind.OP, "="):
                ordinal_tok = self.expect(TokenKind.INT, "integer ordinal for enum value")
                ordinal = int(ordinal_tok.lexeme.split("'")[0])
            members.append((name, ordinal))
            next_ordinal = ordinal + 1
            self.match(TokenKind.NEWLINE)
        return EnumType(members, line=tok.line, col=tok.col)

    # --- expressions ---

    def binary_operator(self) -> Optional[str]:
        tok = self.cur()
        if tok.kind == TokenKind.OP and tok.lexeme in BINARY_PRECEDENCE:
            return tok.lexeme
        if tok.kind == TokenKind.IDENT and tok.lexeme in KEYWORD_OPERATORS:
            return tok.lexeme
        return None

    def parse_expr(self, min_prec: int = 0, allow_trailing_block: bool = True) -> Expr:
        left = self.parse_postfix(self.parse_prefix(allow_trailing_block))
        while True:
            op = self.binary_operator()
            if op is None:
                break
            prec = BINARY_PRECEDENCE[op]
            if prec <= min_prec:
                break
            tok = self.advance()
            right = self.parse_expr(prec, allow_trailing_block)
            left = BinOp(op, left, right, line=tok.line, col=tok.col)
        return left

    def parse_postfix(self, left: Expr) -> Expr:
        while True:
            tok = self.cur()
            if tok.kind == TokenKind.DOT:
                self.advance()
                name = self.expect(TokenKind.IDENT, "field name after '.'").lexeme
                if self.match(TokenKind.LPAREN):
                    args = [left] + self.parse_arguments()
                    left = Call(name, args, is_method=True, line=tok.line, col=tok.col)
                else:
                    left = Dot(left, name, line=tok.line, col=tok.col)
            elif tok.kind == TokenKind.LBRACKET:
                self.advance()
                if self.match(TokenKind.RBRACKET):
                    left = Deref(left, line=tok.line, col=tok.col)
                    continue
                index = self.parse_expr()
                self.expect(TokenKind.RBRACKET, "']' after index")
                left = Index(left, index, line=tok.line, col=tok.col)
            else:
                return left

    def parse_arguments(self) -> List[Expr]:
        """Comma-separated call arguments after '(' up to and including ')'."""
        args: List[Expr] = []
        self.skip_layout()
        while not self.check(TokenKind.RPAREN):
            args.append(self.parse_expr())
            self.skip_layout()
            if not self.match(TokenKind.COMMA):
                break
            self.skip_layout()
        self.skip_layout()
        self.expect(TokenKind.RPAREN, "')' after arguments")
        return args

    def parse_field_list(self, closer: TokenKind) -> list:
        """`name: expr` pairs up to and including the closing token."""
        fields = []
        self.skip_layout()
        while not self.check(closer):
            key_tok = self.cur()
            if key_tok.kind not in (TokenKind.IDENT, TokenKind.STRING):
                raise self.error("Expected field name")
            self.advance()
            self.expect(TokenKind.COLON, "':' after field name")
            self.skip_layout()
            fields.append((key_tok.lexeme, self.parse_expr()))
            self.skip_layout()
            if not self.match(TokenKind.COMMA):
                break
            self.skip_layout()
        self.skip_layout()
        self.expect(closer, f"'{'}' if closer == TokenKind.RBRACE else ')'}'")
        return fields

    def looks_like_field_list(self) -> bool:
        """True when the tokens after an opening paren start with `ident:`."""
        i = self.pos
        while self.tokens[i].kind in LAYOUT:
            i += 1
        if self.tokens[i].kind != TokenKind.IDENT:
            return False
        i += 1
        while self.tokens[i].kind in LAYOUT:
            i += 1
        return self.tokens[i].kind == TokenKind.COLON

    def parse_prefix(self, allow_trailing_block: bool = True) -> Expr:
        tok = self.cur()
        match tok.kind:
            case TokenKind.INT:
                self.advance()
                number, _, suffix = tok.lexeme.partition("'")
                return IntLit(int(number), suffix, line=tok.line, col=tok.col)
            case TokenKind.FLOAT:
                self.advance()
                number, _, suffix = tok.lexeme.partition("'")
                return FloatLit(float(number), suffix, line=tok.line, col=tok.col)
            case TokenKind.STRING:
                self.advance()
                return StringLit(tok.lexeme, line=tok.line, col=tok.col)
            case TokenKind.IDENT:
                return self.parse_identifier_expr(allow_trailing_block)
            case TokenKind.OP if tok.lexeme in ("-", "$", "!"):
                self.advance()
                operand = self.parse_postfix(self.parse_prefix(allow_trailing_block))
                op = "not" if tok.lexeme == "!" else tok.lexeme
                return UnaryOp(op, operand, line=tok.line, col=tok.col)
            case TokenKind.OP if tok.lexeme == "@" and self.peek().kind == TokenKind.LBRACKET:
                self.advance()
                return self.parse_prefix(allow_trailing_block)
            case TokenKind.LPAREN:
                return self.parse_paren()
            case TokenKind.LBRACKET:
                self.advance()
                elements: List[Expr] = []
                self.skip_layout()
                while not self.check(TokenKind.RBRACKET):
                    elements.append(self.parse_expr())
                    self.skip_layout()
                    if not self.match(TokenKind.COMMA):
                        break
                    self.skip_layout()
                self.skip_layout()
                self.expect(TokenKind.RBRACKET, "']' after array elements")
                return ArrayLit(elements, line=tok.line, col=tok.col)
            case TokenKind.LBRACE:
                self.advance()
                pairs = self.parse_field_list(TokenKind.RBRACE)
                return MapLit(pairs, line=tok.line, col=tok.col)
        raise self.error("Unexpected token in expression")

    def parse_identifier_expr(self, allow_trailing_block: bool) -> Expr:
        tok = self.advance()
        name = tok.lexeme
        match name:
            case "true" | "false":
                return BoolLit(name == "true", line=tok.line, col=tok.col)
            case "nil":
                return NilLit(line=tok.line, col=tok.col)
            case "not":
                operand = self.parse_expr(UNARY_PRECEDENCE, allow_trailing_block)
                return UnaryOp("not", operand, line=tok.line, col=tok.col)
            case "proc":
                return self.parse_lambda(tok)
            case "cast":
                self.expect(TokenKind.LBRACKET, "'[' after cast")
                type_ = self.parse_type()
                self.expect(TokenKind.RBRACKET, "']' after cast type")
                self.expect(TokenKind.LPAREN, "'(' after cast type")
                expr = self.parse_expr()
                self.expect(TokenKind.RPAREN, "')' after cast expression")
                return Cast(type_, expr, line=tok.line, col=tok.col)
            case "addr":
                operand = self.parse_expr(UNARY_PRECEDENCE)
                return Addr(operand, line=tok.line, col=tok.col)

        if not self.check(TokenKind.LPAREN):
            return Ident(name, line=tok.line, col=tok.col)

        self.advance()
        if self.looks_like_field_list():
            fields = self.parse_field_list(TokenKind.RPAREN)
            return ObjConstr(name, fields, line=tok.line, col=tok.col)

        call = Call(name, self.parse_arguments(), line=tok.line, col=tok.col)
        if allow_trailing_block and self.check(TokenKind.COLON) and self.peek().kind == TokenKind.NEWLINE:
            # name(args):<block> passes the block as a trailing zero-argument lambda
            self.advance()
            body = self.parse_body_after_colon()
            call.args.append(Lambda([], body, line=tok.line, col=tok.col))
        return call

    def parse_lambda(self, tok: Token) -> Expr:
        params: List[Param] = []
        if self.match(TokenKind.LPAREN):
            params = self.parse_params()
        return_type = self.parse_return_type()
        self.parse_pragmas()
        body = self.parse_proc_body()
        return Lambda(params, body, return_type, line=tok.line, col=tok.col)

    def parse_paren(self) -> Expr:
        tok = self.advance()
        self.skip_layout()
        if self.match(TokenKind.RPAREN):
            return TupleLit([], line=tok.line, col=tok.col)
        if self.looks_like_field_list():
            fields = self.parse_field_list(TokenKind.RPAREN)
            return NamedTupleLit(fields, line=tok.line, col=tok.col)
        first = self.parse_expr()
        self.skip_layout()
        if not self.match(TokenKind.COMMA):
            self.expect(TokenKind.RPAREN, "')'")
            return first
        elements = [first]
        self.skip_layout()
        while not self.check(TokenKind.RPAREN):
            elements.append(self.parse_expr())
            self.skip_layout()
            if not self.match(TokenKind.COMMA):
                break
            self.skip_layout()
        self.expect(TokenKind.RPAREN, "')' after tuple elements")
        return TupleLit(elements, line=tok.line, col=tok.col)


def parse(tokens: List[Token]) -> Program:
    """Parse a canonical token stream into a Program."""
    return Parser(tokens).parse_program()
