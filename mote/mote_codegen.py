"""
Retargetable code generation.

`generate_code` walks a parsed Program and asks a CodegenBackend how each
piece is spelled. Constructs a target lacks (case, defer, labeled loops,
implicit `result`, multi-statement lambdas) are lowered here so every
backend only has to emit simple shapes.
"""
import dataclasses
from typing import Dict, Iterator, List, Optional

import pystache

from mote.mote_ast import (
    Addr, ArrayLit, Assign, BinOp, Block, BoolLit, Call, Case, Cast, Continue, Break, Defer, Deref,
    Discard, Dot, EnumType, Expr, ExprStmt, FloatLit, For, Ident, If, Index, IntLit, Lambda, MapLit,
    NamedTupleLit, NilLit, ObjConstr, ObjectType, Param, ProcDecl, Program, Return, Stmt, StringLit,
    TupleLit, TypeDecl, UnaryOp, UnpackDecl, VarDecl, While, type_to_string,
)
from mote.mote_backends import CodegenBackend, NativeStatements, TryFinally, get_backend
from mote.mote_interpreter import FLOAT_CONVERSIONS, INT_CONVERSIONS


# Pseudo-method name -> backend name -> Mustache template.
# Views carry `target` (the receiver), `args` (remaining arguments joined),
# `arg0`/`arg1`, and `sep` (the first argument or an empty string literal).
PSEUDO_METHODS: Dict[str, Dict[str, str]] = {
    "len": {
        "Nim": "{{target}}.len",
        "Python": "len({{target}})",
        "JavaScript": "{{target}}.length",
    },
    "toUpper": {
        "Nim": "{{target}}.toUpper()",
        "Python": "{{target}}.upper()",
        "JavaScript": "{{target}}.toUpperCase()",
    },
    "toLower": {
        "Nim": "{{target}}.toLower()",
        "Python": "{{target}}.lower()",
        "JavaScript": "{{target}}.toLowerCase()",
    },
    "strip": {
        "Nim": "{{target}}.strip()",
        "Python": "{{target}}.strip()",
        "JavaScript": "{{target}}.trim()",
    },
    "trim": {
        "Nim": "{{target}}.strip()",
        "Python": "{{target}}.strip()",
        "JavaScript": "{{target}}.trim()",
    },
    "split": {
        "Nim": "{{target}}.split({{args}})",
        "Python": "{{target}}.split({{args}})",
        "JavaScript": "{{target}}.split({{args}})",
    },
    "join": {
        "Nim": "{{target}}.join({{args}})",
        "Python": "{{sep}}.join(map(str, {{target}}))",
        "JavaScript": "{{target}}.join({{sep}})",
    },
    "replace": {
        "Nim": "{{target}}.replace({{args}})",
        "Python": "{{target}}.replace({{args}})",
        "JavaScript": "{{target}}.replaceAll({{args}})",
    },
    "contains": {
        "Nim": "{{target}}.contains({{arg0}})",
        "Python": "({{arg0}} in {{target}})",
        "JavaScript": "{{target}}.includes({{arg0}})",
    },
    "startsWith": {
        "Nim": "{{target}}.startsWith({{arg0}})",
        "Python": "{{target}}.startswith({{arg0}})",
        "JavaScript": "{{target}}.startsWith({{arg0}})",
    },
    "endsWith": {
        "Nim": "{{target}}.endsWith({{arg0}})",
        "Python": "{{target}}.endswith({{arg0}})",
        "JavaScript": "{{target}}.endsWith({{arg0}})",
    },
    "add": {
        "Nim": "{{target}}.add({{args}})",
        "Python": "{{target}}.append({{args}})",
        "JavaScript": "{{target}}.push({{args}})",
    },
}

_renderer = pystache.Renderer(escape=lambda u: u)


def render_pseudo_method(name: str, backend: CodegenBackend, target: str, args: List[str]) -> Optional[str]:
    """Render a pseudo-method call for `backend`, or None when it has no template."""
    template = PSEUDO_METHODS.get(name, {}).get(backend.name)
    if template is None:
        return None
    view = {
        "target": target,
        "args": ", ".join(args),
        "arg0": args[0] if args else "",
        "arg1": args[1] if len(args) > 1 else "",
        "sep": args[0] if args else '""',
    }
    return _renderer.render(template, view)


class CodegenContext:
    """Per-generation state: imports, extension name mappings, indentation and temporaries."""

    def __init__(self, backend):
        self.backend: CodegenBackend = get_backend(backend)
        self.imports: List[str] = []
        self.functions: Dict[str, str] = {}
        self.constants: Dict[str, str] = {}
        self.indent = 0
        self.hoisted: List[str] = []
        self.helpers: List[str] = []
        self._temp_counter = 0

    def add_import(self, module: str):
        if module and module not in self.imports:
            self.imports.append(module)

    def add_helper(self, source: str):
        if source not in self.helpers:
            self.helpers.append(source)

    def map_function(self, dsl_name: str, target: str):
        self.functions[dsl_name] = target

    def map_constant(self, dsl_name: str, target: str):
        self.constants[dsl_name] = target

    def temp(self, prefix: str) -> str:
        name = f"_{prefix}{self._temp_counter}"
        self._temp_counter += 1
        return name

    def indent_str(self, level: int) -> str:
        return " " * (self.backend.indent_size * level)


def apply_extension_codegen(ext, ctx: CodegenContext):
    """Seed `ctx` with an extension's mapping for the context's backend."""
    for key, mapping in ext.backends.items():
        if not ctx.backend.matches(key):
            continue
        for module in mapping.imports:
            ctx.add_import(module)
        ctx.functions.update(mapping.functions)
        ctx.constants.update(mapping.constants)


def load_extensions_codegen(ctx: CodegenContext, registry):
    for name in registry.list():
        ext = registry.get(name)
        if ext.enabled:
            apply_extension_codegen(ext, ctx)


def _walk(node) -> Iterator:
    """Yield `node` and every AST node beneath it, not entering nested procs or lambdas."""
    yield node
    if not dataclasses.is_dataclass(node):
        return
    for f in dataclasses.fields(node):
        yield from _walk_value(getattr(node, f.name))


def _walk_value(value) -> Iterator:
    if isinstance(value, (ProcDecl, Lambda)):
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _walk_value(item)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        yield from _walk(value)


def _mentions(stmts: List[Stmt], name: str) -> bool:
    return any(isinstance(n, Ident) and n.name == name for n in _walk_value(stmts))


def _proc_names(stmts: List[Stmt]) -> Iterator[str]:
    for stmt in CodeGenerator._iter_stmts(stmts):
        if isinstance(stmt, ProcDecl):
            yield stmt.name
            yield from _proc_names(stmt.body)


def _is_range(expr) -> bool:
    return isinstance(expr, BinOp) and expr.op in ("..", "..<")


class CodeGenerator:

    def __init__(self, ctx: CodegenContext):
        self.ctx = ctx
        self.backend = ctx.backend
        self.user_functions: set = set()
        self.declared: set = set()
        # Local names of each enclosing proc, innermost last
        self._proc_locals: List[set] = []

    def generate(self, program: Program) -> str:
        self.user_functions = set(_proc_names(program.stmts))
        # The body goes first so every import it needs is known before the import section is written
        body = self.gen_block(program.stmts, 0)

        out: List[str] = []
        header = self.backend.generate_program_header()
        if header:
            out.extend([header, ""])
        if self.ctx.imports:
            for module in self.ctx.imports:
                if module.startswith(("from ", "import ")):
                    out.append(module)
                else:
                    out.append(self.backend.generate_import(module))
            out.append("")
        for helper in self.ctx.helpers:
            out.extend([helper, ""])
        out.extend(body)
        footer = self.backend.generate_program_footer()
        if footer:
            out.extend(["", footer])
        return "\n".join(out).rstrip("\n") + "\n"

    # --- blocks ---

    def gen_block(self, stmts: List[Stmt], level: int) -> List[str]:
        lines: List[str] = []
        for i, stmt in enumerate(stmts):
            if isinstance(stmt, Defer) and isinstance(self.backend, TryFinally):
                # Everything after the defer runs inside try; the deferred statement is the finally
                ind = self.ctx.indent_str(level)
                lines.append(self.backend.generate_try(ind))
                lines.extend(self.gen_body(stmts[i + 1:], level + 1))
                lines.append(self.backend.generate_finally(ind))
                lines.extend(self.gen_body([stmt.stmt], level + 1))
                self._close(lines, level)
                return lines
            lines.extend(self.gen_stmt(stmt, level))
        return lines

    def gen_body(self, stmts: List[Stmt], level: int) -> List[str]:
        lines = self.gen_block(stmts, level)
        if not lines:
            empty = self.backend.generate_empty_body(self.ctx.indent_str(level))
            if empty:
                lines.append(empty)
        return lines

    def _close(self, lines: List[str], level: int):
        end = self.backend.generate_block_end(self.ctx.indent_str(level))
        if end is not None:
            lines.append(end)

    # --- statements ---

    def gen_stmt(self, stmt: Stmt, level: int) -> List[str]:
        saved_hoisted, saved_indent = self.ctx.hoisted, self.ctx.indent
        self.ctx.hoisted, self.ctx.indent = [], level
        try:
            lines = self._gen_stmt(stmt, level)
            return self.ctx.hoisted + lines
        finally:
            self.ctx.hoisted, self.ctx.indent = saved_hoisted, saved_indent

    def _gen_stmt(self, stmt: Stmt, level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        match stmt:
            case ExprStmt(expr=expr):
                return [b.generate_expr_stmt(self.gen_expr(expr), ind)]
            case Discard(value=value):
                return [b.generate_discard(self.gen_expr(value) if value is not None else None, ind)]
            case VarDecl(kind=kind, name=name, value=value, type=t):
                self.declared.add(name)
                rendered = self.gen_expr(value) if value is not None else None
                return [b.generate_var_decl(kind, name, rendered, type_to_string(t), ind)]
            case UnpackDecl(kind=kind, names=names, value=value):
                self.declared.update(names)
                return [b.generate_unpack(kind, names, self.gen_expr(value), ind)]
            case Assign(target=target, value=value):
                return [b.generate_assignment(self.gen_expr(target), self.gen_expr(value), ind)]
            case If():
                return self._gen_if(stmt, level)
            case Case():
                if isinstance(b, NativeStatements):
                    return self._gen_native_case(stmt, level)
                return self._gen_lowered_case(stmt, level)
            case For() | While():
                return self._gen_loop(stmt, level)
            case Block(body=body, label=label):
                lines = b.generate_block_stmt(label, ind)
                lines.extend(self.gen_body(body, level + 1))
                self._close(lines, level)
                return lines
            case ProcDecl(name=name, params=params, body=body, return_type=ret, pragmas=pragmas):
                return self._gen_proc(name, params, body, ret, pragmas, level)
            case Return(value=value):
                return [b.generate_return(self.gen_expr(value) if value is not None else None, ind)]
            case Break(label=label):
                return [b.generate_break(label, ind)]
            case Continue(label=label):
                return [b.generate_continue(label, ind)]
            case Defer(stmt=inner):
                # Only reached for backends with a native defer
                lines = [b.generate_defer(ind)]
                lines.extend(self.gen_body([inner], level + 1))
                return lines
            case TypeDecl():
                return self._gen_type(stmt, ind)
        raise TypeError(f"Cannot generate code for {type(stmt).__name__}")

    def _gen_if(self, stmt: If, level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        lines: List[str] = []
        for i, branch in enumerate(stmt.branches):
            cond = self.gen_expr(branch.cond)
            lines.append(b.generate_if(cond, ind) if i == 0 else b.generate_elif(cond, ind))
            lines.extend(self.gen_body(branch.body, level + 1))
        if stmt.else_body:
            lines.append(b.generate_else(ind))
            lines.extend(self.gen_body(stmt.else_body, level + 1))
        self._close(lines, level)
        return lines

    def _gen_native_case(self, stmt: Case, level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        inner = self.ctx.indent_str(level + 1)
        lines = [b.generate_case(self.gen_expr(stmt.subject), ind)]
        for branch in stmt.of_branches:
            lines.append(b.generate_of_branch([self.gen_expr(v) for v in branch.values], ind))
            lines.extend(self.gen_body(branch.body, level + 1))
        for branch in stmt.elif_branches:
            lines.append(b.generate_elif(self.gen_expr(branch.cond), ind))
            lines.extend(self.gen_body(branch.body, level + 1))
        lines.append(b.generate_else(ind))
        if stmt.else_body is not None:
            lines.extend(self.gen_body(stmt.else_body, level + 1))
        else:
            lines.append(b.generate_raise("No case branch matched", inner))
        return lines

    def _gen_lowered_case(self, stmt: Case, level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        inner = self.ctx.indent_str(level + 1)
        tmp = self.ctx.temp("case")
        lines = [b.generate_var_decl("let", tmp, self.gen_expr(stmt.subject), "", ind)]
        first = True
        for branch in stmt.of_branches:
            conds = [self._of_condition(tmp, v) for v in branch.values]
            cond = conds[0]
            for other in conds[1:]:
                cond = b.generate_binop(cond, "or", other)
            lines.append(b.generate_if(cond, ind) if first else b.generate_elif(cond, ind))
            lines.extend(self.gen_body(branch.body, level + 1))
            first = False
        for branch in stmt.elif_branches:
            cond = self.gen_expr(branch.cond)
            lines.append(b.generate_if(cond, ind) if first else b.generate_elif(cond, ind))
            lines.extend(self.gen_body(branch.body, level + 1))
            first = False
        if first:
            lines.append(b.generate_if(b.generate_bool(True), ind))
        else:
            lines.append(b.generate_else(ind))
        if stmt.else_body is not None:
            lines.extend(self.gen_body(stmt.else_body, level + 1))
        else:
            lines.append(b.generate_raise("No case branch matched", inner))
        self._close(lines, level)
        return lines

    def _of_condition(self, tmp: str, value: Expr) -> str:
        b = self.backend
        if _is_range(value):
            low = b.generate_binop(self._operand(value.left), "<=", tmp)
            high = b.generate_binop(tmp, "<=" if value.op == ".." else "<", self._operand(value.right))
            return b.generate_binop(low, "and", high)
        return b.generate_binop(tmp, "==", self._operand(value))

    def _gen_loop(self, stmt, level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        lines: List[str] = []
        extra = 0
        if stmt.label:
            opening, extra = b.open_label(stmt.label, ind)
            lines.extend(opening)
        loop_level = level + extra
        loop_ind = self.ctx.indent_str(loop_level)
        if isinstance(stmt, While):
            lines.append(b.generate_while(self.gen_expr(stmt.cond), loop_ind))
        elif len(stmt.vars) == 1 and _is_range(stmt.iterable):
            it = stmt.iterable
            lines.append(b.generate_for_range(stmt.vars[0], self.gen_expr(it.left), self.gen_expr(it.right),
                                              it.op == "..", loop_ind))
        else:
            lines.append(b.generate_for(stmt.vars, self.gen_expr(stmt.iterable), loop_ind))
        lines.extend(self.gen_body(stmt.body, loop_level + 1))
        self._close(lines, loop_level)
        if stmt.label:
            lines.extend(b.close_label(stmt.label, ind))
        return lines

    def _gen_proc(self, name: str, params: List[Param], body: List[Stmt], return_type, pragmas,
                  level: int) -> List[str]:
        b = self.backend
        ind = self.ctx.indent_str(level)
        inner = self.ctx.indent_str(level + 1)
        type_text = type_to_string(return_type)
        specs = [(p.name, type_to_string(p.type), p.is_var) for p in params]
        lines = [b.generate_proc_decl(name, specs, type_text, list(pragmas), ind)]

        stmts = list(body)
        if return_type is not None and not b.implicit_result:
            uses_result = _mentions(stmts, "result")
            if stmts and isinstance(stmts[-1], ExprStmt):
                last = stmts[-1]
                stmts[-1] = Return(last.expr, line=last.line, col=last.col)
            elif uses_result and not (stmts and isinstance(stmts[-1], Return)):
                stmts.append(Return(Ident("result")))
            if uses_result:
                stmts.insert(0, VarDecl("var", "result", None, return_type))

        local_names = self._local_names(params, stmts)
        enclosing = set().union(*self._proc_locals) if self._proc_locals else set()
        outer = [n for n in self._assigned_names(stmts) if n not in local_names]
        lines.extend(b.generate_scope_decl([n for n in outer if n not in enclosing],
                                           [n for n in outer if n in enclosing], inner))

        self._proc_locals.append(local_names)
        try:
            lines.extend(self.gen_body(stmts, level + 1))
        finally:
            self._proc_locals.pop()
        self._close(lines, level)
        return lines

    @staticmethod
    def _iter_stmts(stmts: List[Stmt]) -> Iterator[Stmt]:
        """Every statement in `stmts`, recursively, not entering nested procs."""
        for stmt in stmts:
            yield stmt
            match stmt:
                case If(branches=branches, else_body=else_body):
                    for branch in branches:
                        yield from CodeGenerator._iter_stmts(branch.body)
                    yield from CodeGenerator._iter_stmts(else_body)
                case Case(of_branches=ofs, elif_branches=elifs, else_body=else_body):
                    for branch in ofs + elifs:
                        yield from CodeGenerator._iter_stmts(branch.body)
                    yield from CodeGenerator._iter_stmts(else_body or [])
                case For(body=body) | While(body=body) | Block(body=body):
                    yield from CodeGenerator._iter_stmts(body)
                case Defer(stmt=inner):
                    yield from CodeGenerator._iter_stmts([inner])

    def _local_names(self, params: List[Param], stmts: List[Stmt]) -> set:
        names = {p.name for p in params} | {"result"}
        for stmt in self._iter_stmts(stmts):
            match stmt:
                case VarDecl(name=name) | ProcDecl(name=name):
                    names.add(name)
                case UnpackDecl(names=unpacked):
                    names.update(unpacked)
                case For(vars=loop_vars):
                    names.update(loop_vars)
        return names

    def _assigned_names(self, stmts: List[Stmt]) -> List[str]:
        assigned = [s.target.name for s in self._iter_stmts(stmts)
                    if isinstance(s, Assign) and isinstance(s.target, Ident)]
        return list(dict.fromkeys(assigned))

    def _gen_type(self, stmt: TypeDecl, ind: str) -> List[str]:
        b = self.backend
        match stmt.type:
            case EnumType(members=members):
                self.ctx.add_import(b.type_imports.get("enum"))
                self.declared.update(m for m, _ in members)
                return b.generate_enum_type(stmt.name, members, ind) + \
                    b.generate_enum_members(stmt.name, members, ind)
            case ObjectType(fields=fields):
                self.ctx.add_import(b.type_imports.get("object"))
                return b.generate_object_type(stmt.name, [(n, type_to_string(t)) for n, t in fields], ind)
        return b.generate_type_alias(stmt.name, type_to_string(stmt.type), ind)

    # --- expressions ---

    def _operand(self, expr: Expr) -> str:
        text = self.gen_expr(expr)
        if isinstance(expr, BinOp) and not _is_range(expr):
            return f"({text})"
        return text

    def gen_expr(self, expr: Expr) -> str:
        b = self.backend
        match expr:
            case IntLit(value=value, suffix=suffix):
                return b.generate_int(value, suffix)
            case FloatLit(value=value, suffix=suffix):
                return b.generate_float(value, suffix)
            case StringLit(value=value):
                return b.generate_string(value)
            case BoolLit(value=value):
                return b.generate_bool(value)
            case NilLit():
                return b.generate_nil()
            case Ident(name=name):
                return self._gen_ident(name)
            case UnaryOp(op=op, operand=operand):
                inner = self.gen_expr(operand) if op == "$" else self._operand(operand)
                return b.generate_unary(op, inner)
            case BinOp(op=op, left=left, right=right):
                if _is_range(expr):
                    return b.generate_range(self._operand(left), self._operand(right), op == "..")
                if op in b.operator_helpers:
                    self.ctx.add_helper(b.operator_helpers[op])
                return b.generate_binop(self._operand(left), op, self._operand(right))
            case Call(func=func, args=args):
                return self._gen_call(func, [self.gen_expr(a) for a in args])
            case ArrayLit(elements=elements):
                return b.generate_array([self.gen_expr(e) for e in elements])
            case MapLit(pairs=pairs):
                return b.generate_map([(b.generate_string(k), self.gen_expr(v)) for k, v in pairs])
            case TupleLit(elements=elements):
                return b.generate_tuple([self.gen_expr(e) for e in elements])
            case NamedTupleLit(fields=fields):
                return b.generate_named_tuple([(k, self.gen_expr(v)) for k, v in fields])
            case Index(target=target, index=index):
                if _is_range(index):
                    return b.generate_slice(self.gen_expr(target), self._operand(index.left),
                                            self._operand(index.right), index.op == "..")
                return b.generate_index(self.gen_expr(target), self.gen_expr(index))
            case Dot(target=target, field=field):
                return self._gen_dot(target, field)
            case Cast(type=t, expr=inner):
                return b.generate_cast(type_to_string(t), self.gen_expr(inner))
            case Addr(expr=inner):
                return b.generate_addr(self.gen_expr(inner))
            case Deref(expr=inner):
                return b.generate_deref(self.gen_expr(inner))
            case ObjConstr(type_name=type_name, fields=fields):
                return b.generate_obj_constr(type_name, [(k, self.gen_expr(v)) for k, v in fields])
            case Lambda():
                return self._gen_lambda(expr)
        raise TypeError(f"Cannot generate code for {type(expr).__name__}")

    def _gen_ident(self, name: str) -> str:
        if name in self.ctx.constants:
            return self.ctx.constants[name]
        builtin = self.backend.builtin_constants.get(name)
        if builtin is not None and name not in self.declared:
            target, module = builtin
            self.ctx.add_import(module)
            return target
        return self.backend.generate_ident(name)

    def _gen_call(self, func: str, args: List[str]) -> str:
        if func in self.ctx.functions:
            return self.backend.generate_call(self.ctx.functions[func], args)
        if func not in self.user_functions:
            if args:
                rendered = render_pseudo_method(func, self.backend, args[0], args[1:])
                if rendered is not None:
                    return rendered
            builtin = self.backend.builtin_functions.get(func)
            if builtin is not None:
                target, module = builtin
                self.ctx.add_import(module)
                return self.backend.generate_call(target, args)
        return self.backend.generate_call(func, args)

    def _gen_dot(self, target: Expr, field: str) -> str:
        receiver = self.gen_expr(target)
        if field in PSEUDO_METHODS and field not in self.user_functions:
            rendered = render_pseudo_method(field, self.backend, receiver, [])
            if rendered is not None:
                return rendered
        if field in INT_CONVERSIONS:
            return self._gen_call("int", [receiver])
        if field in FLOAT_CONVERSIONS:
            return self._gen_call("float", [receiver])
        return self.backend.generate_dot(receiver, field)

    def _gen_lambda(self, node: Lambda) -> str:
        b = self.backend
        body = node.body
        single = None
        if len(body) == 1:
            match body[0]:
                case ExprStmt(expr=e) | Return(value=e) if e is not None:
                    single = e
        if single is not None:
            self.ctx.add_import(b.lambda_import)
            specs = [(p.name, type_to_string(p.type), p.is_var) for p in node.params]
            return b.generate_lambda(specs, self.gen_expr(single))
        # Multi-statement bodies become a named function declared just before the statement using it
        name = self.ctx.temp("lambda")
        hoisted = self.ctx.hoisted
        lines = self._gen_proc(name, node.params, body, node.return_type, [], self.ctx.indent)
        self.ctx.hoisted = hoisted
        self.ctx.hoisted.extend(lines)
        return b.generate_ident(name)


def generate_code(program: Program, backend, ctx: Optional[CodegenContext] = None) -> str:
    """Generate target-language source for `program`.

    `backend` is a CodegenBackend or a name ('nim', 'python', 'javascript').
    Passing a context seeded by load_extensions_codegen applies extension mappings.
    """
    backend = get_backend(backend)
    if ctx is None:
        ctx = CodegenContext(backend)
    else:
        ctx.backend = backend
    return CodeGenerator(ctx).generate(program)
