"""
The Mote tree-walking interpreter.

Expressions evaluate to Python values; statements execute to a `Flow`
describing how control leaves them (normally, or by return/break/continue).
Conditional branches, loop iterations and blocks each run in a fresh child
environment, and deferred statements run LIFO when that environment ends.
"""
import math
import os
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from mote.mote_ast import (
    Addr, ArrayLit, Assign, BinOp, Block, BoolLit, Break, Call, Case, Cast, Continue,
    Defer, Deref, Discard, Dot, EnumType, Expr, ExprStmt, FloatLit, For, Ident, If,
    Index, IntLit, Lambda, MapLit, NamedTupleLit, NilLit, ObjConstr, ProcDecl, Program,
    Return, SimpleType, Stmt, StringLit, TupleLit, TypeDecl, UnaryOp, UnpackDecl,
    VarDecl, While,
)
from mote.mote_datatypes import (
    Env, Frame, NativeFunction, Range, UserFunction, default_value, is_int, is_number,
    kind_of, scalar_equal, to_float, to_int, trunc_div, trunc_mod, truthy, values_equal,
)
from mote.mote_errors import MoteRuntimeError
from mote.mote_printer import stringify


@dataclass(frozen=True)
class Flow:
    """How a statement finished: 'normal', 'return', 'break' or 'continue'."""
    kind: str = "normal"
    value: Any = None
    label: str = ""

    @property
    def is_normal(self) -> bool:
        return self.kind == "normal"

    def targets(self, label: str) -> bool:
        """True when this break/continue should be handled by a construct with `label`."""
        return not self.label or self.label == label


NORMAL = Flow()

INT_CONVERSIONS = {"int", "int8", "int16", "int32", "int64", "uint", "uint8", "uint16", "uint32", "uint64"}
FLOAT_CONVERSIONS = {"float", "float32", "float64"}


# --- pseudo-methods: dot-call built-ins resolved before ordinary lookup fails ---

def _require_str(name: str, v: Any) -> str:
    if not isinstance(v, str):
        raise MoteRuntimeError(f"{name}() requires a string, got {kind_of(v)}")
    return v


def _pm_len(target):
    if isinstance(target, (str, list, dict, Range)):
        return len(target)
    raise MoteRuntimeError(f"len() requires a string, array or map, got {kind_of(target)}")


def _pm_split(target, sep=None):
    s = _require_str("split", target)
    return s.split(sep) if sep is not None else s.split()


def _pm_join(target, sep=""):
    if not isinstance(target, list):
        raise MoteRuntimeError(f"join() requires an array, got {kind_of(target)}")
    return stringify(sep).join(stringify(item) for item in target)


def _pm_contains(target, item):
    match target:
        case str():
            return stringify(item) in target
        case list():
            return any(scalar_equal(x, item) for x in target)
        case dict():
            return item in target
        case Range():
            return is_number(item) and target.start <= item < target.stop
    raise MoteRuntimeError(f"contains() is not supported on {kind_of(target)}")


PSEUDO_METHODS: Dict[str, Callable[..., Any]] = {
    "len": _pm_len,
    "toUpper": lambda s: _require_str("toUpper", s).upper(),
    "toLower": lambda s: _require_str("toLower", s).lower(),
    "strip": lambda s: _require_str("strip", s).strip(),
    "trim": lambda s: _require_str("trim", s).strip(),
    "split": _pm_split,
    "join": _pm_join,
    "replace": lambda s, old, new: _require_str("replace", s).replace(stringify(old), stringify(new)),
    "contains": _pm_contains,
    "startsWith": lambda s, prefix: _require_str("startsWith", s).startswith(stringify(prefix)),
    "endsWith": lambda s, suffix: _require_str("endsWith", s).endswith(stringify(suffix)),
}


class Interpreter:
    """The Mote execution engine."""

    def __init__(self):
        self.call_stack: List[Frame] = []
        self.current_node = None
        self.max_depth = 500

    def _dbg(self, *parts):
        if os.environ.get("MOTE_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _push_frame(self, name: str, args: List[Any], node):
        if len(self.call_stack) >= self.max_depth:
            raise MoteRuntimeError(f"Maximum call depth ({self.max_depth}) exceeded in '{name}'", node)
        self.call_stack.append(Frame(name, list(args), getattr(node, 'line', None), getattr(node, 'col', None)))

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _capture_stack(self, e: Exception):
        """Remember the call stack at the point an error first crossed a frame."""
        if getattr(e, "mote_stack", None) is None:
            e.mote_stack = list(self.call_stack)

    # --- programs, blocks and scopes ---

    def exec_program(self, program: Program, env: Env) -> Any:
        """Run a program in `env`. Returns the value of a trailing expression statement."""
        result = None
        try:
            for stmt in program.stmts:
                if isinstance(stmt, ExprStmt):
                    result = self._eval_stmt_expr(stmt, env)
                    continue
                result = None
                flow = self.exec_stmt(stmt, env)
                if flow.kind == "return":
                    return flow.value
                if not flow.is_normal:
                    self._dbg("stray", flow.kind, flow.label or "", "at top level")
        finally:
            self.run_defers(env)
        return result

    def exec_block(self, stmts: List[Stmt], env: Env) -> Flow:
        for stmt in stmts:
            flow = self.exec_stmt(stmt, env)
            if not flow.is_normal:
                return flow
        return NORMAL

    def run_scoped(self, stmts: List[Stmt], parent: Env, bindings: Optional[Dict[str, Any]] = None) -> Flow:
        """Execute `stmts` in a new child of `parent`, running its defers on the way out."""
        env = Env(parent)
        if bindings:
            env.bindings.update(bindings)
        try:
            return self.exec_block(stmts, env)
        finally:
            self.run_defers(env)

    def run_defers(self, env: Env):
        while env.defer_stack:
            stmt = env.defer_stack.pop()
            self.exec_stmt(stmt, env)

    # --- statements ---

    def exec_stmt(self, stmt: Stmt, env: Env) -> Flow:
        self.current_node = stmt
        try:
            return self._exec_stmt(stmt, env)
        except MoteRuntimeError as e:
            if e.line is None:
                e.line, e.col, e.node = stmt.line, stmt.col, stmt
            raise

    def _eval_stmt_expr(self, stmt: ExprStmt, env: Env) -> Any:
        self.current_node = stmt
        try:
            return self.eval_expr(stmt.expr, env)
        except MoteRuntimeError as e:
            if e.line is None:
                e.line, e.col, e.node = stmt.line, stmt.col, stmt
            raise

    def _exec_stmt(self, stmt: Stmt, env: Env) -> Flow:
        match stmt:
            case ExprStmt(expr=expr):
                self.eval_expr(expr, env)
                return NORMAL

            case Discard(value=value):
                if value is not None:
                    self.eval_expr(value, env)
                return NORMAL

            case VarDecl(name=name, value=value, type=type_):
                if value is not None:
                    env.define(name, self.eval_expr(value, env))
                else:
                    env.define(name, default_value(type_.name if isinstance(type_, SimpleType) else getattr(type_, 'name', None)))
                return NORMAL

            case UnpackDecl(names=names, value=value):
                packed = self.eval_expr(value, env)
                if not isinstance(packed, list):
                    raise MoteRuntimeError(f"Cannot unpack {kind_of(packed)} into ({', '.join(names)})")
                for i, name in enumerate(names):
                    env.define(name, packed[i] if i < len(packed) else None)
                return NORMAL

            case Assign(target=target, value=value):
                self.assign(target, self.eval_expr(value, env), env)
                return NORMAL

            case If(branches=branches, else_body=else_body):
                for branch in branches:
                    if truthy(self.eval_expr(branch.cond, env)):
                        return self.run_scoped(branch.body, env)
                if else_body:
                    return self.run_scoped(else_body, env)
                return NORMAL

            case Case():
                return self.exec_case(stmt, env)

            case For():
                return self.exec_for(stmt, env)

            case While(cond=cond, body=body, label=label):
                while truthy(self.eval_expr(cond, env)):
                    flow = self.run_scoped(body, env)
                    if flow.kind == "break":
                        if flow.targets(label):
                            break
                        return flow
                    if flow.kind == "continue":
                        if flow.targets(label):
                            continue
                        return flow
                    if flow.kind == "return":
                        return flow
                return NORMAL

            case ProcDecl(name=name, params=params, body=body, return_type=return_type):
                env.define(name, UserFunction(
                    name, [p.name for p in params], [p.is_var for p in params], body, env, return_type
                ))
                return NORMAL

            case Return(value=value):
                return Flow("return", None if value is None else self.eval_expr(value, env))

            case Block(body=body, label=label):
                flow = self.run_scoped(body, env)
                if flow.kind == "break" and flow.targets(label):
                    return NORMAL
                return flow

            case Defer(stmt=deferred):
                env.defer_stack.append(deferred)
                return NORMAL

            case TypeDecl(name=name, type=EnumType(members=members)):
                for member, ordinal in members:
                    env.define(member, ordinal)
                env.define(name, {member: ordinal for member, ordinal in members})
                return NORMAL

            case TypeDecl():
                return NORMAL

            case Break(label=label):
                self._dbg("break", label)
                return Flow("break", label=label)

            case Continue(label=label):
                return Flow("continue", label=label)

        raise MoteRuntimeError(f"Unknown statement {type(stmt).__name__}", stmt)

    def exec_case(self, stmt: Case, env: Env) -> Flow:
        subject = self.eval_expr(stmt.subject, env)
        for branch in stmt.of_branches:
            for value_expr in branch.values:
                candidate = self.eval_expr(value_expr, env)
                if isinstance(candidate, Range):
                    matched = is_number(subject) and not isinstance(subject, float) and subject in range(candidate.start, candidate.stop)
                else:
                    matched = scalar_equal(subject, candidate)
                if matched:
                    return self.run_scoped(branch.body, env)
        for branch in stmt.elif_branches:
            if truthy(self.eval_expr(branch.cond, env)):
                return self.run_scoped(branch.body, env)
        if stmt.else_body is not None:
            return self.run_scoped(stmt.else_body, env)
        raise MoteRuntimeError(f"No case branch matched value {stringify(subject)}", stmt)

    def iteration_items(self, iterable: Any, var_count: int):
        """Yield one tuple of loop-variable values per iteration."""
        pair = var_count > 1
        match iterable:
            case Range():
                for i in iterable:
                    yield (i,)
            case bool():
                raise MoteRuntimeError("Cannot iterate over bool")
            case int():
                for i in range(iterable):
                    yield (i,)
            case list() | str():
                for i, item in enumerate(list(iterable)):
                    yield (i, item) if pair else (item,)
            case dict():
                for key, value in list(iterable.items()):
                    yield (key, value) if pair else (key,)
            case _:
                raise MoteRuntimeError(f"Cannot iterate over {kind_of(iterable)}")

    def exec_for(self, stmt: For, env: Env) -> Flow:
        iterable = self.eval_expr(stmt.iterable, env)
        for values in self.iteration_items(iterable, len(stmt.vars)):
            bindings = {name: (values[i] if i < len(values) else None) for i, name in enumerate(stmt.vars)}
            flow = self.run_scoped(stmt.body, env, bindings)
            if flow.kind == "break":
                if flow.targets(stmt.label):
                    break
                return flow
            if flow.kind == "continue":
                if flow.targets(stmt.label):
                    continue
                return flow
            if flow.kind == "return":
                return flow
        return NORMAL

    def assign(self, target: Expr, value: Any, env: Env):
        match target:
            case Ident(name=name):
                env.assign(name, value)
            case Index(target=container_expr, index=index_expr):
                container = self.eval_expr(container_expr, env)
                index = self.eval_expr(index_expr, env)
                if isinstance(container, list):
                    i = to_int(index)
                    if i < 0 or i >= len(container):
                        raise MoteRuntimeError(f"Index out of bounds: {i} (array length: {len(container)})", target)
                    container[i] = value
                elif isinstance(container, dict):
                    if not isinstance(index, str):
                        raise MoteRuntimeError(f"Map keys must be strings, got {kind_of(index)}", target)
                    container[index] = value
                else:
                    raise MoteRuntimeError(f"Cannot assign into {kind_of(container)} by index", target)
            case Dot(target=obj_expr, field=name):
                obj = self.eval_expr(obj_expr, env)
                if not isinstance(obj, dict):
                    raise MoteRuntimeError(f"Cannot set field '{name}' on {kind_of(obj)}", target)
                obj[name] = value
            case Deref(expr=inner):
                self.assign(inner, value, env)
            case _:
                raise MoteRuntimeError("Invalid assignment target", target)

    # --- expressions ---

    def eval_expr(self, node: Expr, env: Env) -> Any:
        match node:
            case IntLit(value=v) | FloatLit(value=v) | StringLit(value=v) | BoolLit(value=v):
                return v
            case NilLit():
                return None
            case Ident(name=name):
                owner = env.find_owner(name)
                if owner is None:
                    raise MoteRuntimeError(f"Undefined variable '{name}'", node)
                return owner.bindings[name]
            case UnaryOp(op=op, operand=operand):
                return self.eval_unary(op, self.eval_expr(operand, env), node)
            case BinOp(op="and", left=left, right=right):
                return truthy(self.eval_expr(left, env)) and truthy(self.eval_expr(right, env))
            case BinOp(op="or", left=left, right=right):
                return truthy(self.eval_expr(left, env)) or truthy(self.eval_expr(right, env))
            case BinOp(op=op, left=left, right=right):
                return self.eval_binary(op, self.eval_expr(left, env), self.eval_expr(right, env), node)
            case Call():
                return self.eval_call(node, env)
            case ArrayLit(elements=elements) | TupleLit(elements=elements):
                return [self.eval_expr(e, env) for e in elements]
            case MapLit(pairs=fields) | NamedTupleLit(fields=fields) | ObjConstr(fields=fields):
                return {name: self.eval_expr(e, env) for name, e in fields}
            case Index(target=target, index=index):
                return self.eval_index(self.eval_expr(target, env), self.eval_expr(index, env), node)
            case Cast(expr=inner) | Addr(expr=inner) | Deref(expr=inner):
                return self.eval_expr(inner, env)
            case Dot(target=target, field=name):
                return self.eval_dot(self.eval_expr(target, env), name, node)
            case Lambda(params=params, body=body, return_type=return_type):
                return UserFunction("<lambda>", [p.name for p in params], [p.is_var for p in params],
                                    body, env, return_type)
        raise MoteRuntimeError(f"Unknown expression {type(node).__name__}", node)

    def eval_unary(self, op: str, v: Any, node) -> Any:
        match op:
            case "-":
                if isinstance(v, float):
                    return -v
                return -to_int(v)
            case "not":
                return not truthy(v)
            case "$":
                return stringify(v)
        raise MoteRuntimeError(f"Unknown unary operator '{op}'", node)

    def eval_binary(self, op: str, left: Any, right: Any, node) -> Any:
        both_ints = is_int(left) and is_int(right)
        match op:
            case "&":
                return stringify(left) + stringify(right)
            case "+":
                if isinstance(left, list) and isinstance(right, list):
                    return left + right
                if both_ints:
                    return left + right
                return to_float(left) + to_float(right)
            case "-":
                return left - right if both_ints else to_float(left) - to_float(right)
            case "*":
                return left * right if both_ints else to_float(left) * to_float(right)
            case "/":
                if both_ints:
                    return trunc_div(left, right)
                divisor = to_float(right)
                if divisor == 0.0:
                    dividend = to_float(left)
                    if dividend == 0.0 or dividend != dividend:
                        return float("nan")
                    return math.copysign(float("inf"), dividend) * math.copysign(1.0, divisor)
                return to_float(left) / divisor
            case "%" | "mod":
                if both_ints:
                    return trunc_mod(left, right)
                divisor = to_float(right)
                return math.fmod(to_float(left), divisor) if divisor != 0.0 else float("nan")
            case "div":
                return trunc_div(to_int(left), to_int(right))
            case "shl":
                return to_int(left) << to_int(right)
            case "shr":
                return to_int(left) >> to_int(right)
            case "==" | "!=":
                equal = values_equal(left, right)
                return equal if op == "==" else not equal
            case "<" | "<=" | ">" | ">=":
                if isinstance(left, str) and isinstance(right, str):
                    a, b = left, right
                else:
                    a, b = to_float(left), to_float(right)
                match op:
                    case "<":
                        return a < b
                    case "<=":
                        return a <= b
                    case ">":
                        return a > b
                    case ">=":
                        return a >= b
            case ".." | "..<":
                return Range(to_int(left), to_int(right), op == "..")
        raise MoteRuntimeError(f"Unknown binary operator '{op}'", node)

    def eval_index(self, target: Any, index: Any, node) -> Any:
        if isinstance(index, Range):
            if not isinstance(target, (str, list)):
                raise MoteRuntimeError(f"Cannot slice value of type {kind_of(target)}", node)
            start = max(0, index.start)
            stop = min(index.stop, len(target))
            if start >= stop:
                return target[0:0]
            return target[start:stop]
        match target:
            case list():
                i = to_int(index)
                if i < 0 or i >= len(target):
                    raise MoteRuntimeError(f"Index out of bounds: {i} (array length: {len(target)})", node)
                return target[i]
            case dict():
                if not isinstance(index, str):
                    raise MoteRuntimeError(f"Map keys must be strings, got {kind_of(index)}", node)
                return target.get(index)
            case str():
                i = to_int(index)
                if i < 0 or i >= len(target):
                    raise MoteRuntimeError(f"String index out of bounds: {i} (string length: {len(target)})", node)
                return target[i]
        raise MoteRuntimeError(f"Cannot index value of type {kind_of(target)}", node)

    def eval_dot(self, target: Any, name: str, node) -> Any:
        if name == "len" and isinstance(target, (str, list, dict, Range)):
            return len(target)
        if isinstance(target, dict):
            return target.get(name)
        if name in FLOAT_CONVERSIONS:
            return to_float(target)
        if name in INT_CONVERSIONS:
            return to_int(target)
        if name in PSEUDO_METHODS and name != "len":
            return self.call_pseudo_method(name, [target], node)
        return None

    # --- calls ---

    def call_pseudo_method(self, name: str, args: List[Any], node) -> Any:
        try:
            return PSEUDO_METHODS[name](*args)
        except TypeError:
            raise MoteRuntimeError(f"Wrong number of arguments to {name}()", node) from None

    def eval_call(self, node: Call, env: Env) -> Any:
        name = node.func
        owner = env.find_owner(name)
        if owner is None:
            if name in PSEUDO_METHODS and node.args:
                args = [self.eval_expr(a, env) for a in node.args]
                return self.call_pseudo_method(name, args, node)
            raise MoteRuntimeError(f"Undefined function '{name}'", node)
        fn = owner.bindings[name]
        if isinstance(fn, NativeFunction):
            args = [self.eval_expr(a, env) for a in node.args]
            return self.call_native(fn, args, env, node)
        if isinstance(fn, UserFunction):
            return self.call_user(fn, node.args, env, node)
        raise MoteRuntimeError(f"'{name}' is not callable", node)

    def call_native(self, fn: NativeFunction, args: List[Any], env: Env, node=None) -> Any:
        self._push_frame(fn.name, args, node)
        try:
            return fn(env, args)
        except Exception as e:
            self._capture_stack(e)
            raise
        finally:
            self._pop_frame()

    def call_user(self, fn: UserFunction, arg_exprs: List[Expr], env: Env, node) -> Any:
        """Call a user function with unevaluated arguments from the caller's environment."""
        values: List[Any] = []
        refs: List[Optional[str]] = []
        for i, arg in enumerate(arg_exprs):
            is_var = i < len(fn.var_params) and fn.var_params[i]
            # Only a bare identifier can be written back into the caller
            refs.append(arg.name if is_var and isinstance(arg, Ident) else None)
            values.append(self.eval_expr(arg, env))
        call_env, result = self.invoke(fn, values, node)
        for i, ref in enumerate(refs):
            if ref is not None:
                env.assign(ref, call_env.bindings.get(fn.params[i]))
        return result

    def call_function(self, fn: Any, args: List[Any], env: Optional[Env] = None) -> Any:
        """Call a function value with already-evaluated arguments (used by natives and hosts)."""
        if isinstance(fn, NativeFunction):
            return self.call_native(fn, args, env or Env())
        if isinstance(fn, UserFunction):
            return self.invoke(fn, args, self.current_node)[1]
        raise MoteRuntimeError(f"Value of kind {kind_of(fn)} is not callable", self.current_node)

    def invoke(self, fn: UserFunction, values: List[Any], node):
        """Run a user function body. Returns (call environment, return value)."""
        call_env = Env(fn.closure)
        for i, pname in enumerate(fn.params):
            call_env.define(pname, values[i] if i < len(values) else None)
        if fn.return_type is not None:
            type_name = getattr(fn.return_type, 'name', None)
            call_env.define("result", default_value(type_name) if type_name in _SCALAR_RESULTS else {})

        self._dbg("call", fn.name, values)
        self._push_frame(fn.name, values, node)
        returned = False
        value = None
        last_expr_value = None
        try:
            for i, stmt in enumerate(fn.body):
                if isinstance(stmt, ExprStmt):
                    last_expr_value = self._eval_stmt_expr(stmt, call_env)
                    continue
                flow = self.exec_stmt(stmt, call_env)
                if flow.kind == "return":
                    returned, value = True, flow.value
                    break
                if not flow.is_normal:
                    break
        except Exception as e:
            self._capture_stack(e)
            raise
        finally:
            self.run_defers(call_env)
            self._pop_frame()

        if returned:
            return call_env, value
        if fn.return_type is not None:
            if fn.body and isinstance(fn.body[-1], ExprStmt):
                return call_env, last_expr_value
            return call_env, call_env.bindings.get("result")
        return call_env, None


_SCALAR_RESULTS = {
    "int", "int8", "int16", "int32", "int64", "uint", "uint8", "uint16", "uint32", "uint64",
    "float", "float32", "float64", "bool", "string", "char", "seq",
}
