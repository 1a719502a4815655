"""
AST node definitions for Mote programs.

Nodes are plain dataclasses. Source positions are keyword-only and excluded
from equality so two parses of the same text compare equal regardless of
where they came from.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class Node:
    line: int = field(default=0, kw_only=True, compare=False, repr=False)
    col: int = field(default=0, kw_only=True, compare=False, repr=False)


# --- Type annotations ---

@dataclass
class TypeNode(Node):
    pass


@dataclass
class SimpleType(TypeNode):
    name: str


@dataclass
class PointerType(TypeNode):
    target: TypeNode


@dataclass
class GenericType(TypeNode):
    name: str
    params: List[TypeNode]


@dataclass
class ProcType(TypeNode):
    params: List[TypeNode]
    return_type: Optional[TypeNode] = None


@dataclass
class ObjectType(TypeNode):
    fields: List[Tuple[str, TypeNode]]


@dataclass
class EnumType(TypeNode):
    members: List[Tuple[str, int]]


def type_to_string(t: Optional[TypeNode]) -> str:
    """Render a type annotation in canonical syntax."""
    match t:
        case None:
            return ""
        case SimpleType(name=name):
            return name
        case PointerType(target=target):
            return f"ptr {type_to_string(target)}"
        case GenericType(name=name, params=params):
            return f"{name}[{', '.join(type_to_string(p) for p in params)}]"
        case ProcType(params=params, return_type=ret):
            sig = f"proc({', '.join(type_to_string(p) for p in params)})"
            return f"{sig}: {type_to_string(ret)}" if ret else sig
        case ObjectType():
            return "object"
        case EnumType():
            return "enum"
    raise TypeError(f"not a type node: {t!r}")


# --- Expressions ---

@dataclass
class Expr(Node):
    pass


@dataclass
class IntLit(Expr):
    value: int
    suffix: str = ""


@dataclass
class FloatLit(Expr):
    value: float
    suffix: str = ""


@dataclass
class StringLit(Expr):
    value: str


@dataclass
class BoolLit(Expr):
    value: bool


@dataclass
class NilLit(Expr):
    pass


@dataclass
class Ident(Expr):
    name: str


@dataclass
class UnaryOp(Expr):
    op: str
    operand: Expr


@dataclass
class BinOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass
class Call(Expr):
    func: str
    args: List[Expr]
    # True when written as receiver.func(args); the receiver is args[0]
    is_method: bool = field(default=False, compare=False)


@dataclass
class ArrayLit(Expr):
    elements: List[Expr]


@dataclass
class MapLit(Expr):
    pairs: List[Tuple[str, Expr]]


@dataclass
class TupleLit(Expr):
    elements: List[Expr]


@dataclass
class NamedTupleLit(Expr):
    fields: List[Tuple[str, Expr]]


@dataclass
class Index(Expr):
    target: Expr
    index: Expr


@dataclass
class Cast(Expr):
    type: TypeNode
    expr: Expr


@dataclass
class Addr(Expr):
    expr: Expr


@dataclass
class Deref(Expr):
    expr: Expr


@dataclass
class ObjConstr(Expr):
    type_name: str
    fields: List[Tuple[str, Expr]]


@dataclass
class Dot(Expr):
    target: Expr
    field: str


@dataclass
class Param:
    name: str
    type: Optional[TypeNode] = None
    is_var: bool = False


@dataclass
class Lambda(Expr):
    params: List[Param]
    body: List['Stmt']
    return_type: Optional[TypeNode] = None


# --- Statements ---

@dataclass
class Stmt(Node):
    pass


@dataclass
class ExprStmt(Stmt):
    expr: Expr


@dataclass
class Discard(Stmt):
    value: Optional[Expr] = None


@dataclass
class VarDecl(Stmt):
    kind: str  # 'var', 'let' or 'const'
    name: str
    value: Optional[Expr]
    type: Optional[TypeNode] = None


@dataclass
class UnpackDecl(Stmt):
    kind: str  # 'var' or 'let'
    names: List[str]
    value: Expr
    type: Optional[TypeNode] = None


@dataclass
class Assign(Stmt):
    target: Expr
    value: Expr


@dataclass
class CondBranch:
    cond: Expr
    body: List[Stmt]


@dataclass
class If(Stmt):
    branches: List[CondBranch]
    else_body: List[Stmt] = field(default_factory=list)


@dataclass
class OfBranch:
    values: List[Expr]
    body: List[Stmt]


@dataclass
class Case(Stmt):
    subject: Expr
    of_branches: List[OfBranch]
    elif_branches: List[CondBranch] = field(default_factory=list)
    else_body: Optional[List[Stmt]] = None


@dataclass
class For(Stmt):
    vars: List[str]
    iterable: Expr
    body: List[Stmt]
    label: str = ""


@dataclass
class While(Stmt):
    cond: Expr
    body: List[Stmt]
    label: str = ""


@dataclass
class ProcDecl(Stmt):
    name: str
    params: List[Param]
    body: List[Stmt]
    return_type: Optional[TypeNode] = None
    pragmas: List[str] = field(default_factory=list)


@dataclass
class Return(Stmt):
    value: Optional[Expr] = None


@dataclass
class Block(Stmt):
    body: List[Stmt]
    label: str = ""


@dataclass
class Defer(Stmt):
    stmt: Stmt


@dataclass
class TypeDecl(Stmt):
    name: str
    type: TypeNode


@dataclass
class Break(Stmt):
    label: str = ""


@dataclass
class Continue(Stmt):
    label: str = ""


@dataclass
class Program(Node):
    stmts: List[Stmt]
