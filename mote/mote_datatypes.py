"""
Runtime data types for Mote: environments, function values and the helpers
that define how values coerce, compare and index.

Scalars use native Python objects (None, bool, int, float, str), arrays are
lists and maps are dicts keyed by str. Python's own int/float distinction
keeps integer results integral while float arithmetic stays uniform.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from mote.mote_ast import Stmt, TypeNode
from mote.mote_errors import MoteRuntimeError


class Env:
    """One scope frame in the lexical chain.

    Reads walk the parent chain. Declarations bind in this frame. Plain
    assignment updates whichever frame already owns the name, falling back
    to this frame when none does.
    """
    def __init__(self, parent: Optional['Env'] = None):
        self.bindings: Dict[str, Any] = {}
        self.parent = parent
        self.defer_stack: List[Stmt] = []

    def __repr__(self):
        return f"<Env {sorted(self.bindings)!r}>"

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def find_owner(self, name: str) -> Optional['Env']:
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.parent
        return None

    def define(self, name: str, value: Any):
        self.bindings[name] = value

    def lookup(self, name: str) -> Any:
        owner = self.find_owner(name)
        if owner is None:
            raise MoteRuntimeError(f"Undefined variable '{name}'")
        return owner.bindings[name]

    def assign(self, name: str, value: Any):
        owner = self.find_owner(name)
        (owner or self).bindings[name] = value

    def root(self) -> 'Env':
        env = self
        while env.parent is not None:
            env = env.parent
        return env


# Native functions receive (env, args) and return a value
NativeCallable = Callable[[Env, List[Any]], Any]


@dataclass(eq=False)
class NativeFunction:
    name: str
    fn: NativeCallable

    def __call__(self, env: Env, args: List[Any]) -> Any:
        return self.fn(env, args)

    def __repr__(self):
        return f"<native {self.name}>"


@dataclass(eq=False)
class UserFunction:
    name: str
    params: List[str]
    var_params: List[bool]
    body: List[Stmt]
    closure: Env
    return_type: Optional[TypeNode] = None

    def __repr__(self):
        return f"<proc {self.name}({', '.join(self.params)})>"


@dataclass(frozen=True)
class Range:
    """An integer range `start..end` (inclusive) or `start..<end`."""
    start: int
    end: int
    inclusive: bool = True

    @property
    def stop(self) -> int:
        return self.end + 1 if self.inclusive else self.end

    def __iter__(self):
        return iter(range(self.start, self.stop))

    def __len__(self):
        return max(0, self.stop - self.start)

    def __str__(self):
        return f"{self.start}{'..' if self.inclusive else '..<'}{self.end}"


@dataclass(eq=False)
class Pointer:
    """Opaque host handle. Scripts can pass it around but not inspect it."""
    target: Any = None


FUNCTION_TYPES = (NativeFunction, UserFunction)


def is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def kind_of(v: Any) -> str:
    """Name of the value's kind, as shown in error messages."""
    match v:
        case None:
            return "nil"
        case bool():
            return "bool"
        case int():
            return "int"
        case float():
            return "float"
        case str():
            return "string"
        case list():
            return "array"
        case dict():
            return "map"
        case Range():
            return "range"
        case NativeFunction() | UserFunction():
            return "function"
        case Pointer():
            return "pointer"
    return type(v).__name__


def truthy(v: Any) -> bool:
    match v:
        case None:
            return False
        case bool():
            return v
        case int() | float():
            return v != 0
        case str() | list() | dict():
            return len(v) > 0
        case Range():
            return True
        case Pointer():
            return v.target is not None
    return True


def to_float(v: Any) -> float:
    match v:
        case bool():
            return 1.0 if v else 0.0
        case int() | float():
            return float(v)
        case str():
            try:
                return float(v)
            except ValueError:
                raise MoteRuntimeError(f"Cannot convert string '{v}' to float") from None
    raise MoteRuntimeError(f"Expected numeric value, got {kind_of(v)}")


def to_int(v: Any) -> int:
    match v:
        case bool():
            return 1 if v else 0
        case int():
            return v
        case float():
            return int(v)
        case str():
            try:
                return int(v)
            except ValueError:
                raise MoteRuntimeError(f"Cannot convert string '{v}' to int") from None
    raise MoteRuntimeError(f"Expected numeric value, got {kind_of(v)}")


def scalar_equal(a: Any, b: Any) -> bool:
    """Equality used by `case`: structural for scalars, never for containers or functions."""
    scalars = (type(None), bool, int, float, str)
    if not isinstance(a, scalars) or not isinstance(b, scalars):
        return False
    # Values of different kinds never match, so 1.0 is not 1 here
    if kind_of(a) != kind_of(b):
        return False
    return a == b


def values_equal(a: Any, b: Any) -> bool:
    """Equality for `==`: numbers compare as floats, containers structurally."""
    if is_number(a) and is_number(b):
        return float(a) == float(b)
    if isinstance(a, (list, dict, Range)) or isinstance(b, (list, dict, Range)):
        return type(a) is type(b) and a == b
    if isinstance(a, (type(None), bool, str)) or isinstance(b, (type(None), bool, str)):
        return scalar_equal(a, b)
    return a is b


def trunc_div(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    if b == 0:
        raise MoteRuntimeError("Division by zero")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def trunc_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend, matching trunc_div."""
    return a - b * trunc_div(a, b)


DEFAULT_VALUES: Dict[str, Callable[[], Any]] = {
    "int": lambda: 0, "int8": lambda: 0, "int16": lambda: 0, "int32": lambda: 0, "int64": lambda: 0,
    "uint": lambda: 0, "uint8": lambda: 0, "uint16": lambda: 0, "uint32": lambda: 0, "uint64": lambda: 0,
    "float": lambda: 0.0, "float32": lambda: 0.0, "float64": lambda: 0.0,
    "bool": lambda: False,
    "string": lambda: "",
    "char": lambda: "",
    "seq": list,
    "array": list,
    "Table": dict,
}


def default_value(type_name: Optional[str]) -> Any:
    """Zero value for a declared-but-unassigned variable of the given type."""
    factory = DEFAULT_VALUES.get(type_name or "")
    return factory() if factory else None


@dataclass
class Frame:
    """A call-stack entry, kept for error stack traces and debug output."""
    name: str
    args: List[Any] = field(default_factory=list)
    line: Optional[int] = None
    col: Optional[int] = None
