import inspect
import math
from typing import Any, List

from mote.mote_datatypes import Env, NativeFunction, Range, is_int, kind_of, to_float, to_int, truthy
from mote.mote_errors import MoteRuntimeError
from mote.mote_printer import stringify


def _arity(name: str, args: List[Any], count: int):
    if len(args) < count:
        noun = "argument" if count == 1 else "arguments"
        raise MoteRuntimeError(f"{name} requires {count} {noun}")


def _array_arg(name: str, args: List[Any]) -> list:
    if not isinstance(args[0], list):
        raise MoteRuntimeError(f"{name} first argument must be an array, got {kind_of(args[0])}")
    return args[0]


def _round_half_away(x: float) -> float:
    return float(math.floor(x + 0.5)) if x >= 0 else -float(math.floor(-x + 0.5))


class StdLib:
    """Native implementations of the Mote standard library.

    Every method named `_name` is registered as the script function `name`
    and receives `(env, args)` like any other native.
    """

    def __init__(self, interpreter=None):
        self.interpreter = interpreter

    def natives(self):
        """Yield a NativeFunction for every library method."""
        for attr, member in inspect.getmembers(self):
            if attr.startswith('_') and not attr.startswith('__') and inspect.ismethod(member):
                yield NativeFunction(attr[1:], member)

    def register(self, env: Env):
        for fn in self.natives():
            env.define(fn.name, fn)

    # --- Sequences ---
    def _newSeq(self, env, args):
        _arity("newSeq", args, 1)
        return [None] * max(0, to_int(args[0]))

    def _setLen(self, env, args):
        _arity("setLen", args, 2)
        arr = _array_arg("setLen", args)
        size = max(0, to_int(args[1]))
        if size > len(arr):
            arr.extend([None] * (size - len(arr)))
        else:
            del arr[size:]
        return None

    def _len(self, env, args):
        _arity("len", args, 1)
        if isinstance(args[0], (list, str, dict, Range)):
            return len(args[0])
        raise MoteRuntimeError(f"len requires an array, string or map, got {kind_of(args[0])}")

    def _add(self, env, args):
        _arity("add", args, 2)
        _array_arg("add", args).append(args[1])
        return None

    def _delete(self, env, args):
        _arity("delete", args, 2)
        arr = _array_arg("delete", args)
        idx = to_int(args[1])
        if idx < 0 or idx >= len(arr):
            raise MoteRuntimeError(f"delete: index {idx} out of bounds (array length: {len(arr)})")
        del arr[idx]
        return None

    def _insert(self, env, args):
        _arity("insert", args, 3)
        arr = _array_arg("insert", args)
        idx = to_int(args[2])
        if idx < 0 or idx > len(arr):
            raise MoteRuntimeError(f"insert: index {idx} out of bounds (array length: {len(arr)})")
        arr.insert(idx, args[1])
        return None

    # --- Type conversion ---
    def _int(self, env, args):
        _arity("int", args, 1)
        if isinstance(args[0], (bool, int, float, str)):
            return to_int(args[0])
        return 0

    def _float(self, env, args):
        _arity("float", args, 1)
        if isinstance(args[0], (bool, int, float, str)):
            return to_float(args[0])
        return 0.0

    def _bool(self, env, args):
        _arity("bool", args, 1)
        return truthy(args[0])

    def _str(self, env, args):
        _arity("str", args, 1)
        return stringify(args[0])

    # --- Math ---
    def _sin(self, env, args): _arity("sin", args, 1); return math.sin(to_float(args[0]))
    def _cos(self, env, args): _arity("cos", args, 1); return math.cos(to_float(args[0]))
    def _tan(self, env, args): _arity("tan", args, 1); return math.tan(to_float(args[0]))
    def _arcsin(self, env, args): _arity("arcsin", args, 1); return math.asin(to_float(args[0]))
    def _arccos(self, env, args): _arity("arccos", args, 1); return math.acos(to_float(args[0]))
    def _arctan(self, env, args): _arity("arctan", args, 1); return math.atan(to_float(args[0]))
    def _sinh(self, env, args): _arity("sinh", args, 1); return math.sinh(to_float(args[0]))
    def _cosh(self, env, args): _arity("cosh", args, 1); return math.cosh(to_float(args[0]))
    def _tanh(self, env, args): _arity("tanh", args, 1); return math.tanh(to_float(args[0]))
    def _exp(self, env, args): _arity("exp", args, 1); return math.exp(to_float(args[0]))
    def _floor(self, env, args): _arity("floor", args, 1); return float(math.floor(to_float(args[0])))
    def _ceil(self, env, args): _arity("ceil", args, 1); return float(math.ceil(to_float(args[0])))
    def _trunc(self, env, args): _arity("trunc", args, 1); return float(math.trunc(to_float(args[0])))
    def _round(self, env, args): _arity("round", args, 1); return _round_half_away(to_float(args[0]))
    def _degToRad(self, env, args): _arity("degToRad", args, 1); return math.radians(to_float(args[0]))
    def _radToDeg(self, env, args): _arity("radToDeg", args, 1); return math.degrees(to_float(args[0]))

    def _arctan2(self, env, args):
        _arity("arctan2", args, 2)
        return math.atan2(to_float(args[0]), to_float(args[1]))

    def _pow(self, env, args):
        _arity("pow", args, 2)
        return math.pow(to_float(args[0]), to_float(args[1]))

    def _sqrt(self, env, args):
        _arity("sqrt", args, 1)
        x = to_float(args[0])
        if x < 0:
            return float("nan")
        return math.sqrt(x)

    def _ln(self, env, args):
        _arity("ln", args, 1)
        return self._log_of(math.log, to_float(args[0]))

    def _log10(self, env, args):
        _arity("log10", args, 1)
        return self._log_of(math.log10, to_float(args[0]))

    def _log2(self, env, args):
        _arity("log2", args, 1)
        return self._log_of(math.log2, to_float(args[0]))

    @staticmethod
    def _log_of(fn, x: float) -> float:
        # IEEE results instead of Python's ValueError for the domain edges
        if x == 0.0:
            return float("-inf")
        if x < 0.0:
            return float("nan")
        return fn(x)

    def _abs(self, env, args):
        _arity("abs", args, 1)
        if is_int(args[0]):
            return abs(args[0])
        return abs(to_float(args[0]))

    def _min(self, env, args):
        _arity("min", args, 2)
        a, b = args[0], args[1]
        if is_int(a) and is_int(b):
            return min(a, b)
        return min(to_float(a), to_float(b))

    def _max(self, env, args):
        _arity("max", args, 2)
        a, b = args[0], args[1]
        if is_int(a) and is_int(b):
            return max(a, b)
        return max(to_float(a), to_float(b))
