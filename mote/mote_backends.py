"""
Code generation backends.

A backend turns already-generated pieces (operand strings, condition
strings, indentation) into one target language's syntax. Tree walking,
lowering and import tracking live in mote_codegen; each backend only knows
how its language spells things.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple


def escape_string(value: str) -> str:
    """Escape a string for use inside a double-quoted literal (without quotes)."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
        .replace("\x00", "\\x00")
    )


def _float_text(value: float) -> str:
    return repr(float(value))


# A parameter as the generator hands it to a backend: (name, type text or "", is_var)
ParamSpec = Tuple[str, str, bool]


class CodegenBackend(ABC):
    """Emission contract for one target language."""

    name: str = ""
    aliases: Tuple[str, ...] = ()
    file_extension: str = ""
    uses_indentation: bool = True
    indent_size: int = 4
    # True when the language has Nim's implicit `result` and last-expression return
    implicit_result: bool = False

    # DSL function name -> (target spelling, import it needs or None)
    builtin_functions: Dict[str, Tuple[str, Optional[str]]] = {}
    # DSL constant name -> (target spelling, import it needs or None)
    builtin_constants: Dict[str, Tuple[str, Optional[str]]] = {}
    # Import a type declaration kind ("enum", "object") needs in the generated module
    type_imports: Dict[str, str] = {}
    lambda_import: Optional[str] = None
    # Operator -> module-level helper definition the generated code calls for it
    operator_helpers: Dict[str, str] = {}

    def matches(self, key: str) -> bool:
        key = key.lower()
        return key == self.name.lower() or key in self.aliases

    # --- literals ---

    def generate_int(self, value: int, suffix: str = "") -> str:
        return str(value)

    def generate_float(self, value: float, suffix: str = "") -> str:
        return _float_text(value)

    def generate_string(self, value: str) -> str:
        return f'"{escape_string(value)}"'

    @abstractmethod
    def generate_bool(self, value: bool) -> str: ...

    @abstractmethod
    def generate_nil(self) -> str: ...

    def generate_ident(self, name: str) -> str:
        return name

    # --- expressions ---

    @abstractmethod
    def generate_binop(self, left: str, op: str, right: str) -> str: ...

    @abstractmethod
    def generate_unary(self, op: str, operand: str) -> str: ...

    def generate_call(self, func: str, args: List[str]) -> str:
        return f"{func}({', '.join(args)})"

    def generate_array(self, elements: List[str]) -> str:
        return f"[{', '.join(elements)}]"

    @abstractmethod
    def generate_map(self, pairs: List[Tuple[str, str]]) -> str: ...

    def generate_tuple(self, elements: List[str]) -> str:
        if len(elements) == 1:
            return f"({elements[0]},)"
        return f"({', '.join(elements)})"

    @abstractmethod
    def generate_named_tuple(self, fields: List[Tuple[str, str]]) -> str: ...

    def generate_index(self, target: str, index: str) -> str:
        return f"{target}[{index}]"

    @abstractmethod
    def generate_slice(self, target: str, start: str, end: str, inclusive: bool) -> str: ...

    @abstractmethod
    def generate_range(self, start: str, end: str, inclusive: bool) -> str: ...

    def generate_dot(self, target: str, field: str) -> str:
        return f"{target}.{field}"

    @abstractmethod
    def generate_obj_constr(self, type_name: str, fields: List[Tuple[str, str]]) -> str: ...

    def generate_cast(self, type_text: str, expr: str) -> str:
        return expr

    def generate_addr(self, expr: str) -> str:
        return expr

    def generate_deref(self, expr: str) -> str:
        return expr

    @abstractmethod
    def generate_lambda(self, params: Sequence[ParamSpec], expr: str) -> str:
        """A single-expression anonymous function."""

    # --- declarations and statements (each returns one or more complete lines) ---

    def generate_expr_stmt(self, expr: str, indent: str) -> str:
        return indent + expr

    @abstractmethod
    def generate_var_decl(self, kind: str, name: str, value: Optional[str], type_text: str, indent: str) -> str:
        """`kind` is 'var', 'let' or 'const'. `value` is None for a bare typed declaration."""

    @abstractmethod
    def generate_unpack(self, kind: str, names: List[str], value: str, indent: str) -> str: ...

    def generate_assignment(self, target: str, value: str, indent: str) -> str:
        return f"{indent}{target} = {value}"

    @abstractmethod
    def generate_if(self, cond: str, indent: str) -> str: ...

    @abstractmethod
    def generate_elif(self, cond: str, indent: str) -> str: ...

    @abstractmethod
    def generate_else(self, indent: str) -> str: ...

    def generate_block_end(self, indent: str) -> Optional[str]:
        """Closing line for brace languages. Indentation languages return None."""
        return None

    def generate_empty_body(self, indent: str) -> Optional[str]:
        return None

    @abstractmethod
    def generate_for(self, names: List[str], iterable: str, indent: str) -> str: ...

    def generate_for_range(self, name: str, start: str, end: str, inclusive: bool, indent: str) -> str:
        return self.generate_for([name], self.generate_range(start, end, inclusive), indent)

    @abstractmethod
    def generate_while(self, cond: str, indent: str) -> str: ...

    def open_label(self, label: str, indent: str) -> Tuple[List[str], int]:
        """Lines introducing a labeled loop, and how much deeper the loop itself sits."""
        return [self.generate_comment(f"loop '{label}'", indent)], 0

    def close_label(self, label: str, indent: str) -> List[str]:
        return []

    @abstractmethod
    def generate_block_stmt(self, label: str, indent: str) -> List[str]:
        """Opening lines of an explicit `block` statement."""

    @abstractmethod
    def generate_break(self, label: str, indent: str) -> str: ...

    @abstractmethod
    def generate_continue(self, label: str, indent: str) -> str: ...

    @abstractmethod
    def generate_proc_decl(self, name: str, params: Sequence[ParamSpec], return_type: str,
                           pragmas: List[str], indent: str) -> str: ...

    @abstractmethod
    def generate_return(self, value: Optional[str], indent: str) -> str: ...

    @abstractmethod
    def generate_discard(self, value: Optional[str], indent: str) -> str: ...

    @abstractmethod
    def generate_raise(self, message: str, indent: str) -> str: ...

    @abstractmethod
    def generate_import(self, module: str) -> str: ...

    @abstractmethod
    def generate_comment(self, text: str, indent: str = "") -> str: ...

    @abstractmethod
    def generate_enum_type(self, name: str, members: List[Tuple[str, int]], indent: str) -> List[str]: ...

    def generate_enum_members(self, name: str, members: List[Tuple[str, int]], indent: str) -> List[str]:
        """Lines binding each member name as a plain ordinal, where the enum does not already."""
        return []

    @abstractmethod
    def generate_object_type(self, name: str, fields: List[Tuple[str, str]], indent: str) -> List[str]:
        """`fields` holds (name, type text) pairs in the source's spelling."""

    def generate_scope_decl(self, global_names: List[str], nonlocal_names: List[str], indent: str) -> List[str]:
        """Declarations a function needs before rebinding names from outer scopes."""
        return []

    def generate_type_alias(self, name: str, type_text: str, indent: str) -> List[str]:
        return [self.generate_comment(f"type {name} = {type_text}", indent)]

    def generate_program_header(self) -> str:
        return ""

    def generate_program_footer(self) -> str:
        return ""

    def __repr__(self):
        return f"<{type(self).__name__}>"


class NativeStatements(ABC):
    """A target with its own case/of and defer statements."""

    @abstractmethod
    def generate_case(self, subject: str, indent: str) -> str: ...

    @abstractmethod
    def generate_of_branch(self, values: List[str], indent: str) -> str: ...

    @abstractmethod
    def generate_defer(self, indent: str) -> str: ...


class TryFinally(ABC):
    """A target where `defer` is lowered to try/finally."""

    @abstractmethod
    def generate_try(self, indent: str) -> str: ...

    @abstractmethod
    def generate_finally(self, indent: str) -> str: ...


class NimBackend(CodegenBackend, NativeStatements):
    """Emits Nim, the canonical dialect's own shape."""

    name = "Nim"
    aliases = ("nim", "mote", "nimini")
    file_extension = ".nim"
    indent_size = 2
    implicit_result = True

    builtin_functions = {
        name: (name, "std/math") for name in (
            "sin", "cos", "tan", "arcsin", "arccos", "arctan", "arctan2", "sqrt", "pow", "exp",
            "ln", "log10", "log2", "floor", "ceil", "round", "trunc", "sinh", "cosh", "tanh",
            "degToRad", "radToDeg",
        )
    }
    builtin_constants = {"PI": ("PI", "std/math"), "E": ("E", "std/math"), "TAU": ("TAU", "std/math")}
    lambda_import = "std/sugar"

    def generate_int(self, value: int, suffix: str = "") -> str:
        return f"{value}'{suffix}" if suffix else str(value)

    def generate_float(self, value: float, suffix: str = "") -> str:
        text = _float_text(value)
        return f"{text}'{suffix}" if suffix else text

    def generate_bool(self, value: bool) -> str:
        return "true" if value else "false"

    def generate_nil(self) -> str:
        return "nil"

    def generate_binop(self, left: str, op: str, right: str) -> str:
        return f"{left} {op} {right}"

    def generate_unary(self, op: str, operand: str) -> str:
        match op:
            case "not":
                return f"not {operand}"
            case "$":
                return f"${operand}"
        return f"{op}{operand}"

    def generate_call(self, func: str, args: List[str]) -> str:
        # echo writes its arguments back to back; scripts expect them space separated
        if func == "echo" and len(args) > 1:
            spaced = [args[0]]
            for arg in args[1:]:
                spaced.extend(['" "', arg])
            args = spaced
        return f"{func}({', '.join(args)})"

    def generate_array(self, elements: List[str]) -> str:
        return f"@[{', '.join(elements)}]"

    def generate_map(self, pairs: List[Tuple[str, str]]) -> str:
        if not pairs:
            return "initTable[string, auto]()"
        return "{" + ", ".join(f"{k}: {v}" for k, v in pairs) + "}.toTable"

    def generate_named_tuple(self, fields: List[Tuple[str, str]]) -> str:
        return "(" + ", ".join(f"{k}: {v}" for k, v in fields) + ")"

    def generate_slice(self, target: str, start: str, end: str, inclusive: bool) -> str:
        return f"{target}[{start}{'..' if inclusive else '..<'}{end}]"

    def generate_range(self, start: str, end: str, inclusive: bool) -> str:
        return f"{start}{'..' if inclusive else '..<'}{end}"

    def generate_obj_constr(self, type_name: str, fields: List[Tuple[str, str]]) -> str:
        return f"{type_name}(" + ", ".join(f"{k}: {v}" for k, v in fields) + ")"

    def generate_cast(self, type_text: str, expr: str) -> str:
        return f"cast[{type_text}]({expr})"

    def generate_addr(self, expr: str) -> str:
        return f"addr {expr}"

    def generate_deref(self, expr: str) -> str:
        return f"{expr}[]"

    def generate_lambda(self, params: Sequence[ParamSpec], expr: str) -> str:
        return f"({', '.join(self._param(p) for p in params)}) => {expr}"

    def generate_var_decl(self, kind, name, value, type_text, indent):
        typed = f"{name}: {type_text}" if type_text else name
        if value is None:
            return f"{indent}{kind} {typed}"
        return f"{indent}{kind} {typed} = {value}"

    def generate_unpack(self, kind, names, value, indent):
        return f"{indent}{kind} ({', '.join(names)}) = {value}"

    def generate_if(self, cond, indent):
        return f"{indent}if {cond}:"

    def generate_elif(self, cond, indent):
        return f"{indent}elif {cond}:"

    def generate_else(self, indent):
        return f"{indent}else:"

    def generate_empty_body(self, indent):
        return f"{indent}discard"

    def generate_for(self, names, iterable, indent):
        return f"{indent}for {', '.join(names)} in {iterable}:"

    def generate_while(self, cond, indent):
        return f"{indent}while {cond}:"

    def open_label(self, label, indent):
        return [f"{indent}block {label}:"], 1

    def generate_block_stmt(self, label, indent):
        return [f"{indent}block {label}:" if label else f"{indent}block:"]

    def generate_break(self, label, indent):
        return f"{indent}break {label}" if label else f"{indent}break"

    def generate_continue(self, label, indent):
        # Nim's continue takes no label; the labeled block around the loop is the target
        return f"{indent}continue"

    @staticmethod
    def _param(p: ParamSpec) -> str:
        name, type_text, is_var = p
        if is_var:
            return f"{name}: var {type_text or 'auto'}"
        return f"{name}: {type_text}" if type_text else name

    def generate_proc_decl(self, name, params, return_type, pragmas, indent):
        sig = f"{indent}proc {name}({', '.join(self._param(p) for p in params)})"
        if return_type:
            sig += f": {return_type}"
        if pragmas:
            sig += " {." + ", ".join(pragmas) + ".}"
        return sig + " ="

    def generate_return(self, value, indent):
        return f"{indent}return {value}" if value is not None else f"{indent}return"

    def generate_discard(self, value, indent):
        return f"{indent}discard {value}" if value is not None else f"{indent}discard"

    def generate_case(self, subject, indent):
        return f"{indent}case {subject}"

    def generate_of_branch(self, values, indent):
        return f"{indent}of {', '.join(values)}:"

    def generate_defer(self, indent):
        return f"{indent}defer:"

    def generate_raise(self, message, indent):
        return f'{indent}raise newException(ValueError, "{escape_string(message)}")'

    def generate_import(self, module):
        return f"import {module}"

    def generate_comment(self, text, indent=""):
        return f"{indent}# {text}"

    def generate_enum_type(self, name, members, indent):
        body = ", ".join(f"{m} = {v}" for m, v in members)
        return [f"{indent}type {name} = enum", f"{indent}  {body}"]

    def generate_object_type(self, name, fields, indent):
        lines = [f"{indent}type {name} = object"]
        lines.extend(f"{indent}  {f}: {t}" for f, t in fields)
        return lines

    def generate_type_alias(self, name, type_text, indent):
        return [f"{indent}type {name} = {type_text}"]


PY_TYPES = {"string": "str", "char": "str", "seq": "list", "array": "list", "Table": "dict"}

PY_DEFAULTS = {"int": "0", "float": "0.0", "str": '""', "bool": "False", "list": "None", "dict": "None"}

PY_TRUNC_DIV = """def _trunc_div(a, b):
    if isinstance(a, int) and isinstance(b, int):
        q = abs(a) // abs(b)
        return q if (a < 0) == (b < 0) else -q
    return a / b"""

PY_TRUNC_MOD = """def _trunc_mod(a, b):
    r = abs(a) % abs(b)
    return r if a >= 0 else -r"""


class PythonBackend(CodegenBackend, TryFinally):
    """Emits Python 3."""

    name = "Python"
    aliases = ("python", "py")
    file_extension = ".py"
    indent_size = 4

    builtin_functions = {
        "echo": ("print", None),
        "sin": ("math.sin", "math"), "cos": ("math.cos", "math"), "tan": ("math.tan", "math"),
        "arcsin": ("math.asin", "math"), "arccos": ("math.acos", "math"), "arctan": ("math.atan", "math"),
        "arctan2": ("math.atan2", "math"), "sqrt": ("math.sqrt", "math"), "pow": ("math.pow", "math"),
        "exp": ("math.exp", "math"), "ln": ("math.log", "math"), "log10": ("math.log10", "math"),
        "log2": ("math.log2", "math"), "floor": ("math.floor", "math"), "ceil": ("math.ceil", "math"),
        "trunc": ("math.trunc", "math"), "sinh": ("math.sinh", "math"), "cosh": ("math.cosh", "math"),
        "tanh": ("math.tanh", "math"), "degToRad": ("math.radians", "math"),
        "radToDeg": ("math.degrees", "math"),
    }
    builtin_constants = {"PI": ("math.pi", "math"), "E": ("math.e", "math"), "TAU": ("math.tau", "math")}
    type_imports = {"enum": "from enum import Enum", "object": "from dataclasses import dataclass"}

    OPERATORS = {"&": "+", "shl": "<<", "shr": ">>"}
    # Integer division truncates toward zero and the remainder keeps the dividend's sign
    operator_helpers = {"/": PY_TRUNC_DIV, "div": PY_TRUNC_DIV, "mod": PY_TRUNC_MOD, "%": PY_TRUNC_MOD}

    def generate_bool(self, value):
        return "True" if value else "False"

    def generate_nil(self):
        return "None"

    def generate_binop(self, left, op, right):
        if op == "&":
            return f"str({left}) + str({right})"
        if op == "/":
            return f"_trunc_div({left}, {right})"
        if op == "div":
            return f"_trunc_div(int({left}), int({right}))"
        if op in ("mod", "%"):
            return f"_trunc_mod({left}, {right})"
        return f"{left} {self.OPERATORS.get(op, op)} {right}"

    def generate_unary(self, op, operand):
        match op:
            case "not":
                return f"not {operand}"
            case "$":
                return f"str({operand})"
        return f"{op}{operand}"

    def generate_map(self, pairs):
        return "{" + ", ".join(f"{k}: {v}" for k, v in pairs) + "}"

    def generate_named_tuple(self, fields):
        return "{" + ", ".join(f"{self.generate_string(k)}: {v}" for k, v in fields) + "}"

    def generate_slice(self, target, start, end, inclusive):
        return f"{target}[{start}:{end} + 1]" if inclusive else f"{target}[{start}:{end}]"

    def generate_range(self, start, end, inclusive):
        return f"range({start}, {end} + 1)" if inclusive else f"range({start}, {end})"

    def generate_obj_constr(self, type_name, fields):
        return f"{type_name}(" + ", ".join(f"{k}={v}" for k, v in fields) + ")"

    def generate_cast(self, type_text, expr):
        target = PY_TYPES.get(type_text, type_text)
        return f"{target}({expr})" if target in ("int", "float", "str", "bool") else expr

    def generate_lambda(self, params, expr):
        names = ", ".join(p[0] for p in params)
        return f"lambda {names}: {expr}" if names else f"lambda: {expr}"

    def generate_var_decl(self, kind, name, value, type_text, indent):
        if value is None:
            value = PY_DEFAULTS.get(PY_TYPES.get(type_text, type_text), "None")
        return f"{indent}{name} = {value}"

    def generate_unpack(self, kind, names, value, indent):
        return f"{indent}{', '.join(names)} = {value}"

    def generate_if(self, cond, indent):
        return f"{indent}if {cond}:"

    def generate_elif(self, cond, indent):
        return f"{indent}elif {cond}:"

    def generate_else(self, indent):
        return f"{indent}else:"

    def generate_empty_body(self, indent):
        return f"{indent}pass"

    def generate_for(self, names, iterable, indent):
        if len(names) > 1:
            return f"{indent}for {', '.join(names)} in enumerate({iterable}):"
        return f"{indent}for {names[0]} in {iterable}:"

    def generate_while(self, cond, indent):
        return f"{indent}while {cond}:"

    def generate_block_stmt(self, label, indent):
        return [self.generate_comment(f"block {label}".rstrip(), indent), f"{indent}if True:"]

    def generate_break(self, label, indent):
        return f"{indent}break  # label '{label}'" if label else f"{indent}break"

    def generate_continue(self, label, indent):
        return f"{indent}continue  # label '{label}'" if label else f"{indent}continue"

    def generate_proc_decl(self, name, params, return_type, pragmas, indent):
        return f"{indent}def {name}({', '.join(p[0] for p in params)}):"

    def generate_return(self, value, indent):
        return f"{indent}return {value}" if value is not None else f"{indent}return"

    def generate_discard(self, value, indent):
        return f"{indent}{value}" if value is not None else f"{indent}pass"

    def generate_try(self, indent):
        return f"{indent}try:"

    def generate_finally(self, indent):
        return f"{indent}finally:"

    def generate_raise(self, message, indent):
        return f'{indent}raise RuntimeError("{escape_string(message)}")'

    def generate_import(self, module):
        return f"import {module}"

    def generate_comment(self, text, indent=""):
        return f"{indent}# {text}"

    def generate_enum_type(self, name, members, indent):
        lines = [f"{indent}class {name}(Enum):"]
        inner = indent + " " * self.indent_size
        if not members:
            lines.append(f"{inner}pass")
        lines.extend(f"{inner}{m} = {v}" for m, v in members)
        return lines

    def generate_enum_members(self, name, members, indent):
        return [f"{indent}{m} = {name}.{m}.value" for m, _ in members]

    def generate_scope_decl(self, global_names, nonlocal_names, indent):
        lines = []
        if global_names:
            lines.append(f"{indent}global {', '.join(global_names)}")
        if nonlocal_names:
            lines.append(f"{indent}nonlocal {', '.join(nonlocal_names)}")
        return lines

    def generate_object_type(self, name, fields, indent):
        inner = indent + " " * self.indent_size
        lines = [f"{indent}@dataclass", f"{indent}class {name}:"]
        if not fields:
            lines.append(f"{inner}pass")
        for field_name, type_text in fields:
            base = type_text.split("[", 1)[0]
            py_type = PY_TYPES.get(base, base)
            lines.append(f"{inner}{field_name}: {py_type} = {PY_DEFAULTS.get(py_type, 'None')}")
        return lines

    def generate_program_header(self):
        return "#!/usr/bin/env python3"


class JavaScriptBackend(CodegenBackend, TryFinally):
    """Emits ES2015+ JavaScript."""

    name = "JavaScript"
    aliases = ("javascript", "js")
    file_extension = ".js"
    uses_indentation = False
    indent_size = 2

    builtin_functions = {
        "echo": ("console.log", None),
        "sin": ("Math.sin", None), "cos": ("Math.cos", None), "tan": ("Math.tan", None),
        "arcsin": ("Math.asin", None), "arccos": ("Math.acos", None), "arctan": ("Math.atan", None),
        "arctan2": ("Math.atan2", None), "sqrt": ("Math.sqrt", None), "pow": ("Math.pow", None),
        "exp": ("Math.exp", None), "ln": ("Math.log", None), "log10": ("Math.log10", None),
        "log2": ("Math.log2", None), "floor": ("Math.floor", None), "ceil": ("Math.ceil", None),
        "round": ("Math.round", None), "trunc": ("Math.trunc", None), "sinh": ("Math.sinh", None),
        "cosh": ("Math.cosh", None), "tanh": ("Math.tanh", None), "abs": ("Math.abs", None),
        "min": ("Math.min", None), "max": ("Math.max", None),
        "int": ("Math.trunc", None), "float": ("Number", None), "str": ("String", None), "bool": ("Boolean", None),
    }
    builtin_constants = {"PI": ("Math.PI", None), "E": ("Math.E", None), "TAU": ("(2 * Math.PI)", None)}

    OPERATORS = {
        "and": "&&", "or": "||", "==": "===", "!=": "!==", "mod": "%", "shl": "<<", "shr": ">>",
    }

    def generate_bool(self, value):
        return "true" if value else "false"

    def generate_nil(self):
        return "null"

    def generate_binop(self, left, op, right):
        if op == "&":
            return f"String({left}) + String({right})"
        if op == "div":
            return f"Math.trunc({left} / {right})"
        return f"{left} {self.OPERATORS.get(op, op)} {right}"

    def generate_unary(self, op, operand):
        match op:
            case "not":
                return f"!{operand}"
            case "$":
                return f"String({operand})"
        return f"{op}{operand}"

    def generate_map(self, pairs):
        return "{" + ", ".join(f"{k}: {v}" for k, v in pairs) + "}"

    def generate_tuple(self, elements):
        return f"[{', '.join(elements)}]"

    def generate_named_tuple(self, fields):
        return "{" + ", ".join(f"{k}: {v}" for k, v in fields) + "}"

    def generate_slice(self, target, start, end, inclusive):
        return f"{target}.slice({start}, {end} + 1)" if inclusive else f"{target}.slice({start}, {end})"

    def generate_range(self, start, end, inclusive):
        length = f"{end} - {start} + 1" if inclusive else f"{end} - {start}"
        return f"Array.from({{length: {length}}}, (_, i) => {start} + i)"

    def generate_obj_constr(self, type_name, fields):
        return f"new {type_name}({{" + ", ".join(f"{k}: {v}" for k, v in fields) + "})"

    def generate_lambda(self, params, expr):
        return f"({', '.join(p[0] for p in params)}) => {expr}"

    def generate_expr_stmt(self, expr, indent):
        return f"{indent}{expr};"

    def generate_var_decl(self, kind, name, value, type_text, indent):
        keyword = "let" if kind == "var" else "const"
        if value is None:
            value = {"int": "0", "float": "0.0", "string": '""', "bool": "false"}.get(type_text, "null")
        return f"{indent}{keyword} {name} = {value};"

    def generate_unpack(self, kind, names, value, indent):
        keyword = "let" if kind == "var" else "const"
        return f"{indent}{keyword} [{', '.join(names)}] = {value};"

    def generate_assignment(self, target, value, indent):
        return f"{indent}{target} = {value};"

    def generate_if(self, cond, indent):
        return f"{indent}if ({cond}) {{"

    def generate_elif(self, cond, indent):
        return f"{indent}}} else if ({cond}) {{"

    def generate_else(self, indent):
        return f"{indent}}} else {{"

    def generate_block_end(self, indent):
        return f"{indent}}}"

    def generate_for(self, names, iterable, indent):
        if len(names) > 1:
            return f"{indent}for (const [{', '.join(names)}] of {iterable}.entries()) {{"
        return f"{indent}for (const {names[0]} of {iterable}) {{"

    def generate_for_range(self, name, start, end, inclusive, indent):
        cmp = "<=" if inclusive else "<"
        return f"{indent}for (let {name} = {start}; {name} {cmp} {end}; {name}++) {{"

    def generate_while(self, cond, indent):
        return f"{indent}while ({cond}) {{"

    def open_label(self, label, indent):
        return [f"{indent}{label}:"], 0

    def generate_block_stmt(self, label, indent):
        return [f"{indent}{label}: {{" if label else f"{indent}{{"]

    def generate_break(self, label, indent):
        return f"{indent}break {label};" if label else f"{indent}break;"

    def generate_continue(self, label, indent):
        return f"{indent}continue {label};" if label else f"{indent}continue;"

    def generate_proc_decl(self, name, params, return_type, pragmas, indent):
        return f"{indent}function {name}({', '.join(p[0] for p in params)}) {{"

    def generate_return(self, value, indent):
        return f"{indent}return {value};" if value is not None else f"{indent}return;"

    def generate_discard(self, value, indent):
        return f"{indent}{value};" if value is not None else f"{indent};"

    def generate_try(self, indent):
        return f"{indent}try {{"

    def generate_finally(self, indent):
        return f"{indent}}} finally {{"

    def generate_raise(self, message, indent):
        return f'{indent}throw new Error("{escape_string(message)}");'

    def generate_import(self, module):
        return f"import * as {module.replace('/', '_').replace('-', '_')} from '{module}';"

    def generate_comment(self, text, indent=""):
        return f"{indent}// {text}"

    def generate_enum_type(self, name, members, indent):
        body = ", ".join(f"{m}: {v}" for m, v in members)
        return [f"{indent}const {name} = Object.freeze({{{body}}});"]

    def generate_enum_members(self, name, members, indent):
        if not members:
            return []
        names = ", ".join(m for m, _ in members)
        return [f"{indent}const {{ {names} }} = {name};"]

    def generate_object_type(self, name, fields, indent):
        inner = indent + " " * self.indent_size
        names = [f for f, _ in fields]
        lines = [f"{indent}class {name} {{", f"{inner}constructor({{{', '.join(names)}}} = {{}}) {{"]
        lines.extend(f"{inner}{' ' * self.indent_size}this.{f} = {f};" for f in names)
        lines.extend([f"{inner}}}", f"{indent}}}"])
        return lines

    def generate_program_header(self):
        return '"use strict";'


BACKENDS = (NimBackend, PythonBackend, JavaScriptBackend)


def get_backend(name) -> CodegenBackend:
    """Backend instance for a name or alias ('nim', 'python'/'py', 'javascript'/'js')."""
    if isinstance(name, CodegenBackend):
        return name
    for cls in BACKENDS:
        backend = cls()
        if backend.matches(name):
            return backend
    raise ValueError(f"Unknown backend '{name}' (known: nim, python, javascript)")
