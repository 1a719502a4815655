"""
The host-facing runtime: root environment, native registration, globals,
extensions, and the ScriptRunner error boundary.
"""
import inspect
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from mote.mote_ast import Program
from mote.mote_datatypes import Env, NativeCallable, NativeFunction
from mote.mote_errors import MoteError
from mote.mote_frontends import compile_source
from mote.mote_interpreter import Interpreter
from mote.mote_lexer import tokenize as _tokenize
from mote.mote_parser import parse as _parse
from mote.mote_plugin import Extension, ExtensionRegistry
from mote.mote_printer import Printer, stringify
from mote.mote_stdlib import StdLib


def mote_api_method(func):
    """A decorator to explicitly mark host methods as callable from Mote scripts."""
    func._is_mote_api = True
    return func


class MoteHost:
    """Base class for Python objects whose marked methods scripts may call."""

    def api_methods(self):
        """Yield (name, bound method) for every @mote_api_method member."""
        for name, member in inspect.getmembers(self):
            if not callable(member):
                continue
            # The decorator marks the function; getmembers hands back bound methods
            func = getattr(member, "__func__", member)
            if getattr(func, "_is_mote_api", False):
                yield name, member


Token = Dict[str, Any]


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


def describe_error(e: Exception, call_name: Optional[str] = None) -> tuple[str, Optional[Token]]:
    """Map an exception escaping the engine to a one-line message and a location token."""
    match e:
        case MoteError():
            msg = f"{e.kind}: {e.message}"
        case RecursionError():
            msg = "RuntimeError: maximum recursion depth exceeded"
        case ZeroDivisionError():
            msg = "RuntimeError: Division by zero"
        case TypeError() | ValueError():
            msg = "TypeError: invalid arguments" + (f" in ({call_name})" if call_name else "") + f": {e}"
        case _:
            msg = f"InternalError: {type(e).__name__}: {e}"
    token = None
    line = getattr(e, 'line', None)
    if line is not None:
        token = {'line': line, 'col': getattr(e, 'col', None)}
    return msg, token


class Runtime:
    """One independent Mote engine instance: a root environment plus the interpreter that runs in it."""

    def __init__(self):
        self.interpreter = Interpreter()
        self.root = Env()
        self.side_effects: List[Dict] = []
        self.extensions = ExtensionRegistry()
        self._runtime_ready = False
        self._stdlib_ready = False

    # --- setup ---

    def init_runtime(self):
        """Register the core natives and constants. Safe to call more than once."""
        if self._runtime_ready:
            return
        self._runtime_ready = True
        self.register_native("echo", self._echo)
        self.register_native("print", self._echo)
        self.root.define("PI", math.pi)
        self.root.define("E", math.e)
        self.root.define("TAU", math.tau)

    def init_stdlib(self):
        if self._stdlib_ready:
            return
        self.init_runtime()
        self._stdlib_ready = True
        StdLib(self.interpreter).register(self.root)

    def _echo(self, env, args):
        self.emit(" ".join(stringify(a) for a in args))
        return None

    def emit(self, message: str, topic: str = "stdout"):
        self.side_effects.append({'topics': [topic], 'message': message})

    # --- natives and globals ---

    def register_native(self, name: str, fn: NativeCallable):
        self.root.define(name, NativeFunction(name, fn))

    def native(self, name=None):
        """Decorator registering an (env, args) function as a native.

        Usable bare (`@rt.native`) or with an explicit script name (`@rt.native("drawBox")`).
        """
        if callable(name):
            self.register_native(name.__name__, name)
            return name

        def decorator(fn: NativeCallable):
            self.register_native(name or fn.__name__, fn)
            return fn
        return decorator

    def set_global(self, name: str, value: Any):
        self.root.define(name, value)

    def set_global_int(self, name: str, value: int):
        self.set_global(name, int(value))

    def set_global_float(self, name: str, value: float):
        self.set_global(name, float(value))

    def set_global_bool(self, name: str, value: bool):
        self.set_global(name, bool(value))

    def set_global_string(self, name: str, value: str):
        self.set_global(name, str(value))

    def get_global(self, name: str) -> Any:
        return self.root.lookup(name)

    def new_env(self, parent: Optional[Env] = None) -> Env:
        return Env(parent if parent is not None else self.root)

    # --- extensions ---

    def load_extension(self, ext: Extension, env: Optional[Env] = None):
        if ext.name not in self.extensions:
            self.extensions.register(ext)
        self.extensions.load(ext, env or self.root)

    def unload_extension(self, name: str, env: Optional[Env] = None):
        self.extensions.unload(name, env or self.root)

    # --- pipeline ---

    def tokenize(self, source: str, dialect: str = "mote"):
        return _tokenize(source, dialect)

    def parse(self, tokens) -> Program:
        return _parse(tokens)

    def compile(self, source: str, dialect: Optional[str] = None, filename: Optional[str] = None) -> Program:
        return compile_source(source, dialect, filename)

    def exec_program(self, program: Program, env: Optional[Env] = None) -> ExecutionResult:
        """Execute a parsed program. Script errors come back as status 'error', never raised."""
        try:
            value = self.interpreter.exec_program(program, env or self.root)
        except Exception as e:
            msg, token = describe_error(e, self._failing_call(e))
            self.emit(msg, "stderr")
            return ExecutionResult('error', error_message=msg, error_token=token, side_effects=self.side_effects)
        return ExecutionResult('success', value, side_effects=self.side_effects)

    def call(self, fn: Any, *args) -> Any:
        """Call a script function value from the host."""
        return self.interpreter.call_function(fn, list(args), self.root)

    @staticmethod
    def _failing_call(e: Exception) -> Optional[str]:
        stack = getattr(e, 'mote_stack', None) or []
        return stack[-1].name if stack else None


class ScriptRunner:
    """Compiles and executes Mote source against a runtime, never letting script errors escape."""

    def __init__(self, host_object: Optional[MoteHost] = None, runtime: Optional[Runtime] = None,
                 load_stdlib: bool = True):
        self.host_object = host_object
        self.runtime = runtime or Runtime()
        self.runtime.init_runtime()
        if load_stdlib:
            self.runtime.init_stdlib()
        self._host_api_names: set = set()
        self._bind_host_api_methods()

    @property
    def root_env(self) -> Env:
        return self.runtime.root

    def _bind_host_api_methods(self):
        """Bind @mote_api_method methods of the host into the root environment."""
        root = self.runtime.root
        for n in self._host_api_names:
            root.bindings.pop(n, None)
        self._host_api_names = set()

        host = self.host_object
        if host is None:
            return
        members = host.api_methods() if isinstance(host, MoteHost) else MoteHost.api_methods(host)
        for name, member in members:
            root.define(name, NativeFunction(name, self._host_native(member)))
            self._host_api_names.add(name)

    @staticmethod
    def _host_native(method: Callable[..., Any]) -> NativeCallable:
        return lambda env, args: method(*args)

    def handle_script(self, source_code: str, dialect: Optional[str] = None, lifecycle: str = "init",
                      filename: Optional[str] = None) -> ExecutionResult:
        """The main entry point to execute a script.

        The "init" lifecycle runs in the root environment so its declarations
        persist. Any other lifecycle runs in a fresh child of the root.
        """
        rt = self.runtime
        rt.side_effects = []
        rt.interpreter.call_stack.clear()
        try:
            program = rt.compile(source_code, dialect, filename)
            env = rt.root if lifecycle == "init" else rt.new_env()
            value = rt.interpreter.exec_program(program, env)
            return ExecutionResult('success', value, side_effects=rt.side_effects)
        except Exception as e:
            err_msg, err_token = self._format_error(e, source_code)
            rt.emit(err_msg, "stderr")
            return ExecutionResult('error', error_message=err_msg, error_token=err_token,
                                   side_effects=rt.side_effects)

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[Token]]:
        stack = getattr(e, 'mote_stack', None) or []
        msg, token = describe_error(e, stack[-1].name if stack else None)
        if token is not None:
            context = self._source_context(source, token['line'], token['col'])
            msg = f"{msg}\n(line {token['line']}, col {token['col']})"
            if context:
                msg = f"{msg}\n{context}"
        trace = self._format_stacktrace(stack)
        if trace:
            msg += "\n" + trace
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            out.append(f"{prefix} {str(i).rjust(width)} | {lines[i - 1]}")
            if i == line and col is not None:
                out.append(f"  {' ' * width} | {' ' * max(col - 1, 0)}^")
        return "\n".join(out)

    def _format_stacktrace(self, stack) -> str:
        if not stack:
            return ""
        pf = Printer().pformat

        def fmt(arg):
            match arg:
                case list():
                    return f"[{len(arg)} items]"
                case dict():
                    return "{...}"
            return pf(arg)

        frames = []
        for frame in stack:
            args = ", ".join(fmt(a) for a in frame.args)
            where = f" at line {frame.line}" if frame.line is not None else ""
            frames.append(f"{frame.name}({args}){where}")
        return "Mote stacktrace: " + " -> ".join(frames)
