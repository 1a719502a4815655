"""
Extensions: named bundles of natives, constants, lifecycle hooks and
per-backend codegen mappings, loaded into an environment in registration order.
"""
import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from mote.mote_datatypes import Env, NativeCallable, NativeFunction
from mote.mote_errors import MoteError


class ExtensionError(MoteError):
    kind = "ExtensionError"


@dataclass
class ExtensionInfo:
    name: str
    author: str = ""
    version: str = ""
    description: str = ""

    def __str__(self):
        text = f"{self.name} v{self.version} by {self.author}"
        if self.description:
            text += f"\n  {self.description}"
        return text


@dataclass
class NodeDef:
    """A custom node an extension declares. Informational only."""
    name: str
    description: str = ""


@dataclass
class BackendMapping:
    """Codegen metadata for one backend."""
    imports: List[str] = field(default_factory=list)
    functions: Dict[str, str] = field(default_factory=dict)
    constants: Dict[str, str] = field(default_factory=dict)


@dataclass
class ExtensionContext:
    """What an extension's on_load/on_unload hook sees."""
    env: Env
    metadata: Dict[str, str] = field(default_factory=dict)


Hook = Callable[[ExtensionContext], None]


def _plain(fn: Callable[..., Any]) -> NativeCallable:
    """Adapt a plain Python callable to the native (env, args) signature."""
    return lambda env, args: fn(*args)


def _resolve_reference(ref: str) -> Callable[..., Any]:
    module_name, _, attr = ref.partition(":")
    if not attr:
        raise ExtensionError(f"Function reference '{ref}' must have the form 'module:attribute'")
    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise ExtensionError(f"Cannot import module '{module_name}' for '{ref}': {e}") from e
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise ExtensionError(f"Module '{module_name}' has no attribute '{attr}'") from None
    if not callable(obj):
        raise ExtensionError(f"'{ref}' is not callable")
    return obj


class Extension:
    """A bundle of natives and constants that can be loaded into an environment."""

    def __init__(self, name: str, author: str = "", version: str = "", description: str = ""):
        self.info = ExtensionInfo(name, author, version, description)
        self.functions: Dict[str, NativeCallable] = {}
        self.constants: Dict[str, Any] = {}
        self.nodes: List[NodeDef] = []
        self.on_load: Optional[Hook] = None
        self.on_unload: Optional[Hook] = None
        self.backends: Dict[str, BackendMapping] = {}
        self.enabled = True

    @property
    def name(self) -> str:
        return self.info.name

    def __str__(self):
        text = f"Extension({self.info.name} v{self.info.version} by {self.info.author})"
        if not self.enabled:
            text += " [disabled]"
        return text

    # --- runtime registration ---

    def register_func(self, name: str, fn: NativeCallable):
        """Register a native taking (env, args)."""
        self.functions[name] = fn

    def register_callable(self, name: str, fn: Callable[..., Any]):
        """Register a plain Python callable, called with the script arguments spread."""
        self.functions[name] = _plain(fn)

    def register_constant(self, name: str, value: Any):
        self.constants[name] = value

    def register_constant_int(self, name: str, value: int):
        self.register_constant(name, int(value))

    def register_constant_float(self, name: str, value: float):
        self.register_constant(name, float(value))

    def register_constant_string(self, name: str, value: str):
        self.register_constant(name, str(value))

    def register_constant_bool(self, name: str, value: bool):
        self.register_constant(name, bool(value))

    def register_node(self, name: str, description: str = ""):
        self.nodes.append(NodeDef(name, description))

    # --- codegen registration ---

    def backend(self, name: str) -> BackendMapping:
        return self.backends.setdefault(name, BackendMapping())

    def add_import(self, backend: str, module: str):
        mapping = self.backend(backend)
        if module not in mapping.imports:
            mapping.imports.append(module)

    def map_function(self, backend: str, dsl_name: str, target_code: str):
        self.backend(backend).functions[dsl_name] = target_code

    def map_constant(self, backend: str, dsl_name: str, target_value: str):
        self.backend(backend).constants[dsl_name] = target_value

    # --- manifests ---

    @classmethod
    def from_yaml(cls, source) -> 'Extension':
        """Build an extension from a YAML manifest given as text or a file path.

        Recognised keys: name, author, version, description, constants,
        functions (name -> 'module:attr') and codegen (backend -> imports,
        functions, constants).
        """
        if isinstance(source, Path) or (isinstance(source, str) and "\n" not in source
                                        and source.endswith((".yaml", ".yml"))):
            text = Path(source).read_text(encoding="utf-8")
        else:
            text = source
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ExtensionError(f"Invalid extension manifest: {e}") from e
        if not isinstance(data, dict) or not data.get("name"):
            raise ExtensionError("Extension manifest must be a mapping with a 'name'")

        ext = cls(str(data["name"]), str(data.get("author", "")),
                  str(data.get("version", "")), str(data.get("description", "")))
        for name, value in (data.get("constants") or {}).items():
            ext.register_constant(name, value)
        for name, ref in (data.get("functions") or {}).items():
            ext.register_callable(name, _resolve_reference(ref))
        for backend, spec in (data.get("codegen") or {}).items():
            spec = spec or {}
            for module in spec.get("imports") or []:
                ext.add_import(backend, module)
            for dsl_name, code in (spec.get("functions") or {}).items():
                ext.map_function(backend, dsl_name, code)
            for dsl_name, value in (spec.get("constants") or {}).items():
                ext.map_constant(backend, dsl_name, str(value))
        return ext


class ExtensionRegistry:
    """Extensions by name, kept in registration order."""

    def __init__(self):
        self.extensions: Dict[str, Extension] = {}
        self.load_order: List[str] = []
        self._loaded: set = set()

    def __contains__(self, name: str) -> bool:
        return name in self.extensions

    def __str__(self):
        return "\n".join(str(self.extensions[name]) for name in self.load_order)

    def register(self, ext: Extension):
        if ext.name in self.extensions:
            raise ExtensionError(f"Extension '{ext.name}' already registered")
        self.extensions[ext.name] = ext
        self.load_order.append(ext.name)

    def get(self, name: str) -> Extension:
        try:
            return self.extensions[name]
        except KeyError:
            raise ExtensionError(f"Extension '{name}' not found") from None

    def load(self, ext, env: Env):
        """Run on_load, then define every function and constant in `env`."""
        if isinstance(ext, str):
            ext = self.get(ext)
        if ext.on_load is not None:
            ext.on_load(ExtensionContext(env))
        for name, fn in ext.functions.items():
            env.define(name, NativeFunction(name, fn))
        for name, value in ext.constants.items():
            env.define(name, value)
        ext.enabled = True
        self._loaded.add(ext.name)

    def load_all(self, env: Env):
        for name in self.load_order:
            self.load(self.extensions[name], env)

    def unload(self, name: str, env: Env):
        """Run on_unload and mark the extension disabled.

        Bindings already defined in an environment stay in place, so closures
        that captured them keep working.
        """
        ext = self.get(name)
        if ext.on_unload is not None:
            ext.on_unload(ExtensionContext(env))
        ext.enabled = False
        self._loaded.discard(name)

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    def list(self) -> List[str]:
        return list(self.load_order)
