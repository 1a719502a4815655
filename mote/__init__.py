from mote.mote_backends import (
    CodegenBackend, JavaScriptBackend, NativeStatements, NimBackend, PythonBackend, TryFinally, get_backend,
)
from mote.mote_codegen import CodegenContext, apply_extension_codegen, generate_code, load_extensions_codegen
from mote.mote_errors import LexError, MoteError, MoteRuntimeError, ParseError
from mote.mote_frontends import compile_source, detect_dialect
from mote.mote_lexer import tokenize
from mote.mote_parser import parse
from mote.mote_plugin import Extension, ExtensionRegistry
from mote.mote_runtime import ExecutionResult, MoteHost, Runtime, ScriptRunner, mote_api_method

__all__ = [
    "CodegenBackend", "CodegenContext", "ExecutionResult", "Extension", "ExtensionRegistry",
    "JavaScriptBackend", "LexError", "MoteError", "MoteHost", "MoteRuntimeError", "NativeStatements",
    "NimBackend", "ParseError", "PythonBackend", "Runtime", "ScriptRunner", "TryFinally", "apply_extension_codegen",
    "compile_source", "detect_dialect", "generate_code", "get_backend", "load_extensions_codegen",
    "mote_api_method", "parse", "tokenize",
]
