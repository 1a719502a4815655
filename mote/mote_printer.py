"""
Formats Mote values as text.

`stringify` is the `$` conversion used by echo and string concatenation.
`Printer.pformat` renders values as Mote source literals for the REPL and
for error messages.
"""
import collections.abc

from mote.mote_datatypes import NativeFunction, Pointer, Range, UserFunction


def _format_float(f: float) -> str:
    if f != f:
        return "nan"
    if f in (float("inf"), float("-inf")):
        return "inf" if f > 0 else "-inf"
    return repr(f)


def stringify(value) -> str:
    """The `$` rendering: strings bare, containers recursively."""
    return Printer(quote_strings=False).pformat(value)


class Printer:
    """Formats Mote values into readable strings."""

    def __init__(self, quote_strings: bool = True):
        self.quote_strings = quote_strings
        self._handlers = {
            type(None): lambda v: "nil",
            bool: lambda v: "true" if v else "false",
            int: str,
            float: _format_float,
            str: self._pformat_str,
            list: self._pformat_list,
            dict: self._pformat_dict,
            Range: str,
            NativeFunction: lambda v: "<function>",
            UserFunction: lambda v: "<function>",
            Pointer: lambda v: "<pointer>",
        }

    def pformat(self, obj) -> str:
        """Public entry point to format a value."""
        handler = self._handlers.get(type(obj))
        if handler is not None:
            return handler(obj)
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict(obj)
        if isinstance(obj, (list, tuple)):
            return self._pformat_list(obj)
        return repr(obj)

    def _pformat_str(self, s: str) -> str:
        if not self.quote_strings:
            return s
        escaped = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'

    def _pformat_list(self, items) -> str:
        return "[" + ", ".join(self.pformat(item) for item in items) + "]"

    def _pformat_dict(self, mapping) -> str:
        return "{" + ", ".join(f"{k}: {self.pformat(v)}" for k, v in mapping.items()) + "}"
