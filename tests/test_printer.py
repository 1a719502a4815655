import pytest

from mote.mote_datatypes import NativeFunction, Pointer, Range
from mote.mote_printer import Printer, stringify


@pytest.mark.parametrize("value, expected", [
    (None, "nil"),
    (True, "true"),
    (False, "false"),
    (42, "42"),
    (2.5, "2.5"),
    (3.0, "3.0"),
    (float("nan"), "nan"),
    (float("-inf"), "-inf"),
    ("plain", "plain"),
    (["a", 1, None], "[a, 1, nil]"),
    ({"a": [1, 2]}, "{a: [1, 2]}"),
    (Range(1, 3, False), "1..<3"),
    (Range(1, 3), "1..3"),
])
def test_stringify(value, expected):
    assert stringify(value) == expected


@pytest.mark.parametrize("value, expected", [
    ('a"b', '"a\\"b"'),
    ("line\nbreak", '"line\\nbreak"'),
    ([1, "x", None, True, 2.5], '[1, "x", nil, true, 2.5]'),
    ({"k": "v"}, '{k: "v"}'),
    ((1, 2), "[1, 2]"),
])
def test_pformat_quotes_strings(value, expected):
    assert Printer().pformat(value) == expected


def test_opaque_values():
    p = Printer()
    assert p.pformat(NativeFunction("f", lambda env, args: None)) == "<function>"
    assert p.pformat(Pointer(object())) == "<pointer>"
