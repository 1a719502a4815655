import pytest

from mote.mote_cli import main


def write_script(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_runs_a_script_file(tmp_path, capsys):
    path = write_script(tmp_path, "hello.mote", 'echo "hi"\n')
    assert main([path]) == 0
    assert capsys.readouterr().out == "hi\n"


def test_dialect_flag(tmp_path, capsys):
    path = write_script(tmp_path, "sum.txt", "print(1 + 1)\n")
    assert main(["--dialect", "python", path]) == 0
    assert capsys.readouterr().out == "2\n"


def test_emit_python(tmp_path, capsys):
    path = write_script(tmp_path, "f.mote", "proc f(): int =\n  1\necho f()\n")
    assert main(["--emit", "python", path]) == 0
    out = capsys.readouterr().out
    assert "def f():" in out
    assert "print(f())" in out


def test_emit_unknown_target(tmp_path, capsys):
    path = write_script(tmp_path, "f.mote", "echo 1\n")
    assert main(["--emit", "cobol", path]) == 2
    assert "Unknown backend 'cobol'" in capsys.readouterr().err


def test_script_error_exits_nonzero(tmp_path, capsys):
    path = write_script(tmp_path, "bad.mote", "echo 1\nvar x = 1 div 0\n")
    assert main([path]) == 1
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert "RuntimeError: Division by zero" in captured.err


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main([str(tmp_path / "nope.mote")])
    assert exc.value.code == 1
    assert "file not found" in capsys.readouterr().err


def test_help(capsys):
    assert main(["-h"]) == 0
    assert capsys.readouterr().out.startswith("usage: mote")


@pytest.mark.parametrize("argv", [
    ["--emit", "python"],
    ["-x"],
    ["a.mote", "b.mote"],
])
def test_bad_arguments(argv, capsys):
    assert main(argv) == 2
    assert "usage: mote" in capsys.readouterr().err


def test_repl_session(monkeypatch, capsys):
    lines = iter(["var x = 2", "proc sq(n: int): int =", "  n * n", "", "sq(x) + 1", "exit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert main([]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Mote REPL v0.1"
    assert "5" in out
