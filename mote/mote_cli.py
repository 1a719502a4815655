import sys
from pathlib import Path

from mote.mote_codegen import generate_code
from mote.mote_errors import MoteError
from mote.mote_frontends import compile_source
from mote.mote_printer import Printer
from mote.mote_runtime import ScriptRunner

USAGE = """usage: mote [FILE]
       mote --emit {nim,python,javascript} FILE
       mote --dialect {mote,python,javascript} FILE

With no FILE, start an interactive session."""


def _print_side_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))


def _read_source(file_path: str) -> str:
    try:
        return Path(file_path).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)


def run_script_file(file_path: str, dialect=None) -> int:
    """Run a script file non-interactively and return the exit status."""
    runner = ScriptRunner()
    source = _read_source(file_path)
    result = runner.handle_script(source, dialect=dialect, filename=file_path)
    _print_side_effects(result)
    if result.status == 'error':
        print(result.error_message, file=sys.stderr)
        return 1
    return 0


def emit_file(target: str, file_path: str) -> int:
    """Transpile a script file and print the generated source."""
    source = _read_source(file_path)
    try:
        program = compile_source(source, filename=file_path)
        sys.stdout.write(generate_code(program, target))
    except MoteError as e:
        print(f"{e.kind}: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


def repl() -> int:
    print("Mote REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()
    printer = Printer()
    buffer = []

    while True:
        try:
            raw = input("..  " if buffer else ">> ")
        except EOFError:
            print("\nExiting.")
            return 0
        except KeyboardInterrupt:
            print("\nExiting.")
            return 0

        line = raw.rstrip()
        if not buffer and line.strip() == "exit":
            return 0
        # A line ending in ':' or '=' opens a block; an empty line closes it
        if buffer or line.endswith((":", "=")):
            if line:
                buffer.append(line)
                continue
            line = "\n".join(buffer)
            buffer = []
        if not line.strip():
            continue

        result = runner.handle_script(line)
        _print_side_effects(result)
        if result.status == 'error':
            print(result.error_message, file=sys.stderr)
            continue
        if result.value is not None:
            print(printer.pformat(result.value))


def main(argv=None) -> int:
    """Run a script file, transpile it with --emit, or start the REPL."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        return repl()
    match args:
        case ["-h" | "--help"]:
            print(USAGE)
            return 0
        case ["--emit", target, file_path]:
            return emit_file(target, file_path)
        case ["--dialect", dialect, file_path]:
            return run_script_file(file_path, dialect)
        case [file_path] if not file_path.startswith("-"):
            return run_script_file(file_path)
    print(USAGE, file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
