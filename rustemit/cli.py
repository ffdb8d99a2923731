"""Command-line entry point: JSON module IR in, Rust source out."""

from __future__ import annotations

import json
import sys

from .backend.rust import emit_rust
from .errors import EmitError, LoadError
from .serialize import load_module, serialize

PHASES: list[str] = ["load", "emit"]

USAGE: str = """\
rustemit [OPTIONS] [INPUT] [-o OUTPUT]

Options:
  --prelude           Emit the prelude type aliases (Int = i64, ...)
  --stop-at PHASE     Stop after phase: load, emit
  -o, --output FILE   Write output to FILE instead of stdout
  --help              Show this help message
"""


def read_source(input_file: str | None) -> tuple[str, int]:
    """Read source from file or stdin. Returns (source, exit_code) where exit_code 0 means OK."""
    if input_file is not None:
        try:
            with open(input_file, "rb") as f:
                raw = f.read()
        except OSError:
            print("error: cannot open '" + input_file + "'", file=sys.stderr)
            return ("", 1)
    else:
        raw = sys.stdin.buffer.read()
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("error: invalid utf-8 in input", file=sys.stderr)
        return ("", 1)
    return (source, 0)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w") as f:
                f.write(output)
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    sys.stdout.write(output)
    return 0


def run_pipeline(source: str, stop_at: str | None, prelude: bool) -> tuple[int, str]:
    """Load and emit a module. Returns (exit_code, output)."""
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        print("error:" + str(e.lineno) + ":" + str(e.colno) + ": " + e.msg, file=sys.stderr)
        return (1, "")
    try:
        module = load_module(data)
    except LoadError as e:
        print("error: " + str(e), file=sys.stderr)
        return (1, "")
    if stop_at == "load":
        return (0, json.dumps(serialize(module), indent=2) + "\n")
    try:
        output = emit_rust(module, prelude=prelude)
    except EmitError as e:
        print("error: " + str(e), file=sys.stderr)
        return (1, "")
    return (0, output)


def parse_args(argv: list[str]) -> tuple[str | None, bool, str | None, str | None]:
    """Parse command-line arguments. Returns (stop_at, prelude, input_file, output_file)."""
    stop_at: str | None = None
    prelude = False
    input_file: str | None = None
    output_file: str | None = None
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--stop-at":
            if i + 1 >= len(argv):
                print("error: --stop-at requires an argument", file=sys.stderr)
                sys.exit(2)
            stop_at = argv[i + 1]
            i += 2
        elif arg == "-o" or arg == "--output":
            if i + 1 >= len(argv):
                print("error: " + arg + " requires an argument", file=sys.stderr)
                sys.exit(2)
            output_file = argv[i + 1]
            i += 2
        elif arg == "--prelude":
            prelude = True
            i += 1
        elif arg.startswith("-") and arg != "-":
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            sys.exit(2)
        else:
            if input_file is not None:
                print("error: unexpected argument '" + arg + "'", file=sys.stderr)
                sys.exit(2)
            if arg != "-":
                input_file = arg
            i += 1
    if stop_at is not None and stop_at not in PHASES:
        print("error: unknown phase '" + stop_at + "'", file=sys.stderr)
        sys.exit(2)
    return (stop_at, prelude, input_file, output_file)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    if argv is None:
        argv = sys.argv[1:]
    stop_at, prelude, input_file, output_file = parse_args(argv)
    source, err = read_source(input_file)
    if err != 0:
        return err
    if len(source.strip()) == 0:
        print("error: no input provided", file=sys.stderr)
        return 2
    exit_code, output = run_pipeline(source, stop_at, prelude)
    if exit_code != 0:
        return exit_code
    return write_output(output, output_file)


if __name__ == "__main__":
    sys.exit(main())
