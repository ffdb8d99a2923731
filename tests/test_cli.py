"""CLI tests for the rustemit entry point.

Test cases live in cli/*.tests files. Format:

    === test name
    args: --prelude
    {"_type": "Module", ...}
    (stdin for the emitter)
    ---
    exit: 0
    stderr: error: some message
    stdout-contains: pub fn
    stdout-empty: true
    stderr-empty: true
    ---

Special directives in the input section:
    args:           CLI arguments (first line, required)
    stdin-bytes:    hex-encoded raw bytes instead of text (e.g. "ff fe")

Assertion directives in the expected section:
    exit:             exact exit code
    stderr:           exact stderr content (trailing newline added)
    stderr-contains:  stderr must contain substring
    stderr-empty:     stderr must be empty
    stdout-contains:  stdout must contain substring
    stdout-empty:     stdout must be empty
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest

CLI_DIR = Path(__file__).parent / "cli"
ROOT_DIR = Path(__file__).parent.parent

MODULE = {
    "_type": "Module",
    "name": "m",
    "statements": [
        {
            "_type": "Function",
            "name": "one",
            "args": [],
            "body": {"_type": "Int", "value": "1", "typ": {"_type": "App", "name": "Int"}},
            "return_type": {"_type": "App", "name": "Int"},
        }
    ],
}


def parse_cli_test_file(path: Path) -> list[tuple[str, dict]]:
    """Parse a .tests file into (name, spec) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, dict]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            result.append((test_name, _parse_spec(input_lines, expected_lines)))
        else:
            i += 1
    return result


def _parse_spec(input_lines: list[str], expected_lines: list[str]) -> dict:
    """Parse input + expected lines into a test spec dict."""
    spec: dict = {"args": [], "stdin": None, "stdin_bytes": None, "assertions": []}
    body_start = 0
    if input_lines and input_lines[0].startswith("args:"):
        args_str = input_lines[0][5:].strip()
        spec["args"] = args_str.split() if args_str else []
        body_start = 1
    remaining = input_lines[body_start:]
    if remaining and remaining[0].startswith("stdin-bytes:"):
        spec["stdin_bytes"] = bytes.fromhex(remaining[0][len("stdin-bytes:") :].strip())
    else:
        spec["stdin"] = "\n".join(remaining)
    for line in expected_lines:
        line = line.strip()
        if not line:
            continue
        key, _, value = line.partition(":")
        value = value.strip()
        if key == "exit":
            spec["assertions"].append(("exit", int(value)))
        elif key in ("stderr-empty", "stdout-empty"):
            spec["assertions"].append((key, None))
        elif key in ("stderr", "stderr-contains", "stdout-contains"):
            spec["assertions"].append((key, value))
    return spec


def discover_cli_tests() -> list[tuple[str, dict]]:
    """Find all CLI tests across .tests files."""
    results = []
    for test_file in sorted(CLI_DIR.glob("*.tests")):
        for name, spec in parse_cli_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", spec))
    return results


def run_cli(args: list[str], stdin_data: bytes) -> subprocess.CompletedProcess[bytes]:
    """Run the rustemit CLI in a subprocess."""
    cmd = [sys.executable, "-m", "rustemit", *args]
    return subprocess.run(cmd, input=stdin_data, capture_output=True, cwd=ROOT_DIR)


def check_assertions(result: subprocess.CompletedProcess[bytes], assertions: list[tuple]) -> None:
    """Check all assertions against a CLI result."""
    stdout = result.stdout.decode(errors="replace")
    stderr = result.stderr.decode(errors="replace")
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == value, (
                f"expected exit {value}, got {result.returncode}\nstderr: {stderr}"
            )
        elif kind == "stderr":
            assert stderr.rstrip("\n") == value, f"expected stderr {value!r}, got {stderr!r}"
        elif kind == "stderr-contains":
            assert value in stderr, f"expected stderr to contain {value!r}, got {stderr!r}"
        elif kind == "stderr-empty":
            assert result.stderr == b"", f"expected empty stderr, got {stderr!r}"
        elif kind == "stdout-contains":
            assert value in stdout, f"expected stdout to contain {value!r}, got {stdout!r}"
        elif kind == "stdout-empty":
            assert result.stdout == b"", f"expected empty stdout, got {stdout[:200]!r}"


def pytest_generate_tests(metafunc):
    """Parametrize test_cli over all .tests files."""
    if "cli_spec" in metafunc.fixturenames:
        params = [pytest.param(spec, id=test_id) for test_id, spec in discover_cli_tests()]
        metafunc.parametrize("cli_spec", params)


def test_cli(cli_spec: dict) -> None:
    """Run a single CLI test case from a .tests file."""
    if cli_spec["stdin_bytes"] is not None:
        stdin_data = cli_spec["stdin_bytes"]
    else:
        stdin_data = cli_spec["stdin"].encode()
    result = run_cli(cli_spec["args"], stdin_data)
    check_assertions(result, cli_spec["assertions"])


def test_input_file_and_output_file(tmp_path: Path) -> None:
    source = tmp_path / "module.json"
    source.write_text(json.dumps(MODULE))
    target = tmp_path / "module.rs"
    result = run_cli([str(source), "-o", str(target)], b"")
    assert result.returncode == 0, result.stderr.decode(errors="replace")
    assert result.stdout == b""
    assert target.read_text() == "fn one() -> Int {\n    1\n}\n"


def test_failed_emission_writes_no_file(tmp_path: Path) -> None:
    module = dict(MODULE)
    module["statements"] = [{"_type": "Import", "module": "x", "bogus": 1}]
    target = tmp_path / "out.rs"
    result = run_cli(["--output", str(target)], json.dumps(module).encode())
    assert result.returncode == 1
    assert not target.exists()
