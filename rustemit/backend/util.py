"""Shared utilities for the Rust code emitter."""

from __future__ import annotations

RUST_RESERVED = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "union", "unsafe", "use", "where", "while", "abstract", "become", "box",
    "do", "final", "macro", "override", "priv", "try", "typeof", "unsized",
    "virtual", "yield",
})


def safe_name(name: str) -> str:
    """Rename identifiers that collide with Rust keywords."""
    if name in RUST_RESERVED:
        return name + "_"
    return name


def module_path(module: str) -> str:
    """Convert a slash-separated module path to a Rust path: a/b -> a::b."""
    return "::".join(safe_name(part) for part in module.split("/"))


def escape_string(value: str) -> str:
    """Escape a string for use in a Rust string literal (without quotes)."""
    out: list[str] = []
    for c in value:
        if c == "\\":
            out.append("\\\\")
        elif c == '"':
            out.append('\\"')
        elif c == "\n":
            out.append("\\n")
        elif c == "\t":
            out.append("\\t")
        elif c == "\r":
            out.append("\\r")
        elif c == "\x00":
            out.append("\\0")
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            out.append("\\u{" + format(ord(c), "x") + "}")
        else:
            out.append(c)
    return "".join(out)


def indent_lines(text: str, indent_str: str = "    ") -> str:
    """Indent every non-empty line of text by one level."""
    return "\n".join(indent_str + ln if ln else ln for ln in text.split("\n"))


def block(lines: list[str], indent_str: str = "    ") -> str:
    """Wrap statement lines in a brace-delimited Rust block."""
    body = indent_lines("\n".join(lines), indent_str)
    return "{\n" + body + "\n}"


class Emitter:
    """Base class for code emitters with indentation tracking."""

    def __init__(self, indent_str: str = "    ") -> None:
        self.indent: int = 0
        self.lines: list[str] = []
        self._indent_str = indent_str

    def line(self, text: str = "") -> None:
        """Emit a line with current indentation."""
        if text:
            self.lines.append(self._indent_str * self.indent + text)
        else:
            self.lines.append("")

    def text(self, text: str) -> None:
        """Emit multi-line text, indenting each line at the current level."""
        for ln in text.split("\n"):
            self.line(ln)

    def output(self) -> str:
        """Return the accumulated output as a string."""
        return "\n".join(self.lines)
