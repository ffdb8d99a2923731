"""rustemit: render a type-checked functional module IR as Rust source."""

from .backend.rust import (
    RustBackend,
    emit_rust,
    render_expression,
    render_module,
    render_pattern,
    render_statement,
    render_type,
)
from .errors import EmitError, LoadError, MalformedLink, UnsupportedConstruct
from .middleend.generics import collect_generics
from .middleend.resolve import resolve
from .serialize import load_module, serialize

__all__ = [
    "EmitError",
    "LoadError",
    "MalformedLink",
    "RustBackend",
    "UnsupportedConstruct",
    "collect_generics",
    "emit_rust",
    "load_module",
    "render_expression",
    "render_module",
    "render_pattern",
    "render_statement",
    "render_type",
    "resolve",
    "serialize",
]
