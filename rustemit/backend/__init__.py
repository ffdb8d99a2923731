"""Rust backend."""

from .rust import (
    RustBackend,
    emit_rust,
    render_expression,
    render_module,
    render_pattern,
    render_statement,
    render_type,
)

__all__ = [
    "RustBackend",
    "emit_rust",
    "render_expression",
    "render_module",
    "render_pattern",
    "render_statement",
    "render_type",
]
