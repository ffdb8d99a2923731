"""IR analysis helpers (read-only, no transformations)."""

from .captures import captured_locals, pattern_names
from .generics import GenericNames, collect_generics, type_var_ids
from .ownership import duplication, is_copy
from .resolve import resolve

__all__ = [
    "GenericNames",
    "captured_locals",
    "collect_generics",
    "duplication",
    "is_copy",
    "pattern_names",
    "resolve",
    "type_var_ids",
]
