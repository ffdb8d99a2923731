"""Ownership decisions for variable occurrences.

The backend duplicates every value it reads from a variable. This is the
always-correct default: a Rust binding may be used any number of times
once each use works on its own copy. Types whose Rust representation is
Copy duplicate implicitly; everything else needs an explicit clone.

An ownership analysis may mark a Var with move=True when the occurrence is
the binding's last use; the value is then moved instead.

| Decision | Rust              | When                                   |
|----------|-------------------|----------------------------------------|
| copy     | x                 | value type is Copy (Int, Float, ...)   |
| clone    | x.clone()         | any other type, including generics     |
| move     | x                 | Var.move set by an ownership analysis  |
"""

from __future__ import annotations

from typing import Literal

from ..ir import App, TupleType, Type, Var
from .resolve import resolve

Duplication = Literal["copy", "clone", "move"]

# Prelude types whose Rust counterparts (i64, f64, bool, ()) are Copy
COPY_TYPES = frozenset({"Int", "Float", "Bool", "Nil"})


def is_copy(typ: Type) -> bool:
    """True if values of typ are duplicated by a plain Rust copy."""
    typ = resolve(typ)
    if isinstance(typ, App):
        return not typ.args and typ.name in COPY_TYPES
    if isinstance(typ, TupleType):
        return all(is_copy(e) for e in typ.elems)
    return False


def duplication(var: Var) -> Duplication:
    """How the value read by this occurrence of var is obtained."""
    if var.move:
        return "move"
    if is_copy(var.typ):
        return "copy"
    return "clone"
