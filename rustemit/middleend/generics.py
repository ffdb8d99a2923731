"""Generic parameter collection and synthetic naming.

A declaration's type parameters are the Generic and Unbound variables that
occur in its signature. The collector returns their identities once each,
in first-occurrence order; GenericNames turns identities into Rust type
parameter names for one declaration at a time.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..ir import App, Arg, Field, Fn, Generic, TupleType, Type, Unbound
from .resolve import resolve


def _walk(typ: Type, out: dict[int, None]) -> None:
    typ = resolve(typ)
    if isinstance(typ, (Generic, Unbound)):
        if typ.id not in out:
            out[typ.id] = None
    elif isinstance(typ, App):
        for arg in typ.args:
            _walk(arg, out)
    elif isinstance(typ, Fn):
        for arg in typ.args:
            _walk(arg, out)
        _walk(typ.ret, out)
    elif isinstance(typ, TupleType):
        for elem in typ.elems:
            _walk(elem, out)


def type_var_ids(*types: Type) -> list[int]:
    """Distinct Generic/Unbound ids occurring in types, first occurrence first."""
    out: dict[int, None] = {}
    for typ in types:
        _walk(typ, out)
    return list(out)


def collect_generics(arguments: Sequence[Arg | Field], *extra: Type) -> list[int]:
    """Type parameter ids of a declaration.

    Scans the argument types in order, then any extra types (the return
    type of a function). Each id appears exactly once, even when several
    arguments share a variable.
    """
    return type_var_ids(*[a.typ for a in arguments], *extra)


def type_names(*types: Type) -> set[str]:
    """Bare names of every applied type mentioned in types."""
    names: set[str] = set()
    pending = list(types)
    while pending:
        typ = resolve(pending.pop())
        if isinstance(typ, App):
            names.add(typ.name.rsplit(".", 1)[-1])
            pending.extend(typ.args)
        elif isinstance(typ, Fn):
            pending.extend(typ.args)
            pending.append(typ.ret)
        elif isinstance(typ, TupleType):
            pending.extend(typ.elems)
    return names


class GenericNames:
    """Type parameter names for a single declaration.

    Identities render as prefix + id (`T3`). When that spelling is already
    used by the declaration (a type name, a declared parameter, the
    declaration's own name) a numbered suffix is added until it is free.
    Declared names (`a` in `type Box(a)`) are bound explicitly with bind().
    """

    def __init__(self, taken: Iterable[str] = (), prefix: str = "T") -> None:
        self._prefix = prefix
        self._taken: set[str] = set(taken)
        self._names: dict[int, str] = {}
        self.declared: list[int] = []

    def bind(self, var_id: int, name: str) -> None:
        """Use a user-declared name for var_id."""
        self._names[var_id] = name
        self._taken.add(name)

    def declare(self, var_ids: Iterable[int]) -> None:
        """Record ids that appear in the declaration's parameter clause."""
        for var_id in var_ids:
            if var_id not in self.declared:
                self.declared.append(var_id)

    def is_declared(self, var_id: int) -> bool:
        return var_id in self.declared or var_id in self._names

    def name(self, var_id: int) -> str:
        existing = self._names.get(var_id)
        if existing is not None:
            return existing
        candidate = self._prefix + str(var_id)
        counter = 0
        while candidate in self._taken:
            counter += 1
            candidate = self._prefix + str(var_id) + "_" + str(counter)
        self._names[var_id] = candidate
        self._taken.add(candidate)
        return candidate
