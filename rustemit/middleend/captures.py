"""Free local variables of anonymous functions.

A Rust `move` closure takes ownership of every local it names. The backend
hands each closure its own clone of those locals so the enclosing body can
keep using them.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass

from ..ir import (
    Clause,
    FnExpr,
    Let,
    Loc,
    PAssign,
    Pattern,
    PConstructor,
    PTuple,
    PVar,
    Sequence,
    Try,
    Type,
    Var,
)


def pattern_names(p: Pattern) -> set[str]:
    """Names bound by a pattern."""
    if isinstance(p, PVar):
        return {p.name}
    if isinstance(p, PAssign):
        return {p.name} | pattern_names(p.pattern)
    if isinstance(p, PTuple):
        out: set[str] = set()
        for e in p.elems:
            out |= pattern_names(e)
        return out
    if isinstance(p, PConstructor):
        out = set()
        for a in p.args:
            out |= pattern_names(a.pattern)
        return out
    return set()


def captured_locals(fn: FnExpr) -> list[Var]:
    """First occurrence of every local the body reads from an enclosing scope."""
    bound = {a.name for a in fn.args if a.name}
    found: dict[str, Var] = {}
    _collect(fn.body, bound, found)
    return list(found.values())


def _collect(node: object, bound: set[str], found: dict[str, Var]) -> None:
    if isinstance(node, Var):
        if node.kind == "local" and node.name not in bound and node.name not in found:
            found[node.name] = node
        return
    if isinstance(node, Sequence):
        inner = set(bound)
        for expr in node.exprs:
            _collect(expr, inner, found)
            if isinstance(expr, Let):
                inner |= pattern_names(expr.pattern)
        return
    if isinstance(node, Let):
        _collect(node.value, bound, found)
        return
    if isinstance(node, Try):
        _collect(node.value, bound, found)
        _collect(node.then, bound | pattern_names(node.pattern), found)
        return
    if isinstance(node, Clause):
        names: set[str] = set()
        for patterns in [node.patterns] + node.alternatives:
            for p in patterns:
                names |= pattern_names(p)
        if node.guard is not None:
            _collect(node.guard, bound | names, found)
        _collect(node.then, bound | names, found)
        return
    if isinstance(node, FnExpr):
        _collect(node.body, bound | {a.name for a in node.args if a.name}, found)
        return
    if isinstance(node, (Type, Pattern, Loc)) or not is_dataclass(node):
        return
    for f in fields(node):
        value = getattr(node, f.name)
        items = value if isinstance(value, list) else [value]
        for item in items:
            if is_dataclass(item):
                _collect(item, bound, found)
