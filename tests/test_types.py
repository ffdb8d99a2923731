"""Tests for type rendering and link resolution."""

from dataclasses import dataclass

import pytest

from rustemit.backend.rust import RustBackend, render_type
from rustemit.errors import MalformedLink, UnsupportedConstruct
from rustemit.ir import (
    App,
    FLOAT,
    Fn,
    Generic,
    INT,
    Linked,
    NIL,
    STRING,
    TupleType,
    Type,
    Unbound,
)
from rustemit.middleend.resolve import resolve


@dataclass(unsafe_hash=True)
class Mystery(Type):
    pass


# ============================================================
# resolve
# ============================================================


def test_resolve_follows_chain():
    assert resolve(Linked(Linked(INT))) == INT


def test_resolve_stops_at_head():
    inner = Linked(FLOAT)
    typ = App("List", (inner,))
    assert resolve(Linked(typ)) is typ


def test_resolve_cycle():
    a = Linked(INT)
    b = Linked(a)
    a.to = b
    with pytest.raises(MalformedLink):
        resolve(b)


# ============================================================
# render_type
# ============================================================


def test_prelude_names():
    assert render_type(INT) == "Int"
    assert render_type(STRING) == "String"
    assert render_type(NIL) == "Nil"


def test_applied():
    assert render_type(App("List", (INT,))) == "List<Int>"
    assert render_type(App("Result", (INT, STRING))) == "Result<Int, String>"


def test_qualified_name():
    assert render_type(App("gleam/option.Option", (INT,))) == "gleam::option::Option<Int>"


def test_linked_renders_target():
    assert render_type(App("List", (Linked(Linked(INT)),))) == "List<Int>"


def test_generic_and_unbound():
    assert render_type(Generic(3)) == "T3"
    assert render_type(Unbound(7)) == "T7"


def test_linked_to_generic_uses_generic_name():
    assert render_type(Linked(Generic(2))) == "T2"


def test_same_id_same_name():
    typ = Fn((Generic(1),), Linked(Generic(1)))
    assert render_type(typ) == "Rc<dyn Fn(T1) -> T1>"


def test_function_type():
    assert render_type(Fn((INT, STRING), App("Bool"))) == "Rc<dyn Fn(Int, String) -> Bool>"
    assert render_type(Fn((), NIL)) == "Rc<dyn Fn() -> Nil>"


def test_tuples():
    assert render_type(TupleType(())) == "()"
    assert render_type(TupleType((INT,))) == "(Int,)"
    assert render_type(TupleType((INT, FLOAT))) == "(Int, Float)"


def test_custom_prefix():
    backend = RustBackend(generic_prefix="G")
    assert backend.render_type(Generic(5)) == "G5"


def test_unknown_type_kind():
    with pytest.raises(UnsupportedConstruct) as exc:
        render_type(Mystery())
    assert "Mystery" in str(exc.value)


def test_link_cycle_inside_type():
    a = Linked(INT)
    a.to = a
    with pytest.raises(MalformedLink):
        render_type(App("List", (a,)))
