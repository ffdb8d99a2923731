"""Tests for whole-module emission."""

from dataclasses import dataclass

import pytest

from rustemit.backend.rust import RustBackend, emit_rust, render_module
from rustemit.errors import MalformedLink, UnsupportedConstruct
from rustemit.ir import (
    App,
    Arg,
    Call,
    CallArg,
    Construct,
    Constructor,
    CustomType,
    Expr,
    Field,
    Fn,
    Function,
    Generic,
    INT,
    Import,
    Int,
    Linked,
    Module,
    ModuleConstant,
    NIL,
    STRING,
    Sequence,
    String,
    Var,
)


@dataclass
class Mystery(Expr):
    pass


def _identity(name, var_id):
    t = Generic(var_id)
    return Function(name, [Arg("x", t)], Var("x", typ=t), t, public=True)


def test_statements_keep_their_order():
    stmts = [
        Import("gleam/io"),
        Function("b", [], Int("2", typ=INT), INT),
        Function("a", [], Int("1", typ=INT), INT),
    ]
    assert render_module(stmts) == (
        "use gleam::io;\n\nfn b() -> Int {\n    2\n}\n\nfn a() -> Int {\n    1\n}"
    )


def test_generic_names_reset_per_declaration():
    out = render_module([_identity("first", 1), _identity("second", 1)])
    assert "pub fn first<T1: Clone>(x: T1) -> T1 {" in out
    assert "pub fn second<T1: Clone>(x: T1) -> T1 {" in out


def test_collision_scoped_to_declaration():
    clash = Function(
        "uses_t1",
        [Arg("x", Generic(1)), Arg("y", App("T1"))],
        Var("x", typ=Generic(1)),
        Generic(1),
    )
    out = render_module([clash, _identity("plain", 1)])
    assert "fn uses_t1<T1_1: Clone>" in out
    assert "pub fn plain<T1: Clone>(x: T1) -> T1 {" in out


def test_generic_name_avoids_module_type_names():
    t1 = CustomType("T1", [Constructor("A")])
    body = Sequence([Construct("A", typ=App("T1")), Var("x", typ=Generic(1))], typ=Generic(1))
    fn = Function("f", [Arg("x", Generic(1))], body, Generic(1), public=True)
    out = render_module([t1, fn])
    assert "pub fn f<T1_1: Clone>(x: T1_1) -> T1_1 {\n    T1::A;\n    x.clone()\n}" in out


def test_backend_forgets_previous_module():
    backend = RustBackend()
    backend.render_module([CustomType("Wrap", [Constructor("Wrap", [Field("value", INT)])])])
    call = Call("Wrap", [CallArg(None, Int("1", typ=INT))], typ=App("Wrap"))
    out = backend.render_module([Function("make", [], call, App("Wrap"))])
    assert out == "fn make() -> Wrap {\n    Wrap(1)\n}"


def test_function_inside_another_module_type_derives_clone_only():
    handler = CustomType("Handler", [Constructor("Handler", [Field("run", Fn((INT,), NIL))])])
    router = CustomType(
        "Router",
        [Constructor("Router", [Field("handlers", App("List", (App("Handler"),)))])],
    )
    out = render_module([router, handler])
    assert "#[derive(Clone)]\nenum Router {" in out
    assert "#[derive(Clone)]\nenum Handler {" in out


def test_uses_are_collected_and_sorted():
    const = ModuleConstant("NAME", String("app", typ=STRING), STRING)
    fn = Function(
        "get",
        [],
        Var("inc", kind="module_fn", typ=Fn((INT,), INT)),
        Fn((INT,), INT),
    )
    out = render_module([fn, const])
    assert out.startswith("use std::rc::Rc;\nuse std::sync::LazyLock;\n\nfn get()")


def test_calls_resolve_against_later_declarations():
    caller = Function(
        "main",
        [],
        Call("sub", [CallArg("b", Int("1", typ=INT)), CallArg("a", Int("5", typ=INT))], typ=INT),
        INT,
    )
    callee = Function(
        "sub",
        [Arg("a", INT), Arg("b", INT)],
        Int("0", typ=INT),
        INT,
    )
    out = render_module([caller, callee])
    assert "sub(__arg1, __arg0)" in out


def test_emit_rust_layout():
    module = Module(
        "app",
        [
            ModuleConstant("LIMIT", Int("10", typ=INT), INT, public=True),
            Function("limit", [], Var("LIMIT", kind="constant", typ=INT), INT, public=True),
        ],
        doc="Limits.",
    )
    assert emit_rust(module) == (
        "//! Limits.\n"
        "\n"
        "use std::sync::LazyLock;\n"
        "\n"
        "pub static LIMIT: LazyLock<Int> = LazyLock::new(|| 10);\n"
        "\n"
        "pub fn limit() -> Int {\n"
        "    *LIMIT\n"
        "}\n"
    )


def test_emit_rust_prelude():
    module = Module("app", [Function("one", [], Int("1", typ=INT), INT)])
    out = emit_rust(module, prelude=True)
    assert out.startswith("pub type Int = i64;\npub type Float = f64;\n")
    assert "pub type BitString = Vec<u8>;\n\nfn one() -> Int {" in out


def test_emit_rust_generic_prefix():
    out = emit_rust(Module("app", [_identity("id", 2)]), generic_prefix="G")
    assert "pub fn id<G2: Clone>(x: G2) -> G2 {" in out


def test_empty_module():
    assert emit_rust(Module("empty")) == "\n"


def test_custom_type_and_function_together():
    point = CustomType("Point", [Constructor("Point", [Field("x", INT), Field("y", INT)])], public=True)
    make = Function(
        "origin",
        [],
        Call("Point", [CallArg(None, Int("0", typ=INT)), CallArg(None, Int("0", typ=INT))], typ=App("Point")),
        App("Point"),
        public=True,
    )
    out = render_module([point, make])
    assert "pub fn origin() -> Point {\n    Point::Point { x: 0, y: 0 }\n}" in out


def test_unsupported_construct_aborts_module():
    good = Function("good", [], Int("1", typ=INT), INT)
    bad = Function("bad", [], Mystery(typ=INT), INT)
    with pytest.raises(UnsupportedConstruct) as exc:
        emit_rust(Module("app", [good, bad]))
    assert exc.value.declaration == "bad"


def test_malformed_link_aborts_module():
    loop = Linked(INT)
    loop.to = loop
    fn = Function("spin", [Arg("x", loop)], Int("1", typ=INT), INT)
    with pytest.raises(MalformedLink) as exc:
        render_module([fn])
    assert exc.value.declaration == "spin"
