"""Tests for generic collection, synthetic naming and ownership decisions."""

from rustemit.ir import (
    App,
    Arg,
    BOOL,
    FLOAT,
    Fn,
    Generic,
    INT,
    Linked,
    NIL,
    STRING,
    TupleType,
    Unbound,
    Var,
)
from rustemit.middleend.generics import GenericNames, collect_generics, type_names, type_var_ids
from rustemit.middleend.ownership import duplication, is_copy


def _args(*types):
    return [Arg("a" + str(i), t) for i, t in enumerate(types)]


# ============================================================
# collect_generics
# ============================================================


def test_shared_variable_collected_once():
    args = [Arg("a", Unbound(1)), Arg("b", Unbound(1)), Arg("c", Unbound(2))]
    assert collect_generics(args) == [1, 2]


def test_first_occurrence_order():
    args = _args(Generic(9), App("List", (Generic(4),)))
    assert collect_generics(args, Generic(1)) == [9, 4, 1]


def test_linked_variables_are_not_generic():
    args = _args(Linked(INT), Linked(Linked(Generic(5))))
    assert collect_generics(args) == [5]


def test_concrete_signature_has_no_generics():
    assert collect_generics(_args(INT), INT) == []


def test_function_and_tuple_types_are_scanned():
    typ = Fn((TupleType((Generic(2), INT)),), Unbound(3))
    assert type_var_ids(typ) == [2, 3]


def test_return_type_after_arguments():
    assert collect_generics(_args(Generic(2)), App("List", (Generic(1), Generic(2)))) == [2, 1]


def test_type_names():
    typ = Fn((App("gleam/option.Option", (INT,)),), App("T1"))
    assert type_names(typ) == {"Option", "Int", "T1"}


# ============================================================
# GenericNames
# ============================================================


def test_synthetic_name():
    names = GenericNames()
    assert names.name(3) == "T3"
    assert names.name(3) == "T3"


def test_collision_with_type_name():
    names = GenericNames(taken={"T1"})
    assert names.name(1) == "T1_1"


def test_collision_with_earlier_suffix():
    names = GenericNames(taken={"T1", "T1_1"})
    assert names.name(1) == "T1_2"


def test_bound_name_wins():
    names = GenericNames()
    names.bind(4, "a")
    assert names.name(4) == "a"
    assert names.is_declared(4)


def test_declared():
    names = GenericNames()
    names.declare([1, 2, 1])
    assert names.declared == [1, 2]
    assert names.is_declared(2)
    assert not names.is_declared(3)


def test_prefix():
    assert GenericNames(prefix="G").name(2) == "G2"


# ============================================================
# ownership
# ============================================================


def test_copy_types():
    assert is_copy(INT)
    assert is_copy(FLOAT)
    assert is_copy(BOOL)
    assert is_copy(NIL)
    assert is_copy(TupleType((INT, BOOL)))
    assert is_copy(Linked(INT))


def test_non_copy_types():
    assert not is_copy(STRING)
    assert not is_copy(App("List", (INT,)))
    assert not is_copy(TupleType((INT, STRING)))
    assert not is_copy(Generic(1))
    assert not is_copy(Fn((INT,), INT))


def test_duplication():
    assert duplication(Var("x", typ=INT)) == "copy"
    assert duplication(Var("s", typ=STRING)) == "clone"
    assert duplication(Var("s", typ=STRING, move=True)) == "move"
