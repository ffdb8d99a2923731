"""rustemit IR - typed module representation consumed by the Rust backend.

This module defines the complete IR the emitter accepts. Each node's
docstring documents its semantics and invariants.

Architecture:
    Source -> Parser -> Type checker -> [IR] -> Middleend (read-only) -> Backend -> Rust

The type checker produces the IR; nothing downstream mutates it. Middleend
helpers compute answers from it (resolution, generics, ownership) and the
backend turns it into text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(unsafe_hash=True)
class Loc:
    """Source location for error messages.

    Invariants:
    - line >= 1 for valid locations (0 indicates unknown)
    - col >= 0 (0-indexed within line)
    """

    line: int  # 1-indexed, 0 = unknown
    col: int  # 0-indexed

    def __str__(self) -> str:
        return str(self.line) + ":" + str(self.col)


def loc_unknown() -> Loc:
    """Factory for unknown source location."""
    return Loc(0, 0)


# ============================================================
# TYPES
#
# Types are produced by unification in the type checker. Type variables
# may still forward to other types (Linked); backends must call
# middleend.resolve.resolve() before inspecting a type.
# ============================================================


@dataclass(unsafe_hash=True)
class Type:
    """Base for all types. Abstract."""


@dataclass(unsafe_hash=True)
class App(Type):
    """Named type applied to zero or more type arguments.

    | IR                    | Rust                    |
    |-----------------------|-------------------------|
    | App("Int")            | Int                     |
    | App("List", (Int,))   | List<Int>               |
    | App("a/b.Opt", (T,))  | a::b::Opt<T>            |

    Invariants:
    - name is non-empty
    - args preserve declaration order
    """

    name: str
    args: tuple[Type, ...] = ()


@dataclass(unsafe_hash=True)
class TypeVar(Type):
    """Base for type variables. Abstract.

    A type variable is in exactly one of three states:
    - Linked: unified with another type; forwards to it
    - Generic: quantified in the enclosing declaration
    - Unbound: never constrained; rendered like Generic
    """


@dataclass(unsafe_hash=True)
class Linked(TypeVar):
    """Type variable resolved to another type by unification.

    Never rendered directly; resolution follows `to` until a non-Linked
    type is reached.

    Invariants:
    - following `to` terminates (the type checker never links a cycle)
    """

    to: Type


@dataclass(unsafe_hash=True)
class Generic(TypeVar):
    """Universally quantified type variable.

    Rendered as a synthetic type parameter of the enclosing declaration.
    """

    id: int


@dataclass(unsafe_hash=True)
class Unbound(TypeVar):
    """Type variable the type checker never constrained.

    The emitter triggers no further inference, so Unbound renders exactly
    like Generic with the same id.
    """

    id: int


@dataclass(unsafe_hash=True)
class Fn(Type):
    """Function type.

    | IR             | Rust                     |
    |----------------|--------------------------|
    | Fn((A, B), R)  | Rc<dyn Fn(A, B) -> R>    |
    """

    args: tuple[Type, ...]
    ret: Type


@dataclass(unsafe_hash=True)
class TupleType(Type):
    """Fixed-size heterogeneous sequence: (A, B, ...)."""

    elems: tuple[Type, ...]


# Prelude names with dedicated handling in the backend
INT = App("Int")
FLOAT = App("Float")
STRING = App("String")
BOOL = App("Bool")
NIL = App("Nil")


# ============================================================
# ARGUMENTS AND FIELDS
# ============================================================


@dataclass
class Arg:
    """Function argument.

    An argument without a name cannot be referenced and renders as `_`.
    """

    name: str | None
    typ: Type
    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class Field:
    """Constructor field.

    Unlabelled fields are addressed by position and render as `_<index>`.
    """

    label: str | None
    typ: Type
    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class Constructor:
    """Variant of a custom type.

    Invariants:
    - field labels are unique within the constructor
    - fields are in declaration order
    """

    name: str
    fields: list[Field] = field(default_factory=list)
    loc: Loc = field(default_factory=loc_unknown)


# ============================================================
# PATTERNS
#
# Patterns describe a match shape over an already-constructed value.
# They never own data.
# ============================================================


@dataclass(kw_only=True)
class Pattern:
    """Base for all patterns. Abstract."""

    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class PDiscard(Pattern):
    """Wildcard: matches anything, binds nothing.

    `name` keeps the source spelling (`_`, `_ignored`) for diagnostics only.
    """

    name: str = "_"


@dataclass
class PInt(Pattern):
    """Integer literal pattern. Value is the literal's source text."""

    value: str


@dataclass
class PFloat(Pattern):
    """Float literal pattern. Value is the literal's source text."""

    value: str


@dataclass
class PString(Pattern):
    """String literal pattern."""

    value: str


@dataclass
class PVar(Pattern):
    """Binds the matched value to `name` in the clause body."""

    name: str


@dataclass
class PAssign(Pattern):
    """Binds the whole matched value and destructures it: `p as name`."""

    name: str
    pattern: Pattern


@dataclass
class PTuple(Pattern):
    """Tuple destructure."""

    elems: list[Pattern]


@dataclass
class PatternField:
    """A (possibly labelled) argument of a constructor pattern."""

    label: str | None
    pattern: Pattern


@dataclass
class PConstructor(Pattern):
    """Constructor destructure: Ctor(label: pattern, ...).

    Semantics:
    - args keep the order written at the match site, which need not match
      the constructor's declared field order
    - with_spread: remaining fields are ignored (`..`)

    Invariants:
    - typ is the matched custom type when the type checker knows it
    """

    constructor: str
    args: list[PatternField] = field(default_factory=list)
    typ: Type | None = None
    with_spread: bool = False


# ============================================================
# EXPRESSIONS
#
# Every expression carries its (possibly still linked) type. Evaluation
# order is left to right over fields as written.
# ============================================================


@dataclass(kw_only=True)
class Expr:
    """Base for all expressions. Abstract.

    Invariants:
    - typ is the type inferred by the type checker
    """

    typ: Type
    loc: Loc = field(default_factory=loc_unknown)


# --- Literals ---


@dataclass
class Int(Expr):
    """Integer literal. Value is the literal's source text (`1_000`, `0xFF`)."""

    value: str


@dataclass
class Float(Expr):
    """Float literal. Value is the literal's source text."""

    value: str


@dataclass
class String(Expr):
    """String literal (unescaped contents)."""

    value: str


# --- Variables and access ---


VarKind = Literal["local", "module_fn", "constant"]


@dataclass
class Var(Expr):
    """Variable reference.

    | kind      | Meaning                         | Rust                 |
    |-----------|---------------------------------|----------------------|
    | local     | argument or let-bound variable  | x.clone() / x        |
    | module_fn | function defined in this module | f / Rc::new(f)       |
    | constant  | module constant                 | (*NAME).clone()      |

    Ownership annotation:
    - move: an ownership analysis proved this is the last use, so the value
      may be moved instead of duplicated
    """

    name: str
    kind: VarKind = "local"
    move: bool = False


@dataclass
class ModuleSelect(Expr):
    """Reference into another module: module.label.

    `module` is the slash-separated module path (`gleam/io`).
    """

    module: str
    label: str
    kind: VarKind = "module_fn"


@dataclass
class RecordAccess(Expr):
    """Field access on a custom type value: record.label.

    Invariants:
    - every constructor of record.typ has a field with this label
    - index is the field's position in the constructor
    """

    record: Expr
    label: str
    index: int = 0


@dataclass
class TupleIndex(Expr):
    """Tuple element access: tuple.N."""

    tuple: Expr
    index: int


# --- Composites ---


@dataclass
class Sequence(Expr):
    """Expressions evaluated in order; the last is the value.

    Invariants:
    - len(exprs) >= 1
    """

    exprs: list[Expr]


@dataclass
class CallArg:
    """Call argument with an optional label."""

    label: str | None
    value: Expr


@dataclass
class Call(Expr):
    """Function call.

    Semantics:
    - fun is either a function name in scope or an expression evaluating
      to a function
    - arguments evaluate left to right as written
    """

    fun: str | Expr
    args: list[CallArg] = field(default_factory=list)


@dataclass
class Pipe(Expr):
    """value |> fun: evaluate value, then fun, then apply fun to value."""

    value: Expr
    fun: Expr


BinOpKind = Literal[
    "and",
    "or",
    "eq",
    "not_eq",
    "lt_int",
    "lt_eq_int",
    "gt_int",
    "gt_eq_int",
    "lt_float",
    "lt_eq_float",
    "gt_float",
    "gt_eq_float",
    "add_int",
    "add_float",
    "sub_int",
    "sub_float",
    "mult_int",
    "mult_float",
    "div_int",
    "div_float",
    "mod_int",
    "concatenate",
]


@dataclass
class BinOp(Expr):
    """Binary operation: left op right.

    Operator semantics:
    - and, or: BOOL operands, short-circuit
    - eq, not_eq: structural equality
    - *_int / *_float: typed arithmetic and comparison
    - div_int, mod_int, div_float: division by zero yields zero
    - concatenate: STRING operands
    """

    op: BinOpKind
    left: Expr
    right: Expr


@dataclass
class Negate(Expr):
    """Unary negation: `-value` for numbers, `!value` for BOOL."""

    value: Expr


@dataclass
class FnExpr(Expr):
    """Anonymous function.

    Invariants:
    - typ is Fn(arg types, return type)
    """

    args: list[Arg]
    body: Expr
    return_type: Type | None = None


@dataclass
class ListExpr(Expr):
    """List literal [a, b, ..tail]."""

    elems: list[Expr]
    tail: Expr | None = None


@dataclass
class TupleExpr(Expr):
    """Tuple construction."""

    elems: list[Expr]


@dataclass
class ExprField:
    """A (possibly labelled) field value in a constructor expression."""

    label: str | None
    value: Expr


@dataclass
class Construct(Expr):
    """Build a value of a custom type.

    Semantics:
    - fields evaluate in the order given, which the emitter keeps even when
      it differs from the constructor's declared order

    Invariants:
    - typ is the constructed custom type
    """

    constructor: str
    fields: list[ExprField] = field(default_factory=list)


@dataclass
class RecordUpdate(Expr):
    """Copy of a record with some fields replaced: Ctor(..spread, a: x).

    Invariants:
    - spread.typ is the record's custom type
    - args name fields of `constructor`
    """

    spread: Expr
    constructor: str
    args: list[ExprField] = field(default_factory=list)


# --- Bindings and control flow ---


LetKind = Literal["let", "assert"]


@dataclass
class Let(Expr):
    """Pattern binding: let pattern = value.

    | kind   | Refutable pattern behavior      |
    |--------|---------------------------------|
    | let    | unreachable (checked upstream)  |
    | assert | panics on mismatch              |

    The bound names are in scope for the following expressions of the
    enclosing Sequence. The Let itself evaluates to `value`.
    """

    pattern: Pattern
    value: Expr
    kind: LetKind = "let"


@dataclass
class Try(Expr):
    """Early return: try pattern = value; then.

    Semantics:
    - value is a Result; an Error returns from the enclosing function
    - an Ok payload is bound to pattern and `then` is evaluated
    """

    value: Expr
    pattern: Pattern
    then: Expr


@dataclass
class Clause:
    """A case clause.

    Invariants:
    - len(patterns) == number of case subjects
    - every alternative has the same length as patterns
    """

    patterns: list[Pattern]
    then: Expr
    alternatives: list[list[Pattern]] = field(default_factory=list)
    guard: Expr | None = None
    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class Case(Expr):
    """Pattern match over one or more subjects.

    Semantics:
    - clauses are tried in order; the first match wins
    - exhaustiveness was verified by the type checker
    """

    subjects: list[Expr]
    clauses: list[Clause]


@dataclass
class Todo(Expr):
    """Placeholder for unimplemented code; crashes when evaluated."""

    message: str | None = None


@dataclass
class Panic(Expr):
    """Unreachable marker; crashes when evaluated."""

    message: str | None = None


# --- Bit strings ---


SegmentKind = Literal["int", "float", "utf8", "bits"]


@dataclass
class BitSegment:
    """One segment of a bit string literal.

    size is in units; the segment width in bits is size * unit. None means
    the kind's default (8 for int, 64 for float, whole value otherwise).
    """

    value: Expr
    kind: SegmentKind = "int"
    size: int | None = None
    unit: int = 1
    endianness: Literal["big", "little"] = "big"
    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class BitString(Expr):
    """Binary literal built from segments, evaluated left to right."""

    segments: list[BitSegment]


# ============================================================
# STATEMENTS (top-level declarations)
# ============================================================


@dataclass(kw_only=True)
class Statement:
    """Base for all top-level declarations. Abstract."""

    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class Function(Statement):
    """Function definition.

    Invariants:
    - argument names are unique
    - types of args and return_type may hold Generic/Unbound variables;
      these become the function's type parameters
    """

    name: str
    args: list[Arg]
    body: Expr
    return_type: Type
    public: bool = False
    doc: str | None = None


@dataclass
class CustomType(Statement):
    """Algebraic data type.

    | Source                          | Rust                         |
    |---------------------------------|------------------------------|
    | type Box(a) { Box(inner: a) }   | enum Box<a> { Box { inner: a } } |

    Invariants:
    - typed_parameters[i] is the type variable for parameters[i]
    - constructor names are unique
    """

    name: str
    constructors: list[Constructor]
    parameters: list[str] = field(default_factory=list)
    typed_parameters: list[Type] = field(default_factory=list)
    public: bool = False
    opaque: bool = False
    doc: str | None = None


@dataclass
class TypeAlias(Statement):
    """type Alias(a) = Type."""

    alias: str
    typ: Type
    parameters: list[str] = field(default_factory=list)
    typed_parameters: list[Type] = field(default_factory=list)
    public: bool = False


@dataclass
class ExternalFn(Statement):
    """Foreign function: signature only, implemented by module.fun."""

    name: str
    args: list[Arg]
    return_type: Type
    module: str
    fun: str
    public: bool = False


@dataclass
class ExternalType(Statement):
    """Foreign opaque type."""

    name: str
    parameters: list[str] = field(default_factory=list)
    public: bool = False


@dataclass
class UnqualifiedImport:
    """A name imported into scope: `name` or `name as as_name`."""

    name: str
    as_name: str | None = None


@dataclass
class Import(Statement):
    """import module/path [as name] [.{a, b as c}]."""

    module: str
    as_name: str | None = None
    unqualified: list[UnqualifiedImport] = field(default_factory=list)


@dataclass
class ModuleConstant(Statement):
    """Module-level constant.

    Invariants:
    - value is a constant expression
    - typ is value's type
    """

    name: str
    value: Expr
    typ: Type
    public: bool = False


@dataclass
class Module:
    """A complete emission unit.

    Invariants:
    - statements are in source declaration order
    """

    name: str
    statements: list[Statement] = field(default_factory=list)
    doc: str | None = None
