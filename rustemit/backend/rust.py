"""RustBackend: IR -> Rust code.

Renders types, patterns, expressions and top-level declarations of a
type-checked module. Every IR node has a rendering rule; a node class the
backend does not know raises UnsupportedConstruct so gaps are never
emitted as wrong code.
"""

from __future__ import annotations

import re
from typing import Sequence

from ..errors import EmitError, UnsupportedConstruct
from ..ir import (
    App,
    Arg,
    BinOp,
    BitSegment,
    BitString,
    Call,
    CallArg,
    Case,
    Clause,
    Construct,
    Constructor,
    CustomType,
    Expr,
    ExprField,
    ExternalFn,
    ExternalType,
    Field,
    Float,
    Fn,
    FnExpr,
    Function,
    Generic,
    Import,
    Int,
    Let,
    ListExpr,
    Module,
    ModuleConstant,
    ModuleSelect,
    Negate,
    Panic,
    PAssign,
    Pattern,
    PConstructor,
    PDiscard,
    PFloat,
    PInt,
    Pipe,
    PString,
    PTuple,
    PVar,
    RecordAccess,
    RecordUpdate,
    Sequence as SequenceExpr,
    Statement,
    String,
    Todo,
    Try,
    TupleExpr,
    TupleIndex,
    TupleType,
    Type,
    TypeAlias,
    Unbound,
    Var,
)
from ..middleend.captures import captured_locals, pattern_names
from ..middleend.generics import GenericNames, collect_generics, type_names, type_var_ids
from ..middleend.ownership import duplication, is_copy
from ..middleend.resolve import resolve
from .util import Emitter, block, escape_string, module_path, safe_name

RC = "std::rc::Rc"
LAZY_LOCK = "std::sync::LazyLock"

PRELUDE: list[str] = [
    "pub type Int = i64;",
    "pub type Float = f64;",
    "pub type Bool = bool;",
    "pub type Nil = ();",
    "pub type List<T> = Vec<T>;",
    "pub type BitString = Vec<u8>;",
]

# Operators whose Rust symbol has the same meaning for the operand types
_BINOP_SYMBOLS: dict[str, str] = {
    "and": "&&",
    "or": "||",
    "eq": "==",
    "not_eq": "!=",
    "lt_int": "<",
    "lt_eq_int": "<=",
    "gt_int": ">",
    "gt_eq_int": ">=",
    "lt_float": "<",
    "lt_eq_float": "<=",
    "gt_float": ">",
    "gt_eq_float": ">=",
    "add_int": "+",
    "add_float": "+",
    "sub_int": "-",
    "sub_float": "-",
    "mult_int": "*",
    "mult_float": "*",
}

# Prelude types whose constructors are Rust built-ins
_PRELUDE_TYPES = frozenset({"Bool", "Nil", "Result"})
_PRELUDE_VALUES: dict[str, str] = {"True": "true", "False": "false", "Nil": "()"}
_PRELUDE_WRAPPERS: dict[str, str] = {"Ok": "Ok", "Error": "Err"}

_SIMPLE_OPERAND = re.compile(r"[\w:]+(\(.*\))?(\.\w+(\(.*\))?)*", re.S)


def _postfix_operand(text: str) -> str:
    """Parenthesize text unless it can take a postfix operator (`?`, `.x`) as is."""
    if _SIMPLE_OPERAND.fullmatch(text):
        return text
    return "(" + text + ")"


def _float_literal(value: str) -> str:
    if value.endswith("."):
        return value + "0"
    return value


def _format_message(message: str) -> str:
    """Escape text for the format string of panic!/todo!/unreachable!."""
    return escape_string(message).replace("{", "{{").replace("}", "}}")


def _field_name(label: str | None, index: int) -> str:
    """Rust field name for a constructor field; unlabelled fields go by position."""
    if label is None:
        return "_" + str(index)
    return safe_name(label)


def _declared_field(ctor: Constructor, label: str | None, index: int) -> Field | None:
    """The constructor field a labelled or positional argument refers to."""
    if label is not None:
        for fld in ctor.fields:
            if fld.label == label:
                return fld
        return None
    if index < len(ctor.fields):
        return ctor.fields[index]
    return None


def _statement_name(stmt: Statement) -> str:
    if isinstance(stmt, TypeAlias):
        return stmt.alias
    if isinstance(stmt, Import):
        return stmt.module
    return getattr(stmt, "name", type(stmt).__name__)


class RustBackend(Emitter):
    """Emit Rust code from IR."""

    def __init__(self, prelude: bool = False, generic_prefix: str = "T") -> None:
        super().__init__()
        self.prelude = prelude
        self.generic_prefix = generic_prefix
        self._signatures: dict[str, list[str | None]] = {}
        self._types: dict[str, CustomType] = {}
        self._constructors: dict[str, tuple[CustomType, Constructor]] = {}
        self._aliases: dict[str, TypeAlias] = {}
        self._type_idents: set[str] = set()
        self._names = GenericNames(prefix=generic_prefix)
        self._uses: set[str] = set()
        # Filled while rendering a pattern: statements that unwrap Rc fields
        # at the start of the arm, and match guards for nested Rc patterns
        self._pattern_lets: list[str] = []
        self._pattern_guards: list[str] = []
        self._in_guard = False
        self._box_count = 0

    def emit(self, module: Module) -> str:
        """Render a whole module, including its doc, imports and prelude."""
        uses, parts = self._render_parts(module.statements)
        head: list[str] = []
        if module.doc:
            head.append("\n".join("//!" + _doc_text(ln) for ln in module.doc.split("\n")))
        if uses:
            head.append(uses)
        if self.prelude:
            head.append("\n".join(PRELUDE))
        return "\n\n".join(head + parts) + "\n"

    def render_module(self, statements: Sequence[Statement]) -> str:
        """Render statements in order, separated by blank lines."""
        uses, parts = self._render_parts(statements)
        if uses:
            parts = [uses] + parts
        return "\n\n".join(parts)

    def _render_parts(self, statements: Sequence[Statement]) -> tuple[str, list[str]]:
        self._uses = set()
        self._signatures = {}
        self._types = {}
        self._constructors = {}
        self._aliases = {}
        self._type_idents = set()
        self.index(statements)
        parts = [self.render_statement(stmt) for stmt in statements]
        uses = "\n".join("use " + u + ";" for u in sorted(self._uses))
        return uses, parts

    def index(self, statements: Sequence[Statement]) -> None:
        """Record signatures, types and type-level names of the module."""
        for stmt in statements:
            if isinstance(stmt, (Function, ExternalFn)):
                self._signatures[stmt.name] = [a.name for a in stmt.args]
            elif isinstance(stmt, CustomType):
                self._types[stmt.name] = stmt
                self._type_idents.add(stmt.name)
                for ctor in stmt.constructors:
                    self._constructors[ctor.name] = (stmt, ctor)
            elif isinstance(stmt, TypeAlias):
                self._aliases[stmt.alias] = stmt
                self._type_idents.add(stmt.alias)
            elif isinstance(stmt, ExternalType):
                self._type_idents.add(stmt.name)
            elif isinstance(stmt, Import):
                for item in stmt.unqualified:
                    self._type_idents.add(item.as_name or item.name)

    # ── helpers ──────────────────────────────────────────────

    def _scope(self, name: str, *types: Type, extra: Sequence[str] = ()) -> None:
        """Start a fresh generics scope for the declaration `name`."""
        taken = type_names(*types) | {name} | set(extra) | self._type_idents
        self._names = GenericNames(taken, self.generic_prefix)
        self._box_count = 0

    def _nameable(self, typ: Type) -> bool:
        """True if every type variable in typ is a parameter of the declaration."""
        return all(self._names.is_declared(i) for i in type_var_ids(typ))

    def _generic_clause(self, var_ids: Sequence[int], bound: str = "") -> str:
        if not var_ids:
            return ""
        suffix = ": " + bound if bound else ""
        return "<" + ", ".join(self._names.name(i) + suffix for i in var_ids) + ">"

    def _constructor_info(self, name: str, typ: Type | None) -> tuple[CustomType, Constructor] | None:
        if typ is not None:
            resolved = resolve(typ)
            if isinstance(resolved, App) and resolved.name in self._types:
                custom = self._types[resolved.name]
                for ctor in custom.constructors:
                    if ctor.name == name:
                        return (custom, ctor)
                return None
        return self._constructors.get(name)

    def _constructor_path(self, name: str, typ: Type | None) -> str:
        resolved = resolve(typ) if typ is not None else None
        if isinstance(resolved, App):
            return self._type_name(resolved.name) + "::" + safe_name(name)
        info = self._constructors.get(name)
        if info is not None:
            return safe_name(info[0].name) + "::" + safe_name(name)
        return safe_name(name)

    def _is_prelude_constructor(self, name: str, typ: Type | None) -> bool:
        if name not in _PRELUDE_VALUES and name not in _PRELUDE_WRAPPERS:
            return False
        resolved = resolve(typ) if typ is not None else None
        if isinstance(resolved, App):
            return resolved.name in _PRELUDE_TYPES
        return name not in self._constructors

    def _boxed(self, custom: CustomType, fld: Field) -> bool:
        """True if the field is stored as Rc<T> to break a recursive type."""
        return self._mentions(fld.typ, custom.name, set())

    def _mentions(self, typ: Type, name: str, seen: set[str]) -> bool:
        """True if typ contains `name` by value (not behind a List or Fn)."""
        typ = resolve(typ)
        if isinstance(typ, TupleType):
            return any(self._mentions(e, name, seen) for e in typ.elems)
        if not isinstance(typ, App):
            return False
        if typ.name == name:
            return True
        if typ.name == "List":
            return False
        if any(self._mentions(a, name, seen) for a in typ.args):
            return True
        if typ.name in seen:
            return False
        seen.add(typ.name)
        if typ.name in self._aliases:
            return self._mentions(self._aliases[typ.name].typ, name, seen)
        custom = self._types.get(typ.name)
        if custom is None:
            return False
        return any(self._mentions(f.typ, name, seen) for c in custom.constructors for f in c.fields)

    def _holds_fn(self, typ: Type, seen: set[str]) -> bool:
        """True if values of typ contain a function, looking through module types."""
        typ = resolve(typ)
        if isinstance(typ, Fn):
            return True
        if isinstance(typ, TupleType):
            return any(self._holds_fn(e, seen) for e in typ.elems)
        if not isinstance(typ, App):
            return False
        if any(self._holds_fn(a, seen) for a in typ.args):
            return True
        if typ.name in seen:
            return False
        seen.add(typ.name)
        if typ.name in self._aliases:
            return self._holds_fn(self._aliases[typ.name].typ, seen)
        custom = self._types.get(typ.name)
        if custom is None:
            return False
        return any(self._holds_fn(f.typ, seen) for c in custom.constructors for f in c.fields)

    # ── types ────────────────────────────────────────────────

    def render_type(self, typ: Type) -> str:
        typ = resolve(typ)
        if isinstance(typ, App):
            name = self._type_name(typ.name)
            if not typ.args:
                return name
            return name + "<" + ", ".join(self.render_type(a) for a in typ.args) + ">"
        if isinstance(typ, (Generic, Unbound)):
            return self._names.name(typ.id)
        if isinstance(typ, Fn):
            self._uses.add(RC)
            params = ", ".join(self.render_type(a) for a in typ.args)
            return f"Rc<dyn Fn({params}) -> {self.render_type(typ.ret)}>"
        if isinstance(typ, TupleType):
            elems = [self.render_type(e) for e in typ.elems]
            if len(elems) == 1:
                return f"({elems[0]},)"
            return "(" + ", ".join(elems) + ")"
        raise UnsupportedConstruct("type kind '" + type(typ).__name__ + "'")

    def _type_name(self, name: str) -> str:
        if "." in name:
            module, base = name.rsplit(".", 1)
            return module_path(module) + "::" + base
        return name

    # ── patterns ─────────────────────────────────────────────

    def render_pattern(self, p: Pattern) -> str:
        if isinstance(p, PDiscard):
            return "_"
        if isinstance(p, PInt):
            return p.value + "i64"
        if isinstance(p, PFloat):
            return _float_literal(p.value) + "f64"
        if isinstance(p, PString):
            return f'"{escape_string(p.value)}"'
        if isinstance(p, PVar):
            return safe_name(p.name)
        if isinstance(p, PAssign):
            return f"{safe_name(p.name)} @ {self.render_pattern(p.pattern)}"
        if isinstance(p, PTuple):
            elems = [self.render_pattern(e) for e in p.elems]
            if len(elems) == 1:
                return f"({elems[0]},)"
            return "(" + ", ".join(elems) + ")"
        if isinstance(p, PConstructor):
            return self._pattern_constructor(p)
        raise UnsupportedConstruct("pattern kind '" + type(p).__name__ + "'", p.loc)

    def _pattern_constructor(self, p: PConstructor) -> str:
        if self._is_prelude_constructor(p.constructor, p.typ):
            if p.constructor in _PRELUDE_VALUES:
                return _PRELUDE_VALUES[p.constructor]
            inner = ", ".join(self.render_pattern(a.pattern) for a in p.args)
            return f"{_PRELUDE_WRAPPERS[p.constructor]}({inner})"
        path = self._constructor_path(p.constructor, p.typ)
        info = self._constructor_info(p.constructor, p.typ)
        fields: list[str] = []
        for i, a in enumerate(p.args):
            declared = _declared_field(info[1], a.label, i) if info is not None else None
            label = a.label
            if label is None and declared is not None:
                label = declared.label
            if declared is not None and self._boxed(info[0], declared):
                sub = self._boxed_pattern(a.pattern)
            else:
                sub = self.render_pattern(a.pattern)
            fields.append(f"{_field_name(label, i)}: {sub}")
        if p.with_spread:
            fields.append("..")
        if not fields:
            return path
        return path + " { " + ", ".join(fields) + " }"

    def _boxed_pattern(self, p: Pattern) -> str:
        """Pattern for a field held as Rc<T>.

        Rust cannot match through an Rc, so a variable binds the Rc itself and
        is unwrapped by a `let` at the start of the arm. A nested pattern that
        binds nothing becomes a `matches!` guard on a temporary.
        """
        if isinstance(p, PDiscard):
            return "_"
        names = pattern_names(p)
        if self._in_guard:
            if not names and self._irrefutable(p):
                return "_"
            raise UnsupportedConstruct("pattern", p.loc, "nested pattern on a recursive field")
        if isinstance(p, PVar) or (isinstance(p, PAssign) and not pattern_names(p.pattern)):
            name = safe_name(p.name)
            if isinstance(p, PAssign):
                self._refine(name, p.pattern)
            self._pattern_lets.append(f"let {name} = (*{name}).clone();")
            return name
        if names:
            raise UnsupportedConstruct("pattern", p.loc, "variable bound inside a recursive field")
        name = f"__box{self._box_count}"
        self._box_count += 1
        self._refine(name, p)
        return name

    def _refine(self, name: str, p: Pattern) -> None:
        if self._irrefutable(p):
            return
        self._in_guard = True
        try:
            pattern = self.render_pattern(p)
        finally:
            self._in_guard = False
        self._pattern_guards.append(f"matches!(*{name}, {pattern})")

    def _bind_pattern(self, p: Pattern) -> tuple[str, list[str], list[str]]:
        """Render p; returns the pattern, its unwrapping lets and its guards."""
        saved = (self._pattern_lets, self._pattern_guards)
        self._pattern_lets, self._pattern_guards = [], []
        try:
            return self.render_pattern(p), self._pattern_lets, self._pattern_guards
        finally:
            self._pattern_lets, self._pattern_guards = saved

    def _irrefutable(self, p: Pattern) -> bool:
        if isinstance(p, (PDiscard, PVar)):
            return True
        if isinstance(p, PAssign):
            return self._irrefutable(p.pattern)
        if isinstance(p, PTuple):
            return all(self._irrefutable(e) for e in p.elems)
        if isinstance(p, PConstructor):
            if self._is_prelude_constructor(p.constructor, p.typ):
                return p.constructor == "Nil"
            info = self._constructor_info(p.constructor, p.typ)
            if info is None or len(info[0].constructors) != 1:
                return False
            return all(self._irrefutable(a.pattern) for a in p.args)
        return False

    # ── expressions ──────────────────────────────────────────

    def render_expression(self, expr: Expr) -> str:
        if isinstance(expr, Int):
            return expr.value
        if isinstance(expr, Float):
            return _float_literal(expr.value)
        if isinstance(expr, String):
            return f'String::from("{escape_string(expr.value)}")'
        if isinstance(expr, Var):
            return self._emit_Var(expr)
        if isinstance(expr, ModuleSelect):
            return self._emit_ModuleSelect(expr)
        if isinstance(expr, SequenceExpr):
            return block(self._stmts(expr))
        if isinstance(expr, Let):
            return block(self._emit_Let(expr, tail=True))
        if isinstance(expr, Try):
            return block(self._emit_Try(expr))
        if isinstance(expr, Call):
            return self._emit_Call(expr)
        if isinstance(expr, Pipe):
            return self._emit_Pipe(expr)
        if isinstance(expr, BinOp):
            return self._emit_BinOp(expr)
        if isinstance(expr, Negate):
            return self._emit_Negate(expr)
        if isinstance(expr, FnExpr):
            return self._emit_FnExpr(expr)
        if isinstance(expr, ListExpr):
            return self._emit_ListExpr(expr)
        if isinstance(expr, TupleExpr):
            return self._emit_TupleExpr(expr)
        if isinstance(expr, TupleIndex):
            return f"{_postfix_operand(self.render_expression(expr.tuple))}.{expr.index}"
        if isinstance(expr, RecordAccess):
            record = _postfix_operand(self.render_expression(expr.record))
            return f"{record}.{safe_name(expr.label)}()"
        if isinstance(expr, Construct):
            return self._emit_Construct(expr.constructor, expr.fields, expr.typ)
        if isinstance(expr, RecordUpdate):
            return self._emit_RecordUpdate(expr)
        if isinstance(expr, Case):
            return self._emit_Case(expr)
        if isinstance(expr, BitString):
            return self._emit_BitString(expr)
        if isinstance(expr, Todo):
            if expr.message is None:
                return "todo!()"
            return f'todo!("{_format_message(expr.message)}")'
        if isinstance(expr, Panic):
            if expr.message is None:
                return "panic!()"
            return f'panic!("{_format_message(expr.message)}")'
        raise UnsupportedConstruct("expression kind '" + type(expr).__name__ + "'", expr.loc)

    def _block(self, expr: Expr) -> str:
        return block(self._stmts(expr))

    def _stmts(self, expr: Expr) -> list[str]:
        """Statement lines of a block whose value is expr."""
        if isinstance(expr, SequenceExpr):
            if not expr.exprs:
                return ["()"]
            out: list[str] = []
            for sub in expr.exprs[:-1]:
                out.extend(self._effect(sub))
            out.extend(self._stmts(expr.exprs[-1]))
            return out
        if isinstance(expr, Let):
            return self._emit_Let(expr, tail=True)
        if isinstance(expr, Try):
            return self._emit_Try(expr)
        return [self.render_expression(expr)]

    def _effect(self, expr: Expr) -> list[str]:
        """Statement lines for an expression evaluated only for its effect."""
        if isinstance(expr, Let):
            return self._emit_Let(expr, tail=False)
        return [self.render_expression(expr) + ";"]

    def _emit_Var(self, expr: Var) -> str:
        name = safe_name(expr.name)
        if expr.kind == "module_fn":
            self._uses.add(RC)
            return f"Rc::new({name})"
        if expr.kind == "constant":
            if is_copy(expr.typ):
                return f"*{name}"
            return f"(*{name}).clone()"
        if duplication(expr) == "clone":
            return f"{name}.clone()"
        return name

    def _emit_ModuleSelect(self, expr: ModuleSelect) -> str:
        path = module_path(expr.module) + "::" + safe_name(expr.label)
        if expr.kind == "constant":
            if is_copy(expr.typ):
                return f"*{path}"
            return f"(*{path}).clone()"
        self._uses.add(RC)
        return f"Rc::new({path})"

    def _callee(self, fun: str | Expr) -> str:
        if isinstance(fun, str):
            return safe_name(fun)
        if isinstance(fun, Var) and fun.kind != "constant":
            return safe_name(fun.name)
        if isinstance(fun, ModuleSelect) and fun.kind != "constant":
            return module_path(fun.module) + "::" + safe_name(fun.label)
        return "(" + self.render_expression(fun) + ")"

    def _callee_params(self, fun: str | Expr) -> list[str | None] | None:
        if isinstance(fun, str):
            return self._signatures.get(fun)
        if isinstance(fun, Var) and fun.kind == "module_fn":
            return self._signatures.get(fun.name)
        return None

    def _positional_order(self, fun: str | Expr, args: list[CallArg]) -> list[int]:
        """Indices of args in the callee's declared parameter order."""
        identity = list(range(len(args)))
        if all(a.label is None for a in args):
            return identity
        params = self._callee_params(fun)
        if params is None or len(params) != len(args):
            return identity
        slots: list[int | None] = [None] * len(params)
        for i, arg in enumerate(args):
            if arg.label is None:
                continue
            if arg.label not in params or slots[params.index(arg.label)] is not None:
                return identity
            slots[params.index(arg.label)] = i
        unlabelled = [i for i, a in enumerate(args) if a.label is None]
        order: list[int] = []
        for slot in slots:
            if slot is None:
                slot = unlabelled.pop(0)
            order.append(slot)
        return order

    def _emit_Call(self, expr: Call) -> str:
        fun = expr.fun
        ctor_name = fun if isinstance(fun, str) else fun.name if isinstance(fun, Var) else None
        if ctor_name is not None and ctor_name in self._constructors:
            fields = [ExprField(a.label, a.value) for a in expr.args]
            return self._emit_Construct(ctor_name, fields, expr.typ)
        order = self._positional_order(fun, expr.args)
        values = [self.render_expression(a.value) for a in expr.args]
        if order == list(range(len(values))):
            return self._callee(fun) + "(" + ", ".join(values) + ")"
        # Reordered: evaluate in source order first, then pass by position
        lines: list[str] = []
        callee = self._callee(fun)
        if not isinstance(fun, (str, Var, ModuleSelect)):
            lines.append(f"let __fun = {callee};")
            callee = "__fun"
        for i, value in enumerate(values):
            lines.append(f"let __arg{i} = {value};")
        lines.append(callee + "(" + ", ".join(f"__arg{i}" for i in order) + ")")
        return block(lines)

    def _emit_Pipe(self, expr: Pipe) -> str:
        value = self.render_expression(expr.value)
        return block([f"let __pipe = {value};", self._callee(expr.fun) + "(__pipe)"])

    def _emit_BinOp(self, expr: BinOp) -> str:
        left = self.render_expression(expr.left)
        right = self.render_expression(expr.right)
        op = expr.op
        if op in _BINOP_SYMBOLS:
            return f"({left} {_BINOP_SYMBOLS[op]} {right})"
        if op == "div_int":
            return f"(Int::checked_div({left}, {right}).unwrap_or(0))"
        if op == "mod_int":
            return f"(Int::checked_rem({left}, {right}).unwrap_or(0))"
        if op == "div_float":
            return (
                f"({{ let (__l, __r) = ({left}, {right}); "
                f"if __r == 0.0 {{ 0.0 }} else {{ __l / __r }} }})"
            )
        if op == "concatenate":
            return f'format!("{{}}{{}}", {left}, {right})'
        raise UnsupportedConstruct("binary operator '" + op + "'", expr.loc)

    def _emit_Negate(self, expr: Negate) -> str:
        value = self.render_expression(expr.value)
        resolved = resolve(expr.value.typ)
        if isinstance(resolved, App) and resolved.name == "Bool":
            return f"(!{value})"
        return f"(-{value})"

    def _emit_FnExpr(self, expr: FnExpr) -> str:
        self._uses.add(RC)
        params: list[str] = []
        for arg in expr.args:
            name = safe_name(arg.name) if arg.name else "_"
            if self._nameable(arg.typ):
                params.append(f"{name}: {self.render_type(arg.typ)}")
            else:
                params.append(name)
        ret = ""
        if expr.return_type is not None and self._nameable(expr.return_type):
            ret = " -> " + self.render_type(expr.return_type)
        body = self._block(expr.body)
        closure = f"Rc::new(move |{', '.join(params)}|{ret} {body})"
        # The closure owns clones of captured locals; the originals stay usable
        copies = [
            f"let {safe_name(v.name)} = {safe_name(v.name)}.clone();"
            for v in captured_locals(expr)
            if not is_copy(v.typ)
        ]
        if not copies:
            return closure
        return block(copies + [closure])

    def _emit_ListExpr(self, expr: ListExpr) -> str:
        elems = "vec![" + ", ".join(self.render_expression(e) for e in expr.elems) + "]"
        if expr.tail is None:
            return elems
        tail = self.render_expression(expr.tail)
        if not expr.elems:
            return tail
        return f"[{elems}, {tail}].concat()"

    def _emit_TupleExpr(self, expr: TupleExpr) -> str:
        elems = [self.render_expression(e) for e in expr.elems]
        if len(elems) == 1:
            return f"({elems[0]},)"
        return "(" + ", ".join(elems) + ")"

    def _emit_Construct(self, name: str, fields: list[ExprField], typ: Type) -> str:
        if self._is_prelude_constructor(name, typ):
            if name in _PRELUDE_VALUES:
                return _PRELUDE_VALUES[name]
            inner = ", ".join(self.render_expression(f.value) for f in fields)
            return f"{_PRELUDE_WRAPPERS[name]}({inner})"
        path = self._constructor_path(name, typ)
        if not fields:
            return path
        info = self._constructor_info(name, typ)
        parts: list[str] = []
        for i, fld in enumerate(fields):
            declared = _declared_field(info[1], fld.label, i) if info is not None else None
            label = fld.label
            if label is None and declared is not None:
                label = declared.label
            value = self.render_expression(fld.value)
            if declared is not None and self._boxed(info[0], declared):
                self._uses.add(RC)
                value = f"Rc::new({value})"
            parts.append(f"{_field_name(label, i)}: {value}")
        return path + " { " + ", ".join(parts) + " }"

    def _emit_RecordUpdate(self, expr: RecordUpdate) -> str:
        info = self._constructor_info(expr.constructor, expr.spread.typ)
        if info is None:
            raise UnsupportedConstruct(
                "record update",
                expr.loc,
                "constructor '" + expr.constructor + "' is not declared in this module",
            )
        custom, ctor = info
        path = self._constructor_path(ctor.name, expr.spread.typ)
        overrides: list[str] = []
        for fld in expr.args:
            if fld.label is None:
                raise UnsupportedConstruct("record update", expr.loc, "unlabelled field")
            overrides.append(fld.label)
        pattern: list[str] = []
        kept: list[str] = []
        for i, fld in enumerate(ctor.fields):
            name = _field_name(fld.label, i)
            if fld.label in overrides:
                pattern.append(f"{name}: _")
            else:
                pattern.append(f"{name}: __update_{i}")
                kept.append(f"{name}: __update_{i}")
        for fld in expr.args:
            value = self.render_expression(fld.value)
            declared = _declared_field(ctor, fld.label, 0)
            if declared is not None and self._boxed(custom, declared):
                self._uses.add(RC)
                value = f"Rc::new({value})"
            kept.append(f"{safe_name(fld.label)}: {value}")
        subject = self.render_expression(expr.spread)
        arms = [
            path + " { " + ", ".join(pattern) + " } => " + path + " { " + ", ".join(kept) + " },"
        ]
        if len(custom.constructors) > 1:
            arms.append("_ => unreachable!(),")
        return "match " + _postfix_operand(subject) + " " + block(arms)

    def _emit_Let(self, expr: Let, tail: bool) -> list[str]:
        value = self.render_expression(expr.value)
        if not tail:
            return self._binding(expr.pattern, value, expr.kind)
        if isinstance(expr.pattern, PVar) and expr.kind == "let":
            name = safe_name(expr.pattern.name)
            return [f"let {name} = {value};", name]
        if isinstance(expr.pattern, PDiscard) and expr.kind == "let":
            return [value]
        return (
            [f"let __value = {value};"]
            + self._binding(expr.pattern, "__value.clone()", expr.kind)
            + ["__value"]
        )

    def _binding(self, p: Pattern, value: str, kind: str) -> list[str]:
        pattern, lets, guards = self._bind_pattern(p)
        if guards:
            raise UnsupportedConstruct("let pattern", p.loc, "refutable pattern on a recursive field")
        if self._irrefutable(p):
            head = f"let {pattern} = {value};"
        elif kind == "assert":
            head = f'let {pattern} = {value} else {{ panic!("Assertion pattern match failed") }};'
        else:
            head = f'let {pattern} = {value} else {{ unreachable!("let pattern did not match") }};'
        return [head] + list(dict.fromkeys(lets))

    def _emit_Try(self, expr: Try) -> list[str]:
        value = _postfix_operand(self.render_expression(expr.value)) + "?"
        return self._binding(expr.pattern, value, "let") + self._stmts(expr.then)

    def _emit_Case(self, expr: Case) -> str:
        subjects = [self.render_expression(s) for s in expr.subjects]
        strings: set[int] = set()
        for col in range(len(subjects)):
            if self._string_column(expr.clauses, col):
                strings.add(col)
                subjects[col] = _postfix_operand(subjects[col]) + ".as_str()"
        if len(subjects) == 1:
            subject = _postfix_operand(subjects[0])
        else:
            subject = "(" + ", ".join(subjects) + ")"
        arms = [self._emit_Clause(clause, len(subjects), strings) for clause in expr.clauses]
        return "match " + subject + " " + block(arms)

    def _string_column(self, clauses: list[Clause], col: int) -> bool:
        for clause in clauses:
            for patterns in [clause.patterns] + clause.alternatives:
                if col < len(patterns) and isinstance(patterns[col], PString):
                    return True
        return False

    def _emit_Clause(self, clause: Clause, arity: int, strings: set[int]) -> str:
        alternatives: list[str] = []
        lets: list[str] = []
        guards: list[str] = []
        for patterns in [clause.patterns] + clause.alternatives:
            rendered: list[str] = []
            for col, p in enumerate(patterns):
                text, p_lets, p_guards = self._bind_pattern(p)
                rendered.append(text)
                lets.extend(p_lets)
                guards.extend(p_guards)
                # Matched through .as_str(): the binding is a &str
                if col in strings and isinstance(p, (PVar, PAssign)):
                    name = safe_name(p.name)
                    lets.append(f"let {name}: String = {name}.to_string();")
            if arity == 1:
                alternatives.append(rendered[0])
            else:
                alternatives.append("(" + ", ".join(rendered) + ")")
        if guards and clause.alternatives:
            raise UnsupportedConstruct(
                "case clause", clause.loc, "alternative patterns on a recursive field"
            )
        if clause.guard is not None:
            user_guard = self.render_expression(clause.guard)
            if guards and not isinstance(clause.guard, BinOp):
                user_guard = _postfix_operand(user_guard)
            guards.append(user_guard)
        guard = " if " + " && ".join(guards) if guards else ""
        body = block(list(dict.fromkeys(lets)) + self._stmts(clause.then))
        return " | ".join(alternatives) + guard + " => " + body

    def _emit_BitString(self, expr: BitString) -> str:
        lines = ["let mut __bits: Vec<u8> = Vec::new();"]
        for seg in expr.segments:
            lines.append(f"__bits.extend_from_slice({self._segment_bytes(seg)});")
        lines.append("__bits")
        return block(lines)

    def _segment_bytes(self, seg: BitSegment) -> str:
        value = self.render_expression(seg.value)
        if seg.kind == "int":
            bits = (8 if seg.size is None else seg.size) * seg.unit
            if bits <= 0 or bits > 64 or bits % 8 != 0:
                raise UnsupportedConstruct(
                    "bit string segment", seg.loc, str(bits) + "-bit int is not byte aligned"
                )
            n = bits // 8
            if seg.endianness == "little":
                return f"&Int::to_le_bytes({value})[..{n}]"
            return f"&Int::to_be_bytes({value})[{8 - n}..]"
        if seg.kind == "float":
            bits = (64 if seg.size is None else seg.size) * seg.unit
            suffix = "le" if seg.endianness == "little" else "be"
            if bits == 64:
                return f"&Float::to_{suffix}_bytes({value})"
            if bits == 32:
                return f"&(({value}) as f32).to_{suffix}_bytes()"
            raise UnsupportedConstruct("bit string segment", seg.loc, str(bits) + "-bit float")
        if seg.size is not None:
            raise UnsupportedConstruct("bit string segment", seg.loc, "sized " + seg.kind + " segment")
        if seg.kind == "utf8":
            return _postfix_operand(value) + ".as_bytes()"
        if seg.kind == "bits":
            return "&" + _postfix_operand(value)
        raise UnsupportedConstruct("bit string segment", seg.loc, "kind '" + seg.kind + "'")

    # ── declarations ─────────────────────────────────────────

    def render_statement(self, stmt: Statement) -> str:
        self.lines = []
        self.indent = 0
        try:
            if isinstance(stmt, Function):
                self._emit_Function(stmt)
            elif isinstance(stmt, CustomType):
                self._emit_CustomType(stmt)
            elif isinstance(stmt, TypeAlias):
                self._emit_TypeAlias(stmt)
            elif isinstance(stmt, ExternalFn):
                self._emit_ExternalFn(stmt)
            elif isinstance(stmt, ExternalType):
                self._emit_ExternalType(stmt)
            elif isinstance(stmt, Import):
                self._emit_Import(stmt)
            elif isinstance(stmt, ModuleConstant):
                self._emit_ModuleConstant(stmt)
            else:
                raise UnsupportedConstruct("statement kind '" + type(stmt).__name__ + "'", stmt.loc)
        except EmitError as e:
            if e.declaration is None:
                e.declaration = _statement_name(stmt)
            if e.loc is None or e.loc.line == 0:
                e.loc = stmt.loc
            raise
        return self.output()

    def _doc(self, doc: str | None) -> None:
        if doc is None:
            return
        for ln in doc.split("\n"):
            self.line("///" + _doc_text(ln))

    def _params(self, args: list[Arg]) -> str:
        return ", ".join(
            f"{safe_name(a.name) if a.name else '_'}: {self.render_type(a.typ)}" for a in args
        )

    def _emit_Function(self, fn: Function) -> None:
        self._scope(fn.name, *[a.typ for a in fn.args], fn.return_type)
        var_ids = collect_generics(fn.args, fn.return_type)
        self._names.declare(var_ids)
        self._doc(fn.doc)
        vis = "pub " if fn.public else ""
        generics = self._generic_clause(var_ids, "Clone")
        params = self._params(fn.args)
        ret = self.render_type(fn.return_type)
        self.line(f"{vis}fn {safe_name(fn.name)}{generics}({params}) -> {ret} {{")
        self.indent += 1
        for text in self._stmts(fn.body):
            self.text(text)
        self.indent -= 1
        self.line("}")

    def _bind_parameters(self, parameters: list[str], typed_parameters: list[Type]) -> list[str]:
        """Bind declared parameter names; returns them as Rust identifiers."""
        names: list[str] = []
        for i, pname in enumerate(parameters):
            if i < len(typed_parameters):
                resolved = resolve(typed_parameters[i])
                if isinstance(resolved, (Generic, Unbound)):
                    self._names.bind(resolved.id, safe_name(pname))
            names.append(safe_name(pname))
        return names

    def _emit_CustomType(self, ct: CustomType) -> None:
        field_types = [f.typ for c in ct.constructors for f in c.fields]
        self._scope(ct.name, *field_types, extra=ct.parameters)
        params = self._bind_parameters(ct.parameters, ct.typed_parameters)
        all_fields = [f for c in ct.constructors for f in c.fields]
        for var_id in collect_generics(all_fields):
            if not self._names.is_declared(var_id):
                params.append(self._names.name(var_id))
        clause = "<" + ", ".join(params) + ">" if params else ""
        self._doc(ct.doc)
        seen = {ct.name}
        if any(self._holds_fn(t, seen) for t in field_types):
            self.line("#[derive(Clone)]")
        else:
            self.line("#[derive(Clone, Debug, PartialEq)]")
        vis = "pub " if ct.public else ""
        self.line(f"{vis}enum {safe_name(ct.name)}{clause} {{")
        self.indent += 1
        for ctor in ct.constructors:
            if not ctor.fields:
                self.line(f"{safe_name(ctor.name)},")
                continue
            self.line(f"{safe_name(ctor.name)} {{")
            self.indent += 1
            for i, fld in enumerate(ctor.fields):
                typ = self.render_type(fld.typ)
                if self._boxed(ct, fld):
                    self._uses.add(RC)
                    typ = f"Rc<{typ}>"
                self.line(f"{_field_name(fld.label, i)}: {typ},")
            self.indent -= 1
            self.line("},")
        self.indent -= 1
        self.line("}")
        self._emit_accessors(ct, params)

    def _emit_accessors(self, ct: CustomType, params: list[str]) -> None:
        """impl block with a getter for every label shared by all constructors."""
        if not ct.constructors:
            return
        shared: list[tuple[str, Type]] = []
        for fld in ct.constructors[0].fields:
            if fld.label is None:
                continue
            if all(any(f.label == fld.label for f in c.fields) for c in ct.constructors[1:]):
                shared.append((fld.label, fld.typ))
        if not shared:
            return
        bounded = "<" + ", ".join(p + ": Clone" for p in params) + ">" if params else ""
        clause = "<" + ", ".join(params) + ">" if params else ""
        self.line("")
        self.line(f"impl{bounded} {safe_name(ct.name)}{clause} {{")
        self.indent += 1
        for n, (label, typ) in enumerate(shared):
            if n > 0:
                self.line("")
            name = safe_name(label)
            self.line(f"pub fn {name}(&self) -> {self.render_type(typ)} {{")
            self.indent += 1
            self.line("match self {")
            self.indent += 1
            for ctor in ct.constructors:
                fld = _declared_field(ctor, label, 0)
                value = f"(**{name}).clone()" if self._boxed(ct, fld) else f"{name}.clone()"
                self.line(f"Self::{safe_name(ctor.name)} {{ {name}, .. }} => {value},")
            self.indent -= 1
            self.line("}")
            self.indent -= 1
            self.line("}")
        self.indent -= 1
        self.line("}")

    def _emit_TypeAlias(self, alias: TypeAlias) -> None:
        self._scope(alias.alias, alias.typ, extra=alias.parameters)
        params = self._bind_parameters(alias.parameters, alias.typed_parameters)
        for var_id in type_var_ids(alias.typ):
            if not self._names.is_declared(var_id):
                params.append(self._names.name(var_id))
        clause = "<" + ", ".join(params) + ">" if params else ""
        vis = "pub " if alias.public else ""
        self.line(f"{vis}type {safe_name(alias.alias)}{clause} = {self.render_type(alias.typ)};")

    def _emit_ExternalFn(self, ext: ExternalFn) -> None:
        self._scope(ext.name, *[a.typ for a in ext.args], ext.return_type)
        var_ids = collect_generics(ext.args, ext.return_type)
        self._names.declare(var_ids)
        vis = "pub " if ext.public else ""
        params = self._params(ext.args)
        ret = self.render_type(ext.return_type)
        target = module_path(ext.module) + "::" + safe_name(ext.fun)
        if var_ids:
            # Foreign items cannot be generic: re-export the implementation
            generics = self._generic_clause(var_ids)
            self.line(f"// fn {safe_name(ext.name)}{generics}({params}) -> {ret}")
            self.line(f"{vis}use {target} as {safe_name(ext.name)};")
            return
        self.line(f"// {ext.module}:{ext.fun}")
        self.line('extern "Rust" {')
        self.indent += 1
        self.line(f'#[link_name = "{escape_string(ext.fun)}"]')
        self.line(f"{vis}fn {safe_name(ext.name)}({params}) -> {ret};")
        self.indent -= 1
        self.line("}")

    def _emit_ExternalType(self, ext: ExternalType) -> None:
        params = [safe_name(p) for p in ext.parameters]
        clause = "<" + ", ".join(params) + ">" if params else ""
        vis = "pub " if ext.public else ""
        self.line(f"{vis}struct {safe_name(ext.name)}{clause} {{")
        self.indent += 1
        self.line("_private: [u8; 0],")
        if params:
            marker = "(" + ", ".join(params) + ",)" if len(params) == 1 else "(" + ", ".join(params) + ")"
            self.line(f"_marker: std::marker::PhantomData<{marker}>,")
        self.indent -= 1
        self.line("}")

    def _emit_Import(self, imp: Import) -> None:
        path = module_path(imp.module)
        if not imp.unqualified:
            if imp.as_name:
                self.line(f"use {path} as {safe_name(imp.as_name)};")
            else:
                self.line(f"use {path};")
            return
        items = ["self as " + safe_name(imp.as_name) if imp.as_name else "self"]
        for item in imp.unqualified:
            text = safe_name(item.name)
            if item.as_name:
                text += " as " + safe_name(item.as_name)
            items.append(text)
        self.line(f"use {path}::{{{', '.join(items)}}};")

    def _emit_ModuleConstant(self, const: ModuleConstant) -> None:
        self._scope(const.name, const.typ)
        if type_var_ids(const.typ):
            raise UnsupportedConstruct("generic module constant", const.loc)
        self._uses.add(LAZY_LOCK)
        vis = "pub " if const.public else ""
        typ = self.render_type(const.typ)
        value = self.render_expression(const.value)
        self.text(f"{vis}static {safe_name(const.name)}: LazyLock<{typ}> = LazyLock::new(|| {value});")


def _doc_text(ln: str) -> str:
    """Doc comment body for one line, keeping a single space after the marker."""
    ln = ln.rstrip()
    if not ln or ln.startswith(" "):
        return ln
    return " " + ln


# ── entry points ─────────────────────────────────────────────


def emit_rust(module: Module, prelude: bool = False, generic_prefix: str = "T") -> str:
    """Emit a complete Rust source file for module."""
    return RustBackend(prelude=prelude, generic_prefix=generic_prefix).emit(module)


def render_module(statements: Sequence[Statement]) -> str:
    return RustBackend().render_module(statements)


def render_statement(stmt: Statement) -> str:
    return RustBackend().render_statement(stmt)


def render_expression(expr: Expr) -> str:
    return RustBackend().render_expression(expr)


def render_pattern(pattern: Pattern) -> str:
    return RustBackend().render_pattern(pattern)


def render_type(typ: Type) -> str:
    return RustBackend().render_type(typ)
