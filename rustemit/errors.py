"""Emission errors.

UnsupportedConstruct and MalformedLink abort emission of the whole module;
callers never receive partial output. Synthetic-name collisions are not
errors: the generics scope renames around them.
"""

from __future__ import annotations

from .ir import Loc


class EmitError(Exception):
    """Base for errors that abort emission of a module."""

    def __init__(self, msg: str, loc: Loc | None = None):
        self.msg: str = msg
        self.loc: Loc | None = loc
        self.declaration: str | None = None
        super().__init__(msg)

    def __str__(self) -> str:
        where = ""
        if self.loc is not None and self.loc.line > 0:
            where = str(self.loc) + ": "
        text = where + self.msg
        if self.declaration is not None:
            text += " (in '" + self.declaration + "')"
        return text


class UnsupportedConstruct(EmitError, NotImplementedError):
    """An IR node the Rust backend has no rendering rule for."""

    def __init__(self, kind: str, loc: Loc | None = None, detail: str = ""):
        self.kind: str = kind
        msg = "unsupported " + kind
        if detail:
            msg += ": " + detail
        super().__init__(msg, loc)


class MalformedLink(EmitError):
    """A Linked type variable whose chain of links never terminates."""


class LoadError(Exception):
    """Malformed JSON input: unknown node tag, missing or unexpected field."""

    def __init__(self, msg: str, path: str = ""):
        self.msg: str = msg
        self.path: str = path
        super().__init__(msg)

    def __str__(self) -> str:
        if self.path:
            return self.path + ": " + self.msg
        return self.msg
