"""Type variable resolution.

Unification leaves chains of Linked variables behind. Every question the
backend asks about a type goes through resolve() first, so renderers never
see a Linked node.
"""

from __future__ import annotations

from ..errors import MalformedLink
from ..ir import Linked, Type


def resolve(typ: Type) -> Type:
    """Follow Linked variables until a non-Linked type is reached.

    Only the head of the type is resolved; arguments of the result may
    still be linked. Raises MalformedLink if the chain revisits a variable.
    """
    seen: set[int] = set()
    while isinstance(typ, Linked):
        if id(typ) in seen:
            raise MalformedLink("type variable link cycle")
        seen.add(id(typ))
        typ = typ.to
    return typ
