"""Conversion between IR objects and JSON-compatible dicts.

Every IR node becomes a dict tagged with its class name under "_type";
sequences become lists. Loading reverses the mapping and rejects unknown
tags and unknown fields with LoadError.
"""

from __future__ import annotations

import dataclasses

from . import ir
from .errors import LoadError

# Base classes that never appear as concrete nodes
_ABSTRACT: frozenset[str] = frozenset({"Type", "TypeVar", "Pattern", "Expr", "Statement"})

NODE_CLASSES: dict[str, type] = {
    name: cls
    for name, cls in vars(ir).items()
    if isinstance(cls, type)
    and dataclasses.is_dataclass(cls)
    and cls.__module__ == ir.__name__
    and name not in _ABSTRACT
}


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): serialize(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        d: dict[str, object] = {"_type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            d[f.name] = serialize(getattr(obj, f.name))
        return d
    raise TypeError("cannot serialize " + type(obj).__name__)


def load(data: object, path: str = "$") -> object:
    """Rebuild IR objects from the output of serialize()."""
    if isinstance(data, list):
        return [load(x, path + "[" + str(i) + "]") for i, x in enumerate(data)]
    if not isinstance(data, dict):
        return data
    if "_type" not in data:
        raise LoadError("object without '_type'", path)
    tag = data["_type"]
    cls = NODE_CLASSES.get(tag) if isinstance(tag, str) else None
    if cls is None:
        raise LoadError("unknown node type '" + str(tag) + "'", path)
    known = {f.name for f in dataclasses.fields(cls)}
    kwargs: dict[str, object] = {}
    for key, value in data.items():
        if key == "_type":
            continue
        if key not in known:
            raise LoadError("unexpected field '" + key + "' for " + tag, path)
        value = load(value, path + "." + key)
        if issubclass(cls, ir.Type) and isinstance(value, list):
            value = tuple(value)
        kwargs[key] = value
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise LoadError(str(e), path) from e


def load_module(data: object) -> ir.Module:
    """Load a Module from its JSON-compatible form."""
    module = load(data)
    if not isinstance(module, ir.Module):
        raise LoadError("expected a Module at the top level", "$")
    return module
