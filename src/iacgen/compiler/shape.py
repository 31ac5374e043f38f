"""Static shape of argument bindings.

Directives only ever see this structural description, never a resolved
provider value: a binding is an object literal with keys, an array literal
with elements, a scalar literal, or an opaque reference to another unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from iacgen.ast.path import Segment
from iacgen.ast.spec import Ref

Scalar = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class ScalarShape:
    value: Scalar

    @property
    def truthy(self) -> bool:
        return bool(self.value)

    def child(self, segment: Segment) -> Optional["Shape"]:
        return None

    def literal(self) -> Any:
        return self.value

    def describe(self) -> str:
        if self.value is None:
            return "null"
        if isinstance(self.value, bool):
            return "boolean"
        if isinstance(self.value, (int, float)):
            return "number"
        return "string"


@dataclass(frozen=True)
class ObjectShape:
    fields: Tuple[Tuple[str, "Shape"], ...]

    @property
    def truthy(self) -> bool:
        return bool(self.fields)

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(k for k, _ in self.fields)

    def child(self, segment: Segment) -> Optional["Shape"]:
        if not isinstance(segment, str):
            return None
        for key, shape in self.fields:
            if key == segment:
                return shape
        return None

    def literal(self) -> Dict[str, Any]:
        return {k: v.literal() for k, v in self.fields}

    def describe(self) -> str:
        return "object"


@dataclass(frozen=True)
class ArrayShape:
    items: Tuple["Shape", ...]

    @property
    def truthy(self) -> bool:
        return bool(self.items)

    def child(self, segment: Segment) -> Optional["Shape"]:
        if not isinstance(segment, int) or segment < 0 or segment >= len(self.items):
            return None
        return self.items[segment]

    def literal(self) -> list:
        return [item.literal() for item in self.items]

    def describe(self) -> str:
        return "list"


@dataclass(frozen=True)
class RefShape:
    """A cross-unit reference; its attributes are unknown at generation time."""

    ref: Ref

    @property
    def truthy(self) -> bool:
        return True

    def literal(self) -> Any:
        return self.ref

    def describe(self) -> str:
        return f"reference to {self.ref}"


Shape = Union[ScalarShape, ObjectShape, ArrayShape, RefShape]


def shape_of(value: Any) -> Shape:
    """Describe the static shape of a binding expression.

    Raises:
        TypeError: If the value is not a literal or a Ref.
    """
    if isinstance(value, Ref):
        return RefShape(value)
    if isinstance(value, Mapping):
        return ObjectShape(tuple((str(k), shape_of(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ArrayShape(tuple(shape_of(v) for v in value))
    if value is None or isinstance(value, (str, int, float, bool)):
        return ScalarShape(value)
    raise TypeError(f"not a binding expression: {type(value).__name__}")


def describe_bindings(bindings: Mapping[str, Any]) -> ObjectShape:
    """Shape of a whole call site: an object keyed by argument name."""
    return ObjectShape(tuple((name, shape_of(v)) for name, v in bindings.items()))
