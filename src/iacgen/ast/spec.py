"""Template records, argument specs, directive nodes and binding references."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from iacgen.ast.path import Segment

LITERAL_TYPES = ("string", "number", "boolean", "object", "list", "any")

# Provider attributes every resource exposes
IMPLIED_ATTRIBUTES = ("id", "arn")


@dataclass(frozen=True)
class Arg:
    """One declared argument of a template."""

    name: str
    type: str = "any"
    required: bool = True
    description: str = ""

    @property
    def is_resource(self) -> bool:
        return self.type == "resource" or self.type.startswith("resource:")

    @property
    def resource_template(self) -> Optional[str]:
        """Template id a resource argument must point at, if constrained."""
        if self.type.startswith("resource:"):
            return self.type[len("resource:") :]
        return None


def is_valid_type(type_: str) -> bool:
    """Check a semantic type string (`string`, `list[string]`, `resource:aws:kms_key`...)."""
    if type_ in LITERAL_TYPES or type_ == "resource":
        return True
    if type_.startswith("resource:"):
        return len(type_) > len("resource:")
    if type_.startswith("list[") and type_.endswith("]"):
        return is_valid_type(type_[5:-1])
    return False


@dataclass(frozen=True)
class Ref:
    """Reference from a binding to another unit's handle or attribute.

    Ref("key") points at the unit's resource handle; Ref("key", "arn")
    points at a named property of the unit or, failing that, a provider
    attribute of its handle.
    """

    unit: str
    attribute: Optional[str] = None

    def child(self, attribute: str) -> "Ref":
        if self.attribute is not None:
            return Ref(self.unit, f"{self.attribute}.{attribute}")
        return Ref(self.unit, attribute)

    def __str__(self) -> str:
        if self.attribute:
            return f"{self.unit}.{self.attribute}"
        return self.unit

    @classmethod
    def parse(cls, text: str) -> "Ref":
        unit, _, attribute = text.partition(".")
        return cls(unit=unit, attribute=attribute or None)


# Directive nodes -----------------------------------------------------------


@dataclass(frozen=True)
class Text:
    """Literal text copied to the output (may contain interpolations)."""

    parts: Tuple[Union[str, "Interpolation"], ...]
    line: int = 0


@dataclass(frozen=True)
class Interpolation:
    """`{{ PATH }}` - the literal found at PATH in the argument shape."""

    path: Tuple[Segment, ...]
    source: str


@dataclass(frozen=True)
class PathExistsOrTruthy:
    """Predicate over the static argument shape."""

    path: Tuple[Segment, ...]
    source: str
    negate: bool = False


@dataclass(frozen=True)
class Conditional:
    predicate: PathExistsOrTruthy
    then_branch: Tuple["DirectiveNode", ...]
    else_branch: Tuple["DirectiveNode", ...] = ()
    line: int = 0


DirectiveNode = Union[Text, Conditional]


# Template records ----------------------------------------------------------

CreateFn = Callable[..., Any]
PropertiesFn = Callable[[Any, Mapping[str, Any]], Optional[Dict[str, Any]]]
ExportsFn = Callable[[Any, Mapping[str, Any], Mapping[str, Any]], Optional[Dict[str, Any]]]


@dataclass(frozen=True)
class TemplateRecord:
    """Static contract for one resource kind. Immutable once loaded."""

    id: str
    kind: str
    args: Tuple[Arg, ...]
    source: str
    directives: Tuple[DirectiveNode, ...]
    create: CreateFn
    properties: Optional[PropertiesFn] = None
    infra_exports: Optional[ExportsFn] = None
    options: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""
    # None: attributes not declared, any name is accepted until runtime
    attributes: Optional[FrozenSet[str]] = None

    def exposes(self, attribute: str) -> bool:
        return self.attributes is None or attribute in self.attributes

    def arg(self, name: str) -> Optional[Arg]:
        for arg in self.args:
            if arg.name == name:
                return arg
        return None

    @property
    def arg_names(self) -> Tuple[str, ...]:
        return tuple(arg.name for arg in self.args)

    @property
    def required_args(self) -> Tuple[str, ...]:
        return tuple(arg.name for arg in self.args if arg.required)
