"""Compiler - binds every resource of a stack and links them into a graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from iacgen.ast.path import split_path
from iacgen.ast.spec import Ref
from iacgen.compiler.binder import Binder
from iacgen.compiler.graph import DependencyGraph
from iacgen.compiler.unit import CompiledUnit
from iacgen.config import CompilerConfig
from iacgen.exceptions import (
    DanglingReferenceError,
    InvalidStackError,
    PropertyDerivationFailed,
)
from iacgen.registry import TemplateRegistry
from iacgen.runtime.deferred import DeferredValue
from iacgen.stack import ResourceEntry, StackDocument, decode_refs

log = logging.getLogger(__name__)


@dataclass
class CompiledStack:
    """Result of one stack build: ordered units plus their graph."""

    name: str
    graph: DependencyGraph

    @property
    def units(self) -> List[CompiledUnit]:
        return self.graph.ordered_units()

    def unit(self, name: str) -> CompiledUnit:
        return self.graph.units[name]

    def depends_on(self, name: str) -> List[str]:
        return sorted(self.graph.dependencies(name))

    def resolve_ref(self, ref: Ref) -> DeferredValue[Any]:
        """Deferred value a reference points at.

        A bare unit reference yields the unit's `id`; `unit.attr` yields the
        named property if the unit has one, else the provider attribute.
        Further segments index into the resolved value.
        """
        if ref.unit not in self.graph.units:
            raise DanglingReferenceError("<stack>", str(ref), "no such unit")
        unit = self.graph.units[ref.unit]
        assert unit.handle is not None
        if ref.attribute is None:
            return unit.handle.id

        segments = split_path(ref.attribute)
        head = str(segments[0])
        if head in unit.properties:
            value = unit.properties[head]
        else:
            value = unit.handle.attribute(head)
        for segment in segments[1:]:
            value = value.map(_indexer(str(ref), segment))
        return value

    def outputs(self) -> Dict[str, Dict[str, DeferredValue[Any]]]:
        """The stack output surface: unit name -> export name -> deferred value."""
        return {unit.name: dict(unit.exports) for unit in self.units if unit.exports}


def _indexer(ref: str, segment: Union[str, int]):
    def index(value: Any) -> Any:
        try:
            return value[segment]
        except (KeyError, IndexError, TypeError) as e:
            raise PropertyDerivationFailed(f"{ref}: cannot index {segment!r}") from e

    return index


class Compiler:
    """Compiles stack documents into CompiledStacks."""

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        config: Optional[CompilerConfig] = None,
    ):
        self.config = config or CompilerConfig()
        self.registry = registry or TemplateRegistry(self.config)
        self.binder = Binder(drop_null_inputs=self.config.drop_null_inputs)

    def compile(self, stack: Union[StackDocument, Mapping[str, Any]]) -> CompiledStack:
        """Bind and link every resource of a stack.

        Args:
            stack: A StackDocument, or a plain mapping with the same layout
                (`name`, `resources: {unit: {template, args, options}}`).

        Returns:
            CompiledStack with units in creation order.

        Raises:
            IacgenError: Any schema, directive or graph error. Nothing is
                provisioned when this raises.
        """
        if not isinstance(stack, StackDocument):
            stack = _document_from_mapping(stack)

        units: List[CompiledUnit] = []
        for name, entry in stack.resources.items():
            template = self.registry.get(entry.template)
            bindings = decode_refs(entry.args)
            units.append(self.binder.bind(template, name, bindings, entry.options))

        graph = DependencyGraph(units)
        for unit in units:
            deps = sorted(graph.dependencies(unit.name))
            if deps:
                unit.options["dependsOn"] = deps
        log.info("compiled stack %s: %d units", stack.name, len(units))
        return CompiledStack(name=stack.name, graph=graph)


def _document_from_mapping(data: Mapping[str, Any]) -> StackDocument:
    resources: Dict[str, ResourceEntry] = {}
    declared = data.get("resources") or {}
    if not isinstance(declared, Mapping):
        raise InvalidStackError("'resources' must be a mapping of unit name to resource")
    for name, entry in declared.items():
        if isinstance(entry, ResourceEntry):
            resources[name] = entry
            continue
        if not isinstance(entry, Mapping):
            raise InvalidStackError(f"resource '{name}' must be a mapping")
        unknown = set(entry) - {"template", "args", "options"}
        if unknown or "template" not in entry:
            raise InvalidStackError(
                f"resource '{name}' needs 'template' "
                f"and may only set args/options (got {sorted(entry)})"
            )
        resources[name] = ResourceEntry(
            template=entry["template"],
            args=dict(entry.get("args") or {}),
            options=dict(entry.get("options") or {}),
        )
    return StackDocument(name=data.get("name", "stack"), resources=resources)
