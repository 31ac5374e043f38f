"""Compiled units - one named instantiation of a template within a stack build."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from iacgen.ast.spec import Ref, TemplateRecord
from iacgen.exceptions import IacgenError
from iacgen.runtime.backend import ResourceHandle
from iacgen.runtime.deferred import DeferredValue


class UnitState(str, Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    CREATED = "created"
    PROPERTIES_RESOLVED = "properties_resolved"
    EXPORTS_RESOLVED = "exports_resolved"
    FAILED = "failed"


TERMINAL_STATES = frozenset({UnitState.EXPORTS_RESOLVED, UnitState.FAILED})

_TRANSITIONS = {
    UnitState.UNBOUND: {UnitState.BOUND},
    UnitState.BOUND: {UnitState.CREATED},
    UnitState.CREATED: {UnitState.PROPERTIES_RESOLVED},
    UnitState.PROPERTIES_RESOLVED: {UnitState.EXPORTS_RESOLVED},
}


@dataclass(eq=False)
class CompiledUnit:
    """The materialized node of the dependency graph.

    Lifecycle: UNBOUND -> BOUND -> CREATED -> PROPERTIES_RESOLVED ->
    EXPORTS_RESOLVED, with FAILED reachable from any non-terminal state.
    """

    template: TemplateRecord
    name: str
    bindings: Dict[str, Any]
    source: str = ""
    inputs: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    handle: Optional[ResourceHandle] = None
    properties: Dict[str, DeferredValue[Any]] = field(default_factory=dict)
    exports: Dict[str, DeferredValue[Any]] = field(default_factory=dict)
    state: UnitState = UnitState.UNBOUND
    error: Optional[IacgenError] = None

    @property
    def template_id(self) -> str:
        return self.template.id

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def status(self) -> str:
        """pending / succeeded / failed, for orchestrators."""
        if self.state is UnitState.EXPORTS_RESOLVED:
            return "succeeded"
        if self.state is UnitState.FAILED:
            return "failed"
        return "pending"

    def transition(self, state: UnitState) -> None:
        if state is UnitState.FAILED:
            if self.terminal:
                raise RuntimeError(f"unit '{self.name}' is already {self.state.value}")
        elif state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(
                f"unit '{self.name}' cannot go from {self.state.value} to {state.value}"
            )
        self.state = state

    def fail(self, error: IacgenError) -> None:
        self.transition(UnitState.FAILED)
        self.error = error

    def references(self) -> List[Tuple[str, Ref]]:
        """Every Ref in the bindings, with the argument path holding it."""
        return list(_walk_refs(self.bindings, ""))

    @property
    def dependencies(self) -> List[str]:
        """Referenced unit names, in order of first appearance."""
        seen: Dict[str, None] = {}
        for _, ref in self.references():
            seen.setdefault(ref.unit, None)
        return list(seen)

    def __repr__(self) -> str:
        return f"CompiledUnit({self.name!r}, {self.template_id!r}, {self.state.value})"


def _walk_refs(value: Any, path: str) -> Iterator[Tuple[str, Ref]]:
    if isinstance(value, Ref):
        yield path, value
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _walk_refs(item, f"{path}.{key}" if path else str(key))
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            yield from _walk_refs(item, f"{path}[{i}]")
