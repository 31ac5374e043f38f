"""Dependency Graph - orders compiled units by their cross-unit references.

An edge A -> B exists iff A's bindings reference B's handle or one of B's
attributes. Creation order is topological (referenced before referencer)
with ties broken by declaration order so builds are reproducible.
"""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from iacgen.ast.path import split_path
from iacgen.compiler.unit import CompiledUnit
from iacgen.exceptions import (
    CycleError,
    DanglingReferenceError,
    DuplicateUnitError,
    TypeMismatchError,
)

log = logging.getLogger(__name__)


class DependencyGraph:
    """DAG over compiled units. Built once per stack evaluation."""

    def __init__(self, units: Sequence[CompiledUnit]):
        self.units: Dict[str, CompiledUnit] = {}
        self._index: Dict[str, int] = {}
        for i, unit in enumerate(units):
            if unit.name in self.units:
                raise DuplicateUnitError(unit.name)
            self.units[unit.name] = unit
            self._index[unit.name] = i

        # referencer -> referenced, and the argument paths labelling each edge
        self._deps: Dict[str, List[str]] = {name: [] for name in self.units}
        self._rdeps: Dict[str, List[str]] = {name: [] for name in self.units}
        self.edge_labels: Dict[Tuple[str, str], List[str]] = {}
        self._build_edges()
        self.order: List[str] = self._topological_order()

    def _build_edges(self) -> None:
        for unit in self.units.values():
            for arg_path, ref in unit.references():
                target = self.units.get(ref.unit)
                if target is None:
                    raise DanglingReferenceError(unit.name, str(ref), "no such unit")
                if ref.attribute is not None:
                    head = str(split_path(ref.attribute)[0])
                    if head not in target.properties and not target.template.exposes(head):
                        raise DanglingReferenceError(
                            unit.name,
                            str(ref),
                            f"{target.template_id} has no property or attribute '{head}'",
                        )
                arg = unit.template.arg(arg_path.split(".")[0].split("[")[0])
                if arg is not None and arg.is_resource and arg_path == arg.name:
                    expected = arg.resource_template
                    if expected is not None and target.template_id != expected:
                        raise TypeMismatchError(
                            unit.name,
                            arg.name,
                            arg.type,
                            f"got reference to '{target.name}' ({target.template_id})",
                        )
                key = (unit.name, target.name)
                if key not in self.edge_labels:
                    self.edge_labels[key] = []
                    self._deps[unit.name].append(target.name)
                    self._rdeps[target.name].append(unit.name)
                self.edge_labels[key].append(arg_path)

    def _topological_order(self) -> List[str]:
        indegree = {name: len(deps) for name, deps in self._deps.items()}
        ready = [(self._index[n], n) for n, d in indegree.items() if d == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for dependent in self._rdeps[name]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, (self._index[dependent], dependent))

        if len(order) != len(self.units):
            raise CycleError(self._find_cycle(set(self.units) - set(order)))
        return order

    def _find_cycle(self, candidates: Set[str]) -> List[str]:
        """Return one cycle path (first node repeated at the end)."""
        done: Set[str] = set()
        for start in sorted(candidates, key=self._index.__getitem__):
            if start in done:
                continue
            # iterative DFS: cursor[i] is the next dependency of path[i] to visit
            path: List[str] = [start]
            on_path: Set[str] = {start}
            cursor: List[int] = [0]
            while path:
                name = path[-1]
                deps = self._deps[name]
                if cursor[-1] == len(deps):
                    path.pop()
                    cursor.pop()
                    on_path.discard(name)
                    done.add(name)
                    continue
                dep = deps[cursor[-1]]
                cursor[-1] += 1
                if dep in on_path:
                    return path[path.index(dep) :] + [dep]
                if dep not in done and dep in candidates:
                    path.append(dep)
                    on_path.add(dep)
                    cursor.append(0)
        return sorted(candidates, key=self._index.__getitem__)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def ordered_units(self) -> List[CompiledUnit]:
        return [self.units[name] for name in self.order]

    def dependencies(self, name: str) -> List[str]:
        return list(self._deps[name])

    def dependents(self, name: str) -> List[str]:
        return list(self._rdeps[name])

    def transitive_dependents(self, name: str) -> List[str]:
        """Every unit that depends on `name`, directly or not, in creation order."""
        seen: Set[str] = set()
        stack = list(self._rdeps[name])
        while stack:
            current = stack.pop()
            if current not in seen:
                seen.add(current)
                stack.extend(self._rdeps[current])
        return [n for n in self.order if n in seen]

    def _reaches(self, source: str, target: str) -> bool:
        stack = [source]
        seen: Set[str] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current not in seen:
                seen.add(current)
                stack.extend(self._deps[current])
        return False

    def independent(self, a: str, b: str) -> bool:
        """True if no path connects a and b in either direction."""
        if a == b:
            return False
        return not self._reaches(a, b) and not self._reaches(b, a)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        """(referencer, referenced) pairs in creation order of the referencer."""
        return [(name, dep) for name in self.order for dep in self._deps[name]]

    def to_dot(self) -> str:
        """Render the graph as Graphviz DOT text, nodes in topological order."""
        lines = ["digraph {", "  rankdir = TB"]
        for name in self.order:
            unit = self.units[name]
            label = f"{name}\\n{unit.template_id}"
            lines.append(f'  "{name}" [label="{label}", shape=box]')
        for source, target in self.edges:
            label = ", ".join(self.edge_labels[(source, target)])
            lines.append(f'  "{source}" -> "{target}" [label="{label}"]')
        lines.append("}")
        return "\n".join(lines) + "\n"


def link(units: Iterable[CompiledUnit]) -> List[CompiledUnit]:
    """Link compiled units into creation order.

    Raises:
        DuplicateUnitError, DanglingReferenceError, TypeMismatchError, CycleError
    """
    graph = DependencyGraph(list(units))
    log.debug("linked %d units: %s", len(graph.order), " -> ".join(graph.order))
    return graph.ordered_units()
