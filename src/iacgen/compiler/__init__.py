"""iacgen compiler - binds templates to call sites and links them into a graph."""

from iacgen.compiler.binder import Binder, bind
from iacgen.compiler.compiler import CompiledStack, Compiler
from iacgen.compiler.evaluator import expand, path_exists_or_truthy
from iacgen.compiler.graph import DependencyGraph, link
from iacgen.compiler.renderer import Renderer
from iacgen.compiler.unit import CompiledUnit, UnitState

__all__ = [
    "Binder",
    "CompiledStack",
    "CompiledUnit",
    "Compiler",
    "DependencyGraph",
    "Renderer",
    "UnitState",
    "bind",
    "expand",
    "link",
    "path_exists_or_truthy",
]
