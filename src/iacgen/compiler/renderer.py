"""Renders a compiled stack as program text.

One YAML document per unit, in creation order:

    name: alias
    template: aws:kms_alias
    kind: aws:kms/alias:Alias
    dependsOn: [key]
    inputs:
      name: alias/a
      targetKeyId: ${key}
"""

from __future__ import annotations

from typing import Any, Dict

import yaml

from iacgen.ast.spec import Ref
from iacgen.compiler.compiler import CompiledStack
from iacgen.compiler.unit import CompiledUnit


class _ProgramDumper(yaml.SafeDumper):
    pass


def _represent_ref(dumper: yaml.SafeDumper, ref: Ref) -> yaml.Node:
    return dumper.represent_str(f"${{{ref}}}")


_ProgramDumper.add_representer(Ref, _represent_ref)


class Renderer:
    def __init__(self, include_options: bool = True):
        self.include_options = include_options

    def unit_document(self, stack: CompiledStack, unit: CompiledUnit) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "name": unit.name,
            "template": unit.template_id,
            "kind": unit.template.kind,
            "dependsOn": stack.depends_on(unit.name),
            "inputs": unit.inputs,
        }
        options = {k: v for k, v in unit.options.items() if k != "dependsOn"}
        if self.include_options and options:
            doc["options"] = options
        return doc

    def render(self, stack: CompiledStack) -> str:
        documents = [self.unit_document(stack, unit) for unit in stack.units]
        return yaml.dump_all(
            documents,
            Dumper=_ProgramDumper,
            sort_keys=False,
            default_flow_style=False,
            explicit_start=True,
        )
