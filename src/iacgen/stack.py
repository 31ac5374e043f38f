"""Stack documents - YAML descriptions of the units in one stack build.

    name: demo
    resources:
      key:
        template: aws:kms_key
        args: {Name: key}
      alias:
        template: aws:kms_alias
        args:
          Name: a
          AliasName: alias/a
          TargetKey: {$ref: key}

`{$ref: unit}` and `{$ref: unit.attr}` become Ref binding expressions.
Resource declaration order is the mapping order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import msgspec

from iacgen.ast.spec import Ref
from iacgen.exceptions import InvalidStackError

REF_KEY = "$ref"


class ResourceEntry(msgspec.Struct, forbid_unknown_fields=True):
    template: str
    args: Dict[str, Any] = msgspec.field(default_factory=dict)
    options: Dict[str, Any] = msgspec.field(default_factory=dict)


class StackDocument(msgspec.Struct, forbid_unknown_fields=True):
    name: str = "stack"
    resources: Dict[str, ResourceEntry] = msgspec.field(default_factory=dict)

    def bindings(self, unit: str) -> Dict[str, Any]:
        """Arguments of `unit` with `$ref` mappings decoded to Ref."""
        return decode_refs(self.resources[unit].args)


def decode_refs(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {REF_KEY}:
            target = value[REF_KEY]
            if not isinstance(target, str) or not target or target.startswith("."):
                raise InvalidStackError(f"{REF_KEY} must name a unit, got {target!r}")
            return Ref.parse(target)
        return {k: decode_refs(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_refs(v) for v in value]
    return value


def parse_stack_text(text: str) -> StackDocument:
    """Parse a YAML stack document.

    Raises:
        InvalidStackError: If the YAML is malformed or does not match the schema.
    """
    try:
        return msgspec.yaml.decode(text, type=StackDocument)
    except msgspec.ValidationError as e:
        raise InvalidStackError(str(e)) from e
    except msgspec.DecodeError as e:
        raise InvalidStackError(f"malformed YAML: {e}") from e


def load_stack_file(path: str | Path) -> StackDocument:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Stack file not found: {p}")
    return parse_stack_text(p.read_text())
