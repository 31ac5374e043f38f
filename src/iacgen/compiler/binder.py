"""Invocation Binder - binds a template to one call site.

Binding order:
1. Validate bindings against the argument schema (unknown keys, required
   keys, semantic types). Nothing else runs if validation fails.
2. Expand the create body's directives against the static binding shape.
3. Parse the expanded body and resolve `${Path}` placeholders into provider
   inputs, keeping cross-unit references as Ref objects.
4. Attach a pending resource handle and derive properties and exports from
   it; these are chains of deferred transforms and do no work yet.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from iacgen.ast.path import join_path, split_path
from iacgen.ast.spec import Ref, TemplateRecord
from iacgen.compiler.evaluator import expand
from iacgen.compiler.extensions import LITERAL_TAG
from iacgen.compiler.shape import describe_bindings, shape_of
from iacgen.compiler.unit import CompiledUnit, UnitState
from iacgen.exceptions import (
    DanglingReferenceError,
    DirectiveEvaluationError,
    IacgenError,
    InvalidTemplateError,
    MissingRequiredArgumentError,
    TypeMismatchError,
    UnknownArgumentError,
)
from iacgen.runtime.backend import ResourceHandle
from iacgen.runtime.deferred import DeferredValue

log = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{\s*([^}]*?)\s*\}")
MERGE_KEY = "$merge"


@dataclass(frozen=True)
class _Literal:
    """Call-site data interpolated into a body; never re-read as template text."""

    value: Any


class _BodyLoader(yaml.SafeLoader):
    pass


def _construct_literal(loader: yaml.SafeLoader, node: yaml.Node) -> _Literal:
    return _Literal(json.loads(loader.construct_scalar(node)))


_BodyLoader.add_constructor(LITERAL_TAG, _construct_literal)


class Binder:
    """Binds TemplateRecords to call sites, producing CompiledUnits."""

    def __init__(self, drop_null_inputs: bool = True):
        self.drop_null_inputs = drop_null_inputs

    def bind(
        self,
        template: TemplateRecord,
        name: str,
        bindings: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> CompiledUnit:
        """Bind `template` under `name` with concrete argument expressions.

        Args:
            template: The template record.
            name: Unit name, unique within the stack.
            bindings: Argument name -> literal or Ref.
            options: Call-site resource options, merged over the template's.

        Returns:
            A BOUND CompiledUnit with a pending handle.

        Raises:
            UnknownArgumentError, MissingRequiredArgumentError,
            TypeMismatchError, DirectiveEvaluationError, DanglingReferenceError
        """
        unit = CompiledUnit(template=template, name=name, bindings=dict(bindings))
        self.validate(template, name, unit.bindings)

        shape = describe_bindings(unit.bindings)
        try:
            unit.source = expand(template.directives, shape)
            tagged = expand(template.directives, shape, tag_literals=True)
        except DirectiveEvaluationError as e:
            raise DirectiveEvaluationError(f"{name} ({template.id}): {e.message}") from e

        body = self._parse_body(template, name, tagged, unit.source)
        unit.inputs = self._resolve(body, template, name, unit.bindings)

        merged_options = dict(template.options)
        merged_options.update(options or {})
        unit.options = self._resolve(merged_options, template, name, unit.bindings)

        unit.handle = ResourceHandle(template.kind, name)
        unit.transition(UnitState.BOUND)

        args = MappingProxyType(unit.bindings)
        unit.properties = self._outputs(
            template, name, "properties", template.properties, unit.handle, args
        )
        props = MappingProxyType(unit.properties)
        unit.exports = self._outputs(
            template, name, "infra_exports", template.infra_exports, unit.handle, args, props
        )
        log.debug(
            "bound %s (%s): %d inputs, %d properties, %d exports",
            name,
            template.id,
            len(unit.inputs),
            len(unit.properties),
            len(unit.exports),
        )
        return unit

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate(
        self, template: TemplateRecord, name: str, bindings: Mapping[str, Any]
    ) -> None:
        declared = set(template.arg_names)
        for key in bindings:
            if key not in declared:
                raise UnknownArgumentError(template.id, name, key)

        for arg in template.args:
            if arg.required and bindings.get(arg.name) is None:
                raise MissingRequiredArgumentError(template.id, name, arg.name)

        for arg in template.args:
            value = bindings.get(arg.name)
            if value is not None:
                _check_type(name, arg.name, arg.type, value)

    # ------------------------------------------------------------------ #
    # Body evaluation
    # ------------------------------------------------------------------ #

    def _parse_body(
        self, template: TemplateRecord, name: str, text: str, source: str
    ) -> Dict[str, Any]:
        try:
            body = yaml.load(text, Loader=_BodyLoader)
        except (yaml.YAMLError, TypeError) as e:
            raise DirectiveEvaluationError(
                f"{name} ({template.id}): expanded create body is not valid YAML: {e}\n"
                f"--- expanded body ---\n{source}"
            ) from e
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise DirectiveEvaluationError(
                f"{name} ({template.id}): create body must be a mapping, "
                f"got {type(body).__name__}"
            )
        return body

    def _resolve(
        self,
        value: Any,
        template: TemplateRecord,
        name: str,
        bindings: Mapping[str, Any],
    ) -> Any:
        if isinstance(value, _Literal):
            return copy.deepcopy(value.value)
        if isinstance(value, str):
            return self._resolve_string(value, template, name, bindings)
        if isinstance(value, list):
            return [self._resolve(v, template, name, bindings) for v in value]
        if isinstance(value, dict):
            result: Dict[str, Any] = {}
            if MERGE_KEY in value:
                spread = self._resolve(value[MERGE_KEY], template, name, bindings)
                if isinstance(spread, Ref):
                    raise DirectiveEvaluationError(
                        f"{name} ({template.id}): cannot spread reference {spread}; "
                        "its keys are not known at generation time"
                    )
                if spread is not None and not isinstance(spread, dict):
                    raise DirectiveEvaluationError(
                        f"{name} ({template.id}): {MERGE_KEY} needs a mapping, "
                        f"got {type(spread).__name__}"
                    )
                result.update(spread or {})
            for key, item in value.items():
                if key == MERGE_KEY:
                    continue
                if isinstance(key, _Literal):
                    key = key.value
                result[key] = self._resolve(item, template, name, bindings)
            if self.drop_null_inputs:
                result = {k: v for k, v in result.items() if v is not None}
            return result
        return value

    def _resolve_string(
        self,
        text: str,
        template: TemplateRecord,
        name: str,
        bindings: Mapping[str, Any],
    ) -> Any:
        whole = PLACEHOLDER.fullmatch(text)
        if whole:
            return self._lookup(whole.group(1), template, name, bindings)

        def substitute(match: "re.Match[str]") -> str:
            found = self._lookup(match.group(1), template, name, bindings)
            if isinstance(found, Ref) or isinstance(found, (dict, list)):
                raise DirectiveEvaluationError(
                    f"{name} ({template.id}): '{match.group(0)}' must be the whole "
                    "value to reference a unit or a collection"
                )
            return "" if found is None else str(found)

        return PLACEHOLDER.sub(substitute, text)

    def _lookup(
        self,
        expr: str,
        template: TemplateRecord,
        name: str,
        bindings: Mapping[str, Any],
    ) -> Any:
        try:
            segments = split_path(expr)
        except DirectiveEvaluationError as e:
            raise DirectiveEvaluationError(f"{name} ({template.id}): {e.message}") from e

        head = segments[0]
        if not isinstance(head, str) or template.arg(head) is None:
            raise DanglingReferenceError(name, expr, f"{template.id} declares no such argument")

        value = bindings.get(head)
        for i, segment in enumerate(segments[1:], start=1):
            if value is None:
                if i == 1:
                    # unbound optional argument
                    return None
                raise DanglingReferenceError(name, expr, f"{join_path(segments[:i])} is empty")
            if isinstance(value, Ref):
                rest = join_path(tuple(segments[i:]))
                return value.child(rest)
            if isinstance(value, dict) and isinstance(segment, str) and segment in value:
                value = value[segment]
            elif (
                isinstance(value, (list, tuple))
                and isinstance(segment, int)
                and 0 <= segment < len(value)
            ):
                value = value[segment]
            else:
                raise DanglingReferenceError(
                    name, expr, f"{join_path(segments[: i + 1])} is absent"
                )
        return copy.deepcopy(value)

    # ------------------------------------------------------------------ #
    # Properties / exports
    # ------------------------------------------------------------------ #

    def _outputs(
        self,
        template: TemplateRecord,
        name: str,
        step: str,
        fn: Any,
        *fn_args: Any,
    ) -> Dict[str, DeferredValue[Any]]:
        if fn is None:
            return {}
        try:
            produced = fn(*fn_args)
        except IacgenError:
            raise
        except Exception as e:
            raise InvalidTemplateError(template.id, f"{step} failed for {name}: {e}") from e
        if produced is None:
            return {}
        if not isinstance(produced, Mapping):
            raise InvalidTemplateError(
                template.id, f"{step} must return a mapping, got {type(produced).__name__}"
            )
        outputs: Dict[str, DeferredValue[Any]] = {}
        for key, value in produced.items():
            if isinstance(value, DeferredValue):
                outputs[key] = value
            else:
                outputs[key] = DeferredValue.resolved(value, depends_on={name})
        return outputs


def _check_type(unit: str, argument: str, expected: str, value: Any) -> None:
    try:
        shape = shape_of(value)
    except TypeError as e:
        raise TypeMismatchError(unit, argument, expected, str(e)) from e

    if expected == "resource" or expected.startswith("resource:"):
        if not isinstance(value, Ref):
            raise TypeMismatchError(unit, argument, expected, f"got a {shape.describe()} literal")
        if value.attribute is not None:
            raise TypeMismatchError(
                unit, argument, expected, f"got attribute reference {value}"
            )
        return

    if isinstance(value, Ref) or expected == "any":
        return

    if expected.startswith("list[") and expected.endswith("]"):
        if not isinstance(value, (list, tuple)):
            raise TypeMismatchError(unit, argument, expected, f"got {shape.describe()}")
        for i, item in enumerate(value):
            if item is not None:
                _check_type(unit, f"{argument}[{i}]", expected[5:-1], item)
        return

    ok = {
        "string": isinstance(value, str),
        "number": isinstance(value, (int, float)) and not isinstance(value, bool),
        "boolean": isinstance(value, bool),
        "object": isinstance(value, Mapping),
        "list": isinstance(value, (list, tuple)),
    }.get(expected)
    if ok is None:
        raise TypeMismatchError(unit, argument, expected, "which is not a known type")
    if not ok:
        raise TypeMismatchError(unit, argument, expected, f"got {shape.describe()}")


_default_binder = Binder()


def bind(
    template: TemplateRecord,
    name: str,
    bindings: Mapping[str, Any],
    options: Optional[Mapping[str, Any]] = None,
) -> CompiledUnit:
    """Bind with default settings. See Binder.bind."""
    return _default_binder.bind(template, name, bindings, options)
