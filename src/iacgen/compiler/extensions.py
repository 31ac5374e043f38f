"""Jinja2 environment used to render expanded directive trees.

Directive trees are lowered to a small Jinja template in which every piece
of literal body text is a context value, so nothing in a create body is ever
interpreted by Jinja itself. The only hooks into the argument shape are the
`present` test and the `literal` filter registered here.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Optional

from jinja2 import StrictUndefined, pass_context
from jinja2.sandbox import SandboxedEnvironment

from iacgen.compiler.shape import ArrayShape, ObjectShape, RefShape, Shape
from iacgen.exceptions import DirectiveEvaluationError

LITERAL_TAG = "!literal"


@pass_context
def present(context, path) -> bool:
    """Jinja test: `paths[0] is present`."""
    from iacgen.compiler.evaluator import path_exists_or_truthy

    return path_exists_or_truthy(context["shape"], path)


@pass_context
def literal(context, path) -> str:
    """Jinja filter: render the literal at `path` as a JSON/YAML scalar or flow collection.

    With `tag_literals` set in the render context the text is wrapped as
    `!literal "<json>"`, so a YAML loader can tell call-site data apart
    from template text.
    """
    from iacgen.compiler.evaluator import lookup

    found = lookup(context["shape"], path)
    if found is None:
        raise DirectiveEvaluationError(f"cannot interpolate absent path: {_display(path)}")
    ref = _first_ref(found)
    if ref is not None:
        where = "" if found is ref else f" inside {_display(path)}"
        raise DirectiveEvaluationError(
            f"cannot interpolate cross-unit reference {ref.ref}{where}: "
            "its value is not known at generation time"
        )
    text = json.dumps(found.literal(), sort_keys=False, separators=(", ", ": "))
    if context.get("tag_literals"):
        return f"{LITERAL_TAG} {json.dumps(text)}"
    return text


def _first_ref(shape: Shape) -> Optional[RefShape]:
    pending = [shape]
    while pending:
        current = pending.pop()
        if isinstance(current, RefShape):
            return current
        if isinstance(current, ObjectShape):
            pending.extend(reversed([child for _, child in current.fields]))
        elif isinstance(current, ArrayShape):
            pending.extend(reversed(current.items))
    return None


def _display(path: Any) -> str:
    from iacgen.ast.path import join_path

    return join_path(path) if isinstance(path, tuple) else str(path)


@lru_cache(maxsize=1)
def get_directive_env() -> SandboxedEnvironment:
    """Create the shared Jinja2 environment for directive expansion.

    Returns:
        Configured sandboxed Environment. It is stateless between renders:
        the shape travels in the render context.
    """
    env = SandboxedEnvironment(
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.tests["present"] = present
    env.filters["literal"] = literal
    return env
