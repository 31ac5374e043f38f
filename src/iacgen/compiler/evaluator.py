"""Directive Evaluator - resolves TMPL directives against argument shapes.

Evaluation depends only on the static shape of the bound arguments, so the
same (directives, shape) pair always expands to byte-identical text.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple, Union

from jinja2 import Template, TemplateError

from iacgen.ast.path import Segment, join_path, split_path
from iacgen.ast.spec import Conditional, DirectiveNode, Interpolation, Text
from iacgen.compiler.extensions import get_directive_env
from iacgen.compiler.shape import RefShape, Shape
from iacgen.exceptions import DirectiveEvaluationError

log = logging.getLogger(__name__)

PathLike = Union[str, Tuple[Segment, ...]]


def lookup(shape: Shape, path: PathLike) -> Optional[Shape]:
    """Walk `shape` along `path`.

    Returns:
        The shape at the end of the path, or None if any segment is absent.

    Raises:
        DirectiveEvaluationError: If the path descends into a cross-unit
            reference, whose attributes are unknown at generation time.
    """
    segments = split_path(path) if isinstance(path, str) else path
    current: Shape = shape
    for i, segment in enumerate(segments):
        if isinstance(current, RefShape):
            walked = join_path(tuple(segments[:i]))
            raise DirectiveEvaluationError(
                f"path {join_path(tuple(segments))} descends into reference "
                f"{current.ref} at {walked}; directives cannot inspect values "
                "of other units"
            )
        child = current.child(segment)
        if child is None:
            return None
        current = child
    return current


def path_exists_or_truthy(shape: Shape, path: PathLike) -> bool:
    """True iff every segment of `path` exists and the terminal value is non-empty.

    Absent segments at any depth are falsy, never an error.
    """
    found = lookup(shape, path)
    if found is None:
        return False
    return found.truthy


def expand(
    directives: Sequence[DirectiveNode], shape: Shape, tag_literals: bool = False
) -> str:
    """Expand a directive sequence into final source text.

    Args:
        directives: Parsed directive nodes of a template's create body.
        shape: Static shape of the call site's bound arguments.
        tag_literals: Mark each interpolated literal with the `!literal`
            YAML tag so the binder leaves it untouched.

    Returns:
        Expanded text. No validation of the embedded language is done here.

    Raises:
        DirectiveEvaluationError: On interpolation of an absent path or any
            path that descends into a reference.
    """
    template, chunks, paths = _compile(tuple(directives))
    try:
        text = template.render(
            shape=shape, chunks=chunks, paths=paths, tag_literals=tag_literals
        )
    except DirectiveEvaluationError:
        raise
    except TemplateError as e:
        raise DirectiveEvaluationError(f"could not expand directives: {e}") from e
    log.debug("expanded %d directive nodes to %d bytes", len(directives), len(text))
    return text


@lru_cache(maxsize=256)
def _compile(
    directives: Tuple[DirectiveNode, ...],
) -> Tuple[Template, Tuple[str, ...], Tuple[Tuple[Segment, ...], ...]]:
    """Lower directive nodes to a Jinja template.

    Literal text and paths become indexes into context lists, so body text
    never reaches the Jinja lexer.
    """
    chunks: List[str] = []
    paths: List[Tuple[Segment, ...]] = []
    out: List[str] = []

    def emit(nodes: Sequence[DirectiveNode]) -> None:
        for node in nodes:
            if isinstance(node, Text):
                for part in node.parts:
                    if isinstance(part, Interpolation):
                        paths.append(part.path)
                        out.append(f"{{{{ paths[{len(paths) - 1}] | literal }}}}")
                    else:
                        chunks.append(part)
                        out.append(f"{{{{ chunks[{len(chunks) - 1}] }}}}")
            elif isinstance(node, Conditional):
                paths.append(node.predicate.path)
                test = "is not present" if node.predicate.negate else "is present"
                out.append(f"{{% if paths[{len(paths) - 1}] {test} %}}")
                emit(node.then_branch)
                if node.else_branch:
                    out.append("{% else %}")
                    emit(node.else_branch)
                out.append("{% endif %}")
            else:
                raise DirectiveEvaluationError(f"unknown directive node: {node!r}")

    emit(directives)
    template = get_directive_env().from_string("".join(out))
    return template, tuple(chunks), tuple(paths)
