"""Directive markup parser.

Create bodies carry generation-time directives on specially tagged comment
lines so that the untemplated body stays valid YAML:

    restrictions: ${Restrictions}
    #TMPL {{- if DefaultRootObject }}
    defaultRootObject: ${DefaultRootObject}
    #TMPL {{- end }}

Tagged lines are either control lines (`if`/`else`/`end`) that produce no
output, or text lines whose marker is stripped. `{{ PATH }}` interpolations
may appear on any text line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from iacgen.ast.path import split_path
from iacgen.ast.spec import (
    Conditional,
    DirectiveNode,
    Interpolation,
    PathExistsOrTruthy,
    Text,
)
from iacgen.exceptions import DirectiveEvaluationError

DEFAULT_MARKER = "#TMPL"

CONTROL = re.compile(r"^\{\{-?\s*(if|else|end)\b\s*(.*?)\s*-?\}\}\s*$")
INTERPOLATION = re.compile(r"\{\{-?\s*(.*?)\s*-?\}\}")


@dataclass
class _Frame:
    predicate: PathExistsOrTruthy
    line: int
    then_branch: List[DirectiveNode] = field(default_factory=list)
    else_branch: List[DirectiveNode] = field(default_factory=list)
    in_else: bool = False

    @property
    def current(self) -> List[DirectiveNode]:
        return self.else_branch if self.in_else else self.then_branch


class Parser:
    """Parses create bodies into directive node tuples."""

    def __init__(self, marker: str = DEFAULT_MARKER):
        self.marker = marker
        self._tagged = re.compile(
            r"^(?P<indent>[ \t]*)" + re.escape(marker) + r" ?(?P<rest>.*)$"
        )

    def parse(self, source: str) -> Tuple[DirectiveNode, ...]:
        """Parse a create body.

        Args:
            source: Body text with directive markup.

        Returns:
            Ordered directive nodes; expanding them reproduces the body with
            the selected branches.

        Raises:
            DirectiveEvaluationError: On unbalanced branch markers or
                malformed predicate/interpolation paths.
        """
        root: List[DirectiveNode] = []
        stack: List[_Frame] = []

        for lineno, raw in enumerate(source.splitlines(), start=1):
            target = stack[-1].current if stack else root
            match = self._tagged.match(raw)
            if match is None:
                target.append(self._text(raw, lineno))
                continue

            rest = match.group("rest")
            control = CONTROL.match(rest.strip())
            if control is None:
                target.append(self._text(match.group("indent") + rest, lineno))
                continue

            keyword, operand = control.group(1), control.group(2)
            if keyword == "if":
                stack.append(_Frame(predicate=self._predicate(operand, lineno), line=lineno))
            elif keyword == "else":
                if operand:
                    raise DirectiveEvaluationError(
                        f"unexpected operand after else: {operand!r}", lineno
                    )
                if not stack:
                    raise DirectiveEvaluationError("else without if", lineno)
                if stack[-1].in_else:
                    raise DirectiveEvaluationError("duplicate else", lineno)
                stack[-1].in_else = True
            else:
                if operand:
                    raise DirectiveEvaluationError(
                        f"unexpected operand after end: {operand!r}", lineno
                    )
                if not stack:
                    raise DirectiveEvaluationError("end without if", lineno)
                frame = stack.pop()
                node = Conditional(
                    predicate=frame.predicate,
                    then_branch=tuple(frame.then_branch),
                    else_branch=tuple(frame.else_branch),
                    line=frame.line,
                )
                (stack[-1].current if stack else root).append(node)

        if stack:
            raise DirectiveEvaluationError("if without end", stack[-1].line)
        return tuple(root)

    def _predicate(self, operand: str, lineno: int) -> PathExistsOrTruthy:
        negate = False
        text = operand.strip()
        if text.startswith("not "):
            negate = True
            text = text[4:].strip()
        if not text:
            raise DirectiveEvaluationError("if without predicate", lineno)
        try:
            path = split_path(text)
        except DirectiveEvaluationError as e:
            raise DirectiveEvaluationError(e.message, lineno) from e
        return PathExistsOrTruthy(path=path, source=text, negate=negate)

    def _text(self, line: str, lineno: int) -> Text:
        parts: List[Union[str, Interpolation]] = []
        pos = 0
        for m in INTERPOLATION.finditer(line):
            if m.start() > pos:
                parts.append(line[pos : m.start()])
            expr = m.group(1)
            try:
                path = split_path(expr)
            except DirectiveEvaluationError as e:
                raise DirectiveEvaluationError(e.message, lineno) from e
            parts.append(Interpolation(path=path, source=expr.strip()))
            pos = m.end()
        if pos < len(line):
            parts.append(line[pos:])
        parts.append("\n")
        return Text(parts=tuple(parts), line=lineno)


def parse_directives(
    source: str, marker: Optional[str] = None
) -> Tuple[DirectiveNode, ...]:
    """Parse directive markup with the default or a custom marker."""
    return Parser(marker or DEFAULT_MARKER).parse(source)
