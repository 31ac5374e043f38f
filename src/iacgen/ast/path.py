"""Argument paths - dot/bracket notation over argument names and literal keys.

    DefaultCacheBehavior.targetOriginId -> ("DefaultCacheBehavior", "targetOriginId")
    Origins[0].originId                 -> ("Origins", 0, "originId")
    Tags[key.with.dots]                 -> ("Tags", "key.with.dots")
"""

from __future__ import annotations

from typing import Tuple, Union

from iacgen.exceptions import DirectiveEvaluationError

Segment = Union[str, int]


def split_path(path: str) -> Tuple[Segment, ...]:
    """Split a path into key and index segments.

    A leading '.' is tolerated so Go-template style paths (`.Origins`) work.
    Bracket contents that parse as integers become list indexes, anything
    else is a literal key.

    Raises:
        DirectiveEvaluationError: On an empty path, an empty segment or
            unbalanced brackets.
    """
    text = path.strip()
    if text.startswith("."):
        text = text[1:]
    if not text:
        raise DirectiveEvaluationError(f"empty path: {path!r}")

    segments: list[Segment] = []
    buf = ""
    i = 0
    expect_key = True  # a bare key may follow start or '.'
    while i < len(text):
        ch = text[i]
        if ch == ".":
            if expect_key and not buf:
                raise DirectiveEvaluationError(f"empty segment in path: {path!r}")
            if buf:
                segments.append(buf)
                buf = ""
            expect_key = True
            i += 1
        elif ch == "[":
            if buf:
                segments.append(buf)
                buf = ""
            elif expect_key and segments:
                raise DirectiveEvaluationError(f"empty segment in path: {path!r}")
            end = text.find("]", i)
            if end == -1:
                raise DirectiveEvaluationError(f"unbalanced '[' in path: {path!r}")
            inner = text[i + 1 : end].strip()
            if not inner or "[" in inner:
                raise DirectiveEvaluationError(f"invalid index in path: {path!r}")
            segments.append(int(inner) if _is_int(inner) else inner)
            expect_key = False
            i = end + 1
        elif ch == "]":
            raise DirectiveEvaluationError(f"unbalanced ']' in path: {path!r}")
        elif ch.isspace():
            raise DirectiveEvaluationError(f"whitespace in path: {path!r}")
        else:
            if not expect_key:
                raise DirectiveEvaluationError(
                    f"expected '.' or '[' after index in path: {path!r}"
                )
            buf += ch
            i += 1

    if buf:
        segments.append(buf)
    elif expect_key:
        raise DirectiveEvaluationError(f"trailing '.' in path: {path!r}")
    return tuple(segments)


def join_path(segments: Tuple[Segment, ...]) -> str:
    """Inverse of split_path for display."""
    out = ""
    for seg in segments:
        if isinstance(seg, int):
            out += f"[{seg}]"
        elif "." in seg:
            out += f"[{seg}]"
        else:
            out += f".{seg}" if out else seg
    return out


def _is_int(text: str) -> bool:
    if text.startswith("-"):
        return text[1:].isdigit()
    return text.isdigit()
