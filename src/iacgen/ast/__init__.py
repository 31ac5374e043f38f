"""Template-level data model: records, argument specs and directive markup."""

from iacgen.ast.parser import Parser, parse_directives
from iacgen.ast.path import join_path, split_path
from iacgen.ast.spec import (
    Arg,
    Conditional,
    DirectiveNode,
    Interpolation,
    PathExistsOrTruthy,
    Ref,
    TemplateRecord,
    Text,
)

__all__ = [
    "Arg",
    "Conditional",
    "DirectiveNode",
    "Interpolation",
    "Parser",
    "PathExistsOrTruthy",
    "Ref",
    "TemplateRecord",
    "Text",
    "join_path",
    "parse_directives",
    "split_path",
]
