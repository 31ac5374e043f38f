"""Tests for static shapes and directive expansion."""

import pytest

from iacgen.ast.parser import parse_directives
from iacgen.ast.spec import Ref
from iacgen.compiler.evaluator import expand, lookup, path_exists_or_truthy
from iacgen.compiler.shape import ArrayShape, ObjectShape, RefShape, ScalarShape, describe_bindings, shape_of
from iacgen.exceptions import DirectiveEvaluationError

BINDINGS = {
    "Name": "site",
    "Origins": [{"originId": "o1", "domainName": "bucket.example"}],
    "DefaultCacheBehavior": {"allowedMethods": ["GET"]},
    "Empty": "",
    "Zero": 0,
    "NoKeys": {},
    "Key": Ref("key"),
}


@pytest.fixture
def shape():
    return describe_bindings(BINDINGS)


def test_shape_of_literals():
    assert shape_of("x") == ScalarShape("x")
    assert shape_of([1]) == ArrayShape((ScalarShape(1),))
    assert shape_of({"a": None}) == ObjectShape((("a", ScalarShape(None)),))
    assert shape_of(Ref("k")) == RefShape(Ref("k"))


def test_shape_of_rejects_non_literals():
    with pytest.raises(TypeError):
        shape_of(object())


@pytest.mark.parametrize(
    "path, expected",
    [
        ("Name", True),
        ("Origins", True),
        ("Origins[0].originId", True),
        ("DefaultCacheBehavior.allowedMethods[0]", True),
        ("Key", True),
        ("Empty", False),
        ("Zero", False),
        ("NoKeys", False),
        ("Missing", False),
        ("DefaultCacheBehavior.targetOriginId", False),
        ("Origins[5].originId", False),
        ("Origins.originId", False),
        ("Name.deeper.still", False),
        ("Missing.a.b.c.d", False),
    ],
)
def test_path_exists_or_truthy(shape, path, expected):
    assert path_exists_or_truthy(shape, path) is expected


def test_descending_into_reference_is_an_error(shape):
    with pytest.raises(DirectiveEvaluationError):
        path_exists_or_truthy(shape, "Key.arn")


def test_lookup_returns_shape(shape):
    assert lookup(shape, "Origins[0].originId") == ScalarShape("o1")
    assert lookup(shape, ("Origins", 0, "nope")) is None


def test_expand_selects_branches(shape):
    directives = parse_directives(
        "#TMPL {{- if DefaultCacheBehavior.targetOriginId }}\n"
        "a: then\n"
        "#TMPL {{- else }}\n"
        "a: else\n"
        "#TMPL {{- end }}\n"
        "#TMPL {{- if not Empty }}\n"
        "b: empty\n"
        "#TMPL {{- end }}\n"
    )
    assert expand(directives, shape) == "a: else\nb: empty\n"


def test_expand_interpolates_json_literals(shape):
    directives = parse_directives(
        "id: {{ Origins[0].originId }}\n"
        "#TMPL methods: {{ DefaultCacheBehavior.allowedMethods }}\n"
    )
    assert expand(directives, shape) == 'id: "o1"\nmethods: ["GET"]\n'


def test_expand_is_deterministic(shape):
    directives = parse_directives(
        "#TMPL {{- if Name }}\nname: {{ Name }}\n#TMPL {{- end }}\n"
    )
    first = expand(directives, shape)
    second = expand(directives, describe_bindings(dict(BINDINGS)))
    assert first == second == 'name: "site"\n'


def test_body_text_is_not_jinja(shape):
    """Literal body text containing Jinja syntax is copied verbatim."""
    directives = parse_directives("x: '{% raw %}'\ny: ${Name}\n")
    assert expand(directives, shape) == "x: '{% raw %}'\ny: ${Name}\n"


def test_interpolating_absent_path_fails(shape):
    with pytest.raises(DirectiveEvaluationError):
        expand(parse_directives("id: {{ Origins[3].originId }}\n"), shape)


def test_interpolating_reference_fails(shape):
    with pytest.raises(DirectiveEvaluationError):
        expand(parse_directives("key: {{ Key }}\n"), shape)


def test_interpolating_collection_holding_reference_fails():
    shape = describe_bindings({"Cfg": {"a": [1, Ref("other", "arn")]}})
    with pytest.raises(DirectiveEvaluationError, match="other.arn inside Cfg"):
        expand(parse_directives("cfg: {{ Cfg }}\n"), shape)


def test_expand_can_tag_literals(shape):
    directives = parse_directives("id: {{ Origins[0].originId }}\n")
    assert expand(directives, shape, tag_literals=True) == 'id: !literal "\\"o1\\""\n'
    assert expand(directives, shape) == 'id: "o1"\n'
