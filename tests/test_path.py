import pytest

from iacgen.ast.path import join_path, split_path
from iacgen.exceptions import DirectiveEvaluationError


def test_split_dotted_path():
    assert split_path("DefaultCacheBehavior.targetOriginId") == (
        "DefaultCacheBehavior",
        "targetOriginId",
    )


def test_split_index_and_key():
    assert split_path("Origins[0].originId") == ("Origins", 0, "originId")


def test_bracket_key_keeps_dots():
    assert split_path("Tags[key.with.dots]") == ("Tags", "key.with.dots")


def test_leading_dot_is_tolerated():
    assert split_path(".Origins[1]") == ("Origins", 1)


def test_nested_indexes():
    assert split_path("Matrix[0][2]") == ("Matrix", 0, 2)


@pytest.mark.parametrize(
    "bad",
    ["", ".", "a..b", "a.", "a[0", "a]0", "a[]", "a b", "a[0]b", "a.[0]"],
)
def test_malformed_paths(bad):
    with pytest.raises(DirectiveEvaluationError):
        split_path(bad)


def test_join_path_round_trips_display():
    assert join_path(("Origins", 0, "originId")) == "Origins[0].originId"
    assert join_path(("Tags", "key.with.dots")) == "Tags[key.with.dots]"
