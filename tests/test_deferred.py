import threading

import pytest

from iacgen.exceptions import PropertyDerivationFailed, ResourceCreationFailed
from iacgen.runtime.deferred import DeferredState, DeferredValue, gather, plain


def test_map_is_lazy():
    calls = []
    source = DeferredValue(depends_on={"stage"})

    def step(value):
        calls.append(value)
        return value + 1

    out = source
    for _ in range(5):
        out = out.map(step)
    assert calls == []
    assert out.pending
    assert out.depends_on == {"stage"}

    source.resolve(0)
    assert calls == [0, 1, 2, 3, 4]
    assert out.result() == 5


def test_failure_reaches_every_downstream_transform():
    source = DeferredValue()
    chain = [source.map(str.upper)]
    for _ in range(3):
        chain.append(chain[-1].map(lambda v: v + "!"))
    error = ResourceCreationFailed("stage", "quota exceeded")
    source.fail(error)
    for value in chain:
        assert value.is_failed
        assert value.error is error


def test_raising_transform_fails_with_property_derivation():
    out = DeferredValue.resolved("no-slashes").map(lambda url: url.split("//")[1])
    assert out.is_failed
    assert isinstance(out.error, PropertyDerivationFailed)
    assert isinstance(out.error.__cause__, IndexError)
    with pytest.raises(PropertyDerivationFailed):
        out.result()


def test_map_follows_returned_deferred():
    inner = DeferredValue()
    out = DeferredValue.resolved(1).map(lambda _: inner)
    assert out.pending
    inner.resolve("later")
    assert out.result() == "later"


def test_combine():
    a, b = DeferredValue(depends_on={"a"}), DeferredValue(depends_on={"b"})
    joined = a.combine(b, lambda x, y: f"{x}/{y}")
    assert joined.depends_on == {"a", "b"}
    b.resolve("prod")
    assert joined.pending
    a.resolve("https://api")
    assert joined.result() == "https://api/prod"


def test_combine_propagates_failure():
    a, b = DeferredValue(), DeferredValue()
    joined = a.combine(b, lambda x, y: x + y)
    b.fail(ResourceCreationFailed("b", "boom"))
    assert joined.is_failed


def test_values_are_write_once():
    value = DeferredValue(label="x")
    value.resolve(1)
    with pytest.raises(RuntimeError):
        value.resolve(2)
    with pytest.raises(RuntimeError):
        value.fail(ValueError("late"))
    assert value.state is DeferredState.RESOLVED


def test_result_while_pending():
    with pytest.raises(RuntimeError):
        DeferredValue(label="url").result()


def test_gather_mapping_and_plain_values():
    a = DeferredValue()
    out = gather({"a": a, "b": 2})
    assert out.pending
    a.resolve(1)
    assert out.result() == {"a": 1, "b": 2}
    assert gather({}).result() == {}


def test_gather_fails_fast():
    a, b = DeferredValue(), DeferredValue()
    out = gather([a, b])
    a.fail(ResourceCreationFailed("a", "boom"))
    assert out.is_failed
    b.resolve(1)
    assert out.is_failed


def test_on_settled_runs_in_registration_order():
    value = DeferredValue()
    seen = []
    value.on_settled(lambda v: seen.append(1))
    value.on_settled(lambda v: seen.append(2))
    value.resolve(None)
    value.on_settled(lambda v: seen.append(3))
    assert seen == [1, 2, 3]


def test_resolve_from_another_thread():
    value = DeferredValue()
    out = value.map(lambda v: v * 2)
    worker = threading.Thread(target=value.resolve, args=(21,))
    worker.start()
    worker.join()
    assert out.result() == 42


def test_plain_unwraps_nested_values():
    assert plain({"a": [DeferredValue.resolved(1)], "b": DeferredValue.resolved({"c": 2})}) == {
        "a": [1],
        "b": {"c": 2},
    }


def test_long_chain_settles_without_deep_recursion():
    source = DeferredValue()
    out = source
    for _ in range(5000):
        out = out.map(lambda v: v + 1)
    source.resolve(0)
    assert out.result() == 5000


def test_continuation_settles_before_outer_resolve_returns():
    source = DeferredValue()
    seen = []
    first = source.map(lambda v: v + 1)
    first.map(lambda v: v * 10).on_settled(lambda v: seen.append(v.result()))
    source.resolve(1)
    assert seen == [20]
