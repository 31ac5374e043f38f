"""Deferred Value Pipeline.

A DeferredValue is a write-once placeholder for a value the provisioning
backend determines after graph construction (a resource id, an invoke URL).
`map` and `combine` never block: they register a continuation that runs when
the source settles. Failures travel down every chain unchanged; a transform
that raises fails its own output with PropertyDerivationFailed.
"""

from __future__ import annotations

import threading
from collections import deque
from enum import Enum
from typing import (
    Any,
    Callable,
    Deque,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
)

from iacgen.exceptions import PropertyDerivationFailed

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")


class DeferredState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class DeferredValue(Generic[T]):
    """Write-once, read-many placeholder for an asynchronously resolved value."""

    def __init__(self, depends_on: Iterable[str] = (), label: Optional[str] = None):
        self.depends_on = frozenset(depends_on)
        self.label = label
        self._lock = threading.Lock()
        self._state = DeferredState.PENDING
        self._value: Any = None
        self._error: Optional[BaseException] = None
        self._callbacks: List[Callable[["DeferredValue[T]"], None]] = []

    # Construction helpers -------------------------------------------------

    @classmethod
    def resolved(cls, value: T, depends_on: Iterable[str] = ()) -> "DeferredValue[T]":
        out: DeferredValue[T] = cls(depends_on=depends_on)
        out.resolve(value)
        return out

    @classmethod
    def failed(cls, error: BaseException, depends_on: Iterable[str] = ()) -> "DeferredValue[Any]":
        out: DeferredValue[Any] = cls(depends_on=depends_on)
        out.fail(error)
        return out

    # State ---------------------------------------------------------------

    @property
    def state(self) -> DeferredState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is DeferredState.PENDING

    @property
    def is_resolved(self) -> bool:
        return self._state is DeferredState.RESOLVED

    @property
    def is_failed(self) -> bool:
        return self._state is DeferredState.FAILED

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def result(self) -> T:
        """Return the resolved value.

        Raises:
            The failure, if the value failed.
            RuntimeError: If the value is still pending.
        """
        if self._state is DeferredState.RESOLVED:
            return self._value
        if self._state is DeferredState.FAILED:
            assert self._error is not None
            raise self._error
        raise RuntimeError(f"deferred value {self._name()} is still pending")

    # Settling --------------------------------------------------------------

    def resolve(self, value: T) -> None:
        self._settle(DeferredState.RESOLVED, value, None)

    def fail(self, error: BaseException) -> None:
        self._settle(DeferredState.FAILED, None, error)

    def _settle(
        self, state: DeferredState, value: Any, error: Optional[BaseException]
    ) -> None:
        with self._lock:
            if self._state is not DeferredState.PENDING:
                raise RuntimeError(
                    f"deferred value {self._name()} already {self._state.value}"
                )
            self._state = state
            self._value = value
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
        _run_callbacks([(callback, self) for callback in callbacks])

    def on_settled(self, callback: Callable[["DeferredValue[T]"], None]) -> None:
        """Run `callback(self)` once settled; immediately if already settled."""
        with self._lock:
            if self._state is DeferredState.PENDING:
                self._callbacks.append(callback)
                return
        callback(self)

    # Transforms ------------------------------------------------------------

    def map(self, fn: Callable[[T], U]) -> "DeferredValue[U]":
        """Derive a new value with `fn` once this one resolves.

        `fn` may return a plain value or another DeferredValue, which is
        followed.
        """
        out: DeferredValue[U] = DeferredValue(depends_on=self.depends_on)

        def continuation(src: DeferredValue[T]) -> None:
            if src.is_failed:
                assert src.error is not None
                out.fail(src.error)
                return
            try:
                mapped = fn(src._value)
            except PropertyDerivationFailed as e:
                out.fail(e)
                return
            except Exception as e:
                failure = PropertyDerivationFailed(f"{type(e).__name__}: {e}")
                failure.__cause__ = e
                out.fail(failure)
                return
            _forward(mapped, out)

        self.on_settled(continuation)
        return out

    def combine(
        self, other: "DeferredValue[U]", fn: Callable[[T, U], V]
    ) -> "DeferredValue[V]":
        """Derive a value from this one and `other` once both resolve."""
        return gather([self, other]).map(lambda values: fn(values[0], values[1]))

    def __repr__(self) -> str:
        if self._state is DeferredState.RESOLVED:
            return f"DeferredValue({self._value!r})"
        if self._state is DeferredState.FAILED:
            return f"DeferredValue(failed: {self._error})"
        return f"DeferredValue(<{self._name()} pending>)"

    def _name(self) -> str:
        return self.label or "<anonymous>"


_local = threading.local()


def _run_callbacks(callbacks: List[Tuple[Callable[[Any], None], Any]]) -> None:
    """Run settlement callbacks from a per-thread queue.

    A settle that happens inside a callback only enqueues its own callbacks,
    so a chain of any length runs in a loop instead of nested calls. The
    outermost settle on a thread drains the queue before returning.
    """
    queue: Optional[Deque[Tuple[Callable[[Any], None], Any]]] = getattr(_local, "queue", None)
    if queue is not None:
        queue.extend(callbacks)
        return
    queue = _local.queue = deque(callbacks)
    try:
        while queue:
            callback, src = queue.popleft()
            callback(src)
    finally:
        _local.queue = None


def _forward(value: Any, out: DeferredValue[Any]) -> None:
    if isinstance(value, DeferredValue):
        def follow(src: DeferredValue[Any]) -> None:
            if src.is_failed:
                assert src.error is not None
                out.fail(src.error)
            else:
                out.resolve(src._value)

        value.on_settled(follow)
    else:
        out.resolve(value)


def gather(values: Any) -> DeferredValue[Any]:
    """Combine a list or mapping of deferred values into one.

    Plain values are accepted and passed through. The result resolves to a
    list (or dict with the same keys) once every input resolves, and fails
    as soon as any input fails.
    """
    if isinstance(values, Mapping):
        keys: Optional[List[Any]] = list(values.keys())
        items = [values[k] for k in keys]
    else:
        keys = None
        items = list(values)

    deferred = [v for v in items if isinstance(v, DeferredValue)]
    depends_on: frozenset = frozenset().union(*(d.depends_on for d in deferred))
    out: DeferredValue[Any] = DeferredValue(depends_on=depends_on)

    lock = threading.Lock()
    remaining = [len(deferred)]
    finished = [False]

    def resolve_all() -> None:
        resolved = [
            item._value if isinstance(item, DeferredValue) else item for item in items
        ]
        if keys is None:
            out.resolve(resolved)
        else:
            out.resolve(dict(zip(keys, resolved)))

    def settled(src: DeferredValue[Any]) -> None:
        with lock:
            if finished[0]:
                return
            remaining[0] -= 1
            if src.is_failed:
                finished[0] = True
            elif remaining[0] == 0:
                finished[0] = True
            else:
                return
        if src.is_failed:
            assert src.error is not None
            out.fail(src.error)
        else:
            resolve_all()

    if not deferred:
        resolve_all()
    for d in deferred:
        d.on_settled(settled)
    return out


def plain(value: Any) -> Any:
    """Replace resolved DeferredValues inside nested containers by their values."""
    if isinstance(value, DeferredValue):
        return plain(value.result())
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


__all__ = ["DeferredState", "DeferredValue", "gather", "plain"]
