"""Executor - dispatches compiled units to a backend in dependency order.

The executor never blocks on a backend. It issues every unit whose
dependencies have all succeeded, then reacts to handle settlements:

    create issued -> handle ready -> properties resolved -> exports resolved

and re-dispatches after each unit finishes. Settlement callbacks may arrive
on any thread (or synchronously from inside `create_resource`); dispatch is
serialized by a lock and re-runs while new work keeps appearing.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from iacgen.ast.spec import Ref
from iacgen.compiler.unit import CompiledUnit, UnitState
from iacgen.exceptions import (
    IacgenError,
    PropertyDerivationFailed,
    ResourceCreationFailed,
)
from iacgen.models import BuildReport, UnitReport, UnitStatus
from iacgen.runtime.backend import Backend, CreateContext, ResourceHandle
from iacgen.runtime.deferred import DeferredValue, gather, plain

if TYPE_CHECKING:
    from iacgen.compiler.compiler import CompiledStack

log = logging.getLogger(__name__)


class Executor:
    """Runs one compiled stack against a backend.

    Usage:
        executor = Executor(stack, backend)
        report = executor.run()       # issues every unit that is ready
        ...                           # backend settles handles
        executor.wait(timeout=60)
        report = executor.report()
    """

    def __init__(self, stack: CompiledStack, backend: Backend):
        self.stack = stack
        self.backend = backend
        self._lock = threading.RLock()
        self._done = threading.Event()
        self._dispatching = False
        self._again = False
        self._started = False
        self._cancel_requested = False
        self._issued: Set[str] = set()
        self._cancelled: Set[str] = set()
        self._started_at: Dict[str, datetime] = {}
        self._finished_at: Dict[str, datetime] = {}

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def run(self) -> BuildReport:
        """Issue every ready unit and return the report as it stands.

        Runtime failures are recorded on units, never raised.

        Raises:
            RuntimeError: If called twice, or if the stack's units were
                already executed by another build.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("executor already started")
            for unit in self.stack.units:
                if unit.state is not UnitState.BOUND:
                    raise RuntimeError(
                        f"unit '{unit.name}' is {unit.state.value}; "
                        "compile the stack again for a new build"
                    )
            self._started = True
        log.info("running stack %s (%d units)", self.stack.name, len(self.stack.units))
        self._dispatch()
        return self.report()

    def cancel(self) -> None:
        """Stop issuing new units. Units already issued run to completion."""
        with self._lock:
            self._cancel_requested = True
            for unit in self.stack.units:
                if unit.name not in self._issued and not unit.terminal:
                    self._cancelled.add(unit.name)
                    log.warning("cancelled %s", unit.name)
        self._dispatch()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every unit is terminal or cancelled. False on timeout."""
        return self._done.wait(timeout)

    def report(self) -> BuildReport:
        with self._lock:
            units: List[UnitReport] = []
            outputs: Dict[str, Dict[str, Any]] = {}
            for unit in self.stack.units:
                units.append(self._unit_report(unit))
                if unit.state is UnitState.EXPORTS_RESOLVED and unit.exports:
                    outputs[unit.name] = {
                        key: plain(value) for key, value in unit.exports.items()
                    }
            return BuildReport(stack=self.stack.name, units=units, outputs=outputs)

    def status(self, name: str) -> UnitStatus:
        return self._status(self.stack.unit(name))

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def _dispatch(self) -> None:
        with self._lock:
            if self._dispatching:
                self._again = True
                return
            self._dispatching = True

        while True:
            with self._lock:
                self._again = False
                ready = self._ready_units()
                self._issued.update(unit.name for unit in ready)
            for unit in ready:
                self._issue(unit)
            with self._lock:
                if not self._again:
                    self._dispatching = False
                    if self._finished():
                        self._done.set()
                    return

    def _ready_units(self) -> List[CompiledUnit]:
        if not self._started or self._cancel_requested:
            return []
        ready = []
        for unit in self.stack.units:
            if unit.name in self._issued or unit.state is not UnitState.BOUND:
                continue
            deps = self.stack.graph.dependencies(unit.name)
            if all(
                self.stack.unit(dep).state is UnitState.EXPORTS_RESOLVED for dep in deps
            ):
                ready.append(unit)
        return ready

    def _finished(self) -> bool:
        return all(
            unit.terminal or unit.name in self._cancelled for unit in self.stack.units
        )

    def _issue(self, unit: CompiledUnit) -> None:
        log.info("issuing %s (%s)", unit.name, unit.template_id)
        self._started_at[unit.name] = _now()
        try:
            inputs = self._materialize(unit, unit.inputs)
            options = self._materialize(unit, unit.options)
            ctx = CreateContext(
                backend=self.backend,
                kind=unit.template.kind,
                name=unit.name,
                inputs=inputs,
                options=options,
            )
            handle = unit.template.create(ctx)
            if not isinstance(handle, ResourceHandle):
                raise ResourceCreationFailed(
                    unit.name,
                    f"create step returned {type(handle).__name__}, not a ResourceHandle",
                )
        except IacgenError as e:
            self._fail(unit, _runtime_error(unit, e))
            return
        except Exception as e:
            error = ResourceCreationFailed(unit.name, f"{type(e).__name__}: {e}")
            error.__cause__ = e
            self._fail(unit, error)
            return

        assert unit.handle is not None
        unit.handle.adopt(handle)
        unit.handle.ready.on_settled(lambda src: self._on_created(unit, src))

    def _materialize(self, unit: CompiledUnit, value: Any) -> Any:
        """Replace Refs with the resolved values they point at."""
        if isinstance(value, Ref):
            try:
                return plain(self.stack.resolve_ref(value).result())
            except IacgenError as e:
                raise PropertyDerivationFailed(f"{value}: {e.message}", unit=unit.name) from e
        if isinstance(value, dict):
            return {k: self._materialize(unit, v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._materialize(unit, v) for v in value]
        return value

    # ------------------------------------------------------------------ #
    # Settlement
    # ------------------------------------------------------------------ #

    def _on_created(self, unit: CompiledUnit, ready: DeferredValue[Any]) -> None:
        if ready.is_failed:
            self._fail(unit, _runtime_error(unit, ready.error))
            return
        with self._lock:
            unit.transition(UnitState.CREATED)
        log.info("created %s", unit.name)
        gather(unit.properties).on_settled(lambda src: self._on_properties(unit, src))

    def _on_properties(self, unit: CompiledUnit, props: DeferredValue[Any]) -> None:
        if props.is_failed:
            self._fail(unit, _runtime_error(unit, props.error, derived=True))
            return
        with self._lock:
            unit.transition(UnitState.PROPERTIES_RESOLVED)
        gather(unit.exports).on_settled(lambda src: self._on_exports(unit, src))

    def _on_exports(self, unit: CompiledUnit, exports: DeferredValue[Any]) -> None:
        if exports.is_failed:
            self._fail(unit, _runtime_error(unit, exports.error, derived=True))
            return
        with self._lock:
            unit.transition(UnitState.EXPORTS_RESOLVED)
            self._finished_at[unit.name] = _now()
        log.info("succeeded %s", unit.name)
        self._dispatch()

    def _fail(self, unit: CompiledUnit, error: IacgenError) -> None:
        with self._lock:
            unit.fail(error)
            self._finished_at[unit.name] = _now()
            log.warning("%s failed: %s", unit.name, error.message)
            for name in self.stack.graph.transitive_dependents(unit.name):
                dependent = self.stack.unit(name)
                if dependent.terminal or name in self._issued or name in self._cancelled:
                    continue
                dependent.fail(
                    ResourceCreationFailed(name, f"upstream unit '{unit.name}' failed")
                )
                self._finished_at[name] = _now()
                log.warning("%s not created: depends on failed unit %s", name, unit.name)
        self._dispatch()

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def _status(self, unit: CompiledUnit) -> UnitStatus:
        if unit.state is UnitState.EXPORTS_RESOLVED:
            return UnitStatus.SUCCEEDED
        if unit.state is UnitState.FAILED:
            return UnitStatus.FAILED
        if unit.name in self._cancelled:
            return UnitStatus.CANCELLED
        if unit.name in self._issued:
            return UnitStatus.RUNNING
        return UnitStatus.PENDING

    def _unit_report(self, unit: CompiledUnit) -> UnitReport:
        common = dict(
            depends_on=self.stack.depends_on(unit.name),
            started_at=self._started_at.get(unit.name),
            finished_at=self._finished_at.get(unit.name),
        )
        if unit.error is not None:
            return UnitReport.from_error(unit.name, unit.template_id, unit.error, **common)
        return UnitReport(
            name=unit.name,
            template=unit.template_id,
            status=self._status(unit),
            **common,
        )


def _runtime_error(
    unit: CompiledUnit, error: Optional[BaseException], derived: bool = False
) -> IacgenError:
    """Normalize a settlement failure into a per-unit runtime error."""
    if isinstance(error, (ResourceCreationFailed, PropertyDerivationFailed)):
        return error
    reason = str(error) if error is not None else "unknown error"
    if isinstance(error, IacgenError):
        reason = error.message
    wrapped: IacgenError
    if derived:
        wrapped = PropertyDerivationFailed(reason, unit=unit.name)
    else:
        wrapped = ResourceCreationFailed(unit.name, reason)
    wrapped.__cause__ = error
    return wrapped


def _now() -> datetime:
    return datetime.now(timezone.utc)
