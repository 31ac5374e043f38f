"""Provisioning backend interface.

The backend is the external collaborator that actually creates resources
and resolves their provider-assigned attributes. The core only needs
`create_resource(kind, name, inputs, options) -> ResourceHandle` and the
handle's deferred attributes.

Implementations:
- InMemoryBackend: records calls and resolves handles on demand (dry runs, tests)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from iacgen.exceptions import PropertyDerivationFailed, ResourceCreationFailed
from iacgen.runtime.deferred import DeferredValue

log = logging.getLogger(__name__)


class ResourceHandle:
    """Opaque handle for a provider resource.

    `ready` settles with the resource's attribute mapping once the backend
    reports the creation outcome; every attribute is derived from it.
    """

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        self.ready: DeferredValue[Dict[str, Any]] = DeferredValue(
            depends_on={name}, label=f"{name}.ready"
        )
        self._attributes: Dict[str, DeferredValue[Any]] = {}

    def attribute(self, attribute: str) -> DeferredValue[Any]:
        """Deferred provider attribute, e.g. `id`, `arn`, `invokeUrl`."""
        if attribute not in self._attributes:
            name = self.name

            def pick(attrs: Mapping[str, Any]) -> Any:
                if attribute not in attrs:
                    raise PropertyDerivationFailed(
                        f"resource '{name}' has no attribute '{attribute}'", unit=name
                    )
                return attrs[attribute]

            value = self.ready.map(pick)
            value.label = f"{name}.{attribute}"
            self._attributes[attribute] = value
        return self._attributes[attribute]

    @property
    def id(self) -> DeferredValue[Any]:
        return self.attribute("id")

    def succeed(self, attributes: Mapping[str, Any]) -> None:
        self.ready.resolve(dict(attributes))

    def fail(self, error: BaseException) -> None:
        self.ready.fail(error)

    def adopt(self, other: "ResourceHandle") -> None:
        """Settle this handle with whatever `other` settles with."""
        if other is self:
            return

        def forward(src: DeferredValue[Dict[str, Any]]) -> None:
            if src.is_failed:
                assert src.error is not None
                self.ready.fail(src.error)
            else:
                self.ready.resolve(src.result())

        other.ready.on_settled(forward)

    def __repr__(self) -> str:
        return f"ResourceHandle({self.kind!r}, {self.name!r}, {self.ready.state.value})"


class Backend(ABC):
    """Abstract provisioning backend."""

    @abstractmethod
    def create_resource(
        self,
        kind: str,
        name: str,
        inputs: Mapping[str, Any],
        options: Mapping[str, Any],
    ) -> ResourceHandle:
        """Issue the creation of one resource.

        Args:
            kind: Provider resource kind (e.g. "aws:kms/alias:Alias").
            name: Logical resource name.
            inputs: Fully resolved provider inputs.
            options: Resource options (`dependsOn`, `protect`, ...).

        Returns:
            A handle whose `ready` value settles when the backend finishes.
        """
        pass


@dataclass
class CreateContext:
    """Everything a template's create step may use."""

    backend: Backend
    kind: str
    name: str
    inputs: Dict[str, Any]
    options: Dict[str, Any] = field(default_factory=dict)


def default_create(ctx: CreateContext) -> ResourceHandle:
    """Create step used by templates that do not define their own."""
    return ctx.backend.create_resource(ctx.kind, ctx.name, ctx.inputs, ctx.options)


@dataclass
class CreateCall:
    kind: str
    name: str
    inputs: Dict[str, Any]
    options: Dict[str, Any]


AttributeFactory = Callable[[CreateCall], Mapping[str, Any]]


class InMemoryBackend(Backend):
    """Backend that keeps resources in memory.

    Handles stay pending until `succeed`/`fail` is called, unless
    `auto_attributes` is set, in which case every resource resolves as soon
    as it is created with an `id`, an `arn`, its own inputs, and whatever
    the optional attribute factory adds.
    """

    def __init__(
        self,
        auto_attributes: bool = False,
        attribute_factory: Optional[AttributeFactory] = None,
        failures: Optional[Mapping[str, str]] = None,
    ):
        self.auto_attributes = auto_attributes
        self.attribute_factory = attribute_factory
        self.failures = dict(failures or {})
        self.calls: List[CreateCall] = []
        self.handles: Dict[str, ResourceHandle] = {}

    def create_resource(
        self,
        kind: str,
        name: str,
        inputs: Mapping[str, Any],
        options: Mapping[str, Any],
    ) -> ResourceHandle:
        if name in self.handles:
            raise ResourceCreationFailed(name, "resource already exists")
        call = CreateCall(kind=kind, name=name, inputs=dict(inputs), options=dict(options))
        self.calls.append(call)
        handle = ResourceHandle(kind, name)
        self.handles[name] = handle
        log.debug("created %s (%s)", name, kind)

        if name in self.failures:
            self.fail(name, self.failures[name])
        elif self.auto_attributes:
            self.succeed(name, self._auto(call))
        return handle

    def succeed(self, name: str, attributes: Optional[Mapping[str, Any]] = None) -> None:
        handle = self._handle(name)
        if attributes is None:
            attributes = self._auto(self._call(name))
        handle.succeed(attributes)

    def fail(self, name: str, reason: str) -> None:
        self._handle(name).fail(ResourceCreationFailed(name, reason))

    def issued(self, name: str) -> bool:
        return name in self.handles

    @property
    def issued_names(self) -> List[str]:
        return [call.name for call in self.calls]

    def _auto(self, call: CreateCall) -> Dict[str, Any]:
        attributes: Dict[str, Any] = dict(call.inputs)
        attributes.setdefault("id", f"{call.name}-id")
        attributes.setdefault("arn", f"arn:iacgen:{call.kind}:{call.name}")
        if self.attribute_factory is not None:
            attributes.update(self.attribute_factory(call))
        return attributes

    def _handle(self, name: str) -> ResourceHandle:
        if name not in self.handles:
            raise KeyError(f"resource '{name}' was never created")
        return self.handles[name]

    def _call(self, name: str) -> CreateCall:
        for call in self.calls:
            if call.name == name:
                return call
        raise KeyError(f"resource '{name}' was never created")
