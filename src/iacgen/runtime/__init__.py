"""Runtime side: deferred values and the provisioning backend interface."""

from iacgen.runtime.backend import Backend, CreateContext, InMemoryBackend, ResourceHandle
from iacgen.runtime.deferred import DeferredState, DeferredValue, gather

__all__ = [
    "Backend",
    "CreateContext",
    "DeferredState",
    "DeferredValue",
    "InMemoryBackend",
    "ResourceHandle",
    "gather",
]
