"""iacgen - resource template compiler and value-propagation runtime."""

from iacgen.compiler import CompiledStack, Compiler, Renderer
from iacgen.config import CompilerConfig, load_config
from iacgen.exceptions import ErrorKind, IacgenError
from iacgen.registry import TemplateRegistry
from iacgen.runtime import DeferredValue, InMemoryBackend
from iacgen.runtime.executor import Executor

__version__ = "0.1.0"

__all__ = [
    "CompiledStack",
    "Compiler",
    "CompilerConfig",
    "DeferredValue",
    "ErrorKind",
    "Executor",
    "IacgenError",
    "InMemoryBackend",
    "Renderer",
    "TemplateRegistry",
    "load_config",
]
