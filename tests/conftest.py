"""Shared fixtures."""

from __future__ import annotations

import types

import pytest

from iacgen.ast.spec import Arg
from iacgen.compiler import Compiler
from iacgen.config import CompilerConfig
from iacgen.registry import TemplateRegistry, load_template_module
from iacgen.runtime.backend import InMemoryBackend


@pytest.fixture(scope="session")
def registry() -> TemplateRegistry:
    return TemplateRegistry(CompilerConfig())


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def auto_backend() -> InMemoryBackend:
    return InMemoryBackend(auto_attributes=True)


@pytest.fixture
def compiler(registry) -> Compiler:
    return Compiler(registry=registry)


@pytest.fixture
def make_template():
    """Build a TemplateRecord from inline module attributes."""

    def make(template_id="test:thing", kind="test:Thing", args=(), body="", **attrs):
        module = types.ModuleType(template_id.replace(":", "_"))
        module.KIND = kind
        module.ARGS = list(args)
        module.CREATE = body
        for key, value in attrs.items():
            setattr(module, key, value)
        return load_template_module(module, template_id)

    return make


@pytest.fixture
def thing(make_template):
    """A small template with one required, one optional and one resource argument."""
    return make_template(
        args=[
            Arg("Name", "string"),
            Arg("Size", "number", required=False),
            Arg("Parent", "resource", required=False),
        ],
        body="name: ${Name}\nsize: ${Size}\nparent: ${Parent}\n",
    )
