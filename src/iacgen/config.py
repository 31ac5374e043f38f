"""Configuration for iacgen.

Read from an optional iacgen.yaml:

    template_packages: [iacgen.templates, mycompany.templates]
    marker: "#TMPL"
    drop_null_inputs: true
    providers: [aws]
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from iacgen.ast.parser import DEFAULT_MARKER

CONFIG_FILENAME = "iacgen.yaml"
ENV_TEMPLATE_PACKAGES = "IACGEN_TEMPLATE_PACKAGES"


class CompilerConfig(BaseModel):
    """Compiler settings."""

    model_config = {"extra": "forbid"}

    template_packages: list[str] = Field(
        default_factory=lambda: ["iacgen.templates"],
        description="Packages scanned for <provider>/<template>.py modules",
    )
    marker: str = Field(
        default=DEFAULT_MARKER, description="Prefix tagging directive lines in create bodies"
    )
    drop_null_inputs: bool = Field(
        default=True, description="Drop provider inputs that resolve to null"
    )
    providers: list[str] | None = Field(
        default=None, description="Enabled providers; all when unset"
    )

    @field_validator("marker")
    @classmethod
    def marker_not_blank(cls, value: str) -> str:
        if not value.strip() or any(c.isspace() for c in value):
            raise ValueError("marker must be a non-empty token without whitespace")
        return value

    def is_provider_enabled(self, provider: str) -> bool:
        return self.providers is None or provider in self.providers


def load_config(path: Path | None = None) -> CompilerConfig:
    """Load iacgen.yaml (defaults when absent), then apply environment overrides."""
    data: dict[str, Any] = {}
    path = path or Path.cwd() / CONFIG_FILENAME
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: configuration must be a mapping")

    packages = os.environ.get(ENV_TEMPLATE_PACKAGES)
    if packages:
        data["template_packages"] = [p.strip() for p in packages.split(",") if p.strip()]

    return CompilerConfig(**data)
