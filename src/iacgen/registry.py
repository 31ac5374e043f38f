"""
Registry for resource templates.

Template modules live under:
<templates package>/<provider>/<template>.py

and become template id "<provider>:<template>" (e.g. "aws:kms_alias").
"""

from __future__ import annotations

import importlib
import logging
from functools import lru_cache
from pathlib import Path
from types import ModuleType
from typing import Dict, List, Optional

from iacgen.ast.parser import DEFAULT_MARKER, Parser
from iacgen.ast.spec import IMPLIED_ATTRIBUTES, Arg, TemplateRecord, is_valid_type
from iacgen.config import CompilerConfig
from iacgen.exceptions import (
    DirectiveEvaluationError,
    InvalidTemplateError,
    UnknownTemplateError,
)
from iacgen.runtime.backend import default_create

log = logging.getLogger(__name__)


class TemplateRegistry:
    def __init__(self, config: Optional[CompilerConfig] = None) -> None:
        self.config = config or CompilerConfig()
        self.templates: Dict[str, TemplateRecord] = {}
        for package in self.config.template_packages:
            self._scan_package(package)

    def _scan_package(self, package_name: str) -> None:
        """
        Discover provider directories by walking the templates package on disk.
        Each module defining KIND and CREATE becomes a template.
        Respects the configured provider allow-list.
        """
        package = importlib.import_module(package_name)

        for base in getattr(package, "__path__", []):
            base_path = Path(base)
            if not base_path.exists():
                continue
            for provider_dir in sorted(base_path.iterdir()):
                if not provider_dir.is_dir() or provider_dir.name.startswith("_"):
                    continue
                provider = provider_dir.name
                if not self.config.is_provider_enabled(provider):
                    continue

                for template_file in sorted(provider_dir.glob("*.py")):
                    if template_file.stem.startswith("_"):
                        continue
                    module_name = f"{package_name}.{provider}.{template_file.stem}"
                    template_id = f"{provider}:{template_file.stem}"
                    module = importlib.import_module(module_name)
                    if not hasattr(module, "KIND") or not hasattr(module, "CREATE"):
                        continue
                    self.register(
                        load_template(module_name, template_id, self.config.marker)
                    )

    def register(self, record: TemplateRecord) -> None:
        if record.id in self.templates:
            log.debug("template %s overridden", record.id)
        self.templates[record.id] = record

    def get(self, template_id: str) -> TemplateRecord:
        try:
            return self.templates[template_id]
        except KeyError:
            raise UnknownTemplateError(template_id) from None

    def ids(self) -> List[str]:
        return sorted(self.templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self.templates

    def __len__(self) -> int:
        return len(self.templates)


@lru_cache(maxsize=None)
def load_template(module_name: str, template_id: str, marker: str = DEFAULT_MARKER) -> TemplateRecord:
    """Load (once per process) the record for a template module."""
    module = importlib.import_module(module_name)
    return load_template_module(module, template_id, marker)


def load_template_module(
    module: ModuleType, template_id: str, marker: str = DEFAULT_MARKER
) -> TemplateRecord:
    """Build an immutable TemplateRecord from a template module.

    Raises:
        InvalidTemplateError: If the module's contract is malformed.
    """
    kind = getattr(module, "KIND", None)
    source = getattr(module, "CREATE", None)
    if not isinstance(kind, str) or not kind:
        raise InvalidTemplateError(template_id, "KIND must be a non-empty string")
    if not isinstance(source, str):
        raise InvalidTemplateError(template_id, "CREATE must be a string")

    args: List[Arg] = []
    seen = set()
    for arg in getattr(module, "ARGS", ()):
        if not isinstance(arg, Arg):
            raise InvalidTemplateError(template_id, f"ARGS entries must be Arg, got {arg!r}")
        if arg.name in seen:
            raise InvalidTemplateError(template_id, f"duplicate argument {arg.name}")
        if not is_valid_type(arg.type):
            raise InvalidTemplateError(
                template_id, f"argument {arg.name} has unknown type {arg.type!r}"
            )
        seen.add(arg.name)
        args.append(arg)

    try:
        directives = Parser(marker).parse(source)
    except DirectiveEvaluationError as e:
        raise InvalidTemplateError(template_id, f"CREATE markup: {e.message}") from e

    create = getattr(module, "create", default_create)
    properties = getattr(module, "properties", None)
    infra_exports = getattr(module, "infra_exports", None)
    for fn_name, fn in (("create", create), ("properties", properties), ("infra_exports", infra_exports)):
        if fn is not None and not callable(fn):
            raise InvalidTemplateError(template_id, f"{fn_name} must be callable")

    attributes = None
    declared = getattr(module, "ATTRIBUTES", None)
    if declared is not None:
        if not isinstance(declared, (list, tuple, set, frozenset)) or not all(
            isinstance(a, str) and a for a in declared
        ):
            raise InvalidTemplateError(
                template_id, "ATTRIBUTES must be a sequence of attribute names"
            )
        attributes = frozenset(IMPLIED_ATTRIBUTES).union(declared)

    options = getattr(module, "OPTIONS", {}) or {}
    doc = (module.__doc__ or "").strip()

    return TemplateRecord(
        id=template_id,
        kind=kind,
        args=tuple(args),
        source=source,
        directives=directives,
        create=create,
        properties=properties,
        infra_exports=infra_exports,
        options=dict(options),
        description=doc.splitlines()[0] if doc else "",
        attributes=attributes,
    )
