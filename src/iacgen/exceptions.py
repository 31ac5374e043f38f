"""iacgen exceptions

Build-time errors are raised and abort the whole build before any backend
call is issued. Runtime failures (resource creation, property derivation)
are recorded per unit and surface through the build report.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class ErrorKind(str, Enum):
    MISSING_REQUIRED_ARGUMENT = "MissingRequiredArgument"
    UNKNOWN_ARGUMENT = "UnknownArgument"
    TYPE_MISMATCH = "TypeMismatch"
    DIRECTIVE_EVALUATION_ERROR = "DirectiveEvaluationError"
    DANGLING_REFERENCE = "DanglingReference"
    CYCLE_ERROR = "CycleError"
    DUPLICATE_UNIT = "DuplicateUnit"
    UNKNOWN_TEMPLATE = "UnknownTemplate"
    INVALID_TEMPLATE = "InvalidTemplate"
    INVALID_STACK = "InvalidStack"
    RESOURCE_CREATION_FAILED = "ResourceCreationFailed"
    PROPERTY_DERIVATION_FAILED = "PropertyDerivationFailed"


RUNTIME_KINDS = frozenset(
    {ErrorKind.RESOURCE_CREATION_FAILED, ErrorKind.PROPERTY_DERIVATION_FAILED}
)


class IacgenError(Exception):
    """Base exception for all iacgen errors."""

    kind: ErrorKind = ErrorKind.INVALID_TEMPLATE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def fatal(self) -> bool:
        """True for build-time errors that abort the whole build."""
        return self.kind not in RUNTIME_KINDS


class MissingRequiredArgumentError(IacgenError):
    kind = ErrorKind.MISSING_REQUIRED_ARGUMENT

    def __init__(self, template_id: str, unit: str, argument: str):
        self.template_id = template_id
        self.unit = unit
        self.argument = argument
        super().__init__(
            f"{unit}: missing required argument '{argument}' for template {template_id}"
        )


class UnknownArgumentError(IacgenError):
    kind = ErrorKind.UNKNOWN_ARGUMENT

    def __init__(self, template_id: str, unit: str, argument: str):
        self.template_id = template_id
        self.unit = unit
        self.argument = argument
        super().__init__(
            f"{unit}: unknown argument '{argument}' for template {template_id}"
        )


class TypeMismatchError(IacgenError):
    kind = ErrorKind.TYPE_MISMATCH

    def __init__(self, unit: str, argument: str, expected: str, detail: str):
        self.unit = unit
        self.argument = argument
        self.expected = expected
        super().__init__(
            f"{unit}: argument '{argument}' expects {expected}, {detail}"
        )


class DirectiveEvaluationError(IacgenError):
    kind = ErrorKind.DIRECTIVE_EVALUATION_ERROR

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class DanglingReferenceError(IacgenError):
    kind = ErrorKind.DANGLING_REFERENCE

    def __init__(self, unit: str, reference: str, detail: str = ""):
        self.unit = unit
        self.reference = reference
        message = f"{unit}: reference '{reference}' does not resolve"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class CycleError(IacgenError):
    kind = ErrorKind.CYCLE_ERROR

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"dependency cycle: {' -> '.join(self.cycle)}")


class DuplicateUnitError(IacgenError):
    kind = ErrorKind.DUPLICATE_UNIT

    def __init__(self, unit: str):
        self.unit = unit
        super().__init__(f"unit '{unit}' is declared more than once")


class UnknownTemplateError(IacgenError):
    kind = ErrorKind.UNKNOWN_TEMPLATE

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"template not found: {template_id}")


class InvalidTemplateError(IacgenError):
    kind = ErrorKind.INVALID_TEMPLATE

    def __init__(self, template_id: str, detail: str):
        self.template_id = template_id
        super().__init__(f"invalid template {template_id}: {detail}")


class ResourceCreationFailed(IacgenError):
    """Raised (or recorded) when the backend reports a failed creation."""

    kind = ErrorKind.RESOURCE_CREATION_FAILED

    def __init__(self, unit: str, reason: str):
        self.unit = unit
        self.reason = reason
        super().__init__(f"{unit}: resource creation failed: {reason}")


class PropertyDerivationFailed(IacgenError):
    """Raised when a transform over a deferred value fails."""

    kind = ErrorKind.PROPERTY_DERIVATION_FAILED

    def __init__(self, reason: str, unit: str | None = None):
        self.unit = unit
        self.reason = reason
        prefix = f"{unit}: " if unit else ""
        super().__init__(f"{prefix}property derivation failed: {reason}")


class InvalidStackError(IacgenError, ValueError):
    """A stack document that cannot be decoded or has the wrong layout."""

    kind = ErrorKind.INVALID_STACK

    def __init__(self, detail: str):
        super().__init__(f"invalid stack document: {detail}")
