"""Build report models"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

from iacgen.exceptions import ErrorKind, IacgenError


class UnitStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"  # create issued, outputs not yet resolved
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UnitReport(BaseModel):
    """Status of one unit within a build."""

    name: str
    template: str
    status: UnitStatus = UnitStatus.PENDING
    depends_on: list[str] = []

    error_kind: ErrorKind | None = None
    error: str | None = None

    started_at: datetime | None = None
    finished_at: datetime | None = None

    @classmethod
    def from_error(cls, name: str, template: str, error: IacgenError, **kwargs: Any) -> "UnitReport":
        return cls(
            name=name,
            template=template,
            status=UnitStatus.FAILED,
            error_kind=error.kind,
            error=error.message,
            **kwargs,
        )

    @property
    def is_terminal(self) -> bool:
        """Whether the unit has finished (succeeded, failed, or cancelled)"""
        return self.status in (
            UnitStatus.SUCCEEDED,
            UnitStatus.FAILED,
            UnitStatus.CANCELLED,
        )


class BuildReport(BaseModel):
    """Aggregated outcome of one stack build, handed to the orchestrator."""

    stack: str
    units: list[UnitReport] = []
    outputs: dict[str, dict[str, Any]] = {}
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field  # type: ignore[misc]
    @property
    def failed(self) -> list[UnitReport]:
        return [u for u in self.units if u.status is UnitStatus.FAILED]

    @computed_field  # type: ignore[misc]
    @property
    def complete(self) -> bool:
        return all(u.is_terminal for u in self.units)

    def unit(self, name: str) -> UnitReport:
        for report in self.units:
            if report.name == name:
                return report
        raise KeyError(name)

    def statuses(self) -> dict[str, UnitStatus]:
        return {u.name: u.status for u in self.units}
