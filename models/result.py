"""Result models for a reconciliation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence


class OutcomeAction(str, Enum):
    """What the reconciler did to a machine."""

    NO_CHANGE = "NoChange"
    ENABLED = "Enabled"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class OutcomeRecord:
    """Result of reconciling a single machine.

    Attributes:
        machine: The machine name.
        resource_group: The machine's resource group.
        action: What happened (NoChange, Enabled, Failed).
        detail: A human-readable result or error message.
        verified: None=not re-read, True=re-read shows enabled, False=re-read did not.
        resource_id: Full ARM id of the machine.
    """

    machine: str
    resource_group: str
    action: OutcomeAction
    detail: str = ""
    verified: Optional[bool] = None
    resource_id: str = ""


@dataclass(frozen=True)
class RunSummary:
    """Summary statistics for a run, derived from its outcome records."""

    total: int = 0
    already_enabled: int = 0
    newly_enabled: int = 0
    failed: int = 0
    records: tuple[OutcomeRecord, ...] = field(default_factory=tuple)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    @classmethod
    def from_records(cls, records: Sequence[OutcomeRecord]) -> RunSummary:
        """Compute summary from a sequence of outcome records."""
        already = sum(1 for r in records if r.action == OutcomeAction.NO_CHANGE)
        enabled = sum(1 for r in records if r.action == OutcomeAction.ENABLED)
        failed = sum(1 for r in records if r.action == OutcomeAction.FAILED)
        return cls(
            total=len(records),
            already_enabled=already,
            newly_enabled=enabled,
            failed=failed,
            records=tuple(records),
        )
