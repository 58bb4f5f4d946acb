"""Batch runner.

Drives the reconciler over a selection, one machine at a time, behind an
optional confirmation gate, and folds the outcomes into a RunSummary.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from app.config import CONFIRMATION_PHRASE
from engine.reconciler import BenefitReconciler
from models.machine import MachineRef
from models.result import OutcomeRecord, RunSummary

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Sequence[MachineRef]], bool]
ProgressCallback = Callable[[int, int], None]


class RunCancelled(Exception):
    """Raised when the user declines the confirmation prompt."""


def prompt_confirmation(
    machines: Sequence[MachineRef],
    input_func: Callable[[str], str] = input,
) -> bool:
    """Ask on the console; only the exact confirmation phrase approves."""
    answer = input_func(
        f"Enable Software Assurance on {len(machines)} machine(s)? "
        f"Type {CONFIRMATION_PHRASE} to continue: "
    )
    return answer == CONFIRMATION_PHRASE


class BatchRunner:
    """Reconciles a list of machines sequentially."""

    def __init__(
        self,
        reconciler: BenefitReconciler,
        confirm: ConfirmCallback = prompt_confirmation,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self._reconciler = reconciler
        self._confirm = confirm
        self._progress = progress_callback

    @staticmethod
    def needs_confirmation(
        machines: Sequence[MachineRef],
        require_confirmation: bool,
        always_confirm: bool = False,
    ) -> bool:
        """True when a run over ``machines`` must pass the confirmation gate first."""
        return require_confirmation and (len(machines) > 1 or always_confirm)

    def run(
        self,
        machines: Sequence[MachineRef],
        require_confirmation: bool,
        always_confirm: bool = False,
    ) -> RunSummary:
        """Reconcile every machine in selection order.

        Args:
            machines: Machines from the selector, in enumeration order.
            require_confirmation: Gate multi-machine runs behind ``confirm``.
            always_confirm: Gate even a single-machine run (subscription scope).

        Returns:
            The RunSummary of all outcome records.

        Raises:
            RunCancelled: The confirmation was declined; nothing was changed.
        """
        if self.needs_confirmation(machines, require_confirmation, always_confirm):
            if not self._confirm(machines):
                logger.info("Run cancelled at confirmation prompt")
                raise RunCancelled("Operation cancelled by user.")

        total = len(machines)
        records: list[OutcomeRecord] = []
        for index, machine in enumerate(machines, start=1):
            logger.info("[%d/%d] Processing %s", index, total, machine.name)
            records.append(self._reconciler.reconcile(machine))
            if self._progress:
                self._progress(index, total)

        summary = RunSummary.from_records(records)
        logger.info(
            "Run complete: %d total, %d already enabled, %d enabled, %d failed",
            summary.total,
            summary.already_enabled,
            summary.newly_enabled,
            summary.failed,
        )
        return summary
