"""Tabulation and export of run results."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union

import pandas as pd

from models.result import OutcomeRecord, RunSummary

COLUMNS = ["Machine", "Resource Group", "Action", "Verified", "Detail"]


def _verified_label(record: OutcomeRecord) -> str:
    if record.verified is True:
        return "Verified"
    if record.verified is False:
        return "Not Confirmed"
    return "Not Checked"


def records_to_dataframe(records: Sequence[OutcomeRecord]) -> pd.DataFrame:
    """Convert outcome records to a DataFrame, one row per machine, in run order."""
    rows = []
    for r in records:
        rows.append({
            "Machine": r.machine,
            "Resource Group": r.resource_group,
            "Action": r.action.value,
            "Verified": _verified_label(r),
            "Detail": r.detail,
        })
    return pd.DataFrame(rows, columns=COLUMNS)


def summary_to_dataframe(summary: RunSummary) -> pd.DataFrame:
    """One row per outcome bucket, for charting the run."""
    return pd.DataFrame(
        [
            {"Outcome": "Already enabled", "Machines": summary.already_enabled},
            {"Outcome": "Newly enabled", "Machines": summary.newly_enabled},
            {"Outcome": "Failed", "Machines": summary.failed},
        ]
    )


def format_table(records: Sequence[OutcomeRecord]) -> str:
    """Render records as a fixed-width console table."""
    if not records:
        return "(no machines processed)"
    return records_to_dataframe(records).to_string(index=False)


def format_summary(summary: RunSummary) -> str:
    return (
        f"Total: {summary.total}  |  Already enabled: {summary.already_enabled}  |  "
        f"Newly enabled: {summary.newly_enabled}  |  Failed: {summary.failed}"
    )


def export_csv(records: Sequence[OutcomeRecord], path: Union[str, Path]) -> Path:
    """Write records to CSV and return the resolved path."""
    target = Path(path)
    records_to_dataframe(records).to_csv(target, index=False)
    return target
