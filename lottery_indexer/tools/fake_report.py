"""
Fake-transaction summary over a persisted lottery CSV (pandas).

Totals, fake percentage, top participants by fake count, reason breakdown
and the most recent fakes, written as JSON.

Usage:
  python -m lottery_indexer analyze-fakes [--csv data/lottery.csv] [--report data/fake_report.json]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

from lottery_indexer.lottery_logging import get_logger

logger = get_logger(__name__)

TOP_PARTICIPANTS = 10
RECENT_FAKES = 5


def load_rows(csv_path: Path) -> pd.DataFrame:
    """All columns as strings; empty cells become ''."""
    try:
        return pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def summarize_fakes(df: pd.DataFrame) -> dict[str, Any]:
    total = int(len(df))
    if total and "is_fake" in df.columns:
        fakes = df[df["is_fake"] == "true"]
    else:
        fakes = df.iloc[0:0]
    fake_count = int(len(fakes))
    summary: dict[str, Any] = {
        "total_transactions": total,
        "fake_transactions": fake_count,
        "legitimate_transactions": total - fake_count,
        "fake_percentage": round(fake_count / total * 100, 2) if total else 0.0,
        "top_participants": [],
        "reasons": {},
        "recent_fakes": [],
    }
    if fake_count == 0:
        return summary

    by_participant = fakes["participant"].value_counts().head(TOP_PARTICIPANTS)
    summary["top_participants"] = [
        {"participant": str(p), "fake_count": int(n)} for p, n in by_participant.items()
    ]
    reasons = fakes.get("fake_reason", pd.Series(dtype=str)).replace("", "Unknown")
    summary["reasons"] = {str(r): int(n) for r, n in reasons.value_counts().items()}

    recent = fakes.tail(RECENT_FAKES).iloc[::-1]
    columns = [c for c in ("participant", "tx_hash", "timestamp", "fake_reason", "validation_score") if c in recent]
    summary["recent_fakes"] = recent[columns].to_dict(orient="records")
    return summary


def analyze_fakes(csv_path: Path | str, report_path: Path | str | None = None) -> dict[str, Any] | None:
    """Summarize fake rows of csv_path; None when the CSV does not exist."""
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        logger.warning("fake_report_csv_missing", path=str(csv_path))
        return None
    summary = summarize_fakes(load_rows(csv_path))
    if report_path is not None:
        report_path = Path(report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    logger.info(
        "fake_report_done",
        total=summary["total_transactions"],
        fake=summary["fake_transactions"],
        fake_percentage=summary["fake_percentage"],
        report=str(report_path) if report_path else None,
    )
    return summary
