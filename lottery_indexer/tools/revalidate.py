"""
Revalidate a persisted lottery CSV: row-level consistency checks.

Reads every row written by the CSV sink and flags rows whose fields do not
hang together (a win without a payment, a referral without a purchase, ...).
Writes a JSON report with the first 100 issues.

Usage:
  python -m lottery_indexer revalidate [--csv data/lottery.csv] [--report data/validation_report.json]
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from lottery_indexer.lottery_logging import get_logger

logger = get_logger(__name__)

MAX_REPORTED_ISSUES = 100
LOW_SCORE_THRESHOLD = 50
CRITICAL_RATIO = 0.1

WIN_WITHOUT_PAYMENT_PENALTY = 50
WIN_COMMENT_WITHOUT_AMOUNT_PENALTY = 30
REFERRAL_WITHOUT_PURCHASE_PENALTY = 20
NFT_WITHOUT_PURCHASE_PENALTY = 10


@dataclass
class RowIssue:
    tx_hash: str
    participant: str
    issue: str
    validation_score: int


@dataclass
class RevalidationReport:
    total_transactions: int = 0
    fake_transactions: int = 0
    suspicious_transactions: int = 0
    low_score_transactions: int = 0
    transactions_with_issues: int = 0
    detailed_issues: list[RowIssue] = field(default_factory=list)
    timestamp: str = ""

    @property
    def critical_ratio(self) -> float:
        if not self.total_transactions:
            return 0.0
        return (self.fake_transactions + self.suspicious_transactions) / self.total_transactions

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _empty_amount(value: str | None) -> bool:
    text = (value or "").strip()
    if not text:
        return True
    try:
        return float(text) == 0
    except ValueError:
        return False


def check_row(row: dict[str, str]) -> tuple[list[str], int, dict[str, int]]:
    """
    Return (issues, score, counters) for one CSV row.
    counters has keys suspicious, fake, low_score.
    """
    issues: list[str] = []
    score = 100
    counters = {"suspicious": 0, "fake": 0, "low_score": 0}
    no_purchase = _empty_amount(row.get("buy_amount"))

    if row.get("is_win") == "true" and _empty_amount(row.get("win_ton_amount")) and _empty_amount(
        row.get("win_jetton_amount")
    ):
        issues.append("Win marked but no payment recorded")
        counters["suspicious"] += 1
        score -= WIN_WITHOUT_PAYMENT_PENALTY

    if (row.get("win_comment") or "").strip() and _empty_amount(row.get("win_ton_amount")) and _empty_amount(
        row.get("win_jetton_amount")
    ):
        issues.append("Win comment present but no win amount")
        counters["suspicious"] += 1
        score -= WIN_COMMENT_WITHOUT_AMOUNT_PENALTY

    if not _empty_amount(row.get("referral_amount")) and no_purchase:
        issues.append("Referral payment without purchase")
        counters["suspicious"] += 1
        score -= REFERRAL_WITHOUT_PURCHASE_PENALTY

    # Can be legitimate (gifted tickets), so it is not counted as suspicious
    if (row.get("nft_address") or "").strip() and no_purchase:
        issues.append("NFT minted without purchase")
        score -= NFT_WITHOUT_PURCHASE_PENALTY

    if row.get("is_fake") == "true":
        counters["fake"] += 1
        issues.append(f"Already marked as fake: {row.get('fake_reason') or 'Unknown reason'}")
        score = 0

    stored = (row.get("validation_score") or "").strip()
    if stored:
        try:
            if int(float(stored)) < LOW_SCORE_THRESHOLD:
                counters["low_score"] += 1
                issues.append(f"Low validation score: {stored}")
        except ValueError:
            issues.append(f"Unparsable validation score: {stored}")

    return issues, max(0, score), counters


def revalidate_csv(csv_path: Path | str, report_path: Path | str | None = None) -> RevalidationReport | None:
    """Check every row of csv_path; write the JSON report when report_path is given. None if no CSV."""
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        logger.warning("revalidate_csv_missing", path=str(csv_path))
        return None
    with open(csv_path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    report = RevalidationReport(total_transactions=len(rows))
    for row in rows:
        issues, score, counters = check_row(row)
        report.fake_transactions += counters["fake"]
        report.suspicious_transactions += counters["suspicious"]
        report.low_score_transactions += counters["low_score"]
        if issues:
            report.transactions_with_issues += 1
            if len(report.detailed_issues) < MAX_REPORTED_ISSUES:
                report.detailed_issues.append(
                    RowIssue(
                        tx_hash=row.get("tx_hash") or "",
                        participant=row.get("participant") or "",
                        issue="; ".join(issues),
                        validation_score=score,
                    )
                )
    report.timestamp = datetime.now(timezone.utc).isoformat()

    if report_path is not None:
        report_path = Path(report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")

    logger.info(
        "revalidate_done",
        total=report.total_transactions,
        fake=report.fake_transactions,
        suspicious=report.suspicious_transactions,
        low_score=report.low_score_transactions,
        with_issues=report.transactions_with_issues,
        report=str(report_path) if report_path else None,
    )
    if report.critical_ratio > CRITICAL_RATIO:
        logger.warning(
            "revalidate_critical_ratio",
            ratio=round(report.critical_ratio, 4),
            hint="more than 10% of rows are fake or suspicious; consider a full re-parse",
        )
    return report
