"""
Command-line entrypoint.

  python -m lottery_indexer run             one indexing pass from the stored checkpoint
  python -m lottery_indexer revalidate      consistency report over the persisted CSV
  python -m lottery_indexer analyze-fakes   fake-transaction summary (pandas)

Exit codes: 0 success, 1 pipeline failure, 2 configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from lottery_indexer.config.env import env_str, load_lottery_env
from lottery_indexer.config.settings import DEFAULT_DATA_DIR, Settings, get_settings
from lottery_indexer.core.exceptions import ConfigurationError, LotteryIndexerError
from lottery_indexer.lottery_logging import get_logger

logger = get_logger("lottery_indexer.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


async def run_once(settings: Settings) -> int:
    """Wire adapter, sink, checkpoint store and coordinator; run one pass."""
    from lottery_indexer.adapters.factory import create_adapter
    from lottery_indexer.classifier.validator import TransactionValidator
    from lottery_indexer.pipeline.coordinator import BatchCoordinator
    from lottery_indexer.storage.checkpoint import JsonCheckpointStore
    from lottery_indexer.storage.csv_sink import CsvRecordSink

    adapter = create_adapter(settings)
    coordinator = BatchCoordinator(
        adapter,
        CsvRecordSink(settings.csv_path),
        JsonCheckpointStore(settings.state_path),
        TransactionValidator(settings.contract_address),
    )
    try:
        stats = await coordinator.run()
    finally:
        await adapter.aclose()
    logger.info("cli_run_complete", records=stats.records_persisted, pages=stats.pages)
    return EXIT_OK


def _default_csv() -> Path:
    load_lottery_env()
    data_dir = Path(env_str("DATA_DIR", DEFAULT_DATA_DIR) or DEFAULT_DATA_DIR)
    return Path(env_str("CSV_PATH") or data_dir / "lottery.csv")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lottery_indexer",
        description="Index lottery contract traces from toncenter into a CSV with fraud verdicts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Fetch, classify, validate and persist new traces")

    reval = sub.add_parser("revalidate", help="Row-level consistency checks over the CSV")
    reval.add_argument("--csv", type=Path, default=None, help="CSV to check (default: CSV_PATH)")
    reval.add_argument("--report", type=Path, default=None, help="JSON report path")

    fakes = sub.add_parser("analyze-fakes", help="Summarize rows flagged as fake")
    fakes.add_argument("--csv", type=Path, default=None, help="CSV to analyze (default: CSV_PATH)")
    fakes.add_argument("--report", type=Path, default=None, help="JSON report path")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "run":
        try:
            settings = get_settings()
        except ConfigurationError as e:
            logger.error("cli_config_error", error=str(e))
            return EXIT_CONFIG
        logger.info("cli_settings_loaded", **settings.to_log_dict())
        try:
            return asyncio.run(run_once(settings))
        except ConfigurationError as e:
            logger.error("cli_config_error", error=str(e))
            return EXIT_CONFIG
        except LotteryIndexerError as e:
            logger.error("cli_run_failed", error=str(e), error_type=type(e).__name__)
            return EXIT_FAILURE

    csv_path = args.csv or _default_csv()
    if args.command == "revalidate":
        from lottery_indexer.tools.revalidate import revalidate_csv

        report_path = args.report or csv_path.parent / "validation_report.json"
        report = revalidate_csv(csv_path, report_path)
        return EXIT_OK if report is not None else EXIT_FAILURE

    from lottery_indexer.tools.fake_report import analyze_fakes

    report_path = args.report or csv_path.parent / "fake_report.json"
    summary = analyze_fakes(csv_path, report_path)
    return EXIT_OK if summary is not None else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
