"""
Main entrypoint: one indexing pass for the configured lottery contract.

Equivalent to `python -m lottery_indexer run`. Reads TON_CONTRACT_ADDRESS,
CONTRACT_TYPE, TONCENTER_API_URL, TONCENTER_API_KEY, PAGE_LIMIT, PAGE_DELAY_SEC,
CSV_PATH, STATE_PATH etc. from the environment or a .env file at the project root.

Schedule it (cron, systemd timer) for continuous indexing; each run resumes
from the stored checkpoint.
"""

import sys

# Configure structured JSON logging before other imports that may log
from lottery_indexer.lottery_logging import get_logger

logger = get_logger("main")


def main() -> None:
    from lottery_indexer.__main__ import main as cli_main

    code = cli_main(["run"])
    if code:
        logger.error("main_exit", code=code)
    sys.exit(code)


if __name__ == "__main__":
    main()
