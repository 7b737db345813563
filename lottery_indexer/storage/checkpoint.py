"""
Checkpoint store: the last persisted logical time, as JSON {"lastLt": "<int>"}.

load() returns None when no checkpoint exists yet. A file that exists but
cannot be read or parsed raises CheckpointError rather than silently
restarting from zero. Writes are atomic (temp file + os.replace) and never
move the stored value backward.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from lottery_indexer.core.exceptions import CheckpointError
from lottery_indexer.lottery_logging import get_logger

logger = get_logger(__name__)

LAST_LT_KEY = "lastLt"


class JsonCheckpointStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> int | None:
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CheckpointError(f"Cannot read checkpoint {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CheckpointError(f"Checkpoint {self.path} is not a JSON object")
        raw = data.get(LAST_LT_KEY)
        if raw is None:
            return None
        try:
            return int(str(raw))
        except ValueError as e:
            raise CheckpointError(f"Checkpoint {self.path} has non-integer {LAST_LT_KEY}={raw!r}") from e

    def save(self, lt: int) -> int:
        """
        Persist lt if it is greater than the stored value; returns the value now stored.

        Raises:
            CheckpointError: on any read or write failure.
        """
        current = self.load()
        if current is not None and lt <= current:
            logger.debug("checkpoint_not_advanced", stored=str(current), offered=str(lt))
            return current
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump({LAST_LT_KEY: str(lt)}, f)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CheckpointError(f"Cannot write checkpoint {self.path}: {e}") from e
        logger.info("checkpoint_saved", last_lt=str(lt), previous=str(current) if current is not None else None)
        return lt
