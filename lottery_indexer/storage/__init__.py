"""
Persistence: CSV record sink and the logical-time checkpoint store.
"""

from lottery_indexer.storage.checkpoint import JsonCheckpointStore
from lottery_indexer.storage.csv_sink import CsvRecordSink

__all__ = ["CsvRecordSink", "JsonCheckpointStore"]
