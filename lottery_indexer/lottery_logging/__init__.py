"""
Structured logging for the lottery indexer.

JSON logs with timestamp, event_type and trace_id where relevant.
Use get_logger() in all modules.
"""

from lottery_indexer.lottery_logging.logger import bind_trace, get_logger

__all__ = ["bind_trace", "get_logger"]
