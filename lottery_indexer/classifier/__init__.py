"""
Trace classification and fraud validation.
"""

from lottery_indexer.classifier.engine import CSV_FIELDS, LotteryTransaction, TraceClassifier
from lottery_indexer.classifier.validator import TransactionValidator, ValidationResult

__all__ = [
    "CSV_FIELDS",
    "LotteryTransaction",
    "TraceClassifier",
    "TransactionValidator",
    "ValidationResult",
]
