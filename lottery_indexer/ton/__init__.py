"""
TON data layer.

Address normalization, forward-payload (BOC) decoding, unit scaling and
the trace/action models that the classifier and validator consume.
"""

from lottery_indexer.ton.address import normalize_address, parse_address, try_normalize_address
from lottery_indexer.ton.models import Action, ActionFlow, TokenInfo, TokenRegistry, Trace
from lottery_indexer.ton.payload import PayloadOp, decode_forward_payload

__all__ = [
    "Action",
    "ActionFlow",
    "PayloadOp",
    "TokenInfo",
    "TokenRegistry",
    "Trace",
    "decode_forward_payload",
    "normalize_address",
    "parse_address",
    "try_normalize_address",
]
