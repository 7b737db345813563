"""
Lottery contract constants: operation codes, payout tiers, unit divisors.
"""

from __future__ import annotations

# Contract-originated message opcodes (32-bit)
OP_PRIZE = 0x5052495A  # "PRIZ"
OP_REFERRAL = 0x52454646  # "REFF"

# Reserved for contract-originated messages; a user sending these is forging
PROTECTED_OPCODES = frozenset({OP_PRIZE, OP_REFERRAL})

# Payout tier comment -> prize multiplier (USD-denominated ticket units)
PRIZE_MAP: dict[str, int] = {
    "x1": 1,
    "x3": 3,
    "x7": 7,
    "x20": 20,
    "x77": 77,
    "x200": 200,
    "jp": 1000,
    "jackpot": 1000,
}

REFERRAL_COMMENT = "referral"

NATIVE_SYMBOL = "TON"
NATIVE_DECIMALS = 9
NANO = 10**NATIVE_DECIMALS

DEFAULT_JETTON_SYMBOL = "JETTON"
DEFAULT_JETTON_DECIMALS = 9

TON_PRIZE_TAG = "TON PRIZE"
