"""
Lottery indexer: trace classification and anti-fraud engine for a TON lottery.

Pages through contract traces from toncenter, reconstructs ticket purchases,
prize and referral payouts and ticket-NFT mints, scores each record for
authenticity, and appends the results to a CSV while tracking a resumable
logical-time cursor.
"""

__version__ = "0.1.0"
