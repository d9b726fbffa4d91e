"""Escrow and pro-rata payout ledger for committed non-fungible tokens.

Holders commit eligible tokens before a deadline; afterwards each
committed token redeems an equal, capped share of the pooled fund.
"""

from redemption.config import RedemptionConfig
from redemption.contract import RedemptionContract
from redemption.models.redemption import Phase, RedemptionQuote, RedemptionState

__all__ = [
    "Phase",
    "RedemptionConfig",
    "RedemptionContract",
    "RedemptionQuote",
    "RedemptionState",
]

__version__ = "0.1.0"
