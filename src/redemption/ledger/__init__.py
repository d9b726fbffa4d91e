"""Redemption ledger — commitments, pro-rata payout, and finalization.

The ledger components are pure state machines over a shared
RedemptionState. Phase gating, reentrancy protection, rollback and
event logging are handled by the contract facade.
"""

from redemption.ledger.commitments import CommitmentLedger
from redemption.ledger.eligibility import EligibilityPolicy
from redemption.ledger.finalizer import Finalizer, leftover_amount
from redemption.ledger.payout import PayoutCalculator, per_unit_rate, redeem_amount

__all__ = [
    "CommitmentLedger",
    "EligibilityPolicy",
    "Finalizer",
    "PayoutCalculator",
    "leftover_amount",
    "per_unit_rate",
    "redeem_amount",
]
