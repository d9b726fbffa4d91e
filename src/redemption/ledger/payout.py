"""Payout calculator — pro-rata redemption of committed tokens.

After the deadline each committed token entitles its committer to an
equal share of the pooled fund, capped at one unit per token:

    rate   = min(F // C, unit)
    amount = min(n * F // C, n * unit)

where F is total_funding, C is total_commitments and n is the number of
tokens in the batch. Multiplication happens before division to keep
rounding error below one base unit per batch.

total_commitments is never decremented by redemption. The denominator is
the cohort frozen at the deadline, so every redeemer receives the same
rate regardless of redemption order, and the sum of all payouts can never
exceed total_funding.
"""

from __future__ import annotations

import logging
from typing import Sequence

from redemption.collaborators import ValueRail
from redemption.engine.guard import Journal
from redemption.errors import NoCommitments
from redemption.ledger.commitments import CommitmentLedger
from redemption.ledger.ordering import strictly_increasing
from redemption.ledger.transfers import send_value
from redemption.models.redemption import RedemptionQuote, RedemptionState

logger = logging.getLogger(__name__)


def per_unit_rate(total_funding: int, total_commitments: int, unit: int) -> int:
    """Per-token payout rate in base units, rounded down and capped at unit.

    Raises NoCommitments if nothing is committed.
    """
    if total_commitments <= 0:
        raise NoCommitments("Cannot compute a payout rate with zero commitments")
    return min(total_funding // total_commitments, unit)


def redeem_amount(
    token_count: int,
    total_funding: int,
    total_commitments: int,
    unit: int,
) -> int:
    """Payout for a batch of token_count tokens, in base units.

    Raises NoCommitments if nothing is committed.
    """
    if total_commitments <= 0:
        raise NoCommitments("Cannot compute a payout with zero commitments")
    return min(token_count * total_funding // total_commitments, token_count * unit)


class PayoutCalculator:
    """Converts a batch of committed token IDs into a value transfer.

    Usage:
        calculator = PayoutCalculator(state, ledger, rail, unit=10**18)
        quote = calculator.redeem("alice", [1001, 1002], journal)
        quote.amount   # base units paid to alice
    """

    def __init__(
        self,
        state: RedemptionState,
        ledger: CommitmentLedger,
        rail: ValueRail,
        unit: int,
    ) -> None:
        self._state = state
        self._ledger = ledger
        self._rail = rail
        self._unit = unit

    def quote(self, token_count: int) -> RedemptionQuote:
        """Preview the payout for token_count tokens at current totals."""
        if token_count < 0:
            raise ValueError(f"token_count must be non-negative, got {token_count}")
        funding = self._state.total_funding
        commitments = self._state.total_commitments
        return RedemptionQuote(
            token_count=token_count,
            rate=per_unit_rate(funding, commitments, self._unit),
            amount=redeem_amount(token_count, funding, commitments, self._unit),
        )

    def redeem(self, caller: str, ids: Sequence[int], journal: Journal) -> RedemptionQuote:
        """Clear caller's commitments for ids and pay out their share.

        Each record is cleared before the payout is computed, so the same
        token can never be redeemed twice. A zero payout makes no transfer.
        """
        batch = strictly_increasing(ids)
        for token_id in batch:
            self._ledger.require_committed_by(token_id, caller)
        for token_id in batch:
            self._ledger.clear(token_id, journal)
        token_count = len(batch)

        quote = self.quote(token_count)
        if quote.amount > 0:
            send_value(self._rail, self._state, caller, quote.amount)
            self._state.total_redeemed += quote.amount
        logger.debug(
            "Redeemed %d token(s) for %s at rate %d: %d",
            token_count, caller, quote.rate, quote.amount,
        )
        return quote
